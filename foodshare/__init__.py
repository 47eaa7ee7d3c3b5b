"""
Backend package for the food sharing API.

This package provides a FastAPI application with a food catalog, claim
requests against offers, and cookie-carried session credentials. Storage
sits behind a small client interface so tests can run in memory.
"""
