"""
Dependency wiring for the FastAPI app.

Long-lived resources are built once by ``create_app`` and hung off
``app.state``; the functions here hand them to routes per request.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Cookie, Depends, Request

from foodshare.auth import Identity, TokenService
from foodshare.config import Settings
from foodshare.db import DbClient, InMemoryDbClient, SqlDbClient
from foodshare.lifecycle import ClaimPolicy, LifecycleCoordinator
from foodshare.queries import FoodQueries

logger = logging.getLogger(__name__)


def build_db_client(settings: Settings) -> DbClient:
    if settings.use_in_memory_backends or not settings.database_url:
        logger.info("Using in-memory store")
        return InMemoryDbClient()
    return SqlDbClient(settings.database_url)


def build_token_service(settings: Settings) -> TokenService:
    return TokenService(
        settings.access_token_secret,
        ttl_hours=settings.token_ttl_hours,
        production=settings.is_production,
        invalid_token_status=settings.invalid_token_status,
    )


def build_claim_policy(settings: Settings) -> ClaimPolicy:
    return ClaimPolicy(
        allow_self_claim=settings.allow_self_claim,
        duplicate_claims=settings.duplicate_claims,
        status_retries=settings.claim_status_retries,
    )


def get_db_client(request: Request) -> DbClient:
    return request.app.state.db


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def get_coordinator(request: Request) -> LifecycleCoordinator:
    return request.app.state.coordinator


def get_queries(request: Request) -> FoodQueries:
    return request.app.state.queries


def get_current_identity(
    token: Optional[str] = Cookie(default=None),
    tokens: TokenService = Depends(get_token_service),
) -> Identity:
    """Verify the ``token`` cookie; raises 401/403 through the app handler."""
    return tokens.verify(token)
