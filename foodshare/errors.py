"""
Error taxonomy shared by the stores, the coordinator and the HTTP layer.

Each error carries the HTTP status it maps to and a short machine-readable
code. The app registers one handler for ``FoodShareError`` so every
endpoint renders failures the same way.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class FoodShareError(Exception):
    """Base exception for all food sharing errors."""

    status_code = 500
    code = "error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def as_dict(self) -> dict:
        body = {"message": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class Unauthorized(FoodShareError):
    """Missing, invalid or expired session credential."""

    status_code = 401
    code = "unauthorized"


class Forbidden(FoodShareError):
    """Authenticated caller does not own the resource."""

    status_code = 403
    code = "forbidden"


class NotFound(FoodShareError):
    status_code = 404
    code = "not_found"


class ValidationError(FoodShareError):
    status_code = 400
    code = "validation_error"


class ClaimConflict(FoodShareError):
    """The offer is no longer available to claim."""

    status_code = 409
    code = "claim_conflict"


class StoreFailure(FoodShareError):
    """The persistence layer rejected or failed an operation."""

    status_code = 500
    code = "store_failure"


class ClaimPartialFailure(FoodShareError):
    """
    The claim was written but the offer status could not be moved to
    ``requested``. The coordinator has tried to remove the claim again;
    ``details["compensated"]`` tells whether that worked.
    """

    status_code = 503
    code = "claim_partial_failure"
