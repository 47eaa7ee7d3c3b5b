"""
Session credentials: signed, self-contained JWTs carried in a cookie.

There is no server-side session table. A token is valid until its ``exp``
claim passes; logging out only asks the client to drop the cookie.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt

from foodshare.db import Owner
from foodshare.errors import Forbidden, Unauthorized

logger = logging.getLogger(__name__)

COOKIE_NAME = "token"
ALGORITHM = "HS256"
_RESERVED_CLAIMS = ("exp", "iat", "nbf")


@dataclass(frozen=True)
class Identity:
    """Verified caller identity for the remainder of a request."""

    email: str
    name: Optional[str] = None
    image: Optional[str] = None
    payload: dict = field(default_factory=dict)

    def as_owner(self) -> Owner:
        return Owner(email=self.email, name=self.name, image=self.image)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issues and verifies session credentials with a process-wide secret."""

    def __init__(
        self,
        secret: str,
        *,
        ttl_hours: int = 5,
        production: bool = False,
        invalid_token_status: int = 401,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if not secret:
            raise ValueError("A signing secret is required")
        self._secret = secret
        self.ttl = timedelta(hours=ttl_hours)
        self.production = production
        self.invalid_token_status = invalid_token_status
        self._clock = clock

    def issue(self, identity: dict) -> str:
        if not isinstance(identity.get("email"), str) or not identity["email"]:
            raise Unauthorized("An email is required to start a session")
        now = self._clock()
        claims = {k: v for k, v in identity.items() if k not in _RESERVED_CLAIMS}
        claims["iat"] = now
        claims["exp"] = now + self.ttl
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def verify(self, token: Optional[str]) -> Identity:
        if not token:
            raise Unauthorized("unauthorized access")
        try:
            decoded = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"require": ["exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise Unauthorized("session expired") from exc
        except jwt.InvalidTokenError as exc:
            logger.info("Rejected session credential: %s", exc)
            raise self._invalid() from exc

        email = decoded.get("email")
        if not isinstance(email, str) or not email:
            raise self._invalid()
        payload = {k: v for k, v in decoded.items() if k not in _RESERVED_CLAIMS}
        return Identity(
            email=email,
            name=decoded.get("name"),
            image=decoded.get("image") or decoded.get("photo"),
            payload=payload,
        )

    def _invalid(self) -> Exception:
        if self.invalid_token_status == 403:
            return Forbidden("forbidden access")
        return Unauthorized("invalid session credential")

    def cookie_options(self) -> dict:
        """Cookie attributes: cross-site capable in production, strict otherwise."""
        return {
            "httponly": True,
            "secure": self.production,
            "samesite": "none" if self.production else "strict",
        }

    def max_age_seconds(self) -> int:
        return int(self.ttl.total_seconds())
