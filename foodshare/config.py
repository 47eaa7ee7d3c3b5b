"""
Configuration and settings for the food sharing backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_TOKEN_SECRET = "dev-only-token-secret-do-not-use-in-production"


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="")
    environment: Literal["development", "production"] = Field(default="development")
    log_level: str = Field(default="INFO")

    # Session credential
    access_token_secret: Optional[str] = Field(default=None)
    token_ttl_hours: int = Field(default=5, ge=5, le=10)
    # Status used for a present but unverifiable token (401 or 403).
    invalid_token_status: Literal[401, 403] = Field(default=401)

    # Database (any SQLAlchemy URL; Postgres expected in production)
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Comma separated list of origins allowed to send the session cookie.
    allowed_origins: str = Field(default="http://localhost:5173")

    # Claim policy
    allow_self_claim: bool = Field(default=False)
    duplicate_claims: Literal["reject", "allow"] = Field(default="reject")
    claim_status_retries: int = Field(default=2, ge=0, le=10)

    @model_validator(mode="after")
    def _require_secret_in_production(self) -> "Settings":
        if not self.access_token_secret:
            if self.environment == "production":
                raise ValueError("ACCESS_TOKEN_SECRET is required in production")
            self.access_token_secret = DEV_TOKEN_SECRET
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def origin_list(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
