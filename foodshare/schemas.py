"""
Pydantic schemas for the food sharing API.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class IdentityPayload(BaseModel):
    """Identity handed over by the external identity provider after login."""

    model_config = ConfigDict(extra="allow")

    email: str = Field(..., min_length=3, max_length=320)
    name: Optional[str] = Field(default=None, max_length=200)
    image: Optional[str] = Field(default=None, max_length=2048)


class SuccessResponse(BaseModel):
    success: Literal[True] = True


class OwnerModel(BaseModel):
    email: str
    name: Optional[str] = None
    image: Optional[str] = None


class DonorHint(BaseModel):
    """Display fields for the donor. The email always comes from the session."""

    name: Optional[str] = Field(default=None, max_length=200)
    image: Optional[str] = Field(default=None, max_length=2048)


class FoodFields(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    image: Optional[str] = Field(default=None, max_length=2048)
    quantity: int = Field(default=1, ge=0)
    location: Optional[str] = Field(default=None, max_length=500)
    expires_at: Optional[datetime] = None
    notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("expires_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def editable(self) -> dict:
        return self.model_dump(include=set(FoodFields.model_fields))


class AddFoodRequest(FoodFields):
    # Any status or donor email sent by the client is ignored.
    donor: Optional[DonorHint] = None


class UpdateFoodRequest(FoodFields):
    pass


class FoodResponse(BaseModel):
    food_id: str
    name: str
    image: Optional[str] = None
    quantity: int
    location: Optional[str] = None
    expires_at: Optional[datetime] = None
    notes: Optional[str] = None
    donor: OwnerModel
    status: str
    created_at: float
    updated_at: float


class FileClaimRequest(BaseModel):
    food_id: str = Field(..., min_length=1, max_length=64)
    details: dict = Field(default_factory=dict)


class ClaimResponse(BaseModel):
    claim_id: str
    food_id: str
    requester: OwnerModel
    details: dict
    created_at: float


class InsertAck(BaseModel):
    acknowledged: bool = True
    inserted_id: str


class UpdateAck(BaseModel):
    acknowledged: bool = True
    matched_count: int
    modified_count: int


class DeleteAck(BaseModel):
    acknowledged: bool = True
    deleted_count: int


class ErrorResponse(BaseModel):
    message: str
    code: str
    details: Optional[dict] = None
