"""
HTTP routes for the food sharing API.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from foodshare.auth import COOKIE_NAME, Identity, TokenService
from foodshare.db import ClaimRecord, FoodRecord
from foodshare.dependencies import (
    get_coordinator,
    get_current_identity,
    get_queries,
    get_token_service,
)
from foodshare.lifecycle import LifecycleCoordinator
from foodshare.queries import FoodQueries
from foodshare.schemas import (
    AddFoodRequest,
    ClaimResponse,
    DeleteAck,
    FileClaimRequest,
    FoodResponse,
    IdentityPayload,
    InsertAck,
    SuccessResponse,
    UpdateAck,
    UpdateFoodRequest,
)

router = APIRouter()


def _food(record: FoodRecord) -> FoodResponse:
    return FoodResponse(**record.as_dict())


def _claim(record: ClaimRecord) -> ClaimResponse:
    return ClaimResponse(**record.as_dict())


@router.get("/")
def root():
    return {"message": "Food sharing server is running"}


@router.post("/jwt", response_model=SuccessResponse)
def issue_token(
    payload: IdentityPayload,
    response: Response,
    tokens: TokenService = Depends(get_token_service),
):
    """
    Exchange an identity payload for a session cookie.
    """
    token = tokens.issue(payload.model_dump(exclude_none=True))
    response.set_cookie(
        COOKIE_NAME,
        token,
        max_age=tokens.max_age_seconds(),
        **tokens.cookie_options(),
    )
    return SuccessResponse()


@router.post("/logout", response_model=SuccessResponse)
def logout(response: Response, tokens: TokenService = Depends(get_token_service)):
    response.delete_cookie(COOKIE_NAME, **tokens.cookie_options())
    return SuccessResponse()


@router.post("/add-food", response_model=InsertAck)
def add_food(
    payload: AddFoodRequest,
    identity: Identity = Depends(get_current_identity),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
):
    donor = payload.donor
    record = coordinator.create_offer(
        payload.editable(),
        identity,
        donor_name=donor.name if donor else None,
        donor_image=donor.image if donor else None,
    )
    return InsertAck(inserted_id=record.food_id)


@router.get("/available-foods", response_model=list[FoodResponse])
@router.get("/all-foods", response_model=list[FoodResponse])
def available_foods(
    search: Optional[str] = Query(None),
    sort: Optional[str] = Query(None),
    queries: FoodQueries = Depends(get_queries),
):
    return [_food(r) for r in queries.list_available(search=search, sort=sort)]


@router.get("/featured-foods", response_model=list[FoodResponse])
def featured_foods(queries: FoodQueries = Depends(get_queries)):
    return [_food(r) for r in queries.list_featured()]


@router.get("/food/{food_id}", response_model=FoodResponse)
def get_food(food_id: str, queries: FoodQueries = Depends(get_queries)):
    return _food(queries.get_offer(food_id))


@router.get("/manage-foods/{email}", response_model=list[FoodResponse])
def manage_foods(
    email: str,
    identity: Identity = Depends(get_current_identity),
    queries: FoodQueries = Depends(get_queries),
):
    return [_food(r) for r in queries.list_by_owner(identity, email)]


@router.put("/food/{food_id}", response_model=UpdateAck)
def update_food(
    food_id: str,
    payload: UpdateFoodRequest,
    identity: Identity = Depends(get_current_identity),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
):
    matched, modified = coordinator.edit_offer(food_id, identity, payload.editable())
    return UpdateAck(matched_count=matched, modified_count=modified)


@router.delete("/food/{food_id}", response_model=DeleteAck)
def delete_food(
    food_id: str,
    identity: Identity = Depends(get_current_identity),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
):
    deleted = coordinator.delete_offer(food_id, identity)
    return DeleteAck(deleted_count=deleted)


@router.post("/request-food", response_model=ClaimResponse, status_code=201)
def request_food(
    payload: FileClaimRequest,
    identity: Identity = Depends(get_current_identity),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
):
    """
    File a claim and move the offer to ``requested``.
    """
    claim = coordinator.file_claim(payload.food_id, identity, payload.details)
    return _claim(claim)


@router.get("/my-requests/{email}", response_model=list[ClaimResponse])
def my_requests(
    email: str,
    identity: Identity = Depends(get_current_identity),
    queries: FoodQueries = Depends(get_queries),
):
    return [_claim(r) for r in queries.list_claims_by_requester(identity, email)]
