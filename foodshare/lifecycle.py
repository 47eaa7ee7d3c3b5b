"""
Food offer lifecycle: creation, donor edits and deletes, and claims.

An offer moves ``available -> requested`` exactly once, when a claim is
filed against it. There is no way back and no terminal state beyond
``requested``.

Filing a claim takes two writes that the store does not make atomic:

1. insert the claim record;
2. move the offer from ``available`` to ``requested``, conditioned on the
   stored status still being ``available``.

Step 2 runs only after step 1 succeeded. Store errors in step 2 are
retried a bounded number of times. If step 2 still cannot be applied the
claim is withdrawn again (compensating delete) and the caller gets an error,
so readers never see a claim pointing at an offer left ``available``. When
even the compensating delete fails the orphan is logged for
``scripts/reconcile_claims.py``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

from foodshare.auth import Identity
from foodshare.db import ClaimRecord, DbClient, FoodRecord, FoodStatus, Owner
from foodshare.errors import (
    ClaimConflict,
    ClaimPartialFailure,
    FoodShareError,
    Forbidden,
    NotFound,
    StoreFailure,
)
from foodshare.guard import ensure_owner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimPolicy:
    """How the coordinator treats self-claims, repeat claims and store errors."""

    allow_self_claim: bool = False
    # "reject": only the claim that moves the offer to requested survives.
    # "allow": later claims on a requested offer are recorded as well.
    duplicate_claims: str = "reject"
    status_retries: int = 2
    retry_delay: float = 0.05


class LifecycleCoordinator:
    def __init__(self, db: DbClient, policy: Optional[ClaimPolicy] = None):
        self.db = db
        self.policy = policy or ClaimPolicy()

    def create_offer(
        self,
        fields: dict,
        identity: Identity,
        *,
        donor_name: Optional[str] = None,
        donor_image: Optional[str] = None,
    ) -> FoodRecord:
        """Persist a new offer owned by the caller, always as ``available``."""
        donor = Owner(
            email=identity.email,
            name=donor_name or identity.name,
            image=donor_image or identity.image,
        )
        record = self.db.insert_food(fields, donor, FoodStatus.AVAILABLE)
        logger.info("Offer %s created by %s", record.food_id, identity.email)
        return record

    def edit_offer(
        self, food_id: str, identity: Identity, fields: dict
    ) -> tuple[int, int]:
        offer = self.db.get_food(food_id)
        if offer is None:
            raise NotFound("Food not found")
        ensure_owner(identity, offer.donor.email)
        return self.db.replace_food_fields(food_id, fields)

    def delete_offer(self, food_id: str, identity: Identity) -> int:
        offer = self.db.get_food(food_id)
        if offer is None:
            return 0
        ensure_owner(identity, offer.donor.email)
        deleted = self.db.delete_food(food_id)
        logger.info("Offer %s deleted by %s", food_id, identity.email)
        return deleted

    def file_claim(
        self, food_id: str, identity: Identity, details: dict
    ) -> ClaimRecord:
        offer = self.db.get_food(food_id)
        if offer is None:
            raise NotFound("Food not found")
        if offer.donor.email == identity.email and not self.policy.allow_self_claim:
            raise Forbidden("Donors cannot claim their own offer")
        if (
            offer.status != FoodStatus.AVAILABLE
            and self.policy.duplicate_claims == "reject"
        ):
            raise ClaimConflict(
                "Food has already been requested", details={"food_id": food_id}
            )

        claim = self.db.insert_claim(food_id, identity.as_owner(), details)

        try:
            if self._mark_requested(food_id):
                logger.info(
                    "Claim %s moved offer %s to requested", claim.claim_id, food_id
                )
                return claim
            current = self.db.get_food(food_id)
        except StoreFailure as exc:
            compensated = self._withdraw(claim)
            logger.error(
                "Claim %s stored but offer %s was not marked requested "
                "(compensated=%s): %s",
                claim.claim_id,
                food_id,
                compensated,
                exc.message,
            )
            raise ClaimPartialFailure(
                "Claim could not be completed",
                details={
                    "claim_id": claim.claim_id,
                    "food_id": food_id,
                    "compensated": compensated,
                },
            ) from exc

        if current is None:
            self._abandon(claim, NotFound("Food not found"))
        if self.policy.duplicate_claims == "allow":
            logger.info(
                "Claim %s recorded against already requested offer %s",
                claim.claim_id,
                food_id,
            )
            return claim
        logger.warning(
            "Claim %s lost the race for offer %s", claim.claim_id, food_id
        )
        self._abandon(
            claim,
            ClaimConflict(
                "Food has already been requested", details={"food_id": food_id}
            ),
        )

    def _mark_requested(self, food_id: str) -> bool:
        attempts = self.policy.status_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return self.db.transition_food_status(
                    food_id, FoodStatus.AVAILABLE, FoodStatus.REQUESTED
                )
            except StoreFailure as exc:
                if attempt == attempts:
                    raise
                logger.warning(
                    "Status update for offer %s failed (attempt %d/%d): %s",
                    food_id,
                    attempt,
                    attempts,
                    exc.message,
                )
                if self.policy.retry_delay:
                    time.sleep(self.policy.retry_delay * attempt)
        return False

    def _withdraw(self, claim: ClaimRecord) -> bool:
        try:
            self.db.delete_claim(claim.claim_id)
            return True
        except StoreFailure as exc:
            logger.error(
                "Orphan claim %s for offer %s needs reconciliation: %s",
                claim.claim_id,
                claim.food_id,
                exc.message,
            )
            return False

    def _abandon(self, claim: ClaimRecord, error: FoodShareError) -> None:
        """Withdraw a claim that must not stand and raise ``error``."""
        if self._withdraw(claim):
            raise error
        raise ClaimPartialFailure(
            "Claim could not be withdrawn",
            details={
                "claim_id": claim.claim_id,
                "food_id": claim.food_id,
                "compensated": False,
            },
        ) from error
