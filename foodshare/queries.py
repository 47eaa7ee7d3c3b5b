"""
Read side of the catalog: public listings and owner-scoped lists.

Search input comes straight from the query string. It is only ever used as
a literal substring; the stores never hand it to a pattern engine.
"""

from __future__ import annotations

from typing import Optional

from foodshare.auth import Identity
from foodshare.db import ClaimRecord, DbClient, FoodRecord, FoodStatus
from foodshare.errors import NotFound, ValidationError
from foodshare.guard import ensure_owner

FEATURED_LIMIT = 6
MAX_SEARCH_LENGTH = 100

SORT_KEYS = {
    "expiry": "expires_at",
    "expires_at": "expires_at",
    "asc": "expires_at",
}


def normalize_search(term: Optional[str]) -> Optional[str]:
    if term is None:
        return None
    term = term.strip()[:MAX_SEARCH_LENGTH]
    return term or None


class FoodQueries:
    def __init__(self, db: DbClient):
        self.db = db

    def get_offer(self, food_id: str) -> FoodRecord:
        offer = self.db.get_food(food_id)
        if offer is None:
            raise NotFound("Food not found")
        return offer

    def list_available(
        self, search: Optional[str] = None, sort: Optional[str] = None
    ) -> list[FoodRecord]:
        order = "inserted"
        if sort:
            order = SORT_KEYS.get(sort.strip().lower())
            if order is None:
                raise ValidationError(
                    f"Unsupported sort '{sort}'",
                    details={"allowed": sorted(SORT_KEYS)},
                )
        return self.db.list_foods(
            status=FoodStatus.AVAILABLE,
            name_contains=normalize_search(search),
            order=order,
        )

    def list_featured(self) -> list[FoodRecord]:
        """Largest available offers first, at most six."""
        return self.db.list_foods(
            status=FoodStatus.AVAILABLE, order="quantity_desc", limit=FEATURED_LIMIT
        )

    def list_by_owner(self, identity: Identity, email: str) -> list[FoodRecord]:
        ensure_owner(identity, email)
        return self.db.list_foods(donor_email=email)

    def list_claims_by_requester(
        self, identity: Identity, email: str
    ) -> list[ClaimRecord]:
        ensure_owner(identity, email)
        return self.db.list_claims(requester_email=email)
