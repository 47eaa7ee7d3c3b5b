"""
Out-of-band repair for claims left behind by an interrupted claim protocol.

A claim is orphaned when its offer no longer exists or is still
``available``. The coordinator withdraws such claims itself; whatever is
found here is what that compensating delete could not remove.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from foodshare.db import ClaimRecord, DbClient, FoodStatus

logger = logging.getLogger(__name__)


@dataclass
class OrphanClaim:
    claim: ClaimRecord
    reason: str  # "missing_offer" or "offer_available"


@dataclass
class ReconcileReport:
    scanned: int = 0
    orphans: list[OrphanClaim] = field(default_factory=list)
    fixed: int = 0


def find_orphan_claims(db: DbClient) -> ReconcileReport:
    report = ReconcileReport()
    for claim in db.list_claims():
        report.scanned += 1
        offer = db.get_food(claim.food_id)
        if offer is None:
            report.orphans.append(OrphanClaim(claim, "missing_offer"))
        elif offer.status == FoodStatus.AVAILABLE:
            report.orphans.append(OrphanClaim(claim, "offer_available"))
    return report


def reconcile(db: DbClient, *, fix: bool = False) -> ReconcileReport:
    """
    Report orphan claims; with ``fix`` apply the missing status transition
    for those whose offer is still available. Claims on deleted offers are
    only reported.
    """
    report = find_orphan_claims(db)
    for orphan in report.orphans:
        claim = orphan.claim
        logger.warning(
            "Orphan claim %s for offer %s (%s)", claim.claim_id, claim.food_id, orphan.reason
        )
        if fix and orphan.reason == "offer_available":
            if db.transition_food_status(
                claim.food_id, FoodStatus.AVAILABLE, FoodStatus.REQUESTED
            ):
                report.fixed += 1
    return report
