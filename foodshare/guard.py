"""
Ownership checks.

Authorization is identity equality only: no roles, no delegation. Each
owner-scoped endpoint calls ``ensure_owner`` itself before touching data.
"""

from __future__ import annotations

from typing import Optional

from foodshare.auth import Identity
from foodshare.errors import Forbidden


def ensure_owner(identity: Identity, owner_email: Optional[str]) -> None:
    """Raise ``Forbidden`` unless the verified caller is the resource owner."""
    if not owner_email or identity.email != owner_email:
        raise Forbidden("Forbidden access")
