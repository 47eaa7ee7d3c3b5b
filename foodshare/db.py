"""
Food catalog and claim request stores: a SQLAlchemy implementation and an
in-memory one for development and tests.

Both honour the same contract. Every method touches a single record
atomically; nothing here spans two records. ``transition_food_status`` is
the conditional update the claim protocol relies on: it only writes when
the stored status still equals the expected one.
"""

from __future__ import annotations

import copy
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterator, Literal, Optional, Protocol

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    select,
    update,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from foodshare.errors import StoreFailure

EDITABLE_FOOD_FIELDS = ("name", "image", "quantity", "location", "expires_at", "notes")

FoodOrder = Literal["inserted", "expires_at", "quantity_desc"]


class FoodStatus(str, Enum):
    AVAILABLE = "available"
    REQUESTED = "requested"


@dataclass(frozen=True)
class Owner:
    """Identity embedded in a record: the donor of an offer or a requester."""

    email: str
    name: Optional[str] = None
    image: Optional[str] = None

    def as_dict(self) -> dict:
        return {"email": self.email, "name": self.name, "image": self.image}


@dataclass
class FoodRecord:
    food_id: str
    name: str
    donor: Owner
    status: FoodStatus
    quantity: int = 1
    image: Optional[str] = None
    location: Optional[str] = None
    expires_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def editable_fields(self) -> dict:
        return {name: getattr(self, name) for name in EDITABLE_FOOD_FIELDS}

    def as_dict(self) -> dict:
        return {
            "food_id": self.food_id,
            "name": self.name,
            "image": self.image,
            "quantity": self.quantity,
            "location": self.location,
            "expires_at": self.expires_at,
            "notes": self.notes,
            "donor": self.donor.as_dict(),
            "status": self.status.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class ClaimRecord:
    claim_id: str
    food_id: str
    requester: Owner
    details: dict = field(default_factory=dict)
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "claim_id": self.claim_id,
            "food_id": self.food_id,
            "requester": self.requester.as_dict(),
            "details": self.details,
            "created_at": self.created_at,
        }


class DbClient(Protocol):
    """Interface for the food and claim collections."""

    def insert_food(
        self, fields: dict, donor: Owner, status: FoodStatus
    ) -> FoodRecord:
        ...

    def get_food(self, food_id: str) -> Optional[FoodRecord]:
        ...

    def list_foods(
        self,
        *,
        status: Optional[FoodStatus] = None,
        donor_email: Optional[str] = None,
        name_contains: Optional[str] = None,
        order: FoodOrder = "inserted",
        limit: Optional[int] = None,
    ) -> list[FoodRecord]:
        ...

    def replace_food_fields(self, food_id: str, fields: dict) -> tuple[int, int]:
        """Overwrite every editable field; returns (matched, modified)."""
        ...

    def delete_food(self, food_id: str) -> int:
        ...

    def transition_food_status(
        self, food_id: str, expected: FoodStatus, new: FoodStatus
    ) -> bool:
        ...

    def insert_claim(
        self, food_id: str, requester: Owner, details: dict
    ) -> ClaimRecord:
        ...

    def delete_claim(self, claim_id: str) -> int:
        ...

    def list_claims(
        self,
        *,
        requester_email: Optional[str] = None,
        food_id: Optional[str] = None,
    ) -> list[ClaimRecord]:
        ...

    def close(self) -> None:
        ...


def _fold(name: Optional[str]) -> str:
    """Case folding used by name search in every store."""
    return (name or "").casefold()


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops the offset of timezone-aware columns; values are stored as UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _full_fields(fields: dict) -> dict:
    """Every editable field, with absent ones reset to their empty value."""
    unknown = set(fields) - set(EDITABLE_FOOD_FIELDS)
    if unknown:
        raise ValueError(f"Not editable: {', '.join(sorted(unknown))}")
    values = {name: fields.get(name) for name in EDITABLE_FOOD_FIELDS}
    if values["quantity"] is None:
        values["quantity"] = 1
    if values["expires_at"] is not None:
        values["expires_at"] = _as_utc(values["expires_at"]).astimezone(timezone.utc)
    return values


def _copy_claim(record: ClaimRecord) -> ClaimRecord:
    return replace(record, details=copy.deepcopy(record.details))


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.foods: Dict[str, FoodRecord] = {}
        self.claims: Dict[str, ClaimRecord] = {}
        # Stands in for the per-document atomicity of a real store.
        self._lock = threading.Lock()

    def insert_food(
        self, fields: dict, donor: Owner, status: FoodStatus
    ) -> FoodRecord:
        record = FoodRecord(
            food_id=uuid.uuid4().hex,
            donor=donor,
            status=status,
            **_full_fields(fields),
        )
        with self._lock:
            self.foods[record.food_id] = record
        return replace(record)

    def get_food(self, food_id: str) -> Optional[FoodRecord]:
        with self._lock:
            record = self.foods.get(food_id)
            return replace(record) if record else None

    def list_foods(
        self,
        *,
        status: Optional[FoodStatus] = None,
        donor_email: Optional[str] = None,
        name_contains: Optional[str] = None,
        order: FoodOrder = "inserted",
        limit: Optional[int] = None,
    ) -> list[FoodRecord]:
        needle = _fold(name_contains) if name_contains else None
        with self._lock:
            items = [replace(r) for r in self.foods.values()]
        if status is not None:
            items = [r for r in items if r.status == status]
        if donor_email is not None:
            items = [r for r in items if r.donor.email == donor_email]
        if needle:
            items = [r for r in items if needle in _fold(r.name)]
        if order == "expires_at":
            # Offers without an expiry sort last.
            items.sort(key=lambda r: (r.expires_at is None, r.expires_at or datetime.min))
        elif order == "quantity_desc":
            items.sort(key=lambda r: r.quantity, reverse=True)
        if limit is not None:
            items = items[:limit]
        return items

    def replace_food_fields(self, food_id: str, fields: dict) -> tuple[int, int]:
        values = _full_fields(fields)
        with self._lock:
            record = self.foods.get(food_id)
            if not record:
                return 0, 0
            if record.editable_fields() == values:
                return 1, 0
            for name, value in values.items():
                setattr(record, name, value)
            record.updated_at = time.time()
            return 1, 1

    def delete_food(self, food_id: str) -> int:
        with self._lock:
            return 1 if self.foods.pop(food_id, None) else 0

    def transition_food_status(
        self, food_id: str, expected: FoodStatus, new: FoodStatus
    ) -> bool:
        with self._lock:
            record = self.foods.get(food_id)
            if not record or record.status != expected:
                return False
            record.status = new
            record.updated_at = time.time()
            return True

    def insert_claim(
        self, food_id: str, requester: Owner, details: dict
    ) -> ClaimRecord:
        record = ClaimRecord(
            claim_id=uuid.uuid4().hex,
            food_id=food_id,
            requester=requester,
            details=copy.deepcopy(details),
        )
        with self._lock:
            self.claims[record.claim_id] = record
        return _copy_claim(record)

    def delete_claim(self, claim_id: str) -> int:
        with self._lock:
            return 1 if self.claims.pop(claim_id, None) else 0

    def list_claims(
        self,
        *,
        requester_email: Optional[str] = None,
        food_id: Optional[str] = None,
    ) -> list[ClaimRecord]:
        with self._lock:
            items = [_copy_claim(c) for c in self.claims.values()]
        if requester_email is not None:
            items = [c for c in items if c.requester.email == requester_email]
        if food_id is not None:
            items = [c for c in items if c.food_id == food_id]
        return items

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.foods.clear()
            self.claims.clear()

    def close(self) -> None:
        pass


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        engine_kwargs = {"future": True, "pool_pre_ping": True, "pool_recycle": 1800}
        if database_url.startswith("sqlite") and ":memory:" in database_url:
            # One shared connection, otherwise every session sees an empty db.
            engine_kwargs.update(
                poolclass=StaticPool, connect_args={"check_same_thread": False}
            )
        self.engine = create_engine(database_url, **engine_kwargs)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self.Session() as session:
                yield session
        except SQLAlchemyError as exc:
            raise StoreFailure(f"Database operation failed: {exc.__class__.__name__}") from exc

    def _food_row(self, session: Session, food_id: str) -> Optional["FoodRow"]:
        return session.execute(
            select(FoodRow).where(FoodRow.food_id == food_id)
        ).scalar_one_or_none()

    def _to_food_record(self, row: "FoodRow") -> FoodRecord:
        return FoodRecord(
            food_id=row.food_id,
            name=row.name,
            image=row.image,
            quantity=row.quantity,
            location=row.location,
            expires_at=_as_utc(row.expires_at),
            notes=row.notes,
            donor=Owner(
                email=row.donor_email, name=row.donor_name, image=row.donor_image
            ),
            status=FoodStatus(row.status),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _to_claim_record(self, row: "ClaimRow") -> ClaimRecord:
        return ClaimRecord(
            claim_id=row.claim_id,
            food_id=row.food_id,
            requester=Owner(
                email=row.requester_email,
                name=row.requester_name,
                image=row.requester_image,
            ),
            details=row.details or {},
            created_at=row.created_at,
        )

    def insert_food(
        self, fields: dict, donor: Owner, status: FoodStatus
    ) -> FoodRecord:
        now = time.time()
        values = _full_fields(fields)
        with self._session() as session:
            row = FoodRow(
                food_id=uuid.uuid4().hex,
                name_folded=_fold(values["name"]),
                donor_email=donor.email,
                donor_name=donor.name,
                donor_image=donor.image,
                status=status.value,
                created_at=now,
                updated_at=now,
                **values,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_food_record(row)

    def get_food(self, food_id: str) -> Optional[FoodRecord]:
        with self._session() as session:
            row = self._food_row(session, food_id)
            if not row:
                return None
            return self._to_food_record(row)

    def list_foods(
        self,
        *,
        status: Optional[FoodStatus] = None,
        donor_email: Optional[str] = None,
        name_contains: Optional[str] = None,
        order: FoodOrder = "inserted",
        limit: Optional[int] = None,
    ) -> list[FoodRecord]:
        stmt = select(FoodRow)
        if status is not None:
            stmt = stmt.where(FoodRow.status == status.value)
        if donor_email is not None:
            stmt = stmt.where(FoodRow.donor_email == donor_email)
        if name_contains:
            # autoescape turns % and _ into literals.
            stmt = stmt.where(
                FoodRow.name_folded.contains(_fold(name_contains), autoescape=True)
            )
        if order == "expires_at":
            stmt = stmt.order_by(FoodRow.expires_at.asc().nulls_last(), FoodRow.seq.asc())
        elif order == "quantity_desc":
            stmt = stmt.order_by(FoodRow.quantity.desc(), FoodRow.seq.asc())
        else:
            stmt = stmt.order_by(FoodRow.seq.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._session() as session:
            rows = session.execute(stmt).scalars().all()
            return [self._to_food_record(row) for row in rows]

    def replace_food_fields(self, food_id: str, fields: dict) -> tuple[int, int]:
        values = _full_fields(fields)
        with self._session() as session:
            row = self._food_row(session, food_id)
            if not row:
                return 0, 0
            if self._to_food_record(row).editable_fields() == values:
                return 1, 0
            for name, value in values.items():
                setattr(row, name, value)
            row.name_folded = _fold(row.name)
            row.updated_at = time.time()
            session.commit()
            return 1, 1

    def delete_food(self, food_id: str) -> int:
        with self._session() as session:
            result = session.execute(delete(FoodRow).where(FoodRow.food_id == food_id))
            session.commit()
            return result.rowcount or 0

    def transition_food_status(
        self, food_id: str, expected: FoodStatus, new: FoodStatus
    ) -> bool:
        stmt = (
            update(FoodRow)
            .where(FoodRow.food_id == food_id, FoodRow.status == expected.value)
            .values(status=new.value, updated_at=time.time())
        )
        with self._session() as session:
            result = session.execute(stmt)
            session.commit()
            return bool(result.rowcount)

    def insert_claim(
        self, food_id: str, requester: Owner, details: dict
    ) -> ClaimRecord:
        with self._session() as session:
            row = ClaimRow(
                claim_id=uuid.uuid4().hex,
                food_id=food_id,
                requester_email=requester.email,
                requester_name=requester.name,
                requester_image=requester.image,
                details=details,
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_claim_record(row)

    def delete_claim(self, claim_id: str) -> int:
        with self._session() as session:
            result = session.execute(delete(ClaimRow).where(ClaimRow.claim_id == claim_id))
            session.commit()
            return result.rowcount or 0

    def list_claims(
        self,
        *,
        requester_email: Optional[str] = None,
        food_id: Optional[str] = None,
    ) -> list[ClaimRecord]:
        stmt = select(ClaimRow).order_by(ClaimRow.seq.asc())
        if requester_email is not None:
            stmt = stmt.where(ClaimRow.requester_email == requester_email)
        if food_id is not None:
            stmt = stmt.where(ClaimRow.food_id == food_id)
        with self._session() as session:
            rows = session.execute(stmt).scalars().all()
            return [self._to_claim_record(row) for row in rows]

    def close(self) -> None:
        self.engine.dispose()


Base = declarative_base()


class FoodRow(Base):
    __tablename__ = "foods"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    food_id = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    name_folded = Column(String, nullable=False, index=True)
    image = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    location = Column(String, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)
    notes = Column(Text, nullable=True)
    donor_email = Column(String, nullable=False, index=True)
    donor_name = Column(String, nullable=True)
    donor_image = Column(String, nullable=True)
    status = Column(String, nullable=False, index=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class ClaimRow(Base):
    __tablename__ = "food_requests"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    claim_id = Column(String, nullable=False, unique=True, index=True)
    food_id = Column(String, nullable=False, index=True)
    requester_email = Column(String, nullable=False, index=True)
    requester_name = Column(String, nullable=True)
    requester_image = Column(String, nullable=True)
    details = Column(JSON, nullable=False)
    created_at = Column(Float, nullable=False)
