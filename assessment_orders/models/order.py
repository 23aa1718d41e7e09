"""
Assessment Order Model
======================

SQLModel table for purchase orders placed against assessments.

Orders are created PENDING by the upstream placement flow and moved to
COMPLETED only by the background order processor. Index names here match
migrations/versions/001_assessment_orders.py.
"""

import re
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, Index
from sqlmodel import Field, SQLModel


class OrderStatus(str, Enum):
    """Order lifecycle states."""
    PENDING = "PENDING"          # Placed, awaiting completion processing
    COMPLETED = "COMPLETED"      # Set by the order processor only
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


ORDER_STATUSES = tuple(s.value for s in OrderStatus)

DEFAULT_CURRENCY = "USD"
_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_order_id() -> str:
    return str(uuid.uuid4())


def parse_identifier(value: Any) -> Optional[str]:
    """Return the canonical form of an order/user/assessment id, or None if malformed."""
    if not isinstance(value, str):
        return None
    try:
        return str(uuid.UUID(value))
    except ValueError:
        return None


def is_valid_identifier(value: Any) -> bool:
    """Syntactic id check, independent of whether a record exists."""
    return parse_identifier(value) is not None


class AssessmentOrder(SQLModel, table=True):
    """
    A user's order to purchase / take an assessment.

    ``order_metadata`` is stored in the ``metadata`` column; the attribute
    is renamed because SQLModel reserves ``metadata`` for table metadata.
    """

    __tablename__ = "assessment_orders"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_assessment_orders_price_non_negative"),
        CheckConstraint("length(currency) = 3", name="ck_assessment_orders_currency_len"),
        CheckConstraint(
            "status IN ('PENDING', 'COMPLETED', 'FAILED', 'CANCELLED')",
            name="ck_assessment_orders_status",
        ),
        # Worker: oldest PENDING first
        Index("ix_assessment_orders_status_created_at", "status", "created_at"),
        # API: per-user listing by status, newest first
        Index(
            "ix_assessment_orders_user_status_created_at",
            "user_id", "status", "created_at",
            postgresql_ops={"created_at": "DESC"},
        ),
        # Default listing
        Index("ix_assessment_orders_created_at_desc", "created_at", postgresql_ops={"created_at": "DESC"}),
        # Reporting
        Index("ix_assessment_orders_completed_at", "completed_at"),
    )

    id: str = Field(default_factory=new_order_id, primary_key=True, max_length=36)
    user_id: str = Field(index=True, max_length=36)
    assessment_id: str = Field(index=True, max_length=36)
    assessment_title: str = Field(max_length=512)
    user_email: str = Field(index=True, max_length=320)
    status: str = Field(default=OrderStatus.PENDING.value, index=True, max_length=16)
    price: float = Field(default=0.0)
    currency: str = Field(default=DEFAULT_CURRENCY, max_length=3)
    order_metadata: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column("metadata", JSON, nullable=False, default=dict),
    )
    completed_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    @classmethod
    def new(
        cls,
        *,
        user_id: str,
        assessment_id: str,
        assessment_title: str,
        user_email: str,
        price: float,
        currency: str = DEFAULT_CURRENCY,
        status: str = OrderStatus.PENDING.value,
        metadata: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> "AssessmentOrder":
        """Build a normalized order the way the placement flow stores it.

        Raises:
            ValueError: On a malformed id, negative price, bad currency or status.
        """
        uid = parse_identifier(user_id)
        aid = parse_identifier(assessment_id)
        if uid is None or aid is None:
            raise ValueError("user_id and assessment_id must be valid identifiers")

        title = (assessment_title or "").strip()
        email = (user_email or "").strip().lower()
        if not title or not email:
            raise ValueError("assessment_title and user_email are required")

        if price is None or price < 0:
            raise ValueError(f"price must be >= 0, got {price!r}")

        code = (currency or DEFAULT_CURRENCY).strip().upper()
        if not _CURRENCY_RE.match(code):
            raise ValueError(f"currency must be a 3-letter code, got {currency!r}")

        if status not in ORDER_STATUSES:
            raise ValueError(f"unknown status {status!r}")

        created = created_at or utcnow()
        return cls(
            user_id=uid,
            assessment_id=aid,
            assessment_title=title,
            user_email=email,
            status=status,
            price=float(price),
            currency=code,
            order_metadata=dict(metadata or {}),
            completed_at=created if status == OrderStatus.COMPLETED.value else None,
            created_at=created,
            updated_at=created,
        )
