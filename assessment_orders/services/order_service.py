"""
Order Query Service
===================

Read side of the order API: paginated listing, single lookup and
per-status aggregation. Filtering, sorting and pagination are pushed
into the database; nothing is filtered in memory.

Every store call runs through run_sync() so the event loop stays free.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import func
from sqlmodel import select

from assessment_orders.core.async_utils import run_sync
from assessment_orders.core.database import get_session_context
from assessment_orders.models.order import AssessmentOrder, parse_identifier
from assessment_orders.services.order_filters import (
    OrderFilter,
    SortSpec,
    build_order_filter,
    build_sort,
    parse_int,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 200
# Largest OFFSET the drivers accept (signed 64-bit)
MAX_OFFSET = 2 ** 63 - 1

# Projection for list views; metadata is opt-in to bound response size
_LIST_COLUMNS = (
    ("id", AssessmentOrder.id),
    ("userId", AssessmentOrder.user_id),
    ("assessmentId", AssessmentOrder.assessment_id),
    ("assessmentTitle", AssessmentOrder.assessment_title),
    ("userEmail", AssessmentOrder.user_email),
    ("status", AssessmentOrder.status),
    ("price", AssessmentOrder.price),
    ("currency", AssessmentOrder.currency),
    ("createdAt", AssessmentOrder.created_at),
    ("updatedAt", AssessmentOrder.updated_at),
    ("completedAt", AssessmentOrder.completed_at),
)
_METADATA_COLUMN = ("metadata", AssessmentOrder.order_metadata)
_DETAIL_COLUMNS = _LIST_COLUMNS + (_METADATA_COLUMN,)


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    # SQLite hands timestamps back naive; they are stored as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _row_to_dict(row: Any, columns) -> Dict[str, Any]:
    data = {}
    for (key, _column), value in zip(columns, row):
        if isinstance(value, datetime):
            value = _iso(value)
        data[key] = value
    return data


def wants_metadata(params: Mapping[str, Any]) -> bool:
    value = params.get("includeMetadata")
    if value is True:
        return True
    return isinstance(value, str) and value.strip().lower() in ("1", "true")


def resolve_pagination(params: Mapping[str, Any]) -> tuple:
    """Return (page, limit, offset) with page >= 1, 1 <= limit <= MAX_LIMIT and offset <= MAX_OFFSET."""
    limit = min(max(parse_int(params.get("limit"), DEFAULT_LIMIT), 1), MAX_LIMIT)
    page = min(max(parse_int(params.get("page"), DEFAULT_PAGE), 1), MAX_OFFSET // limit + 1)
    return page, limit, (page - 1) * limit


class OrderService:
    """Query API over persisted assessment orders."""

    # ------------------------------------------------------------------
    # List
    # ------------------------------------------------------------------

    async def list_orders(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        """List orders with filters, sorting and pagination.

        Returns ``{"data": [...], "page": int, "limit": int, "total": int}``.
        Count and page fetch are independent reads and run concurrently.
        """
        page, limit, offset = resolve_pagination(params)
        order_filter = build_order_filter(params)
        sort = build_sort(params)
        columns = _DETAIL_COLUMNS if wants_metadata(params) else _LIST_COLUMNS

        data, total = await asyncio.gather(
            run_sync(self._fetch_page, order_filter, sort, columns, offset, limit),
            run_sync(self._count, order_filter),
        )
        return {"data": data, "page": page, "limit": limit, "total": total}

    def _fetch_page(
        self,
        order_filter: OrderFilter,
        sort: SortSpec,
        columns,
        offset: int,
        limit: int,
    ) -> List[Dict[str, Any]]:
        stmt = (
            select(*[column for _key, column in columns])
            .where(*order_filter.clauses())
            .order_by(*sort.clauses())
            .offset(offset)
            .limit(limit)
        )
        with get_session_context() as session:
            rows = session.exec(stmt).all()
        return [_row_to_dict(row, columns) for row in rows]

    def _count(self, order_filter: OrderFilter) -> int:
        stmt = select(func.count()).select_from(AssessmentOrder).where(*order_filter.clauses())
        with get_session_context() as session:
            return int(session.exec(stmt).one())

    # ------------------------------------------------------------------
    # Single lookup
    # ------------------------------------------------------------------

    async def get_order_by_id(self, order_id: Any) -> Optional[Dict[str, Any]]:
        """Fetch one order with metadata. Malformed ids and missing rows both return None."""
        canonical = parse_identifier(order_id)
        if canonical is None:
            return None
        return await run_sync(self._fetch_one, canonical)

    def _fetch_one(self, order_id: str) -> Optional[Dict[str, Any]]:
        stmt = select(*[column for _key, column in _DETAIL_COLUMNS]).where(AssessmentOrder.id == order_id)
        with get_session_context() as session:
            row = session.exec(stmt).first()
        if row is None:
            return None
        return _row_to_dict(row, _DETAIL_COLUMNS)

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    async def summarize_orders(self, params: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
        """Count and revenue per status for orders matching the list filters.

        Statuses without matches are absent from the result.
        """
        order_filter = build_order_filter(params)
        rows = await run_sync(self._aggregate, order_filter)
        return {
            status: {"count": int(count), "totalRevenue": float(revenue or 0)}
            for status, count, revenue in rows
        }

    def _aggregate(self, order_filter: OrderFilter) -> List[tuple]:
        stmt = (
            select(
                AssessmentOrder.status,
                func.count(),
                func.coalesce(func.sum(AssessmentOrder.price), 0),
            )
            .where(*order_filter.clauses())
            .group_by(AssessmentOrder.status)
            .order_by(AssessmentOrder.status)
        )
        with get_session_context() as session:
            return [tuple(row) for row in session.exec(stmt).all()]


# Module-level singleton
_service: Optional[OrderService] = None


def get_order_service() -> OrderService:
    global _service
    if _service is None:
        _service = OrderService()
    return _service
