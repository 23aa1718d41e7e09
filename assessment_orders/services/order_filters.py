"""
Order filter / sort builder.

Turns the untrusted, flat query-string parameters of the order API into
SQL predicates and an ORDER BY. Nothing here touches the database.

Malformed input never raises: a bad identifier matches nothing, a bad date
contributes no bound, and an unknown sort field falls back to created_at.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Tuple

from dateutil import parser as date_parser
from sqlalchemy import false, or_

from assessment_orders.models.order import AssessmentOrder, parse_identifier

# Sortable fields are exactly the indexed timestamp/price columns
SORT_FIELDS = {
    "createdAt": AssessmentOrder.created_at,
    "updatedAt": AssessmentOrder.updated_at,
    "price": AssessmentOrder.price,
    "completedAt": AssessmentOrder.completed_at,
}
DEFAULT_SORT_FIELD = "createdAt"

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def parse_int(value: Any, default: int) -> int:
    """Parse the leading integer of *value* ("12abc" -> 12, "3.7" -> 3); else *default*."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        return default
    match = _LEADING_INT_RE.match(value)
    if not match:
        return default
    return int(match.group(1))


def parse_date(value: Any) -> Optional[datetime]:
    """Parse an untrusted date string; naive values are taken as UTC. None if unparsable."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        parsed = None
    else:
        return None
    # Offsets like +25:00 parse fine but fail on conversion
    try:
        if parsed is None:
            parsed = date_parser.parse(value)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True)
class OrderFilter:
    """Validated order predicate. ``match_nothing`` forces an empty result."""

    status: Optional[str] = None
    user_id: Optional[str] = None
    assessment_id: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    search_terms: Tuple[str, ...] = field(default_factory=tuple)
    match_nothing: bool = False

    def clauses(self) -> List[Any]:
        """SQLAlchemy predicates to AND together in a WHERE clause."""
        if self.match_nothing:
            return [false()]

        clauses: List[Any] = []
        if self.status is not None:
            clauses.append(AssessmentOrder.status == self.status)
        if self.user_id is not None:
            clauses.append(AssessmentOrder.user_id == self.user_id)
        if self.assessment_id is not None:
            clauses.append(AssessmentOrder.assessment_id == self.assessment_id)
        if self.created_from is not None:
            clauses.append(AssessmentOrder.created_at >= self.created_from)
        if self.created_to is not None:
            clauses.append(AssessmentOrder.created_at <= self.created_to)
        if self.search_terms:
            matches = []
            for term in self.search_terms:
                pattern = f"%{_escape_like(term)}%"
                matches.append(AssessmentOrder.assessment_title.ilike(pattern, escape="\\"))
                matches.append(AssessmentOrder.user_email.ilike(pattern, escape="\\"))
            clauses.append(or_(*matches))
        return clauses


@dataclass(frozen=True)
class SortSpec:
    field: str = DEFAULT_SORT_FIELD
    descending: bool = True

    def clauses(self) -> List[Any]:
        column = SORT_FIELDS[self.field]
        tie_breaker = AssessmentOrder.id
        if self.descending:
            return [column.desc(), tie_breaker.desc()]
        return [column.asc(), tie_breaker.asc()]


def build_order_filter(params: Mapping[str, Any]) -> OrderFilter:
    """Build an OrderFilter from raw query parameters."""
    match_nothing = False

    # Unknown statuses are kept as literals: they simply match no rows
    status = params.get("status") or None
    if status is not None:
        status = str(status)

    user_id = None
    raw_user = params.get("userId")
    if raw_user:
        user_id = parse_identifier(raw_user)
        if user_id is None:
            match_nothing = True

    assessment_id = None
    raw_assessment = params.get("assessmentId")
    if raw_assessment:
        assessment_id = parse_identifier(raw_assessment)
        if assessment_id is None:
            match_nothing = True

    created_from = parse_date(params.get("fromDate"))
    created_to = parse_date(params.get("toDate"))

    search_terms: Tuple[str, ...] = ()
    q = params.get("q")
    if isinstance(q, str) and q.strip():
        search_terms = tuple(q.strip().split())

    return OrderFilter(
        status=status,
        user_id=user_id,
        assessment_id=assessment_id,
        created_from=created_from,
        created_to=created_to,
        search_terms=search_terms,
        match_nothing=match_nothing,
    )


def build_sort(params: Mapping[str, Any]) -> SortSpec:
    """Build a SortSpec; only indexed fields are accepted, anything else sorts by createdAt."""
    sort_by = params.get("sortBy")
    if sort_by not in SORT_FIELDS:
        sort_by = DEFAULT_SORT_FIELD
    return SortSpec(field=sort_by, descending=params.get("sortDir") != "asc")
