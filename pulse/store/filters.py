"""PULSE — Typed Filter Builder.

Turns a MetricsFilter into an ordered list of (column, operator, value)
clauses. Every store backend renders the same clause list, so tenant scoping
and the optional constraints are applied identically everywhere.
"""

import operator
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Tuple

from pulse.models.call_models import CallRecord
from pulse.models.filter_models import MetricsFilter

Clause = Tuple[str, str, Any]

OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "eq": operator.eq,
    "gte": operator.ge,
    "lte": operator.le,
}


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def build_clauses(metrics_filter: MetricsFilter) -> List[Clause]:
    """Map each populated filter field to exactly one clause, in fixed order."""
    clauses: List[Clause] = [("workspace_id", "eq", metrics_filter.workspace_id)]
    if metrics_filter.traffic_source != "all":
        clauses.append(("traffic_source", "eq", metrics_filter.traffic_source))
    if metrics_filter.user_id:
        clauses.append(("user_id", "eq", metrics_filter.user_id))
    if metrics_filter.client_id:
        clauses.append(("client_id", "eq", metrics_filter.client_id))
    if metrics_filter.date_from is not None:
        clauses.append(("created_at", "gte", metrics_filter.date_from))
    if metrics_filter.date_to is not None:
        clauses.append(("created_at", "lte", metrics_filter.date_to))
    return clauses


def record_matches(record: CallRecord, clauses: List[Clause]) -> bool:
    """Evaluate clauses against an in-memory record."""
    for column, op, value in clauses:
        field_value = getattr(record, column)
        if field_value is None:
            return False
        if column == "created_at":
            field_value = as_utc(field_value)
        if not OPERATORS[op](field_value, value):
            return False
    return True
