"""PULSE — SQL-backed Call Record Store."""

from datetime import datetime, timezone
from typing import Any, List

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from pulse.core.errors import RecordFetchError
from pulse.core.logging import get_logger
from pulse.models.call_models import CallRecord
from pulse.models.filter_models import MetricsFilter
from pulse.store.filters import build_clauses

logger = get_logger("store.sql")


def _db_datetime(value: datetime) -> datetime:
    """Bind parameters are aware UTC; the column type rejects naive values."""
    return value.astimezone(timezone.utc)


def _condition(column: str, op: str, value: Any):
    col = getattr(CallRecord, column)
    if isinstance(value, datetime):
        value = _db_datetime(value)
    if op == "eq":
        return col == value
    if op == "gte":
        return col >= value
    if op == "lte":
        return col <= value
    raise ValueError(f"Unsupported operator: {op}")


class SQLCallRecordStore:
    """Reads calls from the `calls` table through a SQLModel session."""

    backend = "sql"

    def __init__(self, session: Session):
        self.session = session

    async def fetch_call_records(self, metrics_filter: MetricsFilter) -> List[CallRecord]:
        conditions = [_condition(*c) for c in build_clauses(metrics_filter)]
        try:
            rows = self.session.exec(select(CallRecord).where(*conditions)).all()
        except SQLAlchemyError as e:
            logger.error(f"Call query failed for {metrics_filter.workspace_id}: {e}")
            raise RecordFetchError(f"Failed to fetch calls: {e}", backend=self.backend) from e

        logger.debug(
            f"Fetched {len(rows)} calls",
            extra={"workspace_id": metrics_filter.workspace_id, "record_count": len(rows)},
        )
        return list(rows)
