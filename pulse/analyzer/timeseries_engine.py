"""PULSE — Time-Series Engine.

Produces one SalesMetrics per UTC day in [as_of − days, as_of), ascending.
Days without calls still get an (all-zero) entry.

Two fetch strategies:
  bucketed — one store query for the whole window, bucketed in memory (default)
  per_day  — one query per day on a bounded worker pool, for stores that
             cannot return a whole window efficiently
"""

import asyncio
from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from pulse.analyzer.kpi_engine import compute_sales_metrics
from pulse.config import settings
from pulse.core.concurrency import gather_or_cancel
from pulse.core.errors import InvalidFilterError
from pulse.core.logging import get_logger
from pulse.models.analysis_models import MetricsTimeSeries
from pulse.models.call_models import CallRecord
from pulse.models.filter_models import MetricsFilter
from pulse.store.base import CallRecordStore
from pulse.store.filters import as_utc

logger = get_logger("analyzer.timeseries")

STRATEGIES = ("bucketed", "per_day")


def window_days(days: int, as_of: date) -> List[date]:
    """The `days` dates before `as_of`, oldest first; `as_of` itself excluded."""
    return [as_of - timedelta(days=days - i) for i in range(days)]


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Inclusive UTC start and end instants of a day."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    end = datetime.combine(day, time.max, tzinfo=timezone.utc)
    return start, end


def bucket_by_day(records: Sequence[CallRecord]) -> Dict[str, List[CallRecord]]:
    """Group records under their UTC day key (YYYY-MM-DD)."""
    buckets: Dict[str, List[CallRecord]] = defaultdict(list)
    for record in records:
        buckets[as_utc(record.created_at).date().isoformat()].append(record)
    return buckets


async def _fetch_per_day(
    store: CallRecordStore,
    day_filters: List[MetricsFilter],
    max_concurrency: int,
    timeout: float,
) -> List[List[CallRecord]]:
    """Fetch every day concurrently, at most `max_concurrency` at a time."""
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def fetch(day_filter: MetricsFilter) -> List[CallRecord]:
        async with semaphore:
            return await store.fetch_call_records(day_filter)

    return await gather_or_cancel(
        *(fetch(f) for f in day_filters),
        timeout=timeout,
        backend=getattr(store, "backend", ""),
    )


async def compute_time_series(
    store: CallRecordStore,
    metrics_filter: MetricsFilter,
    days: Optional[int] = None,
    as_of: Optional[date] = None,
    strategy: Optional[str] = None,
) -> List[MetricsTimeSeries]:
    """Daily metrics over a rolling window; the filter's own dates are ignored."""
    days = settings.timeseries_default_days if days is None else days
    strategy = strategy or settings.timeseries_strategy
    as_of = as_of or datetime.now(timezone.utc).date()

    if days < 0:
        raise InvalidFilterError("days must be zero or positive")
    if strategy not in STRATEGIES:
        raise InvalidFilterError(f"Unknown time-series strategy: {strategy}")

    dates = window_days(days, as_of)
    if not dates:
        return []

    if strategy == "bucketed":
        window_start, _ = day_bounds(dates[0])
        _, window_end = day_bounds(dates[-1])
        records = await store.fetch_call_records(
            metrics_filter.scoped(date_from=window_start, date_to=window_end)
        )
        buckets = bucket_by_day(records)
        per_day = [buckets.get(d.isoformat(), []) for d in dates]
    else:
        day_filters = []
        for d in dates:
            start, end = day_bounds(d)
            day_filters.append(metrics_filter.scoped(date_from=start, date_to=end))
        per_day = await _fetch_per_day(
            store,
            day_filters,
            settings.timeseries_max_concurrency,
            settings.timeseries_fetch_timeout_seconds,
        )

    series = [
        MetricsTimeSeries(date=d.isoformat(), metrics=compute_sales_metrics(day_records))
        for d, day_records in zip(dates, per_day)
    ]
    logger.info(
        f"Time series: {len(series)} days ({strategy}) ending {dates[-1].isoformat()}",
        extra={
            "workspace_id": metrics_filter.workspace_id,
            "record_count": sum(len(r) for r in per_day),
        },
    )
    return series
