"""PULSE — Trend Engine.

Compares a current window against the adjacent previous window and reports,
for every SalesMetrics field, the absolute and percentage change.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from pulse.analyzer.kpi_engine import calculate_workspace_metrics
from pulse.config import settings
from pulse.core.concurrency import gather_or_cancel
from pulse.core.errors import InvalidFilterError
from pulse.core.logging import get_logger
from pulse.core.metric_registry import METRIC_ORDER, round2
from pulse.models.analysis_models import SalesMetrics, TrendEntry, TrendReport
from pulse.models.filter_models import MetricsFilter
from pulse.store.base import CallRecordStore
from pulse.store.filters import as_utc

logger = get_logger("analyzer.trend")

DateWindow = Tuple[datetime, datetime]

# Previous window ends just before the current one starts (bounds are inclusive)
_EPSILON = timedelta(microseconds=1)


def previous_window(current: DateWindow) -> DateWindow:
    """The equal-length window immediately before `current`."""
    start, stop = current
    prev_stop = start - _EPSILON
    return prev_stop - (stop - start), prev_stop


def default_windows(
    window_days: Optional[int] = None, now: Optional[datetime] = None
) -> tuple[DateWindow, DateWindow]:
    """Last N days and the N days before that."""
    window_days = window_days or settings.trend_window_days
    now = now or datetime.now(timezone.utc)
    current = (now - timedelta(days=window_days), now)
    prev_start = now - timedelta(days=2 * window_days)
    return current, (prev_start, current[0] - _EPSILON)


def compute_trend_entries(current: SalesMetrics, previous: SalesMetrics) -> List[TrendEntry]:
    """One entry per metric, in registry order."""
    entries: List[TrendEntry] = []
    for name in METRIC_ORDER:
        curr_val = getattr(current, name)
        prev_val = getattr(previous, name)
        change = curr_val - prev_val

        # Zero baseline has no meaningful percentage
        change_pct = round2(change / prev_val * 100) if prev_val != 0 else 0.0

        entries.append(
            TrendEntry(metric=name, change=round2(change), change_percentage=change_pct)
        )
    return entries


async def compute_trends(
    store: CallRecordStore,
    metrics_filter: MetricsFilter,
    current: Optional[DateWindow] = None,
    previous: Optional[DateWindow] = None,
) -> TrendReport:
    """Aggregate both windows concurrently and diff them."""
    if current is None:
        current, default_previous = default_windows()
        previous = previous or default_previous
    current = (as_utc(current[0]), as_utc(current[1]))
    if previous is None:
        previous = previous_window(current)
    previous = (as_utc(previous[0]), as_utc(previous[1]))

    if previous[1] >= current[0]:
        raise InvalidFilterError("previous window must end before the current window starts")

    current_metrics, previous_metrics = await gather_or_cancel(
        calculate_workspace_metrics(
            store, metrics_filter.scoped(date_from=current[0], date_to=current[1])
        ),
        calculate_workspace_metrics(
            store, metrics_filter.scoped(date_from=previous[0], date_to=previous[1])
        ),
    )

    trends = compute_trend_entries(current_metrics, previous_metrics)
    moved = sum(1 for t in trends if t.change != 0)
    logger.info(
        f"Computed {len(trends)} trend entries ({moved} changed)",
        extra={"workspace_id": metrics_filter.workspace_id},
    )
    return TrendReport(current=current_metrics, previous=previous_metrics, trends=trends)
