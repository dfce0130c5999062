"""PULSE — KPI Engine.

Reduces call records into SalesMetrics:
counts per outcome, cash collected, show rate, close rate,
cash per booked call, cash per live call, cash-based AOV.
"""

from collections import Counter, defaultdict
from decimal import Decimal
from typing import Dict, Iterable, List

from pulse.core.errors import InvalidFilterError
from pulse.core.logging import get_logger
from pulse.core.metric_registry import SALES_METRICS, round2
from pulse.models.analysis_models import SalesMetrics, UserPerformance
from pulse.models.call_models import CallOutcome, CallRecord, TAKEN_OUTCOMES
from pulse.models.filter_models import MetricsFilter
from pulse.store.base import CallRecordStore

logger = get_logger("analyzer.kpi")


def _pct(numerator: float, denominator: float) -> float:
    return round2(numerator / denominator * 100) if denominator > 0 else 0.0


def _ratio(numerator: float, denominator: float) -> float:
    return round2(numerator / denominator) if denominator > 0 else 0.0


def compute_sales_metrics(records: Iterable[CallRecord]) -> SalesMetrics:
    """Single pass over the records.

    Counts are independent per outcome, so calls_showed is not capped by
    calls_scheduled. Negative amounts are summed as given.
    """
    outcomes: Counter = Counter()
    taken = 0
    cash = Decimal(0)

    for record in records:
        # Unvalidated table rows may carry the enum member itself
        outcome = getattr(record.call_outcome, "value", record.call_outcome)
        outcomes[outcome] += 1
        if outcome in TAKEN_OUTCOMES:
            taken += 1
        if record.cash_collected:
            cash += Decimal(repr(float(record.cash_collected)))

    scheduled = outcomes[CallOutcome.SCHEDULED.value]
    showed = outcomes[CallOutcome.SHOWED.value]
    closed_won = outcomes[CallOutcome.CLOSED_WON.value]
    cash_collected = float(cash)

    return SalesMetrics(
        calls_scheduled=scheduled,
        calls_taken=taken,
        calls_cancelled=outcomes[CallOutcome.CANCELLED.value],
        calls_rescheduled=outcomes[CallOutcome.RESCHEDULED.value],
        calls_showed=showed,
        calls_closed_won=closed_won,
        calls_disqualified=outcomes[CallOutcome.DISQUALIFIED.value],
        cash_collected=cash_collected,
        show_rate=_pct(showed, scheduled),
        close_rate=_pct(closed_won, taken),
        gross_collected_per_booked_call=_ratio(cash_collected, scheduled),
        cash_per_live_call=_ratio(cash_collected, taken),
        cash_based_aov=_ratio(cash_collected, closed_won),
    )


async def calculate_workspace_metrics(
    store: CallRecordStore, metrics_filter: MetricsFilter
) -> SalesMetrics:
    """Fetch the filter's calls and aggregate them."""
    records = await store.fetch_call_records(metrics_filter)
    metrics = compute_sales_metrics(records)
    logger.info(
        f"Computed metrics over {len(records)} calls",
        extra={"workspace_id": metrics_filter.workspace_id, "record_count": len(records)},
    )
    return metrics


async def get_user_metrics(
    store: CallRecordStore, workspace_id: str, user_id: str, **filter_fields
) -> SalesMetrics:
    """Metrics for one user inside a workspace."""
    metrics_filter = MetricsFilter(workspace_id=workspace_id, user_id=user_id, **filter_fields)
    return await calculate_workspace_metrics(store, metrics_filter)


async def get_client_metrics(
    store: CallRecordStore, workspace_id: str, client_id: str, **filter_fields
) -> SalesMetrics:
    """Metrics for one client inside a workspace."""
    metrics_filter = MetricsFilter(
        workspace_id=workspace_id, client_id=client_id, **filter_fields
    )
    return await calculate_workspace_metrics(store, metrics_filter)


def rank_users(
    records: Iterable[CallRecord], metric: str = "close_rate", limit: int = 10
) -> List[UserPerformance]:
    """Rank users by a SalesMetrics field, highest first."""
    if metric not in SALES_METRICS:
        raise InvalidFilterError(f"Unknown metric: {metric}")

    by_user: Dict[str, List[CallRecord]] = defaultdict(list)
    for record in records:
        if record.user_id:
            by_user[record.user_id].append(record)

    scored = [
        (user_id, compute_sales_metrics(user_records))
        for user_id, user_records in by_user.items()
    ]
    # Ties broken by user id so the ranking is stable
    scored.sort(key=lambda x: (-getattr(x[1], metric), x[0]))

    rankings = [
        UserPerformance(
            rank=rank,
            user_id=user_id,
            metric=metric,
            metric_value=getattr(metrics, metric),
            metrics=metrics,
        )
        for rank, (user_id, metrics) in enumerate(scored[:limit], 1)
    ]
    logger.info(f"Ranked {len(rankings)} of {len(by_user)} users by {metric}")
    return rankings
