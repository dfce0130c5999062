"""PULSE — Traffic Source Breakdown Engine.

Aggregates each canonical traffic source and the unconstrained total, then
reports each non-empty segment's share of total scheduled calls.
"""

from typing import Dict, Iterable, List

from pulse.analyzer.classification_engine import get_analytics_label
from pulse.analyzer.kpi_engine import compute_sales_metrics
from pulse.core.logging import get_logger
from pulse.core.metric_registry import round2
from pulse.models.analysis_models import SalesMetrics, TrafficSourceBreakdown
from pulse.models.call_models import CallRecord, TrafficSource
from pulse.models.filter_models import MetricsFilter
from pulse.store.base import CallRecordStore

logger = get_logger("analyzer.breakdown")

SEGMENT_ORDER = (TrafficSource.ORGANIC.value, TrafficSource.META.value)


def compose_breakdown(
    segments: Dict[str, SalesMetrics], total: SalesMetrics
) -> List[TrafficSourceBreakdown]:
    """Build breakdown entries; segments with no scheduled calls are dropped."""
    total_scheduled = total.calls_scheduled
    breakdown: List[TrafficSourceBreakdown] = []
    for source in SEGMENT_ORDER:
        metrics = segments.get(source)
        if metrics is None or metrics.calls_scheduled == 0:
            continue
        share = (
            round2(metrics.calls_scheduled / total_scheduled * 100)
            if total_scheduled > 0
            else 0.0
        )
        breakdown.append(
            TrafficSourceBreakdown(
                traffic_source=source,
                label=get_analytics_label(source),
                metrics=metrics,
                percentage_of_total=share,
            )
        )
    return breakdown


def breakdown_records(records: Iterable[CallRecord]) -> List[TrafficSourceBreakdown]:
    """Partition already-fetched records by traffic source and compose."""
    records = list(records)
    partitions: Dict[str, List[CallRecord]] = {s: [] for s in SEGMENT_ORDER}
    for record in records:
        source = getattr(record.traffic_source, "value", record.traffic_source)
        if source in partitions:
            partitions[source].append(record)

    segments = {s: compute_sales_metrics(rs) for s, rs in partitions.items()}
    return compose_breakdown(segments, compute_sales_metrics(records))


async def compute_traffic_breakdown(
    store: CallRecordStore, metrics_filter: MetricsFilter
) -> List[TrafficSourceBreakdown]:
    """One unconstrained fetch, partitioned in memory.

    Equivalent to three store queries (organic, meta, all) since the store's
    traffic_source constraint is an equality match on the same field.
    """
    unconstrained = metrics_filter.scoped(traffic_source="all")
    records = await store.fetch_call_records(unconstrained)
    breakdown = breakdown_records(records)
    logger.info(
        f"Traffic breakdown: {len(breakdown)} segments over {len(records)} calls",
        extra={"workspace_id": metrics_filter.workspace_id, "record_count": len(records)},
    )
    return breakdown
