"""PULSE — Conversion Funnel Engine.

Scheduled → Showed → Closed Won, each stage converted against the one before.
"""

from typing import List

from pulse.analyzer.kpi_engine import calculate_workspace_metrics
from pulse.core.logging import get_logger
from pulse.core.metric_registry import round2
from pulse.models.analysis_models import FunnelStage, SalesMetrics
from pulse.models.filter_models import MetricsFilter
from pulse.store.base import CallRecordStore

logger = get_logger("analyzer.funnel")


def _stage_rate(count: int, previous: int) -> float:
    return round2(count / previous * 100) if previous > 0 else 0.0


def build_funnel(metrics: SalesMetrics) -> List[FunnelStage]:
    return [
        FunnelStage(stage="Scheduled", count=metrics.calls_scheduled, conversion_rate=100.0),
        FunnelStage(
            stage="Showed",
            count=metrics.calls_showed,
            conversion_rate=_stage_rate(metrics.calls_showed, metrics.calls_scheduled),
        ),
        FunnelStage(
            stage="Closed Won",
            count=metrics.calls_closed_won,
            conversion_rate=_stage_rate(metrics.calls_closed_won, metrics.calls_showed),
        ),
    ]


async def compute_conversion_funnel(
    store: CallRecordStore, metrics_filter: MetricsFilter
) -> List[FunnelStage]:
    metrics = await calculate_workspace_metrics(store, metrics_filter)
    funnel = build_funnel(metrics)
    logger.info(
        f"Funnel: {' → '.join(str(s.count) for s in funnel)}",
        extra={"workspace_id": metrics_filter.workspace_id},
    )
    return funnel
