"""PULSE — Analytics Pipeline Orchestrator.

Runs every engine for one filter and assembles the dashboard document:
  fetch → metrics → breakdown → funnel → time series → trends

Also drives the daily snapshot run.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlmodel import Session

from pulse.analyzer.breakdown_engine import compute_traffic_breakdown
from pulse.analyzer.funnel_engine import build_funnel
from pulse.analyzer.kpi_engine import calculate_workspace_metrics
from pulse.analyzer.snapshots import update_metrics_snapshot
from pulse.analyzer.timeseries_engine import compute_time_series, day_bounds
from pulse.analyzer.trend_engine import compute_trends
from pulse.core.concurrency import gather_or_cancel
from pulse.core.logging import get_logger, log_duration
from pulse.models.analysis_models import AnalyticsDashboard, MetricsSnapshot
from pulse.models.filter_models import MetricsFilter
from pulse.store.base import CallRecordStore

logger = get_logger("analyzer.pipeline")


async def build_dashboard(
    store: CallRecordStore,
    metrics_filter: MetricsFilter,
    days: Optional[int] = None,
    as_of: Optional[date] = None,
    include_trends: bool = True,
) -> AnalyticsDashboard:
    """Execute all engines for one filter."""
    with log_duration(logger, "Dashboard built", workspace_id=metrics_filter.workspace_id):
        metrics, breakdown, time_series = await gather_or_cancel(
            calculate_workspace_metrics(store, metrics_filter),
            compute_traffic_breakdown(store, metrics_filter),
            compute_time_series(store, metrics_filter, days=days, as_of=as_of),
        )
        trends = await compute_trends(store, metrics_filter) if include_trends else None

    dashboard = AnalyticsDashboard(
        generated_at=datetime.now(timezone.utc).isoformat(),
        workspace_id=metrics_filter.workspace_id,
        traffic_source=metrics_filter.traffic_source,
        metrics=metrics,
        traffic_source_breakdown=breakdown,
        conversion_funnel=build_funnel(metrics),
        time_series=time_series,
        trends=trends,
    )
    return dashboard


async def snapshot_day(
    session: Session,
    store: CallRecordStore,
    workspace_id: str,
    day: Optional[date] = None,
) -> list[MetricsSnapshot]:
    """Compute and store the workspace-wide and per-source metrics for one day."""
    day = day or (datetime.now(timezone.utc).date() - timedelta(days=1))
    start, end = day_bounds(day)

    snapshots = []
    for traffic_source in ("all", "organic", "meta"):
        metrics_filter = MetricsFilter(
            workspace_id=workspace_id,
            traffic_source=traffic_source,
            date_from=start,
            date_to=end,
        )
        metrics = await calculate_workspace_metrics(store, metrics_filter)
        snapshots.append(
            update_metrics_snapshot(
                session, workspace_id, day.isoformat(), metrics, traffic_source
            )
        )
    return snapshots
