"""PULSE — Metrics Snapshots.

Persists daily SalesMetrics per workspace so history survives changes to the
underlying calls, and reads it back for historical charts.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlmodel import Session, select

from pulse.config import settings
from pulse.core.logging import get_logger
from pulse.models.analysis_models import MetricsSnapshot, SalesMetrics

logger = get_logger("analyzer.snapshots")

SNAPSHOT_METRIC_NAME = "comprehensive_metrics"


def update_metrics_snapshot(
    session: Session,
    workspace_id: str,
    snapshot_date: str,
    metrics: SalesMetrics,
    traffic_source: Optional[str] = None,
    user_id: Optional[str] = None,
    client_id: Optional[str] = None,
) -> MetricsSnapshot:
    """Insert or replace the snapshot for this workspace/day/scope."""
    traffic_source = traffic_source or "all"
    user_id = user_id or ""
    client_id = client_id or ""
    metadata = json.dumps(
        {
            "calculated_at": datetime.now(timezone.utc).isoformat(),
            "version": settings.snapshot_schema_version,
        }
    )

    # Check for existing record (idempotency)
    existing = session.exec(
        select(MetricsSnapshot).where(
            MetricsSnapshot.workspace_id == workspace_id,
            MetricsSnapshot.snapshot_date == snapshot_date,
            MetricsSnapshot.metric_name == SNAPSHOT_METRIC_NAME,
            MetricsSnapshot.traffic_source == traffic_source,
            MetricsSnapshot.user_id == user_id,
            MetricsSnapshot.client_id == client_id,
        )
    ).first()

    if existing:
        existing.metric_value = metrics.model_dump_json()
        existing.calculation_metadata = metadata
        existing.updated_at = datetime.now(timezone.utc)
        snapshot = existing
    else:
        snapshot = MetricsSnapshot(
            workspace_id=workspace_id,
            snapshot_date=snapshot_date,
            metric_name=SNAPSHOT_METRIC_NAME,
            traffic_source=traffic_source,
            user_id=user_id,
            client_id=client_id,
            metric_value=metrics.model_dump_json(),
            calculation_metadata=metadata,
        )

    session.add(snapshot)
    session.commit()
    session.refresh(snapshot)
    logger.info(
        f"Snapshot stored for {snapshot_date} ({traffic_source})",
        extra={"workspace_id": workspace_id},
    )
    return snapshot


def get_historical_metrics(
    session: Session,
    workspace_id: str,
    days: int = 30,
    traffic_source: str = "all",
    today: Optional[datetime] = None,
) -> List[SalesMetrics]:
    """Stored workspace-wide snapshots within the last `days` days, oldest first."""
    today_date = (today or datetime.now(timezone.utc)).date()
    start = (today_date - timedelta(days=days)).isoformat()
    end = today_date.isoformat()

    rows = session.exec(
        select(MetricsSnapshot)
        .where(
            MetricsSnapshot.workspace_id == workspace_id,
            MetricsSnapshot.metric_name == SNAPSHOT_METRIC_NAME,
            MetricsSnapshot.traffic_source == traffic_source,
            MetricsSnapshot.user_id == "",
            MetricsSnapshot.client_id == "",
            MetricsSnapshot.snapshot_date >= start,
            MetricsSnapshot.snapshot_date <= end,
        )
        .order_by(MetricsSnapshot.snapshot_date)  # type: ignore
    ).all()

    return [SalesMetrics.model_validate(json.loads(r.metric_value)) for r in rows]
