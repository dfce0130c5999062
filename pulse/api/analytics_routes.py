"""PULSE — Analytics API Routes."""

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ValidationError
from sqlmodel import Session

from pulse.analyzer.breakdown_engine import compute_traffic_breakdown
from pulse.analyzer.funnel_engine import compute_conversion_funnel
from pulse.analyzer.kpi_engine import (
    calculate_workspace_metrics,
    get_client_metrics,
    get_user_metrics,
    rank_users,
)
from pulse.analyzer.pipeline import build_dashboard
from pulse.analyzer.snapshots import get_historical_metrics, update_metrics_snapshot
from pulse.analyzer.timeseries_engine import compute_time_series
from pulse.analyzer.trend_engine import compute_trends, default_windows
from pulse.config import settings
from pulse.core.errors import RecordFetchError
from pulse.core.logging import get_logger
from pulse.database import get_session
from pulse.models.analysis_models import SalesMetrics
from pulse.models.filter_models import MetricsFilter, TrafficSourceFilter
from pulse.store.base import CallRecordStore
from pulse.store.factory import get_record_store

logger = get_logger("api.analytics")

router = APIRouter(prefix="/analytics", tags=["Analytics"])


# ── Helpers ──


def _http_error(action: str, exc: Exception) -> HTTPException:
    """Translate engine/store failures into HTTP errors."""
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, ValueError):
        return HTTPException(status_code=400, detail=f"{action} failed: {exc}")
    if isinstance(exc, RecordFetchError):
        logger.error(f"{action} failed, record store unavailable: {exc}")
        return HTTPException(status_code=502, detail=f"{action} failed: {exc}")
    logger.error(f"{action} failed: {exc}")
    return HTTPException(status_code=500, detail=f"{action} failed: {exc}")


def metrics_filter_params(
    workspace_id: str = Query(..., min_length=1, description="Tenant / workspace id"),
    traffic_source: TrafficSourceFilter = Query("all"),
    user_id: Optional[str] = Query(None),
    client_id: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None, description="Inclusive, ISO 8601"),
    date_to: Optional[datetime] = Query(None, description="Inclusive, ISO 8601"),
) -> MetricsFilter:
    """Dependency — builds the typed filter from query params."""
    try:
        return MetricsFilter(
            workspace_id=workspace_id,
            traffic_source=traffic_source,
            user_id=user_id,
            client_id=client_id,
            date_from=date_from,
            date_to=date_to,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid filter: {e.errors()[0]['msg']}")


# ── Request / Response Models ──


class SnapshotRequest(BaseModel):
    """Request body for POST /analytics/snapshots."""

    workspace_id: str
    date: str
    """Snapshot day in YYYY-MM-DD format."""
    metrics: SalesMetrics
    traffic_source: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "workspace_id": "ws_123",
                    "date": "2026-02-18",
                    "metrics": {"calls_scheduled": 12, "calls_showed": 9},
                    "traffic_source": "meta",
                }
            ]
        }
    }


# ── Endpoints ──


@router.get("/metrics")
async def get_metrics(
    metrics_filter: MetricsFilter = Depends(metrics_filter_params),
    store: CallRecordStore = Depends(get_record_store),
):
    """Aggregate SalesMetrics for the filter."""
    try:
        metrics = await calculate_workspace_metrics(store, metrics_filter)
    except Exception as e:
        raise _http_error("Metrics calculation", e) from e
    return {
        "status": "success",
        "data": metrics,
        "filter": metrics_filter.model_dump(mode="json"),
    }


@router.get("/time-series")
async def get_time_series(
    days: int = Query(settings.timeseries_default_days, ge=1, le=366),
    metrics_filter: MetricsFilter = Depends(metrics_filter_params),
    store: CallRecordStore = Depends(get_record_store),
):
    """Daily metrics for the last `days` UTC days (today excluded)."""
    try:
        series = await compute_time_series(store, metrics_filter, days=days)
    except Exception as e:
        raise _http_error("Time series", e) from e
    return {"status": "success", "count": len(series), "data": series}


@router.get("/traffic-source-breakdown")
async def get_traffic_source_breakdown(
    metrics_filter: MetricsFilter = Depends(metrics_filter_params),
    store: CallRecordStore = Depends(get_record_store),
):
    """Organic vs meta segments with their share of scheduled calls."""
    try:
        breakdown = await compute_traffic_breakdown(store, metrics_filter)
    except Exception as e:
        raise _http_error("Traffic source breakdown", e) from e
    return {"status": "success", "data": breakdown}


@router.get("/conversion-funnel")
async def get_conversion_funnel(
    metrics_filter: MetricsFilter = Depends(metrics_filter_params),
    store: CallRecordStore = Depends(get_record_store),
):
    """Scheduled → Showed → Closed Won."""
    try:
        funnel = await compute_conversion_funnel(store, metrics_filter)
    except Exception as e:
        raise _http_error("Conversion funnel", e) from e
    return {"status": "success", "data": funnel}


@router.get("/real-time")
async def get_real_time_trends(
    window_days: int = Query(settings.trend_window_days, ge=1, le=365),
    metrics_filter: MetricsFilter = Depends(metrics_filter_params),
    store: CallRecordStore = Depends(get_record_store),
):
    """Last `window_days` days vs the `window_days` before."""
    try:
        current, previous = default_windows(window_days)
        report = await compute_trends(store, metrics_filter, current, previous)
    except Exception as e:
        raise _http_error("Trend calculation", e) from e
    return {"status": "success", "data": report}


@router.get("/dashboard")
async def get_dashboard(
    days: int = Query(settings.timeseries_default_days, ge=1, le=366),
    metrics_filter: MetricsFilter = Depends(metrics_filter_params),
    store: CallRecordStore = Depends(get_record_store),
):
    """Every analytics panel in one response."""
    try:
        dashboard = await build_dashboard(store, metrics_filter, days=days)
    except Exception as e:
        raise _http_error("Dashboard", e) from e
    return {"status": "success", "data": dashboard}


@router.get("/users/{user_id}/metrics")
async def get_metrics_for_user(
    user_id: str,
    workspace_id: str = Query(..., min_length=1),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    store: CallRecordStore = Depends(get_record_store),
):
    try:
        metrics = await get_user_metrics(
            store, workspace_id, user_id, date_from=date_from, date_to=date_to
        )
    except Exception as e:
        raise _http_error("User metrics", e) from e
    return {"status": "success", "user_id": user_id, "data": metrics}


@router.get("/clients/{client_id}/metrics")
async def get_metrics_for_client(
    client_id: str,
    workspace_id: str = Query(..., min_length=1),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    store: CallRecordStore = Depends(get_record_store),
):
    try:
        metrics = await get_client_metrics(
            store, workspace_id, client_id, date_from=date_from, date_to=date_to
        )
    except Exception as e:
        raise _http_error("Client metrics", e) from e
    return {"status": "success", "client_id": client_id, "data": metrics}


@router.get("/top-users")
async def get_top_users(
    metric: str = Query("close_rate", description="Any SalesMetrics field"),
    limit: int = Query(10, ge=1, le=100),
    metrics_filter: MetricsFilter = Depends(metrics_filter_params),
    store: CallRecordStore = Depends(get_record_store),
):
    """Users ranked by one metric, highest first."""
    try:
        records = await store.fetch_call_records(metrics_filter)
        rankings = rank_users(records, metric=metric, limit=limit)
    except Exception as e:
        raise _http_error("User ranking", e) from e
    return {"status": "success", "count": len(rankings), "data": rankings}


@router.post("/snapshots")
async def store_snapshot(
    request: SnapshotRequest,
    session: Session = Depends(get_session),
):
    """Store (or replace) a metrics snapshot for one day."""
    try:
        date.fromisoformat(request.date)
        snapshot = update_metrics_snapshot(
            session,
            request.workspace_id,
            request.date,
            request.metrics,
            request.traffic_source,
        )
    except Exception as e:
        raise _http_error("Snapshot update", e) from e
    return {
        "status": "success",
        "id": snapshot.id,
        "message": "Metrics snapshot updated successfully",
    }


@router.get("/snapshots/history")
async def get_snapshot_history(
    workspace_id: str = Query(..., min_length=1),
    days: int = Query(30, ge=1, le=366),
    traffic_source: TrafficSourceFilter = Query("all"),
    session: Session = Depends(get_session),
):
    """Stored daily snapshots, oldest first."""
    history = get_historical_metrics(session, workspace_id, days, traffic_source)
    return {"status": "success", "count": len(history), "data": history}
