"""PULSE — Analysis Output Models (Versioned)."""

from datetime import datetime, timezone
from typing import Optional, List
from pydantic import BaseModel
from sqlmodel import SQLModel, Field, UniqueConstraint


# ─────────────────────────────────────────────
# DATABASE MODEL — Stores daily metrics snapshots
# ─────────────────────────────────────────────


class MetricsSnapshot(SQLModel, table=True):
    """Point-in-time SalesMetrics for one workspace and day."""

    __tablename__ = "sales_metrics_snapshots"
    __table_args__ = (
        UniqueConstraint(
            "workspace_id",
            "snapshot_date",
            "metric_name",
            "traffic_source",
            "user_id",
            "client_id",
            name="uq_metrics_snapshot",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_id: str = Field(index=True)
    snapshot_date: str = Field(index=True, description="YYYY-MM-DD")
    metric_name: str = Field(default="comprehensive_metrics")
    traffic_source: str = Field(default="all", description="organic | meta | all")
    user_id: str = Field(default="", description="Empty when not user scoped")
    client_id: str = Field(default="", description="Empty when not client scoped")
    metric_value: str = Field(description="SalesMetrics as JSON")
    calculation_metadata: str = Field(default="{}", description="JSON metadata")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ─────────────────────────────────────────────
# PYDANTIC SCHEMAS — Engine outputs
# ─────────────────────────────────────────────


class SalesMetrics(BaseModel):
    """Canonical KPI set. Every field is always populated."""

    calls_scheduled: int = 0
    calls_taken: int = 0
    calls_cancelled: int = 0
    calls_rescheduled: int = 0
    calls_showed: int = 0
    calls_closed_won: int = 0
    calls_disqualified: int = 0

    cash_collected: float = 0.0

    show_rate: float = 0.0  # showed / scheduled
    close_rate: float = 0.0  # closed_won / taken
    gross_collected_per_booked_call: float = 0.0  # cash / scheduled
    cash_per_live_call: float = 0.0  # cash / taken
    cash_based_aov: float = 0.0  # cash / closed_won


class MetricsTimeSeries(BaseModel):
    """Metrics for a single UTC day."""

    date: str  # YYYY-MM-DD
    metrics: SalesMetrics


class TrafficSourceBreakdown(BaseModel):
    """One traffic-source segment and its share of scheduled calls."""

    traffic_source: str  # "organic" | "meta"
    metrics: SalesMetrics
    percentage_of_total: float
    label: str = ""  # display name, e.g. "Meta Ads"


class FunnelStage(BaseModel):
    """Funnel step with conversion relative to the previous step."""

    stage: str
    count: int
    conversion_rate: float


class TrendEntry(BaseModel):
    """Period-over-period change for one metric."""

    metric: str
    change: float
    change_percentage: float


class TrendReport(BaseModel):
    """Current vs previous window comparison."""

    current: SalesMetrics
    previous: SalesMetrics
    trends: List[TrendEntry] = []


class TrafficSourceClassification(BaseModel):
    """Classifier verdict with an explanation."""

    traffic_source: str  # "organic" | "meta"
    confidence: str  # "high" | "medium" | "low"
    reasoning: str


class UserPerformance(BaseModel):
    """User ranked by a SalesMetrics field."""

    rank: int
    user_id: str
    metric: str
    metric_value: float
    metrics: SalesMetrics


class AnalyticsDashboard(BaseModel):
    """Everything the analytics dashboard renders, in one document."""

    generated_at: str = ""
    workspace_id: str = ""
    traffic_source: str = "all"
    metrics: SalesMetrics = SalesMetrics()
    traffic_source_breakdown: List[TrafficSourceBreakdown] = []
    conversion_funnel: List[FunnelStage] = []
    time_series: List[MetricsTimeSeries] = []
    trends: Optional[TrendReport] = None
