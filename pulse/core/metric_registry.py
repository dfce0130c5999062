"""PULSE — Sales Metric Registry.

Defines the canonical SalesMetrics fields, their classifications and the
fixed ordering every engine uses when it walks the metric set (trend output,
snapshot payloads, user rankings).
"""

from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict


class MetricType(str, Enum):
    """How a metric is categorised."""

    COUNT = "count"  # Raw outcome counts: scheduled, showed, closed_won
    CURRENCY = "currency"  # Summed money: cash_collected
    RATE = "rate"  # Percentages: show_rate, close_rate
    RATIO = "ratio"  # Currency per unit: cash_per_live_call, aov


class MetricDefinition:
    """Describes a single metric."""

    def __init__(
        self, name: str, metric_type: MetricType, unit: str = "", description: str = ""
    ):
        self.name = name
        self.metric_type = metric_type
        self.unit = unit
        self.description = description

    def __repr__(self) -> str:
        return f"<Metric {self.name} ({self.metric_type.value})>"


# ─────────────────────────────────────────────
# SALES METRICS — Canonical Registry (ordered)
# ─────────────────────────────────────────────

SALES_METRICS: Dict[str, MetricDefinition] = {
    # Counts
    "calls_scheduled": MetricDefinition(
        "calls_scheduled", MetricType.COUNT, "count", "Calls booked"
    ),
    "calls_taken": MetricDefinition(
        "calls_taken",
        MetricType.COUNT,
        "count",
        "Calls that happened: showed, no-show, closed won/lost, disqualified",
    ),
    "calls_cancelled": MetricDefinition(
        "calls_cancelled", MetricType.COUNT, "count", "Calls cancelled"
    ),
    "calls_rescheduled": MetricDefinition(
        "calls_rescheduled", MetricType.COUNT, "count", "Calls rescheduled"
    ),
    "calls_showed": MetricDefinition(
        "calls_showed", MetricType.COUNT, "count", "Prospect attended the call"
    ),
    "calls_closed_won": MetricDefinition(
        "calls_closed_won", MetricType.COUNT, "count", "Calls that closed a deal"
    ),
    "calls_disqualified": MetricDefinition(
        "calls_disqualified", MetricType.COUNT, "count", "Prospect disqualified"
    ),
    # Currency
    "cash_collected": MetricDefinition(
        "cash_collected", MetricType.CURRENCY, "currency", "Total cash collected"
    ),
    # Rates
    "show_rate": MetricDefinition(
        "show_rate", MetricType.RATE, "%", "Showed / scheduled"
    ),
    "close_rate": MetricDefinition(
        "close_rate", MetricType.RATE, "%", "Closed won / taken"
    ),
    # Ratios
    "gross_collected_per_booked_call": MetricDefinition(
        "gross_collected_per_booked_call",
        MetricType.RATIO,
        "currency",
        "Cash collected / scheduled",
    ),
    "cash_per_live_call": MetricDefinition(
        "cash_per_live_call", MetricType.RATIO, "currency", "Cash collected / taken"
    ),
    "cash_based_aov": MetricDefinition(
        "cash_based_aov", MetricType.RATIO, "currency", "Cash collected / closed won"
    ),
}


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────

METRIC_ORDER: tuple[str, ...] = tuple(SALES_METRICS)

_CENT = Decimal("0.01")


def round2(value: float | int | Decimal) -> float:
    """Round to 2 decimals, halves away from zero.

    Goes through the shortest decimal repr of the float so 1.005 rounds to
    1.01 rather than binary-float 1.00.
    """
    if not isinstance(value, Decimal):
        value = Decimal(repr(float(value)))
    return float(value.quantize(_CENT, rounding=ROUND_HALF_UP))
