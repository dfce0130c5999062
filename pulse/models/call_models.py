"""PULSE — Call Record Models.

`CallRecord` is the read-only snapshot the engines reduce. Rows are owned by
the external record store; PULSE only stamps `traffic_source` at ingestion and
on re-classification.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field as PydanticField
from sqlmodel import SQLModel, Field, UniqueConstraint


class TrafficSource(str, Enum):
    """Canonical two-valued traffic source."""

    ORGANIC = "organic"
    META = "meta"


class CallOutcome(str, Enum):
    """Fixed outcome enumeration for a call."""

    SCHEDULED = "scheduled"
    SHOWED = "showed"
    NO_SHOW = "no_show"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"
    DISQUALIFIED = "disqualified"


# Outcomes that mean the call actually took place.
# TODO: revisit when CallOutcome gains members; new outcomes are not "taken" by default.
TAKEN_OUTCOMES = frozenset(
    {
        CallOutcome.SHOWED.value,
        CallOutcome.NO_SHOW.value,
        CallOutcome.CLOSED_WON.value,
        CallOutcome.CLOSED_LOST.value,
        CallOutcome.DISQUALIFIED.value,
    }
)


def _new_id() -> str:
    return str(uuid.uuid4())


class CallRecord(SQLModel, table=True):
    """A single sales call as stored by the record store."""

    __tablename__ = "calls"

    id: str = Field(default_factory=_new_id, primary_key=True)
    workspace_id: str = Field(index=True, description="Tenant / workspace id")
    user_id: Optional[str] = Field(default=None, index=True)
    client_id: Optional[str] = Field(default=None, index=True)
    traffic_source: str = Field(
        default=TrafficSource.ORGANIC.value, index=True, description="organic | meta"
    )
    call_outcome: str = Field(index=True, description="CallOutcome value")
    cash_collected: Optional[float] = Field(default=0.0)
    source_of_appointment: Optional[str] = Field(
        default=None, description="Raw booking channel, kept for re-classification"
    )
    lead_source: Optional[str] = Field(default=None, description="Legacy organic | ads")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), index=True
    )


class TrafficSourceAttribution(SQLModel, table=True):
    """Audit trail of how a call's traffic source was decided (one per call)."""

    __tablename__ = "traffic_source_attributions"
    __table_args__ = (UniqueConstraint("call_id", name="uq_attribution_call"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    call_id: str = Field(index=True, foreign_key="calls.id")
    traffic_source: str
    confidence: str = Field(description="high | medium | low")
    reasoning: str = ""
    source_details_json: str = Field(default="{}", description="Signals used, as JSON")
    attribution_confidence: float = 0.0
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ─────────────────────────────────────────────
# PYDANTIC SCHEMAS — Ingestion payload
# ─────────────────────────────────────────────


class CallCreate(BaseModel):
    """Inbound call payload. Amounts are validated here, not in the engines."""

    workspace_id: str = PydanticField(min_length=1)
    user_id: Optional[str] = None
    client_id: Optional[str] = None
    call_outcome: CallOutcome
    cash_collected: float = PydanticField(default=0.0, ge=0)
    traffic_source: Optional[str] = None
    manual_override: Optional[str] = None
    source_of_appointment: Optional[str] = None
    lead_source: Optional[str] = None
    created_at: Optional[datetime] = None
