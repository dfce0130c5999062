"""PULSE — Call Ingestion & Traffic Source Stamping.

Classifies inbound calls, stamps the canonical traffic source on the row and
keeps one attribution record per call explaining the decision.
"""

import json
from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Session, select

from pulse.analyzer.classification_engine import (
    attribution_confidence,
    classify_traffic_source,
)
from pulse.core.errors import CallNotFoundError
from pulse.core.logging import get_logger
from pulse.models.analysis_models import TrafficSourceClassification
from pulse.models.call_models import CallCreate, CallRecord, TrafficSourceAttribution
from pulse.store.filters import as_utc

logger = get_logger("ingestion.calls")


def _upsert_attribution(
    session: Session,
    call_id: str,
    classification: TrafficSourceClassification,
    source_details: dict,
) -> TrafficSourceAttribution:
    existing = session.exec(
        select(TrafficSourceAttribution).where(TrafficSourceAttribution.call_id == call_id)
    ).first()
    attribution = existing or TrafficSourceAttribution(call_id=call_id, traffic_source="")

    attribution.traffic_source = classification.traffic_source
    attribution.confidence = classification.confidence
    attribution.reasoning = classification.reasoning
    attribution.source_details_json = json.dumps(source_details)
    attribution.attribution_confidence = attribution_confidence(classification.confidence)
    attribution.updated_at = datetime.now(timezone.utc)
    session.add(attribution)
    return attribution


def ingest_call(session: Session, payload: CallCreate) -> CallRecord:
    """Persist a validated call with its classified traffic source."""
    classification = classify_traffic_source(
        manual_override=payload.manual_override,
        traffic_source=payload.traffic_source,
        source_of_appointment=payload.source_of_appointment,
        lead_source=payload.lead_source,
    )

    call = CallRecord(
        workspace_id=payload.workspace_id,
        user_id=payload.user_id,
        client_id=payload.client_id,
        traffic_source=classification.traffic_source,
        call_outcome=payload.call_outcome.value,
        cash_collected=payload.cash_collected,
        source_of_appointment=payload.source_of_appointment,
        lead_source=payload.lead_source,
        created_at=as_utc(payload.created_at) if payload.created_at else datetime.now(timezone.utc),
    )
    session.add(call)
    session.flush()

    _upsert_attribution(
        session,
        call.id,
        classification,
        {
            "manual_override": payload.manual_override,
            "traffic_source": payload.traffic_source,
            "source_of_appointment": payload.source_of_appointment,
            "lead_source": payload.lead_source,
        },
    )
    session.commit()
    session.refresh(call)

    logger.info(
        f"Ingested call {call.id} as {classification.traffic_source} ({classification.confidence})",
        extra={"workspace_id": call.workspace_id},
    )
    return call


def reclassify_call(
    session: Session,
    call_id: str,
    source_of_appointment: Optional[str] = None,
    manual_override: Optional[str] = None,
) -> TrafficSourceClassification:
    """Re-run the classifier for a stored call and update its traffic source.

    Signals not supplied fall back to what the call row already holds. The
    row's current traffic_source is not an input.
    """
    call = session.get(CallRecord, call_id)
    if call is None:
        raise CallNotFoundError(call_id)

    source_of_appointment = source_of_appointment or call.source_of_appointment
    classification = classify_traffic_source(
        manual_override=manual_override,
        source_of_appointment=source_of_appointment,
        lead_source=call.lead_source,
    )

    previous = call.traffic_source
    call.traffic_source = classification.traffic_source
    call.source_of_appointment = source_of_appointment
    session.add(call)
    _upsert_attribution(
        session,
        call.id,
        classification,
        {
            "manual_override": manual_override,
            "source_of_appointment": source_of_appointment,
            "lead_source": call.lead_source,
            "previous_traffic_source": previous,
        },
    )
    session.commit()

    logger.info(
        f"Reclassified call {call_id}: {previous} → {classification.traffic_source}",
        extra={"workspace_id": call.workspace_id},
    )
    return classification
