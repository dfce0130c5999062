"""PULSE — Traffic Source API Routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session

from pulse.analyzer.classification_engine import (
    classify_traffic_source,
    source_of_appointment_options,
    traffic_source_options,
)
from pulse.core.errors import CallNotFoundError
from pulse.core.logging import get_logger
from pulse.database import get_session
from pulse.ingestion.call_ingestor import reclassify_call

logger = get_logger("api.traffic_source")

router = APIRouter(prefix="/traffic-source", tags=["Traffic Source"])


class ClassifyRequest(BaseModel):
    """Request body for POST /traffic-source/classify."""

    source_of_appointment: Optional[str] = None
    lead_source: Optional[str] = None
    traffic_source: Optional[str] = None
    manual_override: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"source_of_appointment": "sdr_booked_call"},
                {"lead_source": "facebook_ads"},
                {"manual_override": "organic"},
            ]
        }
    }


class ReclassifyRequest(BaseModel):
    """Request body for POST /traffic-source/calls/{call_id}/reclassify."""

    source_of_appointment: Optional[str] = None
    manual_override: Optional[str] = None


@router.post("/classify")
async def classify(request: ClassifyRequest):
    """Classify a call's traffic source without persisting anything."""
    classification = classify_traffic_source(
        manual_override=request.manual_override,
        traffic_source=request.traffic_source,
        source_of_appointment=request.source_of_appointment,
        lead_source=request.lead_source,
    )
    return {"status": "success", "data": classification}


@router.get("/options")
async def get_options():
    """Selectable traffic sources and appointment sources for UI dropdowns."""
    return {
        "status": "success",
        "traffic_sources": traffic_source_options(),
        "sources_of_appointment": source_of_appointment_options(),
    }


@router.post("/calls/{call_id}/reclassify")
async def reclassify(
    call_id: str,
    request: ReclassifyRequest,
    session: Session = Depends(get_session),
):
    """Re-run classification for a stored call."""
    try:
        classification = reclassify_call(
            session,
            call_id,
            source_of_appointment=request.source_of_appointment,
            manual_override=request.manual_override,
        )
    except CallNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Reclassification failed for {call_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Reclassification failed: {str(e)}")
    return {"status": "success", "call_id": call_id, "data": classification}
