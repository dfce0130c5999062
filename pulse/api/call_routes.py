"""PULSE — Call Ingestion API Routes."""

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from pulse.core.logging import get_logger
from pulse.database import get_session
from pulse.ingestion.call_ingestor import ingest_call
from pulse.models.call_models import CallCreate

logger = get_logger("api.calls")

router = APIRouter(tags=["Calls"])


@router.post("/calls", status_code=201)
async def create_call(payload: CallCreate, session: Session = Depends(get_session)):
    """Store a call; its traffic source is classified on the way in."""
    try:
        call = ingest_call(session, payload)
    except Exception as e:
        logger.error(f"Call ingestion failed: {e}")
        raise HTTPException(status_code=500, detail=f"Call ingestion failed: {str(e)}")
    return {
        "status": "success",
        "id": call.id,
        "traffic_source": call.traffic_source,
    }
