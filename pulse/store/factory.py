"""PULSE — Record Store Selection."""

from fastapi import Depends
from sqlmodel import Session

from pulse.config import settings
from pulse.database import get_session
from pulse.store.base import CallRecordStore
from pulse.store.rest_store import RestCallRecordStore
from pulse.store.sql_store import SQLCallRecordStore


async def get_record_store(session: Session = Depends(get_session)):
    """Dependency — yields the configured call record store."""
    if settings.record_store_backend == "rest":
        store = RestCallRecordStore()
        try:
            yield store
        finally:
            await store.close()
    else:
        yield SQLCallRecordStore(session)


def build_record_store(session: Session) -> CallRecordStore:
    """Non-request variant for background jobs."""
    if settings.record_store_backend == "rest":
        return RestCallRecordStore()
    return SQLCallRecordStore(session)
