"""Shared fixtures: in-memory SQLite, memory store and a call factory."""

from datetime import datetime, timezone

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Register tables on SQLModel.metadata
from pulse.models import analysis_models, call_models  # noqa: F401
from pulse.models.call_models import CallRecord
from pulse.store.memory_store import MemoryCallRecordStore

WORKSPACE = "ws_test"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def make_call():
    """Factory for CallRecord rows with sensible defaults."""

    def _make(
        outcome: str = "scheduled",
        traffic_source: str = "organic",
        cash: float = 0.0,
        created_at: datetime | None = None,
        workspace_id: str = WORKSPACE,
        **fields,
    ) -> CallRecord:
        return CallRecord(
            workspace_id=workspace_id,
            call_outcome=outcome,
            traffic_source=traffic_source,
            cash_collected=cash,
            created_at=created_at or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
            **fields,
        )

    return _make


@pytest.fixture
def memory_store():
    return MemoryCallRecordStore()
