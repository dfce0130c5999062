"""Daily time series: window shape, bucketing and both fetch strategies."""

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest

from pulse.analyzer.timeseries_engine import (
    compute_time_series,
    day_bounds,
    window_days,
)
from pulse.config import settings
from pulse.core.errors import InvalidFilterError, RecordFetchError, RecordFetchTimeout
from pulse.ingestion.call_ingestor import ingest_call
from pulse.models.call_models import CallCreate
from pulse.models.filter_models import MetricsFilter
from pulse.store.memory_store import MemoryCallRecordStore
from pulse.store.sql_store import SQLCallRecordStore

AS_OF = date(2026, 3, 10)
FILTER = MetricsFilter(workspace_id="ws_test")


def _at(day: int, hour: int = 12) -> datetime:
    return datetime(2026, 3, day, hour, 0, tzinfo=timezone.utc)


class FailingStore(MemoryCallRecordStore):
    """Raises for one specific day; other fetches block until cancelled."""

    def __init__(self, fail_on: date):
        super().__init__()
        self.fail_on = fail_on
        self.cancelled = 0

    async def fetch_call_records(self, metrics_filter):
        if metrics_filter.date_from.date() == self.fail_on:
            raise RecordFetchError("boom", backend="memory")
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        return []


class SlowStore(MemoryCallRecordStore):
    async def fetch_call_records(self, metrics_filter):
        await asyncio.sleep(10)
        return []


class CountingStore(MemoryCallRecordStore):
    """Tracks the peak number of concurrent fetches."""

    def __init__(self, records=()):
        super().__init__(records)
        self.active = 0
        self.peak = 0

    async def fetch_call_records(self, metrics_filter):
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(0.01)
            return await super().fetch_call_records(metrics_filter)
        finally:
            self.active -= 1


def test_window_days_excludes_as_of():
    assert window_days(3, AS_OF) == [date(2026, 3, 7), date(2026, 3, 8), date(2026, 3, 9)]
    assert window_days(0, AS_OF) == []


def test_day_bounds_cover_the_whole_utc_day():
    start, end = day_bounds(date(2026, 3, 9))
    assert start == datetime(2026, 3, 9, tzinfo=timezone.utc)
    assert end - start == timedelta(days=1) - timedelta(microseconds=1)


@pytest.mark.asyncio
async def test_bucketed_series_has_one_entry_per_day(make_call):
    store = MemoryCallRecordStore(
        [
            make_call("scheduled", created_at=_at(8)),
            make_call("scheduled", created_at=_at(8, 23)),
            make_call("showed", created_at=_at(9, 0)),
            make_call("scheduled", created_at=_at(10)),  # as_of day, excluded
            make_call("scheduled", created_at=_at(1)),  # before the window
        ]
    )
    series = await compute_time_series(store, FILTER, days=7, as_of=AS_OF, strategy="bucketed")

    assert [s.date for s in series] == [
        (AS_OF - timedelta(days=n)).isoformat() for n in range(7, 0, -1)
    ]
    by_day = {s.date: s.metrics for s in series}
    assert by_day["2026-03-08"].calls_scheduled == 2
    assert by_day["2026-03-09"].calls_showed == 1
    assert sum(m.calls_scheduled for m in by_day.values()) == 2
    assert store.fetch_count == 1


@pytest.mark.asyncio
async def test_offset_timestamps_are_bucketed_by_utc_day(make_call):
    eastern = timezone(timedelta(hours=-5))
    store = MemoryCallRecordStore(
        [make_call("scheduled", created_at=datetime(2026, 3, 8, 22, 0, tzinfo=eastern))]
    )
    series = await compute_time_series(store, FILTER, days=3, as_of=AS_OF)
    by_day = {s.date: s.metrics.calls_scheduled for s in series}
    assert by_day == {"2026-03-07": 0, "2026-03-08": 0, "2026-03-09": 1}


@pytest.mark.asyncio
async def test_zero_days_returns_empty_without_fetching(memory_store):
    assert await compute_time_series(memory_store, FILTER, days=0, as_of=AS_OF) == []
    assert memory_store.fetch_count == 0


@pytest.mark.asyncio
async def test_invalid_arguments(memory_store):
    with pytest.raises(InvalidFilterError):
        await compute_time_series(memory_store, FILTER, days=-1, as_of=AS_OF)
    with pytest.raises(InvalidFilterError):
        await compute_time_series(memory_store, FILTER, days=3, as_of=AS_OF, strategy="weekly")


@pytest.mark.asyncio
async def test_per_day_matches_bucketed(make_call):
    records = [
        make_call("scheduled", created_at=_at(4)),
        make_call("closed_won", cash=200.0, created_at=_at(6, 8)),
        make_call("showed", traffic_source="meta", created_at=_at(9, 23)),
    ]
    bucketed = await compute_time_series(
        MemoryCallRecordStore(records), FILTER, days=7, as_of=AS_OF, strategy="bucketed"
    )
    store = MemoryCallRecordStore(records)
    per_day = await compute_time_series(store, FILTER, days=7, as_of=AS_OF, strategy="per_day")

    assert per_day == bucketed
    assert store.fetch_count == 7


@pytest.mark.asyncio
async def test_per_day_respects_concurrency_limit(monkeypatch):
    monkeypatch.setattr(settings, "timeseries_max_concurrency", 2)
    store = CountingStore()
    series = await compute_time_series(store, FILTER, days=6, as_of=AS_OF, strategy="per_day")
    assert len(series) == 6
    assert store.peak <= 2


@pytest.mark.asyncio
async def test_per_day_failure_propagates_and_cancels_the_rest():
    store = FailingStore(fail_on=date(2026, 3, 8))
    with pytest.raises(RecordFetchError, match="boom"):
        await compute_time_series(store, FILTER, days=5, as_of=AS_OF, strategy="per_day")
    assert store.cancelled > 0


@pytest.mark.asyncio
async def test_per_day_timeout(monkeypatch):
    monkeypatch.setattr(settings, "timeseries_fetch_timeout_seconds", 0.05)
    with pytest.raises(RecordFetchTimeout):
        await compute_time_series(SlowStore(), FILTER, days=3, as_of=AS_OF, strategy="per_day")


@pytest.mark.asyncio
async def test_sql_store_buckets_offset_timestamps_by_utc_day(session):
    eastern = timezone(timedelta(hours=-5))
    ingest_call(
        session,
        CallCreate(
            workspace_id="ws_test",
            call_outcome="scheduled",
            created_at=datetime(2026, 3, 8, 23, 30, tzinfo=eastern),
        ),
    )
    ingest_call(
        session,
        CallCreate(
            workspace_id="ws_test",
            call_outcome="showed",
            created_at=datetime(2026, 3, 7, 10, 0, tzinfo=timezone.utc),
        ),
    )

    series = await compute_time_series(
        SQLCallRecordStore(session), FILTER, days=3, as_of=AS_OF, strategy="bucketed"
    )
    by_day = {s.date: s.metrics for s in series}
    assert by_day["2026-03-08"].calls_scheduled == 0
    assert by_day["2026-03-09"].calls_scheduled == 1
    assert by_day["2026-03-07"].calls_showed == 1

    per_day = await compute_time_series(
        SQLCallRecordStore(session), FILTER, days=3, as_of=AS_OF, strategy="per_day"
    )
    assert per_day == series
