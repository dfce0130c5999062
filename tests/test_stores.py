"""Record stores: clause building, SQL, in-memory and REST backends."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from pulse.core.errors import RecordFetchError
from pulse.models.filter_models import MetricsFilter
from pulse.store.base import CallRecordStore
from pulse.store.filters import build_clauses, record_matches
from pulse.store.memory_store import MemoryCallRecordStore
from pulse.store.rest_store import RestCallRecordStore, build_query_params
from pulse.store.sql_store import SQLCallRecordStore

MARCH_1 = datetime(2026, 3, 1, tzinfo=timezone.utc)
MARCH_5 = datetime(2026, 3, 5, tzinfo=timezone.utc)


# ── Filters ──


def test_minimal_filter_only_scopes_the_workspace():
    assert build_clauses(MetricsFilter(workspace_id="ws")) == [("workspace_id", "eq", "ws")]


def test_full_filter_clause_order():
    f = MetricsFilter(
        workspace_id="ws",
        traffic_source="meta",
        user_id="u1",
        client_id="c1",
        date_from=MARCH_1,
        date_to=MARCH_5,
    )
    assert build_clauses(f) == [
        ("workspace_id", "eq", "ws"),
        ("traffic_source", "eq", "meta"),
        ("user_id", "eq", "u1"),
        ("client_id", "eq", "c1"),
        ("created_at", "gte", MARCH_1),
        ("created_at", "lte", MARCH_5),
    ]


def test_filter_rejects_inverted_range_and_blank_workspace():
    with pytest.raises(ValueError):
        MetricsFilter(workspace_id="ws", date_from=MARCH_5, date_to=MARCH_1)
    with pytest.raises(ValueError):
        MetricsFilter(workspace_id="")


def test_naive_filter_dates_are_treated_as_utc():
    f = MetricsFilter(workspace_id="ws", date_from=datetime(2026, 3, 1))
    assert f.date_from == MARCH_1


def test_record_matches_bounds_are_inclusive(make_call):
    clauses = build_clauses(MetricsFilter(workspace_id="ws_test", date_from=MARCH_1, date_to=MARCH_5))
    assert record_matches(make_call(created_at=MARCH_1), clauses)
    assert record_matches(make_call(created_at=MARCH_5), clauses)
    assert not record_matches(make_call(created_at=datetime(2026, 3, 6, tzinfo=timezone.utc)), clauses)


def test_record_without_user_does_not_match_user_filter(make_call):
    clauses = build_clauses(MetricsFilter(workspace_id="ws_test", user_id="u1"))
    assert not record_matches(make_call(), clauses)
    assert record_matches(make_call(user_id="u1"), clauses)


def test_stores_satisfy_protocol(session):
    assert isinstance(MemoryCallRecordStore(), CallRecordStore)
    assert isinstance(SQLCallRecordStore(session), CallRecordStore)
    assert isinstance(RestCallRecordStore(base_url="http://x"), CallRecordStore)


# ── SQL ──


@pytest.mark.asyncio
async def test_sql_store_applies_every_clause(session, make_call):
    session.add_all(
        [
            make_call("scheduled", traffic_source="meta", created_at=datetime(2026, 3, 2, tzinfo=timezone.utc)),
            make_call("showed", traffic_source="meta", created_at=datetime(2026, 3, 9, tzinfo=timezone.utc)),
            make_call("scheduled", traffic_source="organic", created_at=datetime(2026, 3, 2, tzinfo=timezone.utc)),
            make_call("scheduled", traffic_source="meta", workspace_id="other"),
        ]
    )
    session.commit()

    store = SQLCallRecordStore(session)
    rows = await store.fetch_call_records(
        MetricsFilter(workspace_id="ws_test", traffic_source="meta", date_from=MARCH_1, date_to=MARCH_5)
    )
    assert len(rows) == 1
    assert rows[0].call_outcome == "scheduled"

    everything = await store.fetch_call_records(MetricsFilter(workspace_id="ws_test"))
    assert len(everything) == 3


# ── REST ──


def _row(i: int, **overrides) -> dict:
    row = {
        "id": f"call-{i}",
        "workspace_id": "ws_test",
        "user_id": None,
        "client_id": None,
        "traffic_source": "meta",
        "call_outcome": "scheduled",
        "cash_collected": 10.0,
        "created_at": "2026-03-02T12:00:00+00:00",
    }
    row.update(overrides)
    return row


def test_query_params_render_postgrest_operators():
    f = MetricsFilter(workspace_id="ws", traffic_source="organic", date_from=MARCH_1)
    assert build_query_params(f) == [
        ("workspace_id", "eq.ws"),
        ("traffic_source", "eq.organic"),
        ("created_at", "gte.2026-03-01T00:00:00+00:00"),
    ]


@pytest.mark.asyncio
async def test_rest_store_paginates_and_authenticates():
    rows = [_row(i) for i in range(3)]
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        offset = int(request.url.params["offset"])
        limit = int(request.url.params["limit"])
        return httpx.Response(200, json=rows[offset : offset + limit])

    store = RestCallRecordStore(
        base_url="https://db.example.com/rest/v1/",
        api_key="secret",
        table="calls",
        page_size=2,
        retry_base_delay=0,
        transport=httpx.MockTransport(handler),
    )
    try:
        records = await store.fetch_call_records(MetricsFilter(workspace_id="ws_test", traffic_source="meta"))
    finally:
        await store.close()

    assert [r.id for r in records] == ["call-0", "call-1", "call-2"]
    assert len(seen) == 2
    first = seen[0]
    assert first.url.path == "/rest/v1/calls"
    assert first.url.params["workspace_id"] == "eq.ws_test"
    assert first.url.params["traffic_source"] == "eq.meta"
    assert first.headers["apikey"] == "secret"
    assert first.headers["Authorization"] == "Bearer secret"


@pytest.mark.asyncio
async def test_rest_store_retries_server_errors():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(503, text="unavailable")
        return httpx.Response(200, json=[_row(1)])

    store = RestCallRecordStore(
        base_url="http://db", page_size=10, retry_base_delay=0, transport=httpx.MockTransport(handler)
    )
    records = await store.fetch_call_records(MetricsFilter(workspace_id="ws_test"))
    await store.close()
    assert len(records) == 1
    assert calls["n"] == 2


@pytest.mark.asyncio
async def test_rest_store_client_error_is_not_retried():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(404, text=json.dumps({"message": "no such table"}))

    store = RestCallRecordStore(
        base_url="http://db", retry_base_delay=0, transport=httpx.MockTransport(handler)
    )
    with pytest.raises(RecordFetchError) as exc_info:
        await store.fetch_call_records(MetricsFilter(workspace_id="ws_test"))
    await store.close()
    assert exc_info.value.status_code == 404
    assert exc_info.value.backend == "rest"
    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_rest_store_gives_up_after_repeated_rate_limits():
    store = RestCallRecordStore(
        base_url="http://db",
        retry_base_delay=0,
        transport=httpx.MockTransport(lambda request: httpx.Response(429)),
    )
    with pytest.raises(RecordFetchError, match="Max retries exhausted"):
        await store.fetch_call_records(MetricsFilter(workspace_id="ws_test"))
    await store.close()


@pytest.mark.asyncio
async def test_rest_store_rejects_malformed_rows():
    store = RestCallRecordStore(
        base_url="http://db",
        retry_base_delay=0,
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[{"id": "x"}])),
    )
    with pytest.raises(RecordFetchError, match="Malformed"):
        await store.fetch_call_records(MetricsFilter(workspace_id="ws_test"))
    await store.close()


def _paging_transport(rows):
    def handler(request: httpx.Request) -> httpx.Response:
        offset = int(request.url.params["offset"])
        limit = int(request.url.params["limit"])
        return httpx.Response(200, json=rows[offset : offset + limit])

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_rest_store_refuses_partial_results_past_the_page_cap():
    store = RestCallRecordStore(
        base_url="http://db",
        page_size=1,
        retry_base_delay=0,
        transport=_paging_transport([_row(i) for i in range(60)]),
    )
    with pytest.raises(RecordFetchError, match="exceeds 50 pages"):
        await store.fetch_call_records(MetricsFilter(workspace_id="ws_test"))
    await store.close()


@pytest.mark.asyncio
async def test_rest_store_result_exactly_at_the_page_cap_is_complete():
    store = RestCallRecordStore(
        base_url="http://db",
        page_size=2,
        max_pages=3,
        retry_base_delay=0,
        transport=_paging_transport([_row(i) for i in range(6)]),
    )
    records = await store.fetch_call_records(MetricsFilter(workspace_id="ws_test"))
    await store.close()
    assert [r.id for r in records] == [f"call-{i}" for i in range(6)]
