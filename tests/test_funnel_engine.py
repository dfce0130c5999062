"""Conversion funnel."""

import pytest

from pulse.analyzer.funnel_engine import build_funnel, compute_conversion_funnel
from pulse.models.analysis_models import SalesMetrics
from pulse.models.filter_models import MetricsFilter
from pulse.store.memory_store import MemoryCallRecordStore


def _stages(funnel):
    return [(s.stage, s.count, s.conversion_rate) for s in funnel]


def test_each_stage_converts_against_the_previous_one():
    metrics = SalesMetrics(calls_scheduled=5, calls_showed=3, calls_closed_won=1)
    assert _stages(build_funnel(metrics)) == [
        ("Scheduled", 5, 100.0),
        ("Showed", 3, 60.0),
        ("Closed Won", 1, 33.33),
    ]


def test_empty_metrics_funnel():
    assert _stages(build_funnel(SalesMetrics())) == [
        ("Scheduled", 0, 100.0),
        ("Showed", 0, 0.0),
        ("Closed Won", 0, 0.0),
    ]


def test_closed_won_with_no_showed_is_zero_rate():
    funnel = build_funnel(SalesMetrics(calls_scheduled=4, calls_closed_won=2))
    assert funnel[2].count == 2
    assert funnel[2].conversion_rate == 0.0


@pytest.mark.asyncio
async def test_compute_conversion_funnel_from_store(make_call):
    records = [make_call("scheduled") for _ in range(5)]
    records += [make_call("showed") for _ in range(3)]
    records += [make_call("closed_won", cash=100.0)]
    funnel = await compute_conversion_funnel(
        MemoryCallRecordStore(records), MetricsFilter(workspace_id="ws_test")
    )
    assert _stages(funnel) == [
        ("Scheduled", 5, 100.0),
        ("Showed", 3, 60.0),
        ("Closed Won", 1, 33.33),
    ]
