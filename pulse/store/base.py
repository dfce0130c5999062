"""PULSE — Call Record Store Interface."""

from typing import List, Protocol, runtime_checkable

from pulse.models.call_models import CallRecord
from pulse.models.filter_models import MetricsFilter


@runtime_checkable
class CallRecordStore(Protocol):
    """Anything that can return the calls matching a MetricsFilter.

    Implementations always apply tenant scoping and may return records in any
    order. Failures surface as RecordFetchError; retry policy, if any, lives
    inside the implementation.
    """

    backend: str

    async def fetch_call_records(self, metrics_filter: MetricsFilter) -> List[CallRecord]:
        ...
