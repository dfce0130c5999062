"""PULSE — In-Memory Call Record Store.

Holds a fixed list of records. Used for replaying exported snapshots and as
the store in tests.
"""

from typing import Iterable, List

from pulse.models.call_models import CallRecord
from pulse.models.filter_models import MetricsFilter
from pulse.store.filters import build_clauses, record_matches


class MemoryCallRecordStore:
    """Filters a list of records with the shared clause builder."""

    backend = "memory"

    def __init__(self, records: Iterable[CallRecord] = ()):
        self._records: List[CallRecord] = list(records)
        self.fetch_count = 0

    async def fetch_call_records(self, metrics_filter: MetricsFilter) -> List[CallRecord]:
        self.fetch_count += 1
        clauses = build_clauses(metrics_filter)
        return [r for r in self._records if record_matches(r, clauses)]
