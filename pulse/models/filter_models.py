"""PULSE — Metrics Query Filter."""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

TrafficSourceFilter = Literal["organic", "meta", "all"]


class MetricsFilter(BaseModel):
    """Immutable query scope for every metrics computation.

    `workspace_id` is mandatory so no query can run without tenant scoping.
    Date bounds are inclusive and always carried as UTC-aware datetimes.
    """

    model_config = ConfigDict(frozen=True)

    workspace_id: str = Field(min_length=1)
    traffic_source: TrafficSourceFilter = "all"
    user_id: Optional[str] = None
    client_id: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    @field_validator("date_from", "date_to")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @model_validator(mode="after")
    def _check_range(self) -> "MetricsFilter":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from cannot be after date_to")
        return self

    def scoped(self, **changes) -> "MetricsFilter":
        """Return a validated copy with some fields replaced."""
        data = self.model_dump()
        data.update(changes)
        return MetricsFilter(**data)
