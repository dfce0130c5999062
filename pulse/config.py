"""PULSE — Central Configuration via Pydantic Settings."""

import os
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Database ──
    database_url: str = ""

    # ── Call Record Store ──
    record_store_backend: str = "sql"  # sql | rest
    record_store_url: str = ""  # PostgREST base, e.g. https://x.supabase.co/rest/v1
    record_store_api_key: Optional[str] = None
    record_store_table: str = "calls"
    record_store_timeout_seconds: float = 30.0
    record_store_page_size: int = 1000

    # ── App ──
    log_level: str = "INFO"
    scheduler_enabled: bool = True
    snapshot_hour: int = 2  # Daily snapshot at 2 AM UTC
    snapshot_workspace_ids: str = ""  # Comma-separated

    # ── Analysis ──
    timeseries_default_days: int = 30
    timeseries_strategy: str = "bucketed"  # bucketed | per_day
    timeseries_max_concurrency: int = 8
    timeseries_fetch_timeout_seconds: float = 30.0
    trend_window_days: int = 30
    snapshot_schema_version: str = "1.0"

    @property
    def effective_database_url(self) -> str:
        """Return PostgreSQL URL if set, otherwise fall back to SQLite."""
        if self.database_url:
            return self.database_url
        # Vercel has a read-only filesystem; use /tmp for SQLite
        if os.environ.get("VERCEL"):
            return "sqlite:////tmp/pulse.db"
        return "sqlite:///./pulse.db"

    @property
    def snapshot_workspaces(self) -> list[str]:
        """Workspace ids the daily snapshot job runs for."""
        return [w.strip() for w in self.snapshot_workspace_ids.split(",") if w.strip()]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
