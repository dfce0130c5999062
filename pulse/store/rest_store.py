"""PULSE — REST Call Record Store.

Reads calls from a PostgREST-compatible endpoint (e.g. Supabase).
Handles authentication, retry logic, rate limiting, and pagination.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import httpx

from pulse.config import settings
from pulse.core.errors import RecordFetchError
from pulse.core.logging import get_logger
from pulse.models.call_models import CallRecord
from pulse.models.filter_models import MetricsFilter
from pulse.store.filters import build_clauses

logger = get_logger("store.rest")

MAX_RETRIES = 3
RETRY_BASE_DELAY = 2  # seconds
MAX_PAGES = 50


def _render_value(value: Any) -> str:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def build_query_params(metrics_filter: MetricsFilter) -> List[Tuple[str, str]]:
    """Render filter clauses as PostgREST `column=op.value` params."""
    return [
        (column, f"{op}.{_render_value(value)}")
        for column, op, value in build_clauses(metrics_filter)
    ]


class RestCallRecordStore:
    """Async HTTP client for a PostgREST `calls` resource."""

    backend = "rest"

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        table: str | None = None,
        page_size: int | None = None,
        retry_base_delay: float = RETRY_BASE_DELAY,
        max_pages: int = MAX_PAGES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.record_store_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.record_store_api_key
        self.table = table or settings.record_store_table
        self.page_size = page_size or settings.record_store_page_size
        self.retry_base_delay = retry_base_delay
        self.max_pages = max_pages
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers = {"Accept": "application/json"}
            if self.api_key:
                headers["apikey"] = self.api_key
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                timeout=settings.record_store_timeout_seconds,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # ── Core Request Method ──

    async def _request(self, params: List[Tuple[str, str]]) -> List[Dict[str, Any]]:
        """GET one page with retry + rate-limit handling."""
        url = f"{self.base_url}/{self.table}"
        client = await self._get_client()

        for attempt in range(1, MAX_RETRIES + 1):
            wait = self.retry_base_delay * (2 ** (attempt - 1))
            try:
                resp = await client.get(url, params=params)

                # Rate limited
                if resp.status_code == 429:
                    logger.warning(
                        f"Rate limited (429). Retrying in {wait}s (attempt {attempt}/{MAX_RETRIES})"
                    )
                    await asyncio.sleep(wait)
                    continue

                resp.raise_for_status()
                return resp.json()

            except httpx.HTTPStatusError as e:
                if attempt < MAX_RETRIES and e.response.status_code >= 500:
                    logger.warning(
                        f"Server error {e.response.status_code}. Retrying in {wait}s"
                    )
                    await asyncio.sleep(wait)
                    continue

                raise RecordFetchError(
                    f"Record store returned {e.response.status_code}: {e.response.text}",
                    backend=self.backend,
                    status_code=e.response.status_code,
                ) from e

            except httpx.RequestError as e:
                if attempt < MAX_RETRIES:
                    logger.warning(f"Request error: {e}. Retrying in {wait}s")
                    await asyncio.sleep(wait)
                    continue
                raise RecordFetchError(
                    f"Connection failed after {MAX_RETRIES} retries: {e}",
                    backend=self.backend,
                ) from e

        raise RecordFetchError("Max retries exhausted", backend=self.backend, status_code=429)

    # ── Pagination ──

    async def fetch_call_records(self, metrics_filter: MetricsFilter) -> List[CallRecord]:
        """Fetch every page of calls matching the filter."""
        base_params = [("select", "*"), ("order", "id.asc")]
        base_params += build_query_params(metrics_filter)

        records: List[CallRecord] = []
        for page in range(self.max_pages):
            params = base_params + [
                ("limit", str(self.page_size)),
                ("offset", str(page * self.page_size)),
            ]
            rows = await self._request(params)
            try:
                records.extend(CallRecord.model_validate(row) for row in rows)
            except ValueError as e:
                raise RecordFetchError(
                    f"Malformed call row from record store: {e}", backend=self.backend
                ) from e
            if len(rows) < self.page_size:
                break
        else:
            # Every page was full; check for rows past the cap
            overflow = await self._request(
                base_params + [("limit", "1"), ("offset", str(self.max_pages * self.page_size))]
            )
            if overflow:
                logger.error(
                    f"More than {self.max_pages} pages of calls match; refusing a partial result",
                    extra={"workspace_id": metrics_filter.workspace_id},
                )
                raise RecordFetchError(
                    f"Result exceeds {self.max_pages} pages of {self.page_size} calls; "
                    "narrow the filter or raise the page size",
                    backend=self.backend,
                )

        logger.info(
            f"Fetched {len(records)} calls from {self.base_url}/{self.table}",
            extra={"workspace_id": metrics_filter.workspace_id, "record_count": len(records)},
        )
        return records
