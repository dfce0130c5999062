"""PULSE — Concurrent fetch helpers."""

import asyncio
from typing import Any, Awaitable, List, Optional

from pulse.core.errors import RecordFetchTimeout


async def gather_or_cancel(
    *aws: Awaitable[Any], timeout: Optional[float] = None, backend: str = ""
) -> List[Any]:
    """Run awaitables concurrently and return their results in order.

    The first failure is raised and every sibling is cancelled; the same
    happens if the caller is cancelled or `timeout` elapses.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    if not tasks:
        return []
    try:
        done, pending = await asyncio.wait(
            tasks, timeout=timeout, return_when=asyncio.FIRST_EXCEPTION
        )
        for task in tasks:
            if task in done and task.exception() is not None:
                raise task.exception()
        if pending:
            raise RecordFetchTimeout(
                f"{len(pending)} of {len(tasks)} fetches still running after {timeout}s",
                backend=backend,
            )
        return [task.result() for task in tasks]
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
