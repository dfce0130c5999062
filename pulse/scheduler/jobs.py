"""PULSE — Scheduler Jobs.

Daily APScheduler job: snapshot yesterday's metrics (all, organic, meta) for
every workspace listed in SNAPSHOT_WORKSPACE_IDS.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from pulse.analyzer.pipeline import snapshot_day
from pulse.config import settings
from pulse.core.logging import get_logger, log_duration
from pulse.database import session_scope
from pulse.store.factory import build_record_store

logger = get_logger("scheduler")

scheduler = AsyncIOScheduler()


async def daily_snapshot_job(workspace_ids=None):
    """Snapshot each workspace; one failing workspace does not stop the rest."""
    workspace_ids = workspace_ids if workspace_ids is not None else settings.snapshot_workspaces
    if not workspace_ids:
        logger.info("No snapshot workspaces configured, skipping")
        return {}

    results = {}
    with session_scope() as session:
        store = build_record_store(session)
        try:
            for workspace_id in workspace_ids:
                try:
                    with log_duration(logger, "Daily snapshot stored", workspace_id=workspace_id):
                        results[workspace_id] = len(
                            await snapshot_day(session, store, workspace_id)
                        )
                except Exception as e:
                    session.rollback()
                    results[workspace_id] = 0
                    logger.error(
                        f"Daily snapshot failed: {e}", extra={"workspace_id": workspace_id}
                    )
        finally:
            close = getattr(store, "close", None)
            if close is not None:
                await close()
    return results


def start_scheduler():
    """Configure and start the scheduler."""
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled via config")
        return

    scheduler.add_job(
        daily_snapshot_job,
        "cron",
        hour=settings.snapshot_hour,
        minute=0,
        id="daily_snapshot",
        replace_existing=True,
        misfire_grace_time=3600,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started. Daily snapshot at {settings.snapshot_hour}:00 UTC "
        f"for {len(settings.snapshot_workspaces)} workspace(s)"
    )


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
