"""
Background jobs (APScheduler)

Hourly maintenance, registered only when ENABLE_LINZ_CONSOLIDATION_JOB is
set: assistant memory consolidation and the expired Family Controls token
sweep. Job failures are logged and never propagate.
"""

import logging
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.config import Settings
from famconomy.api.services.family_controls_service import FamilyControlsService
from famconomy.api.services.memory_service import consolidate_memories

logger = logging.getLogger(__name__)

HOURLY_JOB_ID = "hourly_maintenance"


async def run_hourly_maintenance(
    session_factory: Callable[[], AsyncSession],
    settings: Settings,
) -> None:
    """Consolidate recent assistant memory, then drop expired tokens."""
    logger.info("Running hourly maintenance job...")

    try:
        async with session_factory() as session:
            created = await consolidate_memories(
                session, window_hours=settings.CONSOLIDATION_WINDOW_HOURS
            )
        logger.info(f"Memory consolidation finished ({created} summaries)")
    except Exception as e:
        logger.error(f"Error running consolidation job: {e}", exc_info=True)

    try:
        async with session_factory() as session:
            deleted = await FamilyControlsService(session, settings).cleanup_expired_tokens()
        logger.info(f"Expired token sweep finished ({deleted} removed)")
    except Exception as e:
        logger.error(f"Error sweeping expired tokens: {e}", exc_info=True)


def create_scheduler(
    settings: Settings,
    session_factory: Callable[[], AsyncSession],
) -> Optional[AsyncIOScheduler]:
    """
    Build the scheduler, or None when the hourly job is disabled.

    The caller starts and shuts it down (see the app lifespan).
    """
    if not settings.ENABLE_LINZ_CONSOLIDATION_JOB:
        logger.info(
            "LinZ Memory Consolidation Job disabled "
            "(set ENABLE_LINZ_CONSOLIDATION_JOB=true to enable)"
        )
        return None

    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        run_hourly_maintenance,
        trigger=CronTrigger(minute=0),
        args=[session_factory, settings],
        id=HOURLY_JOB_ID,
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    return scheduler
