# leadengine/jobs/scheduler.py
from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..config import settings
from ..service_layer.bootstrap import Container
from .daily import REFILL_JOB, USAGE_RESET_JOB, run_daily_refill_job, run_usage_reset_job

log = logging.getLogger(__name__)


async def _run_usage_reset(container: Container) -> None:
    try:
        summary = await run_usage_reset_job(container)
        log.info("usage reset: %s", summary)
    except Exception:
        log.exception("scheduled usage reset failed")


async def _run_refill(container: Container) -> None:
    try:
        summary = await run_daily_refill_job(container)
        log.info("daily refill: %s", summary)
    except Exception:
        log.exception("scheduled daily refill failed")


def build_scheduler(container: Container) -> AsyncIOScheduler:
    """
    Two UTC cron jobs: the usage reset at midnight, then the refill a few
    minutes later so it sees fresh daily budgets.
    """
    sched = AsyncIOScheduler(timezone="UTC")

    sched.add_job(
        _run_usage_reset,
        "cron",
        hour=settings.SCHED_USAGE_RESET_HOUR,
        minute=settings.SCHED_USAGE_RESET_MINUTE,
        args=[container],
        id=USAGE_RESET_JOB,
        coalesce=True,
        max_instances=1,
    )
    sched.add_job(
        _run_refill,
        "cron",
        hour=settings.SCHED_REFILL_HOUR,
        minute=settings.SCHED_REFILL_MINUTE,
        args=[container],
        id=REFILL_JOB,
        coalesce=True,
        max_instances=1,
    )

    return sched
