# leadengine/jobs/daily.py
from __future__ import annotations

import logging
from typing import Any

from ..service_layer.bootstrap import Container
from ..service_layer.jobruns import finish_job_fail, finish_job_success, start_job

log = logging.getLogger(__name__)

REFILL_JOB = "daily_lead_fetch"
USAGE_RESET_JOB = "reset_daily_usage"


async def run_daily_refill_job(container: Container) -> dict[str, Any]:
    """
    Daily refill wrapped in a JobRun row. Re-raises after recording the failure.
    """
    async with container.session_factory() as session:
        jr = await start_job(session, REFILL_JOB)
        await session.commit()

        try:
            result = await container.refill.daily_lead_fetch()
        except Exception as e:
            await finish_job_fail(session, jr, e)
            await session.commit()
            raise

        summary = result.snapshot()
        await finish_job_success(session, jr, summary)
        await session.commit()
        return summary


async def run_usage_reset_job(container: Container) -> dict[str, Any]:
    async with container.session_factory() as session:
        jr = await start_job(session, USAGE_RESET_JOB)
        await session.commit()

        try:
            n = await container.tracker.reset_daily_usage()
        except Exception as e:
            await finish_job_fail(session, jr, e)
            await session.commit()
            raise

        summary = {"sources_reset": n}
        await finish_job_success(session, jr, summary)
        await session.commit()
        return summary
