# leadengine/entrypoints/api/routers/jobs.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..deps import get_container, require_cron_key
from ....jobs.daily import run_daily_refill_job, run_usage_reset_job
from ....schemas import RefillOut, UsageResetOut
from ....service_layer.bootstrap import Container

router = APIRouter(tags=["jobs"], dependencies=[Depends(require_cron_key)])


@router.post("/jobs/daily-lead-fetch", response_model=RefillOut)
async def daily_lead_fetch(container: Container = Depends(get_container)) -> RefillOut:
    return RefillOut(**await run_daily_refill_job(container))


@router.post("/jobs/reset-daily-usage", response_model=UsageResetOut)
async def reset_daily_usage(container: Container = Depends(get_container)) -> UsageResetOut:
    return UsageResetOut(**await run_usage_reset_job(container))
