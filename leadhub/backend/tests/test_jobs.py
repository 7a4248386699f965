import pytest
from sqlalchemy import select

from conftest import FakeAdapter, make_config
from leadengine.domain.errors import StoreError
from leadengine.jobs.daily import REFILL_JOB, USAGE_RESET_JOB, run_daily_refill_job
from leadengine.jobs.scheduler import build_scheduler
from leadengine.models import JobRun, JobRunStatus, LeadSource
from leadengine.service_layer.bootstrap import build_container


@pytest.fixture
async def container(async_session_maker):
    c = build_container(async_session_maker, adapters={LeadSource.tiktok: FakeAdapter(LeadSource.tiktok)})
    yield c
    await c.close()


async def _job_runs(async_session_maker) -> list[JobRun]:
    async with async_session_maker() as session:
        return list((await session.execute(select(JobRun).order_by(JobRun.id))).scalars().all())


@pytest.mark.asyncio
async def test_scheduler_registers_reset_before_refill(container):
    sched = build_scheduler(container)

    ids = {job.id for job in sched.get_jobs()}
    assert ids == {USAGE_RESET_JOB, REFILL_JOB}
    assert str(sched.get_job(USAGE_RESET_JOB).trigger) == "cron[hour='0', minute='0']"
    assert str(sched.get_job(REFILL_JOB).trigger) == "cron[hour='0', minute='5']"


@pytest.mark.asyncio
async def test_refill_job_records_success_summary(container, async_session_maker):
    await container.store.update_lead_source_config(make_config(LeadSource.tiktok, daily_limit=40, target_niches=[]))

    summary = await run_daily_refill_job(container)

    assert summary == {"total_fetched": 40, "by_source": {"tiktok": 40}}
    [jr] = await _job_runs(async_session_maker)
    assert jr.job_name == REFILL_JOB
    assert jr.status == JobRunStatus.success
    assert jr.error is None


@pytest.mark.asyncio
async def test_refill_job_records_failure_and_reraises(container, async_session_maker, monkeypatch):
    async def _down():
        raise StoreError("list active sources failed")

    monkeypatch.setattr(container.refill, "daily_lead_fetch", _down)

    with pytest.raises(StoreError):
        await run_daily_refill_job(container)

    [jr] = await _job_runs(async_session_maker)
    assert jr.status == JobRunStatus.failed
    assert jr.error == "StoreError: list active sources failed"
