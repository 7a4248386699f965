import pytest
from sqlalchemy import select

from conftest import FakeAdapter, make_config
from leadengine.domain.errors import ProviderError, StoreError
from leadengine.models import BatchStatus, LeadBatch, LeadSource
from leadengine.service_layer.use_cases.refill import DailyRefillScheduler, plan_fetches


async def _batches(async_session_maker) -> list[LeadBatch]:
    async with async_session_maker() as session:
        return list((await session.execute(select(LeadBatch).order_by(LeadBatch.id))).scalars().all())


class FailsAfterFirstCall(FakeAdapter):
    async def fetch_leads(self, criteria):
        if self.calls:
            self.calls.append(criteria)
            raise ProviderError(self.source.value, "HTTP 503")
        return await super().fetch_leads(criteria)


@pytest.mark.asyncio
async def test_exhausted_source_is_skipped(store):
    await store.update_lead_source_config(make_config(LeadSource.apollo, daily_limit=100, credits_used_today=100))
    await store.update_lead_source_config(make_config(LeadSource.google, daily_limit=30))
    adapters = {LeadSource.apollo: FakeAdapter(LeadSource.apollo), LeadSource.google: FakeAdapter(LeadSource.google)}

    result = await DailyRefillScheduler(store, adapters).daily_lead_fetch()

    assert adapters[LeadSource.apollo].calls == []
    assert result.by_source == {"apollo": 0, "google": 30}
    assert result.total_fetched == 30


@pytest.mark.asyncio
async def test_fetch_limit_is_capped_per_run(store):
    await store.update_lead_source_config(make_config(LeadSource.tiktok, daily_limit=1000))
    adapter = FakeAdapter(LeadSource.tiktok, count=1000)

    result = await DailyRefillScheduler(store, {LeadSource.tiktok: adapter}, max_per_run=200).daily_lead_fetch()

    assert adapter.calls[0].limit == 200
    assert result.total_fetched == 200


@pytest.mark.asyncio
async def test_target_niches_split_evenly_one_batch_each(store, async_session_maker):
    await store.update_lead_source_config(
        make_config(LeadSource.apollo, daily_limit=100, credits_used_today=10, target_niches=["fashion", "beauty", "home"])
    )
    adapter = FakeAdapter(LeadSource.apollo)

    result = await DailyRefillScheduler(store, {LeadSource.apollo: adapter}).daily_lead_fetch()

    assert [(c.niche, c.limit) for c in adapter.calls] == [("fashion", 30), ("beauty", 30), ("home", 30)]
    assert result.total_fetched == 90

    batches = await _batches(async_session_maker)
    assert [(b.niche, b.count, b.status) for b in batches] == [
        ("fashion", 30, BatchStatus.completed),
        ("beauty", 30, BatchStatus.completed),
        ("home", 30, BatchStatus.completed),
    ]
    assert all(b.credits_used == 30 for b in batches)


@pytest.mark.asyncio
async def test_zero_share_skips_niches(store):
    await store.update_lead_source_config(
        make_config(LeadSource.apollo, daily_limit=2, target_niches=["fashion", "beauty", "home"])
    )
    adapter = FakeAdapter(LeadSource.apollo)

    result = await DailyRefillScheduler(store, {LeadSource.apollo: adapter}).daily_lead_fetch()

    assert adapter.calls == []
    assert result.total_fetched == 0


@pytest.mark.asyncio
async def test_failure_after_progress_marks_batches_partial(store, async_session_maker):
    await store.update_lead_source_config(make_config(LeadSource.apollo, daily_limit=20, target_niches=["fashion", "beauty"]))
    await store.update_lead_source_config(make_config(LeadSource.google, daily_limit=5))
    adapters = {
        LeadSource.apollo: FailsAfterFirstCall(LeadSource.apollo),
        LeadSource.google: FakeAdapter(LeadSource.google),
    }

    result = await DailyRefillScheduler(store, adapters).daily_lead_fetch()

    assert result.by_source == {"apollo": 10, "google": 5}
    batches = await _batches(async_session_maker)
    apollo = [b for b in batches if b.source == LeadSource.apollo]
    assert [(b.niche, b.status) for b in apollo] == [("fashion", BatchStatus.partial)]
    assert "HTTP 503" in apollo[0].error


@pytest.mark.asyncio
async def test_failure_with_nothing_stored_records_failed_batch(store, async_session_maker):
    await store.update_lead_source_config(make_config(LeadSource.facebook))
    adapter = FakeAdapter(LeadSource.facebook, error=ProviderError("facebook", "credential not configured"))

    result = await DailyRefillScheduler(store, {LeadSource.facebook: adapter}).daily_lead_fetch()

    assert result.total_fetched == 0
    [batch] = await _batches(async_session_maker)
    assert batch.status == BatchStatus.failed
    assert batch.count == 0
    assert "credential not configured" in batch.error


@pytest.mark.asyncio
async def test_source_without_adapter_contributes_zero(store):
    await store.update_lead_source_config(make_config(LeadSource.instagram))

    result = await DailyRefillScheduler(store, {}).daily_lead_fetch()
    assert result.by_source == {"instagram": 0}


@pytest.mark.asyncio
async def test_failure_to_list_sources_propagates(store, monkeypatch):
    async def _fail():
        raise StoreError("list active sources failed")

    monkeypatch.setattr(store, "get_active_lead_sources", _fail)
    with pytest.raises(StoreError):
        await DailyRefillScheduler(store, {}).daily_lead_fetch()


def test_plan_uses_stored_criteria_without_niches():
    cfg = make_config(LeadSource.google, fetch_criteria={"niche": "pets", "location": ["Denver"], "minScore": 70})
    [criteria] = plan_fetches(cfg, 40)

    assert criteria.niche == "pets"
    assert criteria.location == ("Denver",)
    assert criteria.min_score == 70
    assert criteria.sources == (LeadSource.google,)
    assert criteria.limit == 40
