import asyncio

import httpx
import pytest

from conftest import FakeAdapter, RecordingAlertSink, make_config, make_draft
from leadengine.adapters.clients.http_resilience import ResilientHttpClient
from leadengine.adapters.sources.apollo import ApolloSourceAdapter
from leadengine.domain.errors import ProviderError, StoreError
from leadengine.domain.types import LeadCriteria
from leadengine.models import LeadSource
from leadengine.service_layer.usage import UsageTracker
from leadengine.service_layer.use_cases.aggregate import LeadAggregationService


async def _configure(store, *configs):
    for cfg in configs:
        await store.update_lead_source_config(cfg)


@pytest.mark.asyncio
async def test_one_failing_adapter_of_three_is_tolerated(store):
    await _configure(
        store,
        make_config(LeadSource.apollo),
        make_config(LeadSource.tiktok),
        make_config(LeadSource.google),
    )
    adapters = {
        LeadSource.apollo: FakeAdapter(LeadSource.apollo),
        LeadSource.tiktok: FakeAdapter(LeadSource.tiktok, error=ProviderError("tiktok", "HTTP 500")),
        LeadSource.google: FakeAdapter(LeadSource.google),
    }
    svc = LeadAggregationService(store, adapters, min_allocation=5)

    leads = await svc.get_leads(LeadCriteria(niche="fashion", limit=20))

    # 20 / 3 rounds to 7 per source; tiktok contributes nothing
    assert len(leads) == 14
    assert {lead.source for lead in leads} == {LeadSource.apollo, LeadSource.google}
    assert all(isinstance(lead.id, int) for lead in leads)
    assert len(adapters[LeadSource.tiktok].calls) == 1


@pytest.mark.asyncio
async def test_cold_store_single_source_fills_to_limit_and_persists(store):
    await _configure(store, make_config(LeadSource.apollo))
    adapter = FakeAdapter(LeadSource.apollo)
    svc = LeadAggregationService(store, {LeadSource.apollo: adapter})

    leads = await svc.get_leads(LeadCriteria(niche="fashion", limit=10))

    assert len(leads) == 10
    assert adapter.calls[0].limit == 10
    assert all("apollo" in lead.tags for lead in leads)

    stored = await store.get_leads(LeadCriteria(niche="fashion", limit=50))
    assert len(stored) == 10


@pytest.mark.asyncio
async def test_enough_stored_leads_skip_fan_out(store):
    await _configure(store, make_config(LeadSource.apollo))
    await store.store_leads([make_draft(i) for i in range(5)])
    adapter = FakeAdapter(LeadSource.apollo)
    svc = LeadAggregationService(store, {LeadSource.apollo: adapter})

    leads = await svc.get_leads(LeadCriteria(niche="fashion", limit=5))

    assert len(leads) == 5
    assert adapter.calls == []


@pytest.mark.asyncio
async def test_merged_result_is_ranked_and_capped(store):
    await _configure(store, make_config(LeadSource.tiktok))
    await store.store_leads([make_draft(i, score=50) for i in range(3)])
    svc = LeadAggregationService(store, {LeadSource.tiktok: FakeAdapter(LeadSource.tiktok, score=90)}, min_allocation=5)

    leads = await svc.get_leads(LeadCriteria(niche="fashion", limit=5))

    # deficit of 2 still asks for the minimum of 5
    assert len(leads) == 5
    assert [lead.score for lead in leads] == [90] * 5


@pytest.mark.asyncio
async def test_requested_sources_and_spent_budgets_limit_fan_out(store):
    await _configure(
        store,
        make_config(LeadSource.apollo),
        make_config(LeadSource.google),
        make_config(LeadSource.tiktok, daily_limit=10, credits_used_today=10),
    )
    adapters = {s: FakeAdapter(s) for s in (LeadSource.apollo, LeadSource.google, LeadSource.tiktok)}
    svc = LeadAggregationService(store, adapters)

    await svc.get_leads(LeadCriteria(sources=(LeadSource.google, LeadSource.tiktok), limit=10))

    assert adapters[LeadSource.apollo].calls == []
    assert adapters[LeadSource.tiktok].calls == []
    assert len(adapters[LeadSource.google].calls) == 1


@pytest.mark.asyncio
async def test_no_eligible_sources_returns_stored_leads(store):
    await store.store_leads([make_draft(1)])
    svc = LeadAggregationService(store, {LeadSource.apollo: FakeAdapter(LeadSource.apollo)})

    leads = await svc.get_leads(LeadCriteria(niche="fashion", limit=10))
    assert len(leads) == 1


@pytest.mark.asyncio
async def test_slow_adapter_times_out_as_empty(store):
    await _configure(store, make_config(LeadSource.apollo), make_config(LeadSource.google))
    adapters = {
        LeadSource.apollo: FakeAdapter(LeadSource.apollo, delay_s=1.0),
        LeadSource.google: FakeAdapter(LeadSource.google),
    }
    svc = LeadAggregationService(store, adapters, adapter_timeout_s=0.05)

    leads = await svc.get_leads(LeadCriteria(limit=10))
    assert {lead.source for lead in leads} == {LeadSource.google}


@pytest.mark.asyncio
async def test_store_write_failure_still_returns_fresh_leads(store, monkeypatch):
    await _configure(store, make_config(LeadSource.apollo))

    async def _fail(*args, **kwargs):
        raise StoreError("store leads failed")

    monkeypatch.setattr(store, "store_leads", _fail)
    svc = LeadAggregationService(store, {LeadSource.apollo: FakeAdapter(LeadSource.apollo)})

    leads = await svc.get_leads(LeadCriteria(limit=6))

    assert len(leads) == 6
    assert all(str(lead.id).startswith("tmp-") for lead in leads)
    assert len({lead.id for lead in leads}) == 6


class FakeEnricher(FakeAdapter):
    async def enrich_lead(self, email: str):
        return make_draft(99, email=email, phone="555-0199", title="Head Buyer", score=97)


@pytest.mark.asyncio
async def test_enrich_lead_merges_provider_data(store):
    [lead_id] = await store.store_leads([make_draft(1)])
    svc = LeadAggregationService(store, {LeadSource.apollo: FakeEnricher(LeadSource.apollo)})

    rec = await svc.enrich_lead(lead_id)

    assert rec.id == lead_id
    assert rec.email == "lead1@apollo.example.com"
    assert rec.phone == "555-0199"
    assert rec.score == 97
    assert await svc.enrich_lead(12345) is None


@pytest.mark.asyncio
async def test_enrich_without_capable_adapter_raises(store):
    [lead_id] = await store.store_leads([make_draft(1)])
    svc = LeadAggregationService(store, {LeadSource.apollo: FakeAdapter(LeadSource.apollo)})

    with pytest.raises(ProviderError):
        await svc.enrich_lead(lead_id)


@pytest.mark.asyncio
async def test_pass_throughs(store):
    svc = LeadAggregationService(store, {})
    saved = await svc.update_lead_source(make_config(LeadSource.instagram, fetch_priority=2))

    assert saved.fetch_priority == 2
    assert [c.source for c in await svc.get_active_lead_sources()] == [LeadSource.instagram]
    assert (await svc.get_lead_stats()).total_leads == 0


class RendezvousAdapter(FakeAdapter):
    """Returns only once every adapter sharing `arrived` has started its fetch."""

    def __init__(self, source: LeadSource, arrived: list, expected: int, ready: asyncio.Event) -> None:
        super().__init__(source)
        self.arrived = arrived
        self.expected = expected
        self.ready = ready

    async def fetch_leads(self, criteria):
        self.arrived.append(self.source)
        if len(self.arrived) == self.expected:
            self.ready.set()
        await self.ready.wait()
        return await super().fetch_leads(criteria)


@pytest.mark.asyncio
async def test_sources_are_fetched_concurrently(store):
    await _configure(store, make_config(LeadSource.apollo), make_config(LeadSource.tiktok))
    arrived: list[LeadSource] = []
    ready = asyncio.Event()
    adapters = {
        src: RendezvousAdapter(src, arrived, expected=2, ready=ready) for src in (LeadSource.apollo, LeadSource.tiktok)
    }
    svc = LeadAggregationService(store, adapters, adapter_timeout_s=0.5)

    leads = await svc.get_leads(LeadCriteria(limit=10))

    assert {lead.source for lead in leads} == {LeadSource.apollo, LeadSource.tiktok}
    assert len(leads) == 10


@pytest.mark.asyncio
async def test_slow_alert_sink_does_not_cost_fetched_leads(store):
    await _configure(store, make_config(LeadSource.apollo, credits_remaining=12))
    hold = asyncio.Event()
    sink = RecordingAlertSink(hold=hold)
    tracker = UsageTracker(store, sink, low_credit_threshold=10)

    people = {
        "people": [
            {"first_name": f"P{i}", "email": f"p{i}@shop.example.com", "email_status": "verified"}
            for i in range(3)
        ]
    }
    http = ResilientHttpClient(
        timeout_s=1,
        max_retries=0,
        backoff_base_s=0,
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=people)),
    )
    apollo = ApolloSourceAdapter(base_url="https://apollo.test/v1", credential="sk_live_0123456789", http=http, usage=tracker)
    svc = LeadAggregationService(store, {LeadSource.apollo: apollo}, adapter_timeout_s=0.3)

    leads = await svc.get_leads(LeadCriteria(limit=3))

    assert len(leads) == 3
    assert all(isinstance(lead.id, int) for lead in leads)
    assert (await store.get_lead_source_config(LeadSource.apollo)).credits_remaining == 9
    assert sink.alerts == []

    hold.set()
    await tracker.drain()
    assert [a.credits_remaining for a in sink.alerts] == [9]
