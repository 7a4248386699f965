# leadengine/service_layer/use_cases/aggregate.py
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Mapping, Sequence

from ...adapters.sources.base import SourceAdapter
from ...config import settings
from ...domain.allocation import allocate_deficit
from ...domain.errors import ProviderError, StoreError
from ...domain.ranking import rank_leads
from ...domain.types import LeadCriteria, LeadDraft, LeadRecord, LeadStats, SourceConfig
from ...models import LeadSource
from ..lead_store import LeadStore

log = logging.getLogger(__name__)


def temporary_id() -> str:
    return f"tmp-{uuid.uuid4().hex[:12]}"


class LeadAggregationService:
    """
    Serve leads from the store; when the store is short, fan out to the
    active sources for the deficit, persist what came back and merge.

    A failing or slow source counts as zero results. Fewer than `limit` leads
    is a normal answer.
    """

    def __init__(
        self,
        store: LeadStore,
        adapters: Mapping[LeadSource, SourceAdapter],
        *,
        adapter_timeout_s: float | None = None,
        min_allocation: int | None = None,
    ) -> None:
        self.store = store
        self.adapters = dict(adapters)
        self.adapter_timeout_s = settings.ADAPTER_TIMEOUT_S if adapter_timeout_s is None else adapter_timeout_s
        self.min_allocation = settings.MIN_SOURCE_ALLOCATION if min_allocation is None else min_allocation

    async def get_leads(self, criteria: LeadCriteria) -> list[LeadRecord]:
        stored = await self.store.get_leads(criteria)
        if len(stored) >= criteria.limit:
            return stored

        deficit = criteria.limit - len(stored)
        candidates = await self._candidate_sources(criteria)
        if not candidates:
            log.info("no eligible sources for deficit=%d, serving %d stored leads", deficit, len(stored))
            return stored

        allocation = allocate_deficit(
            deficit,
            [(c.source, c.fetch_priority) for c in candidates],
            minimum=self.min_allocation,
        )
        fresh = await self._fan_out(criteria, allocation)
        if not fresh:
            return stored

        records = await self._persist(fresh)
        return rank_leads([*stored, *records], criteria.limit)

    async def _candidate_sources(self, criteria: LeadCriteria) -> list[SourceConfig]:
        wanted = set(criteria.sources)
        configs = await self.store.get_active_lead_sources()
        out = [
            c
            for c in configs
            if (not wanted or c.source in wanted)
            and c.source in self.adapters
            and c.daily_budget_left > 0
        ]
        out.sort(key=lambda c: c.fetch_priority, reverse=True)
        return out

    async def _fan_out(self, criteria: LeadCriteria, allocation: Mapping[LeadSource, int]) -> list[LeadDraft]:
        sources = list(allocation)
        results = await asyncio.gather(
            *(self._fetch_one(src, criteria.with_limit(allocation[src])) for src in sources)
        )

        fresh: list[LeadDraft] = []
        for src, leads in zip(sources, results):
            fresh.extend(lead.tagged(src) for lead in leads)

        log.info(
            "fan-out: %s -> %d leads",
            {s.value: n for s, n in allocation.items()},
            len(fresh),
        )
        return fresh

    async def _fetch_one(self, source: LeadSource, criteria: LeadCriteria) -> list[LeadDraft]:
        adapter = self.adapters[source]
        try:
            return await asyncio.wait_for(adapter.fetch_leads(criteria), timeout=self.adapter_timeout_s)
        except asyncio.TimeoutError:
            log.warning("%s: fetch timed out after %.1fs", source.value, self.adapter_timeout_s)
        except Exception:
            log.exception("%s: fetch failed", source.value)
        return []

    async def _persist(self, fresh: Sequence[LeadDraft]) -> list[LeadRecord]:
        try:
            ids = await self.store.store_leads(fresh)
        except StoreError:
            log.exception("failed to store %d fetched leads; serving them with temporary ids", len(fresh))
            return [LeadRecord.from_draft(d, id=temporary_id()) for d in fresh]
        return [LeadRecord.from_draft(d, id=i) for d, i in zip(fresh, ids)]

    # -----------------------------
    # Pass-throughs
    # -----------------------------
    async def get_lead_stats(self) -> LeadStats:
        return await self.store.get_lead_stats()

    async def update_lead_source(self, config: SourceConfig) -> SourceConfig:
        return await self.store.update_lead_source_config(config)

    async def get_active_lead_sources(self) -> list[SourceConfig]:
        return await self.store.get_active_lead_sources()

    async def enrich_lead(self, lead_id: int) -> LeadRecord | None:
        """
        Re-look-up a stored lead with an enrichment-capable source. Prefers the
        lead's own source. None when the lead does not exist; the stored lead
        unchanged when the provider has no match.
        """
        record = await self.store.get_lead(lead_id)
        if record is None:
            return None

        enricher = self._enricher_for(record.source)
        if enricher is None:
            raise ProviderError("enrichment", "no enrichment-capable source configured")

        draft = await enricher.enrich_lead(record.email)
        if draft is None:
            return record
        return await self.store.merge_enrichment(lead_id, draft)

    def _enricher_for(self, source: LeadSource):
        own = self.adapters.get(source)
        if own is not None and hasattr(own, "enrich_lead"):
            return own
        for adapter in self.adapters.values():
            if hasattr(adapter, "enrich_lead"):
                return adapter
        return None
