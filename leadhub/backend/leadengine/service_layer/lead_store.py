# leadengine/service_layer/lead_store.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.repos.leads import to_record
from ..adapters.repos.sources import to_config
from ..config import settings
from ..domain.types import LeadCriteria, LeadDraft, LeadRecord, LeadStats, SourceConfig
from ..models import BatchStatus, LeadSource
from .cache import QueryCache
from .debounce import TrailingDebouncer
from .stats import load_or_init_stats, recompute_lead_stats
from .unit_of_work import SqlAlchemyUnitOfWork

log = logging.getLogger(__name__)


class LeadStore:
    """
    Persistence facade: leads, batches, source configs and the stats aggregate.

    Reads go through a TTL cache keyed by the criteria fingerprint. Every write
    that touches leads clears the whole cache and schedules a debounced stats
    recompute.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        *,
        cache: QueryCache[LeadRecord] | None = None,
        stats_debounce_s: float | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        debouncer: TrailingDebouncer | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.cache: QueryCache[LeadRecord] = cache if cache is not None else QueryCache(ttl_s=settings.LEAD_CACHE_TTL_S)
        self._now = clock
        window = settings.STATS_DEBOUNCE_S if stats_debounce_s is None else stats_debounce_s
        self.stats_debouncer = debouncer or TrailingDebouncer(self.recompute_stats, window, name="lead-stats")

    def _uow(self, action: str) -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork(self._session_factory, action)

    # -----------------------------
    # Leads
    # -----------------------------
    async def get_leads(self, criteria: LeadCriteria) -> list[LeadRecord]:
        key = criteria.fingerprint()
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        async with self._uow("query leads") as uow:
            leads = await uow.leads.query(criteria)

        self.cache.put(key, leads)
        return leads

    async def store_leads(self, leads: Sequence[LeadDraft], batch_id: int | None = None) -> list[int]:
        """
        Persist leads in one transaction. Without a batch_id one batch is
        created per source present in `leads`. All or nothing. Returns ids in
        input order.
        """
        if not leads:
            return []

        now = self._now()
        async with self._uow("store leads") as uow:
            if batch_id is not None:
                rows = await uow.leads.add_leads(leads, batch_id=batch_id, now=now)
                ids = [r.id for r in rows]
                batch_ids = [batch_id]
            else:
                positions: dict[LeadSource, list[int]] = {}
                for i, lead in enumerate(leads):
                    positions.setdefault(lead.source, []).append(i)

                ids = [0] * len(leads)
                batch_ids = []
                for source, idx in positions.items():
                    group = [leads[i] for i in idx]
                    batch = await uow.leads.add_batch(
                        source=source,
                        count=len(group),
                        fetch_date=now,
                        niche=group[0].niche or None,
                    )
                    batch_ids.append(batch.id)
                    rows = await uow.leads.add_leads(group, batch_id=batch.id, now=now)
                    for i, row in zip(idx, rows):
                        ids[i] = row.id

        self._leads_changed()
        log.info("stored %d leads in batches %s", len(ids), batch_ids)
        return ids

    async def get_lead(self, lead_id: int) -> LeadRecord | None:
        async with self._uow("load lead") as uow:
            row = await uow.leads.get(lead_id)
            return to_record(row) if row is not None else None

    async def merge_enrichment(self, lead_id: int, draft: LeadDraft) -> LeadRecord | None:
        async with self._uow("enrich lead") as uow:
            row = await uow.leads.get(lead_id)
            if row is None:
                return None
            await uow.leads.apply_enrichment(row, draft.normalized(), now=self._now())
            record = to_record(row)

        self._leads_changed()
        return record

    # -----------------------------
    # Batches
    # -----------------------------
    async def create_batch(
        self,
        source: LeadSource,
        *,
        count: int = 0,
        niche: str | None = None,
        credits_used: int | None = None,
        status: BatchStatus = BatchStatus.completed,
        error: str | None = None,
    ) -> int:
        async with self._uow("create batch") as uow:
            batch = await uow.leads.add_batch(
                source=source,
                count=count,
                fetch_date=self._now(),
                niche=niche,
                credits_used=credits_used,
                status=status,
                error=error,
            )
            return batch.id

    async def set_batch_status(self, batch_ids: Sequence[int], status: BatchStatus, error: str | None = None) -> None:
        async with self._uow("update batch status") as uow:
            await uow.leads.set_batch_status(batch_ids, status, error)

    # -----------------------------
    # Source configs
    # -----------------------------
    async def get_lead_source_config(self, source: LeadSource) -> SourceConfig | None:
        async with self._uow("load source config") as uow:
            row = await uow.sources.get(source)
            return to_config(row) if row is not None else None

    async def update_lead_source_config(self, config: SourceConfig) -> SourceConfig:
        async with self._uow("save source config") as uow:
            row = await uow.sources.upsert(config, now=self._now())
            return to_config(row)

    async def get_active_lead_sources(self) -> list[SourceConfig]:
        async with self._uow("list active sources") as uow:
            return [to_config(r) for r in await uow.sources.list_active()]

    async def consume_credits(self, source: LeadSource, credits: int) -> int | None:
        """Atomic decrement. None when the source has no config."""
        async with self._uow("track usage") as uow:
            return await uow.sources.consume_credits(source, credits, now=self._now())

    async def reset_daily_usage(self) -> int:
        async with self._uow("reset daily usage") as uow:
            return await uow.sources.reset_daily_usage(now=self._now())

    # -----------------------------
    # Stats
    # -----------------------------
    async def get_lead_stats(self) -> LeadStats:
        async with self._uow("load stats") as uow:
            return await load_or_init_stats(uow.session, now=self._now())

    async def recompute_stats(self) -> LeadStats:
        async with self._uow("recompute stats") as uow:
            stats = await recompute_lead_stats(uow.session, now=self._now())
        log.info("lead stats recomputed: total=%d today=%d", stats.total_leads, stats.leads_added_today)
        return stats

    async def flush_stats(self) -> None:
        await self.stats_debouncer.flush()

    async def close(self) -> None:
        await self.stats_debouncer.flush()
        await self.stats_debouncer.close()

    def _leads_changed(self) -> None:
        self.cache.clear()
        self.stats_debouncer.trigger()
