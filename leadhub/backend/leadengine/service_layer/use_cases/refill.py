# leadengine/service_layer/use_cases/refill.py
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Mapping

from ...adapters.sources.base import SourceAdapter
from ...config import settings
from ...domain.types import LeadCriteria, RefillResult, SourceConfig
from ...models import BatchStatus, LeadSource
from ..lead_store import LeadStore

log = logging.getLogger(__name__)


def plan_fetches(cfg: SourceConfig, fetch_limit: int) -> list[LeadCriteria]:
    """
    One criteria per target niche, each with an equal floor share of the
    limit. No niches: a single fetch with the config's stored criteria.
    """
    base = LeadCriteria.from_mapping(cfg.fetch_criteria, sources=(cfg.source,))
    if not cfg.target_niches:
        return [base.with_limit(fetch_limit)]

    share = fetch_limit // len(cfg.target_niches)
    if share <= 0:
        return []
    return [replace(base, niche=niche, limit=share) for niche in cfg.target_niches]


class DailyRefillScheduler:
    """
    Pre-fills the store from every active source within its daily budget.
    Per-source failures are logged and recorded on the batch; they never abort
    the run.
    """

    def __init__(
        self,
        store: LeadStore,
        adapters: Mapping[LeadSource, SourceAdapter],
        *,
        max_per_run: int | None = None,
    ) -> None:
        self.store = store
        self.adapters = dict(adapters)
        self.max_per_run = settings.REFILL_MAX_PER_RUN if max_per_run is None else max_per_run

    async def daily_lead_fetch(self) -> RefillResult:
        # the only failure allowed to escape
        configs = await self.store.get_active_lead_sources()

        result = RefillResult()
        for cfg in configs:
            n = await self._refill_source(cfg)
            result.by_source[cfg.source.value] = n
            result.total_fetched += n

        log.info("daily refill done: %s", result.snapshot())
        return result

    async def _refill_source(self, cfg: SourceConfig) -> int:
        src = cfg.source.value
        adapter = self.adapters.get(cfg.source)
        if adapter is None:
            log.warning("%s: active but no adapter registered, skipping", src)
            return 0
        if cfg.credits_used_today >= cfg.daily_limit:
            log.info("%s: daily limit reached (%d/%d), skipping", src, cfg.credits_used_today, cfg.daily_limit)
            return 0

        fetch_limit = min(cfg.daily_limit - cfg.credits_used_today, self.max_per_run)
        stored = 0
        done_batches: list[int] = []
        open_batch: int | None = None

        try:
            for criteria in plan_fetches(cfg, fetch_limit):
                leads = [lead.tagged(cfg.source) for lead in await adapter.fetch_leads(criteria)]
                if not leads:
                    continue
                open_batch = await self.store.create_batch(
                    cfg.source,
                    count=len(leads),
                    niche=criteria.niche,
                    credits_used=getattr(adapter, "last_credits_used", None),
                )
                await self.store.store_leads(leads, batch_id=open_batch)
                done_batches.append(open_batch)
                open_batch = None
                stored += len(leads)
        except Exception as e:
            log.exception("%s: refill failed after %d leads", src, stored)
            await self._record_failure(cfg.source, done_batches, open_batch, e)

        return stored

    async def _record_failure(
        self,
        source: LeadSource,
        done_batches: list[int],
        open_batch: int | None,
        err: Exception,
    ) -> None:
        message = f"{type(err).__name__}: {err}"
        try:
            if done_batches:
                await self.store.set_batch_status(done_batches, BatchStatus.partial, message)
            if open_batch is not None:
                await self.store.set_batch_status([open_batch], BatchStatus.failed, message)
            elif not done_batches:
                await self.store.create_batch(source, count=0, status=BatchStatus.failed, error=message)
        except Exception:
            log.exception("%s: could not record refill failure", source.value)
