# leadengine/service_layer/bootstrap.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.clients.http_resilience import ResilientHttpClient
from ..adapters.sources.apollo import ApolloSourceAdapter
from ..adapters.sources.base import SourceAdapter, UsageReporter
from ..adapters.sources.facebook import FacebookSourceAdapter
from ..adapters.sources.google import GoogleSourceAdapter
from ..adapters.sources.instagram import InstagramSourceAdapter
from ..adapters.sources.tiktok import TikTokSourceAdapter
from ..db import AsyncSessionLocal
from ..integrations.alerts import build_alert_sink
from ..integrations.base import AlertSink
from ..models import LeadSource
from .lead_store import LeadStore
from .usage import UsageTracker
from .use_cases.aggregate import LeadAggregationService
from .use_cases.refill import DailyRefillScheduler

log = logging.getLogger(__name__)

ADAPTER_TYPES = {
    LeadSource.apollo: ApolloSourceAdapter,
    LeadSource.facebook: FacebookSourceAdapter,
    LeadSource.tiktok: TikTokSourceAdapter,
    LeadSource.instagram: InstagramSourceAdapter,
    LeadSource.google: GoogleSourceAdapter,
}


def build_adapters(
    usage: UsageReporter | None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[LeadSource, SourceAdapter]:
    """
    Registry of adapters that have a credential configured. Each adapter gets
    its own HTTP client so one provider's open circuit never blocks another.
    """
    out: dict[LeadSource, SourceAdapter] = {}
    for source, cls in ADAPTER_TYPES.items():
        adapter = cls.from_settings(usage=usage, http=ResilientHttpClient.from_settings(transport=transport))
        if not adapter.credential:
            log.info("%s: no credential configured, adapter not registered", source.value)
            continue
        out[source] = adapter
    return out


@dataclass
class Container:
    session_factory: Callable[[], AsyncSession]
    store: LeadStore
    alerts: AlertSink
    tracker: UsageTracker
    adapters: dict[LeadSource, SourceAdapter]
    aggregation: LeadAggregationService
    refill: DailyRefillScheduler

    async def close(self) -> None:
        await self.tracker.close()
        await self.store.close()


def build_container(
    session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
    *,
    adapters: dict[LeadSource, SourceAdapter] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Container:
    store = LeadStore(session_factory)
    alerts = build_alert_sink(session_factory)
    tracker = UsageTracker(store, alerts)
    registry = adapters if adapters is not None else build_adapters(tracker, transport=transport)
    return Container(
        session_factory=session_factory,
        store=store,
        alerts=alerts,
        tracker=tracker,
        adapters=registry,
        aggregation=LeadAggregationService(store, registry),
        refill=DailyRefillScheduler(store, registry),
    )
