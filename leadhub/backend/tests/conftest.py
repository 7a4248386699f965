# tests/conftest.py
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from leadengine.domain.types import LeadCriteria, LeadDraft, SourceConfig
from leadengine.integrations.base import ApiLimitAlert, SinkDeliveryResult
from leadengine.models import Base, LeadSource
from leadengine.service_layer.cache import QueryCache
from leadengine.service_layer.lead_store import LeadStore

NOW = datetime(2024, 6, 1, 12, 0, 0)


@pytest.fixture
async def engine():
    """
    Fresh in-memory DB per test. StaticPool makes all connections share the same
    in-memory database for the lifetime of this engine fixture.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def async_session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=True)


@pytest.fixture
async def store(async_session_maker):
    s = LeadStore(async_session_maker, cache=QueryCache(ttl_s=900), stats_debounce_s=60, clock=lambda: NOW)
    try:
        yield s
    finally:
        await s.stats_debouncer.close()


def make_draft(i: int = 0, *, source: LeadSource = LeadSource.apollo, score: int = 70, niche: str = "fashion", **kw: Any) -> LeadDraft:
    fields: dict[str, Any] = dict(
        first_name=f"First{i}",
        last_name=f"Last{i}",
        email=f"lead{i}@{source.value}.example.com",
        source=source,
        company=f"Company {i}",
        industry="retail",
        location="Austin",
        niche=niche,
        tags=frozenset({source.value}),
        score=score,
        conversion_potential=0.5,
        engagement_rate=0.1,
        verified=True,
        fetched_at=NOW,
    )
    fields.update(kw)
    return LeadDraft(**fields)


def make_config(source: LeadSource, **kw: Any) -> SourceConfig:
    fields: dict[str, Any] = dict(
        source=source,
        active=True,
        fetch_priority=1.0,
        daily_limit=100,
        credits_remaining=500,
        credits_used_today=0,
    )
    fields.update(kw)
    return SourceConfig(**fields)


class FakeAdapter:
    """Returns `count` drafts per call (capped at the criteria limit), or raises."""

    def __init__(self, source: LeadSource, *, count: int = 100, score: int = 70, error: Exception | None = None, delay_s: float = 0.0) -> None:
        self.source = source
        self.count = count
        self.score = score
        self.error = error
        self.delay_s = delay_s
        self.calls: list[LeadCriteria] = []
        self.last_credits_used = 0

    async def fetch_leads(self, criteria: LeadCriteria) -> list[LeadDraft]:
        self.calls.append(criteria)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        n = min(self.count, criteria.limit)
        self.last_credits_used = n
        base = len(self.calls) * 1000
        return [
            make_draft(base + i, source=self.source, score=self.score, niche=criteria.niche or "")
            for i in range(n)
        ]


class RecordingAlertSink:
    """Records alerts. With `hold`, delivery blocks until the event is set."""

    def __init__(self, fail: bool = False, hold: asyncio.Event | None = None) -> None:
        self.alerts: list[ApiLimitAlert] = []
        self.fail = fail
        self.hold = hold

    async def create_alert(self, alert: ApiLimitAlert) -> SinkDeliveryResult:
        if self.hold is not None:
            await self.hold.wait()
        self.alerts.append(alert)
        if self.fail:
            raise RuntimeError("alert backend down")
        return SinkDeliveryResult(ok=True)
