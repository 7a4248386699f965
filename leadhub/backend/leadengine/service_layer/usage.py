# leadengine/service_layer/usage.py
from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from ..config import settings
from ..domain.errors import ConfigNotFoundError, QuotaExceededError
from ..domain.types import SourceConfig
from ..integrations.base import AlertSink, ApiLimitAlert
from ..models import LeadSource
from .lead_store import LeadStore

log = logging.getLogger(__name__)


def redact_credential(credential: str | None) -> str:
    if not credential:
        return ""
    return f"{credential[:8]}..."


class UsageTracker:
    """
    Credit accounting per source.

    Updates for one source are serialized in-process by a lock and the
    decrement itself is a single UPDATE, so concurrent fetches never lose a
    write. Crossing the low-water mark emits an api_limit alert from a
    background task; drain() waits for deliveries still in flight.
    """

    def __init__(
        self,
        store: LeadStore,
        alerts: AlertSink | None = None,
        *,
        low_credit_threshold: int | None = None,
    ) -> None:
        self.store = store
        self.alerts = alerts
        self.low_credit_threshold = (
            settings.LOW_CREDIT_THRESHOLD if low_credit_threshold is None else low_credit_threshold
        )
        self._locks: dict[LeadSource, asyncio.Lock] = {}
        self._pending: set[asyncio.Task] = set()

    def _lock(self, source: LeadSource) -> asyncio.Lock:
        lock = self._locks.get(source)
        if lock is None:
            lock = self._locks[source] = asyncio.Lock()
        return lock

    async def track_api_usage(self, source: LeadSource, credits_used: int, credential_ref: str) -> int:
        """
        Charge `credits_used` against the source. Returns credits remaining.
        Raises ConfigNotFoundError if the source was never configured.
        """
        async with self._lock(source):
            remaining = await self.store.consume_credits(source, int(credits_used))
        if remaining is None:
            raise ConfigNotFoundError(source.value)

        log.debug("%s: charged %d credits, %d remaining", source.value, credits_used, remaining)
        if remaining <= self.low_credit_threshold:
            task = asyncio.create_task(self._alert(source, remaining, credential_ref))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return remaining

    async def drain(self) -> None:
        """Wait for alerts still being delivered."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()

    async def _alert(self, source: LeadSource, remaining: int, credential_ref: str) -> None:
        if self.alerts is None:
            log.warning("%s: low credits (%d) and no alert sink configured", source.value, remaining)
            return

        alert = ApiLimitAlert(source=source, credits_remaining=remaining, credential_ref=redact_credential(credential_ref))
        try:
            res = await self.alerts.create_alert(alert)
        except Exception:
            log.exception("%s: failed to raise low-credit alert", source.value)
            return
        if not res.ok:
            log.warning("%s: low-credit alert not delivered: %s", source.value, res.error)

    async def reset_daily_usage(self) -> int:
        n = await self.store.reset_daily_usage()
        log.info("daily usage reset for %d sources", n)
        return n

    @staticmethod
    def has_daily_budget(config: SourceConfig) -> bool:
        return config.credits_used_today < config.daily_limit

    def available_sources(self, configs: Iterable[SourceConfig]) -> list[SourceConfig]:
        return [c for c in configs if self.has_daily_budget(c)]

    @staticmethod
    def ensure_budget(config: SourceConfig) -> None:
        if config.credits_used_today >= config.daily_limit:
            raise QuotaExceededError(config.source.value, config.credits_used_today, config.daily_limit)
