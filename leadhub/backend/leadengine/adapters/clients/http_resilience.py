# leadengine/adapters/clients/http_resilience.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx

from ...config import settings

log = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


@dataclass
class _CircuitState:
    fails: int = 0
    opened_at: float | None = None


class ResilientHttpClient:
    """
    One per provider: bounded retries with exponential backoff on 429/5xx and
    network errors, plus a small circuit breaker so a dead provider fails fast.
    """

    def __init__(
        self,
        *,
        timeout_s: float,
        max_retries: int,
        backoff_base_s: float,
        circuit_fail_threshold: int = 5,
        circuit_reset_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.timeout = httpx.Timeout(timeout_s)
        self.max_retries = max_retries
        self.backoff_base_s = backoff_base_s
        self.circuit_fail_threshold = circuit_fail_threshold
        self.circuit_reset_s = circuit_reset_s
        self._transport = transport
        self._sleep = sleep
        self._circuit = _CircuitState()

    @classmethod
    def from_settings(cls, transport: httpx.AsyncBaseTransport | None = None) -> "ResilientHttpClient":
        return cls(
            timeout_s=settings.HTTP_TIMEOUT_S,
            max_retries=settings.HTTP_MAX_RETRIES,
            backoff_base_s=settings.HTTP_BACKOFF_BASE_S,
            transport=transport,
        )

    def _circuit_is_open(self, now: float) -> bool:
        if self._circuit.opened_at is None:
            return False
        return (now - self._circuit.opened_at) < self.circuit_reset_s

    def _on_success(self) -> None:
        self._circuit = _CircuitState()

    def _on_failure(self) -> None:
        self._circuit.fails += 1
        if self._circuit.fails >= self.circuit_fail_threshold:
            self._circuit.opened_at = time.monotonic()

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
    ) -> httpx.Response:
        if self._circuit_is_open(time.monotonic()):
            raise httpx.HTTPError(f"circuit_open: refusing external call to {url}")

        last_exc: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    resp = await client.request(method, url, headers=headers, params=params, json=json)

                if resp.status_code in RETRYABLE_STATUS:
                    raise httpx.HTTPStatusError("retryable_status", request=resp.request, response=resp)

                # other 4xx: not worth retrying
                resp.raise_for_status()
                self._on_success()
                return resp
            except httpx.HTTPStatusError as e:
                last_exc = e
                self._on_failure()
                if e.response.status_code not in RETRYABLE_STATUS or attempt >= self.max_retries:
                    break
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                last_exc = e
                self._on_failure()
                if attempt >= self.max_retries:
                    break

            delay = min(5.0, self.backoff_base_s * (2**attempt))
            log.debug("retrying %s %s in %.2fs (attempt %d)", method, url, delay, attempt + 1)
            await self._sleep(delay)

        assert last_exc is not None
        raise last_exc
