from __future__ import annotations

import hmac
import hashlib
import json
from typing import Any

import httpx

from .base import AlertSink, ApiLimitAlert, SinkDeliveryResult


class WebhookAlertSink(AlertSink):
    """
    POSTs alerts as {"type": ..., "data": ...}. With a secret, the body is
    signed (HMAC-SHA256, hex) in X-Lead-Signature.
    """

    def __init__(
        self,
        url: str,
        secret: str | None = None,
        timeout_s: float = 20,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.secret = secret
        self.timeout_s = timeout_s
        self._transport = transport

    def _sign(self, body: bytes) -> str | None:
        if not self.secret:
            return None
        return hmac.new(self.secret.encode("utf-8"), body, hashlib.sha256).hexdigest()

    async def deliver(self, event_type: str, payload: dict[str, Any]) -> SinkDeliveryResult:
        body = json.dumps({"type": event_type, "data": payload}).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        sig = self._sign(body)
        if sig:
            headers["X-Lead-Signature"] = sig

        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
                r = await client.post(self.url, content=body, headers=headers)
                if 200 <= r.status_code < 300:
                    return SinkDeliveryResult(ok=True)
                return SinkDeliveryResult(ok=False, error=f"HTTP {r.status_code}: {r.text[:500]}")
        except httpx.HTTPError as e:
            return SinkDeliveryResult(ok=False, error=f"{type(e).__name__}: {e}")

    async def create_alert(self, alert: ApiLimitAlert) -> SinkDeliveryResult:
        return await self.deliver(alert.type.value, alert.payload())
