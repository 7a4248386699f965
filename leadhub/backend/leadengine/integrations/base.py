from __future__ import annotations
from dataclasses import asdict, dataclass
from typing import Any, Protocol

from ..models import AlertType, LeadSource


@dataclass(frozen=True)
class SinkDeliveryResult:
    ok: bool
    error: str | None = None


@dataclass(frozen=True)
class ApiLimitAlert:
    source: LeadSource
    credits_remaining: int
    # redacted: first 8 chars + "..."
    credential_ref: str
    type: AlertType = AlertType.api_limit

    def payload(self) -> dict[str, Any]:
        d = asdict(self)
        d["source"] = self.source.value
        d["type"] = self.type.value
        return d


class AlertSink(Protocol):
    async def create_alert(self, alert: ApiLimitAlert) -> SinkDeliveryResult:
        ...
