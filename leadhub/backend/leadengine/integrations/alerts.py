# leadengine/integrations/alerts.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models import AdminAlert, AlertStatus
from .base import AlertSink, ApiLimitAlert, SinkDeliveryResult
from .webhook import WebhookAlertSink

log = logging.getLogger(__name__)


class DbAlertSink(AlertSink):
    """Writes an unread admin_alerts row."""

    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_alert(self, alert: ApiLimitAlert) -> SinkDeliveryResult:
        try:
            async with self._session_factory() as session:
                session.add(
                    AdminAlert(
                        type=alert.type,
                        source=alert.source,
                        credits_remaining=alert.credits_remaining,
                        credential_ref=alert.credential_ref,
                        status=AlertStatus.unread,
                        created_at=datetime.utcnow(),
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            return SinkDeliveryResult(ok=False, error=str(e))
        return SinkDeliveryResult(ok=True)


class CompositeAlertSink(AlertSink):
    """
    Fans one alert out to every sink. Ok only if every sink succeeded.
    """

    def __init__(self, sinks: Sequence[AlertSink]) -> None:
        self.sinks = list(sinks)

    async def create_alert(self, alert: ApiLimitAlert) -> SinkDeliveryResult:
        errors: list[str] = []
        for sink in self.sinks:
            res = await sink.create_alert(alert)
            if not res.ok:
                log.warning("alert sink %s failed: %s", type(sink).__name__, res.error)
                errors.append(res.error or type(sink).__name__)
        if errors:
            return SinkDeliveryResult(ok=False, error="; ".join(errors))
        return SinkDeliveryResult(ok=True)


def build_alert_sink(session_factory: Callable[[], AsyncSession]) -> AlertSink:
    sinks: list[AlertSink] = [DbAlertSink(session_factory)]
    if settings.ALERT_WEBHOOK_URL:
        sinks.append(WebhookAlertSink(settings.ALERT_WEBHOOK_URL, secret=settings.ALERT_WEBHOOK_SECRET))
    if len(sinks) == 1:
        return sinks[0]
    return CompositeAlertSink(sinks)
