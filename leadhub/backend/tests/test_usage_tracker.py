import asyncio
import hashlib
import hmac
import json

import httpx
import pytest
from sqlalchemy import select

from conftest import RecordingAlertSink, make_config
from leadengine.domain.errors import ConfigNotFoundError, QuotaExceededError
from leadengine.integrations.alerts import CompositeAlertSink, DbAlertSink
from leadengine.integrations.base import ApiLimitAlert
from leadengine.integrations.webhook import WebhookAlertSink
from leadengine.models import AdminAlert, AlertStatus, AlertType, LeadSource
from leadengine.service_layer.usage import UsageTracker, redact_credential

CREDENTIAL = "sk_live_0123456789abcdef"


@pytest.mark.asyncio
async def test_crossing_low_water_mark_emits_exactly_one_alert(store):
    await store.update_lead_source_config(make_config(LeadSource.apollo, credits_remaining=15))
    sink = RecordingAlertSink()
    tracker = UsageTracker(store, sink, low_credit_threshold=10)

    remaining = await tracker.track_api_usage(LeadSource.apollo, 7, CREDENTIAL)

    assert remaining == 8
    await tracker.drain()
    assert len(sink.alerts) == 1
    alert = sink.alerts[0]
    assert alert.type == AlertType.api_limit
    assert alert.source == LeadSource.apollo
    assert alert.credits_remaining == 8
    assert alert.credential_ref == "sk_live_..."
    assert CREDENTIAL not in json.dumps(alert.payload())

    cfg = await store.get_lead_source_config(LeadSource.apollo)
    assert cfg.credits_remaining == 8
    assert cfg.credits_used_today == 7
    assert cfg.last_fetch is not None


@pytest.mark.asyncio
async def test_usage_above_threshold_does_not_alert(store):
    await store.update_lead_source_config(make_config(LeadSource.google, credits_remaining=100))
    sink = RecordingAlertSink()
    tracker = UsageTracker(store, sink, low_credit_threshold=10)

    assert await tracker.track_api_usage(LeadSource.google, 20, CREDENTIAL) == 80
    await tracker.drain()
    assert sink.alerts == []


@pytest.mark.asyncio
async def test_missing_config_raises(store):
    tracker = UsageTracker(store, RecordingAlertSink())
    with pytest.raises(ConfigNotFoundError):
        await tracker.track_api_usage(LeadSource.tiktok, 1, CREDENTIAL)


@pytest.mark.asyncio
async def test_alert_failure_is_swallowed(store):
    await store.update_lead_source_config(make_config(LeadSource.apollo, credits_remaining=3))
    tracker = UsageTracker(store, RecordingAlertSink(fail=True), low_credit_threshold=10)

    assert await tracker.track_api_usage(LeadSource.apollo, 1, CREDENTIAL) == 2
    await tracker.drain()


@pytest.mark.asyncio
async def test_concurrent_usage_loses_no_updates(store):
    await store.update_lead_source_config(make_config(LeadSource.apollo, credits_remaining=100))
    tracker = UsageTracker(store, RecordingAlertSink(), low_credit_threshold=0)

    await asyncio.gather(*(tracker.track_api_usage(LeadSource.apollo, 1, CREDENTIAL) for _ in range(10)))

    cfg = await store.get_lead_source_config(LeadSource.apollo)
    assert cfg.credits_remaining == 90
    assert cfg.credits_used_today == 10


@pytest.mark.asyncio
async def test_reset_daily_usage_clears_counters(store):
    await store.update_lead_source_config(make_config(LeadSource.apollo, credits_used_today=40))
    await store.update_lead_source_config(make_config(LeadSource.google, credits_used_today=5, active=False))
    tracker = UsageTracker(store)

    assert await tracker.reset_daily_usage() == 2
    assert (await store.get_lead_source_config(LeadSource.apollo)).credits_used_today == 0
    assert (await store.get_lead_source_config(LeadSource.google)).credits_used_today == 0


def test_budget_checks():
    tracker = UsageTracker(store=None)
    fresh = make_config(LeadSource.apollo, daily_limit=10, credits_used_today=9)
    spent = make_config(LeadSource.google, daily_limit=10, credits_used_today=10)

    assert tracker.available_sources([fresh, spent]) == [fresh]
    tracker.ensure_budget(fresh)
    with pytest.raises(QuotaExceededError):
        tracker.ensure_budget(spent)


def test_redact_credential():
    assert redact_credential("abcdefghijkl") == "abcdefgh..."
    assert redact_credential("") == ""
    assert redact_credential(None) == ""


@pytest.mark.asyncio
async def test_db_alert_sink_writes_unread_row(async_session_maker):
    sink = DbAlertSink(async_session_maker)
    res = await sink.create_alert(ApiLimitAlert(source=LeadSource.tiktok, credits_remaining=4, credential_ref="tt_12345..."))
    assert res.ok

    async with async_session_maker() as session:
        row = (await session.execute(select(AdminAlert))).scalars().one()
        assert row.status == AlertStatus.unread
        assert row.credits_remaining == 4
        assert row.credential_ref == "tt_12345..."


@pytest.mark.asyncio
async def test_webhook_alert_is_signed():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    sink = WebhookAlertSink("https://hooks.example.com/alerts", secret="s3cret", transport=httpx.MockTransport(handler))
    res = await sink.create_alert(ApiLimitAlert(source=LeadSource.apollo, credits_remaining=2, credential_ref="sk_live_..."))

    assert res.ok
    req = seen[0]
    expected = hmac.new(b"s3cret", req.content, hashlib.sha256).hexdigest()
    assert req.headers["X-Lead-Signature"] == expected
    body = json.loads(req.content)
    assert body["type"] == "api_limit"
    assert body["data"]["source"] == "apollo"


@pytest.mark.asyncio
async def test_composite_sink_reports_partial_failure(async_session_maker):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="nope")

    sink = CompositeAlertSink(
        [
            DbAlertSink(async_session_maker),
            WebhookAlertSink("https://hooks.example.com/alerts", transport=httpx.MockTransport(handler)),
        ]
    )
    res = await sink.create_alert(ApiLimitAlert(source=LeadSource.apollo, credits_remaining=1, credential_ref=""))
    assert not res.ok
    assert "HTTP 500" in res.error
