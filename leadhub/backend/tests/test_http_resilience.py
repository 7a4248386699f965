import httpx
import pytest

from leadengine.adapters.clients.http_resilience import ResilientHttpClient


class Sleeps:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _sequence(*statuses: int):
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        status = statuses[min(calls["n"], len(statuses) - 1)]
        calls["n"] += 1
        return httpx.Response(status, json={"ok": status == 200})

    return handler, calls


@pytest.mark.asyncio
async def test_retries_retryable_status_with_backoff():
    handler, calls = _sequence(503, 429, 200)
    sleeps = Sleeps()
    client = ResilientHttpClient(
        timeout_s=1, max_retries=2, backoff_base_s=0.5, transport=httpx.MockTransport(handler), sleep=sleeps
    )

    resp = await client.request("GET", "https://provider.test/x")

    assert resp.status_code == 200
    assert calls["n"] == 3
    assert sleeps.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    handler, calls = _sequence(404)
    sleeps = Sleeps()
    client = ResilientHttpClient(
        timeout_s=1, max_retries=3, backoff_base_s=0.5, transport=httpx.MockTransport(handler), sleep=sleeps
    )

    with pytest.raises(httpx.HTTPStatusError):
        await client.request("GET", "https://provider.test/x")
    assert calls["n"] == 1
    assert sleeps.delays == []


@pytest.mark.asyncio
async def test_network_errors_retry_then_raise():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        raise httpx.ConnectError("refused", request=request)

    client = ResilientHttpClient(
        timeout_s=1, max_retries=1, backoff_base_s=0.1, transport=httpx.MockTransport(handler), sleep=Sleeps()
    )

    with pytest.raises(httpx.ConnectError):
        await client.request("GET", "https://provider.test/x")
    assert calls["n"] == 2


@pytest.mark.asyncio
async def test_circuit_opens_after_repeated_failures():
    handler, calls = _sequence(500)
    client = ResilientHttpClient(
        timeout_s=1,
        max_retries=0,
        backoff_base_s=0,
        circuit_fail_threshold=2,
        transport=httpx.MockTransport(handler),
        sleep=Sleeps(),
    )

    for _ in range(2):
        with pytest.raises(httpx.HTTPStatusError):
            await client.request("GET", "https://provider.test/x")

    with pytest.raises(httpx.HTTPError, match="circuit_open"):
        await client.request("GET", "https://provider.test/x")
    assert calls["n"] == 2
