"""Tests for leadpilot.provider.client: retry cycle, backoff, usage accounting"""

import asyncio

import httpx
import pytest

from leadpilot.credentials import PolicyCache, ProviderPolicy, ProviderSettingsStore, SecretCipher
from leadpilot.db import MemoryDocumentStore
from leadpilot.errors import IntegrationDisabled, ProviderError
from leadpilot.provider import ProviderClient, compute_backoff
from leadpilot.usage import UsageLedger


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


async def _setup(handler, *, configure=True, rand=lambda: 0.0, **settings):
    store = MemoryDocumentStore()
    cipher = SecretCipher(SecretCipher.generate_key())
    settings_store = ProviderSettingsStore(store, cipher)
    if configure:
        defaults = dict(api_key="rr_key", enabled=True, base_url="https://rr.test",
                        max_retries=3, base_delay_ms=500, max_delay_ms=30000)
        defaults.update(settings)
        await settings_store.save("org_1", **defaults)
    sleep = RecordingSleep()
    client = ProviderClient(
        PolicyCache(settings_store),
        UsageLedger(store),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=sleep,
        rand=rand,
    )
    return client, store, sleep


async def _usage(store):
    return await store.find("api_usage", {})


def _responder(statuses, body=None):
    """Handler returning the given statuses in order, repeating the last."""
    calls = []

    def handler(request):
        calls.append(request)
        status = statuses[min(len(calls) - 1, len(statuses) - 1)]
        return httpx.Response(status, json=body if body is not None else {"ok": status})

    return handler, calls


# =========================================================================
# compute_backoff
# =========================================================================


class TestComputeBackoff:

    def _policy(self, **kw):
        return ProviderPolicy(tenant_id="t", secret_key="k", **kw)

    def test_exponential_growth(self):
        policy = self._policy(base_delay=0.5, max_delay=30.0)
        assert [compute_backoff(policy, i, lambda: 0.0) for i in range(4)] == [0.5, 1.0, 2.0, 4.0]

    def test_capped_at_max_delay(self):
        policy = self._policy(base_delay=0.5, max_delay=3.0)
        assert compute_backoff(policy, 10, lambda: 0.0) == 3.0

    def test_jitter_bounded(self):
        policy = self._policy(base_delay=0.5, max_delay=30.0)
        assert compute_backoff(policy, 1, lambda: 0.999) < 1.0 + 0.25


# =========================================================================
# Attempt cycle
# =========================================================================


class TestAttemptCycle:

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        handler, calls = _responder([200], body={"profiles": []})
        client, store, sleep = await _setup(handler)
        data = await client.call("org_1", "/v2/api/search", method="POST", body={"q": 1})
        assert data == {"profiles": []}
        assert len(calls) == 1
        assert calls[0].headers["Api-Key"] == "rr_key"
        assert str(calls[0].url) == "https://rr.test/v2/api/search"
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_429_exhausts_retries(self):
        handler, calls = _responder([429])
        client, store, sleep = await _setup(handler, max_retries=3)
        with pytest.raises(ProviderError) as exc_info:
            await client.call("org_1", "/v2/api/search")
        assert exc_info.value.status == 429
        assert len(calls) == 4
        assert len(sleep.delays) == 3

    @pytest.mark.asyncio
    async def test_backoff_schedule_within_bounds(self):
        handler, _ = _responder([503])
        client, _, sleep = await _setup(handler, max_retries=4, rand=lambda: 0.99,
                                        base_delay_ms=500, max_delay_ms=3000)
        with pytest.raises(ProviderError):
            await client.call("org_1", "/x")
        for attempt, delay in enumerate(sleep.delays):
            floor = min(3.0, 0.5 * 2 ** attempt)
            assert floor <= delay < floor + 0.25

    @pytest.mark.asyncio
    async def test_recovers_after_transient(self):
        handler, calls = _responder([429, 503, 200])
        client, store, sleep = await _setup(handler)
        data = await client.call("org_1", "/x")
        assert data == {"ok": 200}
        assert len(calls) == 3
        assert sleep.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_non_transient_fails_immediately(self):
        handler, calls = _responder([404])
        client, store, sleep = await _setup(handler)
        with pytest.raises(ProviderError) as exc_info:
            await client.call("org_1", "/x")
        assert exc_info.value.status == 404
        assert len(calls) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_transport_error_retried_then_status_none(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        client, store, _ = await _setup(handler, max_retries=2)
        with pytest.raises(ProviderError) as exc_info:
            await client.call("org_1", "/x")
        assert exc_info.value.status is None
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_empty_query_params_dropped(self):
        handler, calls = _responder([200])
        client, _, _ = await _setup(handler)
        await client.call("org_1", "/x", query={"a": "1", "b": None, "c": ""})
        assert dict(calls[0].url.params) == {"a": "1"}

    @pytest.mark.asyncio
    async def test_list_response_wrapped(self):
        handler, _ = _responder([200], body=[{"id": 1}])
        client, _, _ = await _setup(handler)
        assert await client.call("org_1", "/x") == {"results": [{"id": 1}]}


# =========================================================================
# Integration disabled
# =========================================================================


class TestIntegrationDisabled:

    @pytest.mark.asyncio
    async def test_unconfigured_tenant(self):
        handler, calls = _responder([200])
        client, store, _ = await _setup(handler, configure=False)
        with pytest.raises(IntegrationDisabled):
            await client.call("org_1", "/x")
        assert calls == []
        assert await _usage(store) == []

    @pytest.mark.asyncio
    async def test_disabled_tenant(self):
        handler, calls = _responder([200])
        client, store, _ = await _setup(handler, enabled=False)
        with pytest.raises(IntegrationDisabled):
            await client.call("org_1", "/x")
        assert calls == []
        assert await _usage(store) == []


# =========================================================================
# Usage accounting
# =========================================================================


class TestUsageAccounting:

    @pytest.mark.asyncio
    async def test_one_record_on_success(self):
        handler, _ = _responder([429, 200])
        client, store, _ = await _setup(handler)
        await client.call("org_1", "/v2/api/search", method="post", user_id="u_1")
        records = await _usage(store)
        assert len(records) == 1
        assert records[0]["status"] == "success"
        assert records[0]["method"] == "POST"
        assert records[0]["user_id"] == "u_1"
        assert records[0]["provider"] == "rocketreach"

    @pytest.mark.asyncio
    async def test_one_record_on_exhausted_retries(self):
        handler, _ = _responder([429])
        client, store, _ = await _setup(handler, max_retries=2)
        with pytest.raises(ProviderError):
            await client.call("org_1", "/x")
        records = await _usage(store)
        assert [r["status"] for r in records] == ["error_429"]

    @pytest.mark.asyncio
    async def test_transport_failure_recorded_as_plain_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client, store, _ = await _setup(handler, max_retries=1)
        with pytest.raises(ProviderError):
            await client.call("org_1", "/x")
        assert [r["status"] for r in await _usage(store)] == ["error"]


# =========================================================================
# Concurrency
# =========================================================================


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_per_tenant_limit(self):
        in_flight = 0
        peak = 0

        async def handler(request):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return httpx.Response(200, json={})

        client, _, _ = await _setup(handler, concurrency=2)
        await asyncio.gather(*[client.call("org_1", "/x") for _ in range(6)])
        assert peak == 2

    @pytest.mark.asyncio
    async def test_new_limit_applies_after_settings_change(self):
        in_flight = 0
        peak = 0
        release = asyncio.Event()
        holding = asyncio.Event()

        async def handler(request):
            nonlocal in_flight, peak
            if request.url.path == "/hold":
                holding.set()
                await release.wait()
                return httpx.Response(200, json={})
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return httpx.Response(200, json={})

        store = MemoryDocumentStore()
        settings = ProviderSettingsStore(store, SecretCipher(SecretCipher.generate_key()))
        await settings.save("org_1", api_key="rr_key", enabled=True, base_url="https://rr.test", concurrency=1)
        cache = PolicyCache(settings)
        client = ProviderClient(
            cache,
            UsageLedger(store),
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            sleep=RecordingSleep(),
        )

        # A call still running under the old limit keeps the tenant's entry alive.
        held = asyncio.create_task(client.call("org_1", "/hold"))
        await asyncio.wait_for(holding.wait(), timeout=1)

        await settings.save("org_1", concurrency=3)
        cache.invalidate("org_1")
        await asyncio.gather(*[client.call("org_1", "/x") for _ in range(3)])
        assert peak == 3

        release.set()
        await held
        assert client._slots == {}

    @pytest.mark.asyncio
    async def test_idle_tenants_are_forgotten(self):
        handler, _ = _responder([200])
        client, _, _ = await _setup(handler)
        await client.call("org_1", "/x")
        assert client._slots == {}


# =========================================================================
# Cancellation
# =========================================================================


class BlockingSleep:
    """Backoff sleep that never returns until cancelled."""

    def __init__(self):
        self.entered = asyncio.Event()

    async def __call__(self, delay):
        self.entered.set()
        await asyncio.Event().wait()


class TestCancellation:

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self):
        handler, calls = _responder([429])
        client, store, _ = await _setup(handler)
        sleep = BlockingSleep()
        client._sleep = sleep

        task = asyncio.create_task(client.call("org_1", "/x"))
        await asyncio.wait_for(sleep.entered.wait(), timeout=1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(calls) == 1
        assert await _usage(store) == []
        assert client._slots == {}

    @pytest.mark.asyncio
    async def test_cancel_during_request(self):
        started = asyncio.Event()

        async def handler(request):
            started.set()
            await asyncio.Event().wait()

        client, store, _ = await _setup(handler)
        task = asyncio.create_task(client.call("org_1", "/x"))
        await asyncio.wait_for(started.wait(), timeout=1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert await _usage(store) == []
        assert client._slots == {}
