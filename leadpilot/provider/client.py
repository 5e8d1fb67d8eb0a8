"""
LeadPilot ProviderClient - Resilient outbound client for the people-data provider.

Every call:
1. Resolves the tenant's ProviderPolicy (cached). Missing configuration
   surfaces as IntegrationDisabled and nothing is sent.
2. Waits for the tenant's concurrency slot.
3. Runs the attempt cycle: 429/503 and transport errors back off
   exponentially with jitter; other non-2xx responses fail immediately.
4. Writes exactly one UsageRecord to the ledger.

Usage:
    client = ProviderClient(policy_cache, ledger)
    data = await client.call("org_1", "/v2/api/search", method="POST",
                             body={"query": {"name": ["Ada"]}}, user_id="u_1")
    await client.close()
"""

import asyncio
import logging
import random
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

import httpx

from ..constants import (
    MAX_JITTER,
    PROVIDER_API_KEY_HEADER,
    PROVIDER_ROCKETREACH,
    TRANSIENT_STATUS_CODES,
)
from ..credentials import PolicyCache, ProviderPolicy
from ..errors import (
    IntegrationDisabled,
    MissingSecret,
    NotConfigured,
    ProviderError,
    TransientNetworkError,
)
from ..usage import UsageLedger, UsageRecord, error_status

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def compute_backoff(
    policy: ProviderPolicy,
    attempt: int,
    rand: Callable[[], float] = random.random,
) -> float:
    """``min(max_delay, base_delay * 2**attempt)`` plus up to MAX_JITTER seconds."""
    return min(policy.max_delay, policy.base_delay * (2 ** attempt)) + rand() * MAX_JITTER


class _TenantSlot:
    """A tenant's semaphore, the limit it was built with, and how many calls hold or await it."""

    def __init__(self, limit: int):
        self.limit = limit
        self.semaphore = asyncio.Semaphore(limit)
        self.users = 0


class ProviderClient:
    """
    Calls the provider on behalf of a tenant.

    ``sleep`` and ``rand`` are injectable so tests can observe the backoff
    schedule without waiting for it.
    """

    def __init__(
        self,
        policy_cache: PolicyCache,
        ledger: UsageLedger,
        http_client: Optional[httpx.AsyncClient] = None,
        provider: str = PROVIDER_ROCKETREACH,
        timeout: float = DEFAULT_TIMEOUT,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ):
        self._policies = policy_cache
        self._ledger = ledger
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._provider = provider
        self._sleep = sleep
        self._rand = rand
        self._slots: Dict[str, _TenantSlot] = {}

    @property
    def provider(self) -> str:
        return self._provider

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def _tenant_slot(self, policy: ProviderPolicy) -> _TenantSlot:
        slot = self._slots.get(policy.tenant_id)
        if slot is None or slot.limit != policy.max_concurrency:
            if slot is not None:
                logger.info(
                    f"Concurrency for tenant {policy.tenant_id} changed "
                    f"{slot.limit} -> {policy.max_concurrency}"
                )
            slot = _TenantSlot(policy.max_concurrency)
            self._slots[policy.tenant_id] = slot
        return slot

    @asynccontextmanager
    async def _slot(self, policy: ProviderPolicy) -> AsyncIterator[None]:
        """Hold one of the tenant's concurrency slots. Idle tenants are forgotten."""
        slot = self._tenant_slot(policy)
        slot.users += 1
        try:
            async with slot.semaphore:
                yield
        finally:
            slot.users -= 1
            if slot.users == 0 and self._slots.get(policy.tenant_id) is slot:
                del self._slots[policy.tenant_id]

    async def call(
        self,
        tenant_id: str,
        path: str,
        method: str = "GET",
        query: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            policy = await self._policies.resolve(tenant_id)
        except (NotConfigured, MissingSecret) as e:
            raise IntegrationDisabled(str(e)) from e

        params = {k: v for k, v in (query or {}).items() if v is not None and v != ""}
        method = method.upper()

        async with self._slot(policy):
            started = time.monotonic()
            try:
                data = await self._attempt_cycle(policy, path, method, params, body)
            except ProviderError as e:
                await self._ledger.record(UsageRecord(
                    tenant_id=tenant_id,
                    user_id=user_id,
                    provider=self._provider,
                    endpoint=path,
                    method=method,
                    status=error_status(e.status),
                    duration_ms=int((time.monotonic() - started) * 1000),
                    error=str(e),
                ))
                raise

            await self._ledger.record(UsageRecord(
                tenant_id=tenant_id,
                user_id=user_id,
                provider=self._provider,
                endpoint=path,
                method=method,
                status="success",
                duration_ms=int((time.monotonic() - started) * 1000),
            ))
            return data

    async def _attempt_cycle(
        self,
        policy: ProviderPolicy,
        path: str,
        method: str,
        params: Dict[str, Any],
        body: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        url = f"{policy.base_url}{path}"
        headers = {
            PROVIDER_API_KEY_HEADER: policy.secret_key,
            "Content-Type": "application/json",
        }
        last_status: Optional[int] = None
        last_error: Optional[Exception] = None

        for attempt in range(policy.max_retries + 1):
            try:
                response = await self._http.request(
                    method,
                    url,
                    params=params or None,
                    json=body,
                    headers=headers,
                )
            except httpx.TransportError as e:
                last_status = None
                last_error = TransientNetworkError(f"{type(e).__name__}: {e}")
                logger.warning(
                    f"Provider transport error (attempt {attempt + 1}/"
                    f"{policy.max_retries + 1}) {method} {path}: {last_error}"
                )
            else:
                status = response.status_code
                if 200 <= status < 300:
                    return self._decode(response, path)
                if status not in TRANSIENT_STATUS_CODES:
                    raise ProviderError(
                        f"Provider returned HTTP {status} for {path}",
                        status=status,
                        body=response.text,
                    )
                last_status = status
                last_error = None
                logger.warning(
                    f"Provider throttled with HTTP {status} (attempt {attempt + 1}/"
                    f"{policy.max_retries + 1}) {method} {path}"
                )

            if attempt < policy.max_retries:
                await self._sleep(compute_backoff(policy, attempt, self._rand))

        if last_error is not None:
            raise ProviderError(
                f"Provider unreachable after {policy.max_retries + 1} attempts: {last_error}",
                status=None,
            )
        raise ProviderError(
            f"Provider still returning HTTP {last_status} after "
            f"{policy.max_retries + 1} attempts",
            status=last_status,
        )

    @staticmethod
    def _decode(response: httpx.Response, path: str) -> Dict[str, Any]:
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                f"Provider returned invalid JSON for {path}",
                status=response.status_code,
                body=response.text,
            ) from e
        if isinstance(data, list):
            return {"results": data}
        return data
