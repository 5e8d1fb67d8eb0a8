"""
LeadPilot PolicyCache - Resolved provider policy per tenant, with TTL.

Resolving a policy reads the tenant's settings document, decrypts the API key
and fills in defaults for anything the tenant did not override. Results are
cached for ``ttl`` seconds against an injected monotonic clock.

The cache is the only mutable state shared across turns. Concurrent misses
for the same tenant may both hit the store; the last writer wins.

Usage:
    cache = PolicyCache(settings_store)
    policy = await cache.resolve("org_1")       # NotConfigured / MissingSecret
    cache.invalidate("org_1")                   # after saving settings
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

from ..constants import (
    DEFAULT_BASE_DELAY,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_DELAY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_PROVIDER_BASE_URL,
    POLICY_CACHE_TTL,
    PROVIDER_ROCKETREACH,
)
from ..errors import MissingSecret, NotConfigured
from .store import ProviderSettingsStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderPolicy:
    """Everything the client needs to call the provider for one tenant."""

    tenant_id: str
    secret_key: str = field(repr=False)
    base_url: str = DEFAULT_PROVIDER_BASE_URL
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    enabled: bool = True


def _ms_to_seconds(value, default: float) -> float:
    if value is None:
        return default
    return float(value) / 1000.0


class PolicyCache:
    """Tenant id -> (ProviderPolicy, expires_at)."""

    def __init__(
        self,
        settings_store: ProviderSettingsStore,
        ttl: float = POLICY_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
        provider: str = PROVIDER_ROCKETREACH,
    ):
        self._settings = settings_store
        self._ttl = ttl
        self._clock = clock
        self._provider = provider
        self._entries: Dict[str, Tuple[ProviderPolicy, float]] = {}

    async def resolve(self, tenant_id: str) -> ProviderPolicy:
        entry = self._entries.get(tenant_id)
        if entry is not None and entry[1] > self._clock():
            return entry[0]

        policy = await self._load(tenant_id)
        self._entries[tenant_id] = (policy, self._clock() + self._ttl)
        return policy

    def invalidate(self, tenant_id: Optional[str] = None) -> None:
        """Drop one tenant's entry, or every entry when ``tenant_id`` is None."""
        if tenant_id is None:
            self._entries.clear()
        else:
            self._entries.pop(tenant_id, None)

    async def _load(self, tenant_id: str) -> ProviderPolicy:
        doc = await self._settings.get(tenant_id, self._provider)
        if not doc or not doc.get("enabled", False):
            raise NotConfigured(f"{self._provider} is not configured for this organization")

        secret = self._settings.cipher.decrypt(doc.get("api_key_encrypted"))
        if not secret:
            raise MissingSecret(f"{self._provider} API key is missing")

        retry = doc.get("retry_policy") or {}
        policy = ProviderPolicy(
            tenant_id=tenant_id,
            secret_key=secret,
            base_url=(doc.get("base_url") or DEFAULT_PROVIDER_BASE_URL).rstrip("/"),
            max_retries=int(retry.get("max_retries", DEFAULT_MAX_RETRIES)),
            base_delay=_ms_to_seconds(retry.get("base_delay_ms"), DEFAULT_BASE_DELAY),
            max_delay=_ms_to_seconds(retry.get("max_delay_ms"), DEFAULT_MAX_DELAY),
            max_concurrency=max(1, int(doc.get("concurrency") or DEFAULT_MAX_CONCURRENCY)),
            enabled=True,
        )
        logger.debug(f"Resolved provider policy for tenant={tenant_id}")
        return policy
