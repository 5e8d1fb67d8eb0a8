"""
LeadPilot ProviderSettingsStore - Per-tenant provider configuration.

One document per (tenant_id, provider) in the ``provider_settings``
collection. The API key is stored encrypted; this store never returns the
plaintext. Decryption happens in PolicyCache at resolve time.

Usage:
    store = ProviderSettingsStore(db, cipher)
    await store.ensure_indexes()

    await store.save("org_1", api_key="rr_...", enabled=True, updated_by="admin@acme")
    doc = await store.get("org_1")
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..constants import COLLECTION_PROVIDER_SETTINGS, PROVIDER_ROCKETREACH
from ..db import Repository
from ..protocols import DocumentStoreProtocol
from .crypto import SecretCipher

logger = logging.getLogger(__name__)


class ProviderSettingsStore(Repository):
    """
    Per-tenant provider settings storage and retrieval.

    Collection: provider_settings
    Key: (tenant_id, provider)
    """

    COLLECTION_NAME = COLLECTION_PROVIDER_SETTINGS
    INDEXES = [
        ([("tenant_id", 1), ("provider", 1)], True),
    ]

    def __init__(self, store: DocumentStoreProtocol, cipher: SecretCipher):
        super().__init__(store)
        self._cipher = cipher

    @property
    def cipher(self) -> SecretCipher:
        return self._cipher

    async def get(
        self,
        tenant_id: str,
        provider: str = PROVIDER_ROCKETREACH,
    ) -> Optional[Dict[str, Any]]:
        """Return the raw settings document (key still encrypted), or None."""
        return await self.store.find_one(
            self.COLLECTION_NAME,
            {"tenant_id": tenant_id, "provider": provider},
        )

    async def save(
        self,
        tenant_id: str,
        provider: str = PROVIDER_ROCKETREACH,
        *,
        api_key: Optional[str] = None,
        enabled: Optional[bool] = None,
        base_url: Optional[str] = None,
        max_retries: Optional[int] = None,
        base_delay_ms: Optional[int] = None,
        max_delay_ms: Optional[int] = None,
        concurrency: Optional[int] = None,
        daily_limit: Optional[int] = None,
        updated_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Upsert settings. Only the arguments that are not None are written.

        Callers must invalidate PolicyCache for this tenant afterwards.
        """
        now = datetime.now(timezone.utc)
        fields: Dict[str, Any] = {"updated_at": now}
        if api_key is not None:
            fields["api_key_encrypted"] = self._cipher.encrypt(api_key) if api_key else None
        if enabled is not None:
            fields["enabled"] = enabled
        if base_url is not None:
            fields["base_url"] = base_url
        if concurrency is not None:
            fields["concurrency"] = concurrency
        if daily_limit is not None:
            fields["daily_limit"] = daily_limit
        if updated_by is not None:
            fields["updated_by"] = updated_by
        for name, value in (
            ("max_retries", max_retries),
            ("base_delay_ms", base_delay_ms),
            ("max_delay_ms", max_delay_ms),
        ):
            if value is not None:
                fields[f"retry_policy.{name}"] = value

        doc = await self.store.upsert_one(
            self.COLLECTION_NAME,
            {"tenant_id": tenant_id, "provider": provider},
            {
                "$set": fields,
                "$setOnInsert": {"created_at": now},
                "$inc": {"version": 1},
            },
        )
        logger.info(f"Provider settings saved: tenant={tenant_id} provider={provider}")
        return doc
