"""
Channel Resolver - Find the outbound channels a tenant has configured.

Email settings live in the ``email_providers`` collection, one document per
(tenant_id, provider) with the API key encrypted by SecretCipher.

Usage:
    resolver = ChannelResolver(db, cipher)
    status = await resolver.configured_channels("org_1")   # {"email": True, ...}
    channel = await resolver.email_channel("org_1")        # ChannelNotConfigured
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..constants import COLLECTION_EMAIL_PROVIDERS
from ..credentials import SecretCipher
from ..errors import ChannelNotConfigured
from ..protocols import DocumentStoreProtocol
from .base import BaseEmailChannel
from .resend import ResendEmailChannel

logger = logging.getLogger(__name__)

EMAIL_CHANNELS: Dict[str, type] = {
    "resend": ResendEmailChannel,
}

SETUP_GUIDANCE = {
    "email": "Ask an administrator to add a Resend API key and sender address under Settings > Email.",
    "whatsapp": "WhatsApp delivery is not available for this organization.",
}


class ChannelResolver:

    def __init__(
        self,
        store: DocumentStoreProtocol,
        cipher: SecretCipher,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._store = store
        self._cipher = cipher
        self._http = http_client

    async def _email_settings(self, tenant_id: str) -> Optional[Dict[str, Any]]:
        for provider in EMAIL_CHANNELS:
            doc = await self._store.find_one(
                COLLECTION_EMAIL_PROVIDERS,
                {"tenant_id": tenant_id, "provider": provider, "enabled": True},
            )
            if not doc:
                continue
            api_key = self._cipher.decrypt(doc.get("api_key_encrypted"))
            if api_key and doc.get("from_email"):
                return {
                    "provider": provider,
                    "api_key": api_key,
                    "from_email": doc["from_email"],
                    "from_name": doc.get("from_name"),
                }
        return None

    async def configured_channels(self, tenant_id: str) -> Dict[str, bool]:
        return {
            "email": await self._email_settings(tenant_id) is not None,
            "whatsapp": False,
        }

    async def email_channel(self, tenant_id: str) -> BaseEmailChannel:
        settings = await self._email_settings(tenant_id)
        if settings is None:
            raise ChannelNotConfigured("Email")
        channel_class = EMAIL_CHANNELS[settings["provider"]]
        logger.debug(f"Resolved {settings['provider']} email channel for tenant={tenant_id}")
        return channel_class(settings, http_client=self._http)
