"""
RocketReach endpoint wrappers over ProviderClient.

Each method is a thin mapping from keyword arguments to the provider's
request body; retries, accounting and credential handling all live in
ProviderClient.

Usage:
    api = RocketReachAPI(client)
    data = await api.search_people("org_1", title="CTO", company="Acme", page_size=10)
    profile = await api.lookup_profile("org_1", "12345")
"""

from typing import Any, Dict, Optional

from ..constants import MAX_SEARCH_PAGE_SIZE
from .client import ProviderClient

SEARCH_PATH = "/v2/api/search"
LOOKUP_PROFILE_PATH = "/v2/api/lookupProfile"


class RocketReachAPI:

    def __init__(self, client: ProviderClient):
        self._client = client

    async def search_people(
        self,
        tenant_id: str,
        *,
        name: Optional[str] = None,
        title: Optional[str] = None,
        company: Optional[str] = None,
        domain: Optional[str] = None,
        location: Optional[str] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        size = page_size or MAX_SEARCH_PAGE_SIZE
        query = {
            "name": name,
            "current_title": title,
            "current_employer": company,
            "email_domain": domain,
            "location": location,
        }
        body = {
            "query": {k: v for k, v in query.items() if v is not None},
            "page_size": size,
            "start": (page - 1) * size if page else 0,
        }
        return await self._client.call(
            tenant_id, SEARCH_PATH, method="POST", body=body, user_id=user_id
        )

    async def lookup_profile(
        self, tenant_id: str, person_id: str, user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self._client.call(
            tenant_id, LOOKUP_PROFILE_PATH, method="POST",
            body={"id": person_id}, user_id=user_id,
        )

