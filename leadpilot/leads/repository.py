"""
LeadPilot LeadRepository - The tenant's saved leads.

Saving is an idempotent upsert keyed by (tenant_id, person_id), so the agent
can re-save the same search results without creating duplicates.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..constants import COLLECTION_LEAD_SEARCHES, COLLECTION_LEADS, PROVIDER_ROCKETREACH
from ..db import Repository
from ..provider import NormalizedLead

logger = logging.getLogger(__name__)


def lead_document(lead: NormalizedLead, tags: Optional[List[str]] = None) -> Dict[str, Any]:
    """Fields written on every save. Identity fields are supplied by the upsert filter."""
    email_domain = None
    if lead.email and "@" in lead.email:
        email_domain = lead.email.rsplit("@", 1)[1].lower()
    doc: Dict[str, Any] = {
        "source": PROVIDER_ROCKETREACH,
        "name": lead.full_name,
        "first_name": lead.first_name,
        "last_name": lead.last_name,
        "title": lead.title,
        "company": lead.company,
        "domain": email_domain,
        "emails": [lead.email] if lead.email else [],
        "phones": [lead.phone] if lead.phone else [],
        "linkedin": lead.linkedin_url,
        "location": lead.location,
        "raw": lead.raw,
    }
    if tags:
        doc["tags"] = list(tags)
    return doc


class LeadRepository(Repository):
    """Collection: leads"""

    COLLECTION_NAME = COLLECTION_LEADS
    INDEXES = [
        ([("tenant_id", 1), ("person_id", 1)], True),
        ([("tenant_id", 1), ("emails", 1)], False),
        ([("tenant_id", 1), ("company", 1)], False),
        ([("created_at", -1)], False),
    ]

    async def upsert(
        self,
        tenant_id: str,
        lead: NormalizedLead,
        tags: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        fields = lead_document(lead, tags)
        fields["updated_at"] = now
        return await self.store.upsert_one(
            self.COLLECTION_NAME,
            {"tenant_id": tenant_id, "person_id": lead.id},
            {"$set": fields, "$setOnInsert": {"created_at": now}},
        )

    async def record_search(
        self,
        tenant_id: str,
        user_id: Optional[str],
        query: Dict[str, Any],
        result_count: int,
    ) -> None:
        """Remember a provider search so recent_activity can report it."""
        await self.store.insert_one(COLLECTION_LEAD_SEARCHES, {
            "tenant_id": tenant_id,
            "user_id": user_id,
            "query": query,
            "result_count": result_count,
            "created_at": datetime.now(timezone.utc),
        })

    async def list(
        self,
        tenant_id: str,
        person_ids: Optional[List[str]] = None,
        limit: int = 1000,
    ) -> List[Dict[str, Any]]:
        filter: Dict[str, Any] = {"tenant_id": tenant_id}
        if person_ids:
            filter["person_id"] = {"$in": list(person_ids)}
        return await self.store.find(
            self.COLLECTION_NAME, filter, sort={"created_at": -1}, limit=limit
        )
