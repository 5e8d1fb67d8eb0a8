"""
LeadPilot ConversationStore - Persisted chat transcripts.

The persisted transcript is authoritative: the reconciler builds each turn's
history from it, and the app writes the full transcript back after the turn.
Deletion is soft (``deleted_at``); deleted conversations are invisible to
every read here.

Usage:
    store = ConversationStore(db)
    await store.ensure_indexes()

    conv = await store.create("org_1", "u_1", conversation_id="c_1", title="CTOs in Berlin")
    await store.save_messages("c_1", "u_1", messages, title="CTOs in Berlin")
    conv = await store.get("c_1", "u_1")
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..constants import COLLECTION_CONVERSATIONS
from ..db import Repository

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New conversation"
TITLE_MAX_CHARS = 60


def title_from_text(text: str) -> str:
    """First line of the opening user message, shortened for a sidebar."""
    line = (text or "").strip().splitlines()[0] if (text or "").strip() else ""
    if not line:
        return DEFAULT_TITLE
    if len(line) > TITLE_MAX_CHARS:
        return line[: TITLE_MAX_CHARS - 3].rstrip() + "..."
    return line


class ConversationStore(Repository):
    """
    Collection: conversations

    Conversation ids are caller-visible strings (``id``), distinct from the
    store's ``_id``.
    """

    COLLECTION_NAME = COLLECTION_CONVERSATIONS
    INDEXES = [
        ([("id", 1), ("user_id", 1)], True),
        ([("user_id", 1), ("updated_at", -1)], False),
        ([("tenant_id", 1), ("created_at", -1)], False),
    ]

    @staticmethod
    def _live(conversation_id: str, user_id: str) -> Dict[str, Any]:
        return {"id": conversation_id, "user_id": user_id, "deleted_at": {"$exists": False}}

    async def get(self, conversation_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        return await self.store.find_one(self.COLLECTION_NAME, self._live(conversation_id, user_id))

    async def exists(self, conversation_id: str, user_id: str) -> bool:
        """True if the id was ever used by this user, deleted or not."""
        doc = await self.store.find_one(
            self.COLLECTION_NAME, {"id": conversation_id, "user_id": user_id}, projection={"id": 1},
        )
        return doc is not None

    async def create(
        self,
        tenant_id: str,
        user_id: str,
        conversation_id: Optional[str] = None,
        title: str = DEFAULT_TITLE,
        messages: Optional[List[Dict[str, Any]]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        doc = {
            "id": conversation_id or uuid.uuid4().hex,
            "tenant_id": tenant_id,
            "user_id": user_id,
            "title": title,
            "messages": messages or [],
            "metadata": metadata or {"total_tokens": 0, "tools_used": []},
            "created_at": now,
            "updated_at": now,
        }
        await self.store.insert_one(self.COLLECTION_NAME, doc)
        logger.info(f"Conversation created: {doc['id']} (tenant={tenant_id}, user={user_id})")
        return doc

    async def save_messages(
        self,
        conversation_id: str,
        user_id: str,
        messages: List[Dict[str, Any]],
        title: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Replace the transcript. Returns False if the conversation is missing or deleted."""
        fields: Dict[str, Any] = {
            "messages": messages,
            "updated_at": datetime.now(timezone.utc),
        }
        if title is not None:
            fields["title"] = title
        if metadata is not None:
            fields["metadata"] = metadata
        matched = await self.store.update_one(
            self.COLLECTION_NAME,
            self._live(conversation_id, user_id),
            {"$set": fields},
        )
        if not matched:
            logger.warning(f"save_messages: no conversation {conversation_id} for user {user_id}")
        return bool(matched)

    async def list(
        self, tenant_id: str, user_id: str, limit: int = 50
    ) -> List[Dict[str, Any]]:
        return await self.store.find(
            self.COLLECTION_NAME,
            {"tenant_id": tenant_id, "user_id": user_id, "deleted_at": {"$exists": False}},
            projection={"messages": 0},
            sort={"updated_at": -1},
            limit=limit,
        )

    async def delete(self, conversation_id: str, user_id: str) -> bool:
        now = datetime.now(timezone.utc)
        matched = await self.store.update_one(
            self.COLLECTION_NAME,
            self._live(conversation_id, user_id),
            {"$set": {"deleted_at": now, "updated_at": now}},
        )
        return bool(matched)
