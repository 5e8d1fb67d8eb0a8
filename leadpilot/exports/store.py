"""
LeadPilot ExportStore - Short-lived downloadable artifacts.

Exports are stored in ``temp_files`` and handed out as signed handles: the
download URL carries the file id, the expiry timestamp and an HMAC-SHA256
signature over both plus the owning tenant. A handle cannot be forged for
another tenant's file or extended past its expiry.

Usage:
    exports = ExportStore(db, signing_key="...", base_url="https://app.example.com")
    handle = await exports.create("org_1", "u_1", "leads.csv", csv_text)
    handle.url      # https://app.example.com/exports/<id>?expires=...&signature=...

    doc = await exports.fetch(file_id, expires, signature)
"""

import hashlib
import hmac
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from ..constants import COLLECTION_TEMP_FILES, DEFAULT_EXPORT_TTL_HOURS
from ..db import Repository
from ..errors import ExportExpired, ExportNotFound
from ..protocols import DocumentStoreProtocol

logger = logging.getLogger(__name__)


@dataclass
class ExportHandle:
    file_id: str
    filename: str
    expires_at: datetime
    signature: str
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_id": self.file_id,
            "filename": self.filename,
            "expires_at": self.expires_at.isoformat(),
            "download_url": self.url,
        }


class ExportStore(Repository):
    """Collection: temp_files"""

    COLLECTION_NAME = COLLECTION_TEMP_FILES
    INDEXES = [
        ([("file_id", 1)], True),
        ([("expires_at", 1)], False),
    ]

    def __init__(
        self,
        store: DocumentStoreProtocol,
        signing_key: str,
        base_url: str = "",
        ttl_hours: float = DEFAULT_EXPORT_TTL_HOURS,
    ):
        super().__init__(store)
        self._key = signing_key.encode()
        self._base_url = base_url.rstrip("/")
        self._ttl = timedelta(hours=ttl_hours)

    def sign(self, file_id: str, tenant_id: str, expires: int) -> str:
        message = f"{file_id}:{tenant_id}:{expires}".encode()
        return hmac.new(self._key, message, hashlib.sha256).hexdigest()

    def download_url(self, file_id: str, expires: int, signature: str) -> str:
        query = urlencode({"expires": expires, "signature": signature})
        return f"{self._base_url}/exports/{file_id}?{query}"

    async def create(
        self,
        tenant_id: str,
        user_id: Optional[str],
        filename: str,
        content: str,
        content_type: str = "text/csv",
        now: Optional[datetime] = None,
    ) -> ExportHandle:
        now = now or datetime.now(timezone.utc)
        expires_at = now + self._ttl
        expires = int(expires_at.timestamp())
        file_id = uuid.uuid4().hex

        await self.store.insert_one(self.COLLECTION_NAME, {
            "file_id": file_id,
            "tenant_id": tenant_id,
            "user_id": user_id,
            "filename": filename,
            "content": content,
            "content_type": content_type,
            "created_at": now,
            "expires_at": expires_at,
        })

        signature = self.sign(file_id, tenant_id, expires)
        logger.info(f"Export created: {file_id} ({filename}) for tenant={tenant_id}")
        return ExportHandle(
            file_id=file_id,
            filename=filename,
            expires_at=expires_at,
            signature=signature,
            url=self.download_url(file_id, expires, signature),
        )

    async def fetch(
        self,
        file_id: str,
        expires: int,
        signature: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Return the stored artifact for a valid, unexpired handle.

        Raises:
            ExportNotFound: unknown id or bad signature.
            ExportExpired: the handle's expiry has passed. The artifact is deleted.
        """
        doc = await self.store.find_one(self.COLLECTION_NAME, {"file_id": file_id})
        if doc is None:
            raise ExportNotFound("File not found or expired")

        expected = self.sign(file_id, doc["tenant_id"], expires)
        if not hmac.compare_digest(expected, signature or ""):
            logger.warning(f"Rejected export download with bad signature: {file_id}")
            raise ExportNotFound("File not found or expired")

        now = now or datetime.now(timezone.utc)
        if now.timestamp() > expires:
            await self.store.delete_one(self.COLLECTION_NAME, {"file_id": file_id})
            raise ExportExpired("File has expired")
        return doc
