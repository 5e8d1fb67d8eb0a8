"""
LeadPilot UsageLedger - Append-only record of outbound provider calls.

One UsageRecord per ProviderClient.call(), never one per retry. Writes are
best-effort: a failing store is logged and the caller carries on.

Usage:
    ledger = UsageLedger(db)
    await ledger.ensure_indexes()
    await ledger.record(UsageRecord(tenant_id="org_1", provider="rocketreach",
                                    endpoint="/v2/api/search", method="POST",
                                    status="success", duration_ms=412))
    stats = await ledger.stats("org_1", start, end)
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..constants import COLLECTION_API_USAGE
from ..db import Repository

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


def error_status(status_code: Optional[int]) -> str:
    """``error_<code>`` for HTTP failures, plain ``error`` otherwise."""
    if status_code is None:
        return STATUS_ERROR
    return f"error_{status_code}"


@dataclass
class UsageRecord:
    tenant_id: str
    provider: str
    endpoint: str
    method: str
    status: str
    duration_ms: int = 0
    units_consumed: int = 1
    user_id: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_document(self) -> Dict[str, Any]:
        return asdict(self)


class UsageLedger(Repository):
    """Collection: api_usage"""

    COLLECTION_NAME = COLLECTION_API_USAGE
    INDEXES = [
        ([("tenant_id", 1), ("timestamp", -1)], False),
        ([("provider", 1), ("timestamp", -1)], False),
    ]

    async def record(self, record: UsageRecord) -> None:
        try:
            await self.store.insert_one(self.COLLECTION_NAME, record.to_document())
        except Exception as e:
            logger.error(
                f"Failed to record usage: tenant={record.tenant_id} "
                f"endpoint={record.endpoint} status={record.status}: {e}"
            )

    async def stats(
        self,
        tenant_id: str,
        start: datetime,
        end: datetime,
    ) -> List[Dict[str, Any]]:
        """Per-provider totals for ``tenant_id`` between ``start`` and ``end``."""
        pipeline = [
            {"$match": {
                "tenant_id": tenant_id,
                "timestamp": {"$gte": start, "$lte": end},
            }},
            {"$group": {
                "_id": "$provider",
                "total_calls": {"$sum": 1},
                "success_calls": {
                    "$sum": {"$cond": [{"$eq": ["$status", STATUS_SUCCESS]}, 1, 0]},
                },
                "total_units": {"$sum": "$units_consumed"},
                "avg_duration_ms": {"$avg": "$duration_ms"},
            }},
            {"$sort": {"total_calls": -1}},
        ]
        rows = await self.store.aggregate(self.COLLECTION_NAME, pipeline)
        return [
            {
                "provider": row["_id"],
                "total_calls": row.get("total_calls", 0),
                "success_calls": row.get("success_calls", 0),
                "total_units": row.get("total_units", 0),
                "avg_duration_ms": row.get("avg_duration_ms"),
            }
            for row in rows
        ]
