"""Tests for leadpilot.usage: best-effort ledger writes and stats"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from leadpilot.db import MemoryDocumentStore
from leadpilot.usage import UsageLedger, UsageRecord, error_status


def _record(**kw):
    defaults = dict(tenant_id="org_1", provider="rocketreach", endpoint="/x",
                    method="POST", status="success", duration_ms=100)
    defaults.update(kw)
    return UsageRecord(**defaults)


class TestErrorStatus:

    def test_with_code(self):
        assert error_status(429) == "error_429"

    def test_without_code(self):
        assert error_status(None) == "error"


class TestUsageLedger:

    @pytest.mark.asyncio
    async def test_record_inserts_document(self):
        store = MemoryDocumentStore()
        await UsageLedger(store).record(_record(user_id="u_1"))
        docs = await store.find("api_usage", {})
        assert len(docs) == 1
        assert docs[0]["user_id"] == "u_1"
        assert docs[0]["units_consumed"] == 1

    @pytest.mark.asyncio
    async def test_record_swallows_store_failure(self):
        store = AsyncMock()
        store.insert_one.side_effect = RuntimeError("store down")
        await UsageLedger(store).record(_record())
        store.insert_one.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stats_groups_by_provider(self):
        store = MemoryDocumentStore()
        ledger = UsageLedger(store)
        await ledger.record(_record(duration_ms=100))
        await ledger.record(_record(duration_ms=300, status="error_429"))
        await ledger.record(_record(provider="assistant", units_consumed=500))
        await ledger.record(_record(tenant_id="org_2"))

        now = datetime.now(timezone.utc)
        rows = await ledger.stats("org_1", now - timedelta(hours=1), now + timedelta(hours=1))
        by_provider = {r["provider"]: r for r in rows}
        assert by_provider["rocketreach"]["total_calls"] == 2
        assert by_provider["rocketreach"]["success_calls"] == 1
        assert by_provider["rocketreach"]["avg_duration_ms"] == 200
        assert by_provider["assistant"]["total_units"] == 500
        assert rows[0]["provider"] == "rocketreach"

    @pytest.mark.asyncio
    async def test_stats_respects_window(self):
        store = MemoryDocumentStore()
        ledger = UsageLedger(store)
        old = datetime.now(timezone.utc) - timedelta(days=40)
        await ledger.record(_record(timestamp=old))
        now = datetime.now(timezone.utc)
        assert await ledger.stats("org_1", now - timedelta(days=30), now) == []
