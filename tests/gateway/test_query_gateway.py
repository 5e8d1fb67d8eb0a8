"""Tests for leadpilot.gateway: tenant scoping and query validation"""

from unittest.mock import AsyncMock

import pytest

from leadpilot.db import MemoryDocumentStore
from leadpilot.errors import InvalidArgument, OperationFailed, UnknownCollection
from leadpilot.gateway import QueryGateway, Scope, ScopedQuery, apply_scope, scope_for


async def _seeded_store():
    store = MemoryDocumentStore()
    for i in range(3):
        await store.insert_one("leads", {"tenant_id": "A", "company": "Acme", "name": f"a{i}"})
    await store.insert_one("leads", {"tenant_id": "B", "company": "Acme", "name": "b0"})
    await store.insert_one("conversations", {"tenant_id": "A", "user_id": "u1", "title": "mine"})
    await store.insert_one("conversations", {"tenant_id": "A", "user_id": "u2", "title": "theirs"})
    await store.insert_one("organizations", {"name": "A Corp"})
    return store


# =========================================================================
# Scoping
# =========================================================================


class TestScoping:

    def test_scope_registry(self):
        assert scope_for("leads") is Scope.TENANT
        assert scope_for("conversations") is Scope.TENANT_USER
        assert scope_for("users") is Scope.SYSTEM

    def test_unknown_collection(self):
        with pytest.raises(UnknownCollection):
            scope_for("secrets")

    @pytest.mark.parametrize("collection", ["provider_settings", "email_providers", "ai_providers"])
    def test_credential_stores_not_queryable(self, collection):
        with pytest.raises(UnknownCollection):
            scope_for(collection)

    @pytest.mark.asyncio
    async def test_provider_settings_never_reach_store(self):
        store = MemoryDocumentStore()
        await store.insert_one("provider_settings", {"tenant_id": "B", "api_key_encrypted": "gAAAA..."})
        gateway = QueryGateway(store)
        with pytest.raises(UnknownCollection):
            await gateway.execute("A", "u1", {"collection": "provider_settings", "operation": "find"})

    def test_scope_keys_override_caller_filter(self):
        scoped = apply_scope({"tenant_id": "B", "user_id": "x", "company": "Acme"},
                             Scope.TENANT_USER, "A", "u1")
        assert scoped == {"tenant_id": "A", "user_id": "u1", "company": "Acme"}

    def test_system_scope_adds_nothing(self):
        assert apply_scope({"name": "x"}, Scope.SYSTEM, "A", "u1") == {"name": "x"}


# =========================================================================
# Execution
# =========================================================================


class TestExecute:

    @pytest.mark.asyncio
    async def test_find_confined_to_tenant(self):
        gateway = QueryGateway(await _seeded_store())
        rows = await gateway.execute("A", "u1", ScopedQuery(
            collection="leads", operation="find", filter={"company": "Acme"},
        ))
        assert len(rows) == 3
        assert all(r["tenant_id"] == "A" for r in rows)

    @pytest.mark.asyncio
    async def test_caller_cannot_spoof_tenant(self):
        gateway = QueryGateway(await _seeded_store())
        count = await gateway.execute("A", "u1", {
            "collection": "leads", "operation": "count", "filter": {"tenant_id": "B"},
        })
        assert count == 3

    @pytest.mark.asyncio
    async def test_user_scope(self):
        gateway = QueryGateway(await _seeded_store())
        rows = await gateway.execute("A", "u1", {"collection": "conversations", "operation": "find"})
        assert [r["title"] for r in rows] == ["mine"]

    @pytest.mark.asyncio
    async def test_system_collection_unscoped(self):
        gateway = QueryGateway(await _seeded_store())
        doc = await gateway.execute("A", "u1", {"collection": "organizations", "operation": "findOne"})
        assert doc["name"] == "A Corp"

    @pytest.mark.asyncio
    async def test_aggregate_gets_leading_match(self):
        store = AsyncMock()
        store.aggregate.return_value = []
        gateway = QueryGateway(store)
        await gateway.execute("A", "u1", {
            "collection": "leads", "operation": "aggregate",
            "pipeline": [{"$group": {"_id": "$company", "n": {"$sum": 1}}}],
        })
        pipeline = store.aggregate.call_args.args[1]
        assert pipeline[0] == {"$match": {"tenant_id": "A"}}
        assert len(pipeline) == 2

    @pytest.mark.asyncio
    async def test_aggregate_against_store(self):
        gateway = QueryGateway(await _seeded_store())
        rows = await gateway.execute("A", "u1", {
            "collection": "leads", "operation": "aggregate",
            "pipeline": [{"$group": {"_id": "$company", "n": {"$sum": 1}}}],
        })
        assert rows == [{"_id": "Acme", "n": 3}]

    @pytest.mark.asyncio
    async def test_distinct(self):
        gateway = QueryGateway(await _seeded_store())
        values = await gateway.execute("B", "u1", {
            "collection": "leads", "operation": "distinct", "field": "name",
        })
        assert values == ["b0"]

    @pytest.mark.asyncio
    async def test_limit_clamped(self):
        store = AsyncMock()
        store.find.return_value = []
        gateway = QueryGateway(store)
        await gateway.execute("A", "u1", {"collection": "leads", "operation": "find", "limit": 5000})
        assert store.find.call_args.kwargs["limit"] == 200
        await gateway.execute("A", "u1", {"collection": "leads", "operation": "find"})
        assert store.find.call_args.kwargs["limit"] == 100

    @pytest.mark.asyncio
    async def test_store_failure_becomes_operation_failed(self):
        store = AsyncMock()
        store.count.side_effect = RuntimeError("connection reset")
        with pytest.raises(OperationFailed, match="connection reset"):
            await QueryGateway(store).execute("A", "u1", {"collection": "leads", "operation": "count"})


# =========================================================================
# Validation (nothing reaches the store)
# =========================================================================


class TestValidation:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query, error", [
        ({"collection": "nope", "operation": "find"}, UnknownCollection),
        ({"collection": "leads", "operation": "drop"}, InvalidArgument),
        ({"collection": "leads", "operation": "distinct"}, InvalidArgument),
        ({"collection": "leads", "operation": "aggregate"}, InvalidArgument),
        ({"collection": "leads", "operation": "aggregate", "pipeline": []}, InvalidArgument),
        ({"collection": "leads", "operation": "aggregate",
          "pipeline": [{"$match": {}}, {"$out": "stolen"}]}, InvalidArgument),
        ({"collection": "leads", "operation": "aggregate",
          "pipeline": [{"$facet": {"x": [{"$lookup": {"from": "users"}}]}}]}, InvalidArgument),
        ({"collection": "leads", "operation": "aggregate",
          "pipeline": [{"$graphLookup": {"from": "leads", "startWith": "$company",
                                         "connectFromField": "company", "connectToField": "company",
                                         "as": "same_company"}}]}, InvalidArgument),
        ({"collection": "leads", "operation": "aggregate",
          "pipeline": [{"$documents": [{"tenant_id": "B"}]}]}, InvalidArgument),
        ({"collection": "leads", "operation": "aggregate",
          "pipeline": [{"$bucketAuto": {"groupBy": "$company", "buckets": 2}}]}, InvalidArgument),
        ({"collection": "leads", "operation": "aggregate",
          "pipeline": [{"$match": {}, "$group": {"_id": None}}]}, InvalidArgument),
        ({"collection": "leads", "operation": "aggregate",
          "pipeline": [{"$facet": {"x": [{"$graphLookup": {"from": "leads"}}]}}]}, InvalidArgument),
        ({"collection": "leads", "operation": "aggregate",
          "pipeline": [{"$project": {"x": {"$function": {"body": "return 1", "args": [], "lang": "js"}}}}]},
         InvalidArgument),
        ({"operation": "find"}, InvalidArgument),
    ])
    async def test_rejected_before_store(self, query, error):
        store = AsyncMock()
        with pytest.raises(error):
            await QueryGateway(store).execute("A", "u1", query)
        assert store.method_calls == []

    @pytest.mark.asyncio
    async def test_cross_collection_join_cannot_reach_other_tenant(self):
        store = await _seeded_store()
        gateway = QueryGateway(store)
        with pytest.raises(InvalidArgument, match=r"\$graphLookup"):
            await gateway.execute("A", "u1", {
                "collection": "leads", "operation": "aggregate",
                "pipeline": [
                    {"$match": {"company": "Acme"}},
                    {"$graphLookup": {"from": "leads", "startWith": "$company",
                                      "connectFromField": "company", "connectToField": "company",
                                      "as": "same_company"}},
                ],
            })

    @pytest.mark.asyncio
    async def test_facet_with_allowed_stages_runs(self):
        store = AsyncMock()
        store.aggregate.return_value = [{"total": [{"n": 3}]}]
        rows = await QueryGateway(store).execute("A", "u1", {
            "collection": "leads", "operation": "aggregate",
            "pipeline": [{"$facet": {"total": [{"$count": "n"}], "top": [{"$sort": {"name": 1}}, {"$limit": 1}]}}],
        })
        assert rows == [{"total": [{"n": 3}]}]
        assert store.aggregate.call_args.args[1][0] == {"$match": {"tenant_id": "A"}}
