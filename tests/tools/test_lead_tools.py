"""Tests for the provider-backed lead tools and the tool registry"""

import pytest

from leadpilot.errors import IntegrationDisabled, ProviderError
from leadpilot.tools import BUILTIN_TOOLS, ToolRegistry


# =========================================================================
# Registry
# =========================================================================


class TestRegistry:

    def test_catalog_has_every_builtin(self, registry):
        names = {s["function"]["name"] for s in registry.schemas()}
        assert names == {t.name for t in BUILTIN_TOOLS}
        assert "search_leads" in names and "send_email" in names

    def test_schema_shape(self, registry):
        schema = registry.get("bulk_enrich_leads").to_openai_schema()
        params = schema["function"]["parameters"]
        assert params["type"] == "object"
        assert "lead_ids" in params["properties"]
        assert "title" not in params

    @pytest.mark.asyncio
    async def test_unknown_tool(self, registry, ctx_a):
        result = await registry.invoke("drop_everything", {}, ctx_a)
        assert result["success"] is False
        assert result["error_type"] == "unknown_tool"

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, registry, ctx_a):
        result = await registry.invoke("search_leads", {"limit": 500}, ctx_a)
        assert result["success"] is False
        assert result["error_type"] == "invalid_arguments"
        assert "limit" in result["error"]

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_result(self, registry, ctx_a, services):
        async def boom(*args, **kwargs):
            raise RuntimeError("kaboom")

        services.provider.lookup_profile = boom
        result = await registry.invoke("lookup_profile", {"person_id": "p1"}, ctx_a)
        assert result["success"] is False
        assert "kaboom" in result["error"]


# =========================================================================
# search_leads / lookup_profile
# =========================================================================


class TestSearchLeads:

    @pytest.mark.asyncio
    async def test_normalizes_and_records_search(self, registry, ctx_a, provider, store):
        provider.profiles = {
            "1": {"id": 1, "name": "Ada", "current_title": "CTO", "current_employer": "Acme"},
            "2": {"id": 2, "name": "Bob", "current_title": "VP", "current_employer": "Acme"},
        }
        result = await registry.invoke("search_leads", {"company": "Acme", "limit": 5}, ctx_a)
        assert result["success"] is True
        assert result["returned"] == 2
        assert result["total"] == 100
        assert result["leads"][0]["summary"] == "CTO @ Acme"
        assert provider.searches == [("A", {"company": "Acme", "page_size": 5, "user_id": "u1"})]
        searches = await store.find("lead_searches", {})
        assert searches[0]["tenant_id"] == "A"
        assert searches[0]["result_count"] == 2

    @pytest.mark.asyncio
    async def test_not_configured_is_structured(self, registry, ctx_a, provider):
        async def disabled(*args, **kwargs):
            raise IntegrationDisabled("rocketreach is not configured for this organization")

        provider.search_people = disabled
        result = await registry.invoke("search_leads", {"title": "CTO"}, ctx_a)
        assert result["success"] is False
        assert result["error_type"] == "integration_disabled"
        assert "administrator" in result["message"]


# =========================================================================
# save_leads
# =========================================================================


class TestSaveLeads:

    @pytest.mark.asyncio
    async def test_idempotent(self, registry, ctx_a, store):
        args = {"leads": [
            {"id": "p1", "full_name": "Ada", "company": "Acme", "email": "ada@acme.com"},
            {"id": "p2", "full_name": "Bob", "company": "Acme"},
        ], "tags": ["q3"]}
        first = await registry.invoke("save_leads", args, ctx_a)
        second = await registry.invoke("save_leads", args, ctx_a)
        assert first["saved"] == 2 and second["saved"] == 2
        assert first["message"] == "Saved 2 of 2 lead(s)"
        assert await store.count("leads", {"tenant_id": "A"}) == 2

        doc = await store.find_one("leads", {"person_id": "p1"})
        assert doc["emails"] == ["ada@acme.com"]
        assert doc["domain"] == "acme.com"
        assert doc["tags"] == ["q3"]

    @pytest.mark.asyncio
    async def test_partial_failure_counts(self, registry, ctx_a, services):
        original = services.leads.upsert

        async def flaky(tenant_id, lead, tags=None):
            if lead.id == "bad":
                raise RuntimeError("write conflict")
            return await original(tenant_id, lead, tags=tags)

        services.leads.upsert = flaky
        result = await registry.invoke("save_leads", {"leads": [{"id": "ok"}, {"id": "bad"}]}, ctx_a)
        assert result["saved"] == 1
        assert result["failed"] == 1
        assert result["message"] == "Saved 1 of 2 lead(s), 1 failed"

    @pytest.mark.asyncio
    async def test_empty_list_rejected(self, registry, ctx_a):
        result = await registry.invoke("save_leads", {"leads": []}, ctx_a)
        assert result["error_type"] == "invalid_arguments"


# =========================================================================
# bulk_enrich_leads
# =========================================================================


class TestBulkEnrich:

    @pytest.mark.asyncio
    async def test_caps_at_25(self, registry, ctx_a, provider, store):
        ids = [f"p{i}" for i in range(30)]
        result = await registry.invoke("bulk_enrich_leads", {"lead_ids": ids}, ctx_a)
        assert result["attempted"] == 25
        assert result["enriched"] == 25
        assert result["not_attempted"] == ids[25:]
        assert provider.lookups == ids[:25]
        assert await store.count("leads", {"tenant_id": "A"}) == 25

    @pytest.mark.asyncio
    async def test_per_lead_errors_collected(self, registry, ctx_a, provider):
        provider.failures = {"p2": ProviderError("HTTP 404", status=404)}
        result = await registry.invoke("bulk_enrich_leads", {"lead_ids": ["p1", "p2", "p3"]}, ctx_a)
        assert result["success"] is True
        assert result["enriched"] == 2
        assert result["failed"] == 1
        assert result["errors"][0]["person_id"] == "p2"

    @pytest.mark.asyncio
    async def test_disabled_stops_batch(self, registry, ctx_a, provider):
        provider.failures = {"p1": IntegrationDisabled("not configured")}
        result = await registry.invoke("bulk_enrich_leads", {"lead_ids": ["p1", "p2"]}, ctx_a)
        assert result["success"] is False
        assert provider.lookups == ["p1"]

    @pytest.mark.asyncio
    async def test_saved_under_requested_id(self, registry, ctx_a, provider, store):
        provider.profiles = {"p1": {"id": 999, "name": "Ada"}}
        await registry.invoke("bulk_enrich_leads", {"lead_ids": ["p1"]}, ctx_a)
        assert await store.find_one("leads", {"person_id": "p1"}) is not None
