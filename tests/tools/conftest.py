import pytest

from leadpilot.channels import ChannelResolver
from leadpilot.credentials import SecretCipher
from leadpilot.db import MemoryDocumentStore
from leadpilot.exports import ExportStore
from leadpilot.gateway import QueryGateway
from leadpilot.leads import LeadRepository
from leadpilot.tools import ToolContext, ToolServices, build_default_registry


class FakeProvider:
    """Stands in for RocketReachAPI."""

    def __init__(self, profiles=None, failures=None):
        self.profiles = profiles or {}
        self.failures = failures or {}
        self.lookups = []
        self.searches = []

    async def search_people(self, tenant_id, **criteria):
        self.searches.append((tenant_id, criteria))
        profiles = list(self.profiles.values())
        return {"profiles": profiles, "pagination": {"total": 100}}

    async def lookup_profile(self, tenant_id, person_id, user_id=None):
        self.lookups.append(person_id)
        if person_id in self.failures:
            raise self.failures[person_id]
        return self.profiles.get(person_id, {
            "id": person_id,
            "name": f"Person {person_id}",
            "emails": [{"email": f"{person_id}@acme.com"}],
        })


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def cipher():
    return SecretCipher(SecretCipher.generate_key())


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def services(store, cipher, provider):
    return ToolServices(
        provider=provider,
        leads=LeadRepository(store),
        gateway=QueryGateway(store),
        exports=ExportStore(store, signing_key="test-signing-key", base_url="https://app.test"),
        channels=ChannelResolver(store, cipher),
    )


@pytest.fixture
def registry(services):
    return build_default_registry(services)


@pytest.fixture
def ctx_a():
    return ToolContext(tenant_id="A", user_id="u1")


@pytest.fixture
def ctx_b():
    return ToolContext(tenant_id="B", user_id="u9")
