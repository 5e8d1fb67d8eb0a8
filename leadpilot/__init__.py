"""
LeadPilot - Tenant-scoped lead research assistant core.

LeadPilot wires an LLM tool-calling loop to a resilient RocketReach client,
a tenant-scoped query gateway over the document store, and a small set of
lead, analytics, export and messaging tools.

Quick Start:
    from leadpilot import LeadPilot

    app = LeadPilot("config.yaml")
    result = await app.chat(
        tenant_id="org_1",
        user_id="u_1",
        messages=[{"role": "user", "content": "Find VPs of Sales at Acme"}],
    )
    print(result.response)
"""

from .app import ChatResult, LeadPilot
from .errors import (
    ChannelNotConfigured,
    GatewayError,
    IntegrationDisabled,
    InvalidArgument,
    LeadPilotError,
    MissingSecret,
    NotConfigured,
    OperationFailed,
    ProviderError,
    TransientNetworkError,
    UnknownCollection,
)

__version__ = "0.1.0"

__all__ = [
    "LeadPilot",
    "ChatResult",
    "LeadPilotError",
    "NotConfigured",
    "MissingSecret",
    "IntegrationDisabled",
    "TransientNetworkError",
    "ProviderError",
    "GatewayError",
    "InvalidArgument",
    "UnknownCollection",
    "OperationFailed",
    "ChannelNotConfigured",
]
