"""
LeadPilot error taxonomy.

Two families:

- Provider errors, raised by the credential cache and the resilient client.
- Gateway errors, raised by the tenant-scoped query gateway. Their messages
  never carry secret material and are safe to hand back to the agent verbatim.

Tools catch both families and turn them into ``{"success": False, ...}``
results, so nothing here ever aborts an orchestrator turn.
"""

from typing import Any, Dict, Optional


class LeadPilotError(Exception):
    """Base class for every error raised by LeadPilot."""

    code: str = "error"

    def to_dict(self) -> Dict[str, Any]:
        return {"error": str(self), "error_type": self.code}


# ── Credentials / provider ──


class NotConfigured(LeadPilotError):
    """No provider settings exist for the tenant, or the integration is disabled."""

    code = "not_configured"


class MissingSecret(LeadPilotError):
    """Provider settings exist but the API key is absent or empty."""

    code = "missing_secret"


class IntegrationDisabled(LeadPilotError):
    """The provider cannot be called for this tenant. Never retried."""

    code = "integration_disabled"


class TransientNetworkError(LeadPilotError):
    """Transport-level failure (connect, read, timeout). Retried by the client."""

    code = "transient_network_error"


class ProviderError(LeadPilotError):
    """
    Terminal provider failure.

    ``status`` is the last HTTP status seen, or None when the cycle ended on
    a transport error.
    """

    code = "provider_error"

    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["status"] = self.status
        return data


# ── Gateway ──


class GatewayError(LeadPilotError):
    """Base for query gateway rejections and failures."""

    code = "gateway_error"


class InvalidArgument(GatewayError):
    code = "invalid_argument"


class UnknownCollection(GatewayError):
    code = "unknown_collection"


class OperationFailed(GatewayError):
    code = "operation_failed"


# ── Channels ──


class ChannelNotConfigured(LeadPilotError):
    """No outbound messaging channel is configured for the tenant."""

    code = "channel_not_configured"

    def __init__(self, channel: str):
        super().__init__(f"{channel} channel is not configured for this organization")
        self.channel = channel


# ── Exports ──


class ExportNotFound(LeadPilotError):
    """Unknown file id or a handle whose signature does not verify."""

    code = "export_not_found"


class ExportExpired(LeadPilotError):
    code = "export_expired"
