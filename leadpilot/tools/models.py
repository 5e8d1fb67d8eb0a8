"""
LeadPilot Tool Models - Data structures for LLM tool calling
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Type

from pydantic import BaseModel

from ..errors import LeadPilotError


@dataclass
class ToolContext:
    """
    Authenticated identity for one tool invocation.

    Supplied by the caller of the orchestrator, never by the model. Every
    store read and provider call a tool makes is attributed to these ids.
    """
    tenant_id: str
    user_id: str
    conversation_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolServices:
    """Collaborators the built-in tools run against."""
    provider: Any            # RocketReachAPI
    leads: Any               # LeadRepository
    gateway: Any             # QueryGateway
    exports: Any             # ExportStore
    channels: Any            # ChannelResolver


ToolExecutorFn = Callable[[BaseModel, ToolContext, ToolServices], Awaitable[Dict[str, Any]]]


@dataclass
class ToolDefinition:
    """
    A tool the agent can call.

    Attributes:
        name: Tool function name (used in LLM tool_calls)
        description: What this tool does (shown to the LLM)
        input_model: Pydantic model validating the arguments; also the JSON schema source
        executor: async (args, context, services) -> result dict
        category: Grouping for logs and the tool catalog
    """
    name: str
    description: str
    input_model: Type[BaseModel]
    executor: ToolExecutorFn
    category: str = "utility"

    def parameters_schema(self) -> Dict[str, Any]:
        schema = self.input_model.model_json_schema()
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return schema

    def to_openai_schema(self) -> Dict[str, Any]:
        """Convert to OpenAI function-calling tool schema."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters_schema(),
            },
        }


def error_result(error: Exception, message: Optional[str] = None) -> Dict[str, Any]:
    """Structured failure result for the agent."""
    if isinstance(error, LeadPilotError):
        data = error.to_dict()
    else:
        data = {"error": str(error), "error_type": type(error).__name__}
    data["success"] = False
    if message:
        data["message"] = message
    return data
