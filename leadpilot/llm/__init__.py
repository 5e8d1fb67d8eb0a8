"""LeadPilot LLM clients."""

from .base import BaseLLMClient, LLMConfig, LLMResponse, StopReason, ToolCall, Usage
from .openai_client import OpenAIClient

__all__ = [
    "BaseLLMClient",
    "LLMConfig",
    "LLMResponse",
    "OpenAIClient",
    "StopReason",
    "ToolCall",
    "Usage",
]
