"""
LeadPilot Tools - Tool calling system for the lead agent

Provides:
- ToolDefinition: a tool with a typed pydantic input model
- ToolRegistry: catalog generation and safe invocation
- build_default_registry: the built-in lead, data, export and messaging tools
"""

from .builtin import BUILTIN_TOOLS, build_default_registry
from .models import (
    ToolContext,
    ToolDefinition,
    ToolServices,
    error_result,
)
from .registry import ToolRegistry

__all__ = [
    "BUILTIN_TOOLS",
    "ToolContext",
    "ToolDefinition",
    "ToolRegistry",
    "ToolServices",
    "build_default_registry",
    "error_result",
]
