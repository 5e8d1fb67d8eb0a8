"""The built-in tool catalog."""

from typing import List

from .data import DATA_TOOLS
from .export import EXPORT_TOOLS
from .leads import LEAD_TOOLS
from .messaging import MESSAGING_TOOLS
from .models import ToolDefinition, ToolServices
from .registry import ToolRegistry

BUILTIN_TOOLS: List[ToolDefinition] = [
    *LEAD_TOOLS,
    *DATA_TOOLS,
    *EXPORT_TOOLS,
    *MESSAGING_TOOLS,
]


def build_default_registry(services: ToolServices) -> ToolRegistry:
    registry = ToolRegistry(services)
    for tool in BUILTIN_TOOLS:
        registry.register(tool)
    return registry
