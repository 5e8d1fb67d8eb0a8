"""
LeadPilot Tool Registry - Register tools and invoke them safely.

``invoke`` is the only way the orchestrator runs a tool. It validates the
model-supplied arguments against the tool's input model and converts every
failure (validation, domain errors, unexpected exceptions) into a structured
``{"success": False, ...}`` result. Cancellation still propagates.

Usage:
    registry = ToolRegistry(services)
    registry.register(ToolDefinition(name="search_leads", ...))

    catalog = registry.schemas()
    result = await registry.invoke("search_leads", {"title": "CTO"}, context)
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..errors import LeadPilotError
from .models import ToolContext, ToolDefinition, ToolServices, error_result

logger = logging.getLogger(__name__)


def _format_validation_error(name: str, error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "arguments"
        problems.append(f"{location}: {item.get('msg')}")
    return f"Invalid arguments for {name}: " + "; ".join(problems)


class ToolRegistry:

    def __init__(self, services: Optional[ToolServices] = None):
        self._services = services
        self._tools: Dict[str, ToolDefinition] = {}

    @property
    def services(self) -> Optional[ToolServices]:
        return self._services

    def register(self, tool: ToolDefinition) -> None:
        if tool.name in self._tools:
            logger.warning(f"Overwriting tool registration: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def schemas(self) -> List[Dict[str, Any]]:
        """OpenAI-format catalog of every registered tool."""
        return [tool.to_openai_schema() for tool in self._tools.values()]

    async def invoke(
        self,
        name: str,
        arguments: Dict[str, Any],
        context: ToolContext,
    ) -> Dict[str, Any]:
        tool = self._tools.get(name)
        if tool is None:
            return {"success": False, "error": f"Unknown tool '{name}'", "error_type": "unknown_tool"}

        try:
            args = tool.input_model.model_validate(arguments or {})
        except ValidationError as e:
            logger.info(f"Tool '{name}' rejected arguments: {e.error_count()} error(s)")
            return {
                "success": False,
                "error": _format_validation_error(name, e),
                "error_type": "invalid_arguments",
            }

        try:
            result = await tool.executor(args, context, self._services)
        except LeadPilotError as e:
            logger.warning(f"Tool '{name}' failed: {e}")
            return error_result(e)
        except Exception as e:
            logger.error(f"Tool '{name}' raised unexpectedly: {e}", exc_info=True)
            return error_result(e, message=f"{name} failed unexpectedly")

        if not isinstance(result, dict):
            result = {"success": True, "result": result}
        result.setdefault("success", True)
        return result
