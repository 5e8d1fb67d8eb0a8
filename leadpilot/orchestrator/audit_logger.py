"""
Structured audit logging for orchestrator turns.

Produces JSON log entries via Python's standard logging module under
the ``leadpilot.audit`` logger name. Each entry includes a timestamp,
event_type, tenant_id, and event-specific fields.

Usage::

    audit = AuditLogger()
    orchestrator = Orchestrator(llm, registry, event_sink=audit)

    audit.log_tool_execution(
        tool_name="search_leads",
        args_summary={"title": "CTO"},
        success=True,
        duration_ms=812,
        tenant_id="org_1",
    )
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .events import EventType, TurnEvent

_audit_logger = logging.getLogger("leadpilot.audit")


class AuditLogger:
    """Structured audit logger. Implements EventSinkProtocol."""

    def __init__(self, tenant_id: Optional[str] = None) -> None:
        self._default_tenant_id = tenant_id

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _emit(self, event_type: str, fields: Dict[str, Any]) -> None:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
        }
        entry.update(fields)
        _audit_logger.info(json.dumps(entry, default=str))

    def _tid(self, tenant_id: Optional[str] = None) -> str:
        return tenant_id or self._default_tenant_id or ""

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------

    def emit(self, event: TurnEvent) -> None:
        """EventSinkProtocol entry point."""
        if event.type == EventType.TOOL_RESULT:
            self.log_tool_execution(
                tool_name=event.data.get("tool_name", ""),
                args_summary=event.data.get("args_summary", {}),
                success=bool(event.data.get("success")),
                duration_ms=int(event.data.get("duration_ms", 0)),
                error=event.data.get("error"),
                tenant_id=event.tenant_id,
            )
        elif event.type == EventType.STEP_END:
            self.log_step(
                step=event.step,
                tool_calls=event.data.get("tool_calls", []),
                final_answer=bool(event.data.get("final_answer")),
                tenant_id=event.tenant_id,
            )
        else:
            fields = event.to_dict()
            fields.pop("timestamp", None)
            fields.pop("type", None)
            fields["tenant_id"] = self._tid(event.tenant_id)
            self._emit(event.type.value, fields)

    def log_tool_execution(
        self,
        tool_name: str,
        args_summary: Dict[str, Any],
        success: bool,
        duration_ms: int,
        error: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> None:
        """Log a tool execution result."""
        fields: Dict[str, Any] = {
            "tenant_id": self._tid(tenant_id),
            "tool_name": tool_name,
            "args_summary": args_summary,
            "success": success,
            "duration_ms": duration_ms,
        }
        if error is not None:
            fields["error"] = error
        self._emit("tool_execution", fields)

    def log_step(
        self,
        step: int,
        tool_calls: List[str],
        final_answer: bool,
        tenant_id: Optional[str] = None,
    ) -> None:
        """Log a step summary."""
        self._emit("step", {
            "tenant_id": self._tid(tenant_id),
            "step": step,
            "tool_calls": tool_calls,
            "tool_calls_count": len(tool_calls),
            "final_answer": final_answer,
        })
