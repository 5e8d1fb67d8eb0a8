"""
Orchestrator events.

One event per notable point in a turn. Events are delivered to an
EventSinkProtocol implementation (AuditLogger by default) and are purely
diagnostic: the loop never reads them back.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class EventType(str, Enum):
    TURN_START = "turn_start"
    STEP_START = "step_start"
    TOOL_CALL_START = "tool_call_start"
    TOOL_RESULT = "tool_result"
    STEP_END = "step_end"
    TURN_END = "turn_end"
    ERROR = "error"


@dataclass
class TurnEvent:
    type: EventType
    data: Dict[str, Any]
    tenant_id: str = ""
    user_id: Optional[str] = None
    step: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "step": self.step,
            "timestamp": self.timestamp.isoformat(),
            **self.data,
        }
