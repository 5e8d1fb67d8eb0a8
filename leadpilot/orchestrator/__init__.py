"""
LeadPilot Orchestrator - bounded tool loop, events and conversation reconciliation.
"""

from .audit_logger import AuditLogger
from .events import EventType, TurnEvent
from .orchestrator import Orchestrator
from .react_config import (
    AbortReason,
    TokenUsage,
    ToolCallRecord,
    TurnConfig,
    TurnResult,
    TurnStatus,
)
from .reconciler import message_text, reconcile, to_model_messages, to_stored_message

__all__ = [
    "AbortReason",
    "AuditLogger",
    "EventType",
    "Orchestrator",
    "TokenUsage",
    "ToolCallRecord",
    "TurnConfig",
    "TurnEvent",
    "TurnResult",
    "TurnStatus",
    "message_text",
    "reconcile",
    "to_model_messages",
    "to_stored_message",
]
