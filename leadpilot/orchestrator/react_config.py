"""Turn loop configuration and result dataclasses.

Centralizes the tunable parameters of the orchestrator's step loop, along
with structured types for tracking tool calls, token usage, and the turn's
outcome.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..constants import DEFAULT_MAX_STEPS, MIN_MAX_STEPS


class TurnStatus(str, Enum):
    DONE = "done"
    """The model produced a final answer without requesting tools."""
    ABORTED = "aborted"
    """The loop stopped early; see ``AbortReason``."""
    ERROR = "error"
    """A model call failed."""


class AbortReason(str, Enum):
    STEP_BUDGET = "step_budget"
    CANCELLED = "cancelled"


@dataclass
class TurnConfig:
    """All turn loop configuration centralized in one place."""

    max_steps: int = DEFAULT_MAX_STEPS
    """Model calls per turn. Must be between MIN_MAX_STEPS and DEFAULT_MAX_STEPS."""

    tool_execution_timeout: float = 90.0
    """Per tool call, in seconds. Covers provider retries and backoff."""
    max_tool_result_chars: int = 60_000
    """Tool results longer than this are truncated before reaching the model."""

    llm_config: Optional[Dict[str, Any]] = None
    """Per-call overrides passed to the LLM client (model, temperature, ...)."""

    def __post_init__(self) -> None:
        if not MIN_MAX_STEPS <= self.max_steps <= DEFAULT_MAX_STEPS:
            raise ValueError(
                f"max_steps must be between {MIN_MAX_STEPS} and {DEFAULT_MAX_STEPS}, "
                f"got {self.max_steps}"
            )


@dataclass
class TokenUsage:
    """Accumulated token usage counters."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class ToolCallRecord:
    """Per-call telemetry for a single tool invocation."""

    name: str
    args_summary: Dict
    """Truncated argument snapshot for observability."""
    step: int = 0
    duration_ms: int = 0
    success: bool = True
    result_chars: int = 0


@dataclass
class TurnResult:
    """Structured result returned by Orchestrator.run_turn."""

    response: str
    """Final answer shown to the user."""
    status: TurnStatus = TurnStatus.DONE
    abort_reason: Optional[AbortReason] = None
    steps: int = 0
    """Model calls made."""
    messages: List[Dict[str, Any]] = field(default_factory=list)
    """Assistant and tool messages produced during the turn, in order."""
    tool_calls: List[ToolCallRecord] = field(default_factory=list)
    token_usage: TokenUsage = field(default_factory=TokenUsage)
    duration_ms: int = 0
    error: Optional[str] = None
