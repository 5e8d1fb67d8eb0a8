"""
LeadPilot Orchestrator - Bounded multi-step tool loop for one chat turn.

Each step sends the history and the full tool catalog to the model. A reply
without tool calls ends the turn. Otherwise every requested tool runs
concurrently through the ToolRegistry, one ``tool`` message per call is
appended, and the next step begins.

A turn ends in one of four ways:

- DONE: the model answered without tools.
- ABORTED(step_budget): ``max_steps`` model calls were made; no further call.
- ABORTED(cancelled): ``cancel_event`` was set; running tools finish first.
- ERROR: a model call raised.

Usage:
    orchestrator = Orchestrator(llm_client, registry, TurnConfig(max_steps=8))
    result = await orchestrator.run_turn(
        ToolContext(tenant_id="org_1", user_id="u_1"),
        [{"role": "user", "content": "Find 10 CTOs at fintechs in Berlin"}],
    )
    print(result.status, result.response)
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, List, Optional

from ..protocols import EventSinkProtocol, LLMClientProtocol
from ..tools import ToolContext, ToolRegistry
from .audit_logger import AuditLogger
from .events import EventType, TurnEvent
from .prompts import build_system_prompt
from .react_config import (
    AbortReason,
    TokenUsage,
    ToolCallRecord,
    TurnConfig,
    TurnResult,
    TurnStatus,
)

logger = logging.getLogger(__name__)

STEP_BUDGET_FALLBACK = (
    "I ran out of steps before finishing this request. "
    "Here is what I have so far; ask me to continue if you need more."
)
CANCELLED_FALLBACK = "The request was cancelled."
ERROR_FALLBACK = "Sorry, I couldn't complete that request because the assistant service failed. Please try again."


class Orchestrator:

    def __init__(
        self,
        llm_client: LLMClientProtocol,
        registry: ToolRegistry,
        config: Optional[TurnConfig] = None,
        event_sink: Optional[EventSinkProtocol] = None,
        system_prompt: Optional[str] = None,
    ):
        if llm_client is None:
            raise ValueError("llm_client is required")
        self.llm_client = llm_client
        self.registry = registry
        self.config = config or TurnConfig()
        self.event_sink = event_sink or AuditLogger()
        self.system_prompt = system_prompt or build_system_prompt()

    async def run_turn(
        self,
        context: ToolContext,
        messages: List[Dict[str, Any]],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TurnResult:
        """
        Run one turn over ``messages`` (OpenAI chat format, no system prompt needed).

        Never raises for tool or model failures; cancellation of the calling
        task still propagates.
        """
        started = time.monotonic()
        history = self._initial_history(messages)
        produced: List[Dict[str, Any]] = []
        records: List[ToolCallRecord] = []
        usage = TokenUsage()
        catalog = self.registry.schemas()
        last_text = ""

        self._emit(TurnEvent(
            type=EventType.TURN_START,
            data={"message_count": len(messages), "tool_count": len(catalog)},
            tenant_id=context.tenant_id,
            user_id=context.user_id,
        ))

        def finish(
            response: str,
            status: TurnStatus,
            steps: int,
            reason: Optional[AbortReason] = None,
            error: Optional[str] = None,
        ) -> TurnResult:
            result = TurnResult(
                response=response,
                status=status,
                abort_reason=reason,
                steps=steps,
                messages=produced,
                tool_calls=records,
                token_usage=usage,
                duration_ms=int((time.monotonic() - started) * 1000),
                error=error,
            )
            self._emit(TurnEvent(
                type=EventType.TURN_END,
                data={
                    "status": status.value,
                    "abort_reason": reason.value if reason else None,
                    "tool_calls_count": len(records),
                    "input_tokens": usage.input_tokens,
                    "output_tokens": usage.output_tokens,
                    "duration_ms": result.duration_ms,
                },
                tenant_id=context.tenant_id,
                user_id=context.user_id,
                step=steps,
            ))
            logger.info(
                f"[Turn] tenant={context.tenant_id} status={status.value}"
                f"{'/' + reason.value if reason else ''} steps={steps} tools={len(records)}"
            )
            return result

        for step in range(1, self.config.max_steps + 1):
            if cancel_event is not None and cancel_event.is_set():
                return finish(last_text or CANCELLED_FALLBACK, TurnStatus.ABORTED, step - 1,
                              AbortReason.CANCELLED)

            self._emit(TurnEvent(
                type=EventType.STEP_START, data={}, tenant_id=context.tenant_id,
                user_id=context.user_id, step=step,
            ))

            try:
                response = await self.llm_client.chat_completion(
                    messages=history,
                    tools=catalog or None,
                    config=self.config.llm_config,
                )
            except Exception as e:
                logger.error(f"[Turn] step={step} model call failed: {e}", exc_info=True)
                self._emit(TurnEvent(
                    type=EventType.ERROR, data={"error": str(e)},
                    tenant_id=context.tenant_id, user_id=context.user_id, step=step,
                ))
                return finish(ERROR_FALLBACK, TurnStatus.ERROR, step, error=str(e))

            self._add_usage(usage, response)
            content = getattr(response, "content", None) or ""
            tool_calls = getattr(response, "tool_calls", None) or []

            if not tool_calls:
                final = {"role": "assistant", "content": content}
                history.append(final)
                produced.append(final)
                self._emit(TurnEvent(
                    type=EventType.STEP_END,
                    data={"tool_calls": [], "final_answer": True},
                    tenant_id=context.tenant_id, user_id=context.user_id, step=step,
                ))
                return finish(content, TurnStatus.DONE, step)

            if content:
                last_text = content

            # Stop requested while the model was thinking: none of these calls start.
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"[Turn] step={step} cancelled before running {len(tool_calls)} tool call(s)")
                return finish(last_text or CANCELLED_FALLBACK, TurnStatus.ABORTED, step,
                              AbortReason.CANCELLED)

            assistant_msg = self._assistant_message_from_response(response)
            history.append(assistant_msg)
            produced.append(assistant_msg)

            tool_names = [tc.name for tc in tool_calls]
            logger.info(f"[Turn] step={step} calling: {', '.join(tool_names)}")
            for tc in tool_calls:
                self._emit(TurnEvent(
                    type=EventType.TOOL_CALL_START,
                    data={"tool_name": tc.name, "call_id": tc.id},
                    tenant_id=context.tenant_id, user_id=context.user_id, step=step,
                ))

            batch_start = time.monotonic()
            results = await asyncio.gather(
                *[self._execute_with_timeout(tc, context) for tc in tool_calls],
                return_exceptions=True,
            )
            batch_ms = int((time.monotonic() - batch_start) * 1000)

            for tc, result in zip(tool_calls, results):
                if isinstance(result, BaseException):
                    logger.warning(f"[Turn]   tool={tc.name} ERROR: {result!r}")
                    result = {
                        "success": False,
                        "error": f"Error executing {tc.name}: {result or type(result).__name__}",
                    }
                text = self._cap_tool_result(json.dumps(result, ensure_ascii=False, default=str))
                tool_msg = self._build_tool_result_message(tc.id, text)
                history.append(tool_msg)
                produced.append(tool_msg)

                success = bool(result.get("success", False))
                arguments = tc.arguments if isinstance(tc.arguments, dict) else {}
                args_summary = {k: str(v)[:100] for k, v in arguments.items()}
                records.append(ToolCallRecord(
                    name=tc.name, args_summary=args_summary, step=step,
                    duration_ms=batch_ms, success=success, result_chars=len(text),
                ))
                self._emit(TurnEvent(
                    type=EventType.TOOL_RESULT,
                    data={
                        "tool_name": tc.name,
                        "call_id": tc.id,
                        "args_summary": args_summary,
                        "success": success,
                        "error": None if success else result.get("error"),
                        "duration_ms": batch_ms,
                    },
                    tenant_id=context.tenant_id, user_id=context.user_id, step=step,
                ))

            self._emit(TurnEvent(
                type=EventType.STEP_END,
                data={"tool_calls": tool_names, "final_answer": False},
                tenant_id=context.tenant_id, user_id=context.user_id, step=step,
            ))

        logger.warning(f"[Turn] step budget of {self.config.max_steps} exhausted")
        return finish(last_text or STEP_BUDGET_FALLBACK, TurnStatus.ABORTED,
                      self.config.max_steps, AbortReason.STEP_BUDGET)

    # ==========================================================================
    # HELPERS
    # ==========================================================================

    def _initial_history(self, messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        history = [dict(m) for m in messages]
        if not history or history[0].get("role") != "system":
            history.insert(0, {"role": "system", "content": self.system_prompt})
        return history

    async def _execute_with_timeout(self, tool_call: Any, context: ToolContext) -> Dict[str, Any]:
        arguments = tool_call.arguments if isinstance(tool_call.arguments, dict) else {}
        try:
            return await asyncio.wait_for(
                self.registry.invoke(tool_call.name, arguments, context),
                timeout=self.config.tool_execution_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"[Turn] tool={tool_call.name} timed out after {self.config.tool_execution_timeout}s")
            return {
                "success": False,
                "error": f"{tool_call.name} timed out after {self.config.tool_execution_timeout:.0f}s",
                "error_type": "timeout",
            }

    def _emit(self, event: TurnEvent) -> None:
        try:
            self.event_sink.emit(event)
        except Exception as e:
            logger.warning(f"Event sink failed on {event.type.value}: {e}")

    @staticmethod
    def _add_usage(total: TokenUsage, response: Any) -> None:
        usage = getattr(response, "usage", None)
        if usage:
            total.input_tokens += getattr(usage, "prompt_tokens", 0) or 0
            total.output_tokens += getattr(usage, "completion_tokens", 0) or 0

    def _cap_tool_result(self, result_text: str) -> str:
        limit = self.config.max_tool_result_chars
        if len(result_text) <= limit:
            return result_text
        return result_text[:limit] + f"\n...[truncated {len(result_text) - limit} chars]"

    @staticmethod
    def _build_tool_result_message(tool_call_id: str, content: str) -> Dict[str, Any]:
        """Build a tool result message for the LLM messages list."""
        return {
            "role": "tool",
            "tool_call_id": tool_call_id,
            "content": content,
        }

    @staticmethod
    def _assistant_message_from_response(response: Any) -> Dict[str, Any]:
        """Convert LLMResponse to dict for the messages list."""
        msg: Dict[str, Any] = {
            "role": "assistant",
            "content": getattr(response, "content", None) or None,
        }
        tool_calls = getattr(response, "tool_calls", None)
        if tool_calls:
            msg["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {
                        "name": tc.name,
                        "arguments": json.dumps(tc.arguments) if isinstance(tc.arguments, dict) else tc.arguments,
                    },
                }
                for tc in tool_calls
            ]
        return msg
