"""Tests for leadpilot.orchestrator.orchestrator: the bounded tool loop"""

import asyncio
import json
import logging

import pytest
from pydantic import BaseModel

from leadpilot.llm import LLMResponse, ToolCall, Usage
from leadpilot.orchestrator import (
    AbortReason,
    AuditLogger,
    EventType,
    Orchestrator,
    TurnConfig,
    TurnStatus,
)
from leadpilot.orchestrator.orchestrator import ERROR_FALLBACK, STEP_BUDGET_FALLBACK
from leadpilot.tools import ToolContext, ToolDefinition, ToolRegistry


# =========================================================================
# Fakes
# =========================================================================


class ScriptedLLM:
    """Returns scripted responses in order, repeating the last one."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def chat_completion(self, messages, tools=None, config=None, **kwargs):
        self.calls.append({"messages": [dict(m) for m in messages], "tools": tools})
        response = self.responses[min(len(self.calls) - 1, len(self.responses) - 1)]
        if isinstance(response, Exception):
            raise response
        return response


class FailingLLM:
    async def chat_completion(self, messages, tools=None, config=None, **kwargs):
        raise RuntimeError("upstream 500")


class StoppedMidCallLLM(ScriptedLLM):
    """Sets the stop event while the model call is in flight."""

    def __init__(self, stop_event, *responses):
        super().__init__(*responses)
        self.stop_event = stop_event

    async def chat_completion(self, messages, tools=None, config=None, **kwargs):
        self.stop_event.set()
        return await super().chat_completion(messages, tools=tools, config=config, **kwargs)


class RecordingSink:
    def __init__(self):
        self.events = []

    def emit(self, event):
        self.events.append(event)


class BrokenSink:
    def emit(self, event):
        raise RuntimeError("sink down")


class EchoInput(BaseModel):
    text: str = ""


class SleepInput(BaseModel):
    seconds: float = 1.0


def _tool_call(name="echo", call_id="call_1", **arguments):
    return ToolCall(id=call_id, name=name, arguments=arguments)


def _tool_response(*calls, content=""):
    return LLMResponse(content=content, tool_calls=list(calls), usage=Usage(prompt_tokens=10, completion_tokens=5))


def _final(text="All done."):
    return LLMResponse(content=text, usage=Usage(prompt_tokens=10, completion_tokens=5))


def _registry(invocations=None, cancel_event=None):
    invocations = invocations if invocations is not None else []
    registry = ToolRegistry()

    async def echo(args, context, services):
        invocations.append(("echo", args.text, context.tenant_id))
        return {"success": True, "echo": args.text}

    async def explode(args, context, services):
        invocations.append(("explode", None, context.tenant_id))
        raise RuntimeError("tool exploded")

    async def sleepy(args, context, services):
        await asyncio.sleep(args.seconds)
        return {"success": True}

    async def cancel(args, context, services):
        cancel_event.set()
        return {"success": True}

    registry.register(ToolDefinition(name="echo", description="Echo", input_model=EchoInput, executor=echo))
    registry.register(ToolDefinition(name="explode", description="Fail", input_model=EchoInput, executor=explode))
    registry.register(ToolDefinition(name="sleepy", description="Sleep", input_model=SleepInput, executor=sleepy))
    registry.register(ToolDefinition(name="cancel", description="Cancel", input_model=EchoInput, executor=cancel))
    return registry


CTX = ToolContext(tenant_id="org_1", user_id="u_1")
USER = [{"role": "user", "content": "Find CTOs"}]


# =========================================================================
# TurnConfig
# =========================================================================


class TestTurnConfig:

    @pytest.mark.parametrize("steps", [4, 11, 0])
    def test_rejects_out_of_range(self, steps):
        with pytest.raises(ValueError):
            TurnConfig(max_steps=steps)

    @pytest.mark.parametrize("steps", [5, 10])
    def test_accepts_bounds(self, steps):
        assert TurnConfig(max_steps=steps).max_steps == steps


# =========================================================================
# Turn outcomes
# =========================================================================


class TestRunTurn:

    @pytest.mark.asyncio
    async def test_final_answer_done(self):
        llm = ScriptedLLM(_final("Here you go."))
        result = await Orchestrator(llm, _registry()).run_turn(CTX, USER)
        assert result.status is TurnStatus.DONE
        assert result.response == "Here you go."
        assert result.steps == 1
        assert result.messages == [{"role": "assistant", "content": "Here you go."}]
        assert llm.calls[0]["messages"][0]["role"] == "system"
        assert {t["function"]["name"] for t in llm.calls[0]["tools"]} == {"echo", "explode", "sleepy", "cancel"}

    @pytest.mark.asyncio
    async def test_tool_then_answer(self):
        invocations = []
        llm = ScriptedLLM(_tool_response(_tool_call(text="hi")), _final())
        result = await Orchestrator(llm, _registry(invocations)).run_turn(CTX, USER)
        assert result.status is TurnStatus.DONE
        assert result.steps == 2
        assert invocations == [("echo", "hi", "org_1")]
        assert [m["role"] for m in result.messages] == ["assistant", "tool", "assistant"]
        assert json.loads(result.messages[1]["content"]) == {"success": True, "echo": "hi"}
        assert result.token_usage.total == 30
        assert result.tool_calls[0].name == "echo"

    @pytest.mark.asyncio
    async def test_step_budget_exhausted(self):
        invocations = []
        llm = ScriptedLLM(_tool_response(_tool_call(text="again")))
        result = await Orchestrator(llm, _registry(invocations), TurnConfig(max_steps=5)).run_turn(CTX, USER)
        assert result.status is TurnStatus.ABORTED
        assert result.abort_reason is AbortReason.STEP_BUDGET
        assert len(llm.calls) == 5
        assert len(invocations) == 5
        assert result.steps == 5
        assert result.response == STEP_BUDGET_FALLBACK

    @pytest.mark.asyncio
    async def test_step_budget_keeps_last_text(self):
        llm = ScriptedLLM(_tool_response(_tool_call(), content="Searching..."))
        result = await Orchestrator(llm, _registry(), TurnConfig(max_steps=5)).run_turn(CTX, USER)
        assert result.response == "Searching..."

    @pytest.mark.asyncio
    async def test_model_error(self):
        result = await Orchestrator(FailingLLM(), _registry()).run_turn(CTX, USER)
        assert result.status is TurnStatus.ERROR
        assert result.response == ERROR_FALLBACK
        assert "upstream 500" in result.error

    @pytest.mark.asyncio
    async def test_model_error_after_tools(self):
        llm = ScriptedLLM(_tool_response(_tool_call()), RuntimeError("overloaded"))
        result = await Orchestrator(llm, _registry()).run_turn(CTX, USER)
        assert result.status is TurnStatus.ERROR
        assert result.steps == 2
        assert len(result.tool_calls) == 1

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self):
        event = asyncio.Event()
        event.set()
        llm = ScriptedLLM(_final())
        result = await Orchestrator(llm, _registry()).run_turn(CTX, USER, cancel_event=event)
        assert result.status is TurnStatus.ABORTED
        assert result.abort_reason is AbortReason.CANCELLED
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_cancelled_between_steps(self):
        event = asyncio.Event()
        llm = ScriptedLLM(_tool_response(_tool_call("cancel")), _final())
        result = await Orchestrator(llm, _registry(cancel_event=event)).run_turn(CTX, USER, cancel_event=event)
        assert result.abort_reason is AbortReason.CANCELLED
        assert len(llm.calls) == 1
        assert result.steps == 1
        assert [m["role"] for m in result.messages] == ["assistant", "tool"]

    @pytest.mark.asyncio
    async def test_cancelled_during_model_call_runs_no_tools(self):
        event = asyncio.Event()
        invocations = []
        llm = StoppedMidCallLLM(event, _tool_response(_tool_call("echo", text="send it"), content="Sending now"))
        result = await Orchestrator(llm, _registry(invocations)).run_turn(CTX, USER, cancel_event=event)
        assert result.status is TurnStatus.ABORTED
        assert result.abort_reason is AbortReason.CANCELLED
        assert invocations == []
        assert result.tool_calls == []
        assert result.steps == 1
        assert result.response == "Sending now"
        assert result.messages == []


# =========================================================================
# Tool execution
# =========================================================================


class TestToolExecution:

    @pytest.mark.asyncio
    async def test_parallel_calls_keep_order(self):
        llm = ScriptedLLM(
            _tool_response(
                _tool_call("echo", "c1", text="a"),
                _tool_call("explode", "c2"),
                _tool_call("echo", "c3", text="b"),
            ),
            _final(),
        )
        result = await Orchestrator(llm, _registry()).run_turn(CTX, USER)
        tool_msgs = [m for m in result.messages if m["role"] == "tool"]
        assert [m["tool_call_id"] for m in tool_msgs] == ["c1", "c2", "c3"]
        failed = json.loads(tool_msgs[1]["content"])
        assert failed["success"] is False
        assert "tool exploded" in failed["error"]
        assert [r.success for r in result.tool_calls] == [True, False, True]
        assert result.status is TurnStatus.DONE

    @pytest.mark.asyncio
    async def test_tool_timeout(self):
        llm = ScriptedLLM(_tool_response(_tool_call("sleepy", seconds=5)), _final())
        config = TurnConfig(tool_execution_timeout=0.01)
        result = await Orchestrator(llm, _registry(), config).run_turn(CTX, USER)
        payload = json.loads(result.messages[1]["content"])
        assert payload["error_type"] == "timeout"

    @pytest.mark.asyncio
    async def test_unknown_tool_is_a_result(self):
        llm = ScriptedLLM(_tool_response(_tool_call("nope")), _final())
        result = await Orchestrator(llm, _registry()).run_turn(CTX, USER)
        assert json.loads(result.messages[1]["content"])["error_type"] == "unknown_tool"

    @pytest.mark.asyncio
    async def test_large_result_truncated(self):
        llm = ScriptedLLM(_tool_response(_tool_call(text="x" * 500)), _final())
        config = TurnConfig(max_tool_result_chars=100)
        result = await Orchestrator(llm, _registry(), config).run_turn(CTX, USER)
        content = result.messages[1]["content"]
        assert content.startswith('{"success": true')
        assert "[truncated" in content


# =========================================================================
# Events
# =========================================================================


class TestEvents:

    @pytest.mark.asyncio
    async def test_event_sequence(self):
        sink = RecordingSink()
        llm = ScriptedLLM(_tool_response(_tool_call()), _final())
        await Orchestrator(llm, _registry(), event_sink=sink).run_turn(CTX, USER)
        types = [e.type for e in sink.events]
        assert types == [
            EventType.TURN_START,
            EventType.STEP_START, EventType.TOOL_CALL_START, EventType.TOOL_RESULT, EventType.STEP_END,
            EventType.STEP_START, EventType.STEP_END,
            EventType.TURN_END,
        ]
        assert all(e.tenant_id == "org_1" for e in sink.events)

    @pytest.mark.asyncio
    async def test_broken_sink_does_not_break_turn(self):
        llm = ScriptedLLM(_final())
        result = await Orchestrator(llm, _registry(), event_sink=BrokenSink()).run_turn(CTX, USER)
        assert result.status is TurnStatus.DONE

    @pytest.mark.asyncio
    async def test_audit_logger_writes_json(self, caplog):
        llm = ScriptedLLM(_tool_response(_tool_call(text="hi")), _final())
        with caplog.at_level(logging.INFO, logger="leadpilot.audit"):
            await Orchestrator(llm, _registry(), event_sink=AuditLogger()).run_turn(CTX, USER)
        entries = [json.loads(r.getMessage()) for r in caplog.records if r.name == "leadpilot.audit"]
        tool_entries = [e for e in entries if e["event_type"] == "tool_execution"]
        assert tool_entries[0]["tool_name"] == "echo"
        assert tool_entries[0]["tenant_id"] == "org_1"
        assert tool_entries[0]["args_summary"] == {"text": "hi"}
