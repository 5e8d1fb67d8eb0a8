"""
Conversation reconciliation and message format conversion.

Stored messages use ``{id, role, content, parts, created_at}``; a single
assistant message may hold a whole turn as an ordered list of parts
(``text``, ``tool_call``, ``tool_result``). The model consumes OpenAI chat
messages. This module converts both ways and decides which history a turn
starts from.

The persisted transcript wins over the client's copy. The client only ever
contributes its newest message, and only when the store has not seen it.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

MISSING_RESULT = json.dumps({"success": False, "error": "No result was recorded for this tool call"})


def _normalize_stored(message: Dict[str, Any]) -> Dict[str, Any]:
    parts = message.get("parts") or [{"type": "text", "text": message.get("content") or ""}]
    return {
        "id": message.get("id"),
        "role": message.get("role"),
        "content": message.get("content") or "",
        "parts": parts,
        "created_at": message.get("created_at"),
    }


def reconcile(
    persisted: Optional[Dict[str, Any]],
    client_messages: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """
    Effective history for a turn.

    - No persisted transcript, or one with no messages: the client's list as is.
    - Otherwise the persisted messages, plus the client's last message if its
      id is not among them.
    """
    stored = (persisted or {}).get("messages") or []
    if not stored:
        return list(client_messages)

    base = [_normalize_stored(m) for m in stored]
    if not client_messages:
        return base

    last = client_messages[-1]
    known_ids = {m["id"] for m in base}
    if last.get("id") not in known_ids:
        logger.debug(f"Reconcile: appending new client message {last.get('id')} to {len(base)} stored")
        return base + [last]
    logger.debug(f"Reconcile: using {len(base)} stored messages only")
    return base


def message_text(message: Dict[str, Any]) -> str:
    """Concatenated text parts, falling back to ``content``."""
    parts = message.get("parts")
    if parts:
        texts = [p.get("text", "") for p in parts if p.get("type") == "text" and p.get("text")]
        if texts:
            return "\n".join(texts)
    content = message.get("content")
    return content if isinstance(content, str) else ""


def _assistant_messages(parts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    text: List[str] = []
    calls: List[Dict[str, Any]] = []
    results: Dict[str, str] = {}

    def flush() -> None:
        if calls:
            out.append({
                "role": "assistant",
                "content": "\n".join(text) or None,
                "tool_calls": [
                    {
                        "id": c["id"],
                        "type": "function",
                        "function": {
                            "name": c["name"],
                            "arguments": json.dumps(c.get("arguments") or {}),
                        },
                    }
                    for c in calls
                ],
            })
            for c in calls:
                out.append({
                    "role": "tool",
                    "tool_call_id": c["id"],
                    "content": results.get(c["id"], MISSING_RESULT),
                })
        elif text:
            out.append({"role": "assistant", "content": "\n".join(text)})
        text.clear()
        calls.clear()
        results.clear()

    for part in parts:
        kind = part.get("type")
        if kind == "text":
            if calls and results:
                flush()
            if part.get("text"):
                text.append(part["text"])
        elif kind == "tool_call":
            if results:
                flush()
            calls.append(part)
        elif kind == "tool_result":
            output = part.get("output")
            results[part.get("tool_call_id")] = output if isinstance(output, str) else json.dumps(output, default=str)
    flush()
    return out


def to_model_messages(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Convert stored messages to OpenAI chat messages.

    Every tool call is paired with exactly one tool message; a call whose
    result was never stored gets a synthetic error result.
    """
    out: List[Dict[str, Any]] = []
    for message in messages:
        role = message.get("role")
        if role == "assistant":
            parts = message.get("parts")
            if parts and any(p.get("type") in ("tool_call", "tool_result") for p in parts):
                out.extend(_assistant_messages(parts))
            else:
                out.append({"role": "assistant", "content": message_text(message)})
        elif role in ("user", "system"):
            out.append({"role": role, "content": message_text(message)})
        else:
            logger.debug(f"Skipping stored message with role {role!r}")
    return out


def to_stored_message(
    model_messages: List[Dict[str, Any]],
    final_text: Optional[str] = None,
) -> Dict[str, Any]:
    """Fold a turn's assistant/tool messages into one stored assistant message."""
    parts: List[Dict[str, Any]] = []
    names: Dict[str, str] = {}
    for message in model_messages:
        if message.get("role") == "assistant":
            if message.get("content"):
                parts.append({"type": "text", "text": message["content"]})
            for call in message.get("tool_calls") or []:
                function = call.get("function", {})
                try:
                    arguments = json.loads(function.get("arguments") or "{}")
                except json.JSONDecodeError:
                    arguments = {}
                names[call["id"]] = function.get("name", "")
                parts.append({
                    "type": "tool_call",
                    "id": call["id"],
                    "name": function.get("name", ""),
                    "arguments": arguments,
                })
        elif message.get("role") == "tool":
            call_id = message.get("tool_call_id")
            parts.append({
                "type": "tool_result",
                "tool_call_id": call_id,
                "name": names.get(call_id, ""),
                "output": message.get("content", ""),
            })

    last_text = parts[-1].get("text") if parts and parts[-1]["type"] == "text" else None
    if final_text and final_text != last_text:
        parts.append({"type": "text", "text": final_text})

    return {
        "id": uuid.uuid4().hex,
        "role": "assistant",
        "content": final_text or "",
        "parts": parts,
        "created_at": datetime.now(timezone.utc),
    }
