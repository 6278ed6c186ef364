"""Normalization of fetched session histories into transcript messages."""

import time
from typing import Any

from playground.models.history import (
    FlatMessage,
    FlatMessageHistory,
    HistoryShape,
    RunLogEntry,
    RunLogHistory,
    SessionHistory,
)
from playground.models.messages import Message, ToolCall
from playground.utils.formatting import render_content
from playground.utils.logging import get_logger

logger = get_logger(__name__)

# Flat history roles shown in the transcript; anything else (system, tool) is skipped
FLAT_ROLES = {"user": "user", "assistant": "agent", "agent": "agent"}


def parse_session_history(payload: dict[str, Any], shape: HistoryShape) -> SessionHistory:
    """Build the tagged history variant from a raw session payload.

    Args:
        payload: Session object returned by the backend
        shape: History shape declared by the backend route; dynamic agents
            return a flat ``messages`` list, agents and teams return past
            runs either at the top level or under ``memory``

    Returns:
        The history variant for the declared shape
    """
    match shape:
        case "flat":
            return FlatMessageHistory.model_validate(
                {"session_id": payload.get("session_id"), "messages": payload.get("messages") or []}
            )
        case "run_log":
            runs = payload.get("runs")
            if runs is None:
                runs = (payload.get("memory") or {}).get("runs")
            return RunLogHistory.model_validate({"session_id": payload.get("session_id"), "runs": runs or []})
    raise ValueError(f"Unknown history shape: {shape}")


def normalize_history(history: SessionHistory) -> list[Message]:
    """Convert either history shape into transcript messages."""
    match history:
        case RunLogHistory():
            return [message for run in history.runs for message in _run_messages(run)]
        case FlatMessageHistory():
            return [message for item in history.messages if (message := _flat_message(item)) is not None]
    raise TypeError(f"Unsupported session history: {type(history).__name__}")


def _flat_message(item: FlatMessage) -> Message | None:
    role = FLAT_ROLES.get(item.role)
    if role is None:
        logger.debug(f"Skipping {item.role} message in flat history")
        return None
    return Message(role=role, content=render_content(item.content), created_at=item.timestamp)


def _run_messages(run: RunLogEntry) -> list[Message]:
    messages: list[Message] = []

    if run.message is not None:
        messages.append(
            Message(
                role="user",
                content=render_content(run.message.content),
                created_at=run.message.created_at,
            )
        )

    if run.response is not None:
        response = run.response
        tool_calls = list(response.tools or [])
        if response.extra_data and response.extra_data.reasoning_messages:
            tool_calls.extend(
                reasoning_tool_call(msg) for msg in response.extra_data.reasoning_messages if msg.get("role") == "tool"
            )

        messages.append(
            Message(
                role="agent",
                content=render_content(response.content),
                tool_calls=tool_calls,
                extra_data=response.extra_data,
                images=response.images,
                videos=response.videos,
                audio=response.audio,
                response_audio=response.response_audio,
                created_at=response.created_at,
            )
        )

    return messages


def reasoning_tool_call(message: dict[str, Any]) -> ToolCall:
    """Convert a reasoning message with role ``tool`` into a tool call."""
    created_at = message.get("created_at")
    return ToolCall(
        role="tool",
        content=message.get("content"),
        tool_call_id=message.get("tool_call_id") or "",
        tool_name=message.get("tool_name") or "",
        tool_args=message.get("tool_args") or {},
        tool_call_error=message.get("tool_call_error") or False,
        metrics=message.get("metrics") or {"time": 0},
        created_at=created_at if created_at is not None else int(time.time()),
    )
