"""Classification of decoded stream payloads into event models."""

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from playground.models.events import (
    ContentDeltaEvent,
    EventKind,
    MemoryUpdateEvent,
    ReasoningCompletedEvent,
    ReasoningStepEvent,
    RunCompletedEvent,
    RunErrorEvent,
    RunEvent,
    RunStartedEvent,
    StreamEvent,
    ToolCallDeltaEvent,
)
from playground.models.messages import ExtraData, ResponseAudio, ToolCall
from playground.utils.logging import get_logger

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

EVENT_KINDS: dict[RunEvent, EventKind] = {
    RunEvent.RUN_STARTED: EventKind.RUN_STARTED,
    RunEvent.TEAM_RUN_STARTED: EventKind.RUN_STARTED,
    RunEvent.REASONING_STARTED: EventKind.RUN_STARTED,
    RunEvent.TEAM_REASONING_STARTED: EventKind.RUN_STARTED,
    RunEvent.RUN_RESPONSE: EventKind.CONTENT_DELTA,
    RunEvent.RUN_RESPONSE_CONTENT: EventKind.CONTENT_DELTA,
    RunEvent.TEAM_RUN_RESPONSE_CONTENT: EventKind.CONTENT_DELTA,
    RunEvent.TOOL_CALL_STARTED: EventKind.TOOL_CALL_DELTA,
    RunEvent.TOOL_CALL_COMPLETED: EventKind.TOOL_CALL_DELTA,
    RunEvent.TEAM_TOOL_CALL_STARTED: EventKind.TOOL_CALL_DELTA,
    RunEvent.TEAM_TOOL_CALL_COMPLETED: EventKind.TOOL_CALL_DELTA,
    RunEvent.REASONING_STEP: EventKind.REASONING_STEP,
    RunEvent.TEAM_REASONING_STEP: EventKind.REASONING_STEP,
    RunEvent.REASONING_COMPLETED: EventKind.REASONING_COMPLETED,
    RunEvent.TEAM_REASONING_COMPLETED: EventKind.REASONING_COMPLETED,
    RunEvent.RUN_ERROR: EventKind.RUN_ERROR,
    RunEvent.TEAM_RUN_ERROR: EventKind.RUN_ERROR,
    RunEvent.RUN_CANCELLED: EventKind.RUN_ERROR,
    RunEvent.TEAM_RUN_CANCELLED: EventKind.RUN_ERROR,
    RunEvent.UPDATING_MEMORY: EventKind.MEMORY_UPDATE,
    RunEvent.TEAM_MEMORY_UPDATE_STARTED: EventKind.MEMORY_UPDATE,
    RunEvent.TEAM_MEMORY_UPDATE_COMPLETED: EventKind.MEMORY_UPDATE,
    RunEvent.RUN_COMPLETED: EventKind.RUN_COMPLETED,
    RunEvent.TEAM_RUN_COMPLETED: EventKind.RUN_COMPLETED,
}

CANCELLED_EVENTS = {RunEvent.RUN_CANCELLED, RunEvent.TEAM_RUN_CANCELLED}


def classify_event(payload: dict[str, Any]) -> StreamEvent | None:
    """Map a decoded payload to an event model.

    Args:
        payload: JSON object decoded from one stream frame

    Returns:
        The classified event, or None for unknown or missing event names
    """
    name = payload.get("event")
    if not isinstance(name, str):
        logger.debug(f"Ignoring payload without event name: {list(payload)}")
        return None

    try:
        run_event = RunEvent(name)
    except ValueError:
        logger.debug(f"Ignoring unknown event: {name}")
        return None

    kind = EVENT_KINDS[run_event]
    common: dict[str, Any] = {
        "name": name,
        "scope": "team" if name.startswith("Team") else "agent",
        "session_id": _optional_str(payload.get("session_id")),
        "created_at": _optional_number(payload.get("created_at")),
    }

    match kind:
        case EventKind.RUN_STARTED:
            return RunStartedEvent(**common)
        case EventKind.CONTENT_DELTA:
            return ContentDeltaEvent(**common, **_content_fields(payload), **_tool_fields(payload))
        case EventKind.TOOL_CALL_DELTA:
            return ToolCallDeltaEvent(**common, **_tool_fields(payload))
        case EventKind.REASONING_STEP:
            return ReasoningStepEvent(**common, extra_data=_model(ExtraData, payload.get("extra_data")))
        case EventKind.REASONING_COMPLETED:
            return ReasoningCompletedEvent(**common, extra_data=_model(ExtraData, payload.get("extra_data")))
        case EventKind.RUN_ERROR:
            return RunErrorEvent(**common, content=payload.get("content"), cancelled=run_event in CANCELLED_EVENTS)
        case EventKind.MEMORY_UPDATE:
            return MemoryUpdateEvent(**common)
        case EventKind.RUN_COMPLETED:
            return RunCompletedEvent(**common, **_content_fields(payload), **_tool_fields(payload))


def _content_fields(payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "content": payload.get("content"),
        "extra_data": _model(ExtraData, payload.get("extra_data")),
        "images": _optional_list(payload.get("images")),
        "videos": _optional_list(payload.get("videos")),
        "audio": payload.get("audio"),
        "response_audio": _model(ResponseAudio, payload.get("response_audio")),
    }


def _tool_fields(payload: dict[str, Any]) -> dict[str, Any]:
    tools = payload.get("tools")
    parsed_tools = None
    if isinstance(tools, list):
        parsed_tools = [tool for raw in tools if (tool := _model(ToolCall, raw)) is not None]
    return {"tool": _model(ToolCall, payload.get("tool")), "tools": parsed_tools}


def _model(model: type[M], value: Any) -> M | None:
    """Validate a nested object, treating malformed values as absent."""
    if not isinstance(value, dict):
        return None
    try:
        return model.model_validate(value)
    except ValidationError as e:
        logger.warning(f"Ignoring malformed {model.__name__} in stream event: {e.error_count()} errors")
        return None


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _optional_number(value: Any) -> int | float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return value


def _optional_list(value: Any) -> list[Any] | None:
    return value if isinstance(value, list) else None
