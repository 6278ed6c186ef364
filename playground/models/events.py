"""Run stream event models."""

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from playground.models.messages import ExtraData, ResponseAudio, ToolCall


class RunEvent(StrEnum):
    """Event names emitted by playground backends."""

    RUN_STARTED = "RunStarted"
    RUN_RESPONSE = "RunResponse"
    RUN_RESPONSE_CONTENT = "RunResponseContent"
    RUN_COMPLETED = "RunCompleted"
    RUN_ERROR = "RunError"
    RUN_CANCELLED = "RunCancelled"
    TOOL_CALL_STARTED = "ToolCallStarted"
    TOOL_CALL_COMPLETED = "ToolCallCompleted"
    REASONING_STARTED = "ReasoningStarted"
    REASONING_STEP = "ReasoningStep"
    REASONING_COMPLETED = "ReasoningCompleted"
    UPDATING_MEMORY = "UpdatingMemory"

    TEAM_RUN_STARTED = "TeamRunStarted"
    TEAM_RUN_RESPONSE_CONTENT = "TeamRunResponseContent"
    TEAM_RUN_COMPLETED = "TeamRunCompleted"
    TEAM_RUN_ERROR = "TeamRunError"
    TEAM_RUN_CANCELLED = "TeamRunCancelled"
    TEAM_TOOL_CALL_STARTED = "TeamToolCallStarted"
    TEAM_TOOL_CALL_COMPLETED = "TeamToolCallCompleted"
    TEAM_REASONING_STARTED = "TeamReasoningStarted"
    TEAM_REASONING_STEP = "TeamReasoningStep"
    TEAM_REASONING_COMPLETED = "TeamReasoningCompleted"
    TEAM_MEMORY_UPDATE_STARTED = "TeamMemoryUpdateStarted"
    TEAM_MEMORY_UPDATE_COMPLETED = "TeamMemoryUpdateCompleted"


class EventKind(StrEnum):
    """Logical event kinds; team and agent variants share a kind."""

    RUN_STARTED = "run_started"
    CONTENT_DELTA = "content_delta"
    TOOL_CALL_DELTA = "tool_call_delta"
    REASONING_STEP = "reasoning_step"
    REASONING_COMPLETED = "reasoning_completed"
    RUN_ERROR = "run_error"
    MEMORY_UPDATE = "memory_update"
    RUN_COMPLETED = "run_completed"


ContentMode = Literal["cumulative", "incremental"]
EventScope = Literal["agent", "team"]


class BaseStreamEvent(BaseModel):
    """Attributes shared by every classified event."""

    name: str
    scope: EventScope = "agent"
    session_id: str | None = None
    created_at: int | float | None = None

    class Config:
        frozen = True


class RunStartedEvent(BaseStreamEvent):
    kind: Literal[EventKind.RUN_STARTED] = EventKind.RUN_STARTED


class ContentDeltaEvent(BaseStreamEvent):
    """A piece of agent output, possibly carrying tool calls, reasoning and media."""

    kind: Literal[EventKind.CONTENT_DELTA] = EventKind.CONTENT_DELTA
    content: Any = None
    content_mode: ContentMode = "cumulative"
    tool: ToolCall | None = None
    tools: list[ToolCall] | None = None
    extra_data: ExtraData | None = None
    images: list[Any] | None = None
    videos: list[Any] | None = None
    audio: Any = None
    response_audio: ResponseAudio | None = None


class ToolCallDeltaEvent(BaseStreamEvent):
    kind: Literal[EventKind.TOOL_CALL_DELTA] = EventKind.TOOL_CALL_DELTA
    tool: ToolCall | None = None
    tools: list[ToolCall] | None = None


class ReasoningStepEvent(BaseStreamEvent):
    kind: Literal[EventKind.REASONING_STEP] = EventKind.REASONING_STEP
    extra_data: ExtraData | None = None


class ReasoningCompletedEvent(BaseStreamEvent):
    kind: Literal[EventKind.REASONING_COMPLETED] = EventKind.REASONING_COMPLETED
    extra_data: ExtraData | None = None


class RunErrorEvent(BaseStreamEvent):
    """The backend reported a failed or cancelled run."""

    kind: Literal[EventKind.RUN_ERROR] = EventKind.RUN_ERROR
    content: Any = None
    cancelled: bool = False


class MemoryUpdateEvent(BaseStreamEvent):
    kind: Literal[EventKind.MEMORY_UPDATE] = EventKind.MEMORY_UPDATE


class RunCompletedEvent(BaseStreamEvent):
    """Final, authoritative state of the agent response."""

    kind: Literal[EventKind.RUN_COMPLETED] = EventKind.RUN_COMPLETED
    content: Any = None
    tool: ToolCall | None = None
    tools: list[ToolCall] | None = None
    extra_data: ExtraData | None = None
    images: list[Any] | None = None
    videos: list[Any] | None = None
    audio: Any = None
    response_audio: ResponseAudio | None = None


StreamEvent = Annotated[
    RunStartedEvent
    | ContentDeltaEvent
    | ToolCallDeltaEvent
    | ReasoningStepEvent
    | ReasoningCompletedEvent
    | RunErrorEvent
    | MemoryUpdateEvent
    | RunCompletedEvent,
    Field(discriminator="kind"),
]
