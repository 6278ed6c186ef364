"""Conversation state transitions driven by run stream events.

Every function here is pure: it takes a ``ConversationState`` and returns a
new one. Messages are never mutated in place; the pending agent message is
replaced by an updated copy.
"""

import json
import time
from collections.abc import Sequence
from enum import StrEnum
from typing import Any

from pydantic import BaseModel

from playground.models.events import (
    ContentDeltaEvent,
    MemoryUpdateEvent,
    ReasoningCompletedEvent,
    ReasoningStepEvent,
    RunCompletedEvent,
    RunErrorEvent,
    RunStartedEvent,
    StreamEvent,
    ToolCallDeltaEvent,
)
from playground.models.messages import ExtraData, Message, ResponseAudio
from playground.models.session import SessionEntry
from playground.services.tool_calls import merge_chunk_tool_calls
from playground.utils.formatting import json_markdown, render_content

RUN_CANCELLED_MESSAGE = "Run cancelled"
RUN_ERROR_MESSAGE = "Error during run"
PARSE_ERROR_CONTENT = "Error parsing response"


class TurnPhase(StrEnum):
    """Lifecycle of the active turn."""

    IDLE = "idle"
    AWAITING_FIRST_CHUNK = "awaiting_first_chunk"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ERRORED = "errored"


class ConversationState(BaseModel):
    """Transcript plus the bookkeeping needed to apply the next event."""

    messages: tuple[Message, ...] = ()
    phase: TurnPhase = TurnPhase.IDLE
    session_id: str | None = None
    # User text of the active turn, used as the title of a session it creates
    turn_title: str | None = None
    created_session: SessionEntry | None = None
    last_cumulative: str = ""
    error_message: str | None = None

    class Config:
        frozen = True

    @property
    def is_active(self) -> bool:
        """Whether a turn is waiting for or receiving output."""
        return self.phase in (TurnPhase.AWAITING_FIRST_CHUNK, TurnPhase.STREAMING)

    @property
    def pending_message(self) -> Message | None:
        """The agent message events apply to, if the transcript ends with one."""
        if self.messages and self.messages[-1].role == "agent":
            return self.messages[-1]
        return None


def start_turn(state: ConversationState, text: str, created_at: int | None = None) -> ConversationState:
    """Open a new turn with the user's message and an empty pending agent message.

    A previous turn that ended in error is dropped from the transcript first.

    Args:
        state: Current state
        text: User message
        created_at: Epoch seconds of the user message, defaults to now

    Returns:
        State awaiting the first chunk of the agent response
    """
    if created_at is None:
        created_at = int(time.time())

    messages = list(state.messages)
    if (
        len(messages) >= 2
        and messages[-1].role == "agent"
        and messages[-1].streaming_error
        and messages[-2].role == "user"
    ):
        messages = messages[:-2]

    messages.append(Message(role="user", content=text, created_at=created_at))
    messages.append(Message(role="agent", content="", created_at=created_at + 1))

    return state.model_copy(
        update={
            "messages": tuple(messages),
            "phase": TurnPhase.AWAITING_FIRST_CHUNK,
            "turn_title": text,
            "created_session": None,
            "last_cumulative": "",
            "error_message": None,
        }
    )


def fail_turn(state: ConversationState, message: str) -> ConversationState:
    """Mark the active turn as failed with a user-visible message."""
    return state.model_copy(
        update={
            "messages": _replace_pending(state.messages, streaming_error=True),
            "phase": TurnPhase.ERRORED,
            "error_message": message,
        }
    )


def load_history(state: ConversationState, messages: Sequence[Message], session_id: str | None) -> ConversationState:
    """Replace the transcript with a fetched session history."""
    return ConversationState(messages=tuple(messages), session_id=session_id)


def reduce(state: ConversationState, event: StreamEvent) -> ConversationState:
    """Apply one classified event to the conversation state.

    Args:
        state: Current state
        event: Classified (and normalized) stream event

    Returns:
        The next state
    """
    match event:
        case RunStartedEvent():
            return _on_run_started(state, event)
        case ContentDeltaEvent():
            return _on_content_delta(state, event)
        case ToolCallDeltaEvent():
            return _on_tool_call_delta(state, event)
        case ReasoningStepEvent():
            return _on_reasoning_step(state, event)
        case ReasoningCompletedEvent():
            return _on_reasoning_completed(state, event)
        case RunErrorEvent():
            return _on_run_error(state, event)
        case MemoryUpdateEvent():
            return state
        case RunCompletedEvent():
            return _on_run_completed(state, event)
    raise TypeError(f"Unsupported event: {event!r}")


def _on_run_started(state: ConversationState, event: RunStartedEvent) -> ConversationState:
    updates: dict[str, Any] = {"phase": _advance(state.phase)}
    if event.session_id:
        updates["session_id"] = event.session_id
        if event.session_id != state.session_id:
            updates["created_session"] = SessionEntry(
                session_id=event.session_id,
                title=state.turn_title,
                created_at=event.created_at,
            )
    return state.model_copy(update=updates)


def _on_content_delta(state: ConversationState, event: ContentDeltaEvent) -> ConversationState:
    pending = state.pending_message
    if pending is None:
        return state.model_copy(update={"phase": _advance(state.phase)})

    content = pending.content
    last_cumulative = state.last_cumulative
    updates: dict[str, Any] = {}

    if isinstance(event.content, str):
        content += _unseen_part(event.content, last_cumulative, event.content_mode == "incremental")
        last_cumulative = event.content
    elif event.content is not None:
        block = json_markdown(event.content)
        content += block
        last_cumulative = block
    elif event.response_audio is not None and isinstance(event.response_audio.transcript, str):
        current = pending.response_audio or ResponseAudio()
        transcript = (current.transcript or "") + event.response_audio.transcript
        updates["response_audio"] = current.model_copy(update={"transcript": transcript})

    updates["content"] = content
    updates["tool_calls"] = merge_chunk_tool_calls(pending.tool_calls, event.tool, event.tools)
    if event.extra_data is not None:
        updates["extra_data"] = _overlay_extra_data(
            pending.extra_data,
            reasoning_steps=event.extra_data.reasoning_steps,
            references=event.extra_data.references,
        )
    for media in ("images", "videos", "audio"):
        value = getattr(event, media)
        if value is not None:
            updates[media] = value
    if event.created_at is not None:
        updates["created_at"] = event.created_at

    return state.model_copy(
        update={
            "messages": _replace_pending(state.messages, **updates),
            "phase": _advance(state.phase),
            "last_cumulative": last_cumulative,
        }
    )


def _unseen_part(content: str, last_cumulative: str, incremental: bool) -> str:
    """Return the part of a content chunk that has not been appended yet."""
    if incremental:
        return content
    if content.startswith(last_cumulative):
        return content[len(last_cumulative) :]
    return content.replace(last_cumulative, "", 1)


def _on_tool_call_delta(state: ConversationState, event: ToolCallDeltaEvent) -> ConversationState:
    pending = state.pending_message
    messages = state.messages
    if pending is not None:
        tool_calls = merge_chunk_tool_calls(pending.tool_calls, event.tool, event.tools)
        messages = _replace_pending(messages, tool_calls=tool_calls)
    return state.model_copy(update={"messages": messages, "phase": _advance(state.phase)})


def _on_reasoning_step(state: ConversationState, event: ReasoningStepEvent) -> ConversationState:
    pending = state.pending_message
    messages = state.messages
    if pending is not None:
        existing = (pending.extra_data.reasoning_steps if pending.extra_data else None) or []
        incoming = (event.extra_data.reasoning_steps if event.extra_data else None) or []
        extra_data = _overlay_extra_data(pending.extra_data, reasoning_steps=[*existing, *incoming])
        messages = _replace_pending(messages, extra_data=extra_data)
    return state.model_copy(update={"messages": messages, "phase": _advance(state.phase)})


def _on_reasoning_completed(state: ConversationState, event: ReasoningCompletedEvent) -> ConversationState:
    pending = state.pending_message
    messages = state.messages
    if pending is not None and event.extra_data is not None and event.extra_data.reasoning_steps is not None:
        extra_data = _overlay_extra_data(pending.extra_data, reasoning_steps=event.extra_data.reasoning_steps)
        messages = _replace_pending(messages, extra_data=extra_data)
    return state.model_copy(update={"messages": messages, "phase": _advance(state.phase)})


def _on_run_error(state: ConversationState, event: RunErrorEvent) -> ConversationState:
    message = render_content(event.content)
    if not message:
        message = RUN_CANCELLED_MESSAGE if event.cancelled else RUN_ERROR_MESSAGE
    return fail_turn(state, message)


def _on_run_completed(state: ConversationState, event: RunCompletedEvent) -> ConversationState:
    pending = state.pending_message
    if pending is None:
        return state.model_copy(update={"phase": TurnPhase.COMPLETED})

    current_extra = pending.extra_data
    event_extra = event.extra_data
    extra_data = _overlay_extra_data(
        current_extra,
        reasoning_steps=event_extra.reasoning_steps if event_extra else None,
        references=event_extra.references if event_extra else None,
    )

    messages = _replace_pending(
        state.messages,
        content=_final_content(event.content, pending.content),
        tool_calls=merge_chunk_tool_calls(pending.tool_calls, event.tool, event.tools),
        images=event.images if event.images is not None else pending.images,
        videos=event.videos if event.videos is not None else pending.videos,
        audio=event.audio if event.audio is not None else pending.audio,
        response_audio=event.response_audio if event.response_audio is not None else pending.response_audio,
        created_at=event.created_at if event.created_at is not None else pending.created_at,
        extra_data=extra_data,
    )
    return state.model_copy(update={"messages": messages, "phase": TurnPhase.COMPLETED})


def _final_content(content: Any, current: str) -> str:
    if content is None:
        return current
    if isinstance(content, str):
        return content
    try:
        return json.dumps(content, ensure_ascii=False)
    except (TypeError, ValueError):
        return PARSE_ERROR_CONTENT


def _overlay_extra_data(current: ExtraData | None, **fields: Any) -> ExtraData | None:
    """Overlay the given non-null extra-data fields onto the current value."""
    updates = {key: value for key, value in fields.items() if value is not None}
    if not updates:
        return current
    if current is None:
        return ExtraData(**updates)
    return current.model_copy(update=updates)


def _replace_pending(messages: tuple[Message, ...], **updates: Any) -> tuple[Message, ...]:
    """Return the messages with the trailing agent message updated."""
    if not messages or messages[-1].role != "agent":
        return messages
    return (*messages[:-1], messages[-1].model_copy(update=updates))


def _advance(phase: TurnPhase) -> TurnPhase:
    return TurnPhase.STREAMING if phase == TurnPhase.AWAITING_FIRST_CHUNK else phase
