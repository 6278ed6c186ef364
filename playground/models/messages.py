"""Transcript message and tool call models."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class ToolCall(BaseModel):
    """A tool call made by the agent during a run.

    Fragments of the same call arrive more than once (started, then completed),
    so every field is optional and unknown backend fields are kept.
    """

    tool_call_id: str | None = None
    tool_name: str | None = None
    tool_args: dict[str, Any] | None = None
    content: Any = None
    tool_call_error: bool | None = None
    metrics: dict[str, Any] | None = None
    created_at: int | float | None = None
    role: str | None = None

    class Config:
        extra = "allow"
        frozen = True

    @property
    def identity(self) -> str:
        """Explicit call id, or the key derived from tool name and creation time."""
        if self.tool_call_id:
            return self.tool_call_id
        return f"{self.tool_name}-{self.created_at}"


class ExtraData(BaseModel):
    """Reasoning and reference data attached to an agent message."""

    reasoning_steps: list[dict[str, Any]] | None = None
    references: list[dict[str, Any]] | None = None
    reasoning_messages: list[dict[str, Any]] | None = None

    class Config:
        extra = "allow"
        frozen = True


class ResponseAudio(BaseModel):
    """Audio produced by the agent as part of its response."""

    transcript: str | None = None

    class Config:
        extra = "allow"
        frozen = True


class Message(BaseModel):
    """A single transcript entry."""

    role: Literal["user", "agent"]
    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    extra_data: ExtraData | None = None
    images: list[Any] | None = None
    videos: list[Any] | None = None
    audio: Any = None
    response_audio: ResponseAudio | None = None
    created_at: int | float | None = None
    streaming_error: bool = False

    class Config:
        frozen = True
