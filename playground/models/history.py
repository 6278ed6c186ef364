"""Historical transcript shapes returned by session fetches."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from playground.models.messages import ExtraData, ResponseAudio, ToolCall


class RunLogMessage(BaseModel):
    """The user input of a past run."""

    content: Any = None
    created_at: int | float | None = None


class RunLogResponse(BaseModel):
    """The agent output of a past run."""

    content: Any = None
    tools: list[ToolCall] | None = None
    extra_data: ExtraData | None = None
    images: list[Any] | None = None
    videos: list[Any] | None = None
    audio: Any = None
    response_audio: ResponseAudio | None = None
    created_at: int | float | None = None


class RunLogEntry(BaseModel):
    """One past run, holding at most one user turn and one agent turn."""

    message: RunLogMessage | None = None
    response: RunLogResponse | None = None


class RunLogHistory(BaseModel):
    """Session history as a list of runs (agents and teams)."""

    shape: Literal["run_log"] = "run_log"
    session_id: str | None = None
    runs: list[RunLogEntry] = Field(default_factory=list)


class FlatMessage(BaseModel):
    """A role-tagged message as stored by the dynamic agent backend."""

    role: str
    content: Any = None
    timestamp: int | float | None = None


class FlatMessageHistory(BaseModel):
    """Session history as a flat list of messages (dynamic agents)."""

    shape: Literal["flat"] = "flat"
    session_id: str | None = None
    messages: list[FlatMessage] = Field(default_factory=list)


HistoryShape = Literal["run_log", "flat"]

SessionHistory = Annotated[RunLogHistory | FlatMessageHistory, Field(discriminator="shape")]
