"""Selectable agent and team models."""

from typing import Literal

from pydantic import BaseModel


class AgentOption(BaseModel):
    """An agent or team the user can pick as a conversation target."""

    value: str
    label: str
    provider: str = ""
    storage: bool = False
    kind: Literal["agent", "team", "dynamic"] = "agent"
    description: str | None = None
    specialization: str | None = None
