"""Conversation target models."""

import re
from enum import StrEnum

from pydantic import BaseModel, Field

# Dynamic agents are registered at runtime under a generated UUID
DYNAMIC_AGENT_ID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    re.IGNORECASE,
)


def is_dynamic_agent(agent_id: str) -> bool:
    """Check whether an agent id has the shape of a dynamic agent id."""
    return bool(DYNAMIC_AGENT_ID_PATTERN.fullmatch(agent_id))


class TargetKind(StrEnum):
    """Kind of backend entity a conversation is held with."""

    TEAM = "team"
    AGENT = "agent"
    DYNAMIC_AGENT = "dynamic_agent"


class ConversationTarget(BaseModel):
    """The single team, static agent or dynamic agent a conversation targets."""

    kind: TargetKind
    id: str = Field(..., min_length=1)

    class Config:
        frozen = True

    @classmethod
    def for_team(cls, team_id: str) -> "ConversationTarget":
        """Target a team."""
        return cls(kind=TargetKind.TEAM, id=team_id)

    @classmethod
    def for_agent(cls, agent_id: str) -> "ConversationTarget":
        """Target an agent, classifying it as dynamic by the shape of its id."""
        kind = TargetKind.DYNAMIC_AGENT if is_dynamic_agent(agent_id) else TargetKind.AGENT
        return cls(kind=kind, id=agent_id)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"
