"""Routing of conversation targets to backend endpoints and event shapes."""

from dataclasses import dataclass
from typing import Literal

from playground.clients.routes import APIRoutes
from playground.models.events import ContentDeltaEvent, ContentMode, StreamEvent
from playground.models.history import HistoryShape
from playground.models.target import ConversationTarget, TargetKind, is_dynamic_agent

__all__ = ["BackendRoute", "is_dynamic_agent", "resolve_route"]

RequestEncoding = Literal["form", "json"]


@dataclass(frozen=True)
class BackendRoute:
    """Everything that differs between the team, agent and dynamic agent backends."""

    target: ConversationTarget
    base_url: str
    request_encoding: RequestEncoding
    content_mode: ContentMode
    history_shape: HistoryShape

    @property
    def run_url(self) -> str:
        match self.target.kind:
            case TargetKind.TEAM:
                return APIRoutes.team_run(self.base_url, self.target.id)
            case TargetKind.AGENT:
                return APIRoutes.agent_run(self.base_url, self.target.id)
            case TargetKind.DYNAMIC_AGENT:
                return APIRoutes.dynamic_agent_chat(self.base_url, self.target.id)

    @property
    def sessions_url(self) -> str:
        match self.target.kind:
            case TargetKind.TEAM:
                return APIRoutes.team_sessions(self.base_url, self.target.id)
            case TargetKind.AGENT:
                return APIRoutes.agent_sessions(self.base_url, self.target.id)
            case TargetKind.DYNAMIC_AGENT:
                return APIRoutes.dynamic_agent_sessions(self.base_url, self.target.id)

    def session_url(self, session_id: str) -> str:
        match self.target.kind:
            case TargetKind.TEAM:
                return APIRoutes.team_session(self.base_url, self.target.id, session_id)
            case TargetKind.AGENT:
                return APIRoutes.agent_session(self.base_url, self.target.id, session_id)
            case TargetKind.DYNAMIC_AGENT:
                return APIRoutes.dynamic_agent_session(self.base_url, self.target.id, session_id)

    def normalize(self, event: StreamEvent) -> StreamEvent:
        """Bring an event from this backend into the canonical event model.

        Dynamic agents stream true deltas while agents and teams resend the
        cumulative text, so content events are stamped with the backend's mode.
        """
        if isinstance(event, ContentDeltaEvent) and event.content_mode != self.content_mode:
            return event.model_copy(update={"content_mode": self.content_mode})
        return event


def resolve_route(target: ConversationTarget, base_url: str) -> BackendRoute:
    """Resolve the backend route for a conversation target.

    Args:
        target: Team, agent or dynamic agent to talk to
        base_url: Normalized playground endpoint

    Returns:
        Route describing endpoints, request encoding and stream shape
    """
    if target.kind == TargetKind.DYNAMIC_AGENT:
        return BackendRoute(
            target=target,
            base_url=base_url,
            request_encoding="json",
            content_mode="incremental",
            history_shape="flat",
        )

    return BackendRoute(
        target=target,
        base_url=base_url,
        request_encoding="form",
        content_mode="cumulative",
        history_shape="run_log",
    )
