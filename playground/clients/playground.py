"""Async HTTP client for the playground backend."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from pydantic import ValidationError

from playground.clients.routes import APIRoutes
from playground.config import PlaygroundConfig
from playground.errors import PlaygroundAPIError
from playground.models.agent import AgentOption
from playground.models.history import SessionHistory
from playground.models.session import SessionEntry
from playground.models.target import ConversationTarget
from playground.services.history import parse_session_history
from playground.services.router import BackendRoute, resolve_route
from playground.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DYNAMIC_AGENT_PROVIDER = "gpt-4o-mini"


class PlaygroundClient:
    """Low-level client for agent, team and dynamic agent endpoints.

    Read and write failures are raised as ``PlaygroundAPIError``; deciding how
    to present them is left to the caller.
    """

    def __init__(self, config: PlaygroundConfig | None = None, http_client: httpx.AsyncClient | None = None):
        """Initialize the client.

        Args:
            config: Client configuration (defaults to PLAYGROUND_* env vars)
            http_client: Preconfigured httpx client, closed by its owner
        """
        self.config = config or PlaygroundConfig.from_env()
        self._owns_http_client = http_client is None
        self.http = http_client or httpx.AsyncClient(timeout=self.config.timeout)

    async def __aenter__(self) -> "PlaygroundClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_http_client:
            await self.http.aclose()

    def route(self, target: ConversationTarget) -> BackendRoute:
        """Resolve the backend route of a conversation target."""
        return resolve_route(target, self.config.endpoint)

    async def get_status(self) -> int:
        """Return the HTTP status of the playground status endpoint."""
        response = await self._request("GET", APIRoutes.status(self.config.endpoint))
        return response.status_code

    async def list_agents(self) -> list[AgentOption]:
        """List the statically configured playground agents."""
        response = await self._request("GET", APIRoutes.agents(self.config.endpoint))
        self._raise_for_status(response, "fetch playground agents")
        return [
            AgentOption(
                value=item.get("agent_id") or "",
                label=item.get("name") or "",
                provider=(item.get("model") or {}).get("provider") or "",
                storage=bool(item.get("storage")),
                kind="agent",
                description=item.get("description"),
            )
            for item in self._json_list(response)
        ]

    async def list_teams(self) -> list[AgentOption]:
        """List the playground teams."""
        response = await self._request("GET", APIRoutes.teams(self.config.endpoint))
        self._raise_for_status(response, "fetch playground teams")
        return [
            AgentOption(
                value=item.get("team_id") or "",
                label=item.get("name") or "",
                provider=(item.get("model") or {}).get("provider") or "",
                storage=bool(item.get("storage")),
                kind="team",
                description=item.get("description"),
            )
            for item in self._json_list(response)
        ]

    async def list_dynamic_agents(
        self,
        specialization: str | None = None,
        status: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[AgentOption]:
        """List dynamic agents, optionally filtered."""
        params = {
            key: value
            for key, value in {
                "specialization": specialization,
                "status": status,
                "limit": limit,
                "offset": offset,
            }.items()
            if value
        }
        response = await self._request("GET", APIRoutes.dynamic_agents(self.config.endpoint), params=params)
        self._raise_for_status(response, "fetch dynamic agents")

        data = self._json(response)
        agents = data.get("agents") if isinstance(data, dict) else None
        return [
            AgentOption(
                value=item.get("id") or "",
                label=item.get("name") or "",
                provider=(item.get("model_config") or {}).get("model_id") or DEFAULT_DYNAMIC_AGENT_PROVIDER,
                storage=True,
                kind="dynamic",
                description=item.get("description"),
                specialization=item.get("specialization"),
            )
            for item in agents or []
            if isinstance(item, dict)
        ]

    async def list_sessions(self, target: ConversationTarget) -> list[SessionEntry]:
        """List the sessions of a target.

        Returns:
            Sessions as listed by the backend; empty when the target has none (404)
        """
        route = self.route(target)
        response = await self._request("GET", route.sessions_url)
        if response.status_code == 404:
            return []
        self._raise_for_status(response, f"fetch sessions for {target}")

        sessions: list[SessionEntry] = []
        for item in self._json_list(response):
            try:
                sessions.append(SessionEntry.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed session entry for {target}: {e.error_count()} errors")
        return sessions

    async def get_session(self, target: ConversationTarget, session_id: str) -> SessionHistory | None:
        """Fetch the history of one session.

        Returns:
            The run-log or flat-message history, or None when the session does not exist
        """
        route = self.route(target)
        response = await self._request("GET", route.session_url(session_id))
        if response.status_code == 404:
            return None
        self._raise_for_status(response, f"fetch session {session_id}")

        payload = self._json(response)
        if not isinstance(payload, dict):
            raise PlaygroundAPIError(f"Unexpected session payload for {session_id}", url=str(response.url))
        try:
            return parse_session_history(payload, route.history_shape)
        except ValidationError as e:
            raise PlaygroundAPIError(f"Malformed session payload for {session_id}: {e}", url=str(response.url)) from e

    async def delete_session(self, target: ConversationTarget, session_id: str) -> None:
        """Delete one session of a target."""
        route = self.route(target)
        response = await self._request("DELETE", route.session_url(session_id))
        self._raise_for_status(response, f"delete session {session_id}")

    @asynccontextmanager
    async def stream_run(
        self, route: BackendRoute, message: str, session_id: str | None = None
    ) -> AsyncIterator[AsyncIterator[bytes]]:
        """Start a streaming run and yield its raw byte stream.

        Args:
            route: Backend route of the conversation target
            message: User message
            session_id: Session to continue, None to let the backend create one

        Raises:
            PlaygroundAPIError: If the backend cannot be reached or rejects the run
        """
        url = route.run_url
        logger.info(f"Starting streaming run for {route.target} (session: {session_id})")
        try:
            async with self.http.stream("POST", url, **self._run_payload(route, message, session_id, True)) as response:
                if response.is_error:
                    await response.aread()
                    raise PlaygroundAPIError(
                        f"Failed to start run: {response.status_code} {response.reason_phrase}",
                        status_code=response.status_code,
                        url=url,
                    )
                yield response.aiter_bytes()
        except httpx.HTTPError as e:
            raise PlaygroundAPIError(f"Run stream for {route.target} failed: {e}", url=url) from e

    async def run(self, route: BackendRoute, message: str, session_id: str | None = None) -> dict[str, Any]:
        """Run without streaming and return the terminal response object."""
        url = route.run_url
        logger.info(f"Starting run for {route.target} (session: {session_id})")
        response = await self._request("POST", url, **self._run_payload(route, message, session_id, False))
        self._raise_for_status(response, "run agent")

        payload = self._json(response)
        if not isinstance(payload, dict):
            raise PlaygroundAPIError("Unexpected run response payload", status_code=response.status_code, url=url)
        return payload

    def _run_payload(self, route: BackendRoute, message: str, session_id: str | None, stream: bool) -> dict[str, Any]:
        if route.request_encoding == "json":
            return {
                "json": {
                    "message": message,
                    "user_id": self.config.user_id,
                    "session_id": session_id,
                    "stream": stream,
                }
            }
        return {
            "data": {
                "message": message,
                "stream": "true" if stream else "false",
                "session_id": session_id or "",
            }
        }

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self.http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise PlaygroundAPIError(f"{method} {url} failed: {e}", url=url) from e

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        if response.is_error:
            raise PlaygroundAPIError(
                f"Failed to {action}: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                url=str(response.url),
            )

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise PlaygroundAPIError(
                f"Invalid JSON from {response.url}", status_code=response.status_code, url=str(response.url)
            ) from e

    @classmethod
    def _json_list(cls, response: httpx.Response) -> list[dict[str, Any]]:
        data = cls._json(response)
        if not isinstance(data, list):
            raise PlaygroundAPIError("Expected a JSON list", status_code=response.status_code, url=str(response.url))
        return [item for item in data if isinstance(item, dict)]
