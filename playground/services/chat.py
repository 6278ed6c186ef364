"""Chat service tying the stream pipeline, transcript and session cache together."""

import asyncio
from collections.abc import Callable
from typing import Any, Protocol

import httpx

from playground.clients.playground import PlaygroundClient
from playground.errors import PlaygroundAPIError, TurnInProgressError
from playground.models.agent import AgentOption
from playground.models.events import RunEvent, StreamEvent
from playground.models.messages import Message
from playground.models.session import SessionEntry
from playground.models.target import ConversationTarget
from playground.services.history import normalize_history
from playground.services.reducer import (
    RUN_CANCELLED_MESSAGE,
    RUN_ERROR_MESSAGE,
    ConversationState,
    TurnPhase,
    fail_turn,
    load_history,
    reduce,
    start_turn,
)
from playground.services.router import BackendRoute
from playground.services.session_ledger import SessionLedger
from playground.stream.classifier import classify_event
from playground.stream.decoder import decode_stream
from playground.utils.logging import get_logger

logger = get_logger(__name__)

NO_TARGET_MESSAGE = "Please select an agent or team first."
TRANSPORT_ERROR_MESSAGE = "Connection to the agent failed. Please try again."

StateObserver = Callable[[ConversationState], None]


class Notifier(Protocol):
    """Non-blocking user notifications."""

    def info(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingNotifier:
    """Notifier that only writes to the log."""

    def info(self, message: str) -> None:
        logger.info(message)

    def error(self, message: str) -> None:
        logger.error(message)


class ChatService:
    """Runs conversation turns against a playground backend.

    The service owns the conversation state and is the only writer of it.
    Observers subscribed with ``subscribe`` receive every new state.
    """

    def __init__(
        self,
        client: PlaygroundClient,
        target: ConversationTarget | None = None,
        ledger: SessionLedger | None = None,
        notifier: Notifier | None = None,
    ):
        """Initialize chat service.

        Args:
            client: Playground backend client
            target: Team or agent to converse with
            ledger: Session cache shared with the session list view
            notifier: Sink for user notifications (defaults to logging)
        """
        self.client = client
        self.target = target
        self.ledger = ledger or SessionLedger()
        self.notifier = notifier or LoggingNotifier()
        self._state = ConversationState()
        self._observers: list[StateObserver] = []

    @property
    def state(self) -> ConversationState:
        return self._state

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        """Register an observer of state changes.

        Returns:
            Function that removes the observer
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def set_target(self, target: ConversationTarget | None) -> None:
        """Switch to another team or agent, starting from an empty conversation."""
        self._ensure_idle()
        self.target = target
        self.ledger.clear()
        self._set_state(ConversationState())

    def new_chat(self) -> None:
        """Start a new conversation with the current target."""
        self._ensure_idle()
        self.ledger.active_session_id = None
        self._set_state(ConversationState())

    async def send_message(self, text: str, stream: bool = True) -> ConversationState:
        """Run one turn with the current target.

        Args:
            text: User message
            stream: Consume the event stream instead of waiting for the final response

        Returns:
            State after the turn completed or failed

        Raises:
            TurnInProgressError: If a turn is already running
        """
        self._ensure_idle()
        self.ledger.begin_turn()
        self._set_state(start_turn(self._state, text))

        if self.target is None:
            self._set_state(fail_turn(self._state, NO_TARGET_MESSAGE))
            return self._state

        route = self.client.route(self.target)
        session_id = self._state.session_id
        logger.info(f"Sending message to {self.target} (session: {session_id}): {text[:50]}...")

        try:
            if stream:
                await self._stream_turn(route, text, session_id)
            else:
                payload = await self.client.run(route, text, session_id)
                self._apply_terminal_payload(route, payload)
        except (httpx.HTTPError, PlaygroundAPIError) as e:
            logger.error(f"Run for {self.target} failed: {e}", exc_info=True)
            self._transition(fail_turn(self._state, TRANSPORT_ERROR_MESSAGE))
            return self._state
        except asyncio.CancelledError:
            logger.info(f"Run for {self.target} was cancelled")
            self._abort_turn(RUN_CANCELLED_MESSAGE)
            raise
        except BaseException as e:
            logger.error(f"Run for {self.target} aborted: {e!r}", exc_info=True)
            self._abort_turn(RUN_ERROR_MESSAGE)
            raise

        if self._state.is_active:
            logger.info(f"Stream for {self.target} closed without a completion event")
            self._set_state(self._state.model_copy(update={"phase": TurnPhase.COMPLETED}))

        return self._state

    def apply_event(self, event: StreamEvent) -> ConversationState:
        """Apply a classified event to the conversation and the session cache."""
        return self._transition(reduce(self._state, event))

    async def _stream_turn(self, route: BackendRoute, text: str, session_id: str | None) -> None:
        async with self.client.stream_run(route, text, session_id) as chunks:
            async for payload in decode_stream(chunks):
                event = classify_event(payload)
                if event is None:
                    continue
                self.apply_event(route.normalize(event))

    def _apply_terminal_payload(self, route: BackendRoute, payload: dict[str, Any]) -> None:
        """Apply a non-streaming run response as a start and a completion event."""
        if payload.get("session_id"):
            started = classify_event({**payload, "event": RunEvent.RUN_STARTED.value})
            if started is not None:
                self.apply_event(started)

        content = payload.get("content", payload.get("response"))
        completed = classify_event({**payload, "event": RunEvent.RUN_COMPLETED.value, "content": content})
        if completed is not None:
            self.apply_event(route.normalize(completed))

    def _abort_turn(self, message: str) -> None:
        """Fail a turn that is still active so the conversation accepts new work."""
        if self._state.is_active:
            self._transition(fail_turn(self._state, message))

    def _transition(self, new_state: ConversationState) -> ConversationState:
        previous = self._state

        created = new_state.created_session
        if created is not None and created != previous.created_session:
            self.ledger.on_new_session(created.session_id, created.title, created.created_at)
        elif new_state.session_id and new_state.session_id != previous.session_id:
            self.ledger.active_session_id = new_state.session_id

        if new_state.phase == TurnPhase.ERRORED and previous.phase != TurnPhase.ERRORED:
            logger.warning(f"Turn for {self.target} failed: {new_state.error_message}")
            if created is not None:
                self.ledger.on_turn_failed(created.session_id)

        self._set_state(new_state)
        return new_state

    async def load_sessions(self) -> list[SessionEntry]:
        """Refresh the session cache from the backend.

        Returns:
            Cached sessions after the refresh; empty if the listing failed
        """
        if self.target is None:
            return []

        try:
            sessions = await self.client.list_sessions(self.target)
        except PlaygroundAPIError as e:
            logger.error(f"Failed to list sessions for {self.target}: {e}")
            self.notifier.error("Error loading sessions")
            sessions = []

        self.ledger.replace_all(sessions)
        return list(self.ledger.sessions)

    async def load_session(self, session_id: str) -> list[Message]:
        """Load a past session into the transcript.

        Returns:
            The session's messages; empty if it does not exist or could not be fetched
        """
        self._ensure_idle()
        if self.target is None or not session_id:
            return []

        try:
            history = await self.client.get_session(self.target, session_id)
        except PlaygroundAPIError as e:
            logger.error(f"Failed to load session {session_id} for {self.target}: {e}")
            self.notifier.error("Error loading session")
            return []

        if history is None:
            logger.info(f"Session {session_id} not found for {self.target}")
            return []

        messages = normalize_history(history)
        self.ledger.active_session_id = session_id
        self._set_state(load_history(self._state, messages, session_id))
        return messages

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session on the backend, then drop it locally.

        Returns:
            True if the backend confirmed the deletion
        """
        if self.target is None:
            return False

        try:
            await self.client.delete_session(self.target, session_id)
        except PlaygroundAPIError as e:
            logger.error(f"Failed to delete session {session_id} for {self.target}: {e}")
            self.notifier.error("Failed to delete session")
            return False

        self.ledger.remove(session_id)
        if self._state.session_id == session_id and not self._state.is_active:
            self._set_state(ConversationState())
        self.notifier.info("Session deleted")
        return True

    async def load_agents(self) -> list[AgentOption]:
        """List every agent, team and dynamic agent that can be chatted with."""
        options: list[AgentOption] = []
        listings = [
            ("agents", self.client.list_agents),
            ("teams", self.client.list_teams),
            ("dynamic agents", self.client.list_dynamic_agents),
        ]
        for label, fetch in listings:
            try:
                options.extend(await fetch())
            except PlaygroundAPIError as e:
                logger.error(f"Failed to list {label}: {e}")
                self.notifier.error(f"Error fetching {label}")
        return options

    def _ensure_idle(self) -> None:
        if self._state.is_active:
            raise TurnInProgressError("A response is still streaming for this conversation")

    def _set_state(self, state: ConversationState) -> None:
        self._state = state
        for observer in list(self._observers):
            observer(state)
