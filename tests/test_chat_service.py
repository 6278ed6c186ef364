"""Tests for the chat service."""

import asyncio
import json
from unittest.mock import Mock
from urllib.parse import parse_qs

import httpx
import pytest

from playground.clients.playground import PlaygroundClient
from playground.config import PlaygroundConfig
from playground.errors import TurnInProgressError
from playground.models.session import SessionEntry
from playground.models.target import ConversationTarget
from playground.services.chat import NO_TARGET_MESSAGE, TRANSPORT_ERROR_MESSAGE, ChatService
from playground.services.reducer import RUN_CANCELLED_MESSAGE, RUN_ERROR_MESSAGE, TurnPhase
from playground.services.session_ledger import SessionLedger

ENDPOINT = "http://playground.test"
DYNAMIC_ID = "3f2b8c1e-9a4d-4e6f-8b2a-1c3d5e7f9a0b"


def sse_response(*payloads: dict, chunk_size: int = 5, fail_with: Exception | None = None) -> httpx.Response:
    """Stream payloads as data frames in small chunks, optionally failing at the end."""
    raw = "".join(f"data: {json.dumps(p)}\n\n" for p in payloads).encode("utf-8")

    async def chunks():
        for i in range(0, len(raw), chunk_size):
            yield raw[i : i + chunk_size]
        if fail_with is not None:
            raise fail_with

    return httpx.Response(200, content=chunks())


def make_service(handler, target=None, ledger=None, notifier=None) -> ChatService:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = PlaygroundClient(PlaygroundConfig(endpoint=ENDPOINT), http_client=http)
    return ChatService(client, target=target, ledger=ledger, notifier=notifier)


@pytest.fixture
def team():
    return ConversationTarget.for_team("writers")


class TestStreamingTurn:
    """Tests for a complete streamed turn."""

    @pytest.mark.asyncio
    async def test_successful_turn(self, team):
        """Test content, tools and the new session end up in state and ledger."""

        def handler(request: httpx.Request) -> httpx.Response:
            return sse_response(
                {"event": "TeamRunStarted", "session_id": "s1", "created_at": 1000},
                {"event": "TeamRunResponseContent", "content": "Hi"},
                {"event": "TeamToolCallStarted", "tool": {"tool_call_id": "t1", "tool_name": "search"}},
                {"event": "TeamToolCallCompleted", "tool": {"tool_call_id": "t1", "content": "found"}},
                {"event": "TeamRunResponseContent", "content": "Hi there"},
                {"event": "TeamRunCompleted", "content": "Hi there!"},
            )

        ledger = SessionLedger([SessionEntry(session_id="s0")])
        service = make_service(handler, target=team, ledger=ledger)

        state = await service.send_message("Say hi")

        assert state.phase == TurnPhase.COMPLETED
        agent = state.messages[-1]
        assert agent.content == "Hi there!"
        assert len(agent.tool_calls) == 1
        assert agent.tool_calls[0].content == "found"
        assert state.session_id == "s1"
        assert [s.session_id for s in ledger.sessions] == ["s1", "s0"]
        assert ledger.get("s1").title == "Say hi"
        assert ledger.active_session_id == "s1"

    @pytest.mark.asyncio
    async def test_follow_up_turn_reuses_session(self, team):
        """Test the second turn sends the session id and registers nothing new."""
        session_ids = []

        def handler(request: httpx.Request) -> httpx.Response:
            form = parse_qs(request.content.decode(), keep_blank_values=True)
            session_ids.append(form["session_id"][0])
            return sse_response(
                {"event": "RunStarted", "session_id": "s1"},
                {"event": "RunCompleted", "content": "ok"},
            )

        service = make_service(handler, target=team)
        await service.send_message("first")
        await service.send_message("second")

        assert session_ids == ["", "s1"]
        assert [s.session_id for s in service.ledger.sessions] == ["s1"]
        assert len(service.state.messages) == 4

    @pytest.mark.asyncio
    async def test_dynamic_agent_incremental_content(self):
        """Test dynamic agents stream deltas that are appended as is."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == f"/v1/dynamic-agents/{DYNAMIC_ID}/chat"
            return sse_response(
                {"event": "RunStarted", "session_id": "d1"},
                {"event": "RunResponseContent", "content": "Hel"},
                {"event": "RunResponseContent", "content": "lo"},
                {"event": "RunCompleted"},
            )

        service = make_service(handler, target=ConversationTarget.for_agent(DYNAMIC_ID))
        state = await service.send_message("Hi")

        assert state.messages[-1].content == "Hello"
        assert state.phase == TurnPhase.COMPLETED

    @pytest.mark.asyncio
    async def test_stream_without_terminal_event(self, team):
        """Test a stream that just ends completes the turn."""
        service = make_service(
            lambda request: sse_response({"event": "RunResponseContent", "content": "partial"}), target=team
        )

        state = await service.send_message("Hi")

        assert state.phase == TurnPhase.COMPLETED
        assert state.messages[-1].content == "partial"

    @pytest.mark.asyncio
    async def test_unknown_events_are_ignored(self, team):
        """Test unknown events and invalid frames do not disturb the turn."""

        def handler(request: httpx.Request) -> httpx.Response:
            raw = (
                b'data: {"event": "Heartbeat"}\n\n'
                b"data: {oops\n\n"
                b'data: {"event": "RunCompleted", "content": "ok"}\n\n'
            )
            return httpx.Response(200, content=raw)

        service = make_service(handler, target=team)
        state = await service.send_message("Hi")

        assert state.messages[-1].content == "ok"

    @pytest.mark.asyncio
    async def test_observers(self, team):
        """Test observers see every phase and can unsubscribe."""
        service = make_service(
            lambda request: sse_response(
                {"event": "RunResponseContent", "content": "a"},
                {"event": "RunCompleted", "content": "a"},
            ),
            target=team,
        )
        phases = []
        unsubscribe = service.subscribe(lambda state: phases.append(state.phase))

        await service.send_message("Hi")
        unsubscribe()
        service.new_chat()

        assert phases[0] == TurnPhase.AWAITING_FIRST_CHUNK
        assert TurnPhase.STREAMING in phases
        assert phases[-1] == TurnPhase.COMPLETED

    @pytest.mark.asyncio
    async def test_non_streaming_turn(self, team):
        """Test a non-streaming run applies the final response."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"session_id": "s1", "content": "Done", "created_at": 1000})

        service = make_service(handler, target=team)
        state = await service.send_message("Hi", stream=False)

        assert state.phase == TurnPhase.COMPLETED
        assert state.messages[-1].content == "Done"
        assert [s.session_id for s in service.ledger.sessions] == ["s1"]


class TestFailedTurn:
    """Tests for turns that end in error."""

    @pytest.mark.asyncio
    async def test_run_error_evicts_new_session(self, team):
        """Test a failed turn removes the session it created and keeps older ones."""

        def handler(request: httpx.Request) -> httpx.Response:
            return sse_response(
                {"event": "RunStarted", "session_id": "s1"},
                {"event": "RunResponseContent", "content": "Work"},
                {"event": "RunError", "content": "Model overloaded"},
            )

        ledger = SessionLedger([SessionEntry(session_id="s0")])
        service = make_service(handler, target=team, ledger=ledger)

        state = await service.send_message("Hi")

        assert state.phase == TurnPhase.ERRORED
        assert state.error_message == "Model overloaded"
        assert state.messages[-1].streaming_error
        assert [s.session_id for s in ledger.sessions] == ["s0"]

    @pytest.mark.asyncio
    async def test_error_in_existing_session_keeps_it(self, team):
        """Test a failure while continuing a session keeps that session."""
        responses = iter(
            [
                sse_response({"event": "RunStarted", "session_id": "s1"}, {"event": "RunCompleted", "content": "ok"}),
                sse_response({"event": "RunStarted", "session_id": "s1"}, {"event": "RunCancelled"}),
            ]
        )
        service = make_service(lambda request: next(responses), target=team)

        await service.send_message("first")
        state = await service.send_message("second")

        assert state.error_message == "Run cancelled"
        assert [s.session_id for s in service.ledger.sessions] == ["s1"]

    @pytest.mark.asyncio
    async def test_connection_failure(self, team):
        """Test an unreachable backend fails the turn with a retry message."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        service = make_service(handler, target=team)
        state = await service.send_message("Hi")

        assert state.phase == TurnPhase.ERRORED
        assert state.error_message == TRANSPORT_ERROR_MESSAGE
        assert not state.is_active

    @pytest.mark.asyncio
    async def test_stream_interrupted(self, team):
        """Test a stream cut mid-turn fails the turn and evicts its session."""

        def handler(request: httpx.Request) -> httpx.Response:
            return sse_response(
                {"event": "RunStarted", "session_id": "s1"},
                {"event": "RunResponseContent", "content": "Half"},
                fail_with=httpx.ReadError("connection reset"),
            )

        service = make_service(handler, target=team)
        state = await service.send_message("Hi")

        assert state.phase == TurnPhase.ERRORED
        assert state.error_message == TRANSPORT_ERROR_MESSAGE
        assert state.messages[-1].content == "Half"
        assert service.ledger.sessions == ()

    @pytest.mark.asyncio
    async def test_rejected_run(self, team):
        """Test an error status fails the turn."""
        service = make_service(lambda request: httpx.Response(500), target=team)
        state = await service.send_message("Hi")
        assert state.error_message == TRANSPORT_ERROR_MESSAGE

    @pytest.mark.asyncio
    async def test_no_target(self):
        """Test sending without a target fails the turn without a request."""

        def handler(request: httpx.Request) -> httpx.Response:
            pytest.fail("no request expected")

        service = make_service(handler)
        state = await service.send_message("Hi")

        assert state.phase == TurnPhase.ERRORED
        assert state.error_message == NO_TARGET_MESSAGE
        assert [m.role for m in state.messages] == ["user", "agent"]

    @pytest.mark.asyncio
    async def test_retry_drops_failed_pair(self, team):
        """Test the next turn replaces the failed one in the transcript."""
        responses = iter(
            [
                sse_response({"event": "RunError"}),
                sse_response({"event": "RunCompleted", "content": "ok"}),
            ]
        )
        service = make_service(lambda request: next(responses), target=team)

        await service.send_message("Hi")
        state = await service.send_message("Hi")

        assert [(m.role, m.content) for m in state.messages] == [("user", "Hi"), ("agent", "ok")]


class TestInterruptedTurn:
    """Tests for turns that stop before their stream ends."""

    @pytest.mark.asyncio
    async def test_cancelled_turn_releases_conversation(self, team):
        """Test cancelling a streaming turn fails it and lets the conversation continue."""
        half_streamed = asyncio.Event()
        never = asyncio.Event()

        def handler(request: httpx.Request) -> httpx.Response:
            async def chunks():
                yield b'data: {"event": "RunStarted", "session_id": "s1"}\n\n'
                yield b'data: {"event": "RunResponseContent", "content": "Half"}\n\n'
                await never.wait()

            return httpx.Response(200, content=chunks())

        service = make_service(handler, target=team)
        service.subscribe(lambda state: state.messages and state.messages[-1].content == "Half" and half_streamed.set())

        task = asyncio.create_task(service.send_message("Hi"))
        await asyncio.wait_for(half_streamed.wait(), timeout=5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert service.state.phase == TurnPhase.ERRORED
        assert service.state.error_message == RUN_CANCELLED_MESSAGE
        assert service.state.messages[-1].content == "Half"
        assert service.ledger.sessions == ()

        service.new_chat()
        assert service.state.phase == TurnPhase.IDLE

    @pytest.mark.asyncio
    async def test_unexpected_error_releases_conversation(self, team):
        """Test an unexpected exception fails the turn before propagating."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                raise RuntimeError("handler bug")
            return sse_response({"event": "RunCompleted", "content": "ok"})

        service = make_service(handler, target=team)

        with pytest.raises(RuntimeError):
            await service.send_message("Hi")

        assert service.state.phase == TurnPhase.ERRORED
        assert service.state.error_message == RUN_ERROR_MESSAGE

        state = await service.send_message("Hi")
        assert state.phase == TurnPhase.COMPLETED
        assert [(m.role, m.content) for m in state.messages] == [("user", "Hi"), ("agent", "ok")]


class TestTurnAdmission:
    """Tests for rejecting work while a turn is running."""

    @pytest.mark.asyncio
    async def test_second_turn_is_rejected(self, team):
        """Test send, load and switch are refused while a response streams."""
        rejected = []

        async def handler(request: httpx.Request) -> httpx.Response:
            for attempt in (
                lambda: service.send_message("again"),
                lambda: service.load_session("s0"),
            ):
                with pytest.raises(TurnInProgressError):
                    await attempt()
                rejected.append(True)
            with pytest.raises(TurnInProgressError):
                service.set_target(ConversationTarget.for_team("other"))
            rejected.append(True)
            return sse_response({"event": "RunCompleted", "content": "ok"})

        service = make_service(handler, target=team)
        state = await service.send_message("Hi")

        assert rejected == [True, True, True]
        assert state.phase == TurnPhase.COMPLETED
        assert len(state.messages) == 2


class TestSessionManagement:
    """Tests for listing, loading and deleting sessions."""

    @pytest.mark.asyncio
    async def test_load_sessions(self, team):
        """Test the ledger is refreshed from the listing."""
        service = make_service(lambda request: httpx.Response(200, json=[{"session_id": "a"}, {"session_id": "b"}]), team)

        sessions = await service.load_sessions()

        assert [s.session_id for s in sessions] == ["a", "b"]
        assert [s.session_id for s in service.ledger.sessions] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_load_sessions_failure(self, team):
        """Test a failed listing notifies and shows an empty list."""
        notifier = Mock()
        service = make_service(lambda request: httpx.Response(500), team, notifier=notifier)

        assert await service.load_sessions() == []
        notifier.error.assert_called_once_with("Error loading sessions")

    @pytest.mark.asyncio
    async def test_load_session(self, team):
        """Test a past session replaces the transcript."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={"session_id": "s1", "runs": [{"message": {"content": "Hi"}, "response": {"content": "Hello"}}]},
            )

        service = make_service(handler, team)
        messages = await service.load_session("s1")

        assert [(m.role, m.content) for m in messages] == [("user", "Hi"), ("agent", "Hello")]
        assert service.state.session_id == "s1"
        assert service.state.messages == tuple(messages)
        assert service.ledger.active_session_id == "s1"

    @pytest.mark.asyncio
    async def test_load_missing_session(self, team):
        """Test a missing session returns nothing and keeps the transcript."""
        service = make_service(lambda request: httpx.Response(404), team)
        before = service.state

        assert await service.load_session("gone") == []
        assert service.state is before

    @pytest.mark.asyncio
    async def test_load_session_failure(self, team):
        """Test a failed fetch notifies the user."""
        notifier = Mock()
        service = make_service(lambda request: httpx.Response(500), team, notifier=notifier)

        assert await service.load_session("s1") == []
        notifier.error.assert_called_once_with("Error loading session")

    @pytest.mark.asyncio
    async def test_delete_current_session(self, team):
        """Test deleting the open session removes it and clears the transcript."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "DELETE":
                return httpx.Response(200)
            return httpx.Response(200, json={"session_id": "s1", "runs": [{"message": {"content": "Hi"}}]})

        notifier = Mock()
        ledger = SessionLedger([SessionEntry(session_id="s1"), SessionEntry(session_id="s2")])
        service = make_service(handler, team, ledger=ledger, notifier=notifier)
        await service.load_session("s1")

        assert await service.delete_session("s1") is True
        assert [s.session_id for s in ledger.sessions] == ["s2"]
        assert service.state.messages == ()
        assert service.state.session_id is None
        notifier.info.assert_called_once_with("Session deleted")

    @pytest.mark.asyncio
    async def test_delete_failure_keeps_session(self, team):
        """Test a failed delete leaves the cache untouched."""
        notifier = Mock()
        ledger = SessionLedger([SessionEntry(session_id="s1")])
        service = make_service(lambda request: httpx.Response(500), team, ledger=ledger, notifier=notifier)

        assert await service.delete_session("s1") is False
        assert [s.session_id for s in ledger.sessions] == ["s1"]
        notifier.error.assert_called_once_with("Failed to delete session")

    @pytest.mark.asyncio
    async def test_set_target_resets(self, team):
        """Test switching target clears the transcript and the ledger."""
        service = make_service(
            lambda request: sse_response({"event": "RunStarted", "session_id": "s1"}, {"event": "RunCompleted"}), team
        )
        await service.send_message("Hi")

        service.set_target(ConversationTarget.for_agent("web"))

        assert service.state.messages == ()
        assert service.ledger.sessions == ()
        assert service.target.id == "web"


class TestAgentListing:
    """Tests for listing chat targets."""

    @pytest.mark.asyncio
    async def test_partial_failure(self):
        """Test one failing listing does not hide the others."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/playground/agents":
                return httpx.Response(200, json=[{"agent_id": "web", "name": "Web"}])
            if request.url.path == "/v1/playground/teams":
                return httpx.Response(500)
            return httpx.Response(200, json={"agents": [{"id": DYNAMIC_ID, "name": "Dyn"}]})

        notifier = Mock()
        service = make_service(handler, notifier=notifier)

        options = await service.load_agents()

        assert [(o.kind, o.value) for o in options] == [("agent", "web"), ("dynamic", DYNAMIC_ID)]
        notifier.error.assert_called_once_with("Error fetching teams")
