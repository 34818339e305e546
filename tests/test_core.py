"""Tests for clipcode.core: sessions and the chat relay."""

import asyncio
import pytest
import httpx

from clipcode.core import (
    ChatRelay, ChatSession, ErrorKind, Failed, Partial, describe_error,
)
from clipcode.adapters.ollama import OllamaError

from tests.conftest import FakeAdapter, MOCK_MODEL_1, wait_for_stream


async def collect(events):
    return [event async for event in events]


class TestChatSession:
    """Tests for ChatSession accumulation."""

    def test_starts_empty(self, relay):
        session = relay.open_session("hello", "x")
        assert session.text == ""
        assert session.chunks_received == 0
        assert not session.started

    def test_append_accumulates(self, relay):
        session = relay.open_session("hello", "x")
        assert session.append("He") == "He"
        assert session.append("llo!") == "Hello!"
        assert session.chunks_received == 2

    def test_each_open_starts_fresh(self, relay):
        first = relay.open_session("a", "x")
        first.append("stale")
        second = relay.open_session("b", "x")
        assert second.text == ""
        assert first.text == "stale"

    def test_rejects_empty_prompt(self, relay):
        with pytest.raises(ValueError):
            relay.open_session("   ", "x")

    def test_rejects_empty_model(self, relay):
        with pytest.raises(ValueError):
            relay.open_session("hello", "")


class TestRelaySubmit:
    """Tests for ChatRelay.submit()/stream() event sequences."""

    @pytest.mark.asyncio
    async def test_hello_example(self):
        """["He", "llo!"] → Partial("He"), Partial("Hello!"), then a normal end."""
        relay = ChatRelay(FakeAdapter(fragments=["He", "llo!"]))

        events = await collect(relay.submit("hello", "x"))

        assert events == [Partial("He"), Partial("Hello!")]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fragments", [
        ["a"],
        ["a", "b", "c"],
        ["The", " capital", " of", " France", " is", " Paris."],
        ["", "x", ""],
    ])
    async def test_prefix_accumulation(self, fragments):
        """n fragments → n Partial events; event i is the concatenation of the first i."""
        relay = ChatRelay(FakeAdapter(fragments=fragments))

        events = await collect(relay.submit("prompt", "x"))

        assert len(events) == len(fragments)
        for i, event in enumerate(events):
            assert event == Partial("".join(fragments[:i + 1]))

    @pytest.mark.asyncio
    async def test_no_fragments_no_events(self):
        """Empty stream → no events at all."""
        relay = ChatRelay(FakeAdapter(fragments=[]))

        assert await collect(relay.submit("prompt", "x")) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("k", [0, 1, 2])
    async def test_failure_after_k_chunks(self, k):
        """Failure after k of 3 fragments → k Partials then exactly one Failed."""
        adapter = FakeAdapter(
            fragments=["a", "b", "c"], fail_with=OllamaError("boom"), fail_after=k
        )
        relay = ChatRelay(adapter)

        events = await collect(relay.submit("prompt", "x"))

        assert len(events) == k + 1
        assert all(isinstance(e, Partial) for e in events[:k])
        assert isinstance(events[-1], Failed)
        assert events[-1].message == "boom"

    @pytest.mark.asyncio
    async def test_failure_before_any_chunk_is_backend_unavailable(self):
        adapter = FakeAdapter(
            fragments=["a"], fail_with=httpx.ConnectError("Connection refused"), fail_after=0
        )

        events = await collect(ChatRelay(adapter).submit("prompt", "x"))

        assert events == [Failed(ErrorKind.BACKEND_UNAVAILABLE, "Connection refused")]

    @pytest.mark.asyncio
    async def test_failure_after_chunks_is_stream_interrupted(self):
        adapter = FakeAdapter(
            fragments=["a", "b"], fail_with=httpx.ReadError("reset by peer"), fail_after=1
        )

        events = await collect(ChatRelay(adapter).submit("prompt", "x"))

        assert events == [
            Partial("a"),
            Failed(ErrorKind.STREAM_INTERRUPTED, "reset by peer"),
        ]

    @pytest.mark.asyncio
    async def test_failure_after_all_chunks(self):
        """Error after the last fragment still ends with one Failed."""
        adapter = FakeAdapter(fragments=["a"], fail_with=OllamaError("late"), fail_after=1)

        events = await collect(ChatRelay(adapter).submit("prompt", "x"))

        assert events == [Partial("a"), Failed(ErrorKind.STREAM_INTERRUPTED, "late")]

    @pytest.mark.asyncio
    async def test_failure_message_never_empty(self):
        adapter = FakeAdapter(fragments=["a"], fail_with=RuntimeError(), fail_after=0)

        events = await collect(ChatRelay(adapter).submit("prompt", "x"))

        assert events[-1].message == "RuntimeError"

    @pytest.mark.asyncio
    async def test_task_sent_to_adapter(self):
        """Single user message, configured timeout and options."""
        adapter = FakeAdapter(fragments=["ok"])
        relay = ChatRelay(adapter, timeout_seconds=42, options={"temperature": 0.1})

        await collect(relay.submit("hello", MOCK_MODEL_1))

        task = adapter.tasks[0]
        assert task.model_id == MOCK_MODEL_1
        assert task.messages == [{"role": "user", "content": "hello"}]
        assert task.timeout_seconds == 42.0
        assert task.options == {"temperature": 0.1}

    @pytest.mark.asyncio
    async def test_stream_closed_on_success_and_failure(self):
        ok = FakeAdapter(fragments=["a"])
        bad = FakeAdapter(fragments=["a"], fail_with=OllamaError("x"), fail_after=0)

        await collect(ChatRelay(ok).submit("p", "m"))
        await collect(ChatRelay(bad).submit("p", "m"))

        assert ok.closed == 1
        assert bad.closed == 1

    @pytest.mark.asyncio
    async def test_session_cannot_be_streamed_twice(self, relay):
        session = relay.open_session("p", "m")
        await collect(relay.stream(session))

        with pytest.raises(RuntimeError):
            await collect(relay.stream(session))

    @pytest.mark.asyncio
    async def test_session_state_after_failure(self):
        adapter = FakeAdapter(fragments=["a", "b"], fail_with=OllamaError("x"), fail_after=1)
        relay = ChatRelay(adapter)
        session = relay.open_session("p", "m")

        await collect(relay.stream(session))

        assert session.finished
        assert session.text == "a"
        assert session.failure == Failed(ErrorKind.STREAM_INTERRUPTED, "x")

    @pytest.mark.asyncio
    async def test_concurrent_sessions_are_independent(self):
        """Two sessions on one relay accumulate separately."""
        relay = ChatRelay(FakeAdapter(fragments=["1", "2", "3"]))

        first, second = await asyncio.gather(
            collect(relay.submit("a", "m")),
            collect(relay.submit("b", "m")),
        )

        assert first == second == [Partial("1"), Partial("12"), Partial("123")]


class TestRelayCancellation:
    """Tests for ChatSession.cancel() and task cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_mid_stream_suppresses_events(self):
        adapter = FakeAdapter(fragments=["a", "b", "c"])
        relay = ChatRelay(adapter)
        session = relay.open_session("p", "m")

        events = []
        async for event in relay.stream(session):
            events.append(event)
            session.cancel()

        assert events == [Partial("a")]
        assert adapter.closed == 1
        assert session.finished

    @pytest.mark.asyncio
    async def test_cancel_before_start_skips_backend(self):
        adapter = FakeAdapter(fragments=["a"])
        relay = ChatRelay(adapter)
        session = relay.open_session("p", "m")
        session.cancel()

        assert await collect(relay.stream(session)) == []
        assert adapter.tasks == []

    @pytest.mark.asyncio
    async def test_error_after_cancel_is_not_reported(self):
        adapter = FakeAdapter(fragments=["a", "b"], fail_with=OllamaError("x"), fail_after=1)
        relay = ChatRelay(adapter)
        session = relay.open_session("p", "m")

        events = []
        async for event in relay.stream(session):
            events.append(event)
            session.cancel()

        assert events == [Partial("a")]
        assert session.failure is None

    @pytest.mark.asyncio
    async def test_task_cancellation_closes_stream(self):
        """Cancelling the consuming task closes the backend stream."""
        adapter = FakeAdapter(fragments=["a", "b"])
        adapter.gate = asyncio.Event()
        relay = ChatRelay(adapter)
        session = relay.open_session("p", "m")

        async def consume():
            async for _ in relay.stream(session):
                pass

        task = asyncio.create_task(consume())
        await wait_for_stream(adapter)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert adapter.closed == 1
        assert session.text == ""

    @pytest.mark.asyncio
    async def test_cancel_while_backend_stalled(self):
        """cancel() ends a stream whose backend never sends another chunk."""
        adapter = FakeAdapter(fragments=["a", "b"])
        adapter.gate = asyncio.Event()
        relay = ChatRelay(adapter)
        session = relay.open_session("p", "m")

        events = []

        async def consume():
            async for event in relay.stream(session):
                events.append(event)

        task = asyncio.create_task(consume())
        await wait_for_stream(adapter)
        session.cancel()
        await asyncio.wait_for(task, timeout=1)

        assert events == []
        assert adapter.closed == 1
        assert session.finished
        assert session.failure is None


class TestDescribeError:
    def test_uses_message(self):
        assert describe_error(ValueError("bad")) == "bad"

    def test_falls_back_to_class_name(self):
        assert describe_error(TimeoutError()) == "TimeoutError"
