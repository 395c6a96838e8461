"""Tests for the AgentStream event channel."""

import asyncio

import pytest

from threadloop.errors import StreamClosedError
from threadloop.orchestration.events import EventType
from threadloop.orchestration.stream import AgentStream


class TestListeners:
    """Tests for listener registration."""

    def test_listeners_receive_matching_events(self):
        stream = AgentStream()
        texts = []
        stream.on("text_delta", lambda event: texts.append(event.text))

        stream.emit_start("resp_1")
        stream.emit_text("Hello ")
        stream.emit_text("there!")

        assert texts == ["Hello ", "there!"]

    def test_many_listeners_per_kind(self):
        stream = AgentStream()
        first, second = [], []
        stream.on(EventType.TOOL_STARTED, lambda e: first.append(e.name))
        stream.on(EventType.TOOL_STARTED, lambda e: second.append(e.name))

        stream.emit_tool_start("get_weather")

        assert first == second == ["get_weather"]

    def test_off_removes_listener(self):
        stream = AgentStream()
        seen = []
        listener = seen.append
        stream.on("text_delta", listener)
        stream.off("text_delta", listener)

        stream.emit_text("ignored")
        assert seen == []

    def test_unknown_kind_rejected(self):
        stream = AgentStream()
        with pytest.raises(ValueError):
            stream.on("data", print)

    def test_raising_listener_does_not_break_others(self):
        stream = AgentStream()
        seen = []

        def bad(event):
            raise RuntimeError("listener bug")

        stream.on("text_delta", bad)
        stream.on("text_delta", lambda e: seen.append(e.text))

        stream.emit_text("still delivered")
        assert seen == ["still delivered"]


    @pytest.mark.asyncio
    async def test_coroutine_listener_is_scheduled(self):
        """Async listeners run as tasks instead of being dropped."""
        stream = AgentStream()
        seen = []

        async def record(event):
            await asyncio.sleep(0)
            seen.append(event.text)

        stream.on("text_delta", record)
        stream.emit_text("async hello")
        assert seen == []

        await asyncio.sleep(0.01)
        assert seen == ["async hello"]

    @pytest.mark.asyncio
    async def test_failing_coroutine_listener_is_contained(self):
        stream = AgentStream()

        async def bad(event):
            raise RuntimeError("async listener bug")

        stream.on("text_delta", bad)
        stream.emit_text("one")
        await asyncio.sleep(0.01)

        stream.emit_end()
        assert stream.is_complete


class TestLifecycle:
    """Tests for ordering and closure."""

    def test_events_keep_publication_order(self):
        stream = AgentStream()
        stream.emit_start()
        stream.emit_tool_start("add")
        stream.emit_tool_execute("add", {"a": 1})
        stream.emit_tool_result("add", 2)
        stream.emit_end()

        assert [e.type for e in stream.events] == [
            EventType.TURN_STARTED,
            EventType.TOOL_STARTED,
            EventType.TOOL_EXECUTING,
            EventType.TOOL_RESULT,
            EventType.TURN_ENDED,
        ]

    def test_end_closes_stream(self):
        stream = AgentStream()
        stream.emit_end()

        assert stream.is_complete
        with pytest.raises(StreamClosedError):
            stream.emit_text("too late")
        assert len(stream.events) == 1

    @pytest.mark.asyncio
    async def test_iteration_follows_live_events(self):
        stream = AgentStream()

        async def publish():
            stream.emit_start()
            await asyncio.sleep(0)
            stream.emit_text("hi")
            await asyncio.sleep(0)
            stream.emit_end()

        task = asyncio.create_task(publish())
        received = [event.type async for event in stream]
        await task

        assert received == [EventType.TURN_STARTED, EventType.TEXT_DELTA, EventType.TURN_ENDED]

    @pytest.mark.asyncio
    async def test_iteration_replays_history(self):
        """A late subscriber still sees every event from the start."""
        stream = AgentStream()
        stream.emit_start()
        stream.emit_text("early")
        stream.emit_end()

        events = await stream.wait()
        assert [e.type for e in events][-1] is EventType.TURN_ENDED
        assert events[1].text == "early"
