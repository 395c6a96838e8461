"""
AgentStream - the caller-facing event channel of one run.

The generate-loop is the only publisher. Callers either register listeners
per event kind, or iterate the stream asynchronously; iteration replays
everything published so far and then follows live events until
``turn_ended``.

    stream = agent.run(thread_id, "Hello there!")
    stream.on("text_delta", lambda event: print(event.text, end=""))
    stream.on("tool_result", lambda event: print(f"{event.name}: {event.result}"))
    events = await stream.wait()
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from typing import Any, AsyncIterator, Callable, Optional, Union

from ..errors import StreamClosedError
from .events import EventType, StreamEvent

logger = logging.getLogger(__name__)

Listener = Callable[[StreamEvent], Any]


class AgentStream:
    """Ordered, single-publisher event channel."""

    def __init__(self, thread_id: Optional[str] = None):
        self.thread_id = thread_id
        self._listeners: dict[EventType, list[Listener]] = defaultdict(list)
        self._events: list[StreamEvent] = []
        self._closed = False
        self._changed = asyncio.Event()
        self._listener_tasks: set[asyncio.Task] = set()

    # -- subscription -------------------------------------------------------

    def on(self, kind: Union[EventType, str], listener: Listener) -> "AgentStream":
        """
        Register a listener for one event kind.

        Listeners run synchronously in publication order. A coroutine
        function may be registered too; its coroutine is scheduled as a task
        on the running loop and is not awaited by the publisher.
        """
        self._listeners[EventType(kind)].append(listener)
        return self

    def off(self, kind: Union[EventType, str], listener: Listener) -> "AgentStream":
        """Remove a previously registered listener."""
        listeners = self._listeners[EventType(kind)]
        if listener in listeners:
            listeners.remove(listener)
        return self

    @property
    def events(self) -> list[StreamEvent]:
        return list(self._events)

    @property
    def is_complete(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[StreamEvent]:
        index = 0
        while True:
            while index < len(self._events):
                yield self._events[index]
                index += 1
            if self._closed:
                return
            await self._changed.wait()

    async def wait(self) -> list[StreamEvent]:
        """Wait until the run ends and return every published event."""
        async for _ in self:
            pass
        return self.events

    # -- publishing (generate-loop only) ------------------------------------

    def emit_start(self, response_id: Optional[str] = None) -> None:
        self._publish(StreamEvent.turn_started(response_id))

    def emit_text(self, text: str) -> None:
        self._publish(StreamEvent.text_delta(text))

    def emit_tool_start(self, name: str) -> None:
        self._publish(StreamEvent.tool_started(name))

    def emit_tool_execute(self, name: str, args: Any) -> None:
        self._publish(StreamEvent.tool_executing(name, args))

    def emit_tool_result(self, name: str, result: Any, error: bool = False) -> None:
        self._publish(StreamEvent.tool_result(name, result, is_error=error))

    def emit_error(self, detail: str) -> None:
        self._publish(StreamEvent.error(detail))

    def emit_end(self, response_id: Optional[str] = None) -> None:
        self._publish(StreamEvent.turn_ended(response_id))

    def _publish(self, event: StreamEvent) -> None:
        if self._closed:
            raise StreamClosedError(
                f"Cannot publish '{event.type.value}' after turn_ended"
            )
        self._events.append(event)
        if event.type is EventType.TURN_ENDED:
            self._closed = True

        for listener in list(self._listeners[event.type]):
            try:
                outcome = listener(event)
                if inspect.isawaitable(outcome):
                    self._schedule(outcome, event)
            except Exception:
                logger.exception(
                    "[%s] Listener for '%s' raised", self.thread_id, event.type.value
                )

        # Wake iterators, then arm a fresh event for the next publication
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()

    def _schedule(self, awaitable: Any, event: StreamEvent) -> None:
        task = asyncio.ensure_future(awaitable)
        self._listener_tasks.add(task)

        def _done(task: asyncio.Task) -> None:
            self._listener_tasks.discard(task)
            if not task.cancelled() and task.exception() is not None:
                logger.error(
                    "[%s] Async listener for '%s' raised: %s",
                    self.thread_id,
                    event.type.value,
                    task.exception(),
                )

        task.add_done_callback(_done)
