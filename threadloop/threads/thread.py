"""
Threads - stateful conversations between a caller and the agent.

A thread remembers where the provider-side conversation left off (``head``,
the last fully completed response id) and an optional local history of what
was exchanged. Only the generate-loop advances a thread, and only once a
whole turn, tool round-trips included, has completed.
"""

import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..errors import ThreadExistsError, ThreadNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class ThreadItem:
    """One entry in a thread's history."""

    type: str  # message | output_text | function_call | function_call_output
    content: Any
    ref_id: Optional[str] = None
    time: float = field(default_factory=time.time)


class Thread:
    """A single logical dialogue."""

    def __init__(self, id: str, meta: Optional[dict] = None):
        self._id = id
        self.meta: dict = dict(meta or {})
        # head -- used as previous_response_id, points at the last completed turn
        self._head: Optional[str] = None
        self._items: list[ThreadItem] = []
        self._busy = False

    @property
    def id(self) -> str:
        return self._id

    @property
    def head(self) -> Optional[str]:
        return self._head

    @property
    def items(self) -> list[ThreadItem]:
        """A copy of the accumulated history."""
        return list(self._items)

    @property
    def busy(self) -> bool:
        """Whether a run is currently in flight for this thread."""
        return self._busy

    def _acquire(self) -> bool:
        if self._busy:
            return False
        self._busy = True
        return True

    def _release(self) -> None:
        self._busy = False

    def _commit(self, response_id: Optional[str], items: Iterable[ThreadItem]) -> None:
        """Advance the thread after a completed turn."""
        self._items.extend(items)
        if response_id is not None:
            self._head = response_id
        logger.debug("[%s] Committed head=%s", self._id, self._head)

    def _replace_items(self, items: Iterable[ThreadItem]) -> None:
        self._items = list(items)

    def __repr__(self) -> str:
        return f"Thread(id={self._id!r}, head={self._head!r}, items={len(self._items)})"


class ThreadStore:
    """Owns the threads of one agent; ids are unique within the store."""

    def __init__(self, prefix: str = "thread"):
        self._prefix = prefix
        self._threads: dict[str, Thread] = {}
        self._sequence = itertools.count(1)

    def create(self, id: Optional[str] = None, meta: Optional[dict] = None) -> Thread:
        """
        Create a new thread.

        Args:
            id: Caller-supplied id. If omitted, the next free sequence id
                (``thread_1``, ``thread_2``, ...) is used.
            meta: Arbitrary caller metadata.

        Raises:
            ThreadExistsError: If ``id`` is already in use.
        """
        if id is None:
            id = self._next_id()
        elif id in self._threads:
            raise ThreadExistsError(f"Thread '{id}' already exists")

        thread = Thread(id=id, meta=meta)
        self._threads[id] = thread
        logger.debug("Created thread %s", id)
        return thread

    def get(self, id: str) -> Thread:
        """Get a thread by id, raising ThreadNotFoundError if absent."""
        try:
            return self._threads[id]
        except KeyError:
            raise ThreadNotFoundError(f"Thread '{id}' not found") from None

    def ids(self) -> list[str]:
        return list(self._threads)

    def _next_id(self) -> str:
        while True:
            candidate = f"{self._prefix}_{next(self._sequence)}"
            if candidate not in self._threads:
                return candidate

    def __contains__(self, id: object) -> bool:
        return id in self._threads

    def __len__(self) -> int:
        return len(self._threads)
