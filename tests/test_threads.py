"""Tests for threads and the thread store."""

import pytest

from threadloop.errors import ThreadExistsError, ThreadNotFoundError
from threadloop.threads import Thread, ThreadItem, ThreadStore


class TestThread:
    """Tests for the Thread record."""

    def test_new_thread_defaults(self):
        thread = Thread(id="t1", meta={"user": "alice"})

        assert thread.id == "t1"
        assert thread.head is None
        assert thread.items == []
        assert thread.meta == {"user": "alice"}
        assert thread.busy is False

    def test_commit_advances_head_and_history(self):
        """Committing a turn moves head and appends the staged items."""
        thread = Thread(id="t1")
        thread._commit("resp_1", [ThreadItem(type="message", content="hi")])

        assert thread.head == "resp_1"
        assert [item.content for item in thread.items] == ["hi"]

    def test_items_returns_copy(self):
        """Callers cannot mutate history through the items property."""
        thread = Thread(id="t1")
        thread.items.append(ThreadItem(type="message", content="sneaky"))
        assert thread.items == []

    def test_acquire_is_exclusive(self):
        """Only one run may hold a thread at a time."""
        thread = Thread(id="t1")

        assert thread._acquire() is True
        assert thread._acquire() is False
        thread._release()
        assert thread._acquire() is True


class TestThreadStore:
    """Tests for ThreadStore create/get."""

    def test_create_with_id(self):
        store = ThreadStore()
        thread = store.create(id="support-42", meta={"channel": "web"})

        assert thread.id == "support-42"
        assert store.get("support-42") is thread
        assert "support-42" in store

    def test_create_assigns_sequence_ids(self):
        """Threads without an id get thread_1, thread_2, ..."""
        store = ThreadStore()

        assert store.create().id == "thread_1"
        assert store.create().id == "thread_2"
        assert len(store) == 2

    def test_sequence_skips_ids_taken_by_callers(self):
        store = ThreadStore()
        store.create(id="thread_1")

        assert store.create().id == "thread_2"

    def test_duplicate_id_raises(self):
        store = ThreadStore()
        store.create(id="dup")

        with pytest.raises(ThreadExistsError):
            store.create(id="dup")

    def test_get_unknown_raises(self):
        store = ThreadStore()

        with pytest.raises(ThreadNotFoundError):
            store.get("missing")
