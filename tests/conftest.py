"""
Pytest configuration and fixtures for threadloop tests.

The FakeProvider replays scripted raw events (plain dicts in the responses
API shape) through ``translate_event``, one script per provider turn.
"""

import asyncio
from typing import Any, Optional

import pytest

from threadloop.orchestration.events import TurnRequest, translate_event


class RawEvents:
    """Builders for raw provider events."""

    @staticmethod
    def created(response_id: str) -> dict:
        return {"type": "response.created", "response": {"id": response_id}}

    @staticmethod
    def function_added(name: str, call_id: str) -> dict:
        return {
            "type": "response.output_item.added",
            "item": {"type": "function_call", "name": name, "call_id": call_id, "arguments": ""},
        }

    @staticmethod
    def function_done(name: str, arguments: str, call_id: str) -> dict:
        return {
            "type": "response.output_item.done",
            "item": {
                "type": "function_call",
                "name": name,
                "call_id": call_id,
                "arguments": arguments,
            },
        }

    @staticmethod
    def function_call(name: str, arguments: str, call_id: str) -> list[dict]:
        return [
            RawEvents.function_added(name, call_id),
            RawEvents.function_done(name, arguments, call_id),
        ]

    @staticmethod
    def delta(text: str) -> dict:
        return {"type": "response.output_text.delta", "delta": text}

    @staticmethod
    def completed(response_id: str) -> dict:
        return {"type": "response.completed", "response": {"id": response_id}}

    @staticmethod
    def text_turn(response_id: str, *chunks: str) -> list[dict]:
        return (
            [RawEvents.created(response_id)]
            + [RawEvents.delta(chunk) for chunk in chunks]
            + [RawEvents.completed(response_id)]
        )


class FakeProvider:
    """Scripted stand-in for ResponsesProvider."""

    def __init__(
        self,
        turns: Optional[list[list[Any]]] = None,
        models: Optional[list[str]] = None,
        stored_items: Optional[dict[str, list[dict]]] = None,
    ):
        self.turns = list(turns or [])
        self.models = models if models is not None else ["gpt-4o"]
        self.stored_items = stored_items or {}
        self.requests: list[TurnRequest] = []
        self.list_models_calls = 0
        self.closed = False

    async def list_models(self) -> list[str]:
        self.list_models_calls += 1
        if isinstance(self.models, Exception):
            raise self.models
        return list(self.models)

    async def create_turn(self, request: TurnRequest):
        self.requests.append(request)
        if not self.turns:
            raise AssertionError("FakeProvider ran out of scripted turns")
        for raw in self.turns.pop(0):
            if isinstance(raw, Exception):
                raise raw
            await asyncio.sleep(0)
            event = translate_event(raw)
            if event is not None:
                yield event

    async def list_turn_items(self, response_id: str) -> list[dict]:
        return list(self.stored_items.get(response_id, []))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def raw():
    """Raw provider event builders."""
    return RawEvents


@pytest.fixture
def fake_provider():
    """Factory for scripted providers."""

    def factory(*turns: list[Any], **kwargs: Any) -> FakeProvider:
        return FakeProvider(turns=list(turns), **kwargs)

    return factory


@pytest.fixture
def add_tool():
    """Declaration and callback for add(a, b) = a + b."""
    from threadloop.tools import ToolDeclaration

    declaration = ToolDeclaration(
        name="add",
        description="Add two numbers.",
        parameters={
            "type": "object",
            "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
            "required": ["a", "b"],
        },
    )

    def add(args: dict) -> float:
        return args["a"] + args["b"]

    return declaration, add


@pytest.fixture(autouse=True)
def reset_tracing():
    """Keep tracing disabled between tests."""
    from threadloop.tracing import client as tracing_client

    tracing_client._tracing_client = None
    yield
    tracing_client._tracing_client = None
