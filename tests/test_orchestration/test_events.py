"""Tests for provider event translation and the request shape."""

from types import SimpleNamespace

import pytest

from threadloop.errors import ProviderError
from threadloop.orchestration.events import (
    EventType,
    ProviderEventKind,
    StreamEvent,
    TurnRequest,
    translate_event,
)


class TestTranslateEvent:
    """Tests for translate_event."""

    def test_response_created(self, raw):
        event = translate_event(raw.created("resp_1"))
        assert event.kind is ProviderEventKind.TURN_CREATED
        assert event.response_id == "resp_1"

    def test_function_call_added(self, raw):
        event = translate_event(raw.function_added("add", "call_1"))
        assert event.kind is ProviderEventKind.ITEM_ADDED
        assert event.is_function_call
        assert event.item.name == "add"

    def test_function_call_done(self, raw):
        event = translate_event(raw.function_done("add", '{"a": 2, "b": 3}', "call_1"))
        assert event.kind is ProviderEventKind.ITEM_DONE
        assert event.item.arguments == '{"a": 2, "b": 3}'
        assert event.item.call_id == "call_1"

    def test_message_item_is_not_function_call(self):
        event = translate_event(
            {"type": "response.output_item.done", "item": {"type": "message", "id": "msg_1"}}
        )
        assert event.kind is ProviderEventKind.ITEM_DONE
        assert event.is_function_call is False
        assert event.item is None

    def test_text_delta_is_verbatim(self, raw):
        event = translate_event(raw.delta("  Hello\n"))
        assert event.kind is ProviderEventKind.TEXT_DELTA
        assert event.delta == "  Hello\n"

    def test_response_completed(self, raw):
        event = translate_event(raw.completed("resp_1"))
        assert event.kind is ProviderEventKind.TURN_COMPLETED
        assert event.response_id == "resp_1"

    def test_sdk_objects_are_supported(self):
        """Attribute-style SDK events translate like dicts."""
        item = SimpleNamespace(
            type="function_call", name="add", arguments="{}", call_id="call_9"
        )
        event = translate_event(SimpleNamespace(type="response.output_item.done", item=item))
        assert event.item.call_id == "call_9"

    def test_completed_carries_usage(self):
        event = translate_event(
            {
                "type": "response.completed",
                "response": {
                    "id": "resp_1",
                    "usage": {"input_tokens": 12, "output_tokens": 5, "total_tokens": 17},
                },
            }
        )
        assert event.usage == {"input_tokens": 12, "output_tokens": 5, "total_tokens": 17}

    def test_completed_without_usage(self, raw):
        assert translate_event(raw.completed("resp_1")).usage is None

    def test_unused_events_are_ignored(self):
        assert translate_event({"type": "response.in_progress"}) is None
        assert translate_event({"type": "response.content_part.added"}) is None

    def test_missing_type_is_malformed(self):
        with pytest.raises(ProviderError, match="without a type"):
            translate_event({"delta": "hi"})

    def test_missing_response_id_is_malformed(self):
        with pytest.raises(ProviderError, match="missing response id"):
            translate_event({"type": "response.created", "response": {}})

    def test_function_call_without_call_id_is_malformed(self):
        with pytest.raises(ProviderError, match="call_id"):
            translate_event(
                {
                    "type": "response.output_item.done",
                    "item": {"type": "function_call", "name": "add", "arguments": "{}"},
                }
            )

    def test_delta_must_be_text(self):
        with pytest.raises(ProviderError, match="missing delta"):
            translate_event({"type": "response.output_text.delta"})

    def test_error_event_raises(self):
        with pytest.raises(ProviderError, match="rate limited"):
            translate_event({"type": "error", "message": "rate limited"})

    def test_failed_response_raises(self):
        with pytest.raises(ProviderError, match="server exploded"):
            translate_event(
                {
                    "type": "response.failed",
                    "response": {"id": "resp_1", "error": {"message": "server exploded"}},
                }
            )

    def test_incomplete_response_raises(self):
        with pytest.raises(ProviderError, match="max_output_tokens"):
            translate_event(
                {
                    "type": "response.incomplete",
                    "response": {
                        "id": "resp_1",
                        "incomplete_details": {"reason": "max_output_tokens"},
                    },
                }
            )


class TestTurnRequest:
    """Tests for TurnRequest.to_create_kwargs."""

    def test_first_turn_omits_unset_fields(self):
        kwargs = TurnRequest(model="gpt-4o", input="hello").to_create_kwargs()

        assert kwargs == {"model": "gpt-4o", "input": "hello", "stream": True}

    def test_continuation_and_tools(self, add_tool):
        declaration, _ = add_tool
        request = TurnRequest(
            model="gpt-4o",
            input=[],
            previous_response_id="resp_1",
            instructions="Be brief.",
            tools=[declaration.to_provider_format()],
            parallel_tool_calls=False,
        )
        kwargs = request.to_create_kwargs()

        assert kwargs["previous_response_id"] == "resp_1"
        assert kwargs["instructions"] == "Be brief."
        assert kwargs["tools"][0]["name"] == "add"
        assert kwargs["parallel_tool_calls"] is False
        assert kwargs["stream"] is True


class TestStreamEvent:
    """Tests for StreamEvent constructors."""

    def test_tool_result_flags(self):
        ok = StreamEvent.tool_result("add", 5)
        failed = StreamEvent.tool_result("add", "boom", is_error=True)

        assert ok.type is EventType.TOOL_RESULT
        assert ok.is_error is False
        assert failed.is_error is True

    def test_event_type_values(self):
        assert EventType("turn_started") is EventType.TURN_STARTED
        assert StreamEvent.error("bad").detail == "bad"
