"""
Event taxonomy for the generate-loop.

Two vocabularies live here:

* ``ProviderEvent`` - the minimal slice of the provider's streamed
  "responses" events the loop needs (turn created, output item added/done,
  text delta, turn completed). ``translate_event`` maps raw SDK events, as
  attribute objects or plain dicts, onto it.
* ``StreamEvent`` - the provider-agnostic events published to callers
  through an AgentStream.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from ..errors import ProviderError

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Kinds of events published to callers."""

    TURN_STARTED = "turn_started"
    TEXT_DELTA = "text_delta"
    TOOL_STARTED = "tool_started"
    TOOL_EXECUTING = "tool_executing"
    TOOL_RESULT = "tool_result"
    TURN_ENDED = "turn_ended"
    ERROR = "error"


@dataclass(frozen=True)
class StreamEvent:
    """A single caller-facing event."""

    type: EventType
    response_id: Optional[str] = None
    text: Optional[str] = None
    name: Optional[str] = None
    args: Any = None
    result: Any = None
    is_error: bool = False
    detail: Optional[str] = None

    @classmethod
    def turn_started(cls, response_id: Optional[str] = None) -> "StreamEvent":
        return cls(EventType.TURN_STARTED, response_id=response_id)

    @classmethod
    def text_delta(cls, text: str) -> "StreamEvent":
        return cls(EventType.TEXT_DELTA, text=text)

    @classmethod
    def tool_started(cls, name: str) -> "StreamEvent":
        return cls(EventType.TOOL_STARTED, name=name)

    @classmethod
    def tool_executing(cls, name: str, args: Any) -> "StreamEvent":
        return cls(EventType.TOOL_EXECUTING, name=name, args=args)

    @classmethod
    def tool_result(cls, name: str, result: Any, is_error: bool = False) -> "StreamEvent":
        return cls(EventType.TOOL_RESULT, name=name, result=result, is_error=is_error)

    @classmethod
    def turn_ended(cls, response_id: Optional[str] = None) -> "StreamEvent":
        return cls(EventType.TURN_ENDED, response_id=response_id)

    @classmethod
    def error(cls, detail: str) -> "StreamEvent":
        return cls(EventType.ERROR, detail=detail, is_error=True)


class ProviderEventKind(str, Enum):
    TURN_CREATED = "turn_created"
    ITEM_ADDED = "item_added"
    ITEM_DONE = "item_done"
    TEXT_DELTA = "text_delta"
    TURN_COMPLETED = "turn_completed"


@dataclass(frozen=True)
class FunctionCall:
    """A function-call output item as requested by the provider."""

    name: str
    arguments: str = ""
    call_id: str = ""


@dataclass(frozen=True)
class ProviderEvent:
    """One classified provider stream event."""

    kind: ProviderEventKind
    response_id: Optional[str] = None
    item_type: Optional[str] = None
    item: Optional[FunctionCall] = None
    delta: str = ""
    usage: Optional[dict] = None

    @property
    def is_function_call(self) -> bool:
        return self.item_type == "function_call"


@dataclass
class TurnRequest:
    """Everything needed to open one provider turn."""

    model: str
    input: Union[str, list]
    previous_response_id: Optional[str] = None
    instructions: str = ""
    tools: list[dict] = field(default_factory=list)
    stream: bool = True
    parallel_tool_calls: bool = True

    def to_create_kwargs(self) -> dict:
        """Keyword arguments for ``client.responses.create``."""
        kwargs: dict = {
            "model": self.model,
            "input": self.input,
            "stream": self.stream,
        }
        # Only include optional fields that are set
        if self.previous_response_id:
            kwargs["previous_response_id"] = self.previous_response_id
        if self.instructions:
            kwargs["instructions"] = self.instructions
        if self.tools:
            kwargs["tools"] = self.tools
            kwargs["parallel_tool_calls"] = self.parallel_tool_calls
        return kwargs


def _get(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from an SDK model or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _response_id(raw: Any, event_type: str) -> str:
    response_id = _get(_get(raw, "response"), "id")
    if not response_id:
        raise ProviderError(f"Malformed '{event_type}' event: missing response id")
    return response_id


def _function_call(item: Any, event_type: str) -> FunctionCall:
    name = _get(item, "name")
    call_id = _get(item, "call_id")
    if not name or not call_id:
        raise ProviderError(
            f"Malformed '{event_type}' event: function call without name or call_id"
        )
    return FunctionCall(name=name, arguments=_get(item, "arguments") or "", call_id=call_id)


def _usage(raw: Any) -> Optional[dict]:
    """Token counts from a completed response, keyed like Observation.set_usage."""
    usage = _get(_get(raw, "response"), "usage")
    if usage is None:
        return None
    counts = {
        "input_tokens": _get(usage, "input_tokens"),
        "output_tokens": _get(usage, "output_tokens"),
        "total_tokens": _get(usage, "total_tokens"),
    }
    return {k: v for k, v in counts.items() if isinstance(v, int)} or None


def _failure_detail(raw: Any, event_type: str) -> str:
    message = _get(raw, "message")
    if not message:
        message = _get(_get(_get(raw, "response"), "error"), "message")
    if not message:
        reason = _get(_get(_get(raw, "response"), "incomplete_details"), "reason")
        message = f"response incomplete: {reason}" if reason else None
    return f"Provider reported '{event_type}': {message or 'no detail'}"


def translate_event(raw: Any) -> Optional[ProviderEvent]:
    """
    Classify one raw provider event.

    Returns:
        A ProviderEvent, or None for event types the loop does not use.

    Raises:
        ProviderError: For provider-reported failures and malformed events.
    """
    event_type = _get(raw, "type")
    if not event_type:
        raise ProviderError(f"Malformed provider event without a type: {raw!r:.200}")

    if event_type == "response.created":
        return ProviderEvent(
            ProviderEventKind.TURN_CREATED, response_id=_response_id(raw, event_type)
        )

    if event_type in ("response.output_item.added", "response.output_item.done"):
        item = _get(raw, "item")
        item_type = _get(item, "type")
        if item is None or not item_type:
            raise ProviderError(f"Malformed '{event_type}' event: missing item")
        kind = (
            ProviderEventKind.ITEM_ADDED
            if event_type.endswith("added")
            else ProviderEventKind.ITEM_DONE
        )
        function_call = None
        if item_type == "function_call":
            if kind is ProviderEventKind.ITEM_ADDED:
                # Arguments are still streaming at this point
                name = _get(item, "name")
                if not name:
                    raise ProviderError(
                        f"Malformed '{event_type}' event: function call without name"
                    )
                function_call = FunctionCall(name=name, call_id=_get(item, "call_id") or "")
            else:
                function_call = _function_call(item, event_type)
        return ProviderEvent(kind, item_type=item_type, item=function_call)

    if event_type == "response.output_text.delta":
        delta = _get(raw, "delta")
        if not isinstance(delta, str):
            raise ProviderError(f"Malformed '{event_type}' event: missing delta")
        return ProviderEvent(ProviderEventKind.TEXT_DELTA, delta=delta)

    if event_type == "response.completed":
        return ProviderEvent(
            ProviderEventKind.TURN_COMPLETED,
            response_id=_response_id(raw, event_type),
            usage=_usage(raw),
        )

    if event_type in ("error", "response.failed", "response.incomplete"):
        raise ProviderError(_failure_detail(raw, event_type))

    logger.debug("Ignoring provider event '%s'", event_type)
    return None
