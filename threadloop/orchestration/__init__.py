"""
Streamed, tool-calling generate-loop.

Drives provider turns as an explicit state machine, executes requested
tools concurrently, and publishes provider-agnostic events to callers.
"""

from .events import (
    EventType,
    FunctionCall,
    ProviderEvent,
    ProviderEventKind,
    StreamEvent,
    TurnRequest,
    translate_event,
)
from .invocation import InvocationState, ToolInvocation
from .stream import AgentStream
from .loop import GenerateLoop, TurnState

__all__ = [
    "EventType",
    "FunctionCall",
    "ProviderEvent",
    "ProviderEventKind",
    "StreamEvent",
    "TurnRequest",
    "translate_event",
    "InvocationState",
    "ToolInvocation",
    "AgentStream",
    "GenerateLoop",
    "TurnState",
]
