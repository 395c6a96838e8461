"""
threadloop - stateful tool-calling agent over a streamed responses API

This package provides:
- Agent / AgentConfig: the orchestrator and its validated configuration
- Thread records with server-side continuation
- A concurrent tool-invocation generate-loop
- AgentStream, a provider-agnostic event channel for each run
"""

from .agent import Agent, AgentConfig
from .errors import (
    AgentError,
    ConfigurationError,
    ModelNotFoundError,
    ProviderError,
    StreamClosedError,
    ThreadBusyError,
    ThreadError,
    ThreadExistsError,
    ThreadNotFoundError,
    ToolArgumentsError,
    ToolNotDefinedError,
    ToolNotRegisteredError,
)
from .orchestration import AgentStream, EventType, StreamEvent
from .provider import ResponsesProvider
from .threads import Thread, ThreadItem
from .tools import ToolDeclaration, ToolRegistry, tool

__all__ = [
    "Agent",
    "AgentConfig",
    "AgentStream",
    "EventType",
    "StreamEvent",
    "ResponsesProvider",
    "Thread",
    "ThreadItem",
    "ToolDeclaration",
    "ToolRegistry",
    "tool",
    "AgentError",
    "ConfigurationError",
    "ModelNotFoundError",
    "ProviderError",
    "StreamClosedError",
    "ThreadBusyError",
    "ThreadError",
    "ThreadExistsError",
    "ThreadNotFoundError",
    "ToolArgumentsError",
    "ToolNotDefinedError",
    "ToolNotRegisteredError",
]

__version__ = "0.1.0"
