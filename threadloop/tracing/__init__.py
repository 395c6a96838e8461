"""
Langfuse tracing integration for threadloop.

Provides observability for agent runs, provider turns, and tool invocations.
"""

from .client import (
    TracingClient,
    init_tracing_client,
    get_tracing_client,
    shutdown_tracing,
)
from .context import Observation, TracingContext

__all__ = [
    "TracingClient",
    "init_tracing_client",
    "get_tracing_client",
    "shutdown_tracing",
    "Observation",
    "TracingContext",
]
