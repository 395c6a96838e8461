"""
Run-scoped tracing context using the Langfuse SDK v3.

One TracingContext covers one ``Agent.run``: a root span for the run,
a generation per provider turn, and a span per tool invocation. Children
are linked to the root through an explicit TraceContext so nesting does
not depend on OTEL context state across asyncio tasks.

Everything degrades to a no-op when the tracing client is disabled.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from langfuse.types import TraceContext

from .client import get_tracing_client

logger = logging.getLogger(__name__)


@dataclass
class Observation:
    """A started span or generation; collects output until it ends."""

    name: str
    as_type: str = "span"
    enabled: bool = False
    attributes: dict = field(default_factory=dict)
    trace_context: Optional[TraceContext] = None
    _context_manager: Any = field(default=None, repr=False)
    _observation: Any = field(default=None, repr=False)
    _start_time: float = field(default=0.0, repr=False)
    _output: Any = field(default=None, repr=False)
    _usage: Optional[dict] = field(default=None, repr=False)
    _status: str = field(default="success", repr=False)
    _metadata: dict = field(default_factory=dict, repr=False)

    def start(self) -> None:
        if not self.enabled:
            return
        client = get_tracing_client()
        if not client or not client.client:
            return
        try:
            self._start_time = time.time()
            self._context_manager = client.client.start_as_current_observation(
                trace_context=self.trace_context,
                as_type=self.as_type,
                name=self.name,
                **{k: v for k, v in self.attributes.items() if v is not None},
            )
            self._observation = self._context_manager.__enter__()
        except Exception as e:
            logger.warning("Failed to start %s '%s': %s", self.as_type, self.name, e)
            self._observation = None

    def end(self) -> None:
        if not self.enabled or not self._observation:
            return
        try:
            metadata = {
                "status": self._status,
                "duration_ms": round((time.time() - self._start_time) * 1000, 2),
                **self._metadata,
            }
            update: dict[str, Any] = {"metadata": metadata}
            if self._output is not None:
                update["output"] = self._output
            if self._usage:
                update["usage_details"] = self._usage
            self._observation.update(**update)
            self._context_manager.__exit__(None, None, None)
        except Exception as e:
            logger.warning("Failed to end %s '%s': %s", self.as_type, self.name, e)

    @property
    def id(self) -> Optional[str]:
        return getattr(self._observation, "id", None)

    @property
    def trace_id(self) -> Optional[str]:
        return getattr(self._observation, "trace_id", None)

    def set_output(self, output: Any) -> None:
        self._output = output

    def set_status(self, status: str) -> None:
        self._status = status

    def add_metadata(self, **metadata: Any) -> None:
        self._metadata.update(metadata)

    def set_usage(
        self,
        input_tokens: Optional[int] = None,
        output_tokens: Optional[int] = None,
        total_tokens: Optional[int] = None,
    ) -> None:
        """Record token usage (generations only)."""
        usage = {
            "input": input_tokens,
            "output": output_tokens,
            "total": total_tokens,
        }
        self._usage = {k: v for k, v in usage.items() if v is not None}


@dataclass
class TracingContext:
    """Tracing state for a single run."""

    execution_id: str
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    _root: Optional[Observation] = field(default=None, repr=False)
    _enabled: bool = field(default=False, repr=False)

    def __post_init__(self):
        client = get_tracing_client()
        self._enabled = client is not None and client.enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def start_trace(
        self,
        name: str = "agent_run",
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
    ) -> None:
        """Open the root span for this run."""
        if not self._enabled:
            return
        self._root = Observation(
            name=name,
            enabled=True,
            attributes={
                "input": input,
                "metadata": {"execution_id": self.execution_id, **(metadata or {})},
            },
        )
        self._root.start()
        if self._root._observation is not None:
            try:
                self._root._observation.update_trace(
                    user_id=self.user_id, session_id=self.session_id
                )
            except Exception as e:
                logger.warning("[%s] Failed to set trace attributes: %s", self.execution_id, e)

    def end_trace(self, output: Optional[Any] = None, status: str = "success") -> None:
        """Close the root span."""
        if self._root is None:
            return
        self._root.set_output(output)
        self._root.set_status(status)
        self._root.end()
        self._root = None

    def _child_trace_context(self) -> Optional[TraceContext]:
        if self._root is None or not self._root.trace_id or not self._root.id:
            return None
        return TraceContext(trace_id=self._root.trace_id, parent_span_id=self._root.id)

    @contextmanager
    def span(
        self,
        name: str,
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
    ) -> Iterator[Observation]:
        """Trace a unit of work (e.g. a tool invocation)."""
        observation = Observation(
            name=name,
            enabled=self._enabled,
            attributes={"input": input, "metadata": metadata},
            trace_context=self._child_trace_context(),
        )
        observation.start()
        try:
            yield observation
        finally:
            observation.end()

    @contextmanager
    def generation(
        self,
        name: str,
        model: str,
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
        model_parameters: Optional[dict] = None,
    ) -> Iterator[Observation]:
        """Trace one provider turn."""
        observation = Observation(
            name=name,
            as_type="generation",
            enabled=self._enabled,
            attributes={
                "model": model,
                "input": input,
                "metadata": metadata,
                "model_parameters": model_parameters,
            },
            trace_context=self._child_trace_context(),
        )
        observation.start()
        try:
            yield observation
        finally:
            observation.end()
