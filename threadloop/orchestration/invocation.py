"""
Tool invocations - one execution of a registered callback.

An invocation starts running as soon as it is constructed and never
retries. Failures (bad arguments or a raising callback) are captured on
the invocation rather than propagated, so the model can see them in the
next turn.
"""

import asyncio
import inspect
import json
import logging
import time
from enum import Enum
from typing import Any, Optional

from ..errors import ToolArgumentsError
from ..tools.registry import ToolCallback

logger = logging.getLogger(__name__)


class InvocationState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def decode_arguments(arguments: str) -> dict:
    """
    Decode a serialized argument payload.

    An empty payload means "no arguments".

    Raises:
        ToolArgumentsError: If the payload is not a JSON object.
    """
    if not arguments or not arguments.strip():
        return {}
    try:
        decoded = json.loads(arguments)
    except json.JSONDecodeError as e:
        raise ToolArgumentsError(f"Invalid tool arguments: {e}") from e
    if not isinstance(decoded, dict):
        raise ToolArgumentsError(
            f"Tool arguments must be a JSON object, got {type(decoded).__name__}"
        )
    return decoded


class ToolInvocation:
    """A single in-flight tool call."""

    def __init__(
        self,
        name: str,
        arguments: str,
        call_id: str,
        callback: ToolCallback,
    ):
        self.name = name
        self.arguments = arguments
        self.call_id = call_id
        self._callback = callback

        self.state = InvocationState.PENDING
        self.args: Optional[dict] = None
        self.result: Any = None
        self.error: Optional[BaseException] = None
        self.started_at: Optional[float] = None
        self.ended_at: Optional[float] = None

        self._task = asyncio.ensure_future(self._execute())

    async def _execute(self) -> None:
        self.state = InvocationState.RUNNING
        self.started_at = time.time()
        try:
            self.args = decode_arguments(self.arguments)
            value = self._callback(self.args)
            if inspect.isawaitable(value):
                value = await value
        except asyncio.CancelledError as e:
            self.error = e
            self.state = InvocationState.FAILED
            raise
        except Exception as e:
            self.error = e
            self.state = InvocationState.FAILED
            logger.warning("Tool '%s' (%s) failed: %s", self.name, self.call_id, e)
        else:
            self.result = value
            self.state = InvocationState.SUCCEEDED
            logger.debug("Tool '%s' (%s) succeeded", self.name, self.call_id)
        finally:
            self.ended_at = time.time()

    async def await_completion(self) -> bool:
        """Wait for the invocation to settle; return whether it succeeded."""
        await self._task
        return self.succeeded

    def cancel(self) -> None:
        """Abandon the invocation if it has not settled yet."""
        if not self._task.done():
            self._task.cancel()

    @property
    def done(self) -> bool:
        return self.state in (InvocationState.SUCCEEDED, InvocationState.FAILED)

    @property
    def succeeded(self) -> bool:
        return self.state is InvocationState.SUCCEEDED

    @property
    def duration_ms(self) -> Optional[float]:
        if self.started_at is None or self.ended_at is None:
            return None
        return round((self.ended_at - self.started_at) * 1000, 2)

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None

    def to_output_payload(self) -> dict:
        """The envelope the model sees: ``{result}`` or ``{error, type}``."""
        if self.state is InvocationState.FAILED:
            return {"error": self.error_message, "type": "error"}
        return {"result": self.result}

    def to_function_call_output(self) -> dict:
        """The ``function_call_output`` input item for the next turn."""
        return {
            "type": "function_call_output",
            "call_id": self.call_id,
            "output": json.dumps(self.to_output_payload(), default=str),
        }

    def __repr__(self) -> str:
        return (
            f"ToolInvocation(name={self.name!r}, call_id={self.call_id!r}, "
            f"state={self.state.value})"
        )
