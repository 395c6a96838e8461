"""
The generate-loop: drives one run of a thread to completion.

A run is an explicit state machine rather than a recursive coroutine, so
long tool-calling chains never grow the call stack:

    REQUESTING -> STREAMING -> AWAITING_TOOLS -> REQUESTING -> ...
                            \\-> COMPLETE
    (any state) -> FAILED

Per provider turn:
    1. Build the request from the agent config, the thread's continuation
       pointer and this turn's input
    2. Consume the provider stream in arrival order, re-emitting events and
       starting a ToolInvocation for every completed function call
    3. On turn completion, join all invocations (no short-circuit), emit
       their results in discovery order and feed the outputs back as the
       next turn's input
    4. When a turn completes with no tool calls, commit the response id and
       staged history to the thread and end the stream

Nothing is committed to the thread unless the run reaches COMPLETE.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from ..errors import AgentError, ProviderError, ToolArgumentsError, ToolNotRegisteredError
from ..threads.thread import Thread, ThreadItem
from ..tracing import TracingContext
from .events import ProviderEvent, ProviderEventKind, TurnRequest
from .invocation import ToolInvocation, decode_arguments
from .stream import AgentStream

if TYPE_CHECKING:
    from ..agent import AgentConfig

logger = logging.getLogger(__name__)

# Truncation limit for error details published to callers
MAX_ERROR_DETAIL_CHARS = 500


class TurnState(str, Enum):
    REQUESTING = "requesting"
    STREAMING = "streaming"
    AWAITING_TOOLS = "awaiting_tools"
    COMPLETE = "complete"
    FAILED = "failed"


TERMINAL_STATES = frozenset({TurnState.COMPLETE, TurnState.FAILED})


@dataclass
class RunState:
    """Mutable state of one run; owned by a single drive() call."""

    thread: Thread
    stream: AgentStream
    tracing: TracingContext
    input: Union[str, list]
    run_id: str
    state: TurnState = TurnState.REQUESTING
    turns: int = 0
    request: Optional[TurnRequest] = None
    pending_response_id: Optional[str] = None
    invocations: list[ToolInvocation] = field(default_factory=list)
    staged_items: list[ThreadItem] = field(default_factory=list)
    text: list[str] = field(default_factory=list)
    usage: Optional[dict] = None
    turn_announced: bool = False
    on_settled: Optional[Callable[[], None]] = None

    @property
    def prefix(self) -> str:
        return f"[{self.thread.id}:{self.run_id}] "


def input_items(content: Union[str, list]) -> list[ThreadItem]:
    """History items for caller-supplied content."""
    if isinstance(content, str):
        return [ThreadItem(type="message", content=content)]
    items = []
    for entry in content:
        entry_type = entry.get("type", "message") if isinstance(entry, dict) else "message"
        ref_id = entry.get("call_id") if isinstance(entry, dict) else None
        items.append(ThreadItem(type=entry_type, content=entry, ref_id=ref_id))
    return items


def _preview_arguments(arguments: str) -> Any:
    """Decoded arguments for display, or the raw payload if undecodable."""
    try:
        return decode_arguments(arguments)
    except ToolArgumentsError:
        return arguments


class GenerateLoop:
    """Runs threads against a provider using an agent's configuration."""

    def __init__(self, config: "AgentConfig", provider: Any):
        self.config = config
        self.provider = provider
        self._handlers = {
            TurnState.REQUESTING: self._request,
            TurnState.STREAMING: self._stream,
            TurnState.AWAITING_TOOLS: self._await_tools,
        }

    async def drive(
        self,
        thread: Thread,
        content: Union[str, list],
        stream: AgentStream,
        on_settled: Optional[Callable[[], None]] = None,
    ) -> TurnState:
        """
        Run ``thread`` with new ``content`` until it completes or fails.

        All outcomes are reported through ``stream``; this coroutine does not
        raise for provider, registry, or tool failures.

        ``on_settled`` is called once the outcome is final, before
        ``turn_ended`` is published, so listeners on that event may start
        the next run on the same thread.

        Returns:
            The terminal state reached (COMPLETE or FAILED).
        """
        run_id = uuid.uuid4().hex[:8]
        run = RunState(
            thread=thread,
            stream=stream,
            tracing=TracingContext(
                execution_id=run_id,
                session_id=thread.id,
                user_id=thread.meta.get("user_id"),
            ),
            input=content,
            run_id=run_id,
            staged_items=input_items(content),
            on_settled=on_settled,
        )
        run.tracing.start_trace(
            name="agent_run",
            input=content,
            metadata={"thread_id": thread.id, "model": self.config.model},
        )
        logger.debug("%sStarting run from head=%s", run.prefix, thread.head)

        try:
            while run.state not in TERMINAL_STATES:
                run.state = await self._handlers[run.state](run)
        except AgentError as e:
            logger.error("%sRun failed: %s", run.prefix, e)
            self._fail(run, e)
        except Exception as e:
            logger.exception("%sRun failed unexpectedly", run.prefix)
            self._fail(run, e)
        else:
            self._complete(run)
        return run.state

    # -- states ---------------------------------------------------------------

    async def _request(self, run: RunState) -> TurnState:
        max_turns = self.config.max_turns
        if max_turns is not None and run.turns >= max_turns:
            raise AgentError(f"Turn limit ({max_turns}) reached with tool calls pending")

        run.turns += 1
        # Tool round-trips continue from the response that requested them
        previous = run.pending_response_id or run.thread.head
        run.request = TurnRequest(
            model=self.config.model,
            input=run.input,
            previous_response_id=previous,
            instructions=self.config.instructions,
            tools=self.config.registry.provider_tools(),
            parallel_tool_calls=self.config.parallel_tool_calls,
        )
        logger.debug(
            "%sTurn %d: requesting (previous_response_id=%s)",
            run.prefix,
            run.turns,
            previous,
        )
        return TurnState.STREAMING

    async def _stream(self, run: RunState) -> TurnState:
        request = run.request
        run.turn_announced = False
        run.usage = None
        with run.tracing.generation(
            name=f"turn_{run.turns}",
            model=request.model,
            input=request.input,
            model_parameters={"parallel_tool_calls": request.parallel_tool_calls},
        ) as generation:
            events = self.provider.create_turn(request)
            completed = False
            try:
                async for event in events:
                    if self._handle_event(run, event):
                        completed = True
                        break
            except Exception:
                generation.set_status("error")
                raise
            finally:
                aclose = getattr(events, "aclose", None)
                if aclose is not None:
                    await aclose()

            if not completed:
                generation.set_status("error")
                raise ProviderError("Provider stream ended before the turn completed")

            text = "".join(run.text)
            run.text.clear()
            if text:
                run.staged_items.append(
                    ThreadItem(type="output_text", content=text, ref_id=run.pending_response_id)
                )
            generation.set_output(text)
            if run.usage:
                generation.set_usage(**run.usage)
            generation.add_metadata(
                response_id=run.pending_response_id, tool_calls=len(run.invocations)
            )

        if run.invocations:
            return TurnState.AWAITING_TOOLS
        return TurnState.COMPLETE

    async def _await_tools(self, run: RunState) -> TurnState:
        invocations, run.invocations = run.invocations, []
        logger.debug("%sAwaiting %d tool call(s)", run.prefix, len(invocations))

        # Join barrier: every invocation settles before anything is fed back
        await asyncio.gather(*(inv.await_completion() for inv in invocations))

        outputs = []
        for inv in invocations:
            with run.tracing.span(
                name=f"tool:{inv.name}",
                input=inv.args if inv.args is not None else inv.arguments,
                metadata={"call_id": inv.call_id, "duration_ms": inv.duration_ms},
            ) as span:
                span.set_output(inv.to_output_payload())
                if not inv.succeeded:
                    span.set_status("error")

            if inv.succeeded:
                run.stream.emit_tool_result(inv.name, inv.result)
            else:
                run.stream.emit_tool_result(inv.name, inv.error_message, error=True)

            output = inv.to_function_call_output()
            outputs.append(output)
            run.staged_items.append(
                ThreadItem(type="function_call_output", content=output, ref_id=inv.call_id)
            )

        run.input = outputs
        return TurnState.REQUESTING

    # -- event handling -------------------------------------------------------

    def _handle_event(self, run: RunState, event: ProviderEvent) -> bool:
        """Apply one provider event; return True when the turn completed."""
        if event.kind is ProviderEventKind.TURN_CREATED:
            run.pending_response_id = event.response_id
            run.stream.emit_start(event.response_id)
            run.turn_announced = True

        elif event.kind is ProviderEventKind.ITEM_ADDED:
            if event.is_function_call:
                run.stream.emit_tool_start(event.item.name)

        elif event.kind is ProviderEventKind.ITEM_DONE:
            if event.is_function_call:
                self._start_invocation(run, event)

        elif event.kind is ProviderEventKind.TEXT_DELTA:
            run.text.append(event.delta)
            run.stream.emit_text(event.delta)

        elif event.kind is ProviderEventKind.TURN_COMPLETED:
            run.pending_response_id = event.response_id or run.pending_response_id
            run.usage = event.usage
            return True

        return False

    def _start_invocation(self, run: RunState, event: ProviderEvent) -> None:
        call = event.item
        run.stream.emit_tool_execute(call.name, _preview_arguments(call.arguments))

        callback = self.config.registry.get(call.name)
        if callback is None:
            raise ToolNotRegisteredError(
                f"Tool '{call.name}' was requested by the provider but is not registered"
            )

        logger.debug("%sStarting tool '%s' (%s)", run.prefix, call.name, call.call_id)
        run.invocations.append(
            ToolInvocation(
                name=call.name,
                arguments=call.arguments,
                call_id=call.call_id,
                callback=callback,
            )
        )
        run.staged_items.append(
            ThreadItem(
                type="function_call",
                content={"name": call.name, "arguments": call.arguments},
                ref_id=call.call_id,
            )
        )

    # -- terminal transitions -------------------------------------------------

    def _complete(self, run: RunState) -> None:
        run.thread._commit(run.pending_response_id, run.staged_items)
        self._settle(run)
        run.stream.emit_end(run.pending_response_id)
        run.tracing.end_trace(
            output={"response_id": run.pending_response_id, "turns": run.turns}
        )
        logger.info(
            "%sRun complete after %d turn(s), head=%s",
            run.prefix,
            run.turns,
            run.thread.head,
        )

    def _fail(self, run: RunState, error: BaseException) -> None:
        run.state = TurnState.FAILED
        for inv in run.invocations:
            inv.cancel()
        run.invocations = []

        # Every turn group opens with turn_started, even if the provider never
        # acknowledged the turn
        if not run.turn_announced:
            run.stream.emit_start()
            run.turn_announced = True

        detail = str(error) or type(error).__name__
        if len(detail) > MAX_ERROR_DETAIL_CHARS:
            detail = detail[:MAX_ERROR_DETAIL_CHARS] + "..."
        run.stream.emit_error(detail)
        self._settle(run)
        run.stream.emit_end()
        run.tracing.end_trace(output={"error": detail}, status="error")

    def _settle(self, run: RunState) -> None:
        if run.on_settled is not None:
            on_settled, run.on_settled = run.on_settled, None
            on_settled()
