"""
Agent - the caller-facing orchestrator.

An Agent owns an immutable configuration (model, instructions, tools), a
provider client and the threads created through it. ``run`` hands back an
AgentStream straight away; the generate-loop runs as an asyncio task and
reports everything through that stream.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence, Union

from .config import config as env_config
from .errors import ModelNotFoundError, ProviderError, ThreadBusyError
from .logging_config import configure_logging
from .models import AppConfig
from .orchestration.loop import GenerateLoop
from .orchestration.stream import AgentStream
from .provider import ResponsesProvider
from .threads.thread import Thread, ThreadItem, ThreadStore
from .tools.registry import ToolCallback, ToolDeclaration, ToolRegistry
from .tracing import get_tracing_client, init_tracing_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentConfig:
    """
    Immutable agent configuration.

    Every declared tool must have a callback in ``tool_fns``; otherwise
    construction raises ToolNotDefinedError before any network call.
    """

    model: str = field(default_factory=lambda: env_config.agent.model)
    instructions: str = field(default_factory=lambda: env_config.agent.instructions)
    tools: Sequence[ToolDeclaration] = ()
    tool_fns: Mapping[str, ToolCallback] = field(default_factory=dict)
    parallel_tool_calls: bool = field(
        default_factory=lambda: env_config.agent.parallel_tool_calls
    )
    max_turns: Optional[int] = None
    registry: ToolRegistry = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "tools", tuple(self.tools))
        object.__setattr__(self, "tool_fns", dict(self.tool_fns))
        object.__setattr__(self, "registry", ToolRegistry(self.tools, self.tool_fns))

    @classmethod
    def from_app_config(
        cls,
        app_config: AppConfig,
        tools: Sequence[ToolDeclaration] = (),
        tool_fns: Optional[Mapping[str, ToolCallback]] = None,
        max_turns: Optional[int] = None,
    ) -> "AgentConfig":
        """Build an AgentConfig from the ``agent`` section of a loaded config."""
        return cls(
            model=app_config.agent.model,
            instructions=app_config.agent.instructions,
            tools=tools,
            tool_fns=tool_fns or {},
            parallel_tool_calls=app_config.agent.parallel_tool_calls,
            max_turns=max_turns,
        )


class Agent:
    """Runs threads against a responses provider."""

    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        provider: Optional[Any] = None,
    ):
        """
        Initialize the agent.

        Args:
            config: Agent configuration (environment defaults if omitted).
            provider: Object with ``list_models()`` and ``create_turn(request)``
                coroutines; a ResponsesProvider from the environment if omitted.
        """
        self.config = config or AgentConfig()
        self.provider = provider or ResponsesProvider()
        self._threads = ThreadStore()
        self._loop = GenerateLoop(self.config, self.provider)
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    async def create(
        cls,
        config: Optional[AgentConfig] = None,
        provider: Optional[Any] = None,
    ) -> "Agent":
        """Construct an agent and validate its model against the provider."""
        agent = cls(config=config, provider=provider)
        await agent.initialize()
        return agent

    @classmethod
    async def from_app_config(
        cls,
        app_config: AppConfig,
        tools: Sequence[ToolDeclaration] = (),
        tool_fns: Optional[Mapping[str, ToolCallback]] = None,
    ) -> "Agent":
        """Build an agent with its provider, logging and tracing from a YAML config."""
        configure_logging(app_config.log_level)
        if app_config.langfuse.is_configured and get_tracing_client() is None:
            init_tracing_client(
                public_key=app_config.langfuse.public_key,
                secret_key=app_config.langfuse.secret_key,
                host=app_config.langfuse.host,
                debug=app_config.langfuse.debug,
            )
        provider = ResponsesProvider(
            api_key=app_config.provider.api_key,
            base_url=app_config.provider.base_url,
            timeout=app_config.provider.timeout,
        )
        agent = cls(
            config=AgentConfig.from_app_config(app_config, tools, tool_fns),
            provider=provider,
        )
        if app_config.agent.validate_model:
            await agent.initialize()
        return agent

    async def initialize(self) -> None:
        """
        Check that the configured model exists.

        Raises:
            ModelNotFoundError: If the provider does not list the model.
            ProviderError: If the model listing itself fails.
        """
        models = await self.provider.list_models()
        if self.config.model not in models:
            raise ModelNotFoundError(
                f"Model '{self.config.model}' is not available from the provider"
            )
        logger.info("Agent initialized with model %s", self.config.model)

    # -- threads --------------------------------------------------------------

    def create_thread(self, id: Optional[str] = None, meta: Optional[dict] = None) -> str:
        """Create a thread and return its id."""
        return self._threads.create(id=id, meta=meta).id

    def get_thread(self, id: str) -> Thread:
        """Get a thread, raising ThreadNotFoundError if absent."""
        return self._threads.get(id)

    @property
    def threads(self) -> list[str]:
        return self._threads.ids()

    # -- runs -----------------------------------------------------------------

    def run(self, thread_id: str, content: Union[str, list]) -> AgentStream:
        """
        Start a run on a thread and return its event stream.

        Must be called from within a running event loop. Addressing errors
        are raised here, before anything is scheduled.

        Raises:
            ThreadNotFoundError: If the thread does not exist.
            ThreadBusyError: If the thread already has a run in flight.
        """
        thread = self._threads.get(thread_id)
        loop = asyncio.get_running_loop()
        if not thread._acquire():
            raise ThreadBusyError(f"Thread '{thread_id}' already has a run in progress")

        stream = AgentStream(thread_id=thread_id)
        task = loop.create_task(self._drive(thread, content, stream))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return stream

    async def _drive(
        self, thread: Thread, content: Union[str, list], stream: AgentStream
    ) -> None:
        released = False

        def release() -> None:
            nonlocal released
            if not released:
                released = True
                thread._release()

        try:
            await self._loop.drive(thread, content, stream, on_settled=release)
        finally:
            release()

    async def fetch_thread_history(self, thread_id: str) -> list[ThreadItem]:
        """
        Rebuild a thread's history from the provider's stored items.

        Replaces the thread's local ``items`` with the input items the
        provider holds for the thread's head. A thread that never completed
        a turn has nothing to fetch.

        Raises:
            ThreadNotFoundError: If the thread does not exist.
            ThreadBusyError: If a run is in flight.
            ProviderError: If the provider cannot list the items.
        """
        thread = self._threads.get(thread_id)
        if thread.head is None:
            return thread.items
        if thread.busy:
            raise ThreadBusyError(f"Thread '{thread_id}' has a run in progress")

        list_items = getattr(self.provider, "list_turn_items", None)
        if list_items is None:
            raise ProviderError("Provider does not support listing stored items")

        raw_items = await list_items(thread.head)
        items = [
            ThreadItem(
                type=item.get("type", "message"),
                content=item,
                ref_id=item.get("call_id") or item.get("id"),
            )
            for item in raw_items
        ]
        thread._replace_items(items)
        logger.debug("[%s] Fetched %d history item(s)", thread_id, len(items))
        return thread.items

    async def close(self) -> None:
        """Wait for in-flight runs, then release the provider client."""
        # Runs may start follow-up runs from their listeners
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
        close = getattr(self.provider, "close", None)
        if close is not None:
            await close()
