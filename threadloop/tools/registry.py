"""
Tool Registry - Maps declared tool names to local callbacks.

Declarations are what the provider sees; callbacks are what runs locally.
The registry checks once, at construction, that the two agree.
"""

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Union

from ..errors import ToolNotDefinedError

logger = logging.getLogger(__name__)

ToolCallback = Callable[[dict], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True)
class ToolDeclaration:
    """Schema advertised to the provider for one callable tool."""

    name: str
    description: str = ""
    parameters: dict = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_provider_format(self) -> dict:
        """Return the responses-API function tool shape."""
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


class ToolRegistry:
    """Read-only mapping from tool name to declaration and callback."""

    def __init__(
        self,
        declarations: Iterable[ToolDeclaration] = (),
        callbacks: Optional[Mapping[str, ToolCallback]] = None,
    ):
        callbacks = callbacks or {}
        self._declarations: dict[str, ToolDeclaration] = {}
        self._callbacks: dict[str, ToolCallback] = {}

        for declaration in declarations:
            callback = callbacks.get(declaration.name)
            if not callable(callback):
                raise ToolNotDefinedError(
                    f"Tool {declaration.name} is not defined in tool_fns! "
                    "Calls to this tool will fail!"
                )
            self._declarations[declaration.name] = declaration
            self._callbacks[declaration.name] = callback

        undeclared = set(callbacks) - set(self._declarations)
        if undeclared:
            logger.debug(
                "Ignoring callbacks without declarations: %s", sorted(undeclared)
            )

    def get(self, name: str) -> Optional[ToolCallback]:
        """Get the callback for a tool, or None if not registered."""
        return self._callbacks.get(name)

    def declarations(self) -> list[ToolDeclaration]:
        """Declarations in their original order."""
        return list(self._declarations.values())

    def provider_tools(self) -> list[dict]:
        """Declarations formatted for a provider request."""
        return [d.to_provider_format() for d in self._declarations.values()]

    @property
    def names(self) -> list[str]:
        return list(self._declarations)

    def __contains__(self, name: object) -> bool:
        return name in self._callbacks

    def __len__(self) -> int:
        return len(self._declarations)


def tool(
    name: Optional[str] = None,
    description: Optional[str] = None,
    parameters: Optional[dict] = None,
) -> Callable[[ToolCallback], ToolCallback]:
    """
    Attach a ToolDeclaration to a callback.

    The declaration is stored on the function as ``__tool_declaration__`` so
    callers can build both halves of the registry from one definition::

        @tool(parameters={"type": "object", "properties": {...}})
        def add(args):
            '''Add two numbers.'''
            return args["a"] + args["b"]

        AgentConfig(tools=(add.__tool_declaration__,), tool_fns={"add": add})
    """

    def decorator(fn: ToolCallback) -> ToolCallback:
        declaration = ToolDeclaration(
            name=name or fn.__name__,
            description=description or inspect.getdoc(fn) or "",
            parameters=parameters or {"type": "object", "properties": {}},
        )
        fn.__tool_declaration__ = declaration  # type: ignore[attr-defined]
        return fn

    return decorator
