"""
threadloop tools package

Declarations and the callback registry used by the generate-loop.
"""

from .registry import ToolCallback, ToolDeclaration, ToolRegistry, tool

__all__ = [
    "ToolCallback",
    "ToolDeclaration",
    "ToolRegistry",
    "tool",
]
