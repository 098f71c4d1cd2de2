"""
Tool contract shared with the agent.

Every tool takes one opaque string and returns one string. Input and resource
problems are raised as ToolError subclasses with an operator-readable message;
they are never folded into the returned text.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class ToolError(Exception):
    """Base for failures a tool reports to its caller."""


class ToolInputError(ToolError, ValueError):
    """Malformed tool arguments, traversal attempts, disallowed file types."""


class ToolResourceError(ToolError):
    """Missing files or directories, permission and OS-level I/O failures."""


class Tool(ABC):
    name: str = ""
    description: str = ""

    @abstractmethod
    def invoke(self, tool_input: str) -> str:
        ...

    def close(self) -> None:
        """Release anything held between invocations."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"
