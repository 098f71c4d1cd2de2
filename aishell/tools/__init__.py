"""
Host tools exposed to the agent.
"""

import logging

from .base import Tool, ToolError, ToolInputError, ToolResourceError
from .calculator import CalculatorTool
from .file_reader import FileReadTool
from .file_writer import FileWriteTool
from .system_command import CommandExecutor, ExecutionOutcome
from .tool_router import ToolObservation, ToolRouter

logger = logging.getLogger("aishell.tools")


def register_all_tools(router: ToolRouter, executor: CommandExecutor) -> None:
    """Register the built-in tools with a ToolRouter instance."""
    router.register(CalculatorTool())
    router.register(executor)
    router.register(FileReadTool())
    router.register(FileWriteTool())
    logger.info(f"Registered {len(router.registered_tools())} tools: {router.registered_tools()}")


__all__ = [
    "CalculatorTool",
    "CommandExecutor",
    "ExecutionOutcome",
    "FileReadTool",
    "FileWriteTool",
    "Tool",
    "ToolError",
    "ToolInputError",
    "ToolObservation",
    "ToolResourceError",
    "ToolRouter",
    "register_all_tools",
]
