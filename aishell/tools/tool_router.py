"""
ToolRouter - dispatches agent tool calls to registered tools.
Every call is logged and audited before it returns.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Optional

from aishell.tools.base import Tool, ToolError

logger = logging.getLogger("aishell.tools.router")

AuditFn = Callable[[str, dict[str, Any]], Any]

DEFAULT_HISTORY_SIZE = 100


@dataclass
class ToolObservation:
    tool_name: str
    tool_input: str
    execution_status: str       # "success" | "failure"
    output: str
    error_message: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.execution_status == "success"

    def to_dict(self) -> dict:
        return {
            "tool_name": self.tool_name,
            "tool_input": self.tool_input[:500],
            "execution_status": self.execution_status,
            "output_summary": self.output[:500],
            "error_message": self.error_message,
            "duration_seconds": round(self.duration_seconds, 3),
        }


class ToolRouter:
    def __init__(self, audit: Optional[AuditFn] = None, history_size: int = DEFAULT_HISTORY_SIZE):
        self._registry: dict[str, Tool] = {}
        # most recent calls only; the audit log keeps the full record
        self._observations: deque[ToolObservation] = deque(maxlen=max(history_size, 1))
        self._audit = audit

    def register(self, tool: Tool):
        if not tool.name:
            raise ValueError(f"{tool!r} has no name")
        if tool.name in self._registry:
            raise ValueError(f"tool '{tool.name}' is already registered")
        self._registry[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get(self, name: str) -> Optional[Tool]:
        return self._registry.get(name)

    def tools(self) -> list[Tool]:
        return list(self._registry.values())

    def registered_tools(self) -> list[str]:
        return list(self._registry.keys())

    def execute(self, tool_name: str, tool_input: str) -> ToolObservation:
        """
        Invoke a tool. ToolError becomes a failure observation; anything else
        is a bug and propagates.
        """
        tool = self._registry.get(tool_name)
        if tool is None:
            obs = ToolObservation(
                tool_name=tool_name,
                tool_input=tool_input,
                execution_status="failure",
                output="",
                error_message=(
                    f"{tool_name} is not a valid tool, try one of: "
                    f"{', '.join(self._registry)}"
                ),
            )
            self._observations.append(obs)
            return obs

        logger.info(f"[TOOL LOG] Executing: {tool_name}({tool_input[:200]!r})")
        start = time.monotonic()

        try:
            result = tool.invoke(tool_input)
            obs = ToolObservation(
                tool_name=tool_name,
                tool_input=tool_input,
                execution_status="success",
                output=result,
                duration_seconds=time.monotonic() - start,
            )
            logger.info(f"[TOOL OK] {tool_name} -> {result[:120]!r}")
        except ToolError as e:
            obs = ToolObservation(
                tool_name=tool_name,
                tool_input=tool_input,
                execution_status="failure",
                output="",
                error_message=str(e),
                duration_seconds=time.monotonic() - start,
            )
            logger.warning(f"[TOOL ERROR] {tool_name}: {e}")

        self._observations.append(obs)
        if self._audit is not None:
            self._audit("TOOL_INVOKED", obs.to_dict())
        return obs

    def get_observations(self, last: Optional[int] = None) -> list[ToolObservation]:
        observations = list(self._observations)
        if last is not None:
            return observations[-last:] if last > 0 else []
        return observations

    def clear_observations(self):
        self._observations.clear()

    def close(self):
        for tool in self._registry.values():
            tool.close()
