"""
aishell/agent/prompts.py
─────────────────────────
System prompt for the terminal assistant. Environment facts are captured at
build time so the model adapts commands to the host.
"""

from __future__ import annotations

import os
import platform
from datetime import datetime
from typing import Iterable

from aishell.tools.base import Tool

SYSTEM_PROMPT_TEMPLATE = """\
You are a professional terminal assistant that helps the user solve system and technical problems.

Current environment:
- Operating system: {os_name} ({arch})
- Working directory: {cwd}
- Current time: {now}

Your responsibilities:
1. Suggest commands and solutions that fit the user's operating system
2. Take the current working directory and environment into account
3. Prefer tools and approaches that suit this environment
4. Give accurate, practical, executable solutions
5. Stay consistent with the earlier conversation

Guidelines:
- Use the system command tool to carry out concrete operations
- Use the calculator tool for arithmetic and data analysis
- Use the file tools to inspect and edit files instead of shell redirection when possible
- Dangerous commands ask the user for confirmation; if one is cancelled, do not retry it
- Always consider operating system compatibility

Tools
-----

You can use the following tools to help the user:

{tool_descriptions}
"""


def environment_info() -> dict[str, str]:
    try:
        cwd = os.getcwd()
    except OSError:
        cwd = "(unavailable)"
    return {
        "os_name": platform.system().lower() or "unknown",
        "arch": platform.machine() or "unknown",
        "cwd": cwd,
        "now": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
    }


def describe_tools(tools: Iterable[Tool]) -> str:
    return "\n\n".join(f"> {tool.name}: {tool.description}" for tool in tools)


def build_system_prompt(tools: Iterable[Tool]) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(
        tool_descriptions=describe_tools(tools),
        **environment_info(),
    )
