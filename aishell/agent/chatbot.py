"""
aishell/agent/chatbot.py
═════════════════════════
ChatBot - OpenAI function-calling agent wired to the ToolRouter.

Loop per operator input:
  • Call chat.completions with every registered tool exposed as a function
    taking a single "input" string.
  • Each tool call is executed through the router and answered with a
    "tool" message.
  • A reply without tool calls is the final answer.
  • A ToolError from a tool aborts the turn (AgentError); the dispatch loop
    shows it as an error banner.

Only completed exchanges are kept, in a window of the most recent turns.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from typing import Any, Optional

import openai

from aishell.agent.prompts import build_system_prompt
from aishell.config import AppConfig
from aishell.tools.tool_router import ToolRouter

log = logging.getLogger("aishell.agent")

TOOL_INPUT_FIELD = "input"


class AgentError(Exception):
    pass


def tool_specs(router: ToolRouter) -> list[dict[str, Any]]:
    specs = []
    for tool in router.tools():
        specs.append({
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": {
                    "type": "object",
                    "properties": {
                        TOOL_INPUT_FIELD: {
                            "type": "string",
                            "description": "Tool input exactly as described in the tool description.",
                        },
                    },
                    "required": [TOOL_INPUT_FIELD],
                },
            },
        })
    return specs


def extract_tool_input(arguments: Optional[str]) -> str:
    """The model sends JSON {"input": ...}; anything else is passed through raw."""
    if not arguments:
        return ""
    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError:
        return arguments
    if isinstance(parsed, dict):
        value = parsed.get(TOOL_INPUT_FIELD, "")
        return value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
    if isinstance(parsed, str):
        return parsed
    return arguments


class ChatBot:
    def __init__(
        self,
        config: AppConfig,
        router: ToolRouter,
        client: Optional[Any] = None,
    ) -> None:
        self._config = config
        self._router = router
        self._client = client if client is not None else openai.OpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.request_timeout_s,
            max_retries=0,
        )
        self._tools = tool_specs(router)
        self._turns: deque[tuple[str, str]] = deque(maxlen=max(config.conversation_buffer_size, 1))
        self.step_count = 0
        self.tool_calls = 0

        if config.debug:
            log.debug(f"agent ready: model={config.model} tools={router.registered_tools()}")

    @property
    def router(self) -> ToolRouter:
        return self._router

    def history(self) -> list[tuple[str, str]]:
        return list(self._turns)

    def reset(self) -> None:
        self._turns.clear()

    def _messages(self, text: str) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": build_system_prompt(self._router.tools())},
        ]
        for user_text, answer in self._turns:
            messages.append({"role": "user", "content": user_text})
            messages.append({"role": "assistant", "content": answer})
        messages.append({"role": "user", "content": text})
        return messages

    def _send(self, messages: list[dict[str, Any]]) -> Any:
        try:
            resp = self._client.chat.completions.create(
                model=self._config.model,
                messages=messages,
                tools=self._tools,
                tool_choice="auto",
            )
        except openai.OpenAIError as exc:
            raise AgentError(f"model request failed: {exc}") from exc
        if not resp.choices:
            raise AgentError("model returned no choices")
        return resp.choices[0].message

    def process(self, text: str) -> str:
        calls_before = self.tool_calls
        try:
            return self._process(text)
        finally:
            if self._config.debug:
                self._trace_turn(self.tool_calls - calls_before)

    def _trace_turn(self, count: int) -> None:
        """Dump this turn's tool observations to the debug log."""
        for obs in self._router.get_observations(last=count):
            log.debug(f"observation: {json.dumps(obs.to_dict(), ensure_ascii=False)}")

    def _process(self, text: str) -> str:
        messages = self._messages(text)

        for step in range(1, self._config.max_iterations + 1):
            self.step_count = step
            msg = self._send(messages)
            calls = getattr(msg, "tool_calls", None) or []

            if not calls:
                answer = (msg.content or "").strip()
                log.debug(f"step {step}: final answer ({len(answer)} chars)")
                self._turns.append((text, answer))
                return answer

            log.debug(f"step {step}: {len(calls)} tool call(s) requested")
            if msg.content:
                log.debug(f"step {step} reasoning: {msg.content}")

            messages.append({
                "role": "assistant",
                "content": msg.content or "",
                "tool_calls": [
                    {
                        "id": c.id,
                        "type": "function",
                        "function": {"name": c.function.name, "arguments": c.function.arguments or ""},
                    }
                    for c in calls
                ],
            })

            for call in calls:
                name = call.function.name
                tool_input = extract_tool_input(call.function.arguments)
                log.debug(f"   {name} <- {tool_input[:300]!r}")

                obs = self._router.execute(name, tool_input)
                self.tool_calls += 1
                if obs.ok:
                    content = obs.output
                elif self._router.get(name) is None:
                    content = obs.error_message or f"unknown tool {name}"
                else:
                    raise AgentError(f"{name}: {obs.error_message}")

                log.debug(f"   {name} -> {content[:300]!r}")
                messages.append({"role": "tool", "tool_call_id": call.id, "content": content})

        raise AgentError(
            f"agent stopped after {self._config.max_iterations} iterations without a final answer"
        )

    def close(self) -> None:
        self._router.close()
        close = getattr(self._client, "close", None)
        if callable(close):
            close()
