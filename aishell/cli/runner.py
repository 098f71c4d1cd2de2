"""
aishell/cli/runner.py
═════════════════════
Runner - the interactive dispatch loop.

One operator line per step:
  • Ctrl+C on an empty line or Ctrl+D ends the session; Ctrl+C with text
    typed discards the line.
  • Built-ins (exit, help, history, clear) are answered locally.
  • Anything else goes to the agent. Ctrl+C while it works cancels only
    that request.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Protocol

from aishell.cli.input import (
    InputError,
    LineInterrupted,
    LineReader,
    is_clear,
    is_exit,
    is_help,
    is_history,
    validate_input,
)
from aishell.ui.console import Console

log = logging.getLogger("aishell.cli")

AuditFn = Callable[[str, dict], Any]


class Agent(Protocol):
    def process(self, text: str) -> str: ...

    def close(self) -> None: ...


class Runner:
    def __init__(
        self,
        agent: Agent,
        reader: LineReader,
        console: Console,
        max_input_length: int = 1000,
        audit: Optional[AuditFn] = None,
    ) -> None:
        self.agent = agent
        self.reader = reader
        self.console = console
        self.max_input_length = max_input_length
        self._audit = audit
        self._running = False
        self._closed = False
        self._said_goodbye = False
        self.requests = 0

    def _record(self, event: str, payload: dict) -> None:
        if self._audit is not None:
            self._audit(event, payload)

    def run(self) -> None:
        self._running = True
        self._record("AISHELL_START", {})
        self.console.welcome()
        self.console.usage_tips()
        try:
            while self._running:
                self.step()
        finally:
            self.close()

    def stop(self) -> None:
        self._running = False

    def step(self) -> None:
        try:
            line = self.reader.readline()
        except LineInterrupted as exc:
            if exc.pending:
                return
            self._goodbye()
            self.stop()
            return
        except EOFError:
            self._goodbye()
            self.stop()
            return

        text = line.strip()
        if not text:
            return

        try:
            validate_input(text, self.max_input_length)
        except InputError as exc:
            self.console.error("input validation failed", exc)
            return

        if self._handle_builtin(text):
            return

        self._dispatch(text)

    def _handle_builtin(self, text: str) -> bool:
        if is_exit(text):
            self._goodbye()
            self.stop()
        elif is_help(text):
            self.console.help()
        elif is_history(text):
            self.console.history()
        elif is_clear(text):
            self.console.clear_screen()
            self.console.welcome()
        else:
            return False
        return True

    def _dispatch(self, text: str) -> None:
        self.requests += 1
        self.console.thinking()
        try:
            answer = self.agent.process(text)
        except KeyboardInterrupt:
            self.console.clear_thinking()
            log.info("Request cancelled by operator")
            self.console.error("request cancelled", "interrupted")
            return
        except Exception as exc:
            self.console.clear_thinking()
            log.warning(f"Request failed: {exc}")
            self.console.error("failed to process input", exc)
            return
        self.console.clear_thinking()
        self.console.response(answer)

    def _goodbye(self) -> None:
        if not self._said_goodbye:
            self._said_goodbye = True
            self.console.goodbye()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.agent.close()
        finally:
            self.reader.close()
            self._record("AISHELL_SHUTDOWN", {"requests": self.requests})
