"""
aishell/cli/input.py - Line editing, input validation and built-in commands.

The line editor is input() backed by GNU readline where the platform ships it,
so arrow-key history and Ctrl+R search work and history persists to a file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

try:
    import readline
except ImportError:  # Windows without pyreadline
    readline = None  # type: ignore[assignment]

log = logging.getLogger("aishell.cli")

DEFAULT_MAX_INPUT_LENGTH = 1000
HISTORY_LIMIT = 1000

EXIT_WORDS = frozenset({"exit", "quit"})
HELP_WORDS = frozenset({"help", "帮助"})
HISTORY_WORDS = frozenset({"history", "命令历史"})
CLEAR_WORDS = frozenset({"clear", "cls"})


class InputError(ValueError):
    pass


class LineInterrupted(Exception):
    """Ctrl+C at the prompt. ``pending`` holds whatever had been typed."""

    def __init__(self, pending: str = "") -> None:
        super().__init__(pending)
        self.pending = pending


class LineReader:
    def __init__(
        self,
        prompt: str,
        history_file: Optional[str] = None,
        input_fn: Callable[[str], str] = input,
    ) -> None:
        self.prompt = prompt
        self.history_file = history_file
        self._input = input_fn
        self._closed = False
        if readline is not None and history_file:
            self._load_history(history_file)

    def _load_history(self, history_file: str) -> None:
        path = Path(history_file)
        readline.set_history_length(HISTORY_LIMIT)
        if path.exists():
            try:
                readline.read_history_file(str(path))
            except OSError as exc:
                log.warning(f"Could not read history file {path}: {exc}")

    def readline(self) -> str:
        """
        Return one line. Raises EOFError at end of input and LineInterrupted
        on Ctrl+C.
        """
        try:
            return self._input(self.prompt)
        except KeyboardInterrupt:
            pending = readline.get_line_buffer() if readline is not None else ""
            raise LineInterrupted(pending) from None

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if readline is None or not self.history_file:
            return
        path = Path(self.history_file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            readline.write_history_file(str(path))
        except OSError as exc:
            log.warning(f"Could not save history file {path}: {exc}")


def validate_input(text: str, max_length: int = DEFAULT_MAX_INPUT_LENGTH) -> None:
    if len(text) > max_length:
        raise InputError(f"input too long ({len(text)} characters, maximum {max_length})")


def _is(words: frozenset[str], text: str) -> bool:
    return text.strip().lower() in words


def is_exit(text: str) -> bool:
    return _is(EXIT_WORDS, text)


def is_help(text: str) -> bool:
    return _is(HELP_WORDS, text)


def is_history(text: str) -> bool:
    return _is(HISTORY_WORDS, text)


def is_clear(text: str) -> bool:
    return _is(CLEAR_WORDS, text)
