"""
aishell/safety/confirmation.py - Human-in-the-loop gate for dangerous commands.

The executor only depends on the Confirmer protocol, so the interactive
console prompt can be swapped for AutoDeny / AutoAllow in tests or
unattended runs.
"""

from __future__ import annotations

import logging
import sys
from typing import Callable, Optional, Protocol, TextIO

from colorama import Fore, Style

from aishell.safety.danger import risk_notes

try:
    import readline
except ImportError:  # Windows without pyreadline
    readline = None  # type: ignore[assignment]

log = logging.getLogger("aishell.confirm")

AFFIRMATIVE = frozenset({"yes", "y", "是", "确定"})
NEGATIVE = frozenset({"no", "n", "否", "取消"})


def read_answer(prompt: str) -> str:
    """input() that keeps the answer out of the operator's command history."""
    if readline is None:
        return input(prompt)
    before = readline.get_current_history_length()
    answer = input(prompt)
    n = readline.get_current_history_length()
    if n > before and readline.get_history_item(n) == answer:
        readline.remove_history_item(n - 1)
    return answer


class Confirmer(Protocol):
    def confirm(self, command: str, verb: str) -> bool:
        ...

    def notify_executing(self, command: str, verb: str) -> None:
        ...


class ConsoleConfirmation:
    """Interactive yes/no prompt. Unrecognised answers re-prompt forever."""

    def __init__(
        self,
        input_fn: Callable[[str], str] = read_answer,
        out: Optional[TextIO] = None,
    ) -> None:
        self._input = input_fn
        self._out = out

    @property
    def out(self) -> TextIO:
        return self._out or sys.stdout

    def _print(self, text: str = "") -> None:
        print(text, file=self.out)

    def confirm(self, command: str, verb: str) -> bool:
        self._render_warning(command, verb)
        while True:
            try:
                answer = self._input(
                    f"{Fore.GREEN}Run this dangerous command? [yes/no]: {Style.RESET_ALL}"
                )
            except (EOFError, KeyboardInterrupt):
                log.info(f"confirmation input closed; declining {verb!r}")
                self._print()
                return False

            answer = answer.strip().lower()
            if answer in AFFIRMATIVE:
                self._print(f"{Fore.YELLOW}{Style.BRIGHT}⚠️  operator confirmed dangerous command{Style.RESET_ALL}")
                return True
            if answer in NEGATIVE:
                self._print("✅ dangerous command cancelled, nothing was run")
                return False
            self._print(f"{Fore.RED}❌ please answer 'yes' or 'no' (or 'y'/'n'){Style.RESET_ALL}")

    def notify_executing(self, command: str, verb: str) -> None:
        self._print(f"\n{Fore.YELLOW}⚠️  executing dangerous command: {command}{Style.RESET_ALL}")

    def _render_warning(self, command: str, verb: str) -> None:
        self._print()
        self._print(
            f"{Fore.RED}{Style.BRIGHT}🚨 dangerous command warning: '{verb}' "
            f"is potentially destructive!{Style.RESET_ALL}"
        )
        self._print(f"   command: {command}")
        self._print(
            f"{Fore.YELLOW}{Style.BRIGHT}Running it may cause irreversible damage.{Style.RESET_ALL}"
        )
        self._print()
        self._print("⚠️  specific risks:")
        for note in risk_notes(verb):
            self._print(f"  • {note}")
        self._print()


class AutoDeny:
    """Declines every dangerous command without asking."""

    def confirm(self, command: str, verb: str) -> bool:
        log.info(f"auto-deny: {command!r}")
        return False

    def notify_executing(self, command: str, verb: str) -> None:
        pass


class AutoAllow:
    """Approves every dangerous command without asking."""

    def confirm(self, command: str, verb: str) -> bool:
        log.warning(f"auto-allow: {command!r}")
        return True

    def notify_executing(self, command: str, verb: str) -> None:
        log.warning(f"executing dangerous command: {command}")
