"""
aishell/safety/danger.py
═════════════════════════
Table-based classification of destructive shell verbs.

Rules:
  - Only the first whitespace-delimited token of a command is inspected.
  - Matching is case-insensitive and exact ("rm" matches "RM", not "rmx").
  - Everything not in the set is permitted without confirmation.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, Optional

logger = logging.getLogger("aishell.safety")


# ══════════════════════════════════════════════
# DANGER TABLE - default verbs by category
# ══════════════════════════════════════════════
DEFAULT_DANGEROUS_COMMANDS: dict[str, tuple[str, ...]] = {
    "file_deletion":   ("rm", "del", "erase", "rmdir", "rd"),
    "power":           ("shutdown", "reboot", "halt", "poweroff", "init"),
    "disk":            ("dd", "fdisk", "mkfs", "format", "parted", "gdisk"),
    "permissions":     ("chmod", "chown", "chgrp", "icacls", "takeown"),
    "network":         ("iptables", "netsh", "route", "ifconfig", "ip"),
    "services":        ("systemctl", "service", "sc", "net", "kill", "killall", "taskkill"),
    "kernel_modules":  ("modprobe", "rmmod", "insmod"),
    "archives":        ("tar", "unzip", "7z", "rar"),
    "scheduled_tasks": ("crontab", "at", "schtasks"),
    "users":           ("useradd", "userdel", "usermod", "passwd", "su", "sudo"),
    "packages":        ("rpm", "dpkg", "msiexec"),
}

# Risk explanations shown before confirmation. Keys are verbs.
_RISK_NOTES: dict[tuple[str, ...], tuple[str, ...]] = {
    ("rm", "del", "erase"): (
        "may permanently delete important files and data",
        "deletion usually cannot be undone",
        "back up important data first",
    ),
    ("shutdown", "reboot", "halt"): (
        "will power off or restart the system",
        "running programs may lose unsaved data",
        "save all work before continuing",
    ),
    ("chmod", "chown"): (
        "will change file or directory permissions",
        "wrong permissions can leave the system unusable",
        "may weaken system security",
    ),
    ("dd", "fdisk", "mkfs"): (
        "may overwrite or destroy disk data",
        "misuse can leave the system unbootable",
        "back up important data first",
    ),
    ("kill", "killall", "taskkill"): (
        "will forcibly terminate processes",
        "may cause data loss or an unstable system",
        "try a graceful shutdown of the process first",
    ),
}

GENERIC_RISK_NOTES: tuple[str, ...] = (
    "this command may have unexpected effects on the system",
    "make sure you understand exactly what it does",
    "consider trying it in a non-production environment first",
)


def default_commands() -> list[str]:
    verbs: list[str] = []
    for group in DEFAULT_DANGEROUS_COMMANDS.values():
        verbs.extend(group)
    return verbs


def leading_verb(command: str) -> str:
    """First whitespace-delimited token, or "" for blank input."""
    parts = command.split()
    return parts[0] if parts else ""


def risk_notes(verb: str) -> tuple[str, ...]:
    verb = verb.lower()
    for verbs, notes in _RISK_NOTES.items():
        if verb in verbs:
            return notes
    return GENERIC_RISK_NOTES


class DangerousCommandSet:
    """
    Ordered, mutable set of destructive verbs.

    Owned by a single CommandExecutor. Mutate during setup only; lookups are
    not synchronised.
    """

    def __init__(self, commands: Optional[Iterable[str]] = None) -> None:
        self._commands: dict[str, None] = {}
        self.replace(default_commands() if commands is None else commands)

    def is_dangerous(self, verb: str) -> bool:
        return verb.strip().lower() in self._commands

    def classify(self, command: str) -> Optional[str]:
        """Return the leading verb when it is dangerous, else None."""
        verb = leading_verb(command)
        if verb and self.is_dangerous(verb):
            logger.debug(f"DANGER verb={verb!r} command={command!r}")
            return verb
        return None

    def add(self, verb: str) -> None:
        key = verb.strip().lower()
        if not key:
            raise ValueError("dangerous command verb cannot be empty")
        self._commands.setdefault(key, None)

    def extend(self, verbs: Iterable[str]) -> None:
        for verb in verbs:
            self.add(verb)

    def replace(self, verbs: Iterable[str]) -> None:
        self._commands = {}
        self.extend(verbs)

    def as_list(self) -> list[str]:
        return list(self._commands)

    def __contains__(self, verb: object) -> bool:
        return isinstance(verb, str) and self.is_dangerous(verb)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._commands))

    def __len__(self) -> int:
        return len(self._commands)

    def __repr__(self) -> str:
        return f"<DangerousCommandSet size={len(self._commands)}>"
