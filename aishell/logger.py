"""
aishell/logger.py - Operator-facing log output and the command audit trail.

Two sinks:
  • app log: coloured stderr console (tool output owns stdout) plus a
    rotating file that keeps INFO even when the console is quiet.
  • audit log: append-only JSONL. Every entry carries the session id, a
    per-file sequence number and the SHA-256 of the previous entry, so a
    dropped, reordered or edited line breaks verification.
"""

from __future__ import annotations

import hashlib
import json
import logging
import logging.handlers
import sys
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from colorama import Fore, Style, init as colorama_init

colorama_init()

APP_LOGGER = "aishell"
FILE_MAX_BYTES = 5 * 1024 * 1024
FILE_BACKUPS = 3

_LEVEL_COLOURS = {
    "DEBUG":    Fore.CYAN,
    "INFO":     Fore.GREEN,
    "WARNING":  Fore.YELLOW,
    "ERROR":    Fore.RED,
    "CRITICAL": Fore.MAGENTA,
}


class ColouredFormatter(logging.Formatter):
    """``HH:MM:SS [LEVL] area: message`` with the level tag coloured."""

    def format(self, record: logging.LogRecord) -> str:
        colour = _LEVEL_COLOURS.get(record.levelname, "")
        area = record.name.split(".", 1)[1] if "." in record.name else record.name
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = (
            f"{Style.DIM}{ts}{Style.RESET_ALL} "
            f"{colour}[{record.levelname[:4]}]{Style.RESET_ALL} {area}: {record.getMessage()}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


# ── Audit trail ───────────────────────────────────────────────────────────────

@dataclass
class AuditReport:
    ok: bool
    entries: int
    error: str = ""
    last_hash: str = ""

    def __str__(self) -> str:
        if self.ok:
            return f"audit chain intact ({self.entries} entries)"
        return f"audit chain broken after {self.entries} entries: {self.error}"


def _digest(entry: dict[str, Any]) -> str:
    body = json.dumps(entry, ensure_ascii=False, sort_keys=True, default=str)
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


class AuditLog:
    """Hash-chained JSONL file of gate decisions, tool calls and session events."""

    GENESIS = "0" * 64

    def __init__(self, path: str | Path, session: Optional[str] = None) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self.session = session or uuid.uuid4().hex[:12]
        self._lock = threading.Lock()
        self._prev_hash, self._seq = self._resume()

    @property
    def path(self) -> Path:
        return self._path

    def _resume(self) -> tuple[str, int]:
        """Continue the chain from the last well-formed entry on disk."""
        last: Optional[dict[str, Any]] = None
        if self._path.exists():
            with self._path.open("r", encoding="utf-8") as fh:
                for line in fh:
                    if not line.strip():
                        continue
                    try:
                        last = json.loads(line)
                    except json.JSONDecodeError:
                        continue
        if not last:
            return self.GENESIS, 0
        return last.get("hash", self.GENESIS), int(last.get("seq", 0))

    def write(self, event: str, payload: dict[str, Any]) -> str:
        """Append one entry and return its hash."""
        with self._lock:
            entry: dict[str, Any] = {
                "seq": self._seq + 1,
                "ts": datetime.now(tz=timezone.utc).isoformat(),
                "session": self.session,
                "event": event,
                "payload": payload,
                "prev_hash": self._prev_hash,
            }
            entry["hash"] = _digest(entry)
            with self._path.open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
            self._seq = entry["seq"]
            self._prev_hash = entry["hash"]
            return entry["hash"]

    def verify(self) -> AuditReport:
        if not self._path.exists():
            return AuditReport(ok=True, entries=0, last_hash=self.GENESIS)

        prev, seq = self.GENESIS, 0
        with self._path.open("r", encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, 1):
                if not line.strip():
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError as exc:
                    return AuditReport(False, seq, f"line {lineno}: invalid JSON ({exc.msg})", prev)

                stored = entry.pop("hash", None)
                if stored != _digest(entry):
                    return AuditReport(False, seq, f"line {lineno}: hash mismatch", prev)
                if entry.get("prev_hash") != prev:
                    return AuditReport(False, seq, f"line {lineno}: chain broken", prev)
                if entry.get("seq") != seq + 1:
                    return AuditReport(
                        False, seq, f"line {lineno}: expected seq {seq + 1}, got {entry.get('seq')}", prev
                    )
                prev, seq = stored, seq + 1
        return AuditReport(ok=True, entries=seq, last_hash=prev)


# ── Module state (initialised by setup()) ─────────────────────────────────────
_audit: Optional[AuditLog] = None
_app_logger: Optional[logging.Logger] = None


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ColouredFormatter())
    handler.setLevel(level)
    return handler


def _file_handler(path: Path, level: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=FILE_MAX_BYTES, backupCount=FILE_BACKUPS, encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    handler.setLevel(min(level, logging.INFO))
    return handler


def setup(config: Any, debug: bool = False) -> logging.Logger:
    """Call once at startup with the parsed ConfigParser object."""
    global _audit, _app_logger

    log_dir = Path(config.get("logging", "log_dir", fallback="logs")).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    audit_path = Path(config.get("logging", "audit_file", fallback=str(log_dir / "audit.jsonl")))
    app_path = Path(config.get("logging", "app_file", fallback=str(log_dir / "aishell.log")))

    level_name = "DEBUG" if debug else config.get("logging", "level", fallback="WARNING")
    level = getattr(logging, level_name.upper(), logging.WARNING)

    logger = logging.getLogger(APP_LOGGER)
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False
    logger.addHandler(_console_handler(level))
    logger.addHandler(_file_handler(app_path.expanduser(), level))

    _audit = AuditLog(audit_path.expanduser())
    _app_logger = logger
    return logger


def get() -> logging.Logger:
    if _app_logger is None:
        raise RuntimeError("logging not initialised; call aishell.logger.setup() first")
    return _app_logger


def audit(event: str, payload: dict[str, Any]) -> str:
    if _audit is None:
        raise RuntimeError("audit log not initialised; call aishell.logger.setup() first")
    return _audit.write(event, payload)


def verify_audit() -> AuditReport:
    if _audit is None:
        return AuditReport(ok=False, entries=0, error="audit log not initialised")
    return _audit.verify()
