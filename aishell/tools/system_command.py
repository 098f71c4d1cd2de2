"""
CommandExecutor - runs one operator/agent command line on the host.

Flow per invocation:
  classify leading verb → [confirm with operator] → spawn → bounded wait →
  combined stdout+stderr → result text

Execution problems (non-zero exit, timeout, spawn failure) come back as
"command failed: ..." text rather than exceptions, so the agent always has
something to narrate. Shell mode trusts the caller: the whole line goes to
sh -c / cmd /c, pipes and redirection included.
"""

from __future__ import annotations

import logging
import os
import shlex
import signal
import subprocess
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

import psutil

from aishell.safety.confirmation import Confirmer, ConsoleConfirmation
from aishell.safety.danger import DangerousCommandSet, leading_verb
from aishell.state_machine import GateState, GateStateMachine
from aishell.tools.base import Tool, ToolInputError

log = logging.getLogger("aishell.tools.system_command")

DEFAULT_TIMEOUT_S = 30.0
KILL_GRACE_S = 5.0

SUCCESS_PREFIX = "command succeeded:"
FAILURE_PREFIX = "command failed:"
EMPTY_COMMAND_MESSAGE = "error: command cannot be empty"

_POSIX = os.name != "nt"

MODE_SHELL = "shell"
MODE_ARGV = "argv"

AuditFn = Callable[[str, dict[str, Any]], Any]


@dataclass
class ExecutionOutcome:
    command: str
    verb: str
    succeeded: bool
    combined_output: bytes = b""
    process_error: Optional[str] = None
    returncode: Optional[int] = None
    timed_out: bool = False
    cancelled: bool = False
    duration_s: float = 0.0

    @property
    def output_text(self) -> str:
        return self.combined_output.decode("utf-8", errors="replace")

    def to_text(self) -> str:
        if self.cancelled:
            return f"dangerous command '{self.verb}' cancelled: {self.command}"
        if self.succeeded:
            return f"{SUCCESS_PREFIX}\n{self.output_text}"
        return f"{FAILURE_PREFIX} {self.process_error}\noutput: {self.output_text}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "command": self.command,
            "succeeded": self.succeeded,
            "returncode": self.returncode,
            "timed_out": self.timed_out,
            "cancelled": self.cancelled,
            "error": self.process_error,
            "output_bytes": len(self.combined_output),
            "duration_s": round(self.duration_s, 3),
        }


class CommandExecutor(Tool):
    name = "system_command"
    description = """Runs system commands. Executes cross-platform commands such as package manager installs, file operations and system information queries.
Input format: the complete command to run, for example:
- Linux/macOS: "apt install python3", "brew install node", "ls -la"
- Windows: "choco install nodejs", "dir", "systeminfo"
Safety: most commands run directly; dangerous commands (such as rm to delete or shutdown to power off) require user confirmation."""

    def __init__(
        self,
        dangerous: Optional[DangerousCommandSet] = None,
        confirmer: Optional[Confirmer] = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        mode: str = MODE_SHELL,
        audit: Optional[AuditFn] = None,
        windows: Optional[bool] = None,
    ) -> None:
        if mode not in (MODE_SHELL, MODE_ARGV):
            raise ValueError(f"unknown execution mode: {mode}")
        self._dangerous = dangerous if dangerous is not None else DangerousCommandSet()
        self._confirmer: Confirmer = confirmer if confirmer is not None else ConsoleConfirmation()
        self.timeout_s = timeout_s
        self.mode = mode
        self._audit = audit
        self._windows = (os.name == "nt") if windows is None else windows
        self._active: Optional[subprocess.Popen] = None

    # ── Dangerous command set ─────────────────────────────────────────────────

    @property
    def dangerous_commands(self) -> list[str]:
        return self._dangerous.as_list()

    def add_dangerous_command(self, verb: str) -> None:
        self._dangerous.add(verb)

    def set_dangerous_commands(self, verbs: Iterable[str]) -> None:
        self._dangerous.replace(verbs)

    def is_dangerous(self, verb: str) -> bool:
        return self._dangerous.is_dangerous(verb)

    # ── Tool contract ─────────────────────────────────────────────────────────

    def invoke(self, tool_input: str) -> str:
        command = tool_input.strip()
        if not command:
            return EMPTY_COMMAND_MESSAGE
        return self.execute(command).to_text()

    def execute(self, command: str) -> ExecutionOutcome:
        """Gate and run one command line. Blank input raises ToolInputError."""
        command = command.strip()
        if not command:
            raise ToolInputError("command cannot be empty")
        verb = leading_verb(command)
        gate = GateStateMachine(command)

        if self._dangerous.is_dangerous(verb):
            gate.add_listener(lambda old, new: self._record("DANGER_GATE", {
                "command": command, "from": old.name, "to": new.name,
            }))
            gate.transition(GateState.CLASSIFIED)
            gate.transition(GateState.AWAITING_CONFIRMATION)

            if not self._confirmer.confirm(command, verb):
                gate.transition(GateState.DECLINED)
                gate.transition(GateState.CANCELLED)
                log.info(f"dangerous command declined: {command!r}")
                return ExecutionOutcome(command=command, verb=verb, succeeded=False, cancelled=True)

            gate.transition(GateState.CONFIRMED)
            self._confirmer.notify_executing(command, verb)
            log.warning(f"executing confirmed dangerous command: {command!r}")

        gate.transition(GateState.SPAWNING)
        outcome = self._run(command, verb)
        self._record("COMMAND_RESULT", outcome.to_dict())
        return outcome

    def close(self) -> None:
        proc = self._active
        # the shell may already have exited while its background jobs hold the pipes
        if proc is not None:
            log.warning(f"terminating running command pid={proc.pid}")
            _kill_tree(proc)

    # ── Process handling ──────────────────────────────────────────────────────

    def build_argv(self, command: str) -> list[str]:
        if self.mode == MODE_ARGV:
            return shlex.split(command, posix=not self._windows)
        if self._windows:
            return ["cmd", "/c", command]
        return ["sh", "-c", command]

    def _run(self, command: str, verb: str) -> ExecutionOutcome:
        started = time.monotonic()

        def failed(error: str, output: bytes = b"", **extra: Any) -> ExecutionOutcome:
            return ExecutionOutcome(
                command=command,
                verb=verb,
                succeeded=False,
                combined_output=output,
                process_error=error,
                duration_s=time.monotonic() - started,
                **extra,
            )

        try:
            argv = self.build_argv(command)
        except ValueError as exc:
            return failed(f"cannot parse command: {exc}")

        log.debug(f"spawn argv={argv} timeout={self.timeout_s}s")
        try:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                start_new_session=_POSIX,
            )
        except OSError as exc:
            return failed(f"cannot start process: {exc.strerror or exc}")

        self._active = proc
        try:
            with proc:
                try:
                    output, _ = proc.communicate(timeout=self.timeout_s)
                except subprocess.TimeoutExpired:
                    log.warning(f"command timed out after {self.timeout_s:g}s: {command!r}")
                    _kill_tree(proc)
                    output = _drain(proc)
                    return failed(
                        f"timed out after {self.timeout_s:g}s",
                        output,
                        returncode=proc.returncode,
                        timed_out=True,
                    )
                except BaseException:
                    _kill_tree(proc)
                    raise
        finally:
            self._active = None

        rc = proc.returncode
        if rc != 0:
            return failed(_describe_returncode(rc), output or b"", returncode=rc)

        return ExecutionOutcome(
            command=command,
            verb=verb,
            succeeded=True,
            combined_output=output or b"",
            returncode=rc,
            duration_s=time.monotonic() - started,
        )

    def _record(self, event: str, payload: dict[str, Any]) -> None:
        if self._audit is not None:
            self._audit(event, payload)


def _describe_returncode(rc: int) -> str:
    if rc < 0:
        return f"terminated by signal {-rc}"
    return f"exit status {rc}"


def _kill_tree(proc: subprocess.Popen) -> None:
    """
    Kill the process and every descendant so nothing outlives the call.

    The psutil walk only sees descendants still parented under the shell.
    Background jobs the shell already left behind are reparented to init, so
    on POSIX the whole session's process group is killed as well.
    """
    try:
        children = psutil.Process(proc.pid).children(recursive=True)
    except psutil.NoSuchProcess:
        children = []
    for child in children:
        try:
            child.kill()
        except psutil.NoSuchProcess:
            pass
    if _POSIX:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            pass
    try:
        proc.kill()
    except ProcessLookupError:
        pass
    psutil.wait_procs(children, timeout=KILL_GRACE_S)


def _drain(proc: subprocess.Popen) -> bytes:
    """Output captured before the kill. A pipe held open by an escaped
    descendant must not block us past the grace period."""
    try:
        output, _ = proc.communicate(timeout=KILL_GRACE_S)
    except subprocess.TimeoutExpired as exc:
        return exc.output or b""
    return output or b""
