"""
tests/test_system_command.py - CommandExecutor gating and process handling.

Process tests spawn real POSIX shells and are skipped on Windows.
"""

from __future__ import annotations

import os
import subprocess
import sys
import time
from unittest import mock

import psutil
import pytest

from aishell.safety.confirmation import AutoAllow, AutoDeny
from aishell.safety.danger import DangerousCommandSet
from aishell.tools.base import ToolInputError
from aishell.tools.system_command import (
    EMPTY_COMMAND_MESSAGE,
    MODE_ARGV,
    CommandExecutor,
    ExecutionOutcome,
)

posix_only = pytest.mark.skipif(os.name == "nt", reason="needs a POSIX shell")


class RecordingConfirmer:
    def __init__(self, answer: bool):
        self.answer = answer
        self.asked = []
        self.notified = []

    def confirm(self, command, verb):
        self.asked.append((command, verb))
        return self.answer

    def notify_executing(self, command, verb):
        self.notified.append(command)


def surviving(*cmdline, wait_s=2.0):
    """Live processes whose argv is exactly ``cmdline`` after a short settle."""
    deadline = time.monotonic() + wait_s
    while True:
        found = []
        for p in psutil.process_iter(["cmdline", "status"]):
            if p.info["status"] == psutil.STATUS_ZOMBIE:
                continue
            if p.info["cmdline"] == list(cmdline):
                found.append(p)
        if not found or time.monotonic() > deadline:
            return found
        time.sleep(0.1)


@pytest.fixture
def audit_events():
    return []


def make_executor(confirmer=None, audit_events=None, **kwargs):
    audit = (lambda event, payload: audit_events.append((event, payload))) \
        if audit_events is not None else None
    return CommandExecutor(confirmer=confirmer or AutoDeny(), audit=audit, **kwargs)


class TestInvoke:
    @pytest.mark.parametrize("raw", ["", "   ", "\n"])
    def test_empty_command(self, raw):
        assert make_executor().invoke(raw) == EMPTY_COMMAND_MESSAGE

    @pytest.mark.parametrize("raw", ["", "  \t "])
    def test_execute_rejects_blank_without_spawning(self, raw):
        with mock.patch("aishell.tools.system_command.subprocess.Popen") as popen:
            with pytest.raises(ToolInputError, match="command cannot be empty"):
                make_executor().execute(raw)
        popen.assert_not_called()

    @posix_only
    def test_success_combines_stdout_and_stderr(self):
        out = make_executor().invoke("echo out; echo err 1>&2")
        assert out.startswith("command succeeded:\n")
        assert "out" in out and "err" in out

    @posix_only
    def test_failure_reports_exit_status_and_output(self):
        out = make_executor().invoke("echo partial; exit 3")
        assert out.startswith("command failed: exit status 3\noutput: partial")

    @posix_only
    def test_shell_features_available_in_shell_mode(self):
        out = make_executor().invoke("printf 'a\\nb\\n' | wc -l")
        assert out.split("\n")[1].strip() == "2"


class TestTimeout:
    @posix_only
    def test_timeout_kills_and_reports(self):
        executor = make_executor(timeout_s=0.5)
        started = time.monotonic()
        outcome = executor.execute("sleep 5")
        assert time.monotonic() - started < 4
        assert outcome.timed_out
        assert not outcome.succeeded
        assert "timed out after 0.5s" in outcome.to_text()

    @posix_only
    def test_timeout_keeps_partial_output(self):
        outcome = make_executor(timeout_s=0.5).execute("echo early; sleep 5")
        assert outcome.timed_out
        assert "early" in outcome.output_text

    @posix_only
    def test_timeout_kills_grandchildren(self):
        outcome = make_executor(timeout_s=0.5).execute("sleep 41 & sleep 41; wait")
        assert outcome.timed_out
        assert surviving("sleep", "41") == []

    @posix_only
    def test_timeout_kills_jobs_left_behind_by_the_shell(self):
        # sh exits at once; the background sleep is reparented but holds stdout
        started = time.monotonic()
        outcome = make_executor(timeout_s=1).execute("sleep 43 & echo started")
        assert outcome.timed_out
        assert "started" in outcome.output_text
        assert time.monotonic() - started < 4
        assert surviving("sleep", "43") == []

    @posix_only
    def test_close_kills_running_command(self):
        executor = make_executor(timeout_s=30)
        real_communicate = subprocess.Popen.communicate

        def close_midway(self, *args, **kwargs):
            executor.close()
            return real_communicate(self, *args, **kwargs)

        with mock.patch.object(subprocess.Popen, "communicate", close_midway):
            outcome = executor.execute("sleep 44 & sleep 44")
        assert not outcome.succeeded
        assert surviving("sleep", "44") == []


class TestDangerGate:
    def test_declined_command_never_spawns(self, audit_events):
        confirmer = RecordingConfirmer(answer=False)
        executor = make_executor(confirmer, audit_events)
        with mock.patch("aishell.tools.system_command.subprocess.Popen") as popen:
            out = executor.invoke("shutdown now")
        popen.assert_not_called()
        assert confirmer.asked == [("shutdown now", "shutdown")]
        assert out == "dangerous command 'shutdown' cancelled: shutdown now"
        transitions = [p["to"] for e, p in audit_events if e == "DANGER_GATE"]
        assert transitions == ["CLASSIFIED", "AWAITING_CONFIRMATION", "DECLINED", "CANCELLED"]

    def test_confirmation_happens_before_spawn(self):
        order = []

        class Confirmer(RecordingConfirmer):
            def confirm(self, command, verb):
                order.append("confirm")
                return True

        def fake_popen(*args, **kwargs):
            order.append("spawn")
            raise FileNotFoundError(2, "No such file or directory")

        executor = make_executor(Confirmer(True))
        with mock.patch("aishell.tools.system_command.subprocess.Popen", side_effect=fake_popen):
            out = executor.invoke("shutdown now")
        assert order == ["confirm", "spawn"]
        assert out.startswith("command failed: cannot start process")

    def test_case_insensitive_match(self):
        confirmer = RecordingConfirmer(answer=False)
        make_executor(confirmer).invoke("RM -rf /tmp/whatever")
        assert confirmer.asked == [("RM -rf /tmp/whatever", "RM")]

    @posix_only
    def test_safe_command_skips_confirmation(self):
        confirmer = RecordingConfirmer(answer=False)
        out = make_executor(confirmer).invoke("echo hello")
        assert confirmer.asked == []
        assert "hello" in out

    @posix_only
    def test_confirmed_command_runs(self, tmp_path):
        target = tmp_path / "victim.txt"
        target.write_text("x")
        confirmer = RecordingConfirmer(answer=True)
        out = make_executor(confirmer).invoke(f"rm {target}")
        assert out.startswith("command succeeded:")
        assert confirmer.notified == [f"rm {target}"]
        assert not target.exists()

    def test_custom_dangerous_set(self):
        confirmer = RecordingConfirmer(answer=False)
        executor = make_executor(confirmer, dangerous=DangerousCommandSet(["git"]))
        executor.add_dangerous_command("NPM")
        assert executor.dangerous_commands == ["git", "npm"]
        executor.invoke("npm publish")
        assert confirmer.asked[0][1] == "npm"

    def test_set_dangerous_commands_replaces(self):
        executor = make_executor()
        executor.set_dangerous_commands(["git"])
        assert executor.is_dangerous("git")
        assert not executor.is_dangerous("rm")


class TestArgvMode:
    def test_build_argv_shell_mode(self):
        assert make_executor(windows=False).build_argv("ls | wc") == ["sh", "-c", "ls | wc"]
        assert make_executor(windows=True).build_argv("dir") == ["cmd", "/c", "dir"]

    def test_build_argv_argv_mode(self):
        executor = make_executor(mode=MODE_ARGV, windows=False)
        assert executor.build_argv("grep -n 'two words' f.txt") == ["grep", "-n", "two words", "f.txt"]

    def test_unbalanced_quotes_are_failure_text(self):
        out = make_executor(mode=MODE_ARGV, windows=False).invoke("echo 'oops")
        assert out.startswith("command failed: cannot parse command")

    def test_missing_executable_is_failure_text(self):
        out = make_executor(mode=MODE_ARGV).invoke("definitely-not-a-real-binary-42 --flag")
        assert out.startswith("command failed: cannot start process")

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValueError):
            make_executor(mode="pty")


class TestOutcome:
    @posix_only
    def test_result_audited(self, audit_events):
        executor = make_executor(AutoAllow(), audit_events)
        executor.execute(f"{sys.executable} -c \"print('hi')\"")
        results = [p for e, p in audit_events if e == "COMMAND_RESULT"]
        assert len(results) == 1
        assert results[0]["succeeded"] is True

    def test_to_text_forms(self):
        ok = ExecutionOutcome(command="ls", verb="ls", succeeded=True, combined_output=b"a\n")
        bad = ExecutionOutcome(command="ls", verb="ls", succeeded=False,
                               combined_output=b"", process_error="exit status 2")
        assert ok.to_text() == "command succeeded:\na\n"
        assert bad.to_text() == "command failed: exit status 2\noutput: "

    def test_close_without_running_process(self):
        make_executor().close()

    @posix_only
    def test_interrupt_kills_child(self):
        executor = make_executor()
        real_communicate = subprocess.Popen.communicate
        seen = {}

        def interrupted(self, *args, **kwargs):
            if kwargs.get("timeout") == executor.timeout_s:
                seen["proc"] = self
                raise KeyboardInterrupt
            return real_communicate(self, *args, **kwargs)

        with mock.patch.object(subprocess.Popen, "communicate", interrupted):
            with pytest.raises(KeyboardInterrupt):
                executor.execute("sleep 5")
        proc = seen["proc"]
        assert proc.wait(timeout=5) != 0
