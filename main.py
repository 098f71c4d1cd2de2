"""
main.py - aishell entry point.

Usage:
  python main.py                   # interactive terminal assistant
  python main.py --version         # version and build metadata
  python main.py --config my.ini   # use a custom config file
"""

from __future__ import annotations

import argparse
import configparser
import logging
import os
import platform
import sys
import traceback
from pathlib import Path
from typing import Optional, Sequence

import aishell
from aishell.config import ENV_DEBUG, AppConfig, ConfigError

# Define the absolute root of the project based on this file's location
PROJECT_ROOT = Path(__file__).resolve().parent

_LOG_PATH_KEYS = ("log_dir", "audit_file", "app_file")


def _load_config(config_path: str = "config/aishell.ini") -> configparser.ConfigParser:
    config = configparser.ConfigParser()
    path = Path(config_path).expanduser()
    if not path.is_absolute() and not path.exists():
        path = PROJECT_ROOT / config_path

    if path.exists():
        config.read(path, encoding="utf-8")
    else:
        print(f"⚠  Config not found at {path}, using defaults", file=sys.stderr)
    return config


def _anchor_log_paths(config: configparser.ConfigParser) -> None:
    """Relative log paths live under the project root, not the operator's cwd."""
    if not config.has_section("logging"):
        config.add_section("logging")
    for key in _LOG_PATH_KEYS:
        value = config.get("logging", key, fallback="")
        if value and not Path(value).expanduser().is_absolute():
            config.set("logging", key, str(PROJECT_ROOT / value))
    if not config.get("logging", "log_dir", fallback=""):
        config.set("logging", "log_dir", str(PROJECT_ROOT / "logs"))


def check_audit_chain(log: logging.Logger) -> bool:
    """Verify the audit trail left by earlier sessions before appending to it."""
    import aishell.logger as logger_mod

    report = logger_mod.verify_audit()
    if report.ok:
        log.info(f"✅ {report}")
    else:
        log.warning(f"❌ {report}; new entries continue from the last readable one")
    return report.ok


def version_text() -> str:
    return (
        f"aishell {aishell.__version__}\n"
        f"commit: {aishell.__commit__}\n"
        f"built: {aishell.__build_time__}\n"
        f"python: {platform.python_version()}"
    )


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="aishell",
        description="aishell - natural-language terminal assistant",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Environment:
  OPENAI_API_KEY     required, API key for the model provider
  OPENAI_BASE_URL    optional, alternative API endpoint
  SERPAPI_API_KEY    optional, reported as search availability
  {ENV_DEBUG}      set to 'true' for detailed agent logging

Examples:
  python main.py                  Start the interactive assistant
  python main.py --config my.ini  Use custom config file
        """,
    )
    parser.add_argument(
        "-v", "--version", action="version", version=version_text(),
        help="Show version information and exit",
    )
    parser.add_argument(
        "--config", default="config/aishell.ini",
        help="Path to config file (default: config/aishell.ini under the project root)",
    )
    parser.add_argument(
        "--log-level", default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level (DEBUG, INFO, WARNING, ERROR)",
    )
    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> int:
    config = _load_config(args.config)

    # Override log level from CLI if provided
    if args.log_level:
        if not config.has_section("logging"):
            config.add_section("logging")
        config.set("logging", "level", args.log_level.upper())
    _anchor_log_paths(config)

    # Initialise logging first
    import aishell.logger as logger_mod
    debug = os.environ.get(ENV_DEBUG, "").strip().lower() == "true"
    try:
        logger_mod.setup(config, debug=debug)
    except OSError as e:
        print(f"❌ Could not initialise logging: {e}", file=sys.stderr)
        return 1
    log = logger_mod.get()
    check_audit_chain(log)

    app_config = AppConfig.load(config)
    try:
        app_config.validate()
    except ConfigError as e:
        log.error(f"Configuration error: {e}")
        print(f"❌ {e}", file=sys.stderr)
        return 1

    # ── Startup ──────────────────────────────────────────────────────────────
    from aishell.agent import ChatBot
    from aishell.cli import LineReader, Runner
    from aishell.safety import ConsoleConfirmation, DangerousCommandSet
    from aishell.tools import CommandExecutor, ToolRouter, register_all_tools
    from aishell.ui import Console

    try:
        dangerous = DangerousCommandSet()
        dangerous.extend(app_config.extra_dangerous_commands)
        executor = CommandExecutor(
            dangerous=dangerous,
            confirmer=ConsoleConfirmation(),
            timeout_s=app_config.command_timeout_s,
            mode=app_config.shell_mode,
            audit=logger_mod.audit,
        )
        router = ToolRouter(audit=logger_mod.audit)
        register_all_tools(router, executor)
        agent = ChatBot(app_config, router)
        reader = LineReader(app_config.prompt, app_config.history_file)
    except Exception as e:
        log.critical(f"Initialisation failed: {e}\n{traceback.format_exc()}")
        print(f"❌ Failed to initialise: {e}", file=sys.stderr)
        return 1

    runner = Runner(
        agent,
        reader,
        Console(app_config),
        max_input_length=app_config.max_input_length,
        audit=logger_mod.audit,
    )
    log.info(f"aishell {aishell.__version__} starting (mode={app_config.shell_mode})")
    runner.run()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)
    sys.exit(run(args))


if __name__ == "__main__":
    main()
