"""
aishell/config.py - Runtime configuration.

Settings come from the INI file (config/aishell.ini); credentials and the
debug switch come from the environment and always win over the file.
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

ENV_API_KEY = "OPENAI_API_KEY"
ENV_BASE_URL = "OPENAI_BASE_URL"
ENV_SEARCH_KEY = "SERPAPI_API_KEY"
ENV_DEBUG = "AISHELL_DEBUG"


class ConfigError(Exception):
    pass


@dataclass
class AppConfig:
    # agent
    api_key: str = ""
    base_url: Optional[str] = None
    model: str = "gpt-4o-mini"
    conversation_buffer_size: int = 100
    max_iterations: int = 30
    request_timeout_s: float = 120.0

    # executor
    command_timeout_s: float = 30.0
    shell_mode: str = "shell"
    extra_dangerous_commands: list[str] = field(default_factory=list)

    # cli
    history_file: str = "/tmp/aishell_history"
    prompt: str = "💻 aishell> "
    max_input_length: int = 1000

    # flags
    debug: bool = False
    has_search_api: bool = False

    @classmethod
    def load(
        cls,
        config: configparser.ConfigParser,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "AppConfig":
        env = os.environ if environ is None else environ
        extra_raw = config.get("safety", "extra_dangerous_commands", fallback="")

        return cls(
            api_key=env.get(ENV_API_KEY, "").strip(),
            base_url=env.get(ENV_BASE_URL, "").strip() or None,
            model=config.get("agent", "model", fallback=cls.model),
            conversation_buffer_size=config.getint(
                "agent", "conversation_buffer_size", fallback=cls.conversation_buffer_size
            ),
            max_iterations=config.getint("agent", "max_iterations", fallback=cls.max_iterations),
            request_timeout_s=config.getfloat(
                "agent", "request_timeout_s", fallback=cls.request_timeout_s
            ),
            command_timeout_s=config.getfloat(
                "executor", "timeout_s", fallback=cls.command_timeout_s
            ),
            shell_mode=config.get("executor", "mode", fallback=cls.shell_mode).strip().lower(),
            extra_dangerous_commands=[v.strip() for v in extra_raw.split(",") if v.strip()],
            history_file=str(
                Path(config.get("cli", "history_file", fallback=cls.history_file)).expanduser()
            ),
            # INI values lose trailing whitespace
            prompt=config.get("cli", "prompt", fallback=cls.prompt).rstrip() + " ",
            max_input_length=config.getint(
                "cli", "max_input_length", fallback=cls.max_input_length
            ),
            debug=env.get(ENV_DEBUG, "").strip().lower() == "true",
            has_search_api=bool(env.get(ENV_SEARCH_KEY, "").strip()),
        )

    def validate(self) -> None:
        """Startup requirements. Raises ConfigError; the caller exits non-zero."""
        if not self.api_key:
            raise ConfigError(
                f"{ENV_API_KEY} is not set; export {ENV_API_KEY}=your_api_key"
            )
        if self.shell_mode not in ("shell", "argv"):
            raise ConfigError(
                f"[executor] mode must be 'shell' or 'argv', got '{self.shell_mode}'"
            )
        if self.command_timeout_s <= 0:
            raise ConfigError("[executor] timeout_s must be positive")
        if self.max_iterations < 1:
            raise ConfigError("[agent] max_iterations must be at least 1")
