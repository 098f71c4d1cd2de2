"""
aishell/ui/console.py - Everything the operator sees outside tool output.
"""

from __future__ import annotations

import sys
from typing import Optional, TextIO

from colorama import Fore, Style

from aishell.config import AppConfig, ENV_API_KEY, ENV_DEBUG, ENV_SEARCH_KEY

CLEAR_SCREEN = "\033[2J\033[H"


class Console:
    def __init__(self, config: AppConfig, out: Optional[TextIO] = None) -> None:
        self._config = config
        self._out = out

    @property
    def out(self) -> TextIO:
        return self._out or sys.stdout

    def _print(self, text: str = "", end: str = "\n") -> None:
        print(text, end=end, file=self.out, flush=True)

    # -- Banners ------------------------------------------------------------

    def welcome(self) -> None:
        self._print(f"{Fore.CYAN}{Style.BRIGHT}🤖 AI Shell - terminal assistant{Style.RESET_ALL}")
        self._print(f"{Fore.CYAN}{Style.BRIGHT}================================{Style.RESET_ALL}")
        self._print("👨‍💻 I help you solve system and technical problems from the terminal")
        self._print()
        self._print(f"{Fore.YELLOW}💬 How to interact:{Style.RESET_ALL}")
        self._print("  • describe what you need in plain language, I pick the right tool")
        self._print("  • ↑↓ browse history, Ctrl+R searches history")
        self._print("  • type 'exit' to quit | 'help' for features")
        self._print()
        self._environment_status()

    def _environment_status(self) -> None:
        if not self._config.api_key:
            self._print(f"{Fore.RED}⚠️  warning: {ENV_API_KEY} is not set{Style.RESET_ALL}")
            self._print(f"   set it with: export {ENV_API_KEY}=your_api_key")
            self._print()
        if not self._config.has_search_api:
            self._print(f"{Fore.YELLOW}💡 tip: {ENV_SEARCH_KEY} is not set, web search is unavailable{Style.RESET_ALL}")
            self._print()
        if self._config.debug:
            self._print(f"{Fore.GREEN}🔍 debug mode enabled, agent steps are logged in detail{Style.RESET_ALL}")
        else:
            self._print(f"{Fore.YELLOW}💡 tip: set {ENV_DEBUG}=true for detailed debug output{Style.RESET_ALL}")
        self._print()

    def usage_tips(self) -> None:
        self._print("💡 tip: use ↑↓ to browse history, Ctrl+C to discard the current line")
        self._print()

    def help(self) -> None:
        self._print(f"{Fore.CYAN}{Style.BRIGHT}🤖 terminal assistant - features{Style.RESET_ALL}")
        self._print(f"{Fore.CYAN}{Style.BRIGHT}================================{Style.RESET_ALL}")
        self._section("🔧 system management:", [
            "install software: 'install python for me', 'install nodejs'",
            "system information: 'show system configuration', 'check disk space'",
            "file operations: 'create a project directory', 'list files here'",
            "processes: 'show running services', 'which process uses port 8080'",
        ])
        self._section("📄 reading files:", [
            "whole file: 'read main.go', 'show config.json'",
            "line ranges: 'first 10 lines of main.go', 'lines 20-30'",
            "relative and absolute paths: '/path/to/file', './src/main.go'",
        ])
        self._section("📝 writing files:", [
            "new files: 'create config.txt', 'write Hello World to test.txt'",
            "edit files: 'update the code in main.go'",
            "missing directories are created on request",
            "text formats only: .txt, .go, .py, .js, .json, .md, ...",
        ])
        self._section("🧮 calculations:", [
            "arithmetic: 'compute (15 + 25) * 2'",
            "conversions: 'how many MB is 1GB'",
        ])
        if self._config.has_search_api:
            self._section("🔍 search:", [
                "technical lookups: 'best practices for Go error handling'",
            ])
        self._section("🛡️  safety:", [
            "destructive commands (rm, shutdown, chmod, kill, ...) ask for confirmation",
            "answer 'yes'/'y' to run them, 'no'/'n' to cancel",
        ])
        self._section("⌨️  shortcuts:", [
            "↑↓ - browse history",
            "Ctrl+R - search history",
            "Ctrl+C - discard the current line (on an empty line: quit)",
            "Ctrl+D or 'exit' - quit",
            "'clear' / 'cls' - clear the screen",
        ])

    def _section(self, title: str, items: list[str]) -> None:
        self._print(f"{Fore.YELLOW}{Style.BRIGHT}{title}{Style.RESET_ALL}")
        for item in items:
            self._print(f"{Fore.GREEN}  • {item}{Style.RESET_ALL}")
        self._print()

    def history(self) -> None:
        self._print(f"{Fore.CYAN}{Style.BRIGHT}📜 command history{Style.RESET_ALL}")
        self._print(f"{Fore.CYAN}{Style.BRIGHT}=================={Style.RESET_ALL}")
        self._print(f"{Fore.YELLOW}💡 use ↑↓ to browse previous commands{Style.RESET_ALL}")
        self._print(f"{Fore.YELLOW}💡 use Ctrl+R to search history{Style.RESET_ALL}")
        self._print(f"{Fore.YELLOW}💡 history is saved to {self._config.history_file}{Style.RESET_ALL}")
        self._print()

    def goodbye(self) -> None:
        self._print(f"{Fore.BLUE}👋 goodbye, thanks for using the terminal assistant!{Style.RESET_ALL}")

    # -- Per request --------------------------------------------------------

    def error(self, message: str, err: object) -> None:
        self._print(f"{Fore.RED}❌ {message}: {err}{Style.RESET_ALL}\n")

    def thinking(self) -> None:
        self._print("\n🤔 thinking...", end="")

    def clear_thinking(self) -> None:
        self._print("\r" + " " * 20 + "\r", end="")

    def response(self, text: str) -> None:
        self._print(f"{Fore.BLUE}🤖 assistant:{Style.RESET_ALL}")
        self._print(text)
        self._print()

    def clear_screen(self) -> None:
        self._print(CLEAR_SCREEN, end="")
