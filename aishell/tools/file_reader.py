"""
FileReadTool - line-numbered slices of text files.

Input grammar: ``path[,start[,end]]``. Missing or empty fields fall back to
start=1 and end=100.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from aishell.tools.base import Tool, ToolInputError, ToolResourceError
from aishell.tools.paths import PathResolver

log = logging.getLogger("aishell.tools.file_reader")

DEFAULT_START_LINE = 1
DEFAULT_END_LINE = 100
NO_CONTENT = "no content in specified range"


@dataclass(frozen=True)
class ReadRequest:
    path: str
    start: int = DEFAULT_START_LINE
    end: int = DEFAULT_END_LINE


def parse_read_request(tool_input: str) -> ReadRequest:
    text = tool_input.strip()
    if not text:
        raise ToolInputError("path required")

    parts = text.split(",")
    path = parts[0].strip()
    if not path:
        raise ToolInputError("path required")

    start = DEFAULT_START_LINE
    end = DEFAULT_END_LINE

    if len(parts) > 1 and parts[1].strip():
        raw = parts[1].strip()
        try:
            start = int(raw)
        except ValueError:
            raise ToolInputError(f"invalid start line: {raw}") from None
        if start < 1:
            raise ToolInputError("start line must be greater than 0")

    if len(parts) > 2 and parts[2].strip():
        raw = parts[2].strip()
        try:
            end = int(raw)
        except ValueError:
            raise ToolInputError(f"invalid end line: {raw}") from None

    if end < start:
        raise ToolInputError(f"end line ({end}) cannot be less than start line ({start})")

    return ReadRequest(path=path, start=start, end=end)


class FileReadTool(Tool):
    name = "file_reader"
    description = """Reads file contents by line range. Accepts relative and absolute paths.
Input format: file_path[,start_line,end_line]
Parameters:
- file_path (required): path of the file to read, relative or absolute
- start_line (optional): first line to read, counting from 1, default 1
- end_line (optional): last line to read, must be >= start_line, default 100

Examples:
- "main.go" - read the first 100 lines of main.go
- "main.go,1,50" - read lines 1-50 of main.go
- "/path/to/file.txt,10,20" - read lines 10-20 of the file"""

    def __init__(self, resolver: Optional[PathResolver] = None) -> None:
        self._resolver = resolver or PathResolver()

    def invoke(self, tool_input: str) -> str:
        request = parse_read_request(tool_input)
        content = self.read_lines(request)
        return f"file: {request.path} (lines {request.start}-{request.end})\n{content}"

    def read_lines(self, request: ReadRequest) -> str:
        abs_path = self._resolver.resolve(request.path, strict=True)

        if not os.path.exists(abs_path):
            raise ToolResourceError(f"file does not exist: {abs_path}")
        if os.path.isdir(abs_path):
            raise ToolResourceError(f"path is a directory, not a file: {abs_path}")

        lines: list[str] = []
        line_no = 0
        try:
            with open(abs_path, "r", encoding="utf-8", errors="replace", newline="") as fh:
                for raw in fh:
                    line_no += 1
                    if line_no > request.end:
                        break
                    if line_no >= request.start:
                        lines.append(f"{line_no:6d}|{_strip_eol(raw)}")
        except OSError as exc:
            raise ToolResourceError(f"cannot read file {abs_path}: {exc.strerror or exc}") from exc

        if not lines:
            if line_no < request.start:
                raise ToolInputError(
                    f"file has only {line_no} lines, start exceeds range"
                )
            return NO_CONTENT

        log.debug(f"read {len(lines)} line(s) from {abs_path}")
        return "\n".join(lines)


def _strip_eol(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line
