"""
FileWriteTool - create or overwrite text files.

Two input forms, tried in order:
  1. JSON object: {"file_path": ..., "content": ..., "create_dirs": bool}
  2. Delimited:   path|||content[|||create_dirs]

All validation happens before any filesystem access.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

from aishell.tools.base import Tool, ToolInputError, ToolResourceError
from aishell.tools.paths import PathResolver

log = logging.getLogger("aishell.tools.file_writer")

DELIMITER = "|||"

TEXT_EXTENSIONS = frozenset({
    ".txt", ".log", ".md", ".json", ".xml", ".yaml", ".yml",
    ".go", ".py", ".js", ".html", ".css", ".sql", ".sh", ".bat",
    ".c", ".cpp", ".h", ".java", ".php", ".rb", ".rs", ".swift",
    ".conf", ".config", ".ini", ".env", ".properties",
})


@dataclass(frozen=True)
class FileWriteParams:
    file_path: str
    content: str
    create_dirs: bool = False


def parse_write_params(tool_input: str) -> FileWriteParams:
    text = tool_input.strip()
    if not text:
        raise ToolInputError("input cannot be empty")

    if text.startswith("{") and text.endswith("}"):
        return _parse_json(text)

    parts = tool_input.split(DELIMITER)
    if len(parts) < 2:
        raise ToolInputError(
            "invalid input format; use JSON or 'file_path|||content|||create_dirs'"
        )

    create_dirs = False
    if len(parts) > 2:
        create_dirs = parts[2].strip().lower() in ("true", "1")

    # content is kept verbatim, including surrounding whitespace
    return FileWriteParams(
        file_path=parts[0].strip(),
        content=parts[1],
        create_dirs=create_dirs,
    )


def _parse_json(text: str) -> FileWriteParams:
    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ToolInputError(f"invalid JSON: {exc.msg} (line {exc.lineno} column {exc.colno})") from exc
    if not isinstance(data, dict):
        raise ToolInputError("JSON input must be an object")

    file_path = data.get("file_path", "")
    content = data.get("content", "")
    create_dirs = data.get("create_dirs", False)

    if not isinstance(file_path, str):
        raise ToolInputError("file_path must be a string")
    if not isinstance(content, str):
        raise ToolInputError("content must be a string")
    if not isinstance(create_dirs, bool):
        raise ToolInputError("create_dirs must be true or false")

    return FileWriteParams(file_path=file_path.strip(), content=content, create_dirs=create_dirs)


def has_parent_traversal(path: str) -> bool:
    normalised = os.path.normpath(path)
    segments = normalised.replace("\\", "/").split("/")
    return ".." in segments


def validate_write_params(params: FileWriteParams) -> None:
    if not params.file_path:
        raise ToolInputError("file path cannot be empty")

    if has_parent_traversal(params.file_path):
        raise ToolInputError("parent directory traversal '..' is not allowed")

    ext = os.path.splitext(params.file_path)[1].lower()
    if ext and ext not in TEXT_EXTENSIONS:
        raise ToolInputError(f"unsupported file type: {ext}, only text files are allowed")


class FileWriteTool(Tool):
    name = "file_writer"
    description = """Writes file contents. Creates a new file or overwrites an existing one, optionally creating missing directories.
Input format: JSON string
{
  "file_path": "file path (required)",
  "content": "content to write (required)",
  "create_dirs": true/false (optional, default false)
}

Parameters:
- file_path (required): path of the file to write, relative or absolute; text files only
- content (required): text to write; special characters and encoding are handled automatically
- create_dirs (optional): create missing directories automatically, default false

Examples:
{"file_path": "config.txt", "content": "debug=true\\nport=8080"}
{"file_path": "/tmp/test.log", "content": "Application started", "create_dirs": true}
{"file_path": "src/main.go", "content": "package main\\n\\nfunc main() {\\n\\tfmt.Println(\\"Hello\\")\\n}", "create_dirs": true}"""

    def __init__(self, resolver: Optional[PathResolver] = None) -> None:
        self._resolver = resolver or PathResolver()

    def invoke(self, tool_input: str) -> str:
        params = parse_write_params(tool_input)
        validate_write_params(params)
        abs_path = self._resolver.resolve(params.file_path, strict=False)
        written = self.write(params, abs_path)
        return (
            f"wrote file: {params.file_path}\n"
            f"bytes written: {written}\n"
            f"path: {abs_path}"
        )

    def write(self, params: FileWriteParams, abs_path: str) -> int:
        dir_path = os.path.dirname(abs_path) or "."

        if not os.path.isdir(dir_path):
            if not params.create_dirs:
                raise ToolResourceError(
                    f"directory does not exist: {dir_path}; "
                    f"set create_dirs=true to create it automatically"
                )
            try:
                os.makedirs(dir_path, exist_ok=True)
            except OSError as exc:
                raise ToolResourceError(
                    f"failed to create directory {dir_path}: {exc.strerror or exc}"
                ) from exc
            log.info(f"created directory {dir_path}")

        data = params.content.encode("utf-8")
        try:
            with open(abs_path, "wb") as fh:
                fh.write(data)
        except OSError as exc:
            raise ToolResourceError(f"failed to write {abs_path}: {exc.strerror or exc}") from exc

        log.info(f"wrote {len(data)} bytes to {abs_path}")
        return len(data)
