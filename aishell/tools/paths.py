from __future__ import annotations

import os
from typing import Callable


class PathResolver:
    """Resolve tool paths against the process working directory."""

    def __init__(self, getcwd: Callable[[], str] = os.getcwd) -> None:
        self._getcwd = getcwd

    def resolve(self, path: str, strict: bool = True) -> str:
        """
        Absolute paths come back normalised; relative ones are joined with the
        working directory. When the working directory is unavailable, strict
        mode propagates the OSError and lenient mode returns the input as-is.
        """
        if os.path.isabs(path):
            return os.path.normpath(path)
        try:
            cwd = self._getcwd()
        except OSError:
            if strict:
                raise
            return path
        return os.path.normpath(os.path.join(cwd, path))
