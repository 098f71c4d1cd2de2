"""
Interactive front end: line editing and the dispatch loop.
"""

from .input import InputError, LineInterrupted, LineReader
from .runner import Runner

__all__ = ["InputError", "LineInterrupted", "LineReader", "Runner"]
