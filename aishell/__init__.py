"""
aishell - natural-language terminal assistant with gated host tools.

Build metadata is overwritten by the release pipeline; local checkouts
report "unknown".
"""

__version__ = "1.0.0"
__commit__ = "unknown"
__build_time__ = "unknown"

__all__ = ["__version__", "__commit__", "__build_time__"]
