"""
Console logging for the E2E harness.

Same shape as the `log(message, level)` helpers in the browser test scripts:
a prefix per level, debug lines only when debug mode is on. Warnings and
errors go to stderr so CI logs can separate them from progress chatter.
"""

from __future__ import annotations

import sys
from typing import TextIO


PREFIXES = {
    "info": "ℹ️",
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "debug": "🔍",
}

_STDERR_LEVELS = {"error", "warning"}


class HarnessLog:
    def __init__(self, debug: bool = False, out: TextIO | None = None, err: TextIO | None = None):
        self.debug = debug
        self._out = out
        self._err = err

    def log(self, message: str, level: str = "info") -> None:
        """Log message with optional debug output."""
        if level == "debug" and not self.debug:
            return

        prefix = PREFIXES.get(level, PREFIXES["info"])
        if level in _STDERR_LEVELS:
            stream = self._err or sys.stderr
        else:
            stream = self._out or sys.stdout
        print(f"{prefix} {message}", file=stream, flush=True)

