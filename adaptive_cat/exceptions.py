"""
Exceptions raised by the adaptive testing engine.

Only malformed input is fatal. Numeric edge cases during scoring (probabilities
at 0 or 1, zero information, a non-converging estimate) are recovered locally
and never surface here.
"""

from typing import Any, Dict, Optional


class CATError(Exception):
    """Base exception for adaptive testing errors."""

    def __init__(  # noqa: D107
        self,
        message: str,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.original_error = original_error
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = self.message
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            msg = f"{msg} (context: {ctx_str})"
        if self.original_error:
            msg = f"{msg} - caused by: {str(self.original_error)}"
        return msg


class ConfigurationError(CATError):
    """Invalid session settings. The caller must not start the session."""


class ItemPoolError(CATError):
    """Invalid item pool records (bad parameters, duplicate ids)."""
