"""Linewatch exceptions.

PUBLIC API:
  - LinewatchError: Base exception for all linewatch failures
  - ConfigurationError: Invalid or missing patterns/handlers/options
  - InputNotFound: Input file does not exist
  - HandlerIOError: A handler could not complete its side effect
  - SignalInterrupt: Run cancelled by SIGINT/SIGTERM
"""

from __future__ import annotations


class LinewatchError(Exception):
    """Base exception for all linewatch failures."""

    exit_code = 1


class ConfigurationError(LinewatchError):
    """Raised when the command line or config file cannot drive a run."""

    exit_code = 2


class InputNotFound(LinewatchError):
    """Raised when the input file does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"{path}: no such file")
        self.path = path


class HandlerIOError(LinewatchError):
    """Raised by a handler when its side effect fails for one line."""


class SignalInterrupt(BaseException):
    """Raised from the signal handler to unwind the dispatch loop.

    Derives from BaseException so handler-level ``except Exception``
    blocks cannot swallow it.
    """

    def __init__(self, signum: int) -> None:
        super().__init__(signum)
        self.signum = signum

    @property
    def exit_code(self) -> int:
        return 128 + self.signum
