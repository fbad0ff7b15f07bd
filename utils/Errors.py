"""
Shared error/warning reporting for sync_build_test.

Three kinds of fatal problems stop the run:
- a validation error: the requested flags are invalid or contradictory,
  detected before any phase runs;
- a phase error: an external command exited nonzero;
- a test failure: the test runner failed and failures are not ignored.

A "warning" is non-fatal; the run continues. Every fatal error carries the
process exit status the run should end with.
"""

from __future__ import annotations

from typing import List, NoReturn, Optional

from utils.Logger import Logger


class BuildTestError(Exception):
    """Base class for all fatal sync_build_test errors."""

    exit_code: int = 1


class ValidationError(BuildTestError):
    """Raised when the configuration is invalid or contradictory."""


class PhaseError(BuildTestError):
    """Raised when a phase's command exits nonzero."""

    def __init__(self, phase: str, command: Optional[List[str]], returncode: int) -> None:
        self.phase = phase
        self.command = list(command) if command else []
        self.returncode = returncode
        self.exit_code = returncode if returncode > 0 else 1
        if self.command:
            msg = f"{phase} failed with exit status {returncode}: {' '.join(self.command)}"
        else:
            msg = f"{phase} failed"
        super().__init__(msg)


class TestFailureError(BuildTestError):
    """Raised when tests fail and --ignore_remote_test_failures was not passed."""

    __test__ = False  # not a pytest test class


def die(msg: str, error_cls: type = BuildTestError) -> NoReturn:
    """
    Log an error and raise so the run stops.

    Args:
        msg: Message to log and raise.
        error_cls: BuildTestError subclass to raise.

    Raises:
        BuildTestError: Always (or the given subclass), with the given message.
    """
    Logger.error(msg)
    raise error_cls(msg)


def warn(msg: str) -> None:
    """Log a non-fatal warning; the run continues."""
    Logger.warning(msg)
