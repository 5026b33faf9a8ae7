from __future__ import annotations

"""
errors.py – Failure kinds raised by the reconciliation engine and its collaborators.
"""


class SlnkitError(Exception):
    """Base class for all slnkit errors."""


class PathNotFound(SlnkitError, FileNotFoundError):
    """Root directory or manifest parent directory is absent. Fatal to a run."""

    def __init__(self, path, what: str = "path"):
        self.path = path
        self.what = what
        super().__init__(f"{what} not found: {path}")


class AutomationError(SlnkitError):
    """
    The automation host failed during open/save/close.
    Hosts wrap their native exceptions in this type; the retry policy
    treats any exception as transient, so wrapping is informative only.
    """

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.__cause__ = cause


class MemberAddFailure(SlnkitError):
    """A single candidate could not be added in a pass. Never escalated by the engine."""

    def __init__(self, path, reason: str = ""):
        self.path = path
        self.reason = reason
        msg = f"Could not add {path}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class RunFailure(SlnkitError):
    """An aggregation run ended with an uncaught error."""


class RunInProgress(SlnkitError):
    """A run was requested while another one is still active."""
