"""
Error taxonomy for commit message generation.

Every failure the pipeline knows how to handle is a :class:`CommitGenError`
carrying an :class:`ErrorKind` discriminant. The orchestrator never tests
exception classes directly; it asks :func:`error_kind` for the kind and
:func:`recovery_for` for what to do about it.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Discriminant for the failures the pipeline distinguishes."""

    NO_CHANGES = "no_changes"
    LLM_TIMEOUT = "llm_timeout"
    INVALID_RESPONSE = "invalid_response"
    SOURCE_CONTROL = "source_control"
    INVALID_INPUT = "invalid_input"
    UNEXPECTED = "unexpected"


class Recovery(Enum):
    """What the orchestrator does with a failure of a given kind."""

    EMPTY_RESULT = "empty_result"
    FALLBACK = "fallback"
    PROPAGATE = "propagate"
    REPORT_AND_PROPAGATE = "report_and_propagate"


_RECOVERY_POLICY = {
    ErrorKind.NO_CHANGES: Recovery.EMPTY_RESULT,
    ErrorKind.LLM_TIMEOUT: Recovery.FALLBACK,
    ErrorKind.INVALID_RESPONSE: Recovery.FALLBACK,
    ErrorKind.SOURCE_CONTROL: Recovery.PROPAGATE,
    ErrorKind.INVALID_INPUT: Recovery.PROPAGATE,
    ErrorKind.UNEXPECTED: Recovery.REPORT_AND_PROPAGATE,
}


class CommitGenError(Exception):
    """Base class for commit generation failures."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NoChangesError(CommitGenError):
    """Raised when there is no staged diff content to analyse."""

    kind = ErrorKind.NO_CHANGES

    def __init__(self) -> None:
        super().__init__("No changes staged for commit")


class LLMTimeoutError(CommitGenError):
    """Raised when a model call does not settle within its deadline."""

    kind = ErrorKind.LLM_TIMEOUT

    def __init__(self, timeout_ms: int) -> None:
        super().__init__(f"LLM request timed out after {timeout_ms}ms")
        self.timeout_ms = timeout_ms


class InvalidResponseError(CommitGenError):
    """Raised when model output is not valid JSON or fails validation."""

    kind = ErrorKind.INVALID_RESPONSE

    def __init__(self, details: str) -> None:
        super().__init__(f"Invalid LLM response: {details}")
        self.details = details


class SourceControlError(CommitGenError):
    """Raised when a version control command fails."""

    kind = ErrorKind.SOURCE_CONTROL

    def __init__(self, command: str, error: str) -> None:
        super().__init__(f"Git command '{command}' failed: {error}")
        self.command = command
        self.error = error


class InputValidationError(CommitGenError, ValueError):
    """Raised when caller-supplied input is rejected before any work starts."""

    kind = ErrorKind.INVALID_INPUT

    def __init__(self, details: str) -> None:
        super().__init__(details)


def error_kind(exc: BaseException) -> ErrorKind:
    """Return the discriminant of ``exc``; foreign exceptions are ``UNEXPECTED``."""
    if isinstance(exc, CommitGenError):
        return exc.kind
    return ErrorKind.UNEXPECTED


def recovery_for(kind: ErrorKind) -> Recovery:
    """Return the recovery action for a failure kind."""
    return _RECOVERY_POLICY[kind]
