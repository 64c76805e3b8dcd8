"""
talentflow/errors.py

Error taxonomy for the candidate pipeline engine.

Services raise TransitionError subclasses; pipeline.transitions.apply_transition
converts them into explicit TransitionResult values for its callers.
Classification functions never raise: an unmatched status name degrades to
InteractionType.NONE instead.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Structured error codes returned to pipeline callers."""

    NOT_FOUND = "NOT_FOUND"
    INVALID_STATUS = "INVALID_STATUS"
    TERMINAL_STATE_VIOLATION = "TERMINAL_STATE_VIOLATION"
    TRANSITION_NOT_ALLOWED = "TRANSITION_NOT_ALLOWED"
    INVALID_INTERACTION_DATA = "INVALID_INTERACTION_DATA"
    STALE_POINTER = "STALE_POINTER"
    WRITE_FAILED = "WRITE_FAILED"


class TransitionError(Exception):
    """Base exception for pipeline errors with structured error information."""

    code = ErrorCode.WRITE_FAILED
    retryable = False

    def __init__(self, message: str, *, original_error: Exception | None = None):
        self.message = message
        self.original_error = original_error
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "retryable": self.retryable,
            }
        }


class NotFound(TransitionError):
    """A referenced candidate or status does not exist in the organization."""

    code = ErrorCode.NOT_FOUND


class InvalidStatus(TransitionError):
    """The referenced status exists but cannot be a transition target (e.g. a main status)."""

    code = ErrorCode.INVALID_STATUS


class TerminalStateViolation(TransitionError):
    code = ErrorCode.TERMINAL_STATE_VIOLATION


class TransitionNotAllowed(TransitionError):
    code = ErrorCode.TRANSITION_NOT_ALLOWED


class InvalidInteractionData(TransitionError):
    code = ErrorCode.INVALID_INTERACTION_DATA


class StalePointer(TransitionError):
    """The candidate's status pointer changed between read and write."""

    code = ErrorCode.STALE_POINTER
    retryable = True


class PartialWriteFailure(TransitionError):
    """
    The pointer update or the timeline append failed. Both writes share one
    transaction, so the store is left unchanged and the call can be retried.
    """

    code = ErrorCode.WRITE_FAILED
    retryable = True


class ImmutableEventError(Exception):
    """Raised on any attempt to modify or delete a written timeline event."""
