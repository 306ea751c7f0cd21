"""
Exception hierarchy for the insight engine.

Every engine error carries:
- A human-readable message
- An error code for callers that map errors to UI states
- The offending record id, when one record is to blame
- Optional details for logging
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Error codes shared by all engine components."""

    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    COMPUTATION_TIMEOUT = "COMPUTATION_TIMEOUT"
    REQUEST_SUPERSEDED = "REQUEST_SUPERSEDED"
    INSIGHT_NOT_FOUND = "INSIGHT_NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class InsightEngineError(Exception):
    """
    Base exception for all insight engine errors.

    Attributes:
        message: Human-readable error message
        code: Error code from ErrorCode enum
        record_id: Id of the offending input record, if any
        details: Optional dictionary with additional error details
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        record_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.record_id = record_id
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.record_id:
            return f"{self.message} (record: {self.record_id})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging and audit export."""
        return {
            "error": self.code.value,
            "message": self.message,
            "record_id": self.record_id,
            "details": self.details,
        }


class InsufficientDataError(InsightEngineError):
    """
    History is too sparse to produce a result.

    This is an expected outcome, not a crash: callers show an empty or
    encouraging state instead.
    """

    code = ErrorCode.INSUFFICIENT_DATA


class ValidationError(InsightEngineError):
    """A session, goal, score event or request argument is malformed."""

    code = ErrorCode.VALIDATION_ERROR


class ComputationTimeout(InsightEngineError):
    """A computation did not finish within its time budget."""

    code = ErrorCode.COMPUTATION_TIMEOUT

    def __init__(self, component: str, timeout_seconds: float, key: Optional[str] = None) -> None:
        self.component = component
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"{component} did not complete within {timeout_seconds:.2f}s",
            details={"component": component, "input_key": key},
        )


class RequestSuperseded(InsightEngineError):
    """A newer request with different inputs replaced this one."""

    code = ErrorCode.REQUEST_SUPERSEDED

    def __init__(self, component: str, key: Optional[str] = None) -> None:
        self.component = component
        super().__init__(
            f"{component} request was superseded by a newer request",
            details={"component": component, "input_key": key},
        )


class InsightNotFoundError(InsightEngineError):
    """No insight with the given id has ever been created."""

    code = ErrorCode.INSIGHT_NOT_FOUND

    def __init__(self, insight_id: str) -> None:
        super().__init__(f"Insight not found: {insight_id}", record_id=insight_id)
