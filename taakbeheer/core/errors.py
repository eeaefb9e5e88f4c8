"""Error taxonomy and classification for governance operations.

Services raise the `DomainError` subclasses below from inside a store
transaction so that the transaction rolls back. Public operations are wrapped
with `returns_result`, which turns those errors into a typed `OperationResult`
instead of letting them escape to the caller.
"""

import functools
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Generic, ParamSpec, TypeVar

from pydantic import BaseModel


logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


class ErrorCategory(Enum):
    """Categories of errors a governance operation can fail with."""

    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Lookup errors
    ERR_TASK_NOT_FOUND = "ERR_TASK_NOT_FOUND"
    ERR_PROPOSAL_NOT_FOUND = "ERR_PROPOSAL_NOT_FOUND"
    ERR_USER_NOT_FOUND = "ERR_USER_NOT_FOUND"
    ERR_TEMPLATE_NOT_FOUND = "ERR_TEMPLATE_NOT_FOUND"

    # Authorization errors
    ERR_PERMISSION_DENIED = "ERR_PERMISSION_DENIED"

    # Conflict errors
    ERR_INVALID_STATE_TRANSITION = "ERR_INVALID_STATE_TRANSITION"
    ERR_DUPLICATE_PROPOSAL = "ERR_DUPLICATE_PROPOSAL"
    ERR_ALIAS_TAKEN = "ERR_ALIAS_TAKEN"
    ERR_INSUFFICIENT_POINTS = "ERR_INSUFFICIENT_POINTS"
    ERR_CYCLE_DETECTED = "ERR_CYCLE_DETECTED"
    ERR_CROSS_TEAM_MOVE = "ERR_CROSS_TEAM_MOVE"
    ERR_CONCURRENT_MODIFICATION = "ERR_CONCURRENT_MODIFICATION"
    ERR_CONFLICT = "ERR_CONFLICT"

    # Input errors
    ERR_INVALID_INPUT = "ERR_INVALID_INPUT"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class DomainError(Exception):
    """Base class for expected, request-local failures."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    default_code: str = ErrorCode.ERR_UNKNOWN

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class NotFoundError(DomainError):
    """A task, proposal or user does not exist (or is no longer in the expected state)."""

    category = ErrorCategory.NOT_FOUND
    default_code = ErrorCode.ERR_TASK_NOT_FOUND


class PermissionDeniedError(DomainError):
    """The actor is not allowed to perform the operation."""

    category = ErrorCategory.PERMISSION_DENIED
    default_code = ErrorCode.ERR_PERMISSION_DENIED


class ConflictError(DomainError):
    """State, uniqueness, budget, cycle or team rules rejected the operation."""

    category = ErrorCategory.CONFLICT
    default_code = ErrorCode.ERR_CONFLICT


class InputValidationError(DomainError):
    """Malformed input shape."""

    category = ErrorCategory.VALIDATION
    default_code = ErrorCode.ERR_INVALID_INPUT


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    category: ErrorCategory
    message: str
    suggestion: str
    severity: ErrorSeverity


class OperationResult(BaseModel, Generic[T]):
    """Typed outcome of a public governance operation."""

    ok: bool
    data: T | None = None
    error: ErrorResponse | None = None

    @classmethod
    def success(cls, data: T) -> "OperationResult[T]":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: ErrorResponse) -> "OperationResult[T]":
        return cls(ok=False, error=error)


_SUGGESTIONS: dict[ErrorCategory, tuple[str, ErrorSeverity]] = {
    ErrorCategory.NOT_FOUND: ("Refresh the task list and try again.", ErrorSeverity.LOW),
    ErrorCategory.PERMISSION_DENIED: (
        "Ask an effective coordinator of the task to perform this action.",
        ErrorSeverity.MEDIUM,
    ),
    ErrorCategory.CONFLICT: (
        "Reload the task; it changed or does not allow this action in its current state.",
        ErrorSeverity.LOW,
    ),
    ErrorCategory.VALIDATION: ("Check the submitted values and try again.", ErrorSeverity.LOW),
}


def classify_error_with_response(exception: Exception) -> ErrorResponse:
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised during execution

    Returns:
        ErrorResponse with code, category, message, suggestion, and severity
    """
    if isinstance(exception, DomainError):
        suggestion, severity = _SUGGESTIONS.get(
            exception.category, ("Please try again later.", ErrorSeverity.MEDIUM)
        )
        return ErrorResponse(
            code=exception.code,
            category=exception.category,
            message=exception.message,
            suggestion=suggestion,
            severity=severity,
        )

    if isinstance(exception, KeyError):
        return ErrorResponse(
            code=ErrorCode.ERR_TASK_NOT_FOUND,
            category=ErrorCategory.NOT_FOUND,
            message="Record not found.",
            suggestion=_SUGGESTIONS[ErrorCategory.NOT_FOUND][0],
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, PermissionError):
        return ErrorResponse(
            code=ErrorCode.ERR_PERMISSION_DENIED,
            category=ErrorCategory.PERMISSION_DENIED,
            message="You don't have permission for this action.",
            suggestion=_SUGGESTIONS[ErrorCategory.PERMISSION_DENIED][0],
            severity=ErrorSeverity.MEDIUM,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        category=ErrorCategory.UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, contact the board.",
        severity=ErrorSeverity.HIGH,
    )


def returns_result(
    func: Callable[P, Awaitable[T]],
) -> Callable[P, Awaitable[OperationResult[T]]]:
    """Wrap an async service operation so that it fails closed with a typed result.

    Domain errors become `OperationResult(ok=False)`. Anything else is logged with
    its traceback and reported as `ERR_UNKNOWN`; the underlying transaction has
    already been rolled back by the store at that point.
    """

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> OperationResult[T]:
        try:
            data = await func(*args, **kwargs)
        except DomainError as e:
            logger.info(
                "Operation refused",
                extra={"operation": func.__qualname__, "code": e.code, "category": e.category.value},
            )
            return OperationResult[Any].failure(classify_error_with_response(e))
        except Exception as e:
            logger.exception("Operation failed unexpectedly", extra={"operation": func.__qualname__})
            return OperationResult[Any].failure(classify_error_with_response(e))
        return OperationResult[Any].success(data)

    return wrapper
