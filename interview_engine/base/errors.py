"""
Error taxonomy for the interview engine.

Services raise these from their guards; the public operations turn them into
`OperationResult` failures (see `base.results`) so that callers can branch on
`ErrorKind` without catching exceptions. Anything that is not an
`InterviewEngineError` is an infrastructure fault and propagates unchanged.
"""

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    VALIDATION = "validation_error"
    DEPENDENCY_DEGRADED = "dependency_degraded"


class InterviewEngineError(Exception):
    kind: ErrorKind = ErrorKind.INVALID_STATE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class NotFoundError(InterviewEngineError):
    kind = ErrorKind.NOT_FOUND


class InvalidStateError(InterviewEngineError):
    kind = ErrorKind.INVALID_STATE


class ConflictError(InterviewEngineError):
    kind = ErrorKind.CONFLICT


class UnauthorizedError(InterviewEngineError):
    kind = ErrorKind.UNAUTHORIZED


class RequestValidationFailed(InterviewEngineError):
    kind = ErrorKind.VALIDATION


class DependencyDegradedError(InterviewEngineError):
    kind = ErrorKind.DEPENDENCY_DEGRADED


ERRORS_BY_KIND = {
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.INVALID_STATE: InvalidStateError,
    ErrorKind.CONFLICT: ConflictError,
    ErrorKind.UNAUTHORIZED: UnauthorizedError,
    ErrorKind.VALIDATION: RequestValidationFailed,
    ErrorKind.DEPENDENCY_DEGRADED: DependencyDegradedError,
}

HTTP_STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.VALIDATION: 422,
    ErrorKind.DEPENDENCY_DEGRADED: 503,
}
