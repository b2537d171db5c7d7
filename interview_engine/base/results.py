import functools
import logging
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

from interview_engine.base.errors import ERRORS_BY_KIND, ErrorKind, InterviewEngineError
from interview_engine.base.metrics import interview_transition_counter

logger = logging.getLogger("interview_results")

T = TypeVar("T")


class ServiceError(BaseModel):
    kind: ErrorKind
    message: str


class OperationResult(BaseModel, Generic[T]):
    """Outcome of a public engine operation: a value, or an inspectable error kind."""
    value: Optional[T] = None
    error: Optional[ServiceError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "OperationResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "OperationResult[T]":
        return cls(error=ServiceError(kind=kind, message=message))

    def unwrap(self) -> T:
        if self.error is not None:
            raise ERRORS_BY_KIND[self.error.kind](self.error.message)
        return self.value


def as_result(operation: str):
    """
    Run a service method and wrap its return value in an OperationResult.

    Business rejections (InterviewEngineError) become failures; any other
    exception is a fault and is re-raised untouched.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> OperationResult:
            try:
                value = func(*args, **kwargs)
            except InterviewEngineError as e:
                logger.warning(f"[{operation}] Rejected ({e.kind.value}): {e.message}")
                interview_transition_counter.labels(transition=operation, result=e.kind.value).inc()
                return OperationResult.failure(e.kind, e.message)
            interview_transition_counter.labels(transition=operation, result="ok").inc()
            return OperationResult.success(value)
        return wrapper
    return decorator
