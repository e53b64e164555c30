"""
Error taxonomy and the result type returned by services.

Services report expected outcomes ("not found", "invalid credentials", ...)
as a :class:`Result` carrying a :class:`Failure` instead of raising. Only the
HTTP layer turns a failure into an exception, through :func:`unwrap`.
"""
import enum
import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Generic, Optional, TypeVar

from fastapi import HTTPException, status
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Store and cache client failures. Never retried.
INFRASTRUCTURE_ERRORS = (RedisError, SQLAlchemyError)


class ErrorKind(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    INVALID_TOKEN = "invalid_token"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID_CREDENTIALS = "invalid_credentials"
    INTERNAL_FAILURE = "internal_failure"


HTTP_STATUS = {
    ErrorKind.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INTERNAL_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "Result[T]":
        return cls(error=Failure(kind, message))


class ApiError(HTTPException):
    """HTTP exception that remembers which :class:`ErrorKind` produced it."""

    def __init__(self, failure: Failure):
        super().__init__(status_code=HTTP_STATUS[failure.kind], detail=failure.message)
        self.kind = failure.kind
        if failure.kind in (ErrorKind.UNAUTHENTICATED, ErrorKind.INVALID_TOKEN):
            self.headers = {"WWW-Authenticate": "Bearer"}


def unwrap(result: Result[T]) -> T:
    """Return the value of a successful result, raise :class:`ApiError` otherwise."""
    if result.error is not None:
        raise ApiError(result.error)
    return result.value


def guarded(func: Callable[..., Result[Any]]) -> Callable[..., Result[Any]]:
    """Convert store/cache exceptions raised by ``func`` into ``INTERNAL_FAILURE``."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Result[Any]:
        try:
            return func(*args, **kwargs)
        except INFRASTRUCTURE_ERRORS as e:
            logger.error(f"{func.__qualname__} failed: {e}", exc_info=True)
            return Result.failure(ErrorKind.INTERNAL_FAILURE, "Store or cache unavailable")
    return wrapper
