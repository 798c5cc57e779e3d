from dataclasses import dataclass
from enum import Enum
from typing import Optional


DEFAULT_RETRY_AFTER_SECONDS = 60


class ErrorKind(str, Enum):
    GENERIC = 'generic'
    RATE_LIMITED = 'rate_limited'
    SERVICE_UNAVAILABLE = 'service_unavailable'
    INTERNAL = 'internal'


@dataclass(frozen=True)
class ClassifiedError:
    """
    A failure classified once at the boundary where it happened and carried
    unchanged up to the handler that renders it.

    :param kind: Which branch of the taxonomy this failure belongs to.
    :param message: Human readable description.
    :param status: HTTP status to surface to the caller.
    :param code: Stable machine readable code.
    :param retry_after_seconds: Retry hint, only set for RATE_LIMITED.
    :param upstream_code: Provider-specific numeric error code, if any.
    """
    kind: ErrorKind
    message: str
    status: int
    code: str
    retry_after_seconds: Optional[int] = None
    upstream_code: Optional[int] = None


class UpstreamError(Exception):
    """Raised by the upstream client with an already classified failure."""

    def __init__(self, error: ClassifiedError):
        super().__init__(error.message)
        self.error = error


def rate_limited(retry_after: Optional[int] = None) -> ClassifiedError:
    if retry_after is None:
        retry_after = DEFAULT_RETRY_AFTER_SECONDS
    return ClassifiedError(
        kind=ErrorKind.RATE_LIMITED,
        message='Rate limit exceeded',
        status=429,
        code='RATE_LIMIT_EXCEEDED',
        retry_after_seconds=retry_after,
    )


def service_unavailable(message: str = 'External API unavailable') -> ClassifiedError:
    return ClassifiedError(
        kind=ErrorKind.SERVICE_UNAVAILABLE,
        message=message,
        status=503,
        code='EXTERNAL_API_DOWN',
    )


def generic(
    message: str,
    status: int = 500,
    upstream_code: Optional[int] = None
) -> ClassifiedError:
    return ClassifiedError(
        kind=ErrorKind.GENERIC,
        message=message,
        status=status,
        code='TMDB_ERROR',
        upstream_code=upstream_code,
    )


def internal() -> ClassifiedError:
    # never carries details of the underlying exception
    return ClassifiedError(
        kind=ErrorKind.INTERNAL,
        message='An unexpected error occurred',
        status=500,
        code='INTERNAL_ERROR',
    )
