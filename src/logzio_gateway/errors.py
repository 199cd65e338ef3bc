"""Error taxonomy for the query gateway.

Every failure the gateway can produce is a single ``GatewayError`` tagged with an
``ErrorKind``. Callers branch on ``error.kind`` rather than on exception
subclasses, so a new kind shows up in one place.

``is_retryable`` is the only place that decides whether a failure may be
retried; the executor asks it and nothing else re-derives the answer.
"""

import errno
import math
import socket
from enum import Enum
from typing import Any, Mapping, Optional

import httpx

from logzio_gateway.regions import region_help


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    BAD_REQUEST = "bad_request"
    VALIDATION = "validation"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset({ErrorKind.RATE_LIMIT, ErrorKind.BACKEND_UNAVAILABLE})


class GatewayError(Exception):
    """A classified failure.

    ``status_code`` is the backend HTTP status when there was one,
    ``retry_after_ms`` is the backend's suggested wait (rate limits only), and
    ``context`` carries whatever helps diagnosis: the operation name, the raw
    backend payload, the transport exception type.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        status_code: Optional[int] = None,
        retry_after_ms: Optional[int] = None,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.retry_after_ms = retry_after_ms
        self.context: dict[str, Any] = dict(context or {})

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "status_code": self.status_code,
            "retry_after_ms": self.retry_after_ms,
            "context": self.context,
        }

    def __repr__(self) -> str:
        return (
            f"GatewayError(kind={self.kind.value!r}, status_code={self.status_code!r}, "
            f"message={self.message!r})"
        )


AUTHENTICATION_MESSAGE = (
    "Authentication failed. This could be due to:\n"
    "• Invalid or expired API key\n"
    "• Wrong region - the default region is us (api.logz.io)\n"
    "• If your account lives in another region, configure one of:\n"
    f"{region_help()}\n"
    "• Your Logz.io account URL tells you the region:\n"
    "  - app.logz.io → us\n"
    "  - app-eu.logz.io → eu\n"
    "  - app-ca.logz.io → ca"
)

_STATUS_MESSAGES = {
    400: "Bad request: Please check your query parameters and format",
    401: "Unauthorized: Please check your API key",
    403: "Forbidden: You do not have permission to access this resource",
    404: "Not found: The requested resource was not found",
    429: "Rate limit exceeded: Please wait before making more requests",
    500: "Internal server error: Logz.io service is experiencing issues",
    502: "Service unavailable: Logz.io service is temporarily unavailable",
    503: "Service unavailable: Logz.io service is temporarily unavailable",
    504: "Service unavailable: Logz.io service is temporarily unavailable",
}

# errno values that mean "try again later" at the socket level.
_TRANSIENT_ERRNOS = frozenset(
    {errno.ECONNRESET, errno.ECONNREFUSED, errno.ETIMEDOUT, errno.EHOSTUNREACH, errno.ENETUNREACH}
)


def status_message(status_code: int) -> str:
    return _STATUS_MESSAGES.get(status_code, f"API request failed with status {status_code}")


def parse_retry_after(headers: Mapping[str, str]) -> Optional[int]:
    """Convert a ``Retry-After`` header given in seconds to milliseconds."""
    raw = headers.get("retry-after") or headers.get("Retry-After")
    if raw is None:
        return None
    try:
        seconds = float(str(raw).strip())
    except ValueError:
        return None
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return int(seconds * 1000)


def classify_status(
    status_code: int,
    payload: Any = None,
    headers: Optional[Mapping[str, str]] = None,
    context: Optional[dict[str, Any]] = None,
) -> GatewayError:
    """Map an HTTP error status to a ``GatewayError``."""
    ctx = {"status": status_code, "data": payload, **(context or {})}

    if status_code == 401:
        return GatewayError(
            ErrorKind.AUTHENTICATION, AUTHENTICATION_MESSAGE, status_code=401, context=ctx
        )
    if status_code == 429:
        return GatewayError(
            ErrorKind.RATE_LIMIT,
            "Rate limit exceeded",
            status_code=429,
            retry_after_ms=parse_retry_after(headers or {}),
            context=ctx,
        )
    if status_code >= 500:
        kind = ErrorKind.BACKEND_UNAVAILABLE
    elif status_code >= 400:
        kind = ErrorKind.BAD_REQUEST
    else:
        kind = ErrorKind.UNKNOWN
    return GatewayError(kind, status_message(status_code), status_code=status_code, context=ctx)


def classify_response(response: httpx.Response, context: Optional[dict[str, Any]] = None) -> GatewayError:
    try:
        payload: Any = response.json()
    except ValueError:
        payload = response.text[:500]
    return classify_status(response.status_code, payload, response.headers, context)


def is_transient_transport_error(exc: BaseException) -> bool:
    """True for connection resets/refusals, DNS failures and timeouts."""
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)):
        return True
    if isinstance(exc, (TimeoutError, socket.gaierror, ConnectionResetError, ConnectionRefusedError)):
        return True
    return isinstance(exc, OSError) and exc.errno in _TRANSIENT_ERRNOS


def classify_exception(exc: BaseException, context: Optional[dict[str, Any]] = None) -> GatewayError:
    """Map any exception to a ``GatewayError``; classified errors pass through."""
    if isinstance(exc, GatewayError):
        if context:
            for key, value in context.items():
                exc.context.setdefault(key, value)
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        return classify_response(exc.response, context)

    ctx = {"transport": type(exc).__name__, **(context or {})}
    message = str(exc) or type(exc).__name__
    if is_transient_transport_error(exc):
        return GatewayError(ErrorKind.BACKEND_UNAVAILABLE, message, context=ctx)
    return GatewayError(ErrorKind.UNKNOWN, message, context=ctx)


def is_retryable(error: BaseException) -> bool:
    """Whether a failure may be retried.

    True exactly for rate limits and backend unavailability, which includes
    transient transport failures that never produced an HTTP status.
    """
    return classify_exception(error).retryable


def retry_delay_ms(error: BaseException) -> Optional[int]:
    """The backend-suggested wait for ``error``, if it carries one."""
    if isinstance(error, GatewayError) and error.kind is ErrorKind.RATE_LIMIT:
        return error.retry_after_ms
    return None
