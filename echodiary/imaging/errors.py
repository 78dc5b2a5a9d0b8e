"""
Error classification for remote API calls.

Every failure leaving an API client is an ApiError tagged with an ErrorKind.
Callers branch on ``error.kind`` and ``error.retryable`` rather than on
exception subclasses.
"""

import socket
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed set of API failure kinds; the value is the machine code."""
    AUTH = "AUTH_ERROR"
    RATE_LIMIT = "RATE_LIMIT"
    NETWORK = "NETWORK_ERROR"
    REQUEST = "REQUEST_ERROR"

    @property
    def retryable(self) -> bool:
        return self in (ErrorKind.RATE_LIMIT, ErrorKind.NETWORK)


DEFAULT_MESSAGES = {
    ErrorKind.AUTH: "Authentication failed",
    ErrorKind.RATE_LIMIT: "Rate limit exceeded",
    ErrorKind.NETWORK: "Network error occurred",
    ErrorKind.REQUEST: "Invalid request",
}

AUTH_STATUS_CODES = (401, 403)
RATE_LIMIT_STATUS_CODES = (429,)

# Substrings that identify connection and DNS failures in transport messages
NETWORK_MARKERS = (
    "econnrefused",
    "enotfound",
    "connection error",
    "connection refused",
    "connection reset",
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "failed to establish a new connection",
)


class ApiError(Exception):
    """
    A classified remote API failure.

    Args:
        kind: Failure kind
        message: Human-readable message (a per-kind default when omitted)
        status_code: HTTP status, when the failure came with one
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.kind = kind
        self.message = message or DEFAULT_MESSAGES[kind]
        self.status_code = status_code
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return self.kind.value

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    def __repr__(self) -> str:
        return f"ApiError(kind={self.kind.name}, message={self.message!r})"

    @classmethod
    def auth(cls, message: Optional[str] = None) -> "ApiError":
        return cls(ErrorKind.AUTH, message)

    @classmethod
    def rate_limit(cls, message: Optional[str] = None) -> "ApiError":
        return cls(ErrorKind.RATE_LIMIT, message)

    @classmethod
    def network(cls, message: Optional[str] = None) -> "ApiError":
        return cls(ErrorKind.NETWORK, message)

    @classmethod
    def request(cls, message: Optional[str] = None) -> "ApiError":
        return cls(ErrorKind.REQUEST, message)


def _status_code(error: BaseException) -> Optional[int]:
    # google-genai uses ``code``; openai and httpx-style errors use ``status_code``
    for attr in ("status_code", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def classify_error(error: BaseException) -> ApiError:
    """
    Map any exception raised by a transport or SDK onto the error taxonomy.

    Already-classified errors are returned unchanged.
    """
    if isinstance(error, ApiError):
        return error

    message = str(error) or error.__class__.__name__
    status = _status_code(error)

    if status in AUTH_STATUS_CODES:
        return ApiError(ErrorKind.AUTH, f"Invalid API key: {message}", status)
    if status in RATE_LIMIT_STATUS_CODES:
        return ApiError(ErrorKind.RATE_LIMIT, message, status)

    if isinstance(error, (ConnectionError, socket.gaierror)):
        return ApiError(ErrorKind.NETWORK, message)

    lowered = message.lower()
    if any(marker in lowered for marker in NETWORK_MARKERS):
        return ApiError(ErrorKind.NETWORK, message)

    return ApiError(ErrorKind.REQUEST, message, status)
