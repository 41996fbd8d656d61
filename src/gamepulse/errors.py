from enum import Enum

import httpx


class ErrorKind(str, Enum):
    NETWORK_UNREACHABLE = "network-unreachable"
    TIMEOUT = "timeout"
    ACCESS_DENIED = "access-denied"
    RATE_LIMITED = "rate-limited"
    SERVER_ERROR = "server-error"
    AUTH_INVALID = "auth-invalid"
    MALFORMED_RESPONSE = "malformed-upstream-response"
    NOT_FOUND = "not-found"
    UNKNOWN = "unknown"


class GamePulseError(Exception):
    """Base error carrying a failure kind next to the human readable message."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.UNKNOWN):
        super().__init__(message)
        self.message = message
        self.kind = kind

    def __str__(self) -> str:
        return self.message


class SteamAPIError(GamePulseError):
    pass


class LLMError(GamePulseError):
    pass


class SummarizationError(GamePulseError):
    pass


def classify_status_code(status_code: int) -> ErrorKind:
    if status_code == 401:
        return ErrorKind.AUTH_INVALID
    if status_code == 403:
        return ErrorKind.ACCESS_DENIED
    if status_code == 404:
        return ErrorKind.NOT_FOUND
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code >= 500:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.UNKNOWN


def classify_http_error(exc: Exception) -> ErrorKind:
    """Map an httpx exception onto the shared failure taxonomy."""
    if isinstance(exc, httpx.TimeoutException):
        return ErrorKind.TIMEOUT
    if isinstance(exc, (httpx.ConnectError, httpx.NetworkError)):
        return ErrorKind.NETWORK_UNREACHABLE
    if isinstance(exc, httpx.HTTPStatusError):
        return classify_status_code(exc.response.status_code)
    return ErrorKind.UNKNOWN
