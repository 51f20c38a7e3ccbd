from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    NETWORK_UNAVAILABLE = "NETWORK_UNAVAILABLE"
    REMOTE_API_ERROR = "REMOTE_API_ERROR"
    PERSISTENCE_READ_ERROR = "PERSISTENCE_READ_ERROR"
    PERSISTENCE_WRITE_ERROR = "PERSISTENCE_WRITE_ERROR"
    SEARCH_ERROR = "SEARCH_ERROR"


class TrackerError(Exception):
    kind: ErrorKind = ErrorKind.REMOTE_API_ERROR

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.kind.value)


class NetworkUnavailableError(TrackerError):
    kind = ErrorKind.NETWORK_UNAVAILABLE


class RemoteApiError(TrackerError):
    """Non-2xx response or a payload that does not match the provider contract."""

    kind = ErrorKind.REMOTE_API_ERROR

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PersistenceReadError(TrackerError):
    kind = ErrorKind.PERSISTENCE_READ_ERROR


class PersistenceWriteError(TrackerError):
    kind = ErrorKind.PERSISTENCE_WRITE_ERROR


class SearchError(TrackerError):
    kind = ErrorKind.SEARCH_ERROR


def error_kind_of(exc: BaseException) -> ErrorKind:
    if isinstance(exc, TrackerError):
        return exc.kind
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return ErrorKind.NETWORK_UNAVAILABLE
    return ErrorKind.REMOTE_API_ERROR
