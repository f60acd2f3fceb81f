from typing import Optional

from ..models.state import ErrorKind


class FetchError(Exception):
    """Base class for failures surfaced to published state."""
    kind = ErrorKind.NETWORK_UNREACHABLE

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class NetworkUnreachableError(FetchError):
    kind = ErrorKind.NETWORK_UNREACHABLE


class RateLimitedError(FetchError):
    kind = ErrorKind.RATE_LIMITED

    def __init__(self, message: str = "", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class NotFoundError(FetchError):
    kind = ErrorKind.NOT_FOUND


class MalformedPayloadError(FetchError):
    kind = ErrorKind.MALFORMED_PAYLOAD
