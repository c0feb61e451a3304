"""Exception hierarchy for the CAPI client.

Every error raised by the client derives from CapiClientError so callers can
wrap a whole operation in a single except clause. None of these are retried
internally; retry policy belongs to the caller.
"""

from typing import Any

__all__ = [
    "CapiClientError",
    "CapiTransportError",
    "DecodeError",
    "EmptyResultsError",
    "InvalidURLError",
    "TaskFailedError",
    "UnexpectedStatusError",
]


class CapiClientError(Exception):
    """Raised when a Cloud Controller API call fails.

    Base class for all client errors.
    """

    pass


class InvalidURLError(CapiClientError):
    """Raised when the base address or a server supplied link cannot be parsed."""

    def __init__(self, url: str, reason: str = "") -> None:
        self.url = url
        message = f"invalid url {url!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class CapiTransportError(CapiClientError):
    """Raised when the injected transport fails to produce a response.

    Wraps httpx errors (connect, read, timeout, protocol). The original
    exception is available as ``__cause__``.
    """

    pass


class UnexpectedStatusError(CapiClientError):
    """Raised when a response carries a status other than the one required."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"unexpected status code {status_code}: {body}")


class DecodeError(CapiClientError):
    """Raised when a response body is not the JSON shape an endpoint requires."""

    pass


class EmptyResultsError(CapiClientError):
    """Raised when a 200 response lacks the field the operation resolves."""

    def __init__(self, message: str = "empty results") -> None:
        super().__init__(message)


class TaskFailedError(CapiClientError):
    """Raised when a polled task reaches the FAILED state.

    Attributes:
        task: Last decoded task, including its guid and failure state
    """

    def __init__(self, task: Any = None) -> None:
        self.task = task
        super().__init__("task failed")
