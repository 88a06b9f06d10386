"""Custom exceptions.

WikiClient surfaces a small, closed set of error kinds. Everything the
transport could recover from has already been retried by the time one of
these reaches the caller.

Example:
    >>> from wikiclient.core.exceptions import RemoteOperationError, RequestTimeoutError, WikiClientError
    >>> isinstance(RemoteOperationError("badtitle", "Bad title"), WikiClientError)
    True
    >>> try:
    ...     raise RequestTimeoutError("no response")
    ... except WikiClientError as e:
    ...     print(f"Caught: {type(e).__name__}")
    Caught: RequestTimeoutError
"""

from __future__ import annotations

from typing import Any


class WikiClientError(Exception):
    """Base exception for WikiClient.

    Example:
        >>> from wikiclient.core.exceptions import WikiClientError
        >>> e = WikiClientError("something went wrong")
        >>> str(e)
        'something went wrong'
    """


class ConfigurationError(WikiClientError):
    """Configuration is invalid."""


class OperationCancelledError(WikiClientError):
    """The caller's cancellation token was observed.

    Never retried.
    """


class RequestTimeoutError(WikiClientError):
    """No response arrived within the per-call timeout.

    Example:
        >>> from wikiclient.core.exceptions import RequestTimeoutError
        >>> e = RequestTimeoutError("timed out", attempts=4)
        >>> e.attempts
        4
    """

    def __init__(self, message: str = "Request timed out", attempts: int = 1) -> None:
        super().__init__(message)
        self.attempts = attempts


class TransportError(WikiClientError):
    """Non-recoverable HTTP-level failure.

    Example:
        >>> from wikiclient.core.exceptions import TransportError
        >>> e = TransportError("HTTP 404", status_code=404)
        >>> e.status_code
        404
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.cause = cause


class RetriesExhaustedError(WikiClientError):
    """The response parser kept flagging the payload as unusable."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Reached maximum count of retries ({attempts} attempts)")


class RequestRebuildError(WikiClientError):
    """A request message cannot be turned into a fresh HTTP request.

    Raised for one-shot payloads (non-seekable streams) on the second build.
    """


class RemoteOperationError(WikiClientError):
    """The decoded payload carries an application-level error.

    Example:
        >>> from wikiclient.core.exceptions import RemoteOperationError
        >>> e = RemoteOperationError("editconflict", "Edit conflict detected")
        >>> e.code, e.info
        ('editconflict', 'Edit conflict detected')
        >>> str(e)
        'editconflict: Edit conflict detected'
    """

    def __init__(
        self,
        code: str | None,
        info: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.info = info
        self.payload = payload or {}
        super().__init__(f"{code}: {info}" if info else str(code))


class BadTokenError(RemoteOperationError):
    """The server rejected the security token attached to the request."""


class UnauthorizedOperationError(RemoteOperationError):
    """The account lacks the rights for the requested action."""


class OperationConflictError(RemoteOperationError):
    """The action conflicts with a concurrent change on the server."""


class InvalidOperationError(RemoteOperationError):
    """The action cannot apply to its target (e.g. a page that cannot exist)."""


class TokenUnavailableError(WikiClientError):
    """A security token could not be fetched.

    Example:
        >>> from wikiclient.core.exceptions import TokenUnavailableError
        >>> e = TokenUnavailableError("csrf", site="https://test.wikipedia.org/w/api.php")
        >>> e.kind
        'csrf'
    """

    def __init__(self, kind: str, site: str | None = None, cause: Exception | None = None) -> None:
        self.kind = kind
        self.site = site
        self.cause = cause
        message = f"Unable to fetch {kind!r} token"
        if site:
            message += f" for {site}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


__all__ = [
    "BadTokenError",
    "ConfigurationError",
    "InvalidOperationError",
    "OperationCancelledError",
    "OperationConflictError",
    "RemoteOperationError",
    "RequestRebuildError",
    "RequestTimeoutError",
    "RetriesExhaustedError",
    "TokenUnavailableError",
    "TransportError",
    "UnauthorizedOperationError",
    "WikiClientError",
]
