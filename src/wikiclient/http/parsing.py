"""Response parsing.

The transport hands every successful HTTP response to a ``ResponseParser``
together with a fresh ``ResponseParsingContext``. The parser can set
``context.need_retry`` to ask for another attempt without this being a
network failure.

Error codes in the ``error`` member of a MediaWiki reply are mapped to
exception types through a registry.

Example:
    >>> from wikiclient.http.parsing import error_from_payload
    >>> err = error_from_payload({"code": "badtoken", "info": "Invalid CSRF token."})
    >>> type(err).__name__
    'BadTokenError'
    >>> type(error_from_payload({"code": "whatever"})).__name__
    'RemoteOperationError'
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar, runtime_checkable

import httpx

from wikiclient.core.cancellation import CancellationToken
from wikiclient.core.exceptions import (
    BadTokenError,
    OperationConflictError,
    RemoteOperationError,
    TransportError,
    UnauthorizedOperationError,
)

logger = logging.getLogger("wikiclient.parsing")

T_co = TypeVar("T_co", covariant=True)

ERROR_CODE_TYPES: dict[str, type[RemoteOperationError]] = {
    "badtoken": BadTokenError,
    "notoken": BadTokenError,
    "permissiondenied": UnauthorizedOperationError,
    "protectedpage": UnauthorizedOperationError,
    "protectedtitle": UnauthorizedOperationError,
    "protectednamespace": UnauthorizedOperationError,
    "readapidenied": UnauthorizedOperationError,
    "writeapidenied": UnauthorizedOperationError,
    "blocked": UnauthorizedOperationError,
    "assertuserfailed": UnauthorizedOperationError,
    "assertbotfailed": UnauthorizedOperationError,
    "editconflict": OperationConflictError,
    "articleexists": OperationConflictError,
    "pagedeleted": OperationConflictError,
}

# Server-side conditions that go away by themselves.
TRANSIENT_ERROR_CODES = frozenset({"maxlag", "readonly", "ratelimited"})


def register_error_code(code: str, error_type: type[RemoteOperationError]) -> None:
    """Map an API error code to an exception type."""
    ERROR_CODE_TYPES[code] = error_type


def error_from_payload(error: dict[str, Any]) -> RemoteOperationError:
    """Build the exception for an ``error`` member of an API reply."""
    code = error.get("code")
    info = error.get("info") or error.get("*")
    error_type = ERROR_CODE_TYPES.get(code or "", RemoteOperationError)
    return error_type(code, info, error)


@dataclass
class ResponseParsingContext:
    """Per-attempt state handed to the parser.

    Attributes:
        attempt: 1-based attempt number within the logical call.
        cancellation: The caller's cancellation token.
        need_retry: Set by the parser to request another attempt.
    """

    attempt: int
    cancellation: CancellationToken
    logger: logging.Logger = field(default=logger)
    need_retry: bool = False


@runtime_checkable
class ResponseParser(Protocol[T_co]):
    """Turns an HTTP response into a decoded result."""

    async def parse(self, response: httpx.Response, context: ResponseParsingContext) -> T_co:
        """Decode ``response``; may set ``context.need_retry``."""
        ...


class JsonResponseParser:
    """Parser for MediaWiki ``format=json`` replies.

    Returns the decoded JSON object. A top-level ``error`` member raises
    the registered ``RemoteOperationError`` subclass; transient server
    errors such as ``maxlag`` and unreadable bodies also flag a retry.
    """

    async def parse(self, response: httpx.Response, context: ResponseParsingContext) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            # Truncated or non-JSON reply (e.g. an HTML error page from a proxy)
            context.need_retry = True
            raise TransportError(
                f"Invalid JSON in response: {e}", status_code=response.status_code, cause=e
            ) from e

        if not isinstance(body, dict):
            raise TransportError(
                f"Expected a JSON object, got {type(body).__name__}", status_code=response.status_code
            )

        error = body.get("error")
        if error is not None:
            if isinstance(error, dict) and error.get("code") in TRANSIENT_ERROR_CODES:
                context.need_retry = True
            raise error_from_payload(error if isinstance(error, dict) else {"info": str(error)})

        warnings = body.get("warnings")
        if warnings:
            for module, warning in warnings.items():
                if isinstance(warning, dict):
                    text = warning.get("*") or warning.get("warnings")
                else:
                    text = warning
                context.logger.warning("API warning in %s: %s", module, text)
        return body

    def __repr__(self) -> str:
        return "JsonResponseParser()"


__all__ = [
    "ERROR_CODE_TYPES",
    "JsonResponseParser",
    "ResponseParser",
    "ResponseParsingContext",
    "error_from_payload",
    "register_error_code",
]
