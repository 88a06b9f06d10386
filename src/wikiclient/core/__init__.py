"""Core building blocks: configuration, errors and cancellation."""

from wikiclient.core.cancellation import CancellationToken
from wikiclient.core.config import Settings, get_settings
from wikiclient.core.exceptions import (
    BadTokenError,
    ConfigurationError,
    InvalidOperationError,
    OperationCancelledError,
    OperationConflictError,
    RemoteOperationError,
    RequestRebuildError,
    RequestTimeoutError,
    RetriesExhaustedError,
    TokenUnavailableError,
    TransportError,
    UnauthorizedOperationError,
    WikiClientError,
)

__all__ = [
    "BadTokenError",
    "CancellationToken",
    "ConfigurationError",
    "InvalidOperationError",
    "OperationCancelledError",
    "OperationConflictError",
    "RemoteOperationError",
    "RequestRebuildError",
    "RequestTimeoutError",
    "RetriesExhaustedError",
    "Settings",
    "TokenUnavailableError",
    "TransportError",
    "UnauthorizedOperationError",
    "WikiClientError",
    "get_settings",
]
