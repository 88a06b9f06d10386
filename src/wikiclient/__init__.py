"""
WikiClient - Async client core for MediaWiki-style HTTP APIs.

WikiClient issues API requests, recovers from transient failures, walks
paginated result sets as one lazy sequence and serializes mutating
operations per site.

Key Features:
- Timeout and retry policy with Retry-After support
- Continuation cursors over paginated listings
- Per-site modification throttling
- Security token cache with single-flight fetches
- Cooperative cancellation for every operation

Quick Start:
    >>> from wikiclient import WikiSite, WikiTransport
    >>> from wikiclient.generators import revisions
    >>> async with WikiTransport(user_agent="MyBot/1.0 (me@example.org)") as transport:
    ...     site = WikiSite("https://test.wikipedia.org/w/api.php", transport)
    ...     async for rev in revisions(site, "Main Page", page_size=20):
    ...         print(rev.id, rev.user)

Architecture:
    Transport: WikiTransport, RequestMessage, JsonResponseParser
    Listings: ContinuationCursor, decoder_for
    Mutations: ModificationThrottler, TokenCache, actions
"""

__version__ = "0.6.0"

from wikiclient.continuation import ContinuationCursor, DecodedPage, decoder_for
from wikiclient.core import (
    BadTokenError,
    CancellationToken,
    ConfigurationError,
    InvalidOperationError,
    OperationCancelledError,
    OperationConflictError,
    RemoteOperationError,
    RequestTimeoutError,
    RetriesExhaustedError,
    Settings,
    TokenUnavailableError,
    TransportError,
    UnauthorizedOperationError,
    WikiClientError,
    get_settings,
)
from wikiclient.http import (
    FilePayload,
    JsonResponseParser,
    RequestMessage,
    ResponseParser,
    ResponseParsingContext,
    WikiTransport,
)
from wikiclient.models import PageStub, RecentChange, Revision
from wikiclient.site import WikiSite
from wikiclient.throttle import ModificationThrottler, ThrottleHandle
from wikiclient.tokens import TokenCache

__all__ = [
    "__version__",
    # Core
    "CancellationToken",
    "Settings",
    "get_settings",
    # Errors
    "BadTokenError",
    "ConfigurationError",
    "InvalidOperationError",
    "OperationCancelledError",
    "OperationConflictError",
    "RemoteOperationError",
    "RequestTimeoutError",
    "RetriesExhaustedError",
    "TokenUnavailableError",
    "TransportError",
    "UnauthorizedOperationError",
    "WikiClientError",
    # Transport
    "FilePayload",
    "JsonResponseParser",
    "RequestMessage",
    "ResponseParser",
    "ResponseParsingContext",
    "WikiTransport",
    # Listings
    "ContinuationCursor",
    "DecodedPage",
    "decoder_for",
    # Mutations
    "ModificationThrottler",
    "ThrottleHandle",
    "TokenCache",
    # Site and items
    "PageStub",
    "RecentChange",
    "Revision",
    "WikiSite",
]
