"""Wiki site.

A ``WikiSite`` binds one API endpoint to a transport and owns the state
that lives as long as the site: its security tokens and its modification
throttle slot. Domain code talks to the core through it.

Example:
    >>> from wikiclient import WikiSite, WikiTransport
    >>>
    >>> async with WikiTransport(user_agent="MyBot/1.0") as transport:
    ...     site = WikiSite("https://test.wikipedia.org/w/api.php", transport)
    ...     info = await site.get_json({"action": "query", "meta": "siteinfo"})
    ...     async for rc in site.enumerate(
    ...         {"action": "query", "list": "recentchanges"},
    ...         decoder_for("list", "recentchanges"),
    ...     ):
    ...         print(rc["title"])
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from wikiclient.continuation.cursor import ContinuationCursor
from wikiclient.continuation.decoders import PageDecoder
from wikiclient.core.cancellation import CancellationToken, ensure_token
from wikiclient.core.config import Settings
from wikiclient.core.exceptions import BadTokenError, TokenUnavailableError
from wikiclient.http.client import WikiTransport
from wikiclient.http.messages import FilePayload, RequestMessage
from wikiclient.http.parsing import JsonResponseParser, ResponseParser
from wikiclient.throttle.throttler import ModificationThrottler, ThrottleHandle
from wikiclient.tokens.cache import TokenCache

logger = logging.getLogger("wikiclient.site")

T = TypeVar("T")

# Token types merged into "csrf" since MediaWiki 1.24
LEGACY_CSRF_TOKENS = frozenset(
    {"edit", "delete", "protect", "move", "block", "unblock", "email", "import", "options"}
)


def normalize_token_kind(kind: str) -> str:
    """Map legacy token names onto the kinds ``meta=tokens`` understands.

    Example:
        >>> from wikiclient.site import normalize_token_kind
        >>> normalize_token_kind("edit"), normalize_token_kind("Patrol")
        ('csrf', 'patrol')
    """
    kind = kind.lower()
    return "csrf" if kind in LEGACY_CSRF_TOKENS else kind


class WikiSite:
    """One wiki's API endpoint plus its per-site state.

    Attributes:
        endpoint: API entry point URL; fixed for the site's lifetime
        transport: Transport used for every request
        throttler: Gate for mutating operations (may be shared across sites)
        tokens: Security token cache (may be shared across sites)
    """

    def __init__(
        self,
        endpoint: str,
        transport: WikiTransport,
        *,
        settings: Settings | None = None,
        throttler: ModificationThrottler | None = None,
        tokens: TokenCache | None = None,
    ) -> None:
        settings = settings or Settings()
        self._endpoint = endpoint
        self.transport = transport
        self.throttler = throttler or ModificationThrottler(settings.modification_interval)
        self.tokens = tokens or TokenCache(self.fetch_token)
        self._parser = JsonResponseParser()

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def invoke(
        self,
        message: RequestMessage,
        parser: ResponseParser[T] | None = None,
        cancellation: CancellationToken | None = None,
    ) -> T:
        """Send one logical request to this site's endpoint."""
        return await self.transport.send(self._endpoint, message, parser or self._parser, cancellation)

    async def get_json(
        self,
        params: Mapping[str, Any],
        cancellation: CancellationToken | None = None,
    ) -> dict[str, Any]:
        """Send ``params`` as a form request and return the decoded reply."""
        return await self.invoke(RequestMessage(params), self._parser, cancellation)

    def enumerate(
        self,
        params: Mapping[str, Any],
        decoder: PageDecoder[T],
        *,
        page_size: int | None = None,
        page_size_param: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> ContinuationCursor[T]:
        """Lazy sequence over a paginated listing on this site."""
        return ContinuationCursor(
            self.transport,
            self._endpoint,
            params,
            decoder,
            page_size=page_size,
            page_size_param=page_size_param,
            parser=self._parser,
            cancellation=cancellation,
        )

    @asynccontextmanager
    async def modification(
        self,
        label: str,
        cancellation: CancellationToken | None = None,
    ) -> AsyncIterator[ThrottleHandle]:
        """Protected section for one mutating operation on this site."""
        async with self.throttler.acquire(self._endpoint, label, cancellation) as handle:
            yield handle

    async def with_throttle(
        self,
        label: str,
        body: Callable[[], Awaitable[T]],
        cancellation: CancellationToken | None = None,
    ) -> T:
        """Run ``body`` inside this site's modification throttle."""
        return await self.throttler.run(self._endpoint, label, body, cancellation)

    async def get_token(self, kind: str = "csrf", cancellation: CancellationToken | None = None) -> str:
        """Return a security token of ``kind`` for this site."""
        return await self.tokens.get_token(self._endpoint, normalize_token_kind(kind), cancellation)

    def invalidate_token(self, kind: str = "csrf") -> None:
        """Drop the cached token of ``kind``."""
        self.tokens.invalidate(self._endpoint, normalize_token_kind(kind))

    async def fetch_token(self, site: str, kind: str) -> str:
        """Fetch a fresh token through ``action=query&meta=tokens``.

        Used as the default fetcher of the site's ``TokenCache``.
        """
        reply = await self.transport.send(
            site,
            RequestMessage({"action": "query", "meta": "tokens", "type": kind}),
            self._parser,
        )
        token = reply.get("query", {}).get("tokens", {}).get(f"{kind}token")
        if not token:
            raise TokenUnavailableError(kind, site)
        return token

    async def post_with_token(
        self,
        params: Mapping[str, Any],
        token_kind: str = "csrf",
        *,
        files: Mapping[str, FilePayload] | None = None,
        cancellation: CancellationToken | None = None,
    ) -> dict[str, Any]:
        """Send a mutating request with a security token attached.

        The token is added as the last form field. If the server rejects it,
        the cached token is invalidated and the request is sent once more
        with a fresh token; a second rejection is raised to the caller.

        Raises:
            BadTokenError: The token was rejected twice
            TokenUnavailableError: No token could be fetched
        """
        cancellation = ensure_token(cancellation)
        refreshed = False
        while True:
            token = await self.get_token(token_kind, cancellation)
            fields = {key: value for key, value in params.items() if key != "token"}
            message = RequestMessage({**fields, "token": token}, files)
            try:
                return await self.invoke(message, self._parser, cancellation)
            except BadTokenError:
                if refreshed:
                    raise
                logger.info("Token %s rejected by %s; fetching a new one.", token_kind, self._endpoint)
                self.invalidate_token(token_kind)
                refreshed = True

    def __repr__(self) -> str:
        return f"WikiSite({self._endpoint!r})"


__all__ = ["WikiSite", "normalize_token_kind"]
