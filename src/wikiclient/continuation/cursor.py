"""Continuation cursor.

Walks a server-side paginated listing as one lazy async sequence. Each
iteration starts from the caller's base parameters; the continuation map of
every reply is merged over them for the next request until a reply carries
no continuation.

Example:
    >>> from wikiclient.continuation import ContinuationCursor, decoder_for
    >>>
    >>> cursor = ContinuationCursor(
    ...     transport,
    ...     "https://test.wikipedia.org/w/api.php",
    ...     {"action": "query", "list": "allpages"},
    ...     decoder_for("list", "allpages"),
    ...     page_size=50,
    ...     page_size_param="aplimit",
    ... )
    >>> async for page in cursor:
    ...     print(page["title"])
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any, Generic, TypeVar

from wikiclient.continuation.decoders import PageDecoder
from wikiclient.core.cancellation import CancellationToken, ensure_token
from wikiclient.http.client import WikiTransport
from wikiclient.http.messages import RequestMessage
from wikiclient.http.parsing import JsonResponseParser, ResponseParser

logger = logging.getLogger("wikiclient.continuation")

T = TypeVar("T")


class ContinuationCursor(Generic[T]):
    """Lazy, restartable sequence over a paginated listing.

    Pages are fetched one at a time and only when the consumer asks for
    items past the current page; stopping early issues no further requests.
    Only the absence of a continuation marker ends the sequence, short pages
    do not.

    Attributes:
        params: Base parameters of the listing
        page_size: Requested items per page, or None for the server default
    """

    def __init__(
        self,
        transport: WikiTransport,
        endpoint: str,
        params: Mapping[str, Any],
        decoder: PageDecoder[T],
        *,
        page_size: int | None = None,
        page_size_param: str | None = None,
        parser: ResponseParser[dict[str, Any]] | None = None,
        cancellation: CancellationToken | None = None,
    ) -> None:
        if page_size is not None and page_size_param is None:
            raise ValueError("page_size_param is required when page_size is set")
        if page_size is not None and page_size <= 0:
            raise ValueError("page_size must be positive")
        self._transport = transport
        self._endpoint = endpoint
        self._params = dict(params)
        self._decoder = decoder
        self._page_size = page_size
        self._page_size_param = page_size_param
        self._parser = parser or JsonResponseParser()
        self._cancellation = ensure_token(cancellation)

    @property
    def params(self) -> dict[str, Any]:
        return dict(self._params)

    @property
    def page_size(self) -> int | None:
        return self._page_size

    def _base_params(self) -> dict[str, Any]:
        params = dict(self._params)
        if self._page_size is not None:
            params[self._page_size_param] = self._page_size
        return params

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        base = self._base_params()
        params = base
        page_number = 0
        while True:
            self._cancellation.raise_if_cancelled()
            page_number += 1
            payload = await self._transport.send(
                self._endpoint, RequestMessage(params), self._parser, self._cancellation
            )
            page = self._decoder.decode(payload)
            logger.debug(
                "Page %d of %s: %d items, continuation=%s",
                page_number,
                base.get("list") or base.get("prop") or base.get("generator"),
                len(page.items),
                page.continuation,
            )
            for item in page.items:
                yield item
            if page.continuation is None:
                return
            # Continuation keys override same-named base parameters
            params = {**base, **page.continuation}

    async def to_list(self, limit: int | None = None) -> list[T]:
        """Collect items into a list, stopping after ``limit`` items."""
        items: list[T] = []
        if limit is not None and limit <= 0:
            return items
        async for item in self:
            items.append(item)
            if limit is not None and len(items) >= limit:
                break
        return items

    def __repr__(self) -> str:
        return f"ContinuationCursor({self._endpoint!r}, params={self._params!r})"


__all__ = ["ContinuationCursor"]
