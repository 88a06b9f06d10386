"""Security token cache.

Caches the short-lived tokens mutating API calls need, keyed by
``(site, kind)``. Tokens are fetched lazily through a caller-supplied
fetcher; concurrent requests for the same key share one in-flight fetch.

Example:
    >>> import asyncio
    >>> from wikiclient.tokens import TokenCache
    >>>
    >>> async def fetch(site, kind):
    ...     return "abc123"
    >>>
    >>> cache = TokenCache(fetch)
    >>> asyncio.run(cache.get_token("https://test.wikipedia.org/w/api.php", "csrf"))
    'abc123'
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from wikiclient.core.cancellation import CancellationToken, ensure_token
from wikiclient.core.exceptions import TokenUnavailableError

logger = logging.getLogger("wikiclient.tokens")

TokenFetcher = Callable[[str, str], Awaitable[str]]
TokenKey = tuple[str, str]


class TokenCache:
    """Per-site cache of security tokens.

    Readers see either the previous or the new token, never a partial
    value: the cached string is replaced in a single assignment on the
    event loop thread.

    Example:
        >>> cache = TokenCache(site.fetch_token)
        >>> token = await cache.get_token(site.endpoint, "csrf")
        >>> cache.invalidate(site.endpoint, "csrf")  # after a badtoken error
    """

    def __init__(self, fetcher: TokenFetcher) -> None:
        """Initialize the cache.

        Args:
            fetcher: Coroutine function ``(site, kind) -> token``
        """
        self._fetcher = fetcher
        self._tokens: dict[TokenKey, str] = {}
        self._pending: dict[TokenKey, asyncio.Task[str]] = {}

    def peek(self, site: str, kind: str) -> str | None:
        """Return the cached token without fetching."""
        return self._tokens.get((site, kind))

    async def get_token(
        self,
        site: str,
        kind: str,
        cancellation: CancellationToken | None = None,
    ) -> str:
        """Return the token for ``(site, kind)``, fetching it if needed.

        Cancelling one waiter does not abort a fetch shared with others.

        Raises:
            TokenUnavailableError: The fetch failed or returned no token
            OperationCancelledError: Cancelled while waiting for the fetch
        """
        cancellation = ensure_token(cancellation)
        cancellation.raise_if_cancelled()
        key = (site, kind)
        token = self._tokens.get(key)
        if token is not None:
            return token

        task = self._pending.get(key)
        if task is None:
            logger.debug("Fetching %s token for %s.", kind, site)
            task = asyncio.ensure_future(self._fetch(key))
            task.add_done_callback(self._fetch_done)
            self._pending[key] = task
        return await cancellation.guard(asyncio.shield(task))

    async def _fetch(self, key: TokenKey) -> str:
        site, kind = key
        try:
            token = await self._fetcher(site, kind)
        except TokenUnavailableError:
            raise
        except Exception as e:
            logger.warning("Cannot fetch %s token for %s: %s", kind, site, e)
            raise TokenUnavailableError(kind, site, cause=e) from e
        if not token:
            raise TokenUnavailableError(kind, site)
        # A fetch superseded by invalidate() must not repopulate the cache
        if self._pending.get(key) is asyncio.current_task():
            self._tokens[key] = token
        return token

    def _fetch_done(self, task: asyncio.Task[str]) -> None:
        for key, pending in list(self._pending.items()):
            if pending is task:
                del self._pending[key]
        # Mark the exception as retrieved when every waiter was cancelled
        if not task.cancelled():
            task.exception()

    def invalidate(self, site: str, kind: str) -> None:
        """Drop the cached token; the next ``get_token`` fetches a fresh one."""
        key = (site, kind)
        self._tokens.pop(key, None)
        self._pending.pop(key, None)
        logger.debug("Invalidated %s token for %s.", kind, site)

    def clear(self, site: str | None = None) -> None:
        """Drop all cached tokens, optionally only those of ``site``."""
        for key in [k for k in self._tokens if site is None or k[0] == site]:
            del self._tokens[key]
        for key in [k for k in self._pending if site is None or k[0] == site]:
            del self._pending[key]


__all__ = ["TokenCache", "TokenFetcher"]
