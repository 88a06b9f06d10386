"""Security token handling.

Example:
    >>> from wikiclient.tokens import TokenCache
    >>> cache = TokenCache(fetcher)
    >>> token = await cache.get_token(endpoint, "csrf")
"""

from wikiclient.tokens.cache import TokenCache, TokenFetcher

__all__ = ["TokenCache", "TokenFetcher"]
