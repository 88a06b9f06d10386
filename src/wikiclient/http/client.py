"""Wiki API transport with timeout and retry support.

Turns one logical API call into one or more HTTP exchanges:
- Per-attempt timeout independent of caller cancellation
- Retry after timeouts and HTTP 5xx (honouring Retry-After)
- Retry when the response parser flags the payload as unusable
- Fresh HTTP request per attempt

Example:
    >>> from wikiclient.http import WikiTransport, RequestMessage, JsonResponseParser
    >>>
    >>> async with WikiTransport(max_retries=3, retry_delay=5.0) as transport:
    ...     result = await transport.send(
    ...         "https://test.wikipedia.org/w/api.php",
    ...         RequestMessage({"action": "query", "meta": "siteinfo"}),
    ...         JsonResponseParser(),
    ...     )
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import TypeVar

import httpx

from wikiclient import __version__
from wikiclient.core.cancellation import CancellationToken, ensure_token
from wikiclient.core.config import Settings
from wikiclient.core.exceptions import (
    ConfigurationError,
    RequestRebuildError,
    RequestTimeoutError,
    RetriesExhaustedError,
    TransportError,
)
from wikiclient.http.messages import RequestMessage
from wikiclient.http.parsing import ResponseParser, ResponseParsingContext

logger = logging.getLogger("wikiclient.transport")

T = TypeVar("T")

LIBRARY_USER_AGENT = f"WikiClient/{__version__} (Python; httpx)"

_FORMAT_JSON = {"format": "json"}


def retry_after_delay(response: httpx.Response, retry_delay: float) -> float:
    """Delay before retrying an HTTP 5xx response.

    Uses the Retry-After header (delta-seconds or HTTP date) when present,
    clamped to ``retry_delay``; falls back to ``retry_delay``.

    Example:
        >>> import httpx
        >>> from wikiclient.http.client import retry_after_delay
        >>> retry_after_delay(httpx.Response(503, headers={"Retry-After": "2"}), 10.0)
        2.0
        >>> retry_after_delay(httpx.Response(503, headers={"Retry-After": "120"}), 10.0)
        10.0
        >>> retry_after_delay(httpx.Response(503), 10.0)
        10.0
    """
    value = response.headers.get("Retry-After")
    if not value:
        return retry_delay
    delay: float | None
    try:
        delay = float(value)
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return retry_delay
        if when.tzinfo is None:
            when = when.replace(tzinfo=UTC)
        delay = (when - datetime.now(UTC)).total_seconds()
    return max(0.0, min(delay, retry_delay))


async def _discard_response(response: httpx.Response) -> None:
    """Close a response nobody is going to read."""
    logger.debug("Discarding HTTP %d response of a cancelled request.", response.status_code)
    await response.aclose()


class WikiTransport:
    """Async transport for MediaWiki-style API endpoints.

    Holds no per-call state: attempt counters and timers live in ``send``.
    Configuration is read once at the start of each call, so changes apply
    to the next call only.

    Example:
        >>> async with WikiTransport(user_agent="MyBot/1.0") as transport:
        ...     data = await transport.send(endpoint, message, JsonResponseParser())

    Attributes:
        timeout: Timeout for each HTTP exchange in seconds
        retry_delay: Delay before each retry in seconds
        max_retries: Maximum retries; 0 makes the first failure terminal
        user_agent: Client-side application User-Agent
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        timeout: float | None = None,
        retry_delay: float | None = None,
        max_retries: int | None = None,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict[str, str] | None = None,
    ):
        """Initialize the transport.

        Args:
            settings: Base settings; explicit keyword arguments win
            timeout: Timeout for each HTTP exchange
            retry_delay: Delay before each retry
            max_retries: Maximum retry attempts
            user_agent: Client-side application User-Agent
            transport: httpx transport to send through (tests use MockTransport)
            headers: Additional default headers
        """
        settings = settings or Settings()
        self._timeout = settings.request_timeout if timeout is None else timeout
        self._retry_delay = settings.retry_delay if retry_delay is None else retry_delay
        self.max_retries = settings.max_retries if max_retries is None else max_retries
        self._user_agent = user_agent if user_agent is not None else settings.user_agent
        self._transport = transport
        self._extra_headers = headers or {}
        self._client: httpx.AsyncClient | None = None

    @property
    def timeout(self) -> float:
        """Timeout for each HTTP exchange in seconds."""
        return self._timeout

    @timeout.setter
    def timeout(self, value: float) -> None:
        if value <= 0:
            raise ConfigurationError("timeout must be positive")
        self._timeout = value

    @property
    def retry_delay(self) -> float:
        """Delay before each retry in seconds."""
        return self._retry_delay

    @retry_delay.setter
    def retry_delay(self, value: float) -> None:
        if value < 0:
            raise ConfigurationError("retry_delay must not be negative")
        self._retry_delay = value

    @property
    def max_retries(self) -> int:
        """Maximum retry attempts."""
        return self._max_retries

    @max_retries.setter
    def max_retries(self, value: int) -> None:
        if value < 0:
            raise ConfigurationError("max_retries must not be negative")
        self._max_retries = value

    @property
    def user_agent(self) -> str:
        """User-Agent header value."""
        if self._user_agent:
            return f"{self._user_agent} {LIBRARY_USER_AGENT}"
        return LIBRARY_USER_AGENT

    @property
    def headers(self) -> dict[str, str]:
        """Default headers for requests."""
        return {
            "User-Agent": self.user_agent,
            "Accept-Encoding": "gzip, deflate",
            "Accept": "application/json",
            **self._extra_headers,
        }

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            # Timeouts are enforced per attempt in _exchange
            self._client = httpx.AsyncClient(
                headers=self.headers,
                timeout=httpx.Timeout(None),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> WikiTransport:
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def send(
        self,
        endpoint: str,
        message: RequestMessage,
        parser: ResponseParser[T],
        cancellation: CancellationToken | None = None,
    ) -> T:
        """Execute one logical request against ``endpoint``.

        Each attempt is evaluated in order: cancellation, timeout, HTTP 5xx,
        parser-requested retry, parser exception.

        Args:
            endpoint: API entry point URL
            message: Logical request; ``format=json`` is added unless present
            parser: Decodes the HTTP response
            cancellation: Checked before each attempt and during backoff

        Returns:
            The parser's decoded result

        Raises:
            OperationCancelledError: The cancellation token was observed
            RequestTimeoutError: No response within the timeout, retries exhausted
            TransportError: Non-2xx response that is not retried or retries exhausted
            RetriesExhaustedError: The parser kept flagging the response
        """
        cancellation = ensure_token(cancellation)
        message = message.with_params(_FORMAT_JSON, overwrite=False)

        # Snapshot configuration for this call
        timeout = self._timeout
        retry_delay = self._retry_delay
        max_retries = self._max_retries

        client = await self._ensure_client()
        request = message.build(client, endpoint)
        retries = 0

        while True:
            logger.debug("Initiate request %s to %s.", message.id, endpoint)
            cancellation.raise_if_cancelled()
            started = time.monotonic()
            failure: Exception
            try:
                response = await cancellation.guard(
                    self._exchange(client, request, timeout), on_abandon=_discard_response
                )
            except (TimeoutError, httpx.TimeoutException):
                logger.warning("Request %s timed out after %.1fs.", message.id, time.monotonic() - started)
                failure = RequestTimeoutError(
                    f"No response from {endpoint} within {timeout}s", attempts=retries + 1
                )
                delay = retry_delay
            except httpx.RequestError as e:
                raise TransportError(f"Request failed: {e}", cause=e) from e
            else:
                status = response.status_code
                logger.debug(
                    "Request %s: HTTP %d, elapsed %.3fs.", message.id, status, time.monotonic() - started
                )
                if not response.is_success:
                    logger.warning("Request %s: HTTP %d %s.", message.id, status, response.reason_phrase)
                    failure = TransportError(f"HTTP {status} {response.reason_phrase}", status_code=status)
                    if not response.is_server_error:
                        raise failure
                    delay = retry_after_delay(response, retry_delay)
                else:
                    cancellation.raise_if_cancelled()
                    context = ResponseParsingContext(attempt=retries + 1, cancellation=cancellation)
                    try:
                        result = await parser.parse(response, context)
                    except Exception as e:
                        if not context.need_retry:
                            logger.warning("Parser %r raised %s: %s", parser, type(e).__name__, e)
                            raise
                        logger.warning("Parser %r: %s", parser, e)
                        failure = e
                    else:
                        if not context.need_retry:
                            return result
                        failure = RetriesExhaustedError(attempts=retries + 1)
                    delay = retry_delay

            request = await self._prepare_retry(
                client, endpoint, message, retries, max_retries, delay, cancellation
            )
            if request is None:
                raise failure
            retries += 1

    async def _exchange(
        self, client: httpx.AsyncClient, request: httpx.Request, timeout: float
    ) -> httpx.Response:
        """Send one HTTP request and read its body within ``timeout``."""
        async with asyncio.timeout(timeout):
            return await client.send(request)

    async def _prepare_retry(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        message: RequestMessage,
        retries: int,
        max_retries: int,
        delay: float,
        cancellation: CancellationToken,
    ) -> httpx.Request | None:
        """Rebuild the request and wait out ``delay``.

        Returns:
            The request for the next attempt, or None if no retry is possible
        """
        if retries >= max_retries:
            return None
        try:
            request = message.build(client, endpoint)
        except RequestRebuildError as e:
            logger.warning("Cannot retry request %s: %s", message.id, e)
            return None
        logger.debug("Retry #%d of request %s after %.2fs.", retries + 1, message.id, delay)
        if delay > 0:
            await cancellation.guard(asyncio.sleep(delay))
        return request

    def __repr__(self) -> str:
        return f"WikiTransport(timeout={self._timeout}, max_retries={self._max_retries})"


__all__ = [
    "LIBRARY_USER_AGENT",
    "WikiTransport",
    "retry_after_delay",
]
