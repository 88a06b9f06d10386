"""Tests for WikiTransport retry policy.

Tests cover:
- Single exchange on success
- Timeout, HTTP 5xx and parser-requested retries
- max_retries = 0 making every failure terminal
- Cancellation before and during an attempt
- Request rebuilding and one-shot payloads
"""

from __future__ import annotations

import asyncio
import io
from typing import Any

import httpx
import pytest

from wikiclient.core.cancellation import CancellationToken
from wikiclient.core.exceptions import (
    ConfigurationError,
    OperationCancelledError,
    RemoteOperationError,
    RequestTimeoutError,
    RetriesExhaustedError,
    TransportError,
)
from wikiclient.http.client import LIBRARY_USER_AGENT, WikiTransport, retry_after_delay
from wikiclient.http.messages import FilePayload, RequestMessage
from wikiclient.http.parsing import JsonResponseParser, ResponseParsingContext

# =============================================================================
# Helpers
# =============================================================================


class FlaggingParser:
    """Parser that flags the first ``bad`` responses for retry."""

    def __init__(self, bad: int, raise_error: Exception | None = None) -> None:
        self.bad = bad
        self.raise_error = raise_error
        self.calls = 0

    async def parse(self, response: httpx.Response, context: ResponseParsingContext) -> Any:
        self.calls += 1
        if self.calls <= self.bad:
            context.need_retry = True
            if self.raise_error is not None:
                raise self.raise_error
            return None
        return response.json()


class NonSeekableStream(io.RawIOBase):
    def __init__(self, data: bytes) -> None:
        self._buffer = io.BytesIO(data)

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)


def query(**params: Any) -> RequestMessage:
    return RequestMessage({"action": "query", **params})


# =============================================================================
# Success path
# =============================================================================


class TestSuccess:
    """Tests for the single-exchange path."""

    async def test_returns_parser_result_with_one_call(self, wiki, make_transport, endpoint):
        """A clean response is returned as-is after exactly one exchange."""
        wiki.script({"query": {"general": {"sitename": "Test"}}})
        transport = make_transport()

        result = await transport.send(endpoint, query(meta="siteinfo"), JsonResponseParser())

        assert result == {"query": {"general": {"sitename": "Test"}}}
        assert wiki.calls == 1

    async def test_posts_form_with_format_json(self, wiki, make_transport, endpoint):
        """Requests are POSTed with format=json added."""
        wiki.script({})
        transport = make_transport()

        await transport.send(endpoint, query(meta="siteinfo"), JsonResponseParser())

        request = wiki.requests[0]
        assert request.method == "POST"
        assert str(request.url) == endpoint
        assert wiki.form() == {"action": "query", "meta": "siteinfo", "format": "json"}

    async def test_caller_format_is_kept(self, wiki, make_transport, endpoint):
        """An explicit format parameter is not overwritten."""
        wiki.script({})
        transport = make_transport()

        await transport.send(endpoint, query(format="jsonfm"), JsonResponseParser())

        assert wiki.form()["format"] == "jsonfm"

    async def test_user_agent_header(self, wiki, make_transport, endpoint):
        """The client identifier precedes the library identifier."""
        wiki.script({})
        transport = make_transport(user_agent="TestBot/2.0")

        await transport.send(endpoint, query(), JsonResponseParser())

        assert wiki.requests[0].headers["User-Agent"] == f"TestBot/2.0 {LIBRARY_USER_AGENT}"

    async def test_remote_error_is_not_retried(self, wiki, make_transport, endpoint):
        """An API error payload fails immediately."""
        wiki.script({"error": {"code": "badtitle", "info": "Bad title"}})
        transport = make_transport(max_retries=3)

        with pytest.raises(RemoteOperationError) as exc_info:
            await transport.send(endpoint, query(), JsonResponseParser())

        assert exc_info.value.code == "badtitle"
        assert wiki.calls == 1


# =============================================================================
# Server overload
# =============================================================================


class TestServerErrors:
    """Tests for HTTP 5xx handling."""

    @pytest.mark.parametrize("failures", [1, 2, 3])
    async def test_n_failures_then_success(self, wiki, make_transport, endpoint, failures):
        """N consecutive 5xx then success takes exactly N+1 attempts."""
        wiki.script(*[httpx.Response(503) for _ in range(failures)], {"ok": True})
        transport = make_transport(max_retries=3)

        result = await transport.send(endpoint, query(), JsonResponseParser())

        assert result == {"ok": True}
        assert wiki.calls == failures + 1

    async def test_exhausted_raises_transport_error(self, wiki, make_transport, endpoint):
        """5xx after all retries surfaces the HTTP failure."""
        wiki.script(*[httpx.Response(502) for _ in range(3)])
        transport = make_transport(max_retries=2)

        with pytest.raises(TransportError) as exc_info:
            await transport.send(endpoint, query(), JsonResponseParser())

        assert exc_info.value.status_code == 502
        assert wiki.calls == 3

    async def test_client_error_is_terminal(self, wiki, make_transport, endpoint):
        """4xx responses are never retried."""
        wiki.script(httpx.Response(404))
        transport = make_transport(max_retries=3)

        with pytest.raises(TransportError) as exc_info:
            await transport.send(endpoint, query(), JsonResponseParser())

        assert exc_info.value.status_code == 404
        assert wiki.calls == 1

    async def test_retry_uses_fresh_request(self, wiki, make_transport, endpoint):
        """Each attempt sends the same form again."""
        wiki.script(httpx.Response(500), {})
        transport = make_transport(max_retries=1)

        await transport.send(endpoint, query(list="allpages"), JsonResponseParser())

        assert wiki.requests[0] is not wiki.requests[1]
        assert wiki.form(0) == wiki.form(1)

    async def test_connection_error_is_transport_error(self, wiki, make_transport, endpoint):
        """Connection failures are wrapped and not retried."""
        wiki.script(httpx.ConnectError("refused"))
        transport = make_transport(max_retries=3)

        with pytest.raises(TransportError):
            await transport.send(endpoint, query(), JsonResponseParser())

        assert wiki.calls == 1


# =============================================================================
# Timeouts
# =============================================================================


class TestTimeouts:
    """Tests for per-attempt timeouts."""

    async def test_timeout_then_success(self, wiki, make_transport, endpoint):
        """A timed-out attempt is retried."""
        wiki.script(1.0, {"ok": True})
        transport = make_transport(timeout=0.05, max_retries=1)

        result = await transport.send(endpoint, query(), JsonResponseParser())

        assert result == {"ok": True}
        assert wiki.calls == 2

    async def test_timeout_exhausted(self, wiki, make_transport, endpoint):
        """Timeouts on every attempt raise RequestTimeoutError."""
        wiki.script(1.0, 1.0)
        transport = make_transport(timeout=0.05, max_retries=1)

        with pytest.raises(RequestTimeoutError) as exc_info:
            await transport.send(endpoint, query(), JsonResponseParser())

        assert exc_info.value.attempts == 2
        assert wiki.calls == 2

    async def test_one_shot_payload_is_not_resent(self, wiki, make_transport, endpoint):
        """A consumed stream payload turns a timeout into a terminal failure."""
        wiki.script(1.0)
        transport = make_transport(timeout=0.05, max_retries=3)
        message = RequestMessage(
            {"action": "upload", "filename": "a.txt"},
            {"file": FilePayload("a.txt", NonSeekableStream(b"data"), "text/plain")},
        )

        with pytest.raises(RequestTimeoutError):
            await transport.send(endpoint, message, JsonResponseParser())

        assert wiki.calls == 1

    async def test_seekable_payload_is_resent(self, wiki, make_transport, endpoint):
        """A seekable file payload is rewound for the retry."""
        bodies: list[bytes] = []

        def record(request: httpx.Request) -> httpx.Response:
            bodies.append(request.content)
            return httpx.Response(503) if len(bodies) == 1 else httpx.Response(200, json={})

        wiki.script(record, record)
        transport = make_transport(max_retries=1)
        message = RequestMessage(
            {"action": "upload"}, {"file": FilePayload("a.txt", io.BytesIO(b"payload-bytes"))}
        )

        await transport.send(endpoint, message, JsonResponseParser())

        assert wiki.calls == 2
        assert all(b"payload-bytes" in body for body in bodies)


# =============================================================================
# Parser-requested retries
# =============================================================================


class TestParserRetry:
    """Tests for the parser's need_retry flag."""

    async def test_flag_then_success(self, wiki, make_transport, endpoint):
        """A flagged response is retried and the next result returned."""
        wiki.script({"partial": True}, {"ok": True})
        transport = make_transport(max_retries=2)
        parser = FlaggingParser(bad=1)

        result = await transport.send(endpoint, query(), parser)

        assert result == {"ok": True}
        assert wiki.calls == 2

    async def test_flag_exhausted(self, wiki, make_transport, endpoint):
        """Flagging every response ends in RetriesExhaustedError."""
        wiki.script({}, {}, {})
        transport = make_transport(max_retries=2)

        with pytest.raises(RetriesExhaustedError):
            await transport.send(endpoint, query(), FlaggingParser(bad=10))

        assert wiki.calls == 3

    async def test_exception_with_flag_is_retried(self, wiki, make_transport, endpoint):
        """A parser exception with the flag set counts as a retry request."""
        wiki.script({}, {"ok": True})
        transport = make_transport(max_retries=1)
        parser = FlaggingParser(bad=1, raise_error=ValueError("truncated"))

        result = await transport.send(endpoint, query(), parser)

        assert result == {"ok": True}

    async def test_exception_with_flag_exhausted_propagates(self, wiki, make_transport, endpoint):
        """Once retries run out, the parser's own exception is raised."""
        wiki.script({}, {})
        transport = make_transport(max_retries=1)
        error = ValueError("truncated")

        with pytest.raises(ValueError) as exc_info:
            await transport.send(endpoint, query(), FlaggingParser(bad=10, raise_error=error))

        assert exc_info.value is error

    async def test_exception_without_flag_propagates_unmodified(self, wiki, make_transport, endpoint):
        """A parser exception without the flag is raised at once."""

        class Exploding:
            async def parse(self, response, context):
                raise KeyError("missing")

        wiki.script({}, {})
        transport = make_transport(max_retries=3)

        with pytest.raises(KeyError):
            await transport.send(endpoint, query(), Exploding())

        assert wiki.calls == 1

    async def test_invalid_json_is_retried(self, wiki, make_transport, endpoint):
        """A garbled body makes the JSON parser ask for a retry."""
        wiki.script(httpx.Response(200, text="<html>oops"), {"ok": True})
        transport = make_transport(max_retries=1)

        assert await transport.send(endpoint, query(), JsonResponseParser()) == {"ok": True}

    async def test_maxlag_is_retried(self, wiki, make_transport, endpoint):
        """A maxlag error is transient."""
        wiki.script({"error": {"code": "maxlag", "info": "Waiting for db"}}, {"ok": True})
        transport = make_transport(max_retries=1)

        assert await transport.send(endpoint, query(), JsonResponseParser()) == {"ok": True}


# =============================================================================
# Retry policy disabled
# =============================================================================


class TestZeroRetries:
    """With max_retries = 0 every failure is terminal after one attempt."""

    async def test_timeout(self, wiki, make_transport, endpoint):
        wiki.script(1.0)
        transport = make_transport(timeout=0.05, max_retries=0)

        with pytest.raises(RequestTimeoutError):
            await transport.send(endpoint, query(), JsonResponseParser())

        assert wiki.calls == 1

    async def test_server_error(self, wiki, make_transport, endpoint):
        wiki.script(httpx.Response(503, headers={"Retry-After": "0"}))
        transport = make_transport(max_retries=0)

        with pytest.raises(TransportError):
            await transport.send(endpoint, query(), JsonResponseParser())

        assert wiki.calls == 1

    async def test_parser_flag(self, wiki, make_transport, endpoint):
        wiki.script({})
        transport = make_transport(max_retries=0)

        with pytest.raises(RetriesExhaustedError):
            await transport.send(endpoint, query(), FlaggingParser(bad=1))

        assert wiki.calls == 1


# =============================================================================
# Cancellation
# =============================================================================


class TestCancellation:
    """Tests for the cancellation token."""

    async def test_cancelled_before_send(self, wiki, make_transport, endpoint):
        """A cancelled token prevents any network activity."""
        transport = make_transport()
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            await transport.send(endpoint, query(), JsonResponseParser(), token)

        assert wiki.calls == 0

    async def test_cancel_during_backoff(self, wiki, make_transport, endpoint):
        """Cancelling while waiting to retry stops further attempts."""
        token = CancellationToken()

        def fail_and_cancel(request: httpx.Request) -> httpx.Response:
            token.cancel()
            return httpx.Response(503)

        wiki.script(fail_and_cancel)
        transport = make_transport(max_retries=3, retry_delay=5.0)

        with pytest.raises(OperationCancelledError):
            await transport.send(endpoint, query(), JsonResponseParser(), token)

        assert wiki.calls == 1

    async def test_cancel_during_exchange_is_not_a_timeout(self, wiki, make_transport, endpoint):
        """Cancellation while a request hangs is reported as cancellation."""
        token = CancellationToken()

        async def hang(request: httpx.Request) -> float:
            token.cancel()
            return 1.0

        wiki.script(hang)
        transport = make_transport(timeout=5.0, max_retries=3)

        with pytest.raises(OperationCancelledError):
            await transport.send(endpoint, query(), JsonResponseParser(), token)

        assert wiki.calls == 1

    async def test_unread_response_is_closed(self, make_transport, endpoint, monkeypatch):
        """A response nobody will read is closed, not dropped."""
        closed: list[bool] = []

        class TrackedStream(httpx.AsyncByteStream):
            async def __aiter__(self):
                yield b"{}"

            async def aclose(self) -> None:
                closed.append(True)

        arrived = asyncio.get_running_loop().create_future()

        async def exchange(client, request, timeout):
            return await arrived

        transport = make_transport()
        monkeypatch.setattr(transport, "_exchange", exchange)
        sender = asyncio.create_task(transport.send(endpoint, query(), JsonResponseParser()))
        await asyncio.sleep(0.01)

        arrived.set_result(httpx.Response(200, stream=TrackedStream()))
        sender.cancel()

        with pytest.raises(asyncio.CancelledError):
            await sender
        assert closed == [True]


# =============================================================================
# Configuration
# =============================================================================


class TestConfiguration:
    """Tests for runtime-settable configuration."""

    def test_negative_max_retries_rejected(self):
        with pytest.raises(ConfigurationError):
            WikiTransport(max_retries=-1)

    def test_settings_are_mutable(self):
        transport = WikiTransport(max_retries=3, retry_delay=1.0, timeout=2.0)

        transport.max_retries = 0
        transport.retry_delay = 0.5
        transport.timeout = 1.5

        assert (transport.max_retries, transport.retry_delay, transport.timeout) == (0, 0.5, 1.5)

    def test_defaults_from_settings(self):
        from wikiclient.core.config import Settings

        transport = WikiTransport(Settings(max_retries=7, request_timeout=3.0))

        assert transport.max_retries == 7
        assert transport.timeout == 3.0

    async def test_change_applies_to_next_call(self, wiki, make_transport, endpoint):
        """Lowering max_retries affects the following call."""
        wiki.script(httpx.Response(503), {})
        transport = make_transport(max_retries=1)
        await transport.send(endpoint, query(), JsonResponseParser())

        transport.max_retries = 0
        wiki.script(httpx.Response(503))
        with pytest.raises(TransportError):
            await transport.send(endpoint, query(), JsonResponseParser())

        assert wiki.calls == 3


# =============================================================================
# Retry-After
# =============================================================================


class TestRetryAfter:
    """Tests for retry_after_delay."""

    def test_delta_seconds(self):
        assert retry_after_delay(httpx.Response(503, headers={"Retry-After": "3"}), 10.0) == 3.0

    def test_clamped_to_retry_delay(self):
        assert retry_after_delay(httpx.Response(503, headers={"Retry-After": "60"}), 5.0) == 5.0

    def test_missing_header_uses_retry_delay(self):
        assert retry_after_delay(httpx.Response(503), 4.0) == 4.0

    def test_http_date_in_past_is_zero(self):
        response = httpx.Response(503, headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"})

        assert retry_after_delay(response, 10.0) == 0.0

    def test_http_date_in_future_is_clamped(self):
        response = httpx.Response(503, headers={"Retry-After": "Fri, 31 Dec 2999 23:59:59 GMT"})

        assert retry_after_delay(response, 10.0) == 10.0

    def test_garbage_uses_retry_delay(self):
        response = httpx.Response(503, headers={"Retry-After": "soon"})

        assert retry_after_delay(response, 2.0) == 2.0
