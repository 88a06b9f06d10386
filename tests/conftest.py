"""Shared fixtures: a scripted fake wiki behind httpx.MockTransport."""

from __future__ import annotations

import asyncio
from typing import Any
from urllib.parse import parse_qsl

import httpx
import pytest

from wikiclient.http.client import WikiTransport

ENDPOINT = "https://test.wiki.example/w/api.php"


class FakeWiki:
    """Replays scripted replies and records every request it receives.

    A reply may be an ``httpx.Response``, a JSON dict (sent as HTTP 200),
    an exception to raise, a float (seconds to hang before answering 200
    with ``{}``), or a callable taking the request.
    """

    def __init__(self) -> None:
        self.replies: list[Any] = []
        self.requests: list[httpx.Request] = []

    def script(self, *replies: Any) -> FakeWiki:
        self.replies.extend(replies)
        return self

    @property
    def calls(self) -> int:
        return len(self.requests)

    def form(self, index: int = -1) -> dict[str, str]:
        """Decoded urlencoded form of a recorded request."""
        return dict(parse_qsl(self.requests[index].content.decode(), keep_blank_values=True))

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.replies:
            raise AssertionError(f"Unexpected request #{len(self.requests)}")
        reply = self.replies.pop(0)
        if callable(reply):
            reply = reply(request)
            if asyncio.iscoroutine(reply):
                reply = await reply
        if isinstance(reply, float):
            await asyncio.sleep(reply)
            return httpx.Response(200, json={})
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            return httpx.Response(200, json=reply)
        return reply


@pytest.fixture
def wiki() -> FakeWiki:
    return FakeWiki()


@pytest.fixture
async def make_transport(wiki: FakeWiki):
    """Factory for transports wired to the fake wiki, with no retry delay."""
    created: list[WikiTransport] = []

    def factory(**kwargs: Any) -> WikiTransport:
        kwargs.setdefault("retry_delay", 0.0)
        kwargs.setdefault("timeout", 5.0)
        transport = WikiTransport(transport=httpx.MockTransport(wiki.handler), **kwargs)
        created.append(transport)
        return transport

    yield factory
    for transport in created:
        await transport.close()


@pytest.fixture
def endpoint() -> str:
    return ENDPOINT
