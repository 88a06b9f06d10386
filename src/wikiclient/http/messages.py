"""Request messages.

A ``RequestMessage`` is the logical form of one API call: an immutable
bag of parameters, optional file payloads and a short identity used in
log lines. The transport turns it into a fresh ``httpx.Request`` on every
attempt, so everything in it must be re-buildable.

Example:
    >>> from wikiclient.http.messages import RequestMessage
    >>> msg = RequestMessage({"action": "query", "list": "allpages", "apnamespace": 0})
    >>> msg.params["apnamespace"]
    '0'
    >>> msg.with_params({"apcontinue": "Foo"}).params["apcontinue"]
    'Foo'
"""

from __future__ import annotations

import itertools
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import IO, Any

import httpx

from wikiclient.core.exceptions import RequestRebuildError

_message_ids = itertools.count(1)


def format_param(value: Any) -> str | None:
    """Convert a Python value into its MediaWiki form-field representation.

    ``None`` and ``False`` mean "omit the field"; MediaWiki treats the mere
    presence of a field as boolean true.

    Example:
        >>> from wikiclient.http.messages import format_param
        >>> format_param(True), format_param(False), format_param(None)
        ('1', None, None)
        >>> format_param(["Foo", "Bar"])
        'Foo|Bar'
        >>> from datetime import datetime, UTC
        >>> format_param(datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC))
        '2024-01-02T03:04:05Z'
    """
    if value is None or value is False:
        return None
    if value is True:
        return "1"
    if isinstance(value, Enum):
        return format_param(value.value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.strftime("%Y-%m-%dT%H:%M:%SZ")
    if isinstance(value, str):
        return value
    if isinstance(value, Iterable) and not isinstance(value, (bytes, Mapping)):
        return "|".join(str(format_param(v)) for v in value if format_param(v) is not None)
    return str(value)


class FilePayload:
    """Binary content attached to a multipart request.

    ``content`` is either ``bytes`` or a binary file object. Seekable files
    are rewound to their initial position on every build; a non-seekable
    stream can be read only once, after which rebuilding the request fails
    with ``RequestRebuildError``.
    """

    def __init__(
        self,
        filename: str,
        content: bytes | IO[bytes],
        content_type: str = "application/octet-stream",
    ) -> None:
        self.filename = filename
        self.content_type = content_type
        self._content = content
        self._start: int | None = None
        self._consumed = False
        if not isinstance(content, bytes) and _seekable(content):
            self._start = content.tell()

    @property
    def regenerable(self) -> bool:
        """Whether the payload can be read again."""
        return isinstance(self._content, bytes) or self._start is not None

    def read(self) -> bytes:
        """Return the payload bytes for one HTTP attempt."""
        if isinstance(self._content, bytes):
            return self._content
        if self._start is not None:
            self._content.seek(self._start)
            return self._content.read()
        if self._consumed:
            raise RequestRebuildError(f"Stream payload {self.filename!r} has already been consumed")
        self._consumed = True
        return self._content.read()


def _seekable(stream: IO[bytes]) -> bool:
    try:
        return bool(stream.seekable())
    except (AttributeError, ValueError):
        return False


class RequestMessage:
    """Immutable parameters of one logical API request.

    Parameter values are normalized with ``format_param``; fields that
    normalize to ``None`` are dropped. Insertion order is kept, so fields
    added last (like ``token``) are sent last.

    Attributes:
        id: Short identity for log lines, e.g. ``"#12"``.
        params: Read-only mapping of form fields.
        files: Read-only mapping of multipart file fields.
        method: HTTP method, ``"POST"`` unless stated otherwise.
    """

    def __init__(
        self,
        params: Mapping[str, Any],
        files: Mapping[str, FilePayload] | None = None,
        *,
        id: str | None = None,
        method: str = "POST",
    ) -> None:
        normalized: dict[str, str] = {}
        for key, value in params.items():
            text = format_param(value)
            if text is not None:
                normalized[key] = text
        self.params: Mapping[str, str] = MappingProxyType(normalized)
        self.files: Mapping[str, FilePayload] = MappingProxyType(dict(files or {}))
        self.id = id or f"#{next(_message_ids)}"
        self.method = method.upper()

    def with_params(self, extra: Mapping[str, Any], *, overwrite: bool = True) -> RequestMessage:
        """Return a copy with ``extra`` merged in.

        With ``overwrite=False`` existing keys win over ``extra``. The copy
        keeps this message's id and file payloads.
        """
        if overwrite:
            merged = {**self.params, **extra}
        else:
            merged = {**extra, **self.params}
        return RequestMessage(merged, self.files, id=self.id, method=self.method)

    @property
    def is_multipart(self) -> bool:
        return bool(self.files)

    def build(self, client: httpx.AsyncClient, url: str) -> httpx.Request:
        """Build a fresh HTTP request for one attempt.

        Raises:
            RequestRebuildError: If a one-shot payload was already consumed.
        """
        if self.method == "GET":
            return client.build_request("GET", url, params=dict(self.params))
        if self.files:
            files = {
                name: (payload.filename, payload.read(), payload.content_type)
                for name, payload in self.files.items()
            }
            return client.build_request(self.method, url, data=dict(self.params), files=files)
        return client.build_request(self.method, url, data=dict(self.params))

    def __repr__(self) -> str:
        action = self.params.get("action", "?")
        return f"RequestMessage({self.id}, action={action})"
