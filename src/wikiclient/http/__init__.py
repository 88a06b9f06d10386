"""WikiClient HTTP layer.

Provides the transport, request messages and response parsers.

Example:
    >>> from wikiclient.http import WikiTransport, RequestMessage, JsonResponseParser
    >>>
    >>> async with WikiTransport(max_retries=3) as transport:
    ...     data = await transport.send(
    ...         "https://test.wikipedia.org/w/api.php",
    ...         RequestMessage({"action": "query", "meta": "siteinfo"}),
    ...         JsonResponseParser(),
    ...     )
"""

from wikiclient.http.client import WikiTransport, retry_after_delay
from wikiclient.http.messages import FilePayload, RequestMessage
from wikiclient.http.parsing import (
    JsonResponseParser,
    ResponseParser,
    ResponseParsingContext,
    error_from_payload,
    register_error_code,
)

__all__ = [
    "FilePayload",
    "JsonResponseParser",
    "RequestMessage",
    "ResponseParser",
    "ResponseParsingContext",
    "WikiTransport",
    "error_from_payload",
    "register_error_code",
    "retry_after_delay",
]
