"""Continuation listings.

Example:
    >>> from wikiclient.continuation import ContinuationCursor, decoder_for
    >>> cursor = ContinuationCursor(
    ...     transport, endpoint, {"action": "query", "list": "recentchanges"},
    ...     decoder_for("list", "recentchanges"),
    ... )
    >>> first_ten = await cursor.to_list(limit=10)
"""

from wikiclient.continuation.cursor import ContinuationCursor
from wikiclient.continuation.decoders import (
    DECODERS,
    DecodedPage,
    GeneratorDecoder,
    ListDecoder,
    PageDecoder,
    PropDecoder,
    decoder_for,
    extract_continuation,
    register_decoder,
)

__all__ = [
    "DECODERS",
    "ContinuationCursor",
    "DecodedPage",
    "GeneratorDecoder",
    "ListDecoder",
    "PageDecoder",
    "PropDecoder",
    "decoder_for",
    "extract_continuation",
    "register_decoder",
]
