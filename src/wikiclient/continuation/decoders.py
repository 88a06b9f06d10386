"""Page decoders for continuation listings.

A decoder turns one decoded API reply into the items of that page plus the
continuation marker, if any. Reply shapes form a closed set selected by a
discriminator (``"list"``, ``"prop"``, ``"generator"``); ``DECODERS`` maps
each discriminator to its decoder class.

Example:
    >>> from wikiclient.continuation.decoders import decoder_for
    >>> decoder = decoder_for("list", "allpages")
    >>> page = decoder.decode({
    ...     "continue": {"apcontinue": "B", "continue": "-||"},
    ...     "query": {"allpages": [{"pageid": 1, "ns": 0, "title": "A"}]},
    ... })
    >>> [item["title"] for item in page.items]
    ['A']
    >>> page.continuation
    {'apcontinue': 'B', 'continue': '-||'}
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

ItemFactory = Callable[..., Any]


def extract_continuation(payload: dict[str, Any]) -> dict[str, str] | None:
    """Return the flat ``continue`` map of a reply, or None when absent.

    An empty map counts as absent: echoing it back would repeat the same
    request forever.

    Example:
        >>> from wikiclient.continuation.decoders import extract_continuation
        >>> extract_continuation({"continue": {"rvcontinue": 20240101, "continue": "||"}})
        {'rvcontinue': '20240101', 'continue': '||'}
        >>> extract_continuation({"batchcomplete": True}) is None
        True
    """
    marker = payload.get("continue")
    if not marker:
        return None
    return {str(key): str(value) for key, value in marker.items()}


def _pages(query: dict[str, Any]) -> Iterable[dict[str, Any]]:
    pages = query.get("pages") or []
    # formatversion=1 keys pages by id, formatversion=2 returns a list
    if isinstance(pages, dict):
        return pages.values()
    return pages


@dataclass
class DecodedPage(Generic[T]):
    """Items of one reply plus its continuation marker."""

    items: list[T] = field(default_factory=list)
    continuation: dict[str, str] | None = None


class PageDecoder(Protocol[T_co]):
    """Decodes one reply of a listing."""

    def decode(self, payload: dict[str, Any]) -> DecodedPage[T_co]: ...


class ListDecoder:
    """Items are the entries of ``query.<module>`` (``list=`` modules)."""

    kind = "list"

    def __init__(self, module: str, factory: ItemFactory | None = None) -> None:
        self.module = module
        self.factory = factory

    def decode(self, payload: dict[str, Any]) -> DecodedPage[Any]:
        entries = payload.get("query", {}).get(self.module) or []
        if self.factory is not None:
            entries = [self.factory(entry) for entry in entries]
        return DecodedPage(list(entries), extract_continuation(payload))


class PropDecoder:
    """Items are ``query.pages[*].<module>`` entries (``prop=`` modules).

    The factory receives ``(entry, page)`` so items can refer to their page.
    """

    kind = "prop"

    def __init__(self, module: str, factory: ItemFactory | None = None) -> None:
        self.module = module
        self.factory = factory

    def decode(self, payload: dict[str, Any]) -> DecodedPage[Any]:
        items = []
        for page in _pages(payload.get("query", {})):
            for entry in page.get(self.module) or []:
                items.append(self.factory(entry, page) if self.factory else entry)
        return DecodedPage(items, extract_continuation(payload))


class GeneratorDecoder:
    """Items are the pages produced by a ``generator=`` module."""

    kind = "generator"

    def __init__(self, module: str, factory: ItemFactory | None = None) -> None:
        self.module = module
        self.factory = factory

    def decode(self, payload: dict[str, Any]) -> DecodedPage[Any]:
        pages = list(_pages(payload.get("query", {})))
        if self.factory is not None:
            pages = [self.factory(page) for page in pages]
        return DecodedPage(pages, extract_continuation(payload))


DECODERS: dict[str, Callable[..., PageDecoder[Any]]] = {
    ListDecoder.kind: ListDecoder,
    PropDecoder.kind: PropDecoder,
    GeneratorDecoder.kind: GeneratorDecoder,
}


def register_decoder(kind: str, decoder_type: Callable[..., PageDecoder[Any]]) -> None:
    """Register a decoder class under a discriminator."""
    DECODERS[kind] = decoder_type


def decoder_for(kind: str, module: str, factory: ItemFactory | None = None) -> PageDecoder[Any]:
    """Create the decoder registered for ``kind``.

    Raises:
        KeyError: If no decoder is registered for ``kind``.
    """
    try:
        decoder_type = DECODERS[kind]
    except KeyError:
        raise KeyError(f"No page decoder registered for {kind!r}") from None
    return decoder_type(module, factory)


__all__ = [
    "DECODERS",
    "DecodedPage",
    "GeneratorDecoder",
    "ListDecoder",
    "PageDecoder",
    "PropDecoder",
    "decoder_for",
    "extract_continuation",
    "register_decoder",
]
