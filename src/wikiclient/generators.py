"""Listing generators.

Builders for common paginated listings. Each returns a
``ContinuationCursor`` of typed items; nothing is fetched until the cursor
is iterated.

Example:
    >>> from wikiclient.generators import revisions
    >>>
    >>> async for rev in revisions(site, "Main Page", page_size=50, user="Alice"):
    ...     print(rev.id, rev.timestamp, rev.comment)
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from wikiclient.continuation.cursor import ContinuationCursor
from wikiclient.continuation.decoders import decoder_for
from wikiclient.core.cancellation import CancellationToken
from wikiclient.models import PageStub, RecentChange, Revision
from wikiclient.site import WikiSite

DEFAULT_REVISION_PROPS = ("ids", "timestamp", "flags", "comment", "user", "size", "sha1")


def revisions(
    site: WikiSite,
    title: str,
    *,
    page_size: int = 50,
    time_ascending: bool = False,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    start_id: int | None = None,
    end_id: int | None = None,
    user: str | None = None,
    exclude_user: str | None = None,
    props: Iterable[str] = DEFAULT_REVISION_PROPS,
    cancellation: CancellationToken | None = None,
) -> ContinuationCursor[Revision]:
    """Revisions of one page, newest first unless ``time_ascending``.

    ``start_time`` must be later than ``end_time``; the requirement is
    reversed when ``time_ascending`` is set.
    """
    props = list(props)
    return site.enumerate(
        {
            "action": "query",
            "formatversion": 2,
            "prop": "revisions",
            "titles": title,
            "rvdir": "newer" if time_ascending else "older",
            "rvstart": start_time,
            "rvend": end_time,
            "rvstartid": start_id,
            "rvendid": end_id,
            "rvuser": user,
            "rvexcludeuser": exclude_user,
            "rvprop": props,
            "rvslots": "main" if "content" in props else None,
        },
        decoder_for("prop", "revisions", Revision.from_json),
        page_size=page_size,
        page_size_param="rvlimit",
        cancellation=cancellation,
    )


def all_pages(
    site: WikiSite,
    *,
    prefix: str | None = None,
    namespace: int = 0,
    start_title: str | None = None,
    page_size: int = 500,
    cancellation: CancellationToken | None = None,
) -> ContinuationCursor[PageStub]:
    """All pages of ``namespace`` in title order."""
    return site.enumerate(
        {
            "action": "query",
            "formatversion": 2,
            "list": "allpages",
            "apnamespace": namespace,
            "apprefix": prefix,
            "apfrom": start_title,
        },
        decoder_for("list", "allpages", PageStub.model_validate),
        page_size=page_size,
        page_size_param="aplimit",
        cancellation=cancellation,
    )


def category_members(
    site: WikiSite,
    category: str,
    *,
    member_types: Iterable[str] = ("page", "subcat", "file"),
    page_size: int = 500,
    cancellation: CancellationToken | None = None,
) -> ContinuationCursor[PageStub]:
    """Members of ``category``; the ``Category:`` prefix is optional."""
    if ":" not in category:
        category = f"Category:{category}"
    return site.enumerate(
        {
            "action": "query",
            "formatversion": 2,
            "list": "categorymembers",
            "cmtitle": category,
            "cmtype": list(member_types),
        },
        decoder_for("list", "categorymembers", PageStub.model_validate),
        page_size=page_size,
        page_size_param="cmlimit",
        cancellation=cancellation,
    )


def recent_changes(
    site: WikiSite,
    *,
    namespaces: Iterable[int] | None = None,
    change_types: Iterable[str] | None = None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    user: str | None = None,
    bot_edits: bool | None = None,
    page_size: int = 500,
    cancellation: CancellationToken | None = None,
) -> ContinuationCursor[RecentChange]:
    """Recent changes, newest first."""
    show = None
    if bot_edits is not None:
        show = "bot" if bot_edits else "!bot"
    return site.enumerate(
        {
            "action": "query",
            "formatversion": 2,
            "list": "recentchanges",
            "rcprop": ["title", "ids", "user", "timestamp", "comment"],
            "rcnamespace": list(namespaces) if namespaces is not None else None,
            "rctype": list(change_types) if change_types is not None else None,
            "rcstart": start_time,
            "rcend": end_time,
            "rcuser": user,
            "rcshow": show,
        },
        decoder_for("list", "recentchanges", RecentChange.model_validate),
        page_size=page_size,
        page_size_param="rclimit",
        cancellation=cancellation,
    )


__all__ = ["all_pages", "category_members", "recent_changes", "revisions"]
