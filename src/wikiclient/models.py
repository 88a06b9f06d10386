"""Typed items produced by listings.

These are thin views over the JSON the API returns for list and prop
modules (``formatversion=2``). Unknown fields are ignored so newer server
versions do not break decoding.

Example:
    >>> from wikiclient.models import PageStub, Revision
    >>> page = PageStub.model_validate({"pageid": 15580374, "ns": 0, "title": "Main Page"})
    >>> page.page_id, page.namespace
    (15580374, 0)
    >>> rev = Revision.model_validate({"revid": 2, "parentid": 1, "user": "Alice"})
    >>> rev.id, rev.parent_id
    (2, 1)
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WikiModel(BaseModel):
    """Base model with standard configuration."""

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class PageStub(WikiModel):
    """Identity of a page: id, namespace and title."""

    page_id: int | None = Field(default=None, alias="pageid")
    namespace: int = Field(default=0, alias="ns")
    title: str | None = None
    missing: bool = False

    @property
    def exists(self) -> bool:
        """Whether the page exists on the site."""
        return not self.missing and self.page_id is not None

    def __str__(self) -> str:
        return self.title or f"#{self.page_id}"


class Revision(WikiModel):
    """A single page revision.

    Example:
        >>> from wikiclient.models import Revision
        >>> rev = Revision.model_validate(
        ...     {"revid": 10, "user": "Bob", "timestamp": "2024-05-01T12:00:00Z", "minor": True}
        ... )
        >>> rev.timestamp.year, rev.minor
        (2024, True)
    """

    id: int = Field(alias="revid")
    parent_id: int | None = Field(default=None, alias="parentid")
    user: str | None = None
    timestamp: datetime | None = None
    comment: str | None = None
    minor: bool = False
    size: int | None = None
    sha1: str | None = None
    content: str | None = None
    page: PageStub | None = None

    @classmethod
    def from_json(cls, entry: dict[str, Any], page: dict[str, Any] | None = None) -> Revision:
        """Decode a ``prop=revisions`` entry, attaching its page."""
        data = dict(entry)
        slots = data.pop("slots", None)
        if slots and "main" in slots:
            data.setdefault("content", slots["main"].get("content"))
        if page is not None:
            data["page"] = PageStub.model_validate(page)
        return cls.model_validate(data)


class RecentChange(WikiModel):
    """An entry of ``list=recentchanges``."""

    rc_id: int = Field(alias="rcid")
    type: str
    title: str | None = None
    namespace: int = Field(default=0, alias="ns")
    page_id: int | None = Field(default=None, alias="pageid")
    revision_id: int | None = Field(default=None, alias="revid")
    old_revision_id: int | None = Field(default=None, alias="old_revid")
    user: str | None = None
    timestamp: datetime | None = None
    comment: str | None = None


__all__ = ["PageStub", "RecentChange", "Revision", "WikiModel"]
