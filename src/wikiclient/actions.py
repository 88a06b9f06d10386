"""Page actions.

Operations built on the core. Edit, move and delete run inside the site's
modification throttle, carry a security token as their last form field and
map the API's error codes onto the client's exception types. Purge is a
plain request.

Example:
    >>> from wikiclient.actions import edit_page, move_page
    >>>
    >>> changed = await edit_page(site, "Sandbox", "Hello", summary="test edit")
    >>> await move_page(site, "Sandbox", "Sandbox/Old", reason="archive")
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from wikiclient.core.cancellation import CancellationToken
from wikiclient.core.exceptions import (
    InvalidOperationError,
    RemoteOperationError,
    UnauthorizedOperationError,
)
from wikiclient.site import WikiSite

logger = logging.getLogger("wikiclient.actions")

# Ask the server to refuse writes while replication lag exceeds 5 seconds
MAXLAG = 5


def _unauthorized(error: RemoteOperationError) -> UnauthorizedOperationError:
    return UnauthorizedOperationError(error.code, error.info, error.payload)


async def edit_page(
    site: WikiSite,
    title: str,
    text: str,
    summary: str | None = None,
    *,
    minor: bool = False,
    bot: bool = True,
    base_timestamp: datetime | None = None,
    watchlist: str | None = None,
    cancellation: CancellationToken | None = None,
) -> bool:
    """Replace the content of ``title`` with ``text``.

    Returns:
        True if a new revision was saved, False for a null edit

    Raises:
        UnauthorizedOperationError: The page is protected
        InvalidOperationError: The page cannot exist (e.g. a Special: title)
        OperationConflictError: Edit conflict with ``base_timestamp``
        RemoteOperationError: Any other API error
    """
    async with site.modification(f"Edit: {title}", cancellation):
        try:
            reply = await site.post_with_token(
                {
                    "action": "edit",
                    "title": title,
                    "minor": minor,
                    "bot": bot,
                    "recreate": True,
                    "maxlag": MAXLAG,
                    "basetimestamp": base_timestamp,
                    "watchlist": watchlist,
                    "summary": summary,
                    "text": text,
                },
                cancellation=cancellation,
            )
        except RemoteOperationError as e:
            if e.code == "pagecannotexist":
                raise InvalidOperationError(e.code, e.info, e.payload) from e
            raise

    edit = reply.get("edit", {})
    result = edit.get("result")
    if result != "Success":
        # No "error" member, but the edit did not go through (e.g. a captcha)
        raise RemoteOperationError(result, None, edit)
    if edit.get("nochange") is not None:
        logger.info("Submitted empty edit to [[%s]].", title)
        return False
    logger.info("Edited [[%s]]. New revid=%s.", edit.get("title", title), edit.get("newrevid"))
    return True


async def move_page(
    site: WikiSite,
    title: str,
    new_title: str,
    reason: str | None = None,
    *,
    move_talk: bool = True,
    move_subpages: bool = False,
    no_redirect: bool = False,
    ignore_warnings: bool = False,
    watchlist: str | None = None,
    cancellation: CancellationToken | None = None,
) -> dict[str, Any]:
    """Rename ``title`` to ``new_title``.

    Returns:
        The ``move`` member of the reply (``from``, ``to``, ...)

    Raises:
        UnauthorizedOperationError: The page or target title is protected
    """
    if new_title == title:
        return {"from": title, "to": new_title}
    async with site.modification(f"Move: {title}", cancellation):
        try:
            reply = await site.post_with_token(
                {
                    "action": "move",
                    "from": title,
                    "to": new_title,
                    "maxlag": MAXLAG,
                    "movetalk": move_talk,
                    "movesubpages": move_subpages,
                    "noredirect": no_redirect,
                    "ignorewarnings": ignore_warnings,
                    "watchlist": watchlist,
                    "reason": reason,
                },
                cancellation=cancellation,
            )
        except UnauthorizedOperationError:
            raise
        except RemoteOperationError as e:
            if e.code and e.code.startswith("cantmove"):
                raise _unauthorized(e) from e
            raise

    move = reply.get("move", {})
    logger.info("Page [[%s]] has been moved to [[%s]].", move.get("from"), move.get("to"))
    return move


async def delete_page(
    site: WikiSite,
    title: str,
    reason: str | None = None,
    *,
    watchlist: str | None = None,
    cancellation: CancellationToken | None = None,
) -> bool:
    """Delete ``title``.

    Returns:
        True if deleted, False if the page was already gone
    """
    async with site.modification(f"Delete: {title}", cancellation):
        try:
            reply = await site.post_with_token(
                {
                    "action": "delete",
                    "title": title,
                    "maxlag": MAXLAG,
                    "watchlist": watchlist,
                    "reason": reason,
                },
                cancellation=cancellation,
            )
        except RemoteOperationError as e:
            # cantdelete: maybe it was deleted already by someone else
            if e.code in ("cantdelete", "missingtitle"):
                return False
            raise

    logger.info("[[%s]] has been deleted.", reply.get("delete", {}).get("title", title))
    return True


async def purge_pages(
    site: WikiSite,
    titles: Iterable[str],
    *,
    force_link_update: bool = False,
    force_recursive_link_update: bool = False,
    cancellation: CancellationToken | None = None,
) -> list[str]:
    """Purge the parser cache of ``titles``.

    Sent outside the modification throttle and without a token.

    Returns:
        Titles that could not be purged (missing or invalid)
    """
    titles = list(titles)
    if not titles:
        return []
    reply = await site.get_json(
        {
            "action": "purge",
            "titles": titles,
            "forcelinkupdate": force_link_update,
            "forcerecursivelinkupdate": force_recursive_link_update,
        },
        cancellation,
    )
    failed = []
    for entry in reply.get("purge", []):
        if "purged" not in entry:
            failed.append(entry.get("title"))
    return failed


__all__ = ["delete_page", "edit_page", "move_page", "purge_pages"]
