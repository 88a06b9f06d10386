"""Cooperative cancellation.

A ``CancellationToken`` is handed to every externally invoked operation.
It is checked before each network attempt, and any wait that goes through
``guard()`` (retry backoff, throttle slot, token fetch) is interrupted as
soon as the token is cancelled.

Example:
    >>> import asyncio
    >>> from wikiclient.core.cancellation import CancellationToken
    >>> token = CancellationToken()
    >>> token.is_cancelled
    False
    >>> token.cancel()
    >>> token.is_cancelled
    True
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from wikiclient.core.exceptions import OperationCancelledError

T = TypeVar("T")


class CancellationToken:
    """Signal shared between a caller and the operations it starts.

    Cancellation is one-way: once cancelled, a token stays cancelled.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        """Whether ``cancel()`` has been called."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation of every operation observing this token."""
        self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise ``OperationCancelledError`` if the token is cancelled."""
        if self._event.is_set():
            raise OperationCancelledError("Operation cancelled via CancellationToken")

    async def guard(
        self,
        awaitable: Awaitable[T],
        on_abandon: Callable[[T], Any] | None = None,
    ) -> T:
        """Await ``awaitable`` unless the token is cancelled first.

        The awaitable is cancelled when the token wins the race. Pass an
        ``asyncio.shield()`` to keep a shared operation running for other
        waiters.

        Args:
            awaitable: Operation to race against the token
            on_abandon: Called with the result when ``awaitable`` completed
                but the caller leaves without receiving it (token cancelled
                or the calling task itself cancelled). May be a coroutine
                function. Used to undo side effects such as a taken lock.

        Raises:
            OperationCancelledError: If the token is (or becomes) cancelled
                before ``awaitable`` completes.
        """
        if self._event.is_set():
            # Close a bare coroutine so it does not warn about never being awaited
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        delivered = False
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
            if task in done:
                delivered = True
                return task.result()
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            if (
                not delivered
                and on_abandon is not None
                and not task.cancelled()
                and task.exception() is None
            ):
                outcome = on_abandon(task.result())
                if inspect.isawaitable(outcome):
                    await outcome

        raise OperationCancelledError("Operation cancelled via CancellationToken")


def ensure_token(cancellation: CancellationToken | None) -> CancellationToken:
    """Return ``cancellation`` or a fresh token that is never cancelled."""
    return cancellation if cancellation is not None else CancellationToken()


__all__ = ["CancellationToken", "ensure_token"]
