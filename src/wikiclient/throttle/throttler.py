"""Modification throttler for mutating API calls.

Keeps at most one mutating operation per site inside its protected section
and spaces consecutive operations by a minimum interval.

Example:
    >>> from wikiclient.throttle import ModificationThrottler
    >>>
    >>> throttler = ModificationThrottler(min_interval=5.0)
    >>>
    >>> # In async code
    >>> async with throttler.acquire(endpoint, "Edit: Sandbox") as handle:
    ...     # ... make the edit request ...
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TypeVar

from wikiclient.core.cancellation import CancellationToken, ensure_token
from wikiclient.core.exceptions import ConfigurationError

logger = logging.getLogger("wikiclient.throttle")

T = TypeVar("T")


@dataclass
class ThrottleSlot:
    """Mutual exclusion and last-release time for one site."""

    lock: asyncio.Lock
    released_at: float | None = None


@dataclass(frozen=True)
class ThrottleHandle:
    """Proof of being inside a site's protected section.

    Attributes:
        site_key: Site the slot belongs to
        label: Description of the work, used in log lines
        entered_at: Clock reading when the section was entered
        waited: Seconds spent waiting for the slot and the interval
    """

    site_key: str
    label: str
    entered_at: float
    waited: float


class ModificationThrottler:
    """Per-site serialization gate for mutating operations.

    A second ``acquire`` for the same site suspends until the first handle
    is released, and no handle is granted until ``min_interval`` seconds
    have passed since the previous release. Different sites never block
    each other. Local to this process only.

    Example:
        >>> throttler = ModificationThrottler(min_interval=1.0)
        >>> result = await throttler.run(endpoint, "Delete: Foo", delete_foo)

    Attributes:
        min_interval: Minimum seconds between the end of one protected
            section and the start of the next on the same site
    """

    def __init__(self, min_interval: float = 0.0, clock: Callable[[], float] = time.monotonic):
        """Initialize throttler.

        Args:
            min_interval: Minimum spacing between mutating operations (default: 0)
            clock: Monotonic clock, replaceable in tests
        """
        self.min_interval = min_interval
        self._clock = clock
        self._slots: dict[str, ThrottleSlot] = {}

    @property
    def min_interval(self) -> float:
        return self._min_interval

    @min_interval.setter
    def min_interval(self, value: float) -> None:
        if value < 0:
            raise ConfigurationError("min_interval must not be negative")
        self._min_interval = value

    def _slot(self, site_key: str) -> ThrottleSlot:
        slot = self._slots.get(site_key)
        if slot is None:
            slot = self._slots[site_key] = ThrottleSlot(lock=asyncio.Lock())
        return slot

    def is_busy(self, site_key: str) -> bool:
        """Whether a mutating operation on ``site_key`` holds the slot."""
        slot = self._slots.get(site_key)
        return slot is not None and slot.lock.locked()

    @asynccontextmanager
    async def acquire(
        self,
        site_key: str,
        label: str = "",
        cancellation: CancellationToken | None = None,
    ) -> AsyncIterator[ThrottleHandle]:
        """Enter the protected section for ``site_key``.

        Args:
            site_key: Site identity, usually the API endpoint
            label: Description of the work for log lines
            cancellation: Interrupts waiting for the slot or the interval

        Yields:
            ThrottleHandle for the protected section

        Raises:
            OperationCancelledError: Cancelled before entering; the protected
                section is never entered in that case
        """
        cancellation = ensure_token(cancellation)
        slot = self._slot(site_key)
        queued_at = self._clock()
        logger.debug("Queued %r on %s.", label, site_key)

        # A lock granted after the caller gave up is handed straight back
        await cancellation.guard(slot.lock.acquire(), on_abandon=lambda _: slot.lock.release())
        entered = False
        try:
            interval = self._min_interval
            if slot.released_at is not None and interval > 0:
                wait_time = slot.released_at + interval - self._clock()
                if wait_time > 0:
                    logger.debug("Throttling %r on %s for %.2fs.", label, site_key, wait_time)
                    await cancellation.guard(asyncio.sleep(wait_time))
            entered_at = self._clock()
            entered = True
            logger.debug("Entered %r on %s.", label, site_key)
            yield ThrottleHandle(site_key, label, entered_at, entered_at - queued_at)
        finally:
            if entered:
                slot.released_at = self._clock()
                logger.debug("Left %r on %s.", label, site_key)
            slot.lock.release()

    async def run(
        self,
        site_key: str,
        label: str,
        body: Callable[[], Awaitable[T]],
        cancellation: CancellationToken | None = None,
    ) -> T:
        """Run ``body`` inside the protected section for ``site_key``."""
        async with self.acquire(site_key, label, cancellation):
            return await body()

    def reset(self, site_key: str | None = None) -> None:
        """Forget release times, for one site or all of them.

        Useful for testing or after long pauses.
        """
        if site_key is None:
            slots = list(self._slots.values())
        else:
            slots = [self._slots[site_key]] if site_key in self._slots else []
        for slot in slots:
            slot.released_at = None


__all__ = [
    "ModificationThrottler",
    "ThrottleHandle",
    "ThrottleSlot",
]
