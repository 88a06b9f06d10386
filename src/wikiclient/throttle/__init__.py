"""Throttling of mutating operations.

Example:
    >>> from wikiclient.throttle import ModificationThrottler
    >>> throttler = ModificationThrottler(min_interval=2.0)
    >>> async with throttler.acquire("https://test.wikipedia.org/w/api.php", "Edit: Foo"):
    ...     ...
"""

from wikiclient.throttle.throttler import ModificationThrottler, ThrottleHandle, ThrottleSlot

__all__ = [
    "ModificationThrottler",
    "ThrottleHandle",
    "ThrottleSlot",
]
