"""
PURPOSE: Fixed-capacity ring buffer used for rolling tick and prediction windows.

Appending to a full buffer evicts the oldest entry in O(1).
"""

from collections import deque
from typing import Generic, Iterator, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """Rolling window holding at most `capacity` of the most recent items."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._items: deque = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._items.maxlen

    def append(self, item: T) -> None:
        self._items.append(item)

    def last(self, n: int) -> list[T]:
        """Return up to the `n` most recent items, oldest first."""
        if n <= 0:
            return []
        if n >= len(self._items):
            return list(self._items)
        return list(self._items)[-n:]

    def latest(self) -> T | None:
        if not self._items:
            return None
        return self._items[-1]

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)
