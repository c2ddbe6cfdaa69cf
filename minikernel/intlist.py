"""A last-in, first-out list of integers that grows at the front."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator


class ListEmptyError(IndexError):
    """Raised when an item is removed from an empty list."""


class IntList:
    """A list of integers with insertion and removal at the front."""

    def __init__(self) -> None:
        self._items: deque[int] = deque()

    def prepend(self, value: int) -> None:
        """Put ``value`` at the beginning of the list."""
        self._items.appendleft(value)

    def remove(self) -> int:
        """Take the first item off the list and return it."""
        if not self._items:
            raise ListEmptyError("remove from an empty list")
        return self._items.popleft()

    def is_empty(self) -> bool:
        """Return True if the list holds no items."""
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[int]:
        return iter(self._items)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self._items)!r})"