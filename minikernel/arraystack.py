"""A fixed-capacity LIFO stack and its demonstration command."""

from __future__ import annotations

import argparse
import sys
from typing import Generic, TypeVar

T = TypeVar("T")


class StackFullError(OverflowError):
    """Raised when pushing onto a stack that has no more room."""


class StackEmptyError(IndexError):
    """Raised when popping from a stack that holds nothing."""


def _successor(value):
    """Return the value after ``value``: the next integer or the next character."""
    if isinstance(value, str):
        return chr(ord(value) + 1)
    return value + 1


class BoundedStack(Generic[T]):
    """A stack that holds at most ``size`` items."""

    def __init__(self, size: int) -> None:
        if size < 1:
            raise ValueError("stack size must be at least 1")
        self.size = size
        self._items: list[T] = []

    def push(self, value: T) -> None:
        """Put ``value`` on top of the stack."""
        if self.is_full():
            raise StackFullError("push onto a full stack")
        self._items.append(value)

    def pop(self) -> T:
        """Remove the top item and return it."""
        if self.is_empty():
            raise StackEmptyError("pop from an empty stack")
        return self._items.pop()

    def is_full(self) -> bool:
        """Return True if the stack has no more room."""
        return len(self._items) == self.size

    def is_empty(self) -> bool:
        """Return True if the stack holds nothing."""
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def self_test(self, start):
        """Fill the stack with successive values from ``start``, then empty it.

        Each push and pop is reported on standard output; the popped values
        are returned in the order they came off the stack.
        """
        value = start
        while not self.is_full():
            print(f"pushing {value}")
            self.push(value)
            value = _successor(value)
        popped = []
        while not self.is_empty():
            item = self.pop()
            print(f"popping {item}")
            popped.append(item)
        return popped


def main(argv=None) -> int:
    """Run the stack self-test on an integer stack and a character stack."""
    parser = argparse.ArgumentParser(description="Exercise a bounded stack.")
    parser.parse_args(argv)

    print("Testing int stack")
    BoundedStack(10).self_test(17)
    print("Testing char stack")
    BoundedStack(10).self_test("a")
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())