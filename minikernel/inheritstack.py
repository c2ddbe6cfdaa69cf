"""Two interchangeable integer stacks sharing one abstract interface."""

from __future__ import annotations

import argparse
import sys
from abc import ABC, abstractmethod

from .arraystack import StackEmptyError, StackFullError
from .intlist import IntList

_FIRST_VALUE = 17


class Stack(ABC):
    """An abstract last-in, first-out stack of integers."""

    @abstractmethod
    def push(self, value: int) -> None:
        """Put ``value`` on top of the stack."""

    @abstractmethod
    def pop(self) -> int:
        """Remove the top integer and return it."""

    @abstractmethod
    def is_full(self) -> bool:
        """Return True if the stack has no more room."""

    @abstractmethod
    def is_empty(self) -> bool:
        """Return True if the stack holds nothing."""

    def self_test(self, num_to_push: int) -> list[int]:
        """Push ``num_to_push`` successive integers from 17, then pop them all.

        Each push and pop is reported on standard output; the popped values
        are returned in the order they came off the stack.
        """
        count = _FIRST_VALUE
        for _ in range(num_to_push):
            if self.is_full():
                raise StackFullError("self test pushed onto a full stack")
            print(f"pushing {count}")
            self.push(count)
            count += 1
        popped = []
        while not self.is_empty():
            item = self.pop()
            print(f"popping {item}")
            popped.append(item)
        return popped


class ArrayStack(Stack):
    """A stack with a fixed capacity chosen at construction."""

    def __init__(self, size: int) -> None:
        if size < 1:
            raise ValueError("stack size must be at least 1")
        self.size = size
        self._items: list[int] = []

    def push(self, value: int) -> None:
        if self.is_full():
            raise StackFullError("push onto a full stack")
        self._items.append(value)

    def pop(self) -> int:
        if self.is_empty():
            raise StackEmptyError("pop from an empty stack")
        return self._items.pop()

    def is_full(self) -> bool:
        return len(self._items) == self.size

    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)


class ListStack(Stack):
    """A stack kept on a linked list; it never overflows."""

    def __init__(self) -> None:
        self._list = IntList()

    def push(self, value: int) -> None:
        self._list.prepend(value)

    def pop(self) -> int:
        if self.is_empty():
            raise StackEmptyError("pop from an empty stack")
        return self._list.remove()

    def is_full(self) -> bool:
        return False

    def is_empty(self) -> bool:
        return self._list.is_empty()

    def __len__(self) -> int:
        return len(self._list)


def main(argv=None) -> int:
    """Run the shared self-test on both stack implementations."""
    parser = argparse.ArgumentParser(description="Exercise both stack kinds.")
    parser.parse_args(argv)

    print("Testing ArrayStack")
    ArrayStack(10).self_test(10)
    print("Testing ListStack")
    ListStack().self_test(10)
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())