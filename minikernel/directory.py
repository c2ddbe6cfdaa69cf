"""A flat directory: a fixed-size table of file names and header sectors."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO, ClassVar

FILE_NAME_MAX_LEN = 9


def _key(name: str) -> bytes:
    """Return the stored form of ``name``: at most nine bytes, no terminator."""
    return name.encode("latin-1")[:FILE_NAME_MAX_LEN].split(b"\0", 1)[0]


@dataclass
class DirectoryEntry:
    """One slot of the directory: a file name and the sector of its header."""

    in_use: bool = False
    sector: int = 0
    name: str = ""

    _STRUCT: ClassVar[struct.Struct] = struct.Struct(f"<?3xi{FILE_NAME_MAX_LEN + 1}s2x")
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        return self._STRUCT.pack(self.in_use, self.sector, _key(self.name))

    @classmethod
    def unpack(cls, data: bytes, offset: int = 0) -> DirectoryEntry:
        in_use, sector, raw = cls._STRUCT.unpack_from(data, offset)
        name = raw[:FILE_NAME_MAX_LEN].split(b"\0", 1)[0].decode("latin-1")
        return cls(in_use, sector, name)

    def matches(self, name: str) -> bool:
        return self.in_use and _key(self.name) == _key(name)


class Directory:
    """A table of ``size`` entries mapping file names to header sectors.

    Names are significant only up to their first nine characters.
    The table never grows: once every slot is used, no file can be added.
    """

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError("directory size must not be negative")
        self.size = size
        self.entries = [DirectoryEntry() for _ in range(size)]

    def _find_index(self, name: str) -> int | None:
        return next(
            (i for i, entry in enumerate(self.entries) if entry.matches(name)), None
        )

    def find(self, name: str) -> int | None:
        """Return the header sector of ``name``, or None if it is not here."""
        index = self._find_index(name)
        return None if index is None else self.entries[index].sector

    def add(self, name: str, sector: int) -> bool:
        """Add ``name`` with its header at ``sector``.

        Return False if the name is already present or the table is full.
        """
        if self._find_index(name) is not None:
            return False
        for entry in self.entries:
            if not entry.in_use:
                entry.in_use = True
                entry.name = _key(name).decode("latin-1")
                entry.sector = sector
                return True
        return False

    def remove(self, name: str) -> bool:
        """Remove ``name``; return False if it was not in the directory."""
        index = self._find_index(name)
        if index is None:
            return False
        self.entries[index].in_use = False
        return True

    def names(self) -> list[str]:
        """Return the names of all files, in table order."""
        return [entry.name for entry in self.entries if entry.in_use]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._find_index(name) is not None

    def __len__(self) -> int:
        return sum(entry.in_use for entry in self.entries)

    def to_bytes(self) -> bytes:
        """Return the on-disk form of the whole table."""
        return b"".join(entry.pack() for entry in self.entries)

    @classmethod
    def from_bytes(cls, data: bytes, size: int) -> Directory:
        """Build a directory of ``size`` entries from its on-disk form."""
        directory = cls(size)
        if len(data) < size * DirectoryEntry.SIZE:
            raise ValueError("directory data is too short")
        directory.entries = [
            DirectoryEntry.unpack(data, i * DirectoryEntry.SIZE) for i in range(size)
        ]
        return directory

    def fetch_from(self, file: BinaryIO) -> None:
        """Read the table from the start of ``file``.

        Entries beyond the end of the file's data keep their current contents.
        """
        file.seek(0)
        data = file.read(self.size * DirectoryEntry.SIZE) or b""
        current = self.to_bytes()
        merged = bytes(data) + current[len(data):]
        self.entries = Directory.from_bytes(merged, self.size).entries

    def write_back(self, file: BinaryIO) -> None:
        """Write the table to the start of ``file``."""
        file.seek(0)
        file.write(self.to_bytes())