"""Headers of little-endian MIPS COFF files and the simpler NOFF format."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import ClassVar

MIPSELMAGIC = 0x0162
OMAGIC = 0o407
SOMAGIC = 0x0701
NOFFMAGIC = 0xBADFAD


class CoffError(ValueError):
    """Raised when an object file is malformed or truncated."""


def _need(data: bytes, size: int) -> None:
    if len(data) < size:
        raise CoffError("File is too short")


@dataclass
class FileHeader:
    """The COFF file header."""

    magic: int = MIPSELMAGIC
    nscns: int = 0
    timdat: int = 0
    symptr: int = 0
    nsyms: int = 0
    opthdr: int = 0
    flags: int = 0

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<HHiiiHH")
    SIZE: ClassVar[int] = _STRUCT.size

    @classmethod
    def unpack(cls, data: bytes) -> FileHeader:
        _need(data, cls.SIZE)
        return cls(*cls._STRUCT.unpack_from(data))

    def pack(self) -> bytes:
        return self._STRUCT.pack(
            self.magic, self.nscns, self.timdat, self.symptr,
            self.nsyms, self.opthdr, self.flags,
        )


@dataclass
class AoutHeader:
    """The COFF optional (system) header."""

    magic: int = OMAGIC
    vstamp: int = 0
    tsize: int = 0
    dsize: int = 0
    bsize: int = 0
    entry: int = 0
    text_start: int = 0
    data_start: int = 0
    bss_start: int = 0
    gprmask: int = 0
    cprmask: tuple[int, int, int, int] = (0, 0, 0, 0)
    gp_value: int = 0

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<hh8i4ii")
    SIZE: ClassVar[int] = _STRUCT.size

    @classmethod
    def unpack(cls, data: bytes) -> AoutHeader:
        _need(data, cls.SIZE)
        values = cls._STRUCT.unpack_from(data)
        return cls(*values[:10], cprmask=tuple(values[10:14]), gp_value=values[14])

    def pack(self) -> bytes:
        return self._STRUCT.pack(
            self.magic, self.vstamp, self.tsize, self.dsize, self.bsize,
            self.entry, self.text_start, self.data_start, self.bss_start,
            self.gprmask, *self.cprmask, self.gp_value,
        )


@dataclass
class SectionHeader:
    """A COFF section header."""

    name: str
    paddr: int = 0
    vaddr: int = 0
    size: int = 0
    scnptr: int = 0
    relptr: int = 0
    lnnoptr: int = 0
    nreloc: int = 0
    nlnno: int = 0
    flags: int = 0

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<8s6iHHi")
    SIZE: ClassVar[int] = _STRUCT.size

    @classmethod
    def unpack(cls, data: bytes) -> SectionHeader:
        _need(data, cls.SIZE)
        raw_name, *rest = cls._STRUCT.unpack_from(data)
        name = raw_name.split(b"\0", 1)[0].decode("latin-1")
        return cls(name, *rest)

    def pack(self) -> bytes:
        return self._STRUCT.pack(
            self.name.encode("latin-1"), self.paddr, self.vaddr, self.size,
            self.scnptr, self.relptr, self.lnnoptr, self.nreloc, self.nlnno,
            self.flags,
        )


@dataclass
class CoffFile:
    """A parsed COFF object file: its headers and the raw file bytes."""

    header: FileHeader
    aout: AoutHeader
    sections: list[SectionHeader]
    raw: bytes

    @classmethod
    def parse(cls, data: bytes) -> CoffFile:
        """Parse the headers of a little-endian MIPS COFF file."""
        header = FileHeader.unpack(data)
        if header.magic != MIPSELMAGIC:
            raise CoffError("File is not a MIPSEL COFF file")
        offset = FileHeader.SIZE
        aout = AoutHeader.unpack(data[offset:])
        offset += AoutHeader.SIZE
        sections = []
        for _ in range(header.nscns):
            sections.append(SectionHeader.unpack(data[offset:]))
            offset += SectionHeader.SIZE
        return cls(header, aout, sections, bytes(data))

    def section(self, name: str) -> SectionHeader | None:
        """Return the first section called ``name``, or None."""
        return next((s for s in self.sections if s.name == name), None)

    def section_data(self, section: SectionHeader) -> bytes:
        """Return the bytes of ``section`` stored in the file.

        A section with no file position holds no data and gives empty bytes.
        """
        if section.scnptr == 0:
            return b""
        end = section.scnptr + section.size
        if section.scnptr < 0 or section.size < 0 or end > len(self.raw):
            raise CoffError("File is too short")
        return self.raw[section.scnptr:end]


@dataclass
class NoffSegment:
    """Where a segment sits in the address space and in the NOFF file."""

    virtual_addr: int = 0
    in_file_addr: int = 0
    size: int = 0


@dataclass
class NoffHeader:
    """The NOFF header: code, initialised data and uninitialised data."""

    magic: int = NOFFMAGIC
    code: NoffSegment = field(default_factory=NoffSegment)
    init_data: NoffSegment = field(default_factory=NoffSegment)
    uninit_data: NoffSegment = field(default_factory=NoffSegment)

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<10i")
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        values = [self.magic]
        for seg in (self.code, self.init_data, self.uninit_data):
            values += [seg.virtual_addr, seg.in_file_addr, seg.size]
        return self._STRUCT.pack(*values)

    @classmethod
    def unpack(cls, data: bytes) -> NoffHeader:
        _need(data, cls.SIZE)
        magic, *rest = cls._STRUCT.unpack_from(data)
        if magic != NOFFMAGIC:
            raise CoffError("File is not a NOFF file")
        segments = [NoffSegment(*rest[k:k + 3]) for k in range(0, 9, 3)]
        return cls(magic, *segments)