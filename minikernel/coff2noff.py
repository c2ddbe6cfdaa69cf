"""Convert a MIPS COFF executable into the simpler NOFF format."""

from __future__ import annotations

import sys
from pathlib import Path

from .coff import OMAGIC, CoffError, CoffFile, NoffHeader, NoffSegment, SectionHeader

_WORD = 0xFFFFFFFF


class ConversionError(CoffError):
    """Raised when a COFF file cannot be converted."""


def _parse(coff_data: bytes) -> CoffFile:
    try:
        coff = CoffFile.parse(coff_data)
    except CoffError as exc:
        raise ConversionError(str(exc)) from exc
    if coff.aout.magic != OMAGIC:
        raise ConversionError("File is not a OMAGIC file")
    return coff


def _read_section(coff: CoffFile, section: SectionHeader) -> bytes:
    start = section.scnptr
    payload = coff.raw[start:start + section.size] if start >= 0 else b""
    if len(payload) != section.size:
        raise ConversionError("File is too short")
    return payload


def _describe(coff: CoffFile) -> list[str]:
    lines = [f"Loading {len(coff.sections)} sections:"]
    for s in coff.sections:
        lines.append(
            f'\t"{s.name}", filepos 0x{s.scnptr & _WORD:x}, '
            f"mempos 0x{s.paddr & _WORD:x}, size 0x{s.size & _WORD:x}"
        )
    return lines


def convert(coff_data: bytes) -> bytes:
    """Return the NOFF file built from the COFF file ``coff_data``."""
    coff = _parse(coff_data)
    noff = NoffHeader()
    body = bytearray()

    for section in coff.sections:
        if section.size == 0:
            continue
        if section.name == ".text":
            noff.code = NoffSegment(section.paddr, NoffHeader.SIZE + len(body), section.size)
            body += _read_section(coff, section)
        elif section.name in (".data", ".rdata"):
            if noff.init_data.size != 0:
                raise ConversionError("Can't handle both data and rdata")
            noff.init_data = NoffSegment(
                section.paddr, NoffHeader.SIZE + len(body), section.size
            )
            body += _read_section(coff, section)
        elif section.name in (".bss", ".sbss"):
            uninit = noff.uninit_data
            if uninit.size != 0:
                if section.paddr == uninit.virtual_addr + uninit.size:
                    raise ConversionError("Can't handle both bss and sbss")
                uninit.size += section.size
            else:
                noff.uninit_data = NoffSegment(section.paddr, 0, section.size)
        else:
            raise ConversionError(f"Unknown segment type: {section.name}")

    return noff.pack() + bytes(body)


def main(argv=None) -> int:
    """Convert the COFF file named first into the NOFF file named second."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 2:
        print("Usage: coff2noff <coffFileName> <noffFileName>", file=sys.stderr)
        return 1
    source, target = Path(args[0]), Path(args[1])

    try:
        data = source.read_bytes()
    except OSError as exc:
        print(f"{source}: {exc.strerror}", file=sys.stderr)
        return 1

    try:
        coff = _parse(data)
        print(f"numsections {len(coff.sections)} ")
        for line in _describe(coff):
            print(line)
        noff = convert(data)
    except ConversionError as exc:
        print(exc, file=sys.stderr)
        target.unlink(missing_ok=True)
        return 1

    try:
        target.write_bytes(noff)
    except OSError:
        print("Unable to write file", file=sys.stderr)
        target.unlink(missing_ok=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())