"""Convert a MIPS COFF executable into a flat memory image."""

from __future__ import annotations

import sys
from pathlib import Path

from .coff import OMAGIC, CoffError, CoffFile, SectionHeader

STACK_SIZE = 1024

_WORD = 0xFFFFFFFF
_UNINITIALISED = (".bss", ".sbss")


def _parse(coff_data: bytes) -> CoffFile:
    coff = CoffFile.parse(coff_data)
    if coff.aout.magic != OMAGIC:
        raise CoffError("File is not a OMAGIC file")
    return coff


def _read_section(coff: CoffFile, section: SectionHeader) -> bytes:
    start = section.scnptr
    payload = coff.raw[start:start + section.size] if start >= 0 else b""
    if len(payload) != section.size:
        raise CoffError("File is too short")
    return payload


def to_flat(coff_data: bytes, stack_size: int = STACK_SIZE) -> bytes:
    """Return the flat image of ``coff_data``.

    Initialised sections are written one after another; the image then
    extends to the end of the highest section plus ``stack_size`` bytes,
    the last word of which is zero.
    """
    if stack_size < 4:
        raise ValueError("stack size must be at least 4 bytes")
    coff = _parse(coff_data)

    image = bytearray()
    top = 0
    for section in coff.sections:
        top = max(top, section.paddr + section.size)
        if section.name not in _UNINITIALISED:
            image += _read_section(coff, section)

    end_word = top + stack_size - 4
    if len(image) < end_word + 4:
        image.extend(b"\0" * (end_word + 4 - len(image)))
    image[end_word:end_word + 4] = b"\0\0\0\0"
    return bytes(image)


def main(argv=None) -> int:
    """Convert the COFF file named first into the flat file named second."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 2:
        print("Usage: coff2flat <coffFileName> <flatFileName>", file=sys.stderr)
        return 1
    source, target = Path(args[0]), Path(args[1])

    try:
        data = source.read_bytes()
    except OSError as exc:
        print(f"{source}: {exc.strerror}", file=sys.stderr)
        return 1

    try:
        coff = _parse(data)
        print(f"Loading {len(coff.sections)} sections:")
        for s in coff.sections:
            print(
                f'\t"{s.name}", filepos 0x{s.scnptr & _WORD:x}, '
                f"mempos 0x{s.paddr & _WORD:x}, size 0x{s.size & _WORD:x}"
            )
        image = to_flat(data, STACK_SIZE)
    except CoffError as exc:
        print(exc, file=sys.stderr)
        return 1

    print(f"Adding stack of size: {STACK_SIZE}")
    try:
        target.write_bytes(image)
    except OSError:
        print("Unable to write file", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())