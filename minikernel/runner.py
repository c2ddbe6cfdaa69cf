"""Load a MIPS COFF executable into memory and interpret it."""

from __future__ import annotations

import sys
from pathlib import Path

from .coff import MIPSELMAGIC, CoffError, CoffFile, FileHeader
from .interpreter import MEMORY_OFFSET, Machine, MachineError, Memory

_SECTIONS = (".text", ".rdata", ".data", ".sdata", ".sbss", ".bss")
_WRONG_ENDIAN = "big-endian object file (little-endian interp)"
_PROGRAM = "run"


def load_program(memory: Memory, coff_data: bytes) -> CoffFile:
    """Copy the sections of ``coff_data`` to their virtual addresses in ``memory``."""
    header = FileHeader.unpack(coff_data)
    if header.magic != MIPSELMAGIC:
        raise CoffError(_WRONG_ENDIAN)
    coff = CoffFile.parse(coff_data)
    for name in _SECTIONS:
        section = coff.section(name)
        if section is None:
            print(f"{name[1:]} section header missing")
            continue
        if section.scnptr == 0:
            continue
        payload = coff.section_data(section)
        try:
            memory.load(section.vaddr, payload)
        except MachineError as exc:
            raise MachineError("MEMSIZE too small. Fix and recompile.") from exc
    return coff


def main(argv=None) -> int:
    """Interpret a COFF program (``a.out`` by default) with its arguments."""
    args = list(sys.argv[1:] if argv is None else argv)
    trace = trap_trace = reg_trace = False
    while args and args[0].startswith("-"):
        flag = args.pop(0)
        for letter in flag[1:]:
            if letter == "t":
                trace = True
            elif letter == "T":
                trap_trace = True
            elif letter == "r":
                reg_trace = True
            elif letter == "m":
                if len(args) < 4:
                    print(f"{_PROGRAM}: -m needs four cache parameters", file=sys.stderr)
                    return 1
                del args[:4]

    filename = args[0] if args else "a.out"
    program_args = args if args else ["a.out"]

    try:
        data = Path(filename).read_bytes()
    except OSError:
        print(f"{_PROGRAM}: Could not open '{filename}'", file=sys.stderr)
        return 0

    memory = Memory()
    try:
        load_program(memory, data)
    except CoffError as exc:
        if str(exc) == _WRONG_ENDIAN:
            print(exc, file=sys.stderr)
        else:
            print(f"{_PROGRAM}: Load read error on {filename}", file=sys.stderr)
        return 0
    except MachineError as exc:
        print(exc)
        return 1

    machine = Machine(memory, trace=trace, trap_trace=trap_trace, reg_trace=reg_trace)
    try:
        return machine.run(MEMORY_OFFSET, program_args)
    except MachineError:
        return 2


if __name__ == "__main__":
    sys.exit(main())