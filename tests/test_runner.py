import struct

import pytest

from minikernel.coff import AoutHeader, CoffError, FileHeader, MIPSELMAGIC, SectionHeader
from minikernel.interpreter import MEMORY_OFFSET, MachineError, Memory
from minikernel.mips import Op, Special
from minikernel.runner import load_program, main

SYSCALL = int(Special.SYSCALL)
EXIT = [(Op.ADDIU << 26) | (2 << 16) | 1, SYSCALL]


def _coff(words, magic=MIPSELMAGIC, vaddr=MEMORY_OFFSET):
    code = struct.pack(f"<{len(words)}I", *words)
    offset = FileHeader.SIZE + AoutHeader.SIZE + SectionHeader.SIZE
    header = FileHeader(magic=magic, nscns=1).pack()
    aout = AoutHeader().pack()
    section = SectionHeader(
        ".text", paddr=vaddr, vaddr=vaddr, size=len(code), scnptr=offset
    ).pack()
    return header + aout + section + code


def test_load_program_places_text_at_vaddr():
    memory = Memory(size=1 << 12)
    coff = load_program(memory, _coff(EXIT))
    assert memory.fetch(MEMORY_OFFSET) == EXIT[0]
    assert memory.fetch(MEMORY_OFFSET + 4) == EXIT[1]
    assert [s.name for s in coff.sections] == [".text"]


def test_load_program_reports_missing_sections(capsys):
    load_program(Memory(size=1 << 12), _coff(EXIT))
    out = capsys.readouterr().out
    assert "rdata section header missing" in out
    assert "text section header missing" not in out.replace("rdata", "")


def test_load_program_rejects_wrong_magic():
    with pytest.raises(CoffError, match="big-endian"):
        load_program(Memory(size=1 << 12), _coff(EXIT, magic=0x6201))


def test_load_program_memory_too_small():
    with pytest.raises(MachineError, match="MEMSIZE too small"):
        load_program(Memory(size=4), _coff(EXIT))


def test_main_runs_program(tmp_path):
    path = tmp_path / "prog"
    path.write_bytes(_coff(EXIT))
    assert main([str(path)]) == 0


def test_main_missing_file(tmp_path, capsys):
    missing = tmp_path / "nothing"
    assert main([str(missing)]) == 0
    assert "Could not open" in capsys.readouterr().err


def test_main_unimplemented_instruction(tmp_path):
    path = tmp_path / "prog"
    path.write_bytes(_coff([Op.SWL << 26]))
    assert main([str(path)]) == 2


def test_main_cache_option_consumes_parameters(tmp_path):
    path = tmp_path / "prog"
    path.write_bytes(_coff(EXIT))
    assert main(["-m", "64", "1", "4", "lrd", str(path)]) == 0


def test_main_trace_prints_instructions(tmp_path, capsys):
    path = tmp_path / "prog"
    path.write_bytes(_coff(EXIT))
    assert main(["-t", str(path)]) == 0
    assert "addiu" in capsys.readouterr().out


def test_main_short_file_is_load_error(tmp_path, capsys):
    path = tmp_path / "prog"
    path.write_bytes(b"\x62\x01")
    assert main([str(path)]) == 0
    assert "Load read error" in capsys.readouterr().err