import io
import struct

import pytest

from minikernel.interpreter import (
    MEMORY_OFFSET,
    Machine,
    MachineError,
    Memory,
    ProgramExit,
    ilog2,
)
from minikernel.mips import Op, Special

DATA = MEMORY_OFFSET + 0x100


def _i(op, rs_, rt_, imm):
    return (op << 26) | (rs_ << 21) | (rt_ << 16) | (imm & 0xFFFF)


def _r(funct, rs_=0, rt_=0, rd_=0, sh=0):
    return (rs_ << 21) | (rt_ << 16) | (rd_ << 11) | (sh << 6) | funct


SYSCALL = _r(Special.SYSCALL)
EXIT = [_i(Op.ADDIU, 0, 2, 1), SYSCALL]


def _run(words, data=None, size=1 << 16, **kwargs):
    memory = Memory(size=size)
    memory.load(MEMORY_OFFSET, struct.pack(f"<{len(words)}I", *words))
    for addr, payload in (data or {}).items():
        memory.load(addr, payload)
    machine = Machine(memory, **kwargs)
    status = machine.run(MEMORY_OFFSET, ["prog"])
    return machine, status


def test_memory_word_round_trip_and_little_endian():
    memory = Memory(size=64)
    memory.store(MEMORY_OFFSET, 0x01020304)
    assert memory.fetch(MEMORY_OFFSET) == 0x01020304
    assert memory.ucfetch(MEMORY_OFFSET) == 0x04
    assert memory.read(MEMORY_OFFSET, 4) == bytes([4, 3, 2, 1])


def test_memory_signed_and_unsigned_fetches():
    memory = Memory(size=64)
    memory.sstore(MEMORY_OFFSET, -2)
    assert memory.sfetch(MEMORY_OFFSET) == -2
    assert memory.usfetch(MEMORY_OFFSET) == 0xFFFE
    memory.cstore(MEMORY_OFFSET + 8, 0x1FF)
    assert memory.cfetch(MEMORY_OFFSET + 8) == -1
    assert memory.ucfetch(MEMORY_OFFSET + 8) == 0xFF


def test_memory_out_of_range():
    memory = Memory(size=16)
    with pytest.raises(MachineError):
        memory.fetch(MEMORY_OFFSET + 16)
    with pytest.raises(MachineError):
        memory.store(MEMORY_OFFSET - 4, 1)


def test_setup_args_lays_out_argc_and_argv():
    machine = Machine(Memory(size=1 << 12))
    sp = machine.setup_args(["prog", "arg"])
    mem = machine.memory
    assert machine.registers[29] == sp
    assert mem.fetch(sp) == 2
    first, second = mem.fetch(sp + 4), mem.fetch(sp + 8)
    assert mem.read(first, 5) == b"prog\0"
    assert mem.read(second, 4) == b"arg\0"


def test_exit_returns_status_and_stops():
    machine, status = _run(EXIT)
    assert status == 0
    assert machine.icount == len(EXIT)


def test_addu_and_subu():
    words = [
        _i(Op.ADDIU, 0, 8, 5),
        _i(Op.ADDIU, 0, 9, 7),
        _r(Special.ADDU, 8, 9, 10),
        _r(Special.SUBU, 8, 9, 11),
    ] + EXIT
    machine, _ = _run(words)
    assert machine.registers[10] == 5 + 7
    assert machine.registers[11] == 5 - 7


def test_lui_and_ori():
    words = [_i(Op.LUI, 0, 8, 0x1234), _i(Op.ORI, 8, 8, 0x56)] + EXIT
    machine, _ = _run(words)
    assert machine.registers[8] == (0x1234 << 16) | 0x56


def test_shifts_on_negative_values():
    words = [
        _i(Op.ADDIU, 0, 8, -16),
        _r(Special.SRA, 0, 8, 9, 2),
        _r(Special.SRL, 0, 8, 10, 28),
    ] + EXIT
    machine, _ = _run(words)
    assert machine.registers[9] == -16 >> 2
    assert machine.registers[10] == (-16 & 0xFFFFFFFF) >> 28


def test_slt_signed_and_unsigned():
    words = [
        _i(Op.ADDIU, 0, 8, -1),
        _i(Op.ADDIU, 0, 9, 1),
        _r(Special.SLT, 8, 9, 10),
        _r(Special.SLTU, 8, 9, 11),
    ] + EXIT
    machine, _ = _run(words)
    assert machine.registers[10] == 1
    assert machine.registers[11] == 0


def test_mult_negative():
    words = [
        _i(Op.ADDIU, 0, 8, -3),
        _i(Op.ADDIU, 0, 9, 4),
        _r(Special.MULT, 8, 9),
        _r(Special.MFLO, rd_=10),
        _r(Special.MFHI, rd_=11),
    ] + EXIT
    machine, _ = _run(words)
    assert machine.registers[10] == -3 * 4
    assert machine.registers[11] == -1


def test_div_truncates_toward_zero():
    words = [
        _i(Op.ADDIU, 0, 8, -7),
        _i(Op.ADDIU, 0, 9, 2),
        _r(Special.DIV, 8, 9),
        _r(Special.MFLO, rd_=10),
        _r(Special.MFHI, rd_=11),
    ] + EXIT
    machine, _ = _run(words)
    quotient, remainder = machine.registers[10], machine.registers[11]
    assert quotient * 2 + remainder == -7
    assert abs(remainder) < 2
    assert remainder <= 0
    assert quotient < 0


def test_division_by_zero_raises():
    words = [_i(Op.ADDIU, 0, 8, 1), _r(Special.DIV, 8, 0)] + EXIT
    with pytest.raises(MachineError):
        _run(words)


def test_branch_runs_delay_slot_and_skips_next():
    words = [
        _i(Op.BEQ, 0, 0, 2),
        _i(Op.ADDIU, 0, 8, 1),
        _i(Op.ADDIU, 0, 9, 1),
    ] + EXIT
    machine, _ = _run(words)
    assert machine.registers[8] == 1
    assert machine.registers[9] == 0


def test_jal_links_return_address():
    target = (MEMORY_OFFSET + 12) >> 2
    words = [
        (Op.JAL << 26) | (target & 0x03FFFFFF),
        0,
        0,
    ] + EXIT
    machine, _ = _run(words)
    assert machine.registers[31] == MEMORY_OFFSET + 8


def test_load_and_store_word():
    words = [
        _i(Op.LUI, 0, 8, MEMORY_OFFSET >> 16),
        _i(Op.ADDIU, 0, 9, -5),
        _i(Op.SW, 8, 9, 0x100),
        _i(Op.LW, 8, 10, 0x100),
        _i(Op.LBU, 8, 11, 0x100),
    ] + EXIT
    machine, _ = _run(words)
    assert machine.registers[10] == -5
    assert machine.registers[11] == -5 & 0xFF
    assert machine.memory.fetch(DATA) == -5


def test_write_system_call():
    out = io.BytesIO()
    words = [
        _i(Op.ADDIU, 0, 2, 4),
        _i(Op.ADDIU, 0, 4, 1),
        _i(Op.LUI, 0, 5, MEMORY_OFFSET >> 16),
        _i(Op.ORI, 5, 5, 0x100),
        _i(Op.ADDIU, 0, 6, 2),
        SYSCALL,
    ] + EXIT
    machine, _ = _run(words, data={DATA: b"hi"}, streams={1: out})
    assert out.getvalue() == b"hi"
    assert machine.registers[1] == len(b"hi")


def test_read_system_call():
    source = io.BytesIO(b"abc")
    words = [
        _i(Op.ADDIU, 0, 2, 3),
        _i(Op.ADDIU, 0, 4, 0),
        _i(Op.LUI, 0, 5, MEMORY_OFFSET >> 16),
        _i(Op.ORI, 5, 5, 0x100),
        _i(Op.ADDIU, 0, 6, 3),
        SYSCALL,
    ] + EXIT
    machine, _ = _run(words, streams={0: source})
    assert machine.memory.read(DATA, 3) == b"abc"
    assert machine.registers[1] == 3


def test_sbreak_rounds_up_to_next_block():
    words = [_i(Op.ADDIU, 0, 2, 17), _i(Op.ADDIU, 0, 4, 100), SYSCALL] + EXIT
    machine, _ = _run(words)
    assert machine.registers[1] == 8192


def test_unknown_system_call(capsys):
    words = [_i(Op.ADDIU, 0, 2, 999), SYSCALL]
    with pytest.raises(MachineError, match="Unknown System call 999"):
        _run(words)
    assert "Unknown System call 999" in capsys.readouterr().out


def test_unimplemented_instruction():
    with pytest.raises(MachineError, match="Unimplemented Instruction"):
        _run([_i(Op.SWL, 0, 0, 0)])


def test_coprocessor_instruction():
    with pytest.raises(MachineError, match="coprocessors"):
        _run([_i(Op.COP1, 0, 0, 0)])


def test_system_trap_exit_raises_program_exit():
    machine = Machine(Memory(size=64))
    machine.registers[2] = 1
    with pytest.raises(ProgramExit) as info:
        machine.system_trap()
    assert info.value.status == 0


def test_dump_registers_format():
    machine = Machine(Memory(size=64))
    machine.registers[9] = -1
    lines = machine.dump_registers().splitlines()
    assert [line[:3] for line in lines] == [" 0:", " 8:", "16:", "24:"]
    assert all(len(line.split()) == 9 for line in lines)
    assert lines[1].split()[2] == "ffffffff"


def test_trace_prints_disassembly(capsys):
    _run(EXIT, trace=True)
    out = capsys.readouterr().out
    assert "addiu" in out


def test_ilog2_counts_bits():
    assert ilog2(0) == 0
    assert ilog2(-1) == 32
    for k in range(32):
        assert ilog2(1 << k) == k + 1
        assert ilog2((1 << (k + 1)) - 1) == k + 1