"""Disassembler for little-endian MIPS COFF executables."""

from __future__ import annotations

import struct
import sys
from pathlib import Path

from .coff import MIPSELMAGIC, CoffError, CoffFile, FileHeader
from .mips import (
    NORMAL_OPS,
    SPECIAL_OPS,
    BranchCond,
    Op,
    Special,
    immed,
    off16,
    off26,
    rd,
    rs,
    rt,
    shamt,
    top4,
)

MEMSIZE = 1 << 24
MEMORY_OFFSET = 0x10000000

_WORD = 0xFFFFFFFF

_REGISTER_NAMES = (
    "0", "r1", "r2", "r3", "r4", "r5", "r6", "r7", "r8", "r9",
    "r10", "r11", "r12", "r13", "r14", "r15", "r16", "r17", "r18", "r19",
    "r20", "r21", "r22", "r23", "r24", "r25", "r26", "r27", "gp", "sp",
    "r30", "r31",
)

_BCOND_NAMES = {
    BranchCond.BLTZ: "bltz",
    BranchCond.BGEZ: "bgez",
    BranchCond.BLTZAL: "bltzal",
    BranchCond.BGEZAL: "bgezal",
}

_SHIFT_IMMEDIATE = {Special.SLL, Special.SRL, Special.SRA}
_SHIFT_VARIABLE = {Special.SLLV, Special.SRLV, Special.SRAV}
_RS_ONLY = {Special.JR, Special.JALR, Special.MFLO, Special.MTLO}
_RD_ONLY = {Special.MFHI, Special.MTHI}
_RS_RT = {Special.MULT, Special.MULTU, Special.DIV, Special.DIVU}
_THREE_REG = {
    Special.ADD, Special.ADDU, Special.SUB, Special.SUBU, Special.AND,
    Special.OR, Special.XOR, Special.NOR, Special.SLT, Special.SLTU,
}

_JUMPS = {Op.J, Op.JAL}
_BRANCHES = {Op.BEQ, Op.BNE}
_ARITH_IMMEDIATE = {
    Op.ADDI, Op.ADDIU, Op.SLTI, Op.SLTIU, Op.ANDI, Op.ORI, Op.XORI,
}
_LOAD_STORE = {
    Op.LB, Op.LH, Op.LWL, Op.LW, Op.LBU, Op.LHU, Op.LWR,
    Op.SB, Op.SH, Op.SWL, Op.SW, Op.SWR,
    Op.LWC0, Op.LWC1, Op.LWC2, Op.LWC3,
    Op.SWC0, Op.SWC1, Op.SWC2, Op.SWC3,
}

_SECTION_ORDER = (".text", ".rdata", ".data", ".sdata", ".sbss", ".bss")


def _reg(number: int) -> str:
    return _REGISTER_NAMES[number]


def _hex(value: int) -> str:
    return f"{value & _WORD:x}"


def _address(value: int) -> str:
    return f"{value & _WORD:08x}"


def _special_operands(function: int, word: int) -> str:
    if function in _SHIFT_IMMEDIATE:
        return f"{_reg(rd(word))},{_reg(rt(word))},0x{shamt(word):x}"
    if function in _SHIFT_VARIABLE:
        return f"{_reg(rd(word))},{_reg(rt(word))},{_reg(rs(word))}"
    if function in _RS_ONLY:
        return _reg(rs(word))
    if function in _RD_ONLY:
        return _reg(rd(word))
    if function in _RS_RT:
        return f"{_reg(rs(word))},{_reg(rt(word))}"
    if function in _THREE_REG:
        return f"{_reg(rd(word))},{_reg(rs(word))},{_reg(rt(word))}"
    return ""


def _normal_operands(opcode: int, word: int, pc: int) -> str:
    if opcode in _JUMPS:
        return _address(top4(pc) | off26(word))
    if opcode in _BRANCHES:
        target = off16(word) + pc + 4
        return f"{_reg(rt(word))},{_reg(rs(word))},{_address(target)}"
    if opcode in _ARITH_IMMEDIATE:
        return f"{_reg(rt(word))},{_reg(rs(word))},0x{_hex(immed(word))}"
    if opcode == Op.LUI:
        return f"{_reg(rt(word))},0x{_hex(immed(word))}"
    if opcode in _LOAD_STORE:
        return f"{_reg(rt(word))},0x{_hex(immed(word))}({_reg(rs(word))})"
    return ""


def disassemble_word(instruction: int, pc: int, long_format: bool = True) -> str:
    """Return the assembly text of one instruction found at ``pc``.

    In long format the line starts with the address and the raw word.
    """
    word = instruction & _WORD
    prefix = f"{pc & _WORD:08x}: {word:08x}  " if long_format else ""
    opcode = word >> 26

    if word == 0:
        body = "nop"
    elif opcode == Op.SPECIAL:
        function = word & 0x3F
        body = f"{SPECIAL_OPS[function]}\t{_special_operands(function, word)}"
    elif opcode == Op.BCOND:
        name = _BCOND_NAMES.get(rt(word), "BCOND")
        body = f"{name}\t{_reg(rs(word))},{_address(off16(word) + pc + 4)}"
    else:
        body = f"{NORMAL_OPS[opcode]}\t{_normal_operands(opcode, word, pc)}"
    return f"{prefix}\t{body}"


def disassemble(text: bytes, base: int = MEMORY_OFFSET) -> list[str]:
    """Disassemble ``text`` as consecutive little-endian words starting at ``base``.

    A trailing partial word is padded with zero bytes.
    """
    padding = (-len(text)) % 4
    data = bytes(text) + b"\0" * padding
    return [
        disassemble_word(word, base + offset, True)
        for offset, (word,) in zip(range(0, len(data), 4), struct.iter_unpack("<I", data))
    ]


def _load_image(coff: CoffFile) -> bytearray:
    """Place each known section at its virtual address, relative to memory start."""
    image = bytearray()
    for name in _SECTION_ORDER:
        section = coff.section(name)
        if section is None:
            print(f"{name[1:]} section header missing")
            continue
        if section.scnptr == 0:
            continue
        start = section.vaddr - MEMORY_OFFSET
        payload = coff.section_data(section)
        end = start + len(payload)
        if start < 0 or end > MEMSIZE:
            raise MemoryError("MEMSIZE too small. Fix and recompile.")
        if len(image) < end:
            image.extend(b"\0" * (end - len(image)))
        image[start:end] = payload
    return image


def main(argv=None) -> int:
    """Disassemble the text section of a COFF file (``a.out`` by default)."""
    args = sys.argv[1:] if argv is None else list(argv)
    self_name = "disasm"
    while args and args[0].startswith("-"):
        args.pop(0)
    filename = args[0] if args else "a.out"

    try:
        data = Path(filename).read_bytes()
    except OSError:
        print(f"{self_name}: Could not open '{filename}'", file=sys.stderr)
        return 0

    try:
        header = FileHeader.unpack(data)
    except CoffError:
        print(f"{self_name}: Load read error on {filename}", file=sys.stderr)
        return 0
    if header.magic != MIPSELMAGIC:
        print("big-endian object file (little-endian interp)", file=sys.stderr)
        return 0
    try:
        coff = CoffFile.parse(data)
        image = _load_image(coff)
    except CoffError:
        print(f"{self_name}: Load read error on {filename}", file=sys.stderr)
        return 0
    except MemoryError as exc:
        print(exc)
        return 1

    text = coff.section(".text")
    size = text.size if text is not None else 0
    code = bytes(image[:size]).ljust(size, b"\0")
    for line in disassemble(code, MEMORY_OFFSET):
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())