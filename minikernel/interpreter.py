"""A user-mode interpreter for little-endian MIPS programs."""

from __future__ import annotations

import mmap
import os
import struct
import sys
from typing import BinaryIO, Iterable, Mapping, TextIO

from .disasm import disassemble_word
from .mips import BranchCond, Op, Special, immed, rd, rs, rt, shamt

MEMSIZE = 1 << 24
MEMORY_OFFSET = 0x10000000
STACK_RESERVE = 1024

SYS_EXIT = 1
SYS_READ = 3
SYS_WRITE = 4
SYS_OPEN = 5
SYS_CLOSE = 6
SYS_SBREAK = 17
SYS_LSEEK = 19
SYS_IOCTL = 54
SYS_FSTAT = 62
SYS_GETPAGESIZE = 64

_BREAK_ROUNDING = 8192
_WORD = 0xFFFFFFFF

_COPROCESSOR_OPS = {
    Op.LWC0, Op.LWC1, Op.LWC2, Op.LWC3,
    Op.SWC0, Op.SWC1, Op.SWC2, Op.SWC3,
    Op.COP0, Op.COP1, Op.COP2, Op.COP3,
}


class MachineError(RuntimeError):
    """Raised when the simulated program cannot go on."""


class ProgramExit(Exception):
    """Raised when the simulated program asks to exit."""

    def __init__(self, status: int = 0) -> None:
        super().__init__(f"program exited with status {status}")
        self.status = status


def _s32(value: int) -> int:
    value &= _WORD
    return value - (1 << 32) if value & 0x80000000 else value


def _u32(value: int) -> int:
    return value & _WORD


def _truncating_divmod(a: int, b: int) -> tuple[int, int]:
    """Divide rounding toward zero; the remainder takes the dividend's sign."""
    if b == 0:
        raise MachineError("Division by zero")
    quotient = abs(a) // abs(b)
    if (a < 0) != (b < 0):
        quotient = -quotient
    return quotient, a - quotient * b


class Memory:
    """Byte-addressed little-endian memory starting at ``offset``."""

    def __init__(self, size: int = MEMSIZE, offset: int = MEMORY_OFFSET) -> None:
        if size < 1:
            raise ValueError("memory size must be positive")
        self.size = size
        self.offset = offset
        self._bytes = bytearray(size)

    def _index(self, addr: int, width: int) -> int:
        index = _u32(addr) - self.offset
        if index < 0 or index + width > self.size:
            raise MachineError(f"address 0x{_u32(addr):08x} outside memory")
        return index

    def _get(self, addr: int, fmt: str) -> int:
        width = struct.calcsize(fmt)
        return struct.unpack_from(fmt, self._bytes, self._index(addr, width))[0]

    def _put(self, addr: int, fmt: str, value: int) -> None:
        width = struct.calcsize(fmt)
        mask = (1 << (8 * width)) - 1
        struct.pack_into(fmt, self._bytes, self._index(addr, width), value & mask)

    def fetch(self, addr: int) -> int:
        """Return the signed 32-bit word at ``addr``."""
        return self._get(addr, "<i")

    def sfetch(self, addr: int) -> int:
        """Return the signed 16-bit half-word at ``addr``."""
        return self._get(addr, "<h")

    def usfetch(self, addr: int) -> int:
        """Return the unsigned 16-bit half-word at ``addr``."""
        return self._get(addr, "<H")

    def cfetch(self, addr: int) -> int:
        """Return the signed byte at ``addr``."""
        return self._get(addr, "<b")

    def ucfetch(self, addr: int) -> int:
        """Return the unsigned byte at ``addr``."""
        return self._get(addr, "<B")

    def store(self, addr: int, value: int) -> None:
        """Store the low 32 bits of ``value`` at ``addr``."""
        self._put(addr, "<I", value)

    def sstore(self, addr: int, value: int) -> None:
        """Store the low 16 bits of ``value`` at ``addr``."""
        self._put(addr, "<H", value)

    def cstore(self, addr: int, value: int) -> None:
        """Store the low 8 bits of ``value`` at ``addr``."""
        self._put(addr, "<B", value)

    def load(self, addr: int, data: bytes) -> None:
        """Copy ``data`` into memory starting at ``addr``."""
        if not data:
            return
        index = self._index(addr, len(data))
        self._bytes[index:index + len(data)] = data

    def read(self, addr: int, length: int) -> bytes:
        """Return ``length`` bytes starting at ``addr``."""
        if length <= 0:
            return b""
        index = self._index(addr, length)
        return bytes(self._bytes[index:index + length])


class Machine:
    """The registers and memory of a simulated MIPS processor."""

    def __init__(
        self,
        memory: Memory | None = None,
        *,
        trace: bool = False,
        trap_trace: bool = False,
        reg_trace: bool = False,
        streams: Mapping[int, BinaryIO] | None = None,
        console: TextIO | None = None,
    ) -> None:
        self.memory = memory if memory is not None else Memory()
        self.registers = [0] * 32
        self.hi = 0
        self.lo = 0
        self.pc = _u32(self.memory.offset)
        self.npc = _u32(self.pc + 4)
        self.icount = 0
        self.trace = trace
        self.trap_trace = trap_trace
        self.reg_trace = reg_trace
        self.streams = streams
        self.console = console

    # -- output helpers -------------------------------------------------

    def _say(self, text: str, end: str = "\n") -> None:
        print(text, end=end, file=self.console or sys.stdout)

    def _stream(self, fd: int) -> BinaryIO | None:
        if self.streams is not None:
            return self.streams.get(fd)
        text = {0: sys.stdin, 1: sys.stdout, 2: sys.stderr}.get(fd)
        if text is None:
            return None
        if fd != 0:
            text.flush()
        return getattr(text, "buffer", None)

    # -- program start --------------------------------------------------

    def setup_args(self, args: Iterable[str]) -> int:
        """Place argc and argv below the top of memory and set the stack pointer."""
        args = list(args)
        sp = self.memory.offset + self.memory.size - STACK_RESERVE
        self.registers[29] = _s32(sp)
        self.memory.store(sp, len(args))
        pointer = sp + 4
        string_at = pointer + 32
        for arg in args:
            encoded = arg.encode("latin-1")
            self.memory.load(string_at, encoded + b"\0")
            self.memory.store(pointer, string_at)
            pointer += 4
            string_at += len(encoded) + 1
        return sp

    def run(self, start_pc: int = MEMORY_OFFSET, args: Iterable[str] = ()) -> int:
        """Run from ``start_pc`` until the program exits; return its status."""
        self.setup_args(args)
        self.pc = _u32(start_pc)
        self.npc = _u32(start_pc + 4)
        try:
            while True:
                self.step()
        except ProgramExit as exc:
            return exc.status

    # -- execution ------------------------------------------------------

    def step(self) -> None:
        """Execute the instruction at the program counter."""
        xpc = self.pc
        self.pc = self.npc
        self.npc = _u32(self.pc + 4)
        instr = self.memory.fetch(xpc)
        self.icount += 1
        self.registers[0] = 0
        if instr != 0:
            self._execute(instr, xpc)
        if self.trace:
            self._say(disassemble_word(instr, xpc, True))
            if self.reg_trace:
                self._say(self.dump_registers())

    def _unimplemented(self) -> None:
        self._say("Unimplemented Instruction")
        raise MachineError("Unimplemented Instruction")

    def _branch(self, xpc: int, instr: int) -> None:
        self.npc = _u32(xpc + 4 + (immed(instr) << 2))

    def _execute(self, instr: int, xpc: int) -> None:
        opcode = (instr >> 26) & 0x3F
        if opcode == Op.SPECIAL:
            self._special(instr, xpc)
        elif opcode == Op.BCOND:
            self._bcond(instr, xpc)
        else:
            self._normal(opcode, instr, xpc)

    def _special(self, instr: int, xpc: int) -> None:
        r = self.registers
        d, s, t = rd(instr), rs(instr), rt(instr)
        function = instr & 0x3F
        if function == Special.SLL:
            r[d] = _s32(r[t] << shamt(instr))
        elif function == Special.SRL:
            r[d] = _s32(_u32(r[t]) >> shamt(instr))
        elif function == Special.SRA:
            r[d] = r[t] >> shamt(instr)
        elif function == Special.SLLV:
            r[d] = _s32(r[t] << (r[s] & 31))
        elif function == Special.SRLV:
            r[d] = _s32(_u32(r[t]) >> (r[s] & 31))
        elif function == Special.SRAV:
            r[d] = r[t] >> (r[s] & 31)
        elif function == Special.JR:
            self.npc = _u32(r[s])
        elif function == Special.JALR:
            self.npc = _u32(r[s])
            r[d] = _s32(xpc + 8)
        elif function == Special.SYSCALL:
            self.system_trap()
        elif function == Special.BREAK:
            if self.trap_trace:
                self._say("**breakpoint ", end="")
            self.system_trap()
        elif function == Special.MFHI:
            r[d] = self.hi
        elif function == Special.MTHI:
            self.hi = r[s]
        elif function == Special.MFLO:
            r[d] = self.lo
        elif function == Special.MTLO:
            self.lo = r[s]
        elif function == Special.MULT:
            self._multiply(r[s], r[t], signed=True)
        elif function == Special.MULTU:
            self._multiply(r[s], r[t], signed=False)
        elif function == Special.DIV:
            quotient, remainder = _truncating_divmod(r[s], r[t])
            self.lo, self.hi = _s32(quotient), _s32(remainder)
        elif function == Special.DIVU:
            quotient, remainder = _truncating_divmod(_u32(r[s]), _u32(r[t]))
            self.lo, self.hi = _s32(quotient), _s32(remainder)
        elif function in (Special.ADD, Special.ADDU):
            r[d] = _s32(r[s] + r[t])
        elif function in (Special.SUB, Special.SUBU):
            r[d] = _s32(r[s] - r[t])
        elif function == Special.AND:
            r[d] = r[s] & r[t]
        elif function == Special.OR:
            r[d] = r[s] | r[t]
        elif function == Special.XOR:
            r[d] = r[s] ^ r[t]
        elif function == Special.NOR:
            r[d] = _s32(~(r[s] | r[t]))
        elif function == Special.SLT:
            r[d] = int(r[s] < r[t])
        elif function == Special.SLTU:
            r[d] = int(_u32(r[s]) < _u32(r[t]))
        else:
            self._unimplemented()

    def _multiply(self, t1: int, t2: int, signed: bool) -> None:
        negative = False
        if signed:
            if t1 < 0:
                t1, negative = _s32(-t1), not negative
            if t2 < 0:
                t2, negative = _s32(-t2), not negative
        t1l, t1h = t1 & 0xFFFF, (t1 >> 16) & 0xFFFF
        t2l, t2h = t2 & 0xFFFF, (t2 >> 16) & 0xFFFF
        lo = _s32(t1 * t2)
        hi = _s32(
            _s32(t1h * t2h) + (_s32(t1h * t2l) >> 16) + (_s32(t2h * t1l) >> 16)
        )
        if negative:
            lo, hi = _s32(~lo + 1), _s32(~hi)
            if lo == 0:
                hi = _s32(hi + 1)
        self.lo, self.hi = lo, hi

    def _bcond(self, instr: int, xpc: int) -> None:
        r = self.registers
        condition = rt(instr)
        value = r[rs(instr)]
        if condition in (BranchCond.BLTZAL, BranchCond.BGEZAL):
            r[31] = _s32(xpc + 8)
        if condition in (BranchCond.BLTZ, BranchCond.BLTZAL):
            if value < 0:
                self._branch(xpc, instr)
        elif condition in (BranchCond.BGEZ, BranchCond.BGEZAL):
            if value >= 0:
                self._branch(xpc, instr)
        else:
            self._unimplemented()

    def _normal(self, opcode: int, instr: int, xpc: int) -> None:
        r = self.registers
        mem = self.memory
        s, t = rs(instr), rt(instr)
        imm = immed(instr)
        if opcode in (Op.J, Op.JAL):
            if opcode == Op.JAL:
                r[31] = _s32(xpc + 8)
            self.npc = (xpc & 0xF0000000) | ((instr & 0x03FFFFFF) << 2)
        elif opcode == Op.BEQ:
            if r[s] == r[t]:
                self._branch(xpc, instr)
        elif opcode == Op.BNE:
            if r[s] != r[t]:
                self._branch(xpc, instr)
        elif opcode == Op.BLEZ:
            if r[s] <= 0:
                self._branch(xpc, instr)
        elif opcode == Op.BGTZ:
            if r[s] > 0:
                self._branch(xpc, instr)
        elif opcode in (Op.ADDI, Op.ADDIU):
            r[t] = _s32(r[s] + imm)
        elif opcode == Op.SLTI:
            r[t] = int(r[s] < imm)
        elif opcode == Op.SLTIU:
            r[t] = int(_u32(r[s]) < _u32(imm))
        elif opcode == Op.ANDI:
            r[t] = r[s] & imm
        elif opcode == Op.ORI:
            r[t] = r[s] | imm
        elif opcode == Op.XORI:
            r[t] = r[s] ^ imm
        elif opcode == Op.LUI:
            r[t] = _s32(instr << 16)
        elif opcode == Op.LB:
            r[t] = mem.cfetch(r[s] + imm)
        elif opcode == Op.LH:
            r[t] = mem.sfetch(r[s] + imm)
        elif opcode == Op.LW:
            r[t] = mem.fetch(r[s] + imm)
        elif opcode == Op.LBU:
            r[t] = mem.ucfetch(r[s] + imm)
        elif opcode == Op.LHU:
            r[t] = mem.usfetch(r[s] + imm)
        elif opcode == Op.LWL:
            addr = _s32(r[s] + imm)
            word = mem.fetch(addr & 0xFFFFFFFC)
            r[t] = _s32(r[t] | (word << (8 * (addr & 3))))
        elif opcode == Op.LWR:
            addr = _s32(r[s] + imm)
            value = r[t] & (-1 << (8 * (addr & 3)))
            if addr & 3 == 0:
                value = 0
            value |= mem.fetch(addr & 0xFFFFFFFC) >> (8 * ((-addr) & 3))
            r[t] = _s32(value)
        elif opcode == Op.SB:
            mem.cstore(r[s] + imm, r[t])
        elif opcode == Op.SH:
            mem.sstore(r[s] + imm, r[t])
        elif opcode == Op.SW:
            mem.store(r[s] + imm, r[t])
        elif opcode in (Op.SWL, Op.SWR):
            print(f"sorry, no {Op(opcode).name} yet.", file=sys.stderr)
            self._unimplemented()
        elif opcode in _COPROCESSOR_OPS:
            print("Sorry, no coprocessors.", file=sys.stderr)
            raise MachineError("Sorry, no coprocessors.")
        else:
            self._unimplemented()

    # -- system calls ---------------------------------------------------

    def _user_string(self, addr: int) -> bytes:
        chars = bytearray()
        while (byte := self.memory.ucfetch(addr + len(chars))) != 0:
            chars.append(byte)
        return bytes(chars)

    def _sys_read(self, fd: int, addr: int, count: int) -> int:
        if count < 0:
            return -1
        stream = self._stream(fd)
        try:
            data = stream.read(count) if stream is not None else os.read(fd, count)
        except OSError:
            return -1
        data = data or b""
        self.memory.load(addr, data)
        return len(data)

    def _sys_write(self, fd: int, addr: int, count: int) -> int:
        if count < 0:
            return -1
        data = self.memory.read(addr, count)
        stream = self._stream(fd)
        try:
            if stream is None:
                return os.write(fd, data)
            stream.write(data)
            if hasattr(stream, "flush"):
                stream.flush()
        except OSError:
            return -1
        return len(data)

    def _sys_open(self, addr: int, flags: int, mode: int) -> int:
        path = self._user_string(addr)
        try:
            return os.open(path, flags, mode)
        except OSError:
            return -1

    def _sys_lseek(self, fd: int, offset: int, whence: int) -> int:
        stream = self._stream(fd)
        try:
            if stream is not None:
                return _s32(stream.seek(offset, whence))
            return _s32(os.lseek(fd, offset, whence))
        except (OSError, ValueError):
            return -1

    def _sys_fstat(self, fd: int) -> int:
        try:
            os.fstat(fd)
        except OSError:
            return -1
        return 0

    def system_trap(self) -> None:
        """Carry out the system call whose number is in register 2."""
        r = self.registers
        if self.trap_trace:
            self._say(f"**System call {r[2]}")
            self._say(self.dump_registers())

        number, a0, a1, a2 = r[2], r[4], r[5], r[6]
        if number == SYS_EXIT:
            raise ProgramExit(0)
        if number == SYS_READ:
            r[1] = self._sys_read(a0, a1, a2)
        elif number == SYS_WRITE:
            r[1] = self._sys_write(a0, a1, a2)
        elif number == SYS_OPEN:
            r[1] = self._sys_open(a0, a1, a2)
        elif number == SYS_CLOSE:
            r[1] = 0
        elif number == SYS_SBREAK:
            quotient, _ = _truncating_divmod(a0, _BREAK_ROUNDING)
            r[1] = _s32((quotient + 1) * _BREAK_ROUNDING)
        elif number == SYS_LSEEK:
            r[1] = self._sys_lseek(a0, a1, a2)
        elif number == SYS_IOCTL:
            r[1] = 0
        elif number == SYS_FSTAT:
            r[1] = self._sys_fstat(a1)
        elif number == SYS_GETPAGESIZE:
            r[1] = mmap.PAGESIZE
        else:
            self._say(f"Unknown System call {number}")
            if not self.trap_trace:
                self._say(self.dump_registers())
            raise MachineError(f"Unknown System call {number}")

        if self.trap_trace:
            self._say("**Afterwards:")
            self._say(self.dump_registers())

    def dump_registers(self) -> str:
        """Return the 32 registers as four lines of eight hex words."""
        lines = []
        for first in range(0, 32, 8):
            words = " ".join(f"{_u32(v):08x}" for v in self.registers[first:first + 8])
            lines.append(f"{first:2d}: {words}")
        return "\n".join(lines)


def ilog2(value: int) -> int:
    """Return the number of bits needed for ``value`` read as unsigned 32-bit."""
    return _u32(value).bit_length()