# minikernel

A small toolkit for teaching operating-system internals. It bundles:

- **Data-structure warm-ups**: an integer list that grows and shrinks at the
  front (`IntList`), a bounded stack (`BoundedStack`) and a pair of
  interchangeable integer stacks behind one abstract interface (`Stack`,
  `ArrayStack`, `ListStack`).
- **A MIPS object-file toolchain**: readers and writers for little-endian
  MIPS COFF headers and the simpler NOFF executable format, a COFF-to-NOFF
  converter, a COFF-to-flat-image converter and a disassembler.
- **A MIPS interpreter** that loads a COFF program into simulated memory,
  places `argc`/`argv` below the top of memory and executes it, handling a
  small set of system calls.
- **A file-system directory table**: a fixed-size table of name/sector
  entries that can be serialised to and from bytes.

Only the standard library is needed.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Command-line tools

| Command | What it does |
| --- | --- |
| `minikernel-stack` | Fills and empties a `BoundedStack(10)` starting from `17`, then one starting from `'a'`, printing each push and pop. |
| `minikernel-inheritstack` | Runs the shared self test (ten pushes from `17`) on `ArrayStack(10)` and `ListStack()`. |
| `minikernel-disasm [FILE]` | Disassembles the `.text` section of a COFF file (default `a.out`). Leading options are ignored. |
| `minikernel-coff2noff COFF NOFF` | Converts a COFF executable into a NOFF executable; the output file is removed if conversion fails. |
| `minikernel-coff2flat COFF FLAT` | Lays a COFF executable out as a flat memory image followed by a 1024-byte stack. |
| `minikernel-run [-t] [-T] [-r] [-m A B C D] [FILE [ARGS...]]` | Loads a COFF program (default `a.out`) and interprets it. |

Options of `minikernel-run` (letters may be combined, e.g. `-tr`):

- `-t` print every executed instruction, disassembled,
- `-T` trace system calls, with register dumps before and after,
- `-r` with `-t`, dump the registers after each instruction,
- `-m` takes four cache parameters, which are accepted and ignored.

The program's exit status is the interpreter's exit status; an unsupported
or illegal instruction ends the run with status 2.

Example:

```
minikernel-coff2noff halt.coff halt.noff
minikernel-disasm halt.coff
minikernel-run -t halt.coff
```

## Library use

### Lists and stacks

```python
from minikernel.intlist import IntList
from minikernel.arraystack import BoundedStack, StackFullError
from minikernel.inheritstack import ArrayStack, ListStack

numbers = IntList()
numbers.prepend(1)
numbers.prepend(2)
assert numbers.remove() == 2

stack = BoundedStack(2)
stack.push(10)
stack.push(20)
try:
    stack.push(30)
except StackFullError:
    pass
assert stack.pop() == 20

for impl in (ArrayStack(10), ListStack()):
    impl.push(17)
    assert impl.pop() == 17
```

Popping an empty stack raises `StackEmptyError`; removing from an empty
`IntList` raises `ListEmptyError`. `BoundedStack.self_test(start)` and
`Stack.self_test(num_to_push)` print each push and pop and return the popped
values in order.

### Object files

```python
from pathlib import Path
from minikernel.coff import CoffFile
from minikernel.coff2noff import convert
from minikernel.coff2flat import to_flat

data = Path("halt.coff").read_bytes()
coff = CoffFile.parse(data)
text = coff.section(".text")
code = coff.section_data(text)

noff_bytes = convert(data)
flat_bytes = to_flat(data, 1024)
```

`minikernel.coff` provides `FileHeader`, `AoutHeader`, `SectionHeader`,
`CoffFile`, `NoffSegment` and `NoffHeader`, each with `pack`/`unpack`
where it applies. `CoffError` is raised for files that are too short or
carry the wrong magic numbers; `ConversionError` (a `CoffError`) for section
layouts NOFF cannot express, such as both `.data` and `.rdata`, or an
unknown section name.

### Disassembly

```python
from minikernel.disasm import disassemble, disassemble_word

print(disassemble_word(0x27BDFFE8, 0x10000000, True))
lines = disassemble(code, 0x10000000)
```

The field helpers in `minikernel.mips` (`rs`, `rt`, `rd`, `shamt`, `immed`,
`off16`, `off26`, `top4`, `extend`) and the opcode enums `Op`, `Special`
and `BranchCond` describe the instruction encoding.

### Interpreter

```python
from minikernel.interpreter import Machine, Memory
from minikernel.runner import load_program

memory = Memory()
load_program(memory, data)
status = Machine(memory).run(0x10000000, ["halt"])
```

`Memory` models the address space from `0x10000000` with word, half-word and
byte accessors (`fetch`, `sfetch`, `usfetch`, `cfetch`, `ucfetch`, `store`,
`sstore`, `cstore`, `load`, `read`). `Machine` holds the registers and
executes instructions one `step()` at a time or through `run()`; the exit
system call raises `ProgramExit`, which `run()` turns into its return value.
Illegal or unsupported instructions and unknown system calls raise
`MachineError`. `Machine.dump_registers()` returns the registers as text,
and `ilog2(value)` gives the bit length of a value read as unsigned 32-bit.

### Directory

```python
from minikernel.directory import Directory

directory = Directory(10)
directory.add("notes", 5)
assert directory.find("notes") == 5
raw = directory.to_bytes()
restored = Directory.from_bytes(raw, 10)
assert restored.names() == ["notes"]
```

File names are significant to nine characters, and the table never grows
beyond the size it was created with. `fetch_from` and `write_back` read and
write the table at the start of a binary file object.

## What it does not do

- There is no file system around the directory table: no simulated disk,
  free-sector bitmap, file headers or open-file objects. The table is stored
  only in whatever binary file object you hand it.
- The interpreter supports only the system calls exit, read, write, open,
  close, sbreak, lseek, ioctl, fstat and getpagesize. `close` and `ioctl`
  do nothing and return 0, and `fstat` only reports whether the descriptor
  is valid. The `swl`, `swr` and coprocessor instructions are not executed.
- The COFF reader looks only at file, optional and section headers; symbol
  tables and relocation entries are not read.