"""Teaching toolkit: lists and stacks, MIPS COFF/NOFF tools, a disassembler, a MIPS interpreter and a directory table."""

__version__ = "0.1.0"