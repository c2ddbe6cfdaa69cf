[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "minikernel"
version = "0.1.0"
description = "Teaching toolkit: small stacks and lists, a MIPS COFF/NOFF toolchain, a MIPS interpreter and a flat file-system directory table"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "education",
    "operating-systems",
    "mips",
    "coff",
    "noff",
    "disassembler",
    "interpreter",
    "stack",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
    "Topic :: Software Development :: Disassemblers",
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
minikernel-stack = "minikernel.arraystack:main"
minikernel-inheritstack = "minikernel.inheritstack:main"
minikernel-disasm = "minikernel.disasm:main"
minikernel-coff2noff = "minikernel.coff2noff:main"
minikernel-coff2flat = "minikernel.coff2flat:main"
minikernel-run = "minikernel.runner:main"

[tool.hatch.build.targets.wheel]
packages = ["minikernel"]

[tool.hatch.build.targets.sdist]
include = ["minikernel", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
