"""
rvasm - Data-Driven Assembler for RISC-V-Family Instruction Sets
================================================================

This package assembles RISC-V-style assembly source into a flat binary
image. The instruction set is data: register names, word formats and
mnemonics are read from YAML definition files, and the bundled RV32I
definition is used when none are given.

Main Components
---------------
- **assembler**: Lexer, parser, expression evaluator, symbol table and
  the two-pass code generator
    Converts assembly source (.s) to a flat binary image

- **isa**: Instruction specification registry and bit encoder
    Loads definition files and encodes instruction words

- **output**: Writers for the flat and binary-text formats

Quick Start
-----------
Assemble a program:
    >>> import rvasm
    >>> code = rvasm.assemble("addi x1, x0, 5")
    >>> code.hex()
    '93005000'

Use a custom instruction set:
    >>> from rvasm import Assembler, load_spec
    >>> asm = Assembler(load_spec("rv32i.yaml", "my_ext.yaml"))
    >>> asm.assemble_file("prog.s")
    >>> asm.write_binary("prog.bin")

Or use the command-line tool:
    $ rvasm prog.s -o prog.bin
    $ rvasm prog.s -f binary
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from rvasm.assembler import Assembler, assemble, assemble_file
from rvasm.config import AssemblerConfig
from rvasm.errors import (
    RvasmError,
    SourceLocation,
    AssemblerError,
    ParseError,
    UnknownRegisterError,
    UnknownInstructionError,
    UndefinedSymbolError,
    DuplicateSymbolError,
    ExpressionError,
    DivisionByZeroError,
    ImmediateOutOfRangeError,
    UnencodableBitsError,
    InvalidOrgTargetError,
    InvalidOperandError,
    SpecError,
)
from rvasm.isa import InstructionSpec, default_spec, load_spec
from rvasm.output import format_binary_words

__all__ = [
    # Version info
    "__version__",
    # Assembler
    "Assembler",
    "assemble",
    "assemble_file",
    "AssemblerConfig",
    # Instruction specification
    "InstructionSpec",
    "default_spec",
    "load_spec",
    # Output
    "format_binary_words",
    # Exception hierarchy
    "RvasmError",
    "SourceLocation",
    "AssemblerError",
    "ParseError",
    "UnknownRegisterError",
    "UnknownInstructionError",
    "UndefinedSymbolError",
    "DuplicateSymbolError",
    "ExpressionError",
    "DivisionByZeroError",
    "ImmediateOutOfRangeError",
    "UnencodableBitsError",
    "InvalidOrgTargetError",
    "InvalidOperandError",
    "SpecError",
]
