"""
rvasm Instruction Set Package
=============================

Data-driven instruction set descriptions: the InstructionSpec registry,
the bit encoder, and the YAML loader with the bundled RV32I definition.

Usage:
    from rvasm.isa import default_spec, load_spec

    spec = default_spec()
    addi = spec.require("addi", 3)
    word = spec.encode(addi, [1, 0, 5])
"""

from rvasm.isa.spec import (
    ILEN,
    BitSlice,
    FieldKind,
    FieldSpec,
    InstructionDef,
    InstructionFormat,
    InstructionSpec,
    OverflowPolicy,
)
from rvasm.isa.loader import (
    BUNDLED_RV32I,
    default_spec,
    load_spec,
    merge_definitions,
    read_definition,
)

__all__ = [
    "ILEN",
    "BitSlice",
    "FieldKind",
    "FieldSpec",
    "InstructionDef",
    "InstructionFormat",
    "InstructionSpec",
    "OverflowPolicy",
    "BUNDLED_RV32I",
    "default_spec",
    "load_spec",
    "merge_definitions",
    "read_definition",
]
