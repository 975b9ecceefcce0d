"""
rvasm Test Configuration
========================

Shared fixtures for the rvasm test suite.

It provides:
- The bundled RV32I specification
- A minimal instruction definition for building custom specs
- A helper for writing source files into a temporary directory
"""

from pathlib import Path

import pytest

from rvasm.isa import InstructionSpec, default_spec


# ═══════════════════════════════════════════════════════════════════════════════
# SPECIFICATION FIXTURES
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture(scope="session")
def rv32i() -> InstructionSpec:
    """
    Fixture: The bundled RV32I specification.
    """
    return default_spec()


@pytest.fixture
def tiny_definition() -> dict:
    """
    Fixture: A minimal definition document with one I-type instruction.

    Tests copy and tweak it to build specs with unusual properties.
    """
    return {
        "name": "tiny",
        "constants": {"ILEN": 32, "IALIGN": 32},
        "registers": {"r0": 0, "r1": 1, "r2": 2, "zero": 0},
        "formats": {
            "I": {
                "opcode": {"position": 0, "width": 7, "kind": "fixed"},
                "rd": {"position": 7, "width": 5, "kind": "register"},
                "funct3": {"position": 12, "width": 3, "kind": "fixed"},
                "rs1": {"position": 15, "width": 5, "kind": "register"},
                "imm": {"position": 20, "width": 12, "kind": "immediate", "signed": True},
            },
        },
        "instructions": {
            "addi": {
                "format": "I",
                "operands": ["rd", "rs1", "imm"],
                "fixed": {"opcode": 0x13, "funct3": 0},
            },
        },
    }


# ═══════════════════════════════════════════════════════════════════════════════
# FILE HELPERS
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def write_source(tmp_path: Path):
    """
    Fixture: Write a source (or definition) file under tmp_path.

    Usage:
        path = write_source("prog.s", "nop")
    """
    def _write(name: str, text: str) -> Path:
        path = tmp_path / name
        path.write_text(text)
        return path

    return _write
