# =============================================================================
# test_assembler.py - Assembler Integration Tests
# =============================================================================
# End-to-end tests: source text in, flat image out.
#
# Test coverage includes:
#   - Instruction encoding through the full pipeline
#   - Forward and backward label references with '$'
#   - Local label scoping
#   - Constants (.equ/.define), predefined symbols and spec constants
#   - .org, data, string, fill and alignment directives
#   - Base address and image size limits
#   - Error reporting
#   - Output writers and configuration
# =============================================================================

import logging
import os
from pathlib import Path

import pytest
from rvasm import Assembler, AssemblerConfig, assemble, assemble_file, format_binary_words
from rvasm.errors import (
    AssemblerError,
    DivisionByZeroError,
    DuplicateSymbolError,
    ImmediateOutOfRangeError,
    InvalidOperandError,
    InvalidOrgTargetError,
    ParseError,
    UndefinedSymbolError,
    UnencodableBitsError,
    UnknownInstructionError,
    UnknownRegisterError,
)
from rvasm.isa import BUNDLED_RV32I
from rvasm.output import write_output


# =============================================================================
# Helper Functions
# =============================================================================

def words(*values: int) -> bytes:
    """Little-endian image of 32-bit words."""
    return b"".join(v.to_bytes(4, "little") for v in values)


def symbols_of(source: str, **kwargs) -> dict:
    """Assemble and return the symbol table."""
    asm = Assembler(**kwargs)
    asm.assemble_string(source)
    return asm.get_symbols()


ADDI_X1_X0_5 = 0x00500093
NOP = 0x00000013


# =============================================================================
# Basic Assembly Tests
# =============================================================================

class TestBasicAssembly:
    """Test simple programs."""

    def test_single_instruction(self):
        assert assemble("addi x1, x0, 5") == bytes.fromhex("93005000")

    def test_empty_source(self):
        assert assemble("") == b""

    def test_comments_only(self):
        assert assemble("; nothing here\n\n") == b""

    def test_sequence(self):
        code = assemble("""
            addi x1, x0, 5
            add  x3, x1, x2
            ecall
        """)
        assert code == words(ADDI_X1_X0_5, 0x002081B3, 0x00000073)

    def test_case_insensitive_mnemonics_and_registers(self):
        assert assemble("ADDI X1, ZERO, 5") == words(ADDI_X1_X0_5)

    def test_negative_immediate(self):
        assert assemble("addi x1, x0, -2048") == words(0x80000093)

    def test_expression_immediate(self):
        assert assemble("addi x1, x0, (1 << 2) + 1") == words(ADDI_X1_X0_5)

    def test_line_continuation(self):
        assert assemble("addi x1, \\\n x0, 5") == words(ADDI_X1_X0_5)


# =============================================================================
# Label Tests
# =============================================================================

class TestLabels:
    """Test label definition and references."""

    def test_label_addresses(self):
        symbols = symbols_of("start: nop\nnop\nend: nop")
        assert symbols["start"] == 0
        assert symbols["end"] == 8

    def test_forward_reference(self):
        code = assemble("""
            beq x1, x2, target - $
            nop
        target:
            nop
        """)
        assert code[:4] == words(0x00208463)

    def test_backward_reference(self):
        code = assemble("""
        loop:
            nop
            bne x1, x0, loop - $
        """)
        assert code[4:] == words(0xFE009EE3)

    def test_jump_to_label(self):
        code = assemble("jal x1, end - $\nnop\nend: nop")
        assert code[:4] == words(0x008000EF)

    def test_label_value_as_immediate(self):
        code = assemble("nop\nhere: addi x1, x0, here")
        assert code[4:] == words(0x00400093)

    def test_pc_is_instruction_address(self):
        code = assemble("nop\nnop\naddi x1, x0, $")
        assert code[8:] == words(0x00800093)

    def test_duplicate_label(self):
        with pytest.raises(DuplicateSymbolError) as exc_info:
            assemble("start: nop\nstart: nop")
        assert exc_info.value.symbol == "start"
        assert exc_info.value.location.line == 2

    def test_undefined_label(self):
        with pytest.raises(UndefinedSymbolError) as exc_info:
            assemble("j nowhere - $")
        assert exc_info.value.symbol == "nowhere"

    def test_labels_are_case_sensitive(self):
        with pytest.raises(UndefinedSymbolError):
            assemble("Start: nop\nj start - $")


class TestLocalLabels:
    """Test local labels scoped to the preceding global label."""

    SOURCE = """
    foo:
    .loop:
        nop
        beq x0, x0, .loop - $
    bar:
    .loop:
        nop
        beq x0, x0, .loop - $
    """

    def test_each_scope_has_its_own_local(self):
        symbols = symbols_of(self.SOURCE)
        assert symbols == {"foo": 0, "foo.loop": 0, "bar": 8, "bar.loop": 8}

    def test_branches_resolve_to_nearest_scope(self):
        code = assemble(self.SOURCE)
        # Both branches go back one instruction
        assert code[4:8] == words(0xFE000EE3)
        assert code[12:16] == words(0xFE000EE3)

    def test_duplicate_local_in_same_scope(self):
        with pytest.raises(DuplicateSymbolError):
            assemble("foo:\n.x: nop\n.x: nop")

    def test_local_not_visible_in_other_scope(self):
        with pytest.raises(UndefinedSymbolError):
            assemble("foo:\n.only: nop\nbar:\nj .only - $")

    def test_constant_does_not_change_scope(self):
        symbols = symbols_of("foo:\n.equ K, 1\n.loop: nop")
        assert "foo.loop" in symbols


# =============================================================================
# Constant Tests
# =============================================================================

class TestConstants:
    """Test .equ/.define and predefined symbols."""

    def test_equ(self):
        assert assemble(".equ FIVE, 5\naddi x1, x0, FIVE") == words(ADDI_X1_X0_5)

    def test_define_synonym(self):
        assert assemble(".define FIVE, 5\naddi x1, x0, FIVE") == words(ADDI_X1_X0_5)

    def test_constant_takes_no_space(self):
        assert assemble(".equ SIZE, 16") == b""

    def test_constant_from_constant(self):
        code = assemble(".equ A, 2\n.equ B, A + 3\naddi x1, x0, B")
        assert code == words(ADDI_X1_X0_5)

    def test_constant_from_earlier_label(self):
        symbols = symbols_of("nop\nstart: nop\n.equ AFTER, start + 4")
        assert symbols["AFTER"] == 8

    def test_forward_reference_rejected(self):
        """Constants are evaluated when defined, so later symbols are unknown."""
        with pytest.raises(UndefinedSymbolError):
            assemble(".equ A, B\n.equ B, 1")

    def test_redefinition_rejected(self):
        with pytest.raises(DuplicateSymbolError):
            assemble(".equ A, 1\n.equ A, 2")

    def test_constant_and_label_collide(self):
        with pytest.raises(DuplicateSymbolError):
            assemble(".equ start, 1\nstart: nop")

    def test_equ_needs_name(self):
        with pytest.raises(InvalidOperandError):
            assemble(".equ 1, 2")

    def test_equ_arity(self):
        with pytest.raises(InvalidOperandError):
            assemble(".equ A")

    def test_spec_constants(self):
        """Constants from the instruction definition are visible."""
        assert assemble("addi x1, x0, ILEN") == words(0x02000093)

    def test_constant_shadows_spec_constant(self):
        assert assemble(".equ XLEN, 5\naddi x1, x0, XLEN") == words(ADDI_X1_X0_5)

    def test_predefined_symbol(self):
        asm = Assembler(defines={"STACK": 0x10})
        assert asm.assemble_string("addi sp, zero, STACK") == words(0x01000113)

    def test_define_symbol_method(self):
        asm = Assembler()
        asm.define_symbol("FIVE", 5)
        assert asm.assemble_string("addi x1, x0, FIVE") == words(ADDI_X1_X0_5)

    def test_predefined_symbol_redefined(self):
        asm = Assembler(defines={"A": 1})
        with pytest.raises(DuplicateSymbolError):
            asm.assemble_string(".equ A, 2")


# =============================================================================
# Origin Tests
# =============================================================================

class TestOrigin:
    """Test .org and the image layout."""

    def test_org_fills_gap_with_zeros(self):
        code = assemble(".org 0x100\nnop")
        assert len(code) == 0x104
        assert code[:0x100] == bytes(0x100)
        assert code[0x100:] == words(NOP)

    def test_org_sets_label_address(self):
        assert symbols_of(".org 0x40\nstart: nop")["start"] == 0x40

    def test_org_relative_to_pc(self):
        code = assemble(".byte 1\n.org $ + 3\n.byte 2")
        assert code == b"\x01\x00\x00\x00\x02"

    def test_org_without_writes(self):
        """Moving PC alone does not grow the image."""
        assert assemble("nop\n.org 0x100") == words(NOP)

    def test_backwards_org_overwrites(self, caplog):
        with caplog.at_level(logging.WARNING):
            code = assemble(".word 0x11111111\n.org 0\n.byte 0x22")
        assert code == b"\x22\x11\x11\x11"
        assert "overwriting 1 byte(s)" in caplog.text

    def test_org_forward_reference_rejected(self):
        with pytest.raises(UndefinedSymbolError):
            assemble(".org start\nstart: nop")

    def test_org_arity(self):
        with pytest.raises(InvalidOperandError):
            assemble(".org 1, 2")


class TestBaseAddress:
    """Test the configured base address and size limit."""

    def test_base_address(self):
        config = AssemblerConfig(base_address=0x1000)
        asm = Assembler(config=config)
        code = asm.assemble_string("start: nop\n.org 0x1008\nend: nop")

        assert len(code) == 12
        assert asm.get_origin() == 0x1000
        assert asm.get_symbols()["start"] == 0x1000
        assert asm.get_symbols()["end"] == 0x1008

    def test_pc_starts_at_base(self):
        config = AssemblerConfig(base_address=0x1000)
        assert assemble("addi x1, x0, $ - 0x1000 + 5", config=config) == words(ADDI_X1_X0_5)

    def test_org_below_base(self):
        config = AssemblerConfig(base_address=0x1000)
        with pytest.raises(InvalidOrgTargetError) as exc_info:
            assemble(".org 0x10", config=config)
        assert exc_info.value.target == 0x10

    def test_org_beyond_limit(self):
        config = AssemblerConfig(max_image_size=16)
        with pytest.raises(InvalidOrgTargetError):
            assemble(".org 0x20", config=config)

    def test_org_negative_target(self):
        """-1 is the largest 64-bit address, far beyond any image."""
        with pytest.raises(InvalidOrgTargetError):
            assemble(".org -1")

    def test_program_past_limit(self):
        config = AssemblerConfig(max_image_size=16)
        with pytest.raises(AssemblerError) as exc_info:
            assemble(".zero 32", config=config)
        assert exc_info.value.location.line == 1

    def test_program_exactly_at_limit(self):
        config = AssemblerConfig(max_image_size=8)
        assert assemble("nop\nnop", config=config) == words(NOP, NOP)


# =============================================================================
# Data Directive Tests
# =============================================================================

class TestDataDirectives:
    """Test .byte/.half/.word/.dword."""

    def test_byte(self):
        assert assemble(".byte 1, 2, 0xFF") == b"\x01\x02\xff"

    def test_half(self):
        assert assemble(".half 0x1234") == b"\x34\x12"

    def test_word(self):
        assert assemble(".word 0xDEADBEEF") == b"\xef\xbe\xad\xde"

    def test_dword(self):
        assert assemble(".dword 0x0102030405060708") == bytes(range(8, 0, -1))

    def test_negative_values(self):
        assert assemble(".byte -1\n.half -2") == b"\xff\xfe\xff"

    def test_byte_too_large(self):
        with pytest.raises(ImmediateOutOfRangeError) as exc_info:
            assemble(".byte 256")
        assert exc_info.value.width == 8

    def test_byte_too_negative(self):
        with pytest.raises(ImmediateOutOfRangeError) as exc_info:
            assemble(".byte -129")
        assert exc_info.value.value == -129
        assert exc_info.value.signed

    def test_pc_is_directive_start(self):
        code = assemble(".org 8\n.word $, $")
        assert code[8:] == words(8, 8)

    def test_label_values(self):
        code = assemble("table: .word a, b\na: nop\nb: nop")
        assert code[:8] == words(8, 12)

    def test_register_rejected(self):
        with pytest.raises(InvalidOperandError):
            assemble(".word x1")

    def test_no_values(self):
        with pytest.raises(InvalidOperandError):
            assemble(".byte")

    def test_directive_case_insensitive(self):
        assert assemble(".BYTE 7") == b"\x07"


class TestStringDirectives:
    """Test .ascii/.asciz/.string."""

    def test_ascii(self):
        assert assemble('.ascii "hi"') == b"hi"

    def test_asciz(self):
        assert assemble('.asciz "hi"') == b"hi\x00"

    def test_string(self):
        assert assemble('.string "a", "b"') == b"a\x00b\x00"

    def test_escapes(self):
        assert assemble(r'.ascii "a\n\x00"') == b"a\n\x00"

    def test_number_rejected(self):
        with pytest.raises(InvalidOperandError):
            assemble(".ascii 5")

    def test_string_as_instruction_argument(self):
        with pytest.raises(InvalidOperandError):
            assemble('addi x1, x0, "a"')


class TestFillAndAlign:
    """Test .zero/.space and .align."""

    def test_zero(self):
        assert assemble(".zero 3\n.byte 1") == b"\x00\x00\x00\x01"

    def test_space(self):
        assert assemble(".space 2") == b"\x00\x00"

    def test_align(self):
        code = assemble(".byte 1\n.align 8\n.byte 2")
        assert code == b"\x01" + bytes(7) + b"\x02"

    def test_align_when_aligned(self):
        assert assemble(".word 1\n.align 4\n.byte 2") == words(1) + b"\x02"

    def test_align_not_power_of_two(self):
        with pytest.raises(InvalidOperandError):
            assemble(".align 3")

    def test_align_zero(self):
        with pytest.raises(InvalidOperandError):
            assemble(".align 0")

    def test_instructions_are_aligned(self):
        code = assemble(".byte 1\nnop")
        assert code == b"\x01" + bytes(3) + words(NOP)

    def test_label_before_instruction_padding(self):
        """A label takes PC before the padding added for the next instruction."""
        symbols = symbols_of(".byte 1\nstart: nop")
        assert symbols["start"] == 1


# =============================================================================
# Error Tests
# =============================================================================

class TestErrors:
    """Test error reporting through the full pipeline."""

    def test_unknown_instruction(self):
        with pytest.raises(UnknownInstructionError) as exc_info:
            assemble("nop\nfrobnicate x1")
        assert exc_info.value.location.line == 2

    def test_wrong_arity(self):
        with pytest.raises(UnknownInstructionError) as exc_info:
            assemble("addi x1, x0")
        assert exc_info.value.valid_arities == [3]
        assert "takes 3 arguments" in str(exc_info.value)

    def test_unknown_instruction_found_before_encoding(self):
        """Pass 1 rejects unknown mnemonics even after an undefined symbol."""
        with pytest.raises(UnknownInstructionError):
            assemble("j nowhere - $\nfrobnicate")

    def test_unknown_register(self):
        with pytest.raises(UnknownRegisterError) as exc_info:
            assemble("addi x1, x99, 5")
        assert exc_info.value.register == "x99"

    def test_number_in_register_slot(self):
        with pytest.raises(InvalidOperandError):
            assemble("add x1, x2, 5")

    def test_register_in_immediate_slot(self):
        with pytest.raises(InvalidOperandError):
            assemble("addi x1, x0, x2")

    def test_immediate_out_of_range(self):
        with pytest.raises(ImmediateOutOfRangeError) as exc_info:
            assemble("nop\naddi x1, x0, 2048")
        assert exc_info.value.field == "imm"
        assert exc_info.value.location.line == 2

    def test_branch_out_of_range(self):
        with pytest.raises(ImmediateOutOfRangeError):
            assemble(".org 0x2000\nfar: nop\n.org 0\nbeq x0, x0, far - $")

    def test_division_by_zero(self):
        with pytest.raises(DivisionByZeroError):
            assemble("addi x1, x0, 1 / 0")

    def test_syntax_error(self):
        with pytest.raises(ParseError):
            assemble("addi x1, x0, (5")

    def test_error_message_format(self):
        with pytest.raises(AssemblerError) as exc_info:
            assemble("j nowhere - $", filename="prog.s")
        assert str(exc_info.value).startswith("prog.s:1:3: error: undefined symbol 'nowhere'")

    def test_similar_symbol_hint(self):
        with pytest.raises(UndefinedSymbolError) as exc_info:
            assemble("loop: nop\nj lopo - $")
        assert exc_info.value.similar_symbols == ["loop"]

    def test_odd_branch_offset(self):
        with pytest.raises(UnencodableBitsError) as exc_info:
            assemble("beq x0, x0, 3")
        assert exc_info.value.location.line == 1

    def test_odd_jump_to_label(self):
        with pytest.raises(UnencodableBitsError):
            assemble("start: nop\njal x1, start - $ + 1")

    def test_codegen_error_quotes_source_line(self):
        with pytest.raises(UndefinedSymbolError) as exc_info:
            assemble("nop\nj nowhere - $", filename="prog.s")
        error = exc_info.value
        assert error.source_line == "j nowhere - $"
        lines = str(error).splitlines()
        assert lines[0].startswith("prog.s:2:3: error: undefined symbol 'nowhere'")
        assert lines[1] == "    j nowhere - $"
        assert lines[2] == "      ^"

    def test_range_error_quotes_source_line(self):
        with pytest.raises(ImmediateOutOfRangeError) as exc_info:
            assemble("nop\n  addi x1, x0, 5000")
        assert exc_info.value.source_line == "  addi x1, x0, 5000"

    def test_duplicate_error_quotes_source_line(self):
        with pytest.raises(DuplicateSymbolError) as exc_info:
            assemble("a: nop\na: nop")
        assert exc_info.value.source_line == "a: nop"


# =============================================================================
# Assembler Object Tests
# =============================================================================

class TestAssemblerObject:
    """Test the Assembler class interface."""

    def test_reuse_resets_state(self):
        asm = Assembler()
        asm.assemble_string("first: nop\nnop")
        code = asm.assemble_string("second: nop")

        assert code == words(NOP)
        assert asm.get_code() == code
        assert asm.get_symbols() == {"second": 0}

    def test_failed_run_leaves_no_image(self):
        """A range error in pass 2 discards the words already written."""
        asm = Assembler()
        with pytest.raises(ImmediateOutOfRangeError):
            asm.assemble_string("addi x1, x0, 1\naddi x1, x0, 5000\n")
        assert asm.get_code() == b""
        assert asm.get_symbols() == {}

    def test_duplicate_symbol_discards_previous_run(self):
        asm = Assembler()
        asm.assemble_string("first: nop")
        with pytest.raises(DuplicateSymbolError):
            asm.assemble_string("a: nop\na: nop")
        assert asm.get_code() == b""
        assert asm.get_symbols() == {}

    def test_syntax_error_discards_previous_run(self):
        asm = Assembler()
        asm.assemble_string("first: nop")
        with pytest.raises(ParseError):
            asm.assemble_string("addi x1, x0, (5")
        assert asm.get_code() == b""
        assert asm.get_symbols() == {}

    def test_failed_run_writes_empty_file(self, tmp_path):
        asm = Assembler()
        with pytest.raises(UndefinedSymbolError):
            asm.assemble_string("nop\nj nowhere - $")
        path = tmp_path / "out.bin"
        asm.write_binary(path)
        assert path.read_bytes() == b""

    def test_run_after_failure(self):
        asm = Assembler(defines={"FIVE": 5})
        with pytest.raises(UndefinedSymbolError):
            asm.assemble_string("j nowhere - $")
        assert asm.assemble_string("addi x1, x0, FIVE") == words(ADDI_X1_X0_5)
        assert asm.get_symbols() == {"FIVE": 5}

    def test_assemble_file(self, write_source):
        path = write_source("prog.s", "addi x1, x0, 5\n")
        assert assemble_file(path) == words(ADDI_X1_X0_5)

    def test_file_errors_name_the_file(self, write_source):
        path = write_source("bad.s", "nop\nj missing - $\n")
        with pytest.raises(UndefinedSymbolError) as exc_info:
            assemble_file(path)
        assert exc_info.value.location.filename == str(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            assemble_file(tmp_path / "missing.s")

    def test_spec_paths_from_config(self, write_source):
        extension = write_source("ext.yaml", """
instructions:
  halt: {format: I, operands: [], fixed: {opcode: 0x73, funct3: 0, rd: 0, rs1: 0, imm: 0}}
""")
        config = AssemblerConfig(spec_paths=[BUNDLED_RV32I, extension])
        asm = Assembler(config=config)
        assert asm.assemble_string("halt") == words(0x00000073)

    def test_explicit_spec(self, rv32i):
        asm = Assembler(rv32i)
        assert asm.spec is rv32i


# =============================================================================
# Output Tests
# =============================================================================

class TestOutput:
    """Test the flat and binary-text writers."""

    def test_write_flat(self, tmp_path):
        asm = Assembler()
        asm.assemble_string("addi x1, x0, 5")
        path = tmp_path / "out.bin"
        asm.write_binary(path)
        assert path.read_bytes() == words(ADDI_X1_X0_5)

    def test_write_binary_text(self, tmp_path):
        asm = Assembler()
        asm.assemble_string("addi x1, x0, 5\nnop")
        path = tmp_path / "out.txt"
        asm.write_binary(path, "binary")
        assert path.read_text() == (
            "00000000010100000000000010010011\n"
            "00000000000000000000000000010011\n"
        )

    def test_format_binary_partial_word(self):
        assert format_binary_words(b"\x01") == "0" * 31 + "1"

    def test_format_binary_empty(self):
        assert format_binary_words(b"") == ""

    def test_unknown_format(self, tmp_path):
        with pytest.raises(ValueError):
            write_output(tmp_path / "x", b"", "hex")


# =============================================================================
# Configuration Tests
# =============================================================================

class TestConfig:
    """Test AssemblerConfig."""

    def test_defaults(self):
        config = AssemblerConfig()
        assert config.base_address == 0
        assert config.max_image_size == 16 * 1024 * 1024
        assert config.spec_paths == []
        assert config.end_address == config.max_image_size

    def test_from_env(self):
        config = AssemblerConfig.from_env({
            "RVASM_BASE_ADDRESS": "0x8000_0000",
            "RVASM_MAX_IMAGE_SIZE": "0x100",
            "RVASM_SPEC_PATH": f"a.yaml{os.pathsep}b.yaml",
        })
        assert config.base_address == 0x8000_0000
        assert config.max_image_size == 0x100
        assert config.spec_paths == [Path("a.yaml"), Path("b.yaml")]
        assert config.end_address == 0x8000_0100

    def test_from_env_empty(self):
        assert AssemblerConfig.from_env({}) == AssemblerConfig()

    def test_from_env_invalid_value(self, caplog):
        with caplog.at_level(logging.WARNING):
            config = AssemblerConfig.from_env({"RVASM_BASE_ADDRESS": "lots"})
        assert config.base_address == 0
        assert "RVASM_BASE_ADDRESS" in caplog.text
