"""
RISC-V Code Generator
=====================

This module generates a flat binary image from a parsed program. It
implements a two-pass assembly process:

Pass 1 (Address Assignment)
---------------------------
- Walk the program in source order with PC starting at the base address
- Record label addresses in the symbol table
- Evaluate .org targets and .equ/.define values immediately (these may
  only refer to symbols already defined)
- Look up every instruction so an unknown mnemonic fails early
- Advance PC by the size of each instruction and data directive

Pass 2 (Encoding)
-----------------
- Replay the same walk: the same PC movements and label scopes
- Evaluate instruction arguments with '$' bound to the instruction's own
  address, encode them through the InstructionSpec, and write each word
  little-endian into the image
- Emit the bytes of data directives

Any error aborts the run; no partial image is returned.

Directives
----------
| Directive               | Effect                                         |
|-------------------------|------------------------------------------------|
| .org ADDR               | Move PC to ADDR                                |
| .equ NAME, VAL          | Define a constant (.define is a synonym)       |
| .byte/.half/.word/.dword| 1/2/4/8-byte little-endian values              |
| .ascii "s"              | String bytes                                   |
| .asciz "s" / .string    | String bytes plus a NUL terminator             |
| .zero N / .space N      | N zero bytes                                   |
| .align N                | Advance PC to a multiple of N (power of two)   |

Directive names are case-insensitive.

Image Layout
------------
The image starts at the configured base address and ends at the highest
address written. Gaps left by .org jumps or alignment are zero. Writing
over bytes that were already written (after a backwards .org) is allowed
and logged as a warning.

Instructions are aligned to IALIGN bits (from the instruction spec,
default 32). Labels take the PC before any alignment padding.
"""

from typing import Iterable, Optional, Union
import logging

from rvasm.errors import (
    AssemblerError,
    ImmediateOutOfRangeError,
    InvalidOperandError,
    InvalidOrgTargetError,
    SourceLocation,
    UnknownRegisterError,
)
from rvasm.assembler.ast import (
    Argument,
    Expression,
    Identifier,
    Instruction,
    Label,
    Register,
    Root,
    StringLiteral,
)
from rvasm.assembler.expressions import MASK64, ExpressionEvaluator, to_signed
from rvasm.assembler.symbols import SymbolTable, find_similar_symbols
from rvasm.config import AssemblerConfig
from rvasm.isa import FieldKind, FieldSpec, InstructionSpec

logger = logging.getLogger(__name__)


ORG_DIRECTIVES = frozenset({".org"})
CONSTANT_DIRECTIVES = frozenset({".equ", ".define"})

# Value directive -> bytes per value
DATA_DIRECTIVES = {
    ".byte": 1,
    ".half": 2,
    ".word": 4,
    ".dword": 8,
}

# String directive -> append NUL terminator
STRING_DIRECTIVES = {
    ".ascii": False,
    ".asciz": True,
    ".string": True,
}

FILL_DIRECTIVES = frozenset({".zero", ".space"})
ALIGN_DIRECTIVE = ".align"


class CodeGenerator:
    """
    Generates a flat binary image from a parsed program.

    The code generator maintains:
    - The symbol table (labels, constants and predefined symbols)
    - Program counter tracking
    - The output image

    Usage:
        codegen = CodeGenerator(spec)
        codegen.define_symbol("STACK_TOP", 0x8000)
        code = codegen.generate(root)
    """

    def __init__(
        self,
        spec: InstructionSpec,
        config: Optional[AssemblerConfig] = None,
    ):
        """
        Initialize the code generator.

        Args:
            spec: Instruction specification used for lookup and encoding
            config: Base address and image size limit (defaults if None)
        """
        self._spec = spec
        self._config = config or AssemblerConfig()
        self._predefined: dict[str, int] = {}
        self.clear()

    # =========================================================================
    # Public Interface
    # =========================================================================

    def define_symbol(self, name: str, value: int) -> None:
        """
        Predefine a constant, as if by .equ before the first line.

        A later .equ/.define of the same name is a duplicate.
        """
        self._predefined[name] = value & MASK64

    def generate(self, root: Root) -> bytes:
        """
        Assemble a parsed program.

        This is the main entry point for code generation. State from any
        previous call is discarded.

        Args:
            root: Parsed program

        Returns:
            The image, from the base address to the highest written byte

        Raises:
            AssemblerError: On the first error in either pass; the image
                and symbol table are left empty
        """
        self._reset()

        try:
            self._pass1(root.items)
            logger.debug(
                f"Pass 1 complete: {len(self._symbols)} symbols, "
                f"PC=0x{self._pc:X}"
            )

            self._pass2(root.items)
            logger.debug(f"Pass 2 complete: {len(self._image)} bytes")
        except AssemblerError:
            self.clear()
            raise

        return self.get_code()

    def get_code(self) -> bytes:
        """Return the generated image."""
        return bytes(self._image)

    def get_origin(self) -> int:
        """Address of the first image byte."""
        return self._config.base_address

    def get_symbols(self) -> dict[str, int]:
        """All symbols by qualified name (locals as 'label.local')."""
        return self._symbols.symbols()

    def clear(self) -> None:
        """Drop the image and symbols of the last run."""
        self._symbols = SymbolTable(self._spec.constants)
        self._evaluator = ExpressionEvaluator(self._symbols)
        self._pc = self._config.base_address
        self._image = bytearray()
        self._written = bytearray()

    # =========================================================================
    # Pass 1: Address Assignment
    # =========================================================================

    def _reset(self) -> None:
        self.clear()
        for name, value in self._predefined.items():
            self._symbols.declare(name, value, is_label=False)

    def _pass1(self, items: Iterable[Union[Label, Instruction]]) -> None:
        """
        First pass: collect symbols and calculate addresses.

        This pass:
        - Records label addresses in the symbol table
        - Processes .org to set the program counter
        - Processes .equ/.define for constants
        - Calculates instruction and data sizes to update PC
        """
        self._pc = self._config.base_address

        for item in items:
            if isinstance(item, Label):
                self._define_label(item)
            else:
                self._pass1_instruction(item)

    def _pass1_instruction(self, inst: Instruction) -> None:
        name = inst.mnemonic.lower()

        if name in ORG_DIRECTIVES:
            self._set_origin(inst)

        elif name in CONSTANT_DIRECTIVES:
            self._define_constant(inst)

        elif name in DATA_DIRECTIVES:
            for index in range(self._require_arguments(inst)):
                self._expression_argument(inst, index)
            self._advance(DATA_DIRECTIVES[name] * inst.arity, inst.location)

        elif name in STRING_DIRECTIVES:
            size = sum(len(data) for data in self._string_arguments(inst, name))
            self._advance(size, inst.location)

        elif name in FILL_DIRECTIVES:
            self._advance(self._fill_size(inst), inst.location)

        elif name == ALIGN_DIRECTIVE:
            self._advance(self._align_padding(inst), inst.location)

        else:
            self._spec.require(inst.mnemonic, inst.arity, inst.location)
            self._advance(self._instruction_padding(), inst.location)
            self._advance(self._spec.ilen_bytes, inst.location)

    def _define_label(self, label: Label) -> None:
        """Define a label at the current PC."""
        self._symbols.declare(label.name, self._pc, label.location)

    def _define_constant(self, inst: Instruction) -> None:
        """Define a constant (.equ/.define NAME, VALUE)."""
        if inst.arity != 2:
            raise InvalidOperandError(
                f"'{inst.mnemonic}' takes a name and a value", inst.location
            )

        name = inst.arguments[0].value
        if not isinstance(name, Identifier):
            raise InvalidOperandError(
                f"'{inst.mnemonic}' needs a symbol name as its first argument",
                inst.arguments[0].location,
            )

        value = self._evaluate(self._expression_argument(inst, 1))
        symbol = self._symbols.declare(name.name, value, inst.location, is_label=False)
        logger.debug(f"Constant {symbol.qualified_name} = 0x{value:X}")

    def _set_origin(self, inst: Instruction) -> None:
        """Move PC to the .org target, checking it lies within the image."""
        if inst.arity != 1:
            raise InvalidOperandError(
                f"'{inst.mnemonic}' takes exactly one address", inst.location
            )

        target = self._evaluate(self._expression_argument(inst, 0))

        if target < self._config.base_address:
            raise InvalidOrgTargetError(
                target,
                f"below the base address 0x{self._config.base_address:X}",
                inst.location,
            )
        if target > self._config.end_address:
            raise InvalidOrgTargetError(
                target,
                f"beyond the maximum image size of {self._config.max_image_size} bytes",
                inst.location,
            )

        self._pc = target

    # =========================================================================
    # Pass 2: Encoding
    # =========================================================================

    def _pass2(self, items: Iterable[Union[Label, Instruction]]) -> None:
        """
        Second pass: generate the image.

        PC and label scopes are replayed exactly as in pass 1, so every
        expression sees the same '$' and the same local labels.
        """
        self._pc = self._config.base_address
        self._symbols.enter_scope(None)

        for item in items:
            if isinstance(item, Label):
                if not item.is_local:
                    self._symbols.enter_scope(item.name)
            else:
                self._pass2_instruction(item)

    def _pass2_instruction(self, inst: Instruction) -> None:
        name = inst.mnemonic.lower()

        if name in ORG_DIRECTIVES:
            self._set_origin(inst)

        elif name in CONSTANT_DIRECTIVES:
            pass  # Defined in pass 1

        elif name in DATA_DIRECTIVES:
            self._emit_values(inst, DATA_DIRECTIVES[name])

        elif name in STRING_DIRECTIVES:
            for data in self._string_arguments(inst, name):
                self._write(data, inst.location)

        elif name in FILL_DIRECTIVES:
            self._write(bytes(self._fill_size(inst)), inst.location)

        elif name == ALIGN_DIRECTIVE:
            self._pc += self._align_padding(inst)

        else:
            self._emit_instruction(inst)

    def _emit_instruction(self, inst: Instruction) -> None:
        definition = self._spec.require(inst.mnemonic, inst.arity, inst.location)
        self._pc += self._instruction_padding()

        values = []
        for index, spec_field in enumerate(definition.operand_fields):
            if spec_field.kind is FieldKind.REGISTER:
                values.append(self._register_operand(inst, inst.arguments[index], spec_field))
            else:
                values.append(self._evaluate(self._expression_argument(inst, index)))

        word = self._spec.encode(definition, values, inst.location)
        self._write(word.to_bytes(self._spec.ilen_bytes, "little"), inst.location)

    def _emit_values(self, inst: Instruction, width: int) -> None:
        """Emit .byte/.half/.word/.dword values; '$' is the directive address."""
        start = self._pc
        for index in range(inst.arity):
            value = self._evaluate(self._expression_argument(inst, index), pc=start)
            value = self._fit_data(inst, index, value, width)
            self._write(value.to_bytes(width, "little"), inst.location)

    # =========================================================================
    # Operands
    # =========================================================================

    def _register_operand(
        self,
        inst: Instruction,
        argument: Argument,
        spec_field: FieldSpec,
    ) -> int:
        value = argument.value

        if isinstance(value, Register):
            return value.index

        if isinstance(value, Identifier):
            similar = find_similar_symbols(value.name, self._spec.register_names)
            hint = None
            if similar:
                hint = "did you mean " + ", ".join(f"'{s}'" for s in similar) + "?"
            raise UnknownRegisterError(value.name, value.location, hint=hint)

        raise InvalidOperandError(
            f"'{inst.mnemonic}' expects a register for '{spec_field.name}'",
            argument.location,
        )

    def _expression_argument(self, inst: Instruction, index: int) -> Expression:
        """Argument `index` of `inst`, which must be a numeric expression."""
        argument = inst.arguments[index]

        if isinstance(argument.value, Register):
            raise InvalidOperandError(
                f"'{inst.mnemonic}' does not accept register "
                f"'{argument.value.name}' as argument {index + 1}",
                argument.location,
            )
        if isinstance(argument.value, StringLiteral):
            raise InvalidOperandError(
                f"'{inst.mnemonic}' does not accept a string as argument {index + 1}",
                argument.location,
            )

        return argument.value

    def _string_arguments(self, inst: Instruction, name: str) -> list[bytes]:
        terminate = STRING_DIRECTIVES[name]
        strings = []
        for index in range(self._require_arguments(inst)):
            argument = inst.arguments[index]
            if not isinstance(argument.value, StringLiteral):
                raise InvalidOperandError(
                    f"'{inst.mnemonic}' expects a string as argument {index + 1}",
                    argument.location,
                )
            strings.append(argument.value.value + (b"\x00" if terminate else b""))
        return strings

    def _require_arguments(self, inst: Instruction) -> int:
        if inst.arity == 0:
            raise InvalidOperandError(
                f"'{inst.mnemonic}' needs at least one argument", inst.location
            )
        return inst.arity

    def _fill_size(self, inst: Instruction) -> int:
        if inst.arity != 1:
            raise InvalidOperandError(
                f"'{inst.mnemonic}' takes exactly one size", inst.location
            )
        return self._evaluate(self._expression_argument(inst, 0))

    def _align_padding(self, inst: Instruction) -> int:
        if inst.arity != 1:
            raise InvalidOperandError(
                f"'{inst.mnemonic}' takes exactly one alignment", inst.location
            )
        alignment = self._evaluate(self._expression_argument(inst, 0))
        if alignment == 0 or alignment & (alignment - 1):
            raise InvalidOperandError(
                f"alignment must be a power of two, got {alignment}",
                inst.arguments[0].location,
            )
        return -self._pc % alignment

    def _instruction_padding(self) -> int:
        return -self._pc % self._spec.ialign_bytes

    def _fit_data(self, inst: Instruction, index: int, value: int, width: int) -> int:
        """Accept a data value that fits `width` bytes as signed or unsigned."""
        bits = width * 8
        if bits >= 64 or value < (1 << bits):
            return value

        signed_value = to_signed(value)
        if -(1 << (bits - 1)) <= signed_value < 0:
            return signed_value & ((1 << bits) - 1)

        location = inst.arguments[index].location
        if signed_value < 0:
            raise ImmediateOutOfRangeError(inst.mnemonic, signed_value, bits, True, location)
        raise ImmediateOutOfRangeError(inst.mnemonic, value, bits, False, location)

    def _evaluate(self, node: Expression, pc: Optional[int] = None) -> int:
        return self._evaluator.evaluate(node, self._pc if pc is None else pc)

    # =========================================================================
    # Image Management
    # =========================================================================

    def _advance(self, size: int, location: SourceLocation) -> None:
        """Move PC forward in pass 1, enforcing the image size limit."""
        end = self._pc + size
        if end > self._config.end_address:
            raise AssemblerError(
                f"program extends past 0x{self._config.end_address:X}",
                location,
                hint=f"the image may not exceed {self._config.max_image_size} bytes",
            )
        self._pc = end

    def _write(self, data: bytes, location: SourceLocation) -> None:
        """Write bytes at PC and advance PC past them."""
        offset = self._pc - self._config.base_address
        end = offset + len(data)

        if end > len(self._image):
            grow = end - len(self._image)
            self._image.extend(bytes(grow))
            self._written.extend(bytes(grow))

        overlap = sum(self._written[offset:end])
        if overlap:
            logger.warning(
                f"{location}: overwriting {overlap} byte(s) already written "
                f"at 0x{self._pc:X}"
            )

        self._image[offset:end] = data
        self._written[offset:end] = b"\x01" * len(data)
        self._pc += len(data)
