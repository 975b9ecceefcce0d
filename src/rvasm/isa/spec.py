"""
Instruction Specification Registry
==================================

This module holds the data-driven description of the target instruction
set and the bit encoder that uses it. Nothing here knows about a concrete
ISA: register names, word layouts and mnemonics all come from an
InstructionSpec value, normally built from YAML definition files by
rvasm.isa.loader.

Model
-----
- **FieldSpec**: one named bit field of an instruction format. A field has
  a logical width (the operand's width, e.g. 13 bits for a RISC-V branch
  offset) and a placement: the slices of the operand that land in the
  word. Most fields are a single contiguous slice; split immediates such
  as the S/B/J-type offsets use several.
- **InstructionFormat**: a named 32-bit word layout made of fields.
- **InstructionDef**: binds a mnemonic to a format, names the fields fed
  by its arguments (in argument order) and gives fixed values for the
  rest (opcode, funct3, ...).
- **InstructionSpec**: the immutable registry: register table,
  instruction definitions keyed by (mnemonic, arity), named constants.

Range Checking
--------------
Operand fields are range-checked against their logical width:

| Policy  | Unsigned field          | Signed field                      |
|---------|-------------------------|-----------------------------------|
| strict  | 0 <= v < 2**w           | -2**(w-1) <= v < 2**(w-1)         |
| wrap    | low w bits              | low w bits                        |

Values arrive as unsigned 64-bit integers; signed fields read them as
two's complement first, so -1 (0xFFFF_FFFF_FFFF_FFFF) fits any signed field.

Example
-------
>>> from rvasm.isa import default_spec
>>> spec = default_spec()
>>> addi = spec.require("addi", 3)
>>> f"{spec.encode(addi, [1, 0, 5]):08x}"
'00500093'
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence

from rvasm.errors import (
    ImmediateOutOfRangeError,
    SourceLocation,
    SpecError,
    UnencodableBitsError,
    UnknownInstructionError,
)


# Only one instruction length is supported
ILEN = 32

_U64_SIGN = 1 << 63
_U64_WRAP = 1 << 64


# =============================================================================
# Field Description
# =============================================================================

class FieldKind(Enum):
    """What feeds a field."""
    REGISTER = "register"    # Register index from an argument
    IMMEDIATE = "immediate"  # Evaluated expression from an argument
    FIXED = "fixed"          # Constant supplied by the instruction definition


class OverflowPolicy(Enum):
    """What to do with operand values wider than their field."""
    STRICT = "strict"  # Reject with ImmediateOutOfRangeError
    WRAP = "wrap"      # Keep the low-order bits


@dataclass(frozen=True)
class BitSlice:
    """
    Placement of part of an operand inside the instruction word.

    Attributes:
        value_lo: Lowest operand bit taken
        width: Number of bits taken
        word_lo: Word bit where value_lo lands
    """
    value_lo: int
    width: int
    word_lo: int

    @property
    def word_mask(self) -> int:
        return ((1 << self.width) - 1) << self.word_lo


@dataclass(frozen=True)
class FieldSpec:
    """
    One named field of an instruction format.

    Attributes:
        name: Field name (unique within its format)
        width: Logical operand width in bits
        kind: Register, immediate or fixed
        placement: Operand slices and where they go in the word
        signed: True for two's-complement range checking
        overflow: Range checking policy
        value: Default value for fixed fields
    """
    name: str
    width: int
    kind: FieldKind
    placement: tuple[BitSlice, ...]
    signed: bool = False
    overflow: OverflowPolicy = OverflowPolicy.STRICT
    value: int = 0

    @property
    def word_mask(self) -> int:
        mask = 0
        for piece in self.placement:
            mask |= piece.word_mask
        return mask

    @property
    def value_mask(self) -> int:
        """Operand bits that some slice places in the word."""
        mask = 0
        for piece in self.placement:
            mask |= ((1 << piece.width) - 1) << piece.value_lo
        return mask

    def fit(self, value: int, location: Optional[SourceLocation] = None) -> int:
        """
        Range-check an unsigned 64-bit value and reduce it to the field width.

        Returns:
            The low `width` bits of the value

        Raises:
            ImmediateOutOfRangeError: Under the strict policy, if the value
                does not fit
            UnencodableBitsError: Under the strict policy, if the value
                sets bits that no slice places
        """
        mask = (1 << self.width) - 1

        if self.overflow is OverflowPolicy.WRAP:
            return value & mask

        if self.signed:
            signed_value = value - _U64_WRAP if value & _U64_SIGN else value
            limit = 1 << (self.width - 1)
            if not -limit <= signed_value < limit:
                raise ImmediateOutOfRangeError(
                    self.name, signed_value, self.width, True, location
                )
            bits = signed_value & mask
        else:
            if value > mask:
                raise ImmediateOutOfRangeError(self.name, value, self.width, False, location)
            signed_value = bits = value

        unplaced = bits & ~self.value_mask
        if unplaced:
            raise UnencodableBitsError(
                self.name, signed_value, self.width, self.signed, unplaced, location
            )
        return bits

    def place(self, bits: int) -> int:
        """Scatter already-fitted field bits into their word positions."""
        word = 0
        for piece in self.placement:
            chunk = (bits >> piece.value_lo) & ((1 << piece.width) - 1)
            word |= chunk << piece.word_lo
        return word


# =============================================================================
# Formats and Instruction Definitions
# =============================================================================

@dataclass(frozen=True)
class InstructionFormat:
    """
    A fixed-width word layout.

    Attributes:
        name: Format name (e.g. "R", "I", "B")
        fields: Fields in declaration order
    """
    name: str
    fields: tuple[FieldSpec, ...]

    def get_field(self, name: str) -> Optional[FieldSpec]:
        for spec_field in self.fields:
            if spec_field.name == name:
                return spec_field
        return None


@dataclass(frozen=True)
class InstructionDef:
    """
    A mnemonic bound to a format.

    Attributes:
        mnemonic: Lowercase mnemonic
        format: The word layout
        operands: Field names fed by arguments 0..n-1
        fixed: (field name, value) pairs for fields not fed by arguments
    """
    mnemonic: str
    format: InstructionFormat
    operands: tuple[str, ...]
    fixed: tuple[tuple[str, int], ...] = ()

    @property
    def arity(self) -> int:
        return len(self.operands)

    @property
    def operand_fields(self) -> tuple[FieldSpec, ...]:
        return tuple(self.format.get_field(name) for name in self.operands)


# =============================================================================
# Registry
# =============================================================================

class InstructionSpec:
    """
    Immutable description of a target architecture.

    Instances are plain lookup data; build one with from_dict() (or
    rvasm.isa.loader.load_spec) and pass it explicitly to the parser and
    the code generator.

    Attributes:
        name: Human-readable name of the instruction set
    """

    def __init__(
        self,
        registers: Mapping[str, int],
        instructions: Iterable[InstructionDef],
        constants: Optional[Mapping[str, int]] = None,
        name: str = "custom",
    ):
        self.name = name
        self._registers = {reg.lower(): index for reg, index in registers.items()}
        self._constants = dict(constants or {})
        self._instructions: dict[tuple[str, int], InstructionDef] = {}
        self._arities: dict[str, list[int]] = {}

        for definition in instructions:
            key = (definition.mnemonic, definition.arity)
            if key in self._instructions:
                raise SpecError(
                    f"instruction '{definition.mnemonic}' with {definition.arity} "
                    f"arguments is defined twice"
                )
            self._instructions[key] = definition
            self._arities.setdefault(definition.mnemonic, []).append(definition.arity)

        ilen = self._constants.get("ILEN", ILEN)
        if ilen != ILEN:
            raise SpecError(f"only {ILEN}-bit instructions are supported (ILEN={ilen})")

    def __repr__(self) -> str:
        return (
            f"InstructionSpec({self.name!r}, {len(self._registers)} registers, "
            f"{len(self._instructions)} instructions)"
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def lookup(self, mnemonic: str, arity: int) -> Optional[InstructionDef]:
        """Find the definition for a mnemonic used with `arity` arguments."""
        return self._instructions.get((mnemonic.lower(), arity))

    def require(
        self,
        mnemonic: str,
        arity: int,
        location: Optional[SourceLocation] = None,
    ) -> InstructionDef:
        """
        Like lookup(), but raise if there is no matching definition.

        Raises:
            UnknownInstructionError: Unknown mnemonic, or wrong arity (the
                error then lists the arities that exist)
        """
        definition = self.lookup(mnemonic, arity)
        if definition is None:
            raise UnknownInstructionError(
                mnemonic,
                arity,
                location=location,
                valid_arities=sorted(self._arities.get(mnemonic.lower(), [])),
            )
        return definition

    def register_index(self, name: str) -> Optional[int]:
        """Register number for a name or alias, or None."""
        return self._registers.get(name.lower())

    def get_const(self, name: str) -> Optional[int]:
        """Named constant exported by the definition (e.g. ILEN), or None."""
        return self._constants.get(name)

    @property
    def constants(self) -> dict[str, int]:
        return dict(self._constants)

    @property
    def mnemonics(self) -> list[str]:
        return sorted(self._arities)

    @property
    def register_names(self) -> list[str]:
        return sorted(self._registers)

    @property
    def ilen_bytes(self) -> int:
        return ILEN // 8

    @property
    def ialign_bytes(self) -> int:
        """Instruction alignment in bytes (IALIGN constant, in bits)."""
        return (self._constants.get("IALIGN", ILEN) + 7) // 8

    # =========================================================================
    # Encoding
    # =========================================================================

    def encode(
        self,
        definition: InstructionDef,
        values: Sequence[int],
        location: Optional[SourceLocation] = None,
    ) -> int:
        """
        Encode one instruction word.

        Args:
            definition: The instruction definition
            values: One unsigned 64-bit value per operand (register index
                    for register fields)
            location: Source location for range errors

        Returns:
            The 32-bit instruction word

        Raises:
            ImmediateOutOfRangeError: An operand does not fit its field
        """
        if len(values) != definition.arity:
            raise UnknownInstructionError(
                definition.mnemonic, len(values), location, [definition.arity]
            )

        word = 0
        fixed = dict(definition.fixed)
        operands = dict(zip(definition.operands, values))

        for spec_field in definition.format.fields:
            if spec_field.name in operands:
                bits = spec_field.fit(operands[spec_field.name], location)
            else:
                bits = fixed.get(spec_field.name, spec_field.value)
            word |= spec_field.place(bits)

        return word

    # =========================================================================
    # Construction from plain data
    # =========================================================================

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InstructionSpec":
        """
        Build and validate a spec from a parsed definition document.

        Expected shape (as produced by yaml.safe_load):

            name: rv32i
            constants: {ILEN: 32, IALIGN: 32}
            registers: {x0: 0, zero: 0, ...}
            formats:
              I:
                opcode: {position: 0, width: 7, kind: fixed}
                rd:     {position: 7, width: 5, kind: register}
                imm:    {position: 20, width: 12, kind: immediate, signed: true}
              B:
                imm: {width: 13, kind: immediate, signed: true,
                      slices: [[1, 4, 8], [5, 6, 25], [11, 1, 7], [12, 1, 31]]}
            instructions:
              addi: {format: I, operands: [rd, rs1, imm], fixed: {opcode: 0x13}}

        An instruction entry may also be a list of such mappings, one per
        arity.

        Raises:
            SpecError: If the document is malformed
        """
        if not isinstance(data, Mapping):
            raise SpecError("instruction definition must be a mapping")

        registers = _build_registers(data.get("registers", {}))
        constants = _build_constants(data.get("constants", {}))
        formats = {
            name: _build_format(str(name), body)
            for name, body in _mapping(data.get("formats", {}), "formats").items()
        }

        definitions = []
        for mnemonic, body in _mapping(data.get("instructions", {}), "instructions").items():
            entries = body if isinstance(body, list) else [body]
            for entry in entries:
                definitions.append(_build_instruction(str(mnemonic).lower(), entry, formats))

        return cls(
            registers=registers,
            instructions=definitions,
            constants=constants,
            name=str(data.get("name", "custom")),
        )


# =============================================================================
# Definition Builders
# =============================================================================

def _mapping(value: Any, what: str) -> Mapping:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise SpecError(f"'{what}' must be a mapping")
    return value


def _int(value: Any, what: str) -> int:
    # bool is an int subclass; `true` is never a valid number here
    if isinstance(value, bool) or not isinstance(value, int):
        raise SpecError(f"{what} must be an integer, got {value!r}")
    return value


def _build_registers(data: Any) -> dict[str, int]:
    registers = {}
    for name, index in _mapping(data, "registers").items():
        index = _int(index, f"register '{name}'")
        if index < 0:
            raise SpecError(f"register '{name}' has a negative index")
        registers[str(name)] = index
    return registers


def _build_constants(data: Any) -> dict[str, int]:
    return {
        str(name): _int(value, f"constant '{name}'")
        for name, value in _mapping(data, "constants").items()
    }


def _build_field(format_name: str, name: str, body: Any) -> FieldSpec:
    where = f"field '{name}' of format '{format_name}'"
    body = _mapping(body, where)

    try:
        kind = FieldKind(body.get("kind", "immediate"))
    except ValueError:
        raise SpecError(f"{where} has unknown kind {body.get('kind')!r}") from None

    try:
        overflow = OverflowPolicy(body.get("overflow", "strict"))
    except ValueError:
        raise SpecError(f"{where} has unknown overflow policy {body.get('overflow')!r}") from None

    width = _int(body.get("width"), f"width of {where}")
    if width <= 0 or width > 64:
        raise SpecError(f"{where} must be 1 to 64 bits wide")

    if "slices" in body:
        placement = []
        for piece in body["slices"]:
            if not isinstance(piece, list) or len(piece) != 3:
                raise SpecError(f"{where}: slices are [value_lo, width, word_lo] triples")
            value_lo, piece_width, word_lo = (_int(v, f"slice of {where}") for v in piece)
            placement.append(BitSlice(value_lo, piece_width, word_lo))
    else:
        position = _int(body.get("position"), f"position of {where}")
        placement = [BitSlice(0, width, position)]

    for piece in placement:
        if piece.width <= 0 or piece.value_lo < 0 or piece.value_lo + piece.width > width:
            raise SpecError(f"{where}: slice {piece} lies outside the {width}-bit operand")
        if piece.word_lo < 0 or piece.word_lo + piece.width > ILEN:
            raise SpecError(f"{where}: slice {piece} lies outside the {ILEN}-bit word")

    value = _int(body.get("value", 0), f"value of {where}")
    if not 0 <= value < (1 << width):
        raise SpecError(f"{where}: value {value} does not fit {width} bits")

    return FieldSpec(
        name=name,
        width=width,
        kind=kind,
        placement=tuple(placement),
        signed=bool(body.get("signed", False)),
        overflow=overflow,
        value=value,
    )


def _build_format(name: str, body: Any) -> InstructionFormat:
    fields = tuple(
        _build_field(name, str(field_name), field_body)
        for field_name, field_body in _mapping(body, f"format '{name}'").items()
    )

    used = 0
    for spec_field in fields:
        if used & spec_field.word_mask:
            raise SpecError(f"field '{spec_field.name}' of format '{name}' overlaps another field")
        used |= spec_field.word_mask

    return InstructionFormat(name=name, fields=fields)


def _build_instruction(
    mnemonic: str,
    body: Any,
    formats: Mapping[str, InstructionFormat],
) -> InstructionDef:
    where = f"instruction '{mnemonic}'"
    body = _mapping(body, where)

    format_name = body.get("format")
    if format_name not in formats:
        raise SpecError(f"{where} uses unknown format {format_name!r}")
    fmt = formats[format_name]

    operands = tuple(str(name) for name in body.get("operands", []) or [])
    for name in operands:
        spec_field = fmt.get_field(name)
        if spec_field is None:
            raise SpecError(f"{where}: format '{fmt.name}' has no field '{name}'")
        if spec_field.kind is FieldKind.FIXED:
            raise SpecError(f"{where}: fixed field '{name}' cannot take an argument")
    if len(set(operands)) != len(operands):
        raise SpecError(f"{where}: an operand field is listed twice")

    fixed = []
    for name, value in _mapping(body.get("fixed", {}), f"fixed values of {where}").items():
        spec_field = fmt.get_field(str(name))
        if spec_field is None:
            raise SpecError(f"{where}: format '{fmt.name}' has no field '{name}'")
        if name in operands:
            raise SpecError(f"{where}: field '{name}' is both an operand and fixed")
        value = _int(value, f"fixed value '{name}' of {where}")
        if not 0 <= value < (1 << spec_field.width):
            raise SpecError(f"{where}: fixed value {value} does not fit field '{name}'")
        fixed.append((str(name), value))

    fixed_names = {name for name, _ in fixed}
    for spec_field in fmt.fields:
        if spec_field.kind is not FieldKind.FIXED and spec_field.name not in operands \
                and spec_field.name not in fixed_names:
            raise SpecError(f"{where}: field '{spec_field.name}' is never set")

    return InstructionDef(
        mnemonic=mnemonic,
        format=fmt,
        operands=operands,
        fixed=tuple(fixed),
    )
