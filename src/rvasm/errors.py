"""
rvasm Error Hierarchy
=====================

This module defines the exception hierarchy for the entire assembler.
All exceptions inherit from RvasmError, allowing callers to catch all
assembler-related errors with a single except clause if desired.

Exception Hierarchy
-------------------
RvasmError (base)
├── AssemblerError (assembly of a source text)
│   ├── ParseError - syntax errors in source
│   ├── UnknownRegisterError - register slot given a non-register name
│   ├── UnknownInstructionError - bad mnemonic or argument count
│   ├── DuplicateSymbolError - symbol defined twice in the same scope
│   ├── UndefinedSymbolError - reference to undefined label/constant
│   ├── ExpressionError - error evaluating expression
│   │   └── DivisionByZeroError - division by zero
│   ├── ImmediateOutOfRangeError - value does not fit its field
│   │   └── UnencodableBitsError - value sets bits the field drops
│   ├── InvalidOrgTargetError - .org outside the addressable image
│   └── InvalidOperandError - argument of the wrong kind
└── SpecError (malformed instruction definitions)

Design Philosophy
-----------------
Each exception captures source location information (filename, line, column)
when applicable, plus the name of the offending symbol, mnemonic or field.
The assembler core never prints anything; the formatted message is there
for whoever catches the exception.

Error messages follow this format:
    filename:line:column: error: description
    source_line_text
        ^ (pointer to error location)
    hint: suggestion for fixing (when available)
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class RvasmError(Exception):
    """
    Base exception for all rvasm errors.

    All exceptions in the package inherit from this class, allowing callers
    to catch everything with a single except clause:

        try:
            assemble(source)
        except RvasmError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    Represents a location in source code for error reporting.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """
    filename: str
    line: int
    column: int

    def __str__(self) -> str:
        """Format as 'filename:line:column' for error messages."""
        return f"{self.filename}:{self.line}:{self.column}"


# =============================================================================
# Assembler Exceptions
# =============================================================================

class AssemblerError(RvasmError):
    """
    Base exception for all errors raised while assembling a source text.

    Attributes:
        message: The error description
        location: Where in the source the error occurred (optional)
        hint: A suggestion for fixing the error (optional)
        source_line: The actual source text at the error location (optional)
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    def attach_source(self, source_lines: list[str]) -> None:
        """Quote the offending line if the error does not carry one yet."""
        if self.source_line is not None or self.location is None:
            return
        if 0 < self.location.line <= len(source_lines):
            self.source_line = source_lines[self.location.line - 1]
            self.args = (self._format_message(),)

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

        Example output:
            prog.s:15:9: error: undefined symbol 'lopo'
                bne x1, x2, lopo - $
                            ^
            hint: did you mean 'loop'?
        """
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")
            if self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)


class ParseError(AssemblerError):
    """
    Syntax error in assembly source code.

    Raised by the lexer or parser at the first construct that does not
    match the grammar. There is no error recovery.

    Attributes:
        rule: Name of the grammar rule that failed (e.g. "expression")
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        rule: str = "program",
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.rule = rule
        super().__init__(
            f"{message} (in {rule})",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class UnknownRegisterError(AssemblerError):
    """A register operand names something that is not in the register table."""

    def __init__(
        self,
        register: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
    ):
        self.register = register
        super().__init__(
            f"unknown register '{register}'",
            location=location,
            hint=hint,
        )


class UnknownInstructionError(AssemblerError):
    """
    Unknown mnemonic, or a known mnemonic used with the wrong argument count.

    Attributes:
        mnemonic: The mnemonic as written
        arity: Number of arguments supplied
        valid_arities: Argument counts the mnemonic accepts (empty if unknown)
    """

    def __init__(
        self,
        mnemonic: str,
        arity: int,
        location: Optional[SourceLocation] = None,
        valid_arities: Optional[list[int]] = None,
    ):
        self.mnemonic = mnemonic
        self.arity = arity
        self.valid_arities = valid_arities or []

        if self.valid_arities:
            counts = " or ".join(str(n) for n in self.valid_arities)
            message = (
                f"'{mnemonic}' does not take {arity} argument"
                f"{'' if arity == 1 else 's'}"
            )
            hint = f"'{mnemonic}' takes {counts} arguments"
        else:
            message = f"unknown instruction '{mnemonic}'"
            hint = None

        super().__init__(message, location=location, hint=hint)


class UndefinedSymbolError(AssemblerError):
    """
    Reference to an undefined symbol (label or constant).

    The evaluator attempts to suggest similarly-named symbols when
    this error occurs, helping to catch typos.
    """

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
        similar_symbols: Optional[list[str]] = None,
    ):
        self.symbol = symbol
        self.similar_symbols = similar_symbols or []

        if not hint and self.similar_symbols:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_symbols[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"undefined symbol '{symbol}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class DuplicateSymbolError(AssemblerError):
    """
    Symbol defined more than once within its scope.

    Labels and .equ/.define constants share one namespace, so a constant
    and a label with the same name in the same scope also collide.
    """

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        original_location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.symbol = symbol
        self.original_location = original_location

        hint = None
        if original_location:
            hint = f"'{symbol}' was first defined at {original_location}"

        super().__init__(
            f"duplicate symbol '{symbol}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class ExpressionError(AssemblerError):
    """
    Error evaluating an expression.

    Raised when an expression cannot be reduced to an integer, for
    example when a string or register appears where a number is needed.
    """
    pass


class DivisionByZeroError(ExpressionError):
    """Integer division with a zero divisor."""

    def __init__(self, location: Optional[SourceLocation] = None):
        super().__init__("division by zero", location)


class ImmediateOutOfRangeError(AssemblerError):
    """
    Value does not fit the bit field it is encoded into.

    Attributes:
        field: Name of the destination field (e.g. "imm", ".word")
        value: The offending value (as a Python int, signed if the field is)
        width: Field width in bits
        signed: True if the field has a signed range
    """

    def __init__(
        self,
        field: str,
        value: int,
        width: int,
        signed: bool,
        location: Optional[SourceLocation] = None,
    ):
        self.field = field
        self.value = value
        self.width = width
        self.signed = signed

        if signed:
            low, high = -(1 << (width - 1)), (1 << (width - 1)) - 1
        else:
            low, high = 0, (1 << width) - 1

        super().__init__(
            f"value {value} does not fit {width}-bit "
            f"{'signed' if signed else 'unsigned'} field '{field}'",
            location=location,
            hint=f"valid range is {low} to {high}",
        )


class UnencodableBitsError(ImmediateOutOfRangeError):
    """
    Value is in range but sets bits that the field's placement drops.

    Branch and jump offsets leave out bit 0, so an odd offset cannot be
    encoded.

    Attributes:
        unplaced: The operand bits that no slice places
    """

    def __init__(
        self,
        field: str,
        value: int,
        width: int,
        signed: bool,
        unplaced: int,
        location: Optional[SourceLocation] = None,
    ):
        self.field = field
        self.value = value
        self.width = width
        self.signed = signed
        self.unplaced = unplaced

        if unplaced & (unplaced + 1) == 0:
            hint = f"the value must be a multiple of {unplaced + 1}"
        else:
            hint = f"bits 0x{unplaced:X} of the value are not encoded"

        AssemblerError.__init__(
            self,
            f"value {value} cannot be encoded in field '{field}'",
            location=location,
            hint=hint,
        )


class InvalidOrgTargetError(AssemblerError):
    """.org target lies outside the image the assembler can produce."""

    def __init__(
        self,
        target: int,
        reason: str,
        location: Optional[SourceLocation] = None,
    ):
        self.target = target
        self.reason = reason
        super().__init__(
            f"invalid .org target 0x{target:X}: {reason}",
            location=location,
        )


class InvalidOperandError(AssemblerError):
    """
    Argument of the wrong kind for its position.

    Examples:
        - register where an immediate is expected
        - string literal as an instruction argument
        - .equ whose first argument is not a plain name
    """
    pass


# =============================================================================
# Instruction Definition Exceptions
# =============================================================================

class SpecError(RvasmError):
    """
    Malformed instruction-set definition.

    Raised while building an InstructionSpec when:
    - A field extends past the instruction word
    - Two fields of a format overlap
    - A fixed value does not fit its field
    - An instruction refers to an unknown format or field
    """
    pass
