"""
RISC-V Assembly Language Lexer
==============================

This module implements a lexer (tokenizer) for RISC-V-family assembly
language. It converts source text into a stream of tokens that the parser
can process.

Token Types
-----------
- IDENTIFIER: Labels, mnemonics, directives, symbol and register names
- NUMBER: Integer literals (all radixes) and character literals
- STRING: Double-quoted strings, carried as bytes
- Operators: +, -, *, /, <<, >>, >>>
- Delimiters: , : ( ) and $ (current program counter)
- NEWLINE: End of line (ends an instruction)
- EOF: End of file

Number Formats
--------------
| Format      | Prefix   | Example   | Value |
|-------------|----------|-----------|-------|
| Decimal     | (none)   | 1_000     | 1000  |
| Decimal     | 0d       | 0d42      | 42    |
| Hexadecimal | 0x       | 0xFF      | 255   |
| Octal       | 0o       | 0o177     | 127   |
| Binary      | 0b       | 0b1010    | 10    |
| Character   | '        | 'A'       | 65    |

Underscores may appear anywhere among the digits and are ignored.
All values are unsigned 64-bit; larger literals are rejected.

Comments and Continuations
--------------------------
A semicolon starts a comment that runs to the end of the line. A backslash
immediately followed by a newline is treated as whitespace, so one
instruction can span several lines.

Example
-------
>>> from rvasm.assembler.lexer import Lexer
>>> for token in Lexer("loop: addi x1, x1, -1  ; count down").tokenize():
...     print(token)
Token(IDENTIFIER, 'loop', 1:1)
Token(COLON, ':', 1:5)
Token(IDENTIFIER, 'addi', 1:7)
...
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional
import string

from rvasm.errors import ParseError, SourceLocation
from rvasm.numbers import parse_integer, split_radix


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """Token types for RISC-V assembly."""

    # Structural tokens
    NEWLINE = auto()     # End of line (ends an instruction)
    EOF = auto()         # End of file

    # Values
    IDENTIFIER = auto()  # Labels, mnemonics, directives, symbols, registers
    NUMBER = auto()      # Integer and character literals
    STRING = auto()      # Double-quoted string "..." (bytes)

    # Arithmetic operators
    PLUS = auto()        # +
    MINUS = auto()       # -
    STAR = auto()        # *
    SLASH = auto()       # /

    # Shift operators
    LSHIFT = auto()      # <<
    RSHIFT = auto()      # >> (logical)
    ASHR = auto()        # >>> (arithmetic)

    # Delimiters
    COMMA = auto()       # ,
    COLON = auto()       # :
    LPAREN = auto()      # (
    RPAREN = auto()      # )
    DOLLAR = auto()      # $ (current program counter)


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    Represents a single token from the source code.

    Attributes:
        type: The TokenType classification
        value: str for identifiers/operators, int for numbers, bytes for strings
        line: Line number in source (1-indexed)
        column: Column number in source (1-indexed)
        filename: Name of the source file
    """
    type: TokenType
    value: str | int | bytes | None
    line: int
    column: int
    filename: str

    def __repr__(self) -> str:
        if self.value is not None:
            if isinstance(self.value, int):
                return f"Token({self.type.name}, 0x{self.value:X}, {self.line}:{self.column})"
            return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"
        return f"Token({self.type.name}, {self.line}:{self.column})"

    @property
    def location(self) -> SourceLocation:
        """Return a SourceLocation for error reporting."""
        return SourceLocation(self.filename, self.line, self.column)


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes RISC-V assembly source code.

    Usage:
        lexer = Lexer(source_text, filename)
        tokens = list(lexer.tokenize())

    Attributes:
        source: The source code being tokenized
        filename: Name of the source file (for error reporting)
    """

    # Characters that can start an identifier
    IDENT_START = string.ascii_letters + "._"

    # Characters that can continue an identifier
    IDENT_CHARS = string.ascii_letters + string.digits + "._"

    # Characters consumed as part of a number before validation
    NUMBER_CHARS = string.ascii_letters + string.digits + "_"

    SINGLE_CHAR_TOKENS = {
        "+": TokenType.PLUS,
        "-": TokenType.MINUS,
        "*": TokenType.STAR,
        "/": TokenType.SLASH,
        ",": TokenType.COMMA,
        ":": TokenType.COLON,
        "(": TokenType.LPAREN,
        ")": TokenType.RPAREN,
        "$": TokenType.DOLLAR,
    }

    # Escape sequences in character and string literals
    ESCAPE_SEQUENCES = {
        "n": 0x0A,
        "r": 0x0D,
        "t": 0x09,
        "\\": 0x5C,
        '"': 0x22,
        "'": 0x27,
    }

    def __init__(self, source: str, filename: str = "<input>", line_number: int = 1):
        """
        Initialize the lexer with source code.

        Args:
            source: The assembly source code to tokenize
            filename: Name of the source file (for error messages)
            line_number: Starting line number
        """
        self.source = source
        self.filename = filename

        self._pos = 0
        self._line = line_number
        self._column = 1
        self._line_start_pos = 0

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens from the source code.

        Yields:
            Token objects representing each lexical element

        Raises:
            ParseError: If invalid syntax is encountered
        """
        while not self._at_end():
            if self._skip_whitespace():
                continue

            if self._skip_comment():
                continue

            yield self._scan_token()

        yield self._make_token(TokenType.EOF, None)

    # =========================================================================
    # Character Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        """Character at current position + offset, or '' past the end."""
        pos = self._pos + offset
        if pos >= len(self.source):
            return ""
        return self.source[pos]

    def _advance(self) -> str:
        """Consume and return the current character, tracking line/column."""
        if self._at_end():
            return ""

        char = self.source[self._pos]
        self._pos += 1

        if char == "\n":
            self._line += 1
            self._column = 1
            self._line_start_pos = self._pos
        else:
            self._column += 1

        return char

    def _match(self, expected: str) -> bool:
        if self._peek() == expected:
            self._advance()
            return True
        return False

    # =========================================================================
    # Token Creation
    # =========================================================================

    def _make_token(
        self,
        token_type: TokenType,
        value: str | int | bytes | None,
        start_line: Optional[int] = None,
        start_column: Optional[int] = None,
    ) -> Token:
        return Token(
            type=token_type,
            value=value,
            line=start_line or self._line,
            column=start_column or self._column,
            filename=self.filename,
        )

    def _error(
        self,
        message: str,
        rule: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ) -> ParseError:
        """Create a ParseError at the current (or given) location."""
        location = SourceLocation(
            self.filename, line or self._line, column or self._column
        )
        return ParseError(
            message, location, rule=rule, source_line=self.get_current_line()
        )

    # =========================================================================
    # Whitespace and Comment Handling
    # =========================================================================

    def _skip_whitespace(self) -> bool:
        """
        Skip spaces, tabs, carriage returns and line continuations.

        Returns:
            True if anything was skipped
        """
        skipped = False
        while True:
            char = self._peek()
            if char and char in " \t\r":
                self._advance()
                skipped = True
            elif char == "\\" and self._peek(1) == "\n":
                self._advance()
                self._advance()
                skipped = True
            elif char == "\\" and self._peek(1) == "\r" and self._peek(2) == "\n":
                self._advance()
                self._advance()
                self._advance()
                skipped = True
            else:
                return skipped

    def _skip_comment(self) -> bool:
        """Skip a ';' comment up to (not including) the newline."""
        if self._peek() != ";":
            return False
        while not self._at_end() and self._peek() != "\n":
            self._advance()
        return True

    # =========================================================================
    # Token Scanning
    # =========================================================================

    def _scan_token(self) -> Token:
        start_line = self._line
        start_column = self._column

        char = self._peek()

        if char == "\n":
            self._advance()
            return self._make_token(TokenType.NEWLINE, None, start_line, start_column)

        if char in self.IDENT_START:
            return self._scan_identifier(start_line, start_column)

        if char.isdigit():
            return self._scan_number(start_line, start_column)

        if char == '"':
            return self._scan_string(start_line, start_column)

        if char == "'":
            return self._scan_char(start_line, start_column)

        if char == "<":
            self._advance()
            if self._match("<"):
                return self._make_token(TokenType.LSHIFT, "<<", start_line, start_column)
            raise self._error("expected '<<'", "expression", start_line, start_column)

        if char == ">":
            self._advance()
            if self._match(">"):
                if self._match(">"):
                    return self._make_token(TokenType.ASHR, ">>>", start_line, start_column)
                return self._make_token(TokenType.RSHIFT, ">>", start_line, start_column)
            raise self._error(
                "expected '>>' or '>>>'", "expression", start_line, start_column
            )

        if char in self.SINGLE_CHAR_TOKENS:
            self._advance()
            return self._make_token(
                self.SINGLE_CHAR_TOKENS[char], char, start_line, start_column
            )

        self._advance()
        raise self._error(
            f"unexpected character '{char}'", "program", start_line, start_column
        )

    def _scan_identifier(self, start_line: int, start_column: int) -> Token:
        """Scan [A-Za-z._][A-Za-z0-9._]*."""
        chars = []
        while self._peek() and self._peek() in self.IDENT_CHARS:
            chars.append(self._advance())

        return self._make_token(
            TokenType.IDENTIFIER, "".join(chars), start_line, start_column
        )

    def _scan_number(self, start_line: int, start_column: int) -> Token:
        """
        Scan an integer literal with optional 0x/0o/0b/0d prefix.

        The whole alphanumeric run is consumed first so that a bad digit
        such as the '2' in 0b102 is reported rather than split off.
        """
        chars = []
        while self._peek() and self._peek() in self.NUMBER_CHARS:
            chars.append(self._advance())
        digits, radix = split_radix("".join(chars))

        try:
            value = parse_integer(digits, radix)
        except ValueError as e:
            raise self._error(str(e), "integer", start_line, start_column) from None

        return self._make_token(TokenType.NUMBER, value, start_line, start_column)

    def _scan_string(self, start_line: int, start_column: int) -> Token:
        """Scan a double-quoted string literal into bytes."""
        self._advance()  # opening "

        data = bytearray()
        while not self._at_end():
            char = self._peek()

            if char == '"':
                self._advance()
                return self._make_token(
                    TokenType.STRING, bytes(data), start_line, start_column
                )

            if char == "\n":
                break

            if char == "\\":
                self._advance()
                data.append(self._scan_escape_sequence("string"))
            else:
                data.extend(self._advance().encode("utf-8"))

        raise self._error("unterminated string literal", "string", start_line, start_column)

    def _scan_char(self, start_line: int, start_column: int) -> Token:
        """Scan a single-quoted character literal as a NUMBER token."""
        self._advance()  # opening '

        if self._at_end() or self._peek() in "\n'":
            raise self._error("empty character literal", "character", start_line, start_column)

        if self._peek() == "\\":
            self._advance()
            value = self._scan_escape_sequence("character")
        else:
            encoded = self._advance().encode("utf-8")
            if len(encoded) != 1:
                raise self._error(
                    "character literal must be a single byte",
                    "character", start_line, start_column,
                )
            value = encoded[0]

        if not self._match("'"):
            raise self._error(
                "expected closing quote for character literal",
                "character", start_line, start_column,
            )

        return self._make_token(TokenType.NUMBER, value, start_line, start_column)

    def _scan_escape_sequence(self, rule: str) -> int:
        """Scan the escape after a backslash and return its byte value."""
        if self._at_end() or self._peek() == "\n":
            raise self._error("unexpected end of line in escape sequence", rule)

        char = self._advance()

        if char in self.ESCAPE_SEQUENCES:
            return self.ESCAPE_SEQUENCES[char]

        if char == "x":
            hex_chars = self._peek() + self._peek(1)
            if len(hex_chars) != 2 or any(c not in string.hexdigits for c in hex_chars):
                raise self._error("expected exactly two hexadecimal digits after \\x", rule)
            self._advance()
            self._advance()
            return int(hex_chars, 16)

        raise self._error(f"unknown escape sequence '\\{char}'", rule)

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def get_current_line(self) -> str:
        """Get the current line of source text (for error reporting)."""
        line_end = self.source.find("\n", self._line_start_pos)
        if line_end == -1:
            line_end = len(self.source)
        return self.source[self._line_start_pos:line_end].rstrip("\r")
