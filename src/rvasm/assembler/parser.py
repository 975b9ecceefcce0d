"""
RISC-V Assembly Language Parser
===============================

This module implements a recursive-descent parser for RISC-V-family
assembly. It converts the token stream from the lexer into a Root node
(see rvasm.assembler.ast) holding labels and instructions in source order.

Grammar
-------
    program     := line* EOF
    line        := label* [instruction] (NEWLINE | EOF)
    label       := IDENTIFIER ':'
    instruction := IDENTIFIER [argument (',' argument)*]
    argument    := expression
    expression  := additive (('<<' | '>>' | '>>>') additive)*
    additive    := term (('+' | '-') term)*
    term        := unary (('*' | '/') unary)*
    unary       := '-' unary | atom
    atom        := NUMBER | STRING | '$' | IDENTIFIER | '(' expression ')'

Binary operators are left-associative. Shifts bind loosest, so
`1 << 2 + 1` is `1 << 3`.

Statement Examples
------------------
   ```asm
   start:                  ; Global label
   .loop:  addi a0, a0, -1 ; Local label and instruction on one line
           bne a0, zero, .loop - $
           .org 0x100      ; Directives are instructions too
   ```

Registers
---------
An identifier argument that names a register of the instruction
specification becomes a Register node carrying the register index.
Register names are matched case-insensitively. A register may only be
a whole argument; `x1 + 4` is a syntax error.

Constant subtrees are folded as they are built (see
rvasm.assembler.expressions.simplify).
"""

from typing import Optional

from rvasm.errors import ParseError, SourceLocation
from rvasm.assembler.lexer import Lexer, Token, TokenType
from rvasm.assembler.ast import (
    Argument,
    BinaryOp,
    BinaryOperator,
    Expression,
    Identifier,
    Instruction,
    Integer,
    Label,
    Negation,
    PcValue,
    Register,
    Root,
    StringLiteral,
)
from rvasm.assembler.expressions import simplify
from rvasm.isa import InstructionSpec, default_spec


# Operator precedence levels, loosest first
SHIFT_OPERATORS = {
    TokenType.LSHIFT: BinaryOperator.SHL,
    TokenType.RSHIFT: BinaryOperator.SHR,
    TokenType.ASHR: BinaryOperator.ASHR,
}

ADDITIVE_OPERATORS = {
    TokenType.PLUS: BinaryOperator.PLUS,
    TokenType.MINUS: BinaryOperator.MINUS,
}

MULTIPLICATIVE_OPERATORS = {
    TokenType.STAR: BinaryOperator.TIMES,
    TokenType.SLASH: BinaryOperator.DIVIDE,
}

END_OF_LINE = (TokenType.NEWLINE, TokenType.EOF)


# =============================================================================
# Parser Implementation
# =============================================================================

class Parser:
    """
    Parses RISC-V assembly tokens into a syntax tree.

    The parser stops at the first error; there is no recovery.

    Usage:
        lexer = Lexer(source, filename)
        tokens = list(lexer.tokenize())
        parser = Parser(tokens, spec, filename)
        root = parser.parse()
    """

    def __init__(
        self,
        tokens: list[Token],
        spec: InstructionSpec,
        filename: str = "<input>",
        source: Optional[str] = None,
    ):
        """
        Initialize the parser.

        Args:
            tokens: List of tokens from lexer
            spec: Instruction specification (for register names)
            filename: Source filename for error reporting
            source: Original text, used to quote lines in errors
        """
        self._tokens = tokens
        self._spec = spec
        self._filename = filename
        self._source_lines = source.splitlines() if source is not None else []
        self._pos = 0

    def parse(self) -> Root:
        """
        Parse all tokens into a program.

        Returns:
            Root node with labels and instructions in source order

        Raises:
            ParseError: If a syntax error is encountered
        """
        root = Root(SourceLocation(self._filename, 1, 1))

        while not self._check(TokenType.EOF):
            if self._match(TokenType.NEWLINE):
                continue
            root.items.extend(self._parse_line())

        return root

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _current(self) -> Token:
        if self._pos >= len(self._tokens):
            last = self._tokens[-1] if self._tokens else None
            return Token(
                TokenType.EOF, None,
                last.line if last else 1,
                last.column if last else 1,
                last.filename if last else self._filename,
            )
        return self._tokens[self._pos]

    def _peek(self, offset: int = 0) -> Token:
        pos = self._pos + offset
        if pos >= len(self._tokens):
            return self._current()
        return self._tokens[pos]

    def _advance(self) -> Token:
        token = self._current()
        self._pos += 1
        return token

    def _check(self, *types: TokenType) -> bool:
        return self._current().type in types

    def _match(self, *types: TokenType) -> Optional[Token]:
        if self._check(*types):
            return self._advance()
        return None

    def _expect(self, token_type: TokenType, message: str, rule: str) -> Token:
        if not self._check(token_type):
            raise self._error(message, rule)
        return self._advance()

    def _error(
        self,
        message: str,
        rule: str,
        location: Optional[SourceLocation] = None,
    ) -> ParseError:
        location = location or self._current().location
        source_line = None
        if 0 < location.line <= len(self._source_lines):
            source_line = self._source_lines[location.line - 1]
        return ParseError(message, location, rule=rule, source_line=source_line)

    # =========================================================================
    # Line Parsing
    # =========================================================================

    def _parse_line(self) -> list[Label | Instruction]:
        """Parse `label* [instruction]` up to and including the line end."""
        items: list[Label | Instruction] = []

        while self._check(TokenType.IDENTIFIER) and self._peek(1).type == TokenType.COLON:
            token = self._advance()
            self._advance()
            items.append(Label(token.location, token.value))

        if self._check(TokenType.IDENTIFIER):
            items.append(self._parse_instruction())
        elif not self._check(*END_OF_LINE):
            raise self._error(
                f"expected a label or instruction, found {self._describe()}", "line"
            )

        if not self._match(TokenType.NEWLINE):
            self._expect(TokenType.EOF, "expected end of line", "line")
        return items

    def _parse_instruction(self) -> Instruction:
        mnemonic = self._advance()
        instruction = Instruction(mnemonic.location, mnemonic.value)

        if self._check(*END_OF_LINE):
            return instruction

        instruction.arguments.append(self._parse_argument())
        while self._match(TokenType.COMMA):
            instruction.arguments.append(self._parse_argument())

        if not self._check(*END_OF_LINE):
            raise self._error(
                f"expected ',' or end of line, found {self._describe()}", "instruction"
            )
        return instruction

    def _parse_argument(self) -> Argument:
        location = self._current().location
        value = self._parse_expression()

        if not isinstance(value, (Register, StringLiteral)):
            misplaced = _find_operand_only(value)
            if isinstance(misplaced, Register):
                raise self._error(
                    f"register '{misplaced.name}' cannot be part of an expression",
                    "argument", misplaced.location,
                )
            if isinstance(misplaced, StringLiteral):
                raise self._error(
                    "string cannot be part of an expression",
                    "argument", misplaced.location,
                )

        return Argument(location, value)

    # =========================================================================
    # Expression Parsing
    # =========================================================================

    def _parse_expression(self) -> Expression:
        return self._parse_binary(
            SHIFT_OPERATORS,
            lambda: self._parse_binary(
                ADDITIVE_OPERATORS,
                lambda: self._parse_binary(MULTIPLICATIVE_OPERATORS, self._parse_unary),
            ),
        )

    def _parse_binary(self, operators, parse_operand) -> Expression:
        """Parse a left-associative chain of one precedence level."""
        lhs = parse_operand()
        while self._current().type in operators:
            token = self._advance()
            rhs = parse_operand()
            lhs = simplify(BinaryOp(token.location, operators[token.type], lhs, rhs))
        return lhs

    def _parse_unary(self) -> Expression:
        minus = self._match(TokenType.MINUS)
        if minus:
            return simplify(Negation(minus.location, self._parse_unary()))
        return self._parse_atom()

    def _parse_atom(self) -> Expression:
        token = self._current()

        if self._match(TokenType.NUMBER):
            return Integer(token.location, token.value)

        if self._match(TokenType.STRING):
            return StringLiteral(token.location, token.value)

        if self._match(TokenType.DOLLAR):
            return PcValue(token.location)

        if self._match(TokenType.IDENTIFIER):
            index = self._spec.register_index(token.value)
            if index is not None:
                return Register(token.location, token.value, index)
            return Identifier(token.location, token.value)

        if self._match(TokenType.LPAREN):
            inner = self._parse_expression()
            self._expect(TokenType.RPAREN, "expected ')'", "expression")
            return inner

        raise self._error(f"expected an expression, found {self._describe()}", "expression")

    def _describe(self) -> str:
        token = self._current()
        if token.type == TokenType.EOF:
            return "end of file"
        if token.type == TokenType.NEWLINE:
            return "end of line"
        if token.type == TokenType.NUMBER:
            return f"number {token.value}"
        if token.type == TokenType.STRING:
            return "string"
        return f"'{token.value}'"


def _find_operand_only(node: Expression) -> Optional[Expression]:
    """First Register or StringLiteral nested inside a compound expression."""
    if isinstance(node, (Register, StringLiteral)):
        return node
    if isinstance(node, Negation):
        return _find_operand_only(node.operand)
    if isinstance(node, BinaryOp):
        return _find_operand_only(node.lhs) or _find_operand_only(node.rhs)
    return None


# =============================================================================
# Convenience Functions
# =============================================================================

def parse_source(
    source: str,
    spec: Optional[InstructionSpec] = None,
    filename: str = "<input>",
) -> Root:
    """
    Convenience function to parse assembly source.

    Args:
        source: Assembly source text
        spec: Instruction specification (bundled RV32I if None)
        filename: Source filename for error messages

    Returns:
        The program's Root node

    Raises:
        ParseError: On the first syntax error
    """
    spec = spec or default_spec()
    tokens = list(Lexer(source, filename).tokenize())
    return Parser(tokens, spec, filename, source).parse()
