"""
Assembly Expression Evaluator
=============================

This module reduces expression trees (see rvasm.assembler.ast) to
unsigned 64-bit integers, and folds constant subtrees at parse time.

Supported Operations
--------------------
| Operator | Meaning                         | Notes                       |
|----------|---------------------------------|-----------------------------|
| +  -  *  | add, subtract, multiply         | wrap modulo 2**64           |
| /        | unsigned integer division       | zero divisor is an error    |
| <<  >>   | logical shifts                  | amount taken modulo 64      |
| >>>      | arithmetic shift right          | sign-extends from bit 63    |
| unary -  | negation                        | same as 0 - x               |

**Special Symbols:**
- $ - Address of the instruction or directive being assembled

Constant Folding
----------------
The parser calls simplify() on every node it builds, so a subtree made only
of literals is collapsed to a single Integer as soon as it is parsed.
Subtrees that mention a symbol or $ are kept and evaluated in pass 2, when
every label address is known. A literal division by zero is also kept
unfolded so that the error is raised, with its location, at evaluation.

Example Usage
-------------
>>> from rvasm.assembler import ExpressionEvaluator, parse_source
>>> evaluator = ExpressionEvaluator({"buffer": 0x1000})
>>> evaluator.set_pc(0x8000)
>>> evaluator.evaluate(parse_source("op buffer + 10").items[0].arguments[0].value)
4106
"""

from typing import Callable, Mapping, Optional, Union

from rvasm.errors import (
    DivisionByZeroError,
    ExpressionError,
    SourceLocation,
    UndefinedSymbolError,
)
from rvasm.assembler.ast import (
    BinaryOp,
    BinaryOperator,
    Expression,
    Identifier,
    Integer,
    Negation,
    PcValue,
    Register,
    StringLiteral,
)
from rvasm.assembler.symbols import SymbolTable, find_similar_symbols


# Working width of all arithmetic
WORD_BITS = 64
MASK64 = (1 << WORD_BITS) - 1
SIGN_BIT = 1 << (WORD_BITS - 1)

SymbolLookup = Callable[[str, Optional[SourceLocation]], int]


# =============================================================================
# Arithmetic
# =============================================================================

def to_signed(value: int) -> int:
    """Read an unsigned 64-bit value as two's complement."""
    return value - (1 << WORD_BITS) if value & SIGN_BIT else value


def apply_operator(
    operator: BinaryOperator,
    lhs: int,
    rhs: int,
    location: Optional[SourceLocation] = None,
) -> int:
    """
    Apply a binary operator to two unsigned 64-bit operands.

    Raises:
        DivisionByZeroError: For '/' with a zero right operand
    """
    if operator is BinaryOperator.PLUS:
        return (lhs + rhs) & MASK64
    if operator is BinaryOperator.MINUS:
        return (lhs - rhs) & MASK64
    if operator is BinaryOperator.TIMES:
        return (lhs * rhs) & MASK64
    if operator is BinaryOperator.DIVIDE:
        if rhs == 0:
            raise DivisionByZeroError(location)
        return lhs // rhs

    shift = rhs % WORD_BITS
    if operator is BinaryOperator.SHL:
        return (lhs << shift) & MASK64
    if operator is BinaryOperator.SHR:
        return lhs >> shift
    if operator is BinaryOperator.ASHR:
        return (to_signed(lhs) >> shift) & MASK64

    raise ExpressionError(f"unknown operator '{operator.value}'", location)


def negate(value: int) -> int:
    return (-value) & MASK64


# =============================================================================
# Constant Folding
# =============================================================================

def simplify(node: Expression) -> Expression:
    """
    Fold a node whose operands are already Integer literals.

    Only the node itself is examined; children are expected to have been
    simplified when they were built.
    """
    if isinstance(node, Negation) and isinstance(node.operand, Integer):
        return Integer(node.location, negate(node.operand.value))

    if isinstance(node, BinaryOp) and isinstance(node.lhs, Integer) \
            and isinstance(node.rhs, Integer):
        if node.operator is BinaryOperator.DIVIDE and node.rhs.value == 0:
            return node
        return Integer(
            node.location,
            apply_operator(node.operator, node.lhs.value, node.rhs.value),
        )

    return node


# =============================================================================
# Expression Evaluator
# =============================================================================

class ExpressionEvaluator:
    """
    Evaluates expression trees against a symbol source and a PC value.

    The symbol source may be a SymbolTable (scoped lookup, used by the
    code generator), a plain mapping of names to values, or any callable
    taking (name, location) and returning a value.

    Attributes:
        pc: Value substituted for '$'
    """

    def __init__(
        self,
        symbols: Union[SymbolTable, Mapping[str, int], SymbolLookup, None] = None,
        pc: int = 0,
    ):
        self._lookup = _make_lookup(symbols)
        self._pc = pc & MASK64

    def set_pc(self, value: int) -> None:
        self._pc = value & MASK64

    def get_pc(self) -> int:
        return self._pc

    def evaluate(self, node: Expression, pc: Optional[int] = None) -> int:
        """
        Reduce an expression to an unsigned 64-bit integer.

        Args:
            node: Expression tree
            pc: Overrides the evaluator's PC for this call

        Raises:
            UndefinedSymbolError: Unknown identifier
            DivisionByZeroError: Division by zero
            ExpressionError: Register or string used as a number
        """
        if pc is not None:
            self.set_pc(pc)
        return self._evaluate(node)

    def _evaluate(self, node: Expression) -> int:
        if isinstance(node, Integer):
            return node.value & MASK64

        if isinstance(node, PcValue):
            return self._pc

        if isinstance(node, Identifier):
            return self._lookup(node.name, node.location) & MASK64

        if isinstance(node, Negation):
            return negate(self._evaluate(node.operand))

        if isinstance(node, BinaryOp):
            lhs = self._evaluate(node.lhs)
            rhs = self._evaluate(node.rhs)
            return apply_operator(node.operator, lhs, rhs, node.location)

        if isinstance(node, Register):
            raise ExpressionError(
                f"register '{node.name}' cannot be used as a number", node.location
            )

        if isinstance(node, StringLiteral):
            raise ExpressionError("string cannot be used as a number", node.location)

        raise ExpressionError(f"cannot evaluate {type(node).__name__}", node.location)


# =============================================================================
# Convenience Functions
# =============================================================================

def evaluate_expression(
    node: Expression,
    symbols: Union[SymbolTable, Mapping[str, int], SymbolLookup, None] = None,
    pc: int = 0,
) -> int:
    """
    Convenience function to evaluate an expression.

    Args:
        node: Expression tree
        symbols: Symbol source (see ExpressionEvaluator)
        pc: Value of '$'

    Returns:
        Expression result as unsigned 64-bit integer
    """
    return ExpressionEvaluator(symbols, pc).evaluate(node)


def _make_lookup(symbols) -> SymbolLookup:
    if symbols is None:
        symbols = {}

    if isinstance(symbols, SymbolTable):
        return symbols.resolve

    if isinstance(symbols, Mapping):
        def lookup(name: str, location: Optional[SourceLocation] = None) -> int:
            if name in symbols:
                return symbols[name]
            raise UndefinedSymbolError(
                name,
                location=location,
                similar_symbols=find_similar_symbols(name, list(symbols)),
            )
        return lookup

    return symbols
