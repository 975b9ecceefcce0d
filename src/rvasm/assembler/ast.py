"""
Assembly Syntax Tree Definitions
================================

This module defines the node types produced by the parser. The tree is
small and strictly owned: every composite node holds its children
directly and nothing is shared between nodes.

Node Hierarchy
--------------
Node (base)
├── Expressions
│   ├── Integer - unsigned 64-bit literal
│   ├── Identifier - label or constant reference
│   ├── PcValue - the '$' placeholder
│   ├── StringLiteral - byte string (data directives only)
│   ├── Register - bare register name, already resolved to its index
│   ├── Negation - unary minus
│   └── BinaryOp - + - * / << >> >>>
├── Argument - one instruction argument
├── Label - `name:`
├── Instruction - mnemonic plus arguments (also directives)
└── Root - the whole program, in source order

Design Notes
------------
- All nodes are dataclasses and carry their source location
- Directives such as .org and .equ are Instruction nodes; the code
  generator recognises them by mnemonic
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from rvasm.errors import SourceLocation


# =============================================================================
# Node Base Class
# =============================================================================

@dataclass
class Node:
    """
    Base class for all syntax nodes.

    Attributes:
        location: Source location where this node starts
    """
    location: SourceLocation


# =============================================================================
# Expression Nodes
# =============================================================================

class BinaryOperator(Enum):
    """Binary operators, valued by their source spelling."""
    PLUS = "+"
    MINUS = "-"
    TIMES = "*"
    DIVIDE = "/"
    SHL = "<<"
    SHR = ">>"
    ASHR = ">>>"


@dataclass
class Integer(Node):
    """Integer literal (always 0 <= value < 2**64)."""
    value: int


@dataclass
class Identifier(Node):
    """Reference to a label or constant."""
    name: str


@dataclass
class PcValue(Node):
    """The '$' token: address of the item being assembled."""
    pass


@dataclass
class StringLiteral(Node):
    """Double-quoted string, already unescaped to bytes."""
    value: bytes


@dataclass
class Register(Node):
    """
    Register operand.

    Attributes:
        name: Name as written in the source (alias or canonical)
        index: Register number from the instruction specification
    """
    name: str
    index: int


@dataclass
class Negation(Node):
    """Unary minus."""
    operand: "Expression"


@dataclass
class BinaryOp(Node):
    """Binary arithmetic or shift."""
    operator: BinaryOperator
    lhs: "Expression"
    rhs: "Expression"


Expression = Union[
    Integer, Identifier, PcValue, StringLiteral, Register, Negation, BinaryOp
]


# =============================================================================
# Statement Nodes
# =============================================================================

@dataclass
class Argument(Node):
    """One argument of an instruction or directive."""
    value: Expression


@dataclass
class Label(Node):
    """
    Label definition.

    Attributes:
        name: Label name, including the leading '.' of a local label
    """
    name: str

    @property
    def is_local(self) -> bool:
        return self.name.startswith(".")


@dataclass
class Instruction(Node):
    """
    Instruction or directive.

    Attributes:
        mnemonic: Mnemonic as written (case preserved)
        arguments: Arguments in source order
    """
    mnemonic: str
    arguments: list[Argument] = field(default_factory=list)

    @property
    def arity(self) -> int:
        return len(self.arguments)


@dataclass
class Root(Node):
    """Whole program: labels and instructions in source order."""
    items: list[Union[Label, Instruction]] = field(default_factory=list)
