"""
RISC-V Family Assembler
=======================

This package provides a data-driven assembler for RISC-V-family
instruction sets. The instruction set itself (registers, word formats,
mnemonics) comes from an InstructionSpec (see rvasm.isa); nothing in this
package knows a concrete encoding.

Main Components
---------------
- **Assembler**: Main assembler class that orchestrates the assembly process
- **Lexer**: Tokenizes assembly source into tokens
- **Parser**: Parses tokens into a program tree (labels, instructions)
- **ExpressionEvaluator**: Evaluates arithmetic expressions
- **SymbolTable**: Labels and constants with local-label scoping
- **CodeGenerator**: Two-pass generation of the flat image

Assembly Process
----------------
1. **Parsing (Lexer + Parser)**:
   - Tokenize source into lexical tokens
   - Parse tokens into labels and instructions, folding constant
     subexpressions as they are built

2. **Code Generation (CodeGenerator)** (two-pass):
   - Pass 1: Symbol collection and address assignment
   - Pass 2: Expression evaluation, encoding, image output

Supported Features
------------------
- Any instruction set described by an InstructionSpec (RV32I bundled)
- Labels (global and local)
- Constants (.equ, .define)
- Origin control (.org)
- Data directives (.byte, .half, .word, .dword, .ascii, .asciz, .zero, .align)
- Expressions with + - * / << >> >>> and unary minus
- '$' for the address of the current instruction
"""

from rvasm.assembler.assembler import Assembler, assemble, assemble_file
from rvasm.assembler.lexer import Lexer, Token, TokenType
from rvasm.assembler.parser import Parser, parse_source
from rvasm.assembler.expressions import ExpressionEvaluator, evaluate_expression
from rvasm.assembler.symbols import Symbol, SymbolTable
from rvasm.assembler.codegen import CodeGenerator

__all__ = [
    "Assembler",
    "assemble",
    "assemble_file",
    "Lexer",
    "Token",
    "TokenType",
    "Parser",
    "parse_source",
    "ExpressionEvaluator",
    "evaluate_expression",
    "Symbol",
    "SymbolTable",
    "CodeGenerator",
]
