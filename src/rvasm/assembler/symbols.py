"""
Symbol Table and Scope Manager
==============================

Labels and .equ/.define constants live in one namespace. Names starting
with '.' are local: they belong to the most recently declared global
label, so the same local name can be reused under every global label.

    foo:
    .loop:          ; foo.loop
        ...
    bar:
    .loop:          ; bar.loop, no clash with foo.loop

Scoping is flat, the way assemblers usually do it: only global *labels*
open a new scope (constants do not), and the scope is a single "current
enclosing label" value rather than a stack. Locals declared before the
first global label belong to the root scope.

Redefining a name within its effective scope is always an error; there
is no shadowing.
"""

from dataclasses import dataclass
from typing import Iterator, Mapping, Optional

from rvasm.errors import (
    DuplicateSymbolError,
    SourceLocation,
    UndefinedSymbolError,
)


# =============================================================================
# Symbol Entry
# =============================================================================

@dataclass
class Symbol:
    """
    Symbol table entry.

    Attributes:
        name: Name as written (locals keep their leading '.')
        value: Address or constant value (unsigned 64-bit)
        location: Where the symbol was defined
        scope: Enclosing global label for locals (None at root or for globals)
        is_constant: True for .equ/.define symbols
    """
    name: str
    value: int
    location: Optional[SourceLocation] = None
    scope: Optional[str] = None
    is_constant: bool = False

    @property
    def is_local(self) -> bool:
        return self.name.startswith(".")

    @property
    def qualified_name(self) -> str:
        """Name with the enclosing label prefixed for locals (foo.loop)."""
        if self.is_local and self.scope is not None:
            return f"{self.scope}{self.name}"
        return self.name


# =============================================================================
# Symbol Table
# =============================================================================

class SymbolTable:
    """
    Scoped mapping from symbol names to values.

    The table tracks the current enclosing global label itself. Pass 1
    moves it forward by declaring labels; pass 2 replays the same moves
    with enter_scope() so local references resolve exactly as they would
    have at their point of declaration.

    Usage:
        table = SymbolTable()
        table.declare("foo", 0x100)
        table.declare(".loop", 0x104)
        table.resolve(".loop")      # 0x104, looked up under 'foo'
    """

    def __init__(self, fallback: Optional[Mapping[str, int]] = None):
        """
        Args:
            fallback: Read-only constants consulted after the table itself
                      (for example the instruction set's ILEN)
        """
        self._globals: dict[str, Symbol] = {}
        self._locals: dict[tuple[Optional[str], str], Symbol] = {}
        self._scope: Optional[str] = None
        self._fallback = dict(fallback or {})

    # =========================================================================
    # Scope Management
    # =========================================================================

    @property
    def scope(self) -> Optional[str]:
        """The enclosing global label, or None before the first one."""
        return self._scope

    def enter_scope(self, label: Optional[str]) -> None:
        """Make `label` the enclosing scope without declaring anything."""
        self._scope = label

    # =========================================================================
    # Declaration and Lookup
    # =========================================================================

    def declare(
        self,
        name: str,
        value: int,
        location: Optional[SourceLocation] = None,
        is_label: bool = True,
    ) -> Symbol:
        """
        Define a symbol.

        A global label also becomes the new enclosing scope; constants
        never change the scope.

        Args:
            name: Symbol name ('.name' for a local)
            value: Unsigned 64-bit value
            location: Definition site, reported on duplicates
            is_label: False for .equ/.define constants

        Returns:
            The new Symbol

        Raises:
            DuplicateSymbolError: If the name already exists in its scope
        """
        symbol = Symbol(
            name=name,
            value=value,
            location=location,
            scope=self._scope if name.startswith(".") else None,
            is_constant=not is_label,
        )

        existing = self._find(name)
        if existing is not None:
            raise DuplicateSymbolError(
                symbol.qualified_name,
                location=location,
                original_location=existing.location,
            )

        if symbol.is_local:
            self._locals[(self._scope, name)] = symbol
        else:
            self._globals[name] = symbol
            if is_label:
                self._scope = name

        return symbol

    def lookup(self, name: str) -> Optional[Symbol]:
        """Find a symbol in the current scope, or None."""
        return self._find(name)

    def resolve(self, name: str, location: Optional[SourceLocation] = None) -> int:
        """
        Value of a symbol in the current scope.

        Raises:
            UndefinedSymbolError: If neither the table nor the fallback
                constants define it (with similar names as hints)
        """
        symbol = self._find(name)
        if symbol is not None:
            return symbol.value

        if name in self._fallback:
            return self._fallback[name]

        raise UndefinedSymbolError(
            name,
            location=location,
            similar_symbols=find_similar_symbols(name, self._visible_names()),
        )

    def is_defined(self, name: str) -> bool:
        return self._find(name) is not None or name in self._fallback

    def symbols(self) -> dict[str, int]:
        """Flat {qualified name: value} view, locals as 'label.local'."""
        return {symbol.qualified_name: symbol.value for symbol in self}

    def __iter__(self) -> Iterator[Symbol]:
        yield from self._globals.values()
        yield from self._locals.values()

    def __len__(self) -> int:
        return len(self._globals) + len(self._locals)

    def __contains__(self, name: str) -> bool:
        return self.is_defined(name)

    def _find(self, name: str) -> Optional[Symbol]:
        if name.startswith("."):
            return self._locals.get((self._scope, name))
        return self._globals.get(name)

    def _visible_names(self) -> list[str]:
        names = list(self._globals)
        names.extend(local for scope, local in self._locals if scope == self._scope)
        names.extend(self._fallback)
        return names


# =============================================================================
# Typo Hints
# =============================================================================

def find_similar_symbols(name: str, candidates: list[str]) -> list[str]:
    """
    Find symbols with similar names for error hints.

    Uses simple edit distance heuristic.
    """
    name_lower = name.lower()
    similar = []

    for sym in candidates:
        sym_lower = sym.lower()
        if (
            sym_lower == name_lower or
            abs(len(sym) - len(name)) <= 1 and
            edit_distance(name_lower, sym_lower) <= 2
        ):
            similar.append(sym)

    return similar[:3]


def edit_distance(s1: str, s2: str) -> int:
    """Calculate Levenshtein edit distance between two strings."""
    if len(s1) < len(s2):
        s1, s2 = s2, s1

    distances = range(len(s2) + 1)
    for i, c1 in enumerate(s1):
        new_distances = [i + 1]
        for j, c2 in enumerate(s2):
            if c1 == c2:
                new_distances.append(distances[j])
            else:
                new_distances.append(1 + min((
                    distances[j],
                    distances[j + 1],
                    new_distances[-1]
                )))
        distances = new_distances

    return distances[-1]
