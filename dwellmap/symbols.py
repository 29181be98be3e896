"""Symbol model shared by resolvers and the hotspot aggregator."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Protocol


class SymbolKind(IntEnum):
    """Editor symbol kinds (same numbering as the editor's document symbols)."""

    FILE = 0
    MODULE = 1
    NAMESPACE = 2
    PACKAGE = 3
    CLASS = 4
    METHOD = 5
    PROPERTY = 6
    FIELD = 7
    CONSTRUCTOR = 8
    ENUM = 9
    INTERFACE = 10
    FUNCTION = 11
    VARIABLE = 12
    CONSTANT = 13
    STRING = 14
    NUMBER = 15
    BOOLEAN = 16
    ARRAY = 17
    OBJECT = 18
    KEY = 19
    NULL = 20
    ENUM_MEMBER = 21
    STRUCT = 22
    EVENT = 23
    OPERATOR = 24
    TYPE_PARAMETER = 25


_KIND_NAMES = {
    SymbolKind.CLASS: "Class",
    SymbolKind.METHOD: "Method",
    SymbolKind.INTERFACE: "Interface",
    SymbolKind.ENUM: "Enum",
    SymbolKind.CONSTRUCTOR: "Constructor",
    SymbolKind.FIELD: "Field",
    SymbolKind.PROPERTY: "Property",
    SymbolKind.VARIABLE: "Variable",
    SymbolKind.ENUM_MEMBER: "EnumMember",
    SymbolKind.PACKAGE: "Package",
    SymbolKind.NAMESPACE: "Namespace",
    SymbolKind.FUNCTION: "Function",
    SymbolKind.MODULE: "Module",
    SymbolKind.STRUCT: "Struct",
    SymbolKind.CONSTANT: "Constant",
}


def symbol_kind_name(kind: int) -> str:
    try:
        return _KIND_NAMES.get(SymbolKind(kind), "Unknown")
    except ValueError:
        return "Unknown"


@dataclass
class SymbolInfo:
    """A named code symbol and its inclusive 0-based line span."""

    kind: int
    name: str
    start_line: int
    end_line: int
    children: list["SymbolInfo"] = field(default_factory=list)

    def walk(self) -> Iterator["SymbolInfo"]:
        yield self
        for child in self.children:
            yield from child.walk()

    def overlaps(self, start_line: int, end_line: int) -> bool:
        return self.start_line <= end_line and self.end_line >= start_line

    def to_dict(self) -> dict:
        return {
            "kind": int(self.kind),
            "name": self.name,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "children": [c.to_dict() for c in self.children],
        }


class SymbolResolver(Protocol):
    def resolve_symbols(self, file_path: Path) -> list[SymbolInfo]:
        """Return the file's symbol tree, raising on failure."""
        ...


def iter_symbols(symbols: list[SymbolInfo]) -> Iterator[SymbolInfo]:
    """Depth-first walk over a symbol forest."""
    for symbol in symbols:
        yield from symbol.walk()
