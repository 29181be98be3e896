#!/usr/bin/env python3
"""
dwellmap.outliner - Tree-sitter symbol resolution

Parses a source file with tree-sitter and returns its symbol tree (classes,
functions, methods, fields, ...) with line spans, the shape the hotspot
aggregator needs to name the code a user spent time on.

Language support: Python, JS/TS, Java, Rust, Go, C/C++

Usage:
  python -m dwellmap.outliner path/to/file.py
"""

import logging
from functools import lru_cache
from pathlib import Path

import tree_sitter
import tree_sitter_language_pack as tslp

from dwellmap.errors import SymbolResolutionError
from dwellmap.symbols import SymbolInfo, SymbolKind, symbol_kind_name

logger = logging.getLogger(__name__)

# Language file extension mapping
LANGUAGE_MAP = {
    ".py": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".hpp": "cpp",
}

_JS_NODES = {
    "class_declaration": SymbolKind.CLASS,
    "abstract_class_declaration": SymbolKind.CLASS,
    "class": SymbolKind.CLASS,
    "function_declaration": SymbolKind.FUNCTION,
    "generator_function_declaration": SymbolKind.FUNCTION,
    "method_definition": SymbolKind.METHOD,
    "interface_declaration": SymbolKind.INTERFACE,
    "enum_declaration": SymbolKind.ENUM,
    "public_field_definition": SymbolKind.FIELD,
    "field_definition": SymbolKind.FIELD,
    "variable_declarator": SymbolKind.VARIABLE,
    "internal_module": SymbolKind.NAMESPACE,
}

# node type -> symbol kind, per grammar
SYMBOL_NODES = {
    "python": {
        "class_definition": SymbolKind.CLASS,
        "function_definition": SymbolKind.FUNCTION,
        "assignment": SymbolKind.VARIABLE,
    },
    "javascript": _JS_NODES,
    "typescript": _JS_NODES,
    "tsx": _JS_NODES,
    "java": {
        "package_declaration": SymbolKind.PACKAGE,
        "class_declaration": SymbolKind.CLASS,
        "record_declaration": SymbolKind.CLASS,
        "interface_declaration": SymbolKind.INTERFACE,
        "enum_declaration": SymbolKind.ENUM,
        "enum_constant": SymbolKind.ENUM_MEMBER,
        "constructor_declaration": SymbolKind.CONSTRUCTOR,
        "method_declaration": SymbolKind.METHOD,
        "field_declaration": SymbolKind.FIELD,
    },
    "rust": {
        "mod_item": SymbolKind.MODULE,
        "struct_item": SymbolKind.STRUCT,
        "enum_item": SymbolKind.ENUM,
        "enum_variant": SymbolKind.ENUM_MEMBER,
        "trait_item": SymbolKind.INTERFACE,
        "impl_item": SymbolKind.NAMESPACE,
        "function_item": SymbolKind.FUNCTION,
        "field_declaration": SymbolKind.FIELD,
        "const_item": SymbolKind.CONSTANT,
        "static_item": SymbolKind.VARIABLE,
    },
    "go": {
        "function_declaration": SymbolKind.FUNCTION,
        "method_declaration": SymbolKind.METHOD,
        "type_spec": SymbolKind.STRUCT,
        "field_declaration": SymbolKind.FIELD,
        "const_spec": SymbolKind.CONSTANT,
        "var_spec": SymbolKind.VARIABLE,
    },
    "c": {
        "function_definition": SymbolKind.FUNCTION,
        "struct_specifier": SymbolKind.STRUCT,
        "enum_specifier": SymbolKind.ENUM,
        "enumerator": SymbolKind.ENUM_MEMBER,
    },
    "cpp": {
        "namespace_definition": SymbolKind.NAMESPACE,
        "class_specifier": SymbolKind.CLASS,
        "struct_specifier": SymbolKind.STRUCT,
        "enum_specifier": SymbolKind.ENUM,
        "enumerator": SymbolKind.ENUM_MEMBER,
        "function_definition": SymbolKind.FUNCTION,
    },
}

_CALLABLE = {SymbolKind.FUNCTION, SymbolKind.METHOD, SymbolKind.CONSTRUCTOR}
_DATA = {SymbolKind.VARIABLE, SymbolKind.FIELD, SymbolKind.CONSTANT}
_CONTAINERS = {SymbolKind.CLASS, SymbolKind.STRUCT, SymbolKind.INTERFACE, SymbolKind.ENUM}
_FUNCTION_VALUES = {"arrow_function", "function_expression", "function", "generator_function"}
_NAME_TYPES = {"identifier", "type_identifier", "field_identifier", "property_identifier", "constant"}


@lru_cache(maxsize=None)
def _language(lang_name: str):
    return tslp.get_language(lang_name)


def language_for(file_path: Path) -> str | None:
    return LANGUAGE_MAP.get(Path(file_path).suffix.lower())


def _get_text(node, source: bytes) -> str:
    """Get text for a node."""
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def _declarator_name(node, source: bytes) -> str | None:
    """Follow C-style declarator chains down to the identifier."""
    current = node
    for _ in range(8):
        declarator = current.child_by_field_name("declarator")
        if declarator is None:
            break
        current = declarator
    if current is not node and current.type in _NAME_TYPES:
        return _get_text(current, source)
    for child in current.children:
        if child.type in _NAME_TYPES:
            return _get_text(child, source)
    return None


def _node_name(node, lang_name: str, source: bytes) -> str | None:
    name = node.child_by_field_name("name")
    if name is not None:
        return _get_text(name, source)

    if node.type == "assignment":
        left = node.child_by_field_name("left")
        if left is not None and left.type == "identifier":
            return _get_text(left, source)
        return None

    if node.type == "impl_item":
        impl_type = node.child_by_field_name("type")
        trait = node.child_by_field_name("trait")
        if impl_type is None:
            return None
        if trait is not None:
            return f"impl {_get_text(trait, source)} for {_get_text(impl_type, source)}"
        return f"impl {_get_text(impl_type, source)}"

    if node.type == "package_declaration":
        for child in node.children:
            if child.type in ("scoped_identifier", "identifier"):
                return _get_text(child, source)
        return None

    return _declarator_name(node, source)


def _refine_kind(kind: SymbolKind, node, name: str, parent_kind: SymbolKind | None) -> SymbolKind | None:
    """Context-dependent kinds. None means "not a symbol here"."""
    if kind in _DATA and parent_kind in _CALLABLE:
        return None  # locals
    if kind is SymbolKind.VARIABLE and node.type == "assignment" and parent_kind in _CONTAINERS:
        return SymbolKind.FIELD
    if kind is SymbolKind.VARIABLE and node.type == "variable_declarator":
        value = node.child_by_field_name("value")
        if value is not None and value.type in _FUNCTION_VALUES:
            return SymbolKind.FUNCTION
    if kind is SymbolKind.FUNCTION and parent_kind in (_CONTAINERS | {SymbolKind.NAMESPACE}):
        kind = SymbolKind.METHOD
    if kind is SymbolKind.METHOD and name in ("__init__", "constructor", "new"):
        return SymbolKind.CONSTRUCTOR
    return kind


def _collect(node, lang_name: str, source: bytes, parent_kind: SymbolKind | None) -> list[SymbolInfo]:
    table = SYMBOL_NODES[lang_name]
    found: list[SymbolInfo] = []
    for child in node.children:
        kind = table.get(child.type)
        symbol = None
        if kind is not None:
            name = _node_name(child, lang_name, source)
            if name:
                refined = _refine_kind(kind, child, name, parent_kind)
                if refined is not None:
                    symbol = SymbolInfo(
                        kind=int(refined),
                        name=name,
                        start_line=child.start_point[0],
                        end_line=child.end_point[0],
                    )

        if symbol is not None:
            symbol.children = _collect(child, lang_name, source, SymbolKind(symbol.kind))
            found.append(symbol)
        else:
            found.extend(_collect(child, lang_name, source, parent_kind))
    return found


def extract_symbols(source: bytes, lang_name: str) -> list[SymbolInfo]:
    """Parse source and return its symbol forest."""
    if lang_name not in SYMBOL_NODES:
        raise SymbolResolutionError(f"no symbol table for language {lang_name!r}")
    parser = tree_sitter.Parser(_language(lang_name))
    tree = parser.parse(source)
    return _collect(tree.root_node, lang_name, source, None)


class TreeSitterSymbolResolver:
    """SymbolResolver backed by tree-sitter grammars."""

    def resolve_symbols(self, file_path: Path) -> list[SymbolInfo]:
        file_path = Path(file_path)
        lang_name = language_for(file_path)
        if lang_name is None:
            raise SymbolResolutionError(f"unsupported file type: {file_path.suffix or file_path.name}")
        try:
            source = file_path.read_bytes()
        except OSError as e:
            raise SymbolResolutionError(f"cannot read {file_path}: {e}") from e
        try:
            return extract_symbols(source, lang_name)
        except SymbolResolutionError:
            raise
        except Exception as e:
            raise SymbolResolutionError(f"failed to parse {file_path}: {e}") from e


# ============================================================================
# CLI
# ============================================================================

def format_outline(symbols: list[SymbolInfo], indent: int = 0) -> list[str]:
    lines = []
    for symbol in symbols:
        lines.append(
            f"{'    ' * indent}{symbol_kind_name(symbol.kind):<12} {symbol.name}  "
            f"[{symbol.start_line}-{symbol.end_line}]"
        )
        lines.extend(format_outline(symbol.children, indent + 1))
    return lines


def main():
    """CLI for testing symbol extraction."""
    import argparse

    parser = argparse.ArgumentParser(description="Print the symbol tree of a source file")
    parser.add_argument("file", type=Path, help="Source file to outline")
    args = parser.parse_args()

    try:
        symbols = TreeSitterSymbolResolver().resolve_symbols(args.file)
    except SymbolResolutionError as e:
        print(f"[outliner] {e}")
        raise SystemExit(1)

    if symbols:
        print("\n".join(format_outline(symbols)))
    else:
        print("No symbols found")


if __name__ == "__main__":
    main()
