"""Swift: module imports narrowed to the files declaring referenced types.

SwiftPM lays a module out as ``Sources/<Module>/...``; every file in a module
sees every other without importing, so the importer's own module is searched
the same way as the modules it imports.
"""

from __future__ import annotations

import os
from typing import Mapping

from ..core import syntax
from ..core.export_index import ExportIndex, ExportIndexBuilder
from ..core.imports import Extraction, ImportDeclaration, ImportKind, is_upper_camel, make_extraction
from ..core.resolution import filter_by_symbols
from .base import BaseLanguage, BuildContext, MaturityLevel, path_segments, without_self

STDLIB_MODULES = frozenset({
    "Foundation", "Swift", "UIKit", "SwiftUI", "AppKit", "Combine", "XCTest", "Dispatch", "os",
})

MODULE_ROOTS = ("Sources", "Source", "Tests")

TOP_LEVEL_TYPES = (
    "class_declaration",
    "struct_declaration",
    "enum_declaration",
    "protocol_declaration",
    "actor_declaration",
    "typealias_declaration",
)

_IDENTIFIER_NODES = ("type_identifier", "simple_type_identifier", "simple_identifier", "identifier", "user_type")

# Key for files outside any module directory.
NO_MODULE = ""


def swift_module(path: str) -> str:
    """Module name from the component following Sources/, Source/ or Tests/."""
    parts = path_segments(path)
    for i, part in enumerate(parts[:-1]):
        if part in MODULE_ROOTS and i + 1 < len(parts) - 1:
            return parts[i + 1]
    return NO_MODULE


def _is_extension(node) -> bool:
    return any(child.type == "extension" for child in node.children)


def _declaration_name(node, source: bytes) -> str | None:
    name = node.child_by_field_name("name")
    if name is None:
        for child in syntax.walk(node):
            if child.type in ("type_identifier", "identifier"):
                name = child
                break
    return syntax.node_text(name, source).strip() if name is not None else None


class SwiftLanguage(BaseLanguage):
    name = "swift"
    extensions = (".swift",)
    maturity = MaturityLevel.BASIC_TESTS

    def extract(self, content: bytes, path: str) -> Extraction:
        root = syntax.parse("swift", content)
        if root is None:
            return Extraction.empty()

        imports = []
        for node in syntax.find_all(root, "import_declaration"):
            ident = syntax.child_of_type(node, "identifier")
            if ident is None:
                continue
            module = syntax.node_text(ident, content).strip().split(".", 1)[0]
            if module:
                imports.append(ImportDeclaration(module, self.classify(module), origin=path))

        declared = []
        for node in root.children:
            if node.type in TOP_LEVEL_TYPES and not _is_extension(node):
                name = _declaration_name(node, content)
                if name:
                    declared.append(name)

        referenced = set()
        for node in syntax.walk(root):
            if node.type in _IDENTIFIER_NODES and not syntax.has_ancestor(node, "import_declaration"):
                name = syntax.node_text(node, content).strip()
                if name and is_upper_camel(name) and name.isidentifier():
                    referenced.add(name)
        return make_extraction(imports, declared=declared, referenced=referenced, scope=swift_module(path) or None)

    def classify(self, raw: str, scopes: frozenset[str] = frozenset()) -> ImportKind:
        if raw in STDLIB_MODULES:
            return ImportKind.STANDARD_LIBRARY
        return ImportKind.INTERNAL if raw in scopes else ImportKind.EXTERNAL

    def build_index(self, ctx: BuildContext, extractions: Mapping[str, Extraction]) -> ExportIndex:
        builder = ExportIndexBuilder()
        for path, extraction in extractions.items():
            builder.add_all(swift_module(path), extraction.declared_symbols, path)
        return builder.build()

    def _module_candidates(self, index: ExportIndex, module: str) -> str | None:
        if module in index:
            return module
        for suffix in ("Tests", "Test"):
            if module.endswith(suffix) and module[: -len(suffix)] in index:
                return module[: -len(suffix)]
        return None

    def resolve(self, path: str, extraction: Extraction, state: ExportIndex, ctx: BuildContext) -> list[str]:
        wanted = extraction.referenced_identifiers - extraction.declared_symbols
        own = swift_module(path)
        implicit = [own] if own else list(state.scopes())
        imported: list[str] = []
        for imp in extraction.imports:
            if imp.path in implicit or imp.kind is ImportKind.STANDARD_LIBRARY:
                continue
            module = self._module_candidates(state, imp.path)
            if module is not None and module not in implicit and module not in imported:
                imported.append(module)

        targets: list[str] = []
        # Visible without an import, so only referenced types count.
        for module in implicit:
            targets.extend(sorted(filter_by_symbols(state, module, wanted, fallback=False)))
        for module in imported:
            targets.extend(sorted(filter_by_symbols(state, module, wanted, fallback=ctx.symbol_fallback)))
        return without_self(path, targets)

    def is_test_file(self, path: str, reader=None) -> bool:
        stem, ext = os.path.splitext(os.path.basename(path))
        if ext != ".swift":
            return False
        if stem.endswith(("Tests", "Test")):
            return True
        return "/Tests/" in path.replace(os.sep, "/")
