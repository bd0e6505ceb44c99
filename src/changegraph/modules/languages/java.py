"""Java: package-scoped imports narrowed by the types a file references."""

from __future__ import annotations

import os
from typing import Mapping

from ..core import syntax
from ..core.export_index import ExportIndex, ExportIndexBuilder
from ..core.imports import (
    Extraction,
    ImportDeclaration,
    ImportKind,
    is_upper_camel,
    make_extraction,
    matches_prefix,
    package_under,
)
from ..core.resolution import filter_by_symbols
from .base import BaseLanguage, BuildContext, MaturityLevel, without_self

STDLIB_PREFIXES = ("java.", "javax.", "jdk.", "sun.", "com.sun.", "org.w3c.", "org.xml.sax.")

TOP_LEVEL_TYPES = (
    "class_declaration",
    "interface_declaration",
    "enum_declaration",
    "record_declaration",
    "annotation_type_declaration",
)


def import_package(path: str) -> str:
    """Package part of an import: a trailing Capitalized type name is dropped."""
    parts = path.split(".")
    if len(parts) > 1 and is_upper_camel(parts[-1]):
        return ".".join(parts[:-1])
    return path


def simple_type_name(path: str) -> str:
    return path.rsplit(".", 1)[-1]


def imported_names(extraction: Extraction) -> set[str]:
    return {simple_type_name(imp.path) for imp in extraction.imports if not imp.is_wildcard}


def build_package_index(extractions: Mapping[str, Extraction]) -> ExportIndex:
    """Package -> declared type -> files. Files without a package are left out."""
    builder = ExportIndexBuilder()
    for path, extraction in extractions.items():
        if extraction.scope:
            builder.add_all(extraction.scope, extraction.declared_symbols, path)
    return builder.build()


class JavaLanguage(BaseLanguage):
    name = "java"
    extensions = (".java",)
    maturity = MaturityLevel.ACTIVELY_TESTED
    grammar = "java"
    stdlib_prefixes = STDLIB_PREFIXES
    package_of = staticmethod(import_package)

    def extract(self, content: bytes, path: str) -> Extraction:
        root = syntax.parse(self.grammar, content)
        if root is None:
            return Extraction.empty()

        package = None
        decl = syntax.child_of_type(root, "package_declaration")
        if decl is not None:
            name = syntax.child_of_type(decl, "scoped_identifier", "identifier")
            if name is not None:
                package = syntax.node_text(name, content).strip()

        imports = []
        for node in syntax.find_all(root, "import_declaration"):
            name = syntax.child_of_type(node, "scoped_identifier", "identifier")
            if name is None:
                continue
            raw = syntax.node_text(name, content).replace(" ", "")
            is_static = syntax.child_of_type(node, "static") is not None
            wildcard = syntax.child_of_type(node, "asterisk") is not None
            if is_static:
                # Static imports name members of a type; the dependency is the type.
                if wildcard:
                    wildcard = False
                else:
                    raw = raw.rsplit(".", 1)[0]
            imports.append(
                ImportDeclaration(
                    raw,
                    self.classify(raw),
                    is_wildcard=wildcard,
                    directive="import static" if is_static else "import",
                    origin=path,
                )
            )

        declared = []
        for node in syntax.children_of_type(root, *TOP_LEVEL_TYPES):
            name = node.child_by_field_name("name")
            if name is not None:
                declared.append(syntax.node_text(name, content))

        referenced = {
            syntax.node_text(node, content)
            for node in syntax.find_all(root, ("type_identifier", "scoped_type_identifier"))
        }
        return make_extraction(imports, declared=declared, referenced=referenced, scope=package)

    def classify(self, raw: str, scopes: frozenset[str] = frozenset()) -> ImportKind:
        if matches_prefix(raw, self.stdlib_prefixes):
            return ImportKind.STANDARD_LIBRARY
        if package_under(self.package_of(raw), scopes) or package_under(raw, scopes):
            return ImportKind.INTERNAL
        return ImportKind.EXTERNAL

    def build_index(self, ctx: BuildContext, extractions: Mapping[str, Extraction]) -> ExportIndex:
        return build_package_index(extractions)

    def resolve(self, path: str, extraction: Extraction, state, ctx: BuildContext) -> list[str]:
        index: ExportIndex = state
        scopes = frozenset(index.scopes())
        referenced = extraction.referenced_identifiers
        declared = extraction.declared_symbols
        targets: list[str] = []

        for imp in extraction.imports:
            if self.classify(imp.path, scopes) is not ImportKind.INTERNAL:
                continue
            if imp.is_wildcard:
                targets.extend(self.resolve_wildcard(index, imp.path, referenced, declared, ctx))
            else:
                targets.extend(self.resolve_specific(index, imp.path, referenced, ctx))

        if extraction.scope:
            targets.extend(self.same_package(index, extraction, path))
        return without_self(path, targets)

    def resolve_wildcard(self, index, package, referenced, declared, ctx: BuildContext) -> list[str]:
        return filter_by_symbols(index, package, referenced, excluded=declared, fallback=ctx.symbol_fallback)

    def resolve_specific(self, index, raw, referenced, ctx: BuildContext) -> list[str]:
        package = self.package_of(raw)
        found = list(index.files_declaring(package, simple_type_name(raw)))
        if not found and ctx.symbol_fallback:
            found = list(index.files_in_scope(package))
        return found

    def same_package(self, index, extraction: Extraction, path: str) -> list[str]:
        skip = imported_names(extraction) | extraction.declared_symbols
        wanted = sorted(extraction.referenced_identifiers - skip)
        found: list[str] = []
        for symbol in wanted:
            found.extend(index.files_declaring(extraction.scope, symbol))
        return sorted(set(found))

    def is_test_file(self, path: str, reader=None) -> bool:
        normalized = path.replace(os.sep, "/")
        base = os.path.basename(normalized)
        if base.endswith(("Test.java", "Tests.java")):
            return True
        return "/src/test/" in normalized or "/test/" in normalized
