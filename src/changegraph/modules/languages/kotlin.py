"""Kotlin: Java's package scheme, but only unambiguous type matches become edges."""

from __future__ import annotations

import os
import re

from ..core import syntax
from ..core.imports import Extraction, ImportDeclaration, is_upper_camel, make_extraction
from ..core.resolution import unique_declarers
from .base import BuildContext, MaturityLevel
from .java import JavaLanguage, imported_names, simple_type_name

STDLIB_PREFIXES = ("kotlin.", "kotlinx.", "java.", "javax.", "android.")

TOP_LEVEL_TYPES = ("class_declaration", "object_declaration", "interface_declaration", "type_alias")

_PACKAGE = re.compile(r"^\s*package\s+([\w.]+)", re.MULTILINE)
_IMPORT = re.compile(r"^\s*import\s+([\w.*]+)(?:\s+as\s+\w+)?", re.MULTILINE)


def kotlin_import_package(path: str) -> str:
    """Everything up to the last lowercase segment."""
    parts = path.split(".")
    for i in range(len(parts) - 1, -1, -1):
        if parts[i][:1].islower():
            return ".".join(parts[: i + 1])
    return path


def _declaration_name(node, source: bytes) -> str | None:
    for child in node.named_children:
        if child.type in ("type_identifier", "simple_identifier", "identifier"):
            return syntax.node_text(child, source).strip()
    return None


class KotlinLanguage(JavaLanguage):
    name = "kotlin"
    extensions = (".kt", ".kts")
    maturity = MaturityLevel.BASIC_TESTS
    grammar = "kotlin"
    stdlib_prefixes = STDLIB_PREFIXES
    package_of = staticmethod(kotlin_import_package)

    def extract(self, content: bytes, path: str) -> Extraction:
        text = content.decode("utf-8", errors="replace")
        root = syntax.parse(self.grammar, content)

        package = None
        imports: list[ImportDeclaration] = []
        declared: list[str] = []
        referenced: set[str] = set()
        if root is not None:
            header = syntax.child_of_type(root, "package_header")
            if header is not None:
                ident = syntax.child_of_type(header, "identifier", "qualified_identifier")
                if ident is not None:
                    package = syntax.node_text(ident, content).replace(" ", "")
            for node in syntax.find_all(root, "import_header"):
                ident = syntax.child_of_type(node, "identifier", "qualified_identifier")
                if ident is None:
                    continue
                raw = syntax.node_text(ident, content).replace(" ", "")
                wildcard = syntax.child_of_type(node, "wildcard_import") is not None
                imports.append(ImportDeclaration(raw, self.classify(raw), is_wildcard=wildcard, origin=path))
            for node in syntax.find_all(root, TOP_LEVEL_TYPES):
                if node.parent is not None and node.parent.type in ("source_file", "script"):
                    name = _declaration_name(node, content)
                    if name:
                        declared.append(name)
            referenced.update(syntax.node_text(n, content) for n in syntax.find_all(root, "type_identifier"))
            for node in syntax.find_all(root, "user_type"):
                for child in syntax.children_of_type(node, "identifier", "simple_identifier"):
                    referenced.add(syntax.node_text(child, content))
            for node in syntax.find_all(root, ("call_expression", "navigation_expression")):
                for child in syntax.children_of_type(node, "simple_identifier", "identifier"):
                    name = syntax.node_text(child, content)
                    if is_upper_camel(name):
                        referenced.add(name)

        # Grammar revisions name the header nodes differently.
        if package is None:
            match = _PACKAGE.search(text)
            package = match.group(1) if match else None
        if not imports:
            for match in _IMPORT.finditer(text):
                raw = match.group(1)
                wildcard = raw.endswith(".*")
                raw = raw[:-2] if wildcard else raw
                imports.append(ImportDeclaration(raw, self.classify(raw), is_wildcard=wildcard, origin=path))

        return make_extraction(imports, declared=declared, referenced=referenced, scope=package)

    def resolve_wildcard(self, index, package, referenced, declared, ctx: BuildContext) -> list[str]:
        return unique_declarers(index, package, referenced)

    def resolve_specific(self, index, raw, referenced, ctx: BuildContext) -> list[str]:
        symbol = simple_type_name(raw)
        if symbol not in referenced:
            return []
        files = index.files_declaring(self.package_of(raw), symbol)
        return list(files) if len(files) == 1 else []

    def same_package(self, index, extraction: Extraction, path: str) -> list[str]:
        skip = imported_names(extraction) | extraction.declared_symbols
        return unique_declarers(index, extraction.scope, extraction.referenced_identifiers - skip)

    def is_test_file(self, path: str, reader=None) -> bool:
        base = os.path.basename(path)
        stem, ext = os.path.splitext(base)
        if ext not in self.extensions:
            return False
        if stem.endswith(("Test", "Tests")):
            return True
        normalized = path.replace(os.sep, "/")
        return "/src/test/" in normalized or "/test/" in normalized
