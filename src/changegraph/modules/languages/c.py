"""C: ``#include "..."`` resolution relative to the including file."""

from __future__ import annotations

import os

from ..core import syntax
from ..core.imports import Extraction, ImportDeclaration, ImportKind, make_extraction
from ..core.resolution import clean_join, existing
from .base import BaseLanguage, BuildContext, MaturityLevel, in_directory, without_self


def extract_includes(grammar: str, content: bytes, path: str) -> list[ImportDeclaration]:
    root = syntax.parse(grammar, content)
    if root is None:
        return []
    includes = []
    for node in syntax.find_all(root, "preproc_include"):
        target = node.child_by_field_name("path")
        if target is None:
            continue
        text = syntax.node_text(target, content).strip()
        if target.type == "system_lib_string":
            includes.append(
                ImportDeclaration(text.strip("<>"), ImportKind.STANDARD_LIBRARY, directive="include", origin=path)
            )
        elif target.type == "string_literal":
            includes.append(
                ImportDeclaration(
                    syntax.strip_quotes(text), ImportKind.INTERNAL, is_relative=True,
                    directive="include", origin=path,
                )
            )
    return includes


def is_native_test_file(path: str) -> bool:
    stem = os.path.splitext(os.path.basename(path))[0]
    if stem.startswith("test_") or stem.endswith("_test"):
        return True
    return in_directory(path, "tests", "test")


class CLanguage(BaseLanguage):
    name = "c"
    extensions = (".c", ".h")
    maturity = MaturityLevel.BASIC_TESTS

    def extract(self, content: bytes, path: str) -> Extraction:
        return make_extraction(extract_includes("c", content, path))

    def classify(self, raw: str, scopes: frozenset[str] = frozenset()) -> ImportKind:
        return ImportKind.STANDARD_LIBRARY if raw.startswith("<") else ImportKind.INTERNAL

    def resolve(self, path: str, extraction: Extraction, state, ctx: BuildContext) -> list[str]:
        base_dir = os.path.dirname(path)
        targets = []
        for imp in extraction.imports:
            if imp.kind is not ImportKind.INTERNAL:
                continue
            candidate = clean_join(base_dir, imp.path)
            if not os.path.splitext(imp.path)[1]:
                candidate += ".h"
            targets.extend(existing([candidate], ctx.supplied))
        return without_self(path, targets)

    def is_test_file(self, path: str, reader=None) -> bool:
        return is_native_test_file(path)
