"""C++: quoted includes searched from the includer up through ancestor ``include/`` roots."""

from __future__ import annotations

import os

from ..core.imports import Extraction, ImportKind, make_extraction
from ..core.resolution import clean_join, existing
from .base import BaseLanguage, BuildContext, MaturityLevel, without_self
from .c import extract_includes, is_native_test_file

HEADER_EXTENSIONS = (".h", ".hpp", ".hh", ".hxx")


def include_roots(source_dir: str) -> list[str]:
    """The includer's directory, then each ancestor and its ``include/`` directory."""
    roots = [source_dir]
    directory = source_dir
    while True:
        roots.append(os.path.join(directory, "include"))
        parent = os.path.dirname(directory)
        if parent == directory:
            break
        directory = parent
        roots.append(directory)
    return roots


class CppLanguage(BaseLanguage):
    name = "cpp"
    extensions = (".cpp", ".cc", ".cxx", ".c++", ".hpp", ".hh", ".hxx", ".h++", ".ipp", ".inl")
    maturity = MaturityLevel.BASIC_TESTS

    def extract(self, content: bytes, path: str) -> Extraction:
        return make_extraction(extract_includes("cpp", content, path))

    def classify(self, raw: str, scopes: frozenset[str] = frozenset()) -> ImportKind:
        return ImportKind.STANDARD_LIBRARY if raw.startswith("<") else ImportKind.INTERNAL

    def resolve(self, path: str, extraction: Extraction, state, ctx: BuildContext) -> list[str]:
        targets = []
        roots = include_roots(os.path.dirname(path))
        for imp in extraction.imports:
            if imp.kind is not ImportKind.INTERNAL:
                continue
            has_ext = bool(os.path.splitext(imp.path)[1])
            # Nearest root with a match wins.
            for root in roots:
                base = clean_join(root, imp.path)
                candidates = [base] if has_ext else [base + ext for ext in HEADER_EXTENSIONS]
                found = existing(candidates, ctx.supplied)
                if found:
                    targets.extend(sorted(found))
                    break
        return without_self(path, targets)

    def is_test_file(self, path: str, reader=None) -> bool:
        return is_native_test_file(path)
