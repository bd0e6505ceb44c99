"""Ruby: ``require`` / ``require_relative`` plus qualified constant references.

Ruby code often reaches other files only through constants such as
``Billing::Invoice::Renderer``; those are matched fuzzily against
snake_case path components.
"""

from __future__ import annotations

import os
import re

from ..core.imports import Extraction, ImportDeclaration, ImportKind, make_extraction
from ..core.resolution import clean_join, existing, fuzzy_resolve
from .base import BaseLanguage, BuildContext, MaturityLevel, in_directory, path_segments, without_self

_REQUIRE = re.compile(r"""^\s*(require_relative|require)\s*\(?\s*(['"])([^'"]+)\2""", re.MULTILINE)
_CONSTANT_REF = re.compile(r"(?:^|[^A-Za-z0-9_:])(::)?([A-Z][A-Za-z0-9_]*(?:::[A-Z][A-Za-z0-9_]*)+)")

STDLIB = frozenset({
    "abbrev", "base64", "benchmark", "bigdecimal", "cgi", "csv", "date", "delegate",
    "digest", "English", "erb", "etc", "fiber", "fileutils", "find", "forwardable",
    "io/console", "ipaddr", "json", "logger", "monitor", "net/http", "objspace",
    "observer", "open-uri", "open3", "openssl", "optparse", "ostruct", "pathname",
    "pp", "prettyprint", "pstore", "psych", "racc", "rbconfig", "resolv", "ripper",
    "securerandom", "set", "shellwords", "singleton", "socket", "stringio", "strscan",
    "tempfile", "time", "timeout", "tmpdir", "tsort", "un", "uri", "weakref", "yaml", "zlib",
})


def constant_references(source: str) -> list[str]:
    """Distinct qualified constants in first-seen order, leading ``::`` dropped."""
    seen: set[str] = set()
    refs = []
    for match in _CONSTANT_REF.finditer(source):
        ref = match.group(2)
        if ref not in seen:
            seen.add(ref)
            refs.append(ref)
    return refs


def ruby_path_components(path: str) -> list[str]:
    return path_segments(path[:-3] if path.endswith(".rb") else path)


class RubyLanguage(BaseLanguage):
    name = "ruby"
    extensions = (".rb",)
    maturity = MaturityLevel.BASIC_TESTS

    def extract(self, content: bytes, path: str) -> Extraction:
        text = content.decode("utf-8", errors="replace")
        imports = []
        for match in _REQUIRE.finditer(text):
            keyword, raw = match.group(1), match.group(3).strip()
            relative = keyword == "require_relative"
            imports.append(
                ImportDeclaration(
                    raw,
                    ImportKind.INTERNAL if relative else self.classify(raw),
                    is_relative=relative,
                    directive=keyword,
                    origin=path,
                )
            )
        return make_extraction(imports, referenced=constant_references(text))

    def classify(self, raw: str, scopes: frozenset[str] = frozenset()) -> ImportKind:
        if raw in STDLIB or raw.split("/", 1)[0] in STDLIB:
            return ImportKind.STANDARD_LIBRARY
        return ImportKind.INTERNAL if raw in scopes else ImportKind.EXTERNAL

    def build_index(self, ctx: BuildContext, extractions) -> tuple[str, ...]:
        return ctx.language_files(self.name)

    def resolve(self, path: str, extraction: Extraction, state, ctx: BuildContext) -> list[str]:
        ruby_files = state or ()
        targets: list[str] = []
        for imp in extraction.imports:
            if imp.is_relative:
                base = clean_join(os.path.dirname(path), imp.path)
                candidates = [base] if base.endswith(".rb") else [base + ".rb", os.path.join(base, "init.rb")]
                targets.extend(existing(candidates, ctx.supplied))
            elif imp.kind is not ImportKind.STANDARD_LIBRARY:
                targets.extend(self._suffix_matches(imp.path, ruby_files))

        for ref in sorted(extraction.referenced_identifiers):
            match = fuzzy_resolve(ref.split("::"), ruby_files, ruby_path_components)
            if match is not None:
                targets.append(match)
        return without_self(path, targets)

    @staticmethod
    def _suffix_matches(raw: str, ruby_files) -> list[str]:
        clean = raw.strip().replace("\\", "/")
        stem = clean[:-3] if clean.endswith(".rb") else clean
        suffixes = ("/" + stem + ".rb", "/" + clean)
        return sorted(f for f in ruby_files if f.replace("\\", "/").endswith(suffixes))

    def is_test_file(self, path: str, reader=None) -> bool:
        base = os.path.basename(path)
        if base.endswith(("_test.rb", "_spec.rb")) or base.startswith("test_"):
            return True
        return in_directory(path, "test", "tests", "spec")
