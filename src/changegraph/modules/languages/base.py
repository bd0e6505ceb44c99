"""
Language adapter protocol and shared build context.

Every supported language implements :class:`LanguageModule`. The builder
never branches on language; it only calls these methods in phase order:

1. ``extract`` for every file (independent, parallel)
2. ``build_index`` once per language over that language's extractions
3. ``resolve`` per file (independent, parallel, read-only)
4. ``finalize`` once per language with the assembled graph
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Mapping, Protocol, runtime_checkable

from ..core.content import ContentReader
from ..core.graph import DependencyGraph
from ..core.imports import Extraction, ImportKind


class MaturityLevel(IntEnum):
    UNTESTED = 0
    BASIC_TESTS = 1
    ACTIVELY_TESTED = 2
    STABLE = 3

    @property
    def label(self) -> str:
        return _MATURITY_LABELS[self]

    @property
    def symbol(self) -> str:
        return _MATURITY_SYMBOLS[self]


_MATURITY_LABELS = {
    MaturityLevel.UNTESTED: "Untested",
    MaturityLevel.BASIC_TESTS: "Basic Tests",
    MaturityLevel.ACTIVELY_TESTED: "Actively Tested",
    MaturityLevel.STABLE: "Stable",
}

_MATURITY_SYMBOLS = {
    MaturityLevel.UNTESTED: "○",
    MaturityLevel.BASIC_TESTS: "◐",
    MaturityLevel.ACTIVELY_TESTED: "◕",
    MaturityLevel.STABLE: "●",
}


@dataclass(frozen=True)
class BuildContext:
    """Immutable view of one build's inputs, shared by every adapter."""

    supplied: frozenset[str]
    reader: ContentReader
    files_by_dir: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    files_by_language: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    symbol_fallback: bool = True

    def files_in_dir(self, directory: str, extensions: tuple[str, ...] | None = None) -> tuple[str, ...]:
        files = self.files_by_dir.get(directory, ())
        if extensions is None:
            return files
        return tuple(f for f in files if os.path.splitext(f)[1] in extensions)

    def language_files(self, language: str) -> tuple[str, ...]:
        return self.files_by_language.get(language, ())


@runtime_checkable
class LanguageModule(Protocol):
    """Capability interface implemented once per source language."""

    name: str
    extensions: tuple[str, ...]
    maturity: MaturityLevel

    def extract(self, content: bytes, path: str) -> Extraction: ...

    def classify(self, raw: str, scopes: frozenset[str] = frozenset()) -> ImportKind: ...

    def build_index(self, ctx: BuildContext, extractions: Mapping[str, Extraction]) -> Any: ...

    def resolve(self, path: str, extraction: Extraction, state: Any, ctx: BuildContext) -> list[str]: ...

    def is_test_file(self, path: str, reader: ContentReader | None = None) -> bool: ...

    def finalize(
        self,
        graph: DependencyGraph,
        state: Any,
        ctx: BuildContext,
        extractions: Mapping[str, Extraction],
    ) -> None: ...


class BaseLanguage:
    """Defaults for the optional parts of :class:`LanguageModule`."""

    name = ""
    extensions: tuple[str, ...] = ()
    maturity = MaturityLevel.UNTESTED

    def classify(self, raw: str, scopes: frozenset[str] = frozenset()) -> ImportKind:
        return ImportKind.EXTERNAL

    def build_index(self, ctx: BuildContext, extractions: Mapping[str, Extraction]) -> Any:
        return None

    def is_test_file(self, path: str, reader: ContentReader | None = None) -> bool:
        return False

    def finalize(
        self,
        graph: DependencyGraph,
        state: Any,
        ctx: BuildContext,
        extractions: Mapping[str, Extraction],
    ) -> None:
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


def path_segments(path: str) -> list[str]:
    return [part for part in path.replace("\\", "/").split("/") if part]


def in_directory(path: str, *names: str) -> bool:
    """True if any directory component of ``path`` is one of ``names``."""
    return any(part in names for part in path_segments(path)[:-1])


def without_self(path: str, targets: list[str]) -> list[str]:
    seen: set[str] = set()
    out = []
    for target in targets:
        if target != path and target not in seen:
            seen.add(target)
            out.append(target)
    return out
