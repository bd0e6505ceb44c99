"""Import declarations and the per-file extraction record.

An adapter turns file bytes into an :class:`Extraction`: the raw import
declarations, the top-level symbols the file declares, and the identifiers
it references. Classification helpers here are pure so reclassifying with a
larger scope table is always safe.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable


class ImportKind(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"
    STANDARD_LIBRARY = "stdlib"


@dataclass(frozen=True)
class ImportDeclaration:
    """One import/include/use/require as written in the source."""

    path: str
    kind: ImportKind = ImportKind.EXTERNAL
    is_wildcard: bool = False
    is_relative: bool = False
    is_type_only: bool = False
    # Construct that produced it: "import", "include", "require", "embed", "mod", ...
    directive: str = "import"
    alias: str | None = None
    # Imported member names (`from m import a, b`, `use m::{a, b}`).
    names: tuple[str, ...] = ()
    origin: str = ""


@dataclass(frozen=True)
class Extraction:
    imports: tuple[ImportDeclaration, ...] = ()
    declared_symbols: frozenset[str] = frozenset()
    referenced_identifiers: frozenset[str] = frozenset()
    # Declared package / namespace / module, for declaration-scoped languages.
    scope: str | None = None
    # Qualified references (``alias.Name``), keyed by the qualifier.
    qualified_refs: dict[str, frozenset[str]] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "Extraction":
        return _EMPTY


_EMPTY = Extraction()


def make_extraction(
    imports: Iterable[ImportDeclaration] = (),
    declared: Iterable[str] = (),
    referenced: Iterable[str] = (),
    scope: str | None = None,
    qualified_refs: dict[str, Iterable[str]] | None = None,
) -> Extraction:
    """Build an Extraction, dropping duplicate declarations but keeping source order."""
    seen: set[ImportDeclaration] = set()
    ordered: list[ImportDeclaration] = []
    for imp in imports:
        if imp in seen:
            continue
        seen.add(imp)
        ordered.append(imp)
    return Extraction(
        imports=tuple(ordered),
        declared_symbols=frozenset(declared),
        referenced_identifiers=frozenset(referenced),
        scope=scope,
        qualified_refs={k: frozenset(v) for k, v in (qualified_refs or {}).items()},
    )


def matches_prefix(name: str, prefixes: Iterable[str]) -> bool:
    """True when ``name`` equals a prefix or starts with it.

    Prefixes ending in ``.`` or ``/`` match by plain startswith; bare names also
    match themselves and their dotted or slashed children.
    """
    for prefix in prefixes:
        if prefix.endswith((".", "/")):
            if name.startswith(prefix):
                return True
        elif name == prefix or name.startswith(prefix + ".") or name.startswith(prefix + "/"):
            return True
    return False


def is_relative_path(raw: str) -> bool:
    return raw.startswith("./") or raw.startswith("../") or raw in (".", "..")


def package_under(package: str, known: Iterable[str]) -> bool:
    """True if ``package`` is one of ``known`` or nested under one of them."""
    for scope in known:
        if package == scope or package.startswith(scope + "."):
            return True
    return False


def is_upper_camel(name: str) -> bool:
    return name[:1].isupper()
