"""Scope -> symbol -> declaring files.

Built once per build from the supplied files, then frozen. Resolvers only
ever read it, so worker threads can share one instance without locking.
"""

from __future__ import annotations

from collections import defaultdict
from types import MappingProxyType
from typing import Iterable, Mapping


class ExportIndex:
    """Read-only snapshot of declared symbols grouped by scope key."""

    __slots__ = ("_symbols", "_members")

    def __init__(
        self,
        symbols: Mapping[str, Mapping[str, tuple[str, ...]]],
        members: Mapping[str, tuple[str, ...]],
    ):
        self._symbols = MappingProxyType(
            {scope: MappingProxyType(dict(table)) for scope, table in symbols.items()}
        )
        self._members = MappingProxyType(dict(members))

    def __contains__(self, scope: str) -> bool:
        return scope in self._members

    def __len__(self) -> int:
        return len(self._members)

    def scopes(self) -> list[str]:
        return sorted(self._members)

    def files_in_scope(self, scope: str) -> tuple[str, ...]:
        return self._members.get(scope, ())

    def symbols_in_scope(self, scope: str) -> Mapping[str, tuple[str, ...]]:
        return self._symbols.get(scope, MappingProxyType({}))

    def files_declaring(self, scope: str, symbol: str) -> tuple[str, ...]:
        return self.symbols_in_scope(scope).get(symbol, ())


class ExportIndexBuilder:
    """Mutable accumulator used during the index phase only."""

    def __init__(self) -> None:
        self._symbols: dict[str, dict[str, set[str]]] = defaultdict(lambda: defaultdict(set))
        self._members: dict[str, set[str]] = defaultdict(set)

    def add_file(self, scope: str, path: str) -> None:
        self._members[scope].add(path)

    def add(self, scope: str, symbol: str, path: str) -> None:
        self._members[scope].add(path)
        self._symbols[scope][symbol].add(path)

    def add_all(self, scope: str, symbols: Iterable[str], path: str) -> None:
        self.add_file(scope, path)
        for symbol in symbols:
            self.add(scope, symbol, path)

    def build(self) -> ExportIndex:
        # Sorted tuples keep every downstream iteration deterministic.
        symbols = {
            scope: {sym: tuple(sorted(files)) for sym, files in table.items()}
            for scope, table in self._symbols.items()
        }
        members = {scope: tuple(sorted(files)) for scope, files in self._members.items()}
        return ExportIndex(symbols, members)
