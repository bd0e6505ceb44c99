"""Python: ``import`` / ``from ... import`` resolution over supplied modules."""

from __future__ import annotations

import os
import sys
from collections import defaultdict
from dataclasses import dataclass
from typing import Mapping

from ..core import syntax
from ..core.imports import Extraction, ImportDeclaration, ImportKind, make_extraction
from ..core.resolution import existing
from .base import BaseLanguage, BuildContext, MaturityLevel, in_directory, path_segments, without_self

STDLIB_MODULES = frozenset(sys.stdlib_module_names) | {"__future__"}


@dataclass(frozen=True)
class PythonIndex:
    # dotted-name suffix -> files ("b", "a.b", "src.a.b" for src/a/b.py)
    modules: Mapping[str, tuple[str, ...]]
    top_level: frozenset[str]


def module_keys(path: str) -> list[str]:
    """Every dotted suffix a file could be imported as."""
    parts = path_segments(os.path.splitext(path)[0])
    if parts and parts[-1] == "__init__":
        parts = parts[:-1]
    return [".".join(parts[i:]) for i in range(len(parts) - 1, -1, -1) if parts[i:]]


def _dotted(node, source: bytes) -> str:
    return syntax.node_text(node, source).replace(" ", "")


class PythonLanguage(BaseLanguage):
    name = "python"
    extensions = (".py",)
    maturity = MaturityLevel.ACTIVELY_TESTED

    def extract(self, content: bytes, path: str) -> Extraction:
        root = syntax.parse("python", content)
        if root is None:
            return Extraction.empty()

        imports: list[ImportDeclaration] = []
        for node in syntax.find_all(root, ("import_statement", "import_from_statement", "future_import_statement")):
            if node.type == "future_import_statement":
                imports.append(ImportDeclaration("__future__", ImportKind.STANDARD_LIBRARY, origin=path))
                continue
            if node.type == "import_statement":
                for child in node.named_children:
                    target = child.child_by_field_name("name") if child.type == "aliased_import" else child
                    if target is not None and target.type == "dotted_name":
                        name = _dotted(target, content)
                        imports.append(ImportDeclaration(name, self.classify(name), origin=path))
                continue

            module_node = node.child_by_field_name("module_name")
            if module_node is None:
                continue
            module = _dotted(module_node, content)
            names: list[str] = []
            wildcard = False
            for child in node.named_children:
                if child.start_byte == module_node.start_byte:
                    continue
                if child.type == "wildcard_import":
                    wildcard = True
                elif child.type == "dotted_name":
                    names.append(_dotted(child, content))
                elif child.type == "aliased_import":
                    name_node = child.child_by_field_name("name")
                    if name_node is not None:
                        names.append(_dotted(name_node, content))
            relative = module.startswith(".")
            imports.append(
                ImportDeclaration(
                    module,
                    ImportKind.INTERNAL if relative else self.classify(module),
                    is_wildcard=wildcard,
                    is_relative=relative,
                    names=tuple(names),
                    origin=path,
                )
            )
        return make_extraction(imports)

    def classify(self, raw: str, scopes: frozenset[str] = frozenset()) -> ImportKind:
        if raw.startswith("."):
            return ImportKind.INTERNAL
        top = raw.split(".", 1)[0]
        if top in STDLIB_MODULES:
            return ImportKind.STANDARD_LIBRARY
        if top in scopes:
            return ImportKind.INTERNAL
        return ImportKind.EXTERNAL

    def build_index(self, ctx: BuildContext, extractions: Mapping[str, Extraction]) -> PythonIndex:
        modules: dict[str, set[str]] = defaultdict(set)
        top_level: set[str] = set()
        for path in ctx.language_files(self.name):
            keys = module_keys(path)
            for key in keys:
                modules[key].add(path)
                top_level.add(key.split(".", 1)[0])
        return PythonIndex(
            modules={key: tuple(sorted(files)) for key, files in modules.items()},
            top_level=frozenset(top_level),
        )

    def resolve(self, path: str, extraction: Extraction, state: PythonIndex, ctx: BuildContext) -> list[str]:
        targets: list[str] = []
        for imp in extraction.imports:
            if imp.is_relative:
                targets.extend(self._resolve_relative(path, imp, ctx))
                continue
            if self.classify(imp.path, state.top_level) is not ImportKind.INTERNAL:
                continue
            found = list(state.modules.get(imp.path, ()))
            for name in imp.names:
                # `from pkg import mod` may name a submodule
                found.extend(state.modules.get(f"{imp.path}.{name}", ()))
            targets.extend(found)
        return without_self(path, targets)

    def _resolve_relative(self, path: str, imp: ImportDeclaration, ctx: BuildContext) -> list[str]:
        dots = len(imp.path) - len(imp.path.lstrip("."))
        base = os.path.dirname(path)
        for _ in range(dots - 1):
            base = os.path.dirname(base)
        module = imp.path[dots:]
        package = os.path.join(base, *module.split(".")) if module else base

        found: list[str] = []
        if module:
            found.extend(existing([package + ".py", os.path.join(package, "__init__.py")], ctx.supplied))
        for name in imp.names:
            sub = os.path.join(package, *name.split("."))
            found.extend(existing([sub + ".py", os.path.join(sub, "__init__.py")], ctx.supplied))
        if not module and not found:
            found.extend(existing([os.path.join(base, "__init__.py")], ctx.supplied))
        return found

    def is_test_file(self, path: str, reader=None) -> bool:
        base = os.path.basename(path)
        if base.startswith("test_") or base.endswith("_test.py") or base == "conftest.py":
            return True
        return in_directory(path, "tests", "test")
