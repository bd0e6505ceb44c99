"""Rust: ``mod`` declarations and ``use`` paths resolved to module files.

``crate::``, the package's own name and local path dependencies are mapped
through the nearest Cargo.toml; ``self::`` and ``super::`` are relative to
the using file.
"""

from __future__ import annotations

import os
import tomllib
from typing import Mapping

from ..core import syntax
from ..core.errors import ManifestError
from ..core.imports import Extraction, ImportDeclaration, ImportKind, make_extraction
from ..core.resolution import Manifest, clean_join, existing, locate_manifests, resolve_module_path
from .base import BaseLanguage, BuildContext, MaturityLevel, without_self

STDLIB_CRATES = frozenset({"std", "core", "alloc", "proc_macro", "test"})
RELATIVE_ROOTS = ("crate", "self", "super")
MODULE_ROOT_FILES = ("mod.rs", "lib.rs", "main.rs")

TEST_ATTRIBUTES = (
    b"#[test]",
    b"#[cfg(test)]",
    b"#[tokio::test]",
    b"#[async_std::test]",
    b"#[test_case]",
    b"#[rstest]",
)

_DEPENDENCY_TABLES = ("dependencies", "dev-dependencies", "build-dependencies")


def crate_ident(name: str) -> str:
    return name.replace("-", "_")


def parse_cargo_toml(root: str, content: bytes) -> Manifest:
    try:
        data = tomllib.loads(content.decode("utf-8", errors="replace"))
    except tomllib.TOMLDecodeError as exc:
        raise ManifestError(f"invalid Cargo.toml: {exc}") from exc

    package = data.get("package") or {}
    if not isinstance(package, dict):
        raise ManifestError("Cargo.toml [package] is not a table")
    remaps: dict[str, str] = {}
    for table in _DEPENDENCY_TABLES:
        entries = data.get(table)
        if not isinstance(entries, dict):
            continue
        for name, spec in entries.items():
            if isinstance(spec, dict) and isinstance(spec.get("path"), str):
                remaps[crate_ident(name)] = os.path.join(clean_join(root, spec["path"]), "src")
    return Manifest(
        root=root,
        name=crate_ident(package.get("name", "")) if isinstance(package.get("name"), str) else "",
        remaps=remaps,
        source_root=os.path.join(root, "src"),
    )


def _split_top_level(text: str) -> list[str]:
    items, depth, start = [], 0, 0
    for i, ch in enumerate(text):
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        elif ch == "," and depth == 0:
            items.append(text[start:i])
            start = i + 1
    items.append(text[start:])
    return [item.strip() for item in items if item.strip()]


def expand_use_tree(text: str, prefix: str = "") -> list[str]:
    """Flatten ``a::{b, c::{d as e}, self}`` into ``a::b``, ``a::c::d``, ``a``."""
    text = " ".join(text.split())
    if text.startswith("::"):
        text = text[2:]
    brace = text.find("{")
    if brace == -1:
        path = text.split(" as ", 1)[0]
        return [_join(prefix, path.replace(" ", ""))]
    head = text[:brace].replace(" ", "")
    if head.endswith("::"):
        head = head[:-2]
    body = text[brace + 1:text.rfind("}")]
    base = _join(prefix, head)
    paths = []
    for item in _split_top_level(body):
        if item == "self":
            paths.append(base)
        else:
            paths.extend(expand_use_tree(item, base))
    return paths


def _join(prefix: str, path: str) -> str:
    if not prefix:
        return path
    if not path:
        return prefix
    return f"{prefix}::{path}"


def _use_paths(node, source: bytes) -> list[str]:
    argument = node.child_by_field_name("argument")
    if argument is None:
        named = [c for c in node.named_children if c.type != "visibility_modifier"]
        argument = named[0] if named else None
    if argument is None:
        return []
    if argument.type == "use_as_clause":
        path = argument.child_by_field_name("path")
        return [syntax.node_text(path, source).replace(" ", "")] if path is not None else []
    return expand_use_tree(syntax.node_text(argument, source))


class RustLanguage(BaseLanguage):
    name = "rust"
    extensions = (".rs",)
    maturity = MaturityLevel.ACTIVELY_TESTED

    def extract(self, content: bytes, path: str) -> Extraction:
        root = syntax.parse("rust", content)
        if root is None:
            return Extraction.empty()

        imports = []
        for node in syntax.find_all(root, ("use_declaration", "extern_crate_declaration", "mod_item")):
            if node.type == "mod_item":
                name = node.child_by_field_name("name")
                if name is None or node.child_by_field_name("body") is not None:
                    continue
                module = syntax.node_text(name, content)
                imports.append(ImportDeclaration(module, ImportKind.INTERNAL, is_relative=True, directive="mod", origin=path))
            elif node.type == "extern_crate_declaration":
                name = node.child_by_field_name("name")
                if name is not None:
                    crate = syntax.node_text(name, content)
                    imports.append(ImportDeclaration(crate, self.classify(crate), directive="extern crate", origin=path))
            else:
                for use_path in _use_paths(node, content):
                    wildcard = use_path.endswith("::*")
                    if wildcard:
                        use_path = use_path[:-3]
                    if use_path:
                        imports.append(
                            ImportDeclaration(
                                use_path,
                                self.classify(use_path),
                                is_wildcard=wildcard,
                                is_relative=use_path.split("::", 1)[0] in ("self", "super"),
                                directive="use",
                                origin=path,
                            )
                        )
        return make_extraction(imports)

    def classify(self, raw: str, scopes: frozenset[str] = frozenset()) -> ImportKind:
        first = raw.split("::", 1)[0]
        if first in RELATIVE_ROOTS or first in scopes:
            return ImportKind.INTERNAL
        if first in STDLIB_CRATES:
            return ImportKind.STANDARD_LIBRARY
        return ImportKind.EXTERNAL

    def build_index(self, ctx: BuildContext, extractions: Mapping[str, Extraction]) -> dict[str, Manifest | None]:
        directories = sorted({os.path.dirname(p) for p in ctx.language_files(self.name)})
        return locate_manifests(directories, "Cargo.toml", ctx.reader, parse_cargo_toml)

    def resolve(self, path: str, extraction: Extraction, state, ctx: BuildContext) -> list[str]:
        source_dir = os.path.dirname(path)
        manifest = (state or {}).get(source_dir)
        scopes = frozenset({manifest.name, *manifest.remaps} - {""}) if manifest else frozenset()
        targets: list[str] = []
        for imp in extraction.imports:
            if imp.directive == "mod":
                targets.extend(self._resolve_mod(path, imp.path, ctx))
            elif imp.directive == "use" and self.classify(imp.path, scopes) is ImportKind.INTERNAL:
                targets.extend(self._resolve_use(path, imp.path, manifest, ctx))
        return without_self(path, targets)

    @staticmethod
    def _resolve_mod(path: str, module: str, ctx: BuildContext) -> list[str]:
        source_dir = os.path.dirname(path)
        bases = [source_dir]
        if os.path.basename(path) not in MODULE_ROOT_FILES:
            # foo.rs declares its children under foo/.
            bases.append(os.path.join(source_dir, os.path.splitext(os.path.basename(path))[0]))
        candidates = []
        for base in bases:
            candidates.extend([os.path.join(base, module + ".rs"), os.path.join(base, module, "mod.rs")])
        return existing(candidates, ctx.supplied)

    @staticmethod
    def _resolve_use(path: str, use_path: str, manifest: Manifest | None, ctx: BuildContext) -> list[str]:
        parts = use_path.split("::")
        if parts[0] in ("self", "super"):
            base = os.path.dirname(path)
            while parts and parts[0] in ("self", "super"):
                if parts[0] == "super":
                    base = os.path.dirname(base)
                parts = parts[1:]
        elif parts[0] == "crate":
            if manifest is None:
                return []
            base = manifest.source_root
            parts = parts[1:]
        else:
            base = resolve_module_path(parts[0], manifest)
            if base is None:
                return []
            parts = parts[1:]

        if not parts:
            return []
        candidates = []
        for length in (len(parts), len(parts) - 1):
            if length < 1:
                continue
            module_path = os.path.join(base, *parts[:length])
            candidates.extend([module_path + ".rs", os.path.join(module_path, "mod.rs")])
        return existing(candidates, ctx.supplied)

    def is_test_file(self, path: str, reader=None) -> bool:
        stem, ext = os.path.splitext(os.path.basename(path))
        if ext != ".rs":
            return False
        normalized = path.replace(os.sep, "/")
        candidate = (
            stem.startswith("test_")
            or stem.endswith("_test")
            or "/tests/" in normalized
            or "/test/" in normalized
        )
        if not candidate or reader is None:
            return candidate
        try:
            content = reader(path)
        except OSError:
            return True
        return any(marker in content for marker in TEST_ATTRIBUTES)
