"""Dart: ``import`` / ``export`` / ``part`` URIs, with ``package:`` self-imports via pubspec.yaml."""

from __future__ import annotations

import os
import re
from typing import Mapping

import yaml

from ..core import syntax
from ..core.errors import ManifestError
from ..core.imports import Extraction, ImportDeclaration, ImportKind, make_extraction
from ..core.resolution import Manifest, clean_join, existing, locate_manifests, resolve_module_path
from .base import BaseLanguage, BuildContext, MaturityLevel, in_directory, without_self

_DIRECTIVE_LINE = re.compile(r"""^\s*(import|export|part)\s+['"]([^'"]+)['"]""", re.MULTILINE)


def parse_pubspec(root: str, content: bytes) -> Manifest | None:
    try:
        data = yaml.safe_load(content.decode("utf-8", errors="replace"))
    except yaml.YAMLError as exc:
        raise ManifestError(f"invalid pubspec.yaml: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestError("pubspec.yaml is not a mapping")
    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise ManifestError("pubspec.yaml has no name")
    return Manifest(root=root, name=name, remaps={}, source_root=os.path.join(root, "lib"))


def _directive_uris(root, source: bytes) -> list[str]:
    uris = []
    for node in syntax.find_all(root, "uri"):
        if syntax.has_ancestor(node, "part_of_directive"):
            continue
        literal = syntax.child_of_type(node, "string_literal") or node
        uris.append(syntax.strip_quotes(syntax.node_text(literal, source)))
    return uris


class DartLanguage(BaseLanguage):
    name = "dart"
    extensions = (".dart",)
    maturity = MaturityLevel.BASIC_TESTS

    def extract(self, content: bytes, path: str) -> Extraction:
        root = syntax.parse("dart", content)
        uris: list[str] = []
        if root is not None:
            uris = _directive_uris(root, content)
        if not uris:
            # Grammar revisions disagree on the directive node shapes.
            uris = [m.group(2) for m in _DIRECTIVE_LINE.finditer(content.decode("utf-8", errors="replace"))]
        imports = []
        for uri in uris:
            if not uri:
                continue
            kind = self.classify(uri)
            imports.append(ImportDeclaration(uri, kind, is_relative=kind is ImportKind.INTERNAL, origin=path))
        return make_extraction(imports)

    def classify(self, raw: str, scopes: frozenset[str] = frozenset()) -> ImportKind:
        if raw.startswith("dart:"):
            return ImportKind.STANDARD_LIBRARY
        if raw.startswith("package:"):
            package = raw[len("package:"):].split("/", 1)[0]
            return ImportKind.INTERNAL if package in scopes else ImportKind.EXTERNAL
        return ImportKind.INTERNAL

    def build_index(self, ctx: BuildContext, extractions: Mapping[str, Extraction]) -> dict[str, Manifest | None]:
        directories = sorted({os.path.dirname(p) for p in ctx.language_files(self.name)})
        return locate_manifests(directories, "pubspec.yaml", ctx.reader, parse_pubspec)

    def resolve(self, path: str, extraction: Extraction, state, ctx: BuildContext) -> list[str]:
        base_dir = os.path.dirname(path)
        manifest = (state or {}).get(base_dir)
        scopes = frozenset({manifest.name}) if manifest else frozenset()
        targets = []
        for imp in extraction.imports:
            if self.classify(imp.path, scopes) is not ImportKind.INTERNAL:
                continue
            if imp.path.startswith("package:"):
                base = resolve_module_path(imp.path[len("package:"):], manifest)
                if base is None:
                    continue
            else:
                base = clean_join(base_dir, imp.path)
            if not base.endswith(".dart"):
                base += ".dart"
            targets.extend(existing([base], ctx.supplied))
        return without_self(path, targets)

    def is_test_file(self, path: str, reader=None) -> bool:
        return in_directory(path, "test") or path.endswith("_test.dart")
