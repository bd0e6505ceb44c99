"""Go: package imports through go.mod, symbol-filtered to the files actually used.

A Go import names a package directory. Linking every file in that directory
would make each importer depend on the whole package, so the files are
narrowed to those declaring a symbol the importer selects through the
package alias (``alias.Name``). Files in one directory also depend on each
other without any import; :meth:`GoLanguage.finalize` adds those edges.
"""

from __future__ import annotations

import logging
import os
import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Mapping

from ..core import syntax
from ..core.errors import ManifestError
from ..core.export_index import ExportIndex, ExportIndexBuilder
from ..core.graph import DependencyGraph
from ..core.imports import Extraction, ImportDeclaration, ImportKind, is_upper_camel, make_extraction
from ..core.resolution import Manifest, expand_glob, filter_by_symbols, locate_manifests, resolve_module_path
from .base import BaseLanguage, BuildContext, MaturityLevel, without_self

logger = logging.getLogger(__name__)

_EMBED = re.compile(r"^\s*//go:embed\s+(.+?)\s*$", re.MULTILINE)

BUILTINS = frozenset({
    "bool", "byte", "complex64", "complex128", "error", "float32", "float64",
    "int", "int8", "int16", "int32", "int64", "rune", "string", "uint", "uint8",
    "uint16", "uint32", "uint64", "uintptr", "any", "comparable",
    "true", "false", "iota", "nil",
    "append", "cap", "clear", "close", "complex", "copy", "delete", "imag", "len",
    "make", "max", "min", "new", "panic", "print", "println", "real", "recover",
    "init", "main",
})

# Nodes that bind a name local to a function body.
_LOCAL_BINDERS = ("parameter_declaration", "variadic_parameter_declaration", "type_parameter_declaration")


def is_go_test_file(path: str) -> bool:
    return path.endswith("_test.go")


def parse_go_mod(root: str, content: bytes) -> Manifest:
    """Read the ``module`` line and local ``replace`` directives."""
    module = ""
    remaps: dict[str, str] = {}
    in_block = False
    for raw_line in content.decode("utf-8", errors="replace").splitlines():
        line = raw_line.split("//", 1)[0].strip()
        if line.startswith("module "):
            module = line[len("module "):].strip().strip('"')
            continue
        if line.startswith("replace") and line.endswith("("):
            in_block = True
            continue
        if in_block and line == ")":
            in_block = False
            continue
        if line.startswith("replace "):
            line = line[len("replace "):].strip()
        elif not in_block:
            continue
        source, _, target = line.partition("=>")
        if not source.strip() or not target.strip():
            continue
        source_path = source.split()[0]
        target_path = target.split()[0].strip('"')
        if not target_path.startswith(("./", "../", "/")):
            continue
        remaps[source_path] = os.path.normpath(os.path.join(root, target_path))
    if not module:
        raise ManifestError("go.mod has no module directive")
    return Manifest(root=root, name=module, remaps=remaps, source_root=root)


def _default_alias(import_path: str) -> str:
    return import_path.rstrip("/").rsplit("/", 1)[-1]


def _top_level_names(root, source: bytes) -> set[str]:
    """Package-level names. Methods are scoped to their receiver and never count."""
    names: set[str] = set()
    for decl in root.named_children:
        if decl.type == "function_declaration":
            name = decl.child_by_field_name("name")
            if name is not None:
                names.add(syntax.node_text(name, source))
        elif decl.type in ("type_declaration", "var_declaration", "const_declaration"):
            for spec in syntax.find_all(decl, ("type_spec", "type_alias", "var_spec", "const_spec")):
                if syntax.has_ancestor(spec, "block", "func_literal"):
                    continue
                if spec.type in ("type_spec", "type_alias"):
                    name = spec.child_by_field_name("name")
                    if name is not None:
                        names.add(syntax.node_text(name, source))
                else:
                    names.update(
                        syntax.node_text(child, source) for child in syntax.children_of_type(spec, "identifier")
                    )
    return names


def _local_bindings(root, source: bytes) -> set[str]:
    bound: set[str] = set()
    for node in syntax.walk(root):
        if node.type in _LOCAL_BINDERS:
            bound.update(syntax.node_text(c, source) for c in syntax.children_of_type(node, "identifier", "type_identifier"))
        elif node.type in ("short_var_declaration", "range_clause"):
            left = node.child_by_field_name("left")
            if left is not None:
                bound.update(syntax.node_text(c, source) for c in syntax.find_all(left, "identifier"))
        elif node.type in ("var_spec", "const_spec") and syntax.has_ancestor(node, "block"):
            bound.update(syntax.node_text(c, source) for c in syntax.children_of_type(node, "identifier"))
    return bound


class GoLanguage(BaseLanguage):
    name = "go"
    extensions = (".go",)
    maturity = MaturityLevel.STABLE

    def extract(self, content: bytes, path: str) -> Extraction:
        root = syntax.parse("go", content)
        if root is None:
            return Extraction.empty()

        package = ""
        clause = syntax.child_of_type(root, "package_clause")
        if clause is not None:
            ident = syntax.child_of_type(clause, "package_identifier")
            if ident is not None:
                package = syntax.node_text(ident, content)

        imports: list[ImportDeclaration] = []
        aliases: dict[str, str] = {}
        for spec in syntax.find_all(root, "import_spec"):
            path_node = spec.child_by_field_name("path")
            if path_node is None:
                continue
            import_path = syntax.strip_quotes(syntax.node_text(path_node, content))
            name_node = spec.child_by_field_name("name")
            alias = syntax.node_text(name_node, content) if name_node is not None else None
            imports.append(
                ImportDeclaration(import_path, self.classify(import_path), is_wildcard=alias == ".", alias=alias, origin=path)
            )
            effective = alias or _default_alias(import_path)
            if effective not in (".", "_"):
                aliases[effective] = import_path

        for match in _EMBED.finditer(content.decode("utf-8", errors="replace")):
            for pattern in match.group(1).split():
                pattern = syntax.strip_quotes(pattern)
                if pattern.startswith("all:"):
                    pattern = pattern[len("all:"):]
                if pattern:
                    imports.append(
                        ImportDeclaration(pattern, ImportKind.INTERNAL, is_relative=True, directive="embed", origin=path)
                    )

        qualified: dict[str, set[str]] = defaultdict(set)
        for node in syntax.find_all(root, ("selector_expression", "qualified_type")):
            if node.type == "selector_expression":
                operand, field = node.child_by_field_name("operand"), node.child_by_field_name("field")
            else:
                operand, field = node.child_by_field_name("package"), node.child_by_field_name("name")
            if operand is None or field is None or operand.type not in ("identifier", "package_identifier"):
                continue
            qualifier = syntax.node_text(operand, content)
            if qualifier in aliases:
                qualified[aliases[qualifier]].add(syntax.node_text(field, content))

        declared = _top_level_names(root, content)
        excluded = declared | _local_bindings(root, content) | BUILTINS | {package, "_"}
        referenced = set()
        for node in syntax.find_all(root, ("identifier", "type_identifier")):
            parent = node.parent
            if parent is not None and parent.type in ("selector_expression", "qualified_type"):
                # Only the operand of a selector can name a package-level symbol.
                operand = parent.child_by_field_name("operand")
                if operand is None:
                    operand = parent.child_by_field_name("package")
                if operand is None or operand.start_byte != node.start_byte:
                    continue
            text = syntax.node_text(node, content)
            if text not in excluded and text not in aliases:
                referenced.add(text)

        return make_extraction(
            imports,
            declared=declared,
            referenced=referenced,
            scope=package or None,
            qualified_refs=qualified,
        )

    def classify(self, raw: str, scopes: frozenset[str] = frozenset()) -> ImportKind:
        for scope in scopes:
            if raw == scope or raw.startswith(scope + "/"):
                return ImportKind.INTERNAL
        if "." not in raw.split("/", 1)[0]:
            return ImportKind.STANDARD_LIBRARY
        return ImportKind.EXTERNAL

    def build_index(self, ctx: BuildContext, extractions: Mapping[str, Extraction]) -> "GoState":
        files = ctx.language_files(self.name)
        manifests = locate_manifests(sorted({os.path.dirname(p) for p in files}), "go.mod", ctx.reader, parse_go_mod)

        exports = ExportIndexBuilder()
        for path, extraction in extractions.items():
            directory = os.path.dirname(path)
            if is_go_test_file(path):
                continue
            exports.add_all(directory, (s for s in extraction.declared_symbols if is_upper_camel(s)), path)
        return GoState(manifests=manifests, exports=exports.build())

    def resolve(self, path: str, extraction: Extraction, state, ctx: BuildContext) -> list[str]:
        source_dir = os.path.dirname(path)
        manifest = state.manifests.get(source_dir)
        scopes = frozenset({manifest.name, *manifest.remaps}) if manifest else frozenset()
        is_test = is_go_test_file(path)
        targets: list[str] = []

        for imp in extraction.imports:
            if imp.directive == "embed":
                targets.extend(expand_glob(source_dir, imp.path, ctx.supplied))
                continue
            if self.classify(imp.path, scopes) is not ImportKind.INTERNAL:
                continue
            package_dir = resolve_module_path(imp.path, manifest)
            if package_dir is None:
                continue
            same_dir = package_dir == source_dir
            candidates = [
                c for c in ctx.files_in_dir(package_dir, self.extensions)
                if c != path and (same_dir or not is_go_test_file(c))
            ]
            if same_dir and not is_test:
                targets.extend(candidates)
                continue
            if imp.alias == ".":
                used = extraction.referenced_identifiers
            else:
                used = extraction.qualified_refs.get(imp.path, frozenset())
            targets.extend(
                filter_by_symbols(state.exports, package_dir, used, candidates=candidates, fallback=ctx.symbol_fallback)
            )
        return without_self(path, targets)

    def finalize(
        self,
        graph: DependencyGraph,
        state,
        ctx: BuildContext,
        extractions: Mapping[str, Extraction],
    ) -> None:
        """Link files of one package directory through shared top-level names."""
        by_dir: dict[str, list[str]] = defaultdict(list)
        for path in extractions:
            by_dir[os.path.dirname(path)].append(path)

        added = 0
        for directory in sorted(by_dir):
            files = sorted(by_dir[directory])
            declarers: dict[str, list[str]] = defaultdict(list)
            for path in files:
                for symbol in extractions[path].declared_symbols:
                    declarers[symbol].append(path)
            for path in files:
                for symbol in sorted(extractions[path].referenced_identifiers):
                    for target in declarers.get(symbol, ()):
                        if not is_go_test_file(path) and is_go_test_file(target):
                            continue
                        if graph.add_edge(path, target):
                            added += 1
        if added:
            logger.debug("added %d intra-package Go edges", added)

    def is_test_file(self, path: str, reader=None) -> bool:
        return is_go_test_file(path)


@dataclass(frozen=True)
class GoState:
    # source directory -> enclosing go.mod
    manifests: Mapping[str, Manifest | None]
    # package directory -> exported symbol -> files (test files excluded)
    exports: ExportIndex
