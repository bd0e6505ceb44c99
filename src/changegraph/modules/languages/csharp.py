"""C#: ``using`` directives resolved per project through namespace type tables.

Namespaces are open across assemblies, so the same namespace in two
projects is kept apart by prefixing it with the owning ``.csproj``
directory. A namespace ``using`` only links the files that uniquely declare
a type this file actually mentions.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import AbstractSet, Mapping

from ..core import syntax
from ..core.errors import log_and_return_empty
from ..core.export_index import ExportIndex, ExportIndexBuilder
from ..core.imports import Extraction, ImportDeclaration, ImportKind, make_extraction, matches_prefix
from ..core.resolution import unique_declarers
from .base import BaseLanguage, BuildContext, MaturityLevel, without_self

logger = logging.getLogger(__name__)

STDLIB_NAMESPACES = ("System", "Microsoft")

BUILTIN_TYPES = frozenset({
    "bool", "byte", "sbyte", "char", "decimal", "double", "float", "int", "uint", "nint",
    "nuint", "long", "ulong", "short", "ushort", "object", "string", "dynamic", "void",
})

TYPE_DECLARATIONS = (
    "class_declaration",
    "interface_declaration",
    "struct_declaration",
    "enum_declaration",
    "record_declaration",
    "delegate_declaration",
)

# Nodes whose leading type child names a type the file depends on.
_TYPE_CONTEXTS = frozenset({
    "variable_declaration", "parameter", "method_declaration", "property_declaration",
    "indexer_declaration", "operator_declaration", "conversion_operator_declaration",
    "object_creation_expression", "cast_expression", "as_expression", "is_expression",
    "declaration_pattern", "recursive_pattern", "typeof_expression", "type_of_expression",
    "default_expression", "sizeof_expression", "field_declaration", "local_declaration_statement",
})
_TYPE_WRAPPERS = frozenset({
    "array_type", "nullable_type", "pointer_type", "function_pointer_type", "tuple_type",
    "tuple_element", "type_argument_list",
})
_SKIP_CHILDREN = frozenset({"modifier", "attribute_list"})

_USING_LINE = re.compile(r"^\s*(?:global\s+)?using\s+(?:static\s+)?(?:\w+\s*=\s*)?([A-Za-z_][\w.]*)\s*;", re.MULTILINE)
_NAMESPACE_LINE = re.compile(r"^\s*namespace\s+([A-Za-z_][\w.]*)\s*[;{]", re.MULTILINE)
_COMMENTS_AND_STRINGS = re.compile(r'//[^\n]*|/\*.*?\*/|@"(?:[^"]|"")*"|"(?:\\.|[^"\\])*"', re.DOTALL)
_CAPITALIZED = re.compile(r"\b[A-Z][A-Za-z0-9_]*\b")
_TYPE_LINE = re.compile(
    r"^[ \t]*(?:(?:public|internal|private|protected|static|sealed|abstract|partial|readonly|ref|file)\s+)*"
    r"(?:class|interface|struct|enum|record)\s+([A-Za-z_]\w*)",
    re.MULTILINE,
)


def scope_key(project: str, namespace: str) -> str:
    return f"{project}::{namespace}"


def _type_names(node, source: bytes, out: set[str]) -> None:
    if node.type == "identifier":
        out.add(syntax.node_text(node, source).strip())
    elif node.type in ("qualified_name", "alias_qualified_name"):
        idents = [c for c in node.named_children if c.type == "identifier"]
        if idents:
            out.add(syntax.node_text(idents[-1], source).strip())
    elif node.type == "generic_name":
        name = syntax.child_of_type(node, "identifier")
        if name is not None:
            out.add(syntax.node_text(name, source).strip())
        for child in syntax.children_of_type(node, "type_argument_list"):
            _type_names(child, source, out)
    elif node.type in _TYPE_WRAPPERS:
        for child in node.named_children:
            _type_names(child, source, out)


def _leading_type(node):
    for field in ("type", "returns"):
        child = node.child_by_field_name(field)
        if child is not None:
            return child
    for child in node.named_children:
        if child.type not in _SKIP_CHILDREN:
            return child
    return None


def referenced_types(root, source: bytes) -> set[str]:
    found: set[str] = set()
    for node in syntax.walk(root):
        if node.type == "base_list":
            for child in node.named_children:
                _type_names(child, source, found)
        elif node.type in _TYPE_CONTEXTS:
            leading = _leading_type(node)
            if leading is not None:
                _type_names(leading, source, found)
    return {name for name in found if name and name not in BUILTIN_TYPES}


def _top_level_types(root, source: bytes) -> list[str]:
    names = []
    for node in syntax.find_all(root, TYPE_DECLARATIONS):
        if syntax.has_ancestor(node, *TYPE_DECLARATIONS):
            continue
        name = node.child_by_field_name("name")
        if name is None:
            name = syntax.child_of_type(node, "identifier")
        if name is not None:
            names.append(syntax.node_text(name, source).strip())
    return names


def _namespace(root, source: bytes) -> str | None:
    for child in root.named_children:
        if child.type in ("namespace_declaration", "file_scoped_namespace_declaration"):
            name = syntax.child_of_type(child, "qualified_name", "identifier")
            if name is not None:
                return syntax.node_text(name, source).strip()
    return None


def find_project_dir(directory: str, project_dirs: AbstractSet[str], listing=os.listdir) -> str:
    """Directory of the nearest enclosing ``.csproj``; the file's own directory if none.

    Project files in the supplied set are found without touching the disk.
    """
    current = directory
    while True:
        if current in project_dirs:
            return current
        try:
            entries = listing(current)
        except OSError as exc:
            entries = log_and_return_empty(logger, logging.DEBUG, f"cannot list {current}", exc)
        if any(name.endswith(".csproj") for name in entries):
            return current
        parent = os.path.dirname(current)
        if parent == current:
            return directory
        current = parent


@dataclass(frozen=True)
class CSharpState:
    types: ExportIndex
    # source directory -> project directory
    projects: Mapping[str, str]


class CSharpLanguage(BaseLanguage):
    name = "csharp"
    extensions = (".cs",)
    maturity = MaturityLevel.BASIC_TESTS

    def extract(self, content: bytes, path: str) -> Extraction:
        root = syntax.parse("csharp", content)
        if root is None:
            text = content.decode("utf-8", errors="replace")
            stripped = _COMMENTS_AND_STRINGS.sub(" ", text)
            usings = _USING_LINE.findall(stripped)
            match = _NAMESPACE_LINE.search(stripped)
            declared = _TYPE_LINE.findall(stripped)
            refs = set(_CAPITALIZED.findall(stripped)) - set(declared)
            imports = [ImportDeclaration(u, self.classify(u), directive="using", origin=path) for u in usings]
            return make_extraction(
                imports, declared=declared, referenced=refs, scope=match.group(1) if match else None
            )

        imports = []
        for node in syntax.find_all(root, "using_directive"):
            target = syntax.child_of_type(node, "qualified_name", "alias_qualified_name")
            if target is None:
                idents = syntax.children_of_type(node, "identifier")
                # `using Alias = Name;` keeps the last identifier.
                target = idents[-1] if idents else None
            if target is None:
                continue
            raw = syntax.node_text(target, content).replace(" ", "")
            imports.append(ImportDeclaration(raw, self.classify(raw), directive="using", origin=path))

        return make_extraction(
            imports,
            declared=_top_level_types(root, content),
            referenced=referenced_types(root, content),
            scope=_namespace(root, content),
        )

    def classify(self, raw: str, scopes: frozenset[str] = frozenset()) -> ImportKind:
        if matches_prefix(raw, STDLIB_NAMESPACES):
            return ImportKind.STANDARD_LIBRARY
        if raw in scopes or raw.rsplit(".", 1)[0] in scopes:
            return ImportKind.INTERNAL
        return ImportKind.EXTERNAL

    def build_index(self, ctx: BuildContext, extractions: Mapping[str, Extraction]) -> CSharpState:
        directories = sorted({os.path.dirname(p) for p in extractions})
        project_dirs = {os.path.dirname(p) for p in ctx.supplied if p.endswith(".csproj")}
        projects = {d: find_project_dir(d, project_dirs) for d in directories}
        builder = ExportIndexBuilder()
        for path, extraction in extractions.items():
            key = scope_key(projects[os.path.dirname(path)], extraction.scope or "")
            builder.add_all(key, extraction.declared_symbols, path)
        return CSharpState(types=builder.build(), projects=projects)

    def resolve(self, path: str, extraction: Extraction, state: CSharpState, ctx: BuildContext) -> list[str]:
        project = state.projects.get(os.path.dirname(path), os.path.dirname(path))
        referenced = extraction.referenced_identifiers - extraction.declared_symbols
        targets: list[str] = []
        imported: set[str] = set()

        for imp in extraction.imports:
            namespace_key = scope_key(project, imp.path)
            if namespace_key in state.types:
                targets.extend(unique_declarers(state.types, namespace_key, referenced))
                continue
            namespace, _, type_name = imp.path.rpartition(".")
            if not namespace or not type_name:
                continue
            imported.add(type_name)
            if type_name in extraction.referenced_identifiers:
                targets.extend(unique_declarers(state.types, scope_key(project, namespace), [type_name]))

        if extraction.scope is not None:
            targets.extend(unique_declarers(state.types, scope_key(project, extraction.scope), referenced - imported))
        return without_self(path, targets)

    def is_test_file(self, path: str, reader=None) -> bool:
        normalized = path.replace(os.sep, "/")
        stem = os.path.splitext(os.path.basename(normalized))[0]
        if stem.endswith(("Test", "Tests")):
            return True
        return "/Tests/" in normalized or "/Test/" in normalized
