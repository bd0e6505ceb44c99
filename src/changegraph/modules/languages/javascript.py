"""JavaScript: ES modules, CommonJS ``require`` and dynamic ``import()``."""

from __future__ import annotations

import os
from typing import Sequence

from ..core import syntax
from ..core.imports import Extraction, ImportDeclaration, ImportKind, is_relative_path, make_extraction
from ..core.resolution import clean_join, existing, probe_candidates
from .base import BaseLanguage, BuildContext, MaturityLevel, without_self

NODE_BUILTINS = frozenset({
    "assert", "buffer", "child_process", "cluster", "console", "constants", "crypto",
    "dgram", "diagnostics_channel", "dns", "domain", "events", "fs", "fs/promises",
    "http", "http2", "https", "inspector", "module", "net", "os", "path", "path/posix",
    "path/win32", "perf_hooks", "process", "punycode", "querystring", "readline",
    "repl", "stream", "stream/promises", "string_decoder", "sys", "timers",
    "timers/promises", "tls", "trace_events", "tty", "url", "util", "v8", "vm",
    "wasi", "worker_threads", "zlib", "async_hooks",
})

JS_EXTENSIONS = (".js", ".jsx", ".mjs", ".cjs")

# Specifiers ending in one of these are taken literally rather than probed.
ASSET_EXTENSIONS = (
    ".json", ".css", ".scss", ".sass", ".less", ".svelte", ".vue",
    ".svg", ".png", ".jpg", ".jpeg", ".gif", ".wasm", ".html",
)

_IMPORT_NODES = ("import_statement", "export_statement", "call_expression")


def classify_specifier(raw: str) -> ImportKind:
    if is_relative_path(raw):
        return ImportKind.INTERNAL
    if raw.startswith("node:") or raw in NODE_BUILTINS:
        return ImportKind.STANDARD_LIBRARY
    return ImportKind.EXTERNAL


def _string_value(node, source: bytes) -> str | None:
    if node is None or node.type not in ("string", "template_string"):
        return None
    if node.type == "template_string" and any(c.type == "template_substitution" for c in node.children):
        return None
    return syntax.strip_quotes(syntax.node_text(node, source))


def _is_type_only(node) -> bool:
    # TypeScript marks `import type` / `export type` with an anonymous `type` token.
    return any(child.type == "type" for child in node.children)


def extract_module_imports(root, source: bytes, path: str, track_types: bool = False) -> list[ImportDeclaration]:
    """Import specifiers from a JS/TS tree, in source order."""
    found: list[ImportDeclaration] = []
    for node in syntax.find_all(root, _IMPORT_NODES):
        raw = None
        directive = "import"
        type_only = False
        if node.type in ("import_statement", "export_statement"):
            raw = _string_value(node.child_by_field_name("source"), source)
            if raw is None and node.type == "import_statement":
                # TypeScript `import x = require("y")`
                clause = syntax.child_of_type(node, "import_require_clause")
                if clause is not None:
                    raw = _string_value(syntax.child_of_type(clause, "string"), source)
                    directive = "require"
            type_only = track_types and _is_type_only(node)
        else:
            function = node.child_by_field_name("function")
            if function is None:
                continue
            if function.type == "import":
                directive = "dynamic-import"
            elif function.type == "identifier" and syntax.node_text(function, source) == "require":
                directive = "require"
            else:
                continue
            arguments = node.child_by_field_name("arguments")
            if arguments is None or not arguments.named_children:
                continue
            raw = _string_value(arguments.named_children[0], source)
        if not raw:
            continue
        found.append(
            ImportDeclaration(
                raw,
                classify_specifier(raw),
                is_relative=is_relative_path(raw),
                is_type_only=type_only,
                directive=directive,
                origin=path,
            )
        )
    return found


def resolve_specifiers(
    path: str,
    extraction: Extraction,
    supplied: frozenset[str],
    extensions: Sequence[str],
    literal_extensions: Sequence[str] = (),
) -> list[str]:
    """Family 1 probing of every relative specifier."""
    recognized = set(extensions) | set(JS_EXTENSIONS) | set(literal_extensions) | set(ASSET_EXTENSIONS)
    base_dir = os.path.dirname(path)
    targets: list[str] = []
    for imp in extraction.imports:
        if imp.kind is not ImportKind.INTERNAL:
            continue
        base = clean_join(base_dir, imp.path)
        candidates = probe_candidates(base, extensions, ("index",), recognized)
        found = existing(candidates, supplied)
        if not found and literal_extensions:
            stem, ext = os.path.splitext(base)
            if ext in JS_EXTENSIONS:
                # ESM TypeScript imports `./x.js` for `./x.ts`
                found = existing([stem + alt for alt in literal_extensions], supplied)
        targets.extend(found)
    return without_self(path, targets)


class JavaScriptLanguage(BaseLanguage):
    name = "javascript"
    extensions = JS_EXTENSIONS
    maturity = MaturityLevel.STABLE
    grammar = "javascript"
    probe_extensions: tuple[str, ...] = JS_EXTENSIONS

    def extract(self, content: bytes, path: str) -> Extraction:
        root = syntax.parse(self.grammar, content)
        if root is None:
            return Extraction.empty()
        return make_extraction(extract_module_imports(root, content, path))

    def classify(self, raw: str, scopes: frozenset[str] = frozenset()) -> ImportKind:
        return classify_specifier(raw)

    def resolve(self, path: str, extraction: Extraction, state, ctx: BuildContext) -> list[str]:
        return resolve_specifiers(path, extraction, ctx.supplied, self.probe_extensions)

    def is_test_file(self, path: str, reader=None) -> bool:
        return is_js_test_file(path)


def is_js_test_file(path: str) -> bool:
    base = os.path.basename(path)
    if ".test." in base or ".spec." in base:
        return True
    return "/__tests__/" in path.replace("\\", "/")
