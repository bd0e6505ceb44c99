"""Svelte components: imports from ``<script>`` blocks."""

from __future__ import annotations

import re

from ..core import syntax
from ..core.imports import Extraction, make_extraction
from .base import BaseLanguage, BuildContext, MaturityLevel
from .javascript import extract_module_imports, is_js_test_file, resolve_specifiers

_SCRIPT_BLOCK = re.compile(rb"<script(?P<attrs>\s[^>]*)?>(?P<body>.*?)</script\s*>", re.DOTALL | re.IGNORECASE)
_TS_LANG = re.compile(rb"""\blang\s*=\s*["']?(ts|typescript)\b""", re.IGNORECASE)

SVELTE_PROBE_EXTENSIONS = (".svelte", ".ts", ".js", ".tsx", ".jsx", ".mjs")


def script_blocks(content: bytes) -> list[tuple[str, bytes]]:
    """(grammar, source) for each script block in a component."""
    blocks = []
    for match in _SCRIPT_BLOCK.finditer(content):
        attrs = match.group("attrs") or b""
        grammar = "typescript" if _TS_LANG.search(attrs) else "javascript"
        blocks.append((grammar, match.group("body")))
    return blocks


class SvelteLanguage(BaseLanguage):
    name = "svelte"
    extensions = (".svelte",)
    maturity = MaturityLevel.BASIC_TESTS

    def extract(self, content: bytes, path: str) -> Extraction:
        imports = []
        for grammar, body in script_blocks(content):
            root = syntax.parse(grammar, body)
            if root is None:
                continue
            imports.extend(extract_module_imports(root, body, path, track_types=grammar == "typescript"))
        return make_extraction(imports)

    def resolve(self, path: str, extraction: Extraction, state, ctx: BuildContext) -> list[str]:
        return resolve_specifiers(path, extraction, ctx.supplied, SVELTE_PROBE_EXTENSIONS)

    def is_test_file(self, path: str, reader=None) -> bool:
        return is_js_test_file(path)
