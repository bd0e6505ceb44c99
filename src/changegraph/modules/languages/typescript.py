"""TypeScript: JavaScript resolution plus type-only imports and ``.ts`` probing."""

from __future__ import annotations

from ..core import syntax
from ..core.imports import Extraction, make_extraction
from .base import BuildContext, MaturityLevel
from .javascript import JavaScriptLanguage, extract_module_imports, resolve_specifiers

TS_PROBE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")
TS_SOURCE_EXTENSIONS = (".ts", ".tsx", ".mts", ".cts")


class TypeScriptLanguage(JavaScriptLanguage):
    name = "typescript"
    extensions = (".ts", ".tsx", ".mts", ".cts")
    maturity = MaturityLevel.STABLE
    probe_extensions = TS_PROBE_EXTENSIONS

    def extract(self, content: bytes, path: str) -> Extraction:
        grammar = "tsx" if path.endswith(".tsx") else "typescript"
        root = syntax.parse(grammar, content)
        if root is None:
            return Extraction.empty()
        return make_extraction(extract_module_imports(root, content, path, track_types=True))

    def resolve(self, path: str, extraction: Extraction, state, ctx: BuildContext) -> list[str]:
        return resolve_specifiers(
            path, extraction, ctx.supplied, self.probe_extensions, literal_extensions=TS_SOURCE_EXTENSIONS
        )
