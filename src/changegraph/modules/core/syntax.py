"""Tree-sitter grammar loading and read-only tree helpers.

Adapters treat the parse tree as opaque: node type, children, parent and
byte range are the only accessors used. Grammars are imported lazily so a
project only pays for the languages it actually contains.
"""

from __future__ import annotations

import importlib
import logging
import threading
from functools import lru_cache
from typing import Any, Iterable, Iterator

logger = logging.getLogger(__name__)

# grammar name -> (module, factory). Factories returning a capsule are wrapped
# in tree_sitter.Language; the language pack returns a Language directly.
LANGUAGE_CONFIG: dict[str, tuple[str, str]] = {
    "python": ("tree_sitter_python", "language"),
    "javascript": ("tree_sitter_javascript", "language"),
    "typescript": ("tree_sitter_typescript", "language_typescript"),
    "tsx": ("tree_sitter_typescript", "language_tsx"),
    "go": ("tree_sitter_go", "language"),
    "rust": ("tree_sitter_rust", "language"),
    "java": ("tree_sitter_java", "language"),
    "csharp": ("tree_sitter_c_sharp", "language"),
    "c": ("tree_sitter_c", "language"),
    "cpp": ("tree_sitter_cpp", "language"),
}

# Grammars without a standalone binding come from tree-sitter-language-pack.
LANGUAGE_PACK_GRAMMARS = {"kotlin", "swift", "dart"}

_local = threading.local()


@lru_cache(maxsize=None)
def load_language(grammar: str) -> Any | None:
    """Return the tree-sitter Language for ``grammar`` or None if not installed."""
    try:
        from tree_sitter import Language
    except ImportError:
        logger.debug("tree_sitter is not installed")
        return None

    if grammar in LANGUAGE_PACK_GRAMMARS:
        try:
            from tree_sitter_language_pack import get_language
        except ImportError:
            logger.debug("tree_sitter_language_pack is not installed; no %s grammar", grammar)
            return None
        try:
            return get_language(grammar)
        except Exception as exc:
            logger.debug("language pack has no usable %s grammar: %s", grammar, exc)
            return None

    config = LANGUAGE_CONFIG.get(grammar)
    if config is None:
        return None
    module_name, func_name = config
    try:
        module = importlib.import_module(module_name)
    except ImportError:
        logger.debug("grammar package %s is not installed", module_name)
        return None
    try:
        return Language(getattr(module, func_name)())
    except Exception as exc:
        logger.debug("failed to load %s grammar: %s", grammar, exc)
        return None


def get_parser(grammar: str) -> Any | None:
    """Get or create this thread's parser for ``grammar``.

    Parsers are not shared between threads; the worker pool gets one parser
    per grammar per worker.
    """
    cache: dict[str, Any] = getattr(_local, "parsers", None)
    if cache is None:
        cache = {}
        _local.parsers = cache
    parser = cache.get(grammar)
    if parser is not None:
        return parser

    lang = load_language(grammar)
    if lang is None:
        return None

    from tree_sitter import Parser

    try:
        parser = Parser()
        parser.language = lang
    except Exception:
        try:
            parser = Parser(lang)
        except Exception as exc:
            logger.debug("cannot construct %s parser: %s", grammar, exc)
            return None
    cache[grammar] = parser
    return parser


def grammar_available(grammar: str) -> bool:
    return load_language(grammar) is not None


def parse(grammar: str, source: bytes) -> Any | None:
    """Parse ``source`` and return the root node, or None when no tree can be built."""
    parser = get_parser(grammar)
    if parser is None:
        return None
    try:
        tree = parser.parse(source)
    except Exception as exc:
        logger.debug("%s parse failed: %s", grammar, exc)
        return None
    return tree.root_node


def node_text(node: Any, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def walk(root: Any) -> Iterator[Any]:
    """Pre-order traversal that does not recurse on the Python stack."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def find_all(root: Any, types: str | Iterable[str]) -> list[Any]:
    wanted = {types} if isinstance(types, str) else set(types)
    return [node for node in walk(root) if node.type in wanted]


def child_of_type(node: Any, *types: str) -> Any | None:
    for child in node.children:
        if child.type in types:
            return child
    return None


def children_of_type(node: Any, *types: str) -> list[Any]:
    return [child for child in node.children if child.type in types]


def has_ancestor(node: Any, *types: str) -> bool:
    parent = node.parent
    while parent is not None:
        if parent.type in types:
            return True
        parent = parent.parent
    return False


def strip_quotes(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'`":
        return text[1:-1]
    return text
