"""Static language registry: one adapter per extension, in a fixed order."""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from ..core.content import ContentReader
from .base import LanguageModule
from .c import CLanguage
from .cpp import CppLanguage
from .csharp import CSharpLanguage
from .dart import DartLanguage
from .golang import GoLanguage
from .java import JavaLanguage
from .javascript import JavaScriptLanguage
from .kotlin import KotlinLanguage
from .python import PythonLanguage
from .ruby import RubyLanguage
from .rust import RustLanguage
from .svelte import SvelteLanguage
from .swift import SwiftLanguage
from .typescript import TypeScriptLanguage

logger = logging.getLogger(__name__)

_MODULES: tuple[LanguageModule, ...] = (
    CLanguage(),
    CppLanguage(),
    CSharpLanguage(),
    DartLanguage(),
    GoLanguage(),
    JavaLanguage(),
    JavaScriptLanguage(),
    KotlinLanguage(),
    PythonLanguage(),
    RubyLanguage(),
    RustLanguage(),
    SvelteLanguage(),
    SwiftLanguage(),
    TypeScriptLanguage(),
)


@lru_cache(maxsize=1)
def _by_extension() -> dict[str, LanguageModule]:
    table: dict[str, LanguageModule] = {}
    for module in _MODULES:
        for ext in module.extensions:
            if ext in table:
                raise RuntimeError(f"extension {ext} claimed by {table[ext].name} and {module.name}")
            table[ext] = module
    return table


def modules() -> tuple[LanguageModule, ...]:
    return _MODULES


def module_for_path(path: str) -> LanguageModule | None:
    return _by_extension().get(os.path.splitext(path)[1].lower())


def get_module(name: str) -> LanguageModule | None:
    for module in _MODULES:
        if module.name == name:
            return module
    return None


def supported_extensions() -> list[str]:
    return sorted(_by_extension())


def supported_languages() -> list[LanguageModule]:
    return list(_MODULES)


def is_supported(path: str) -> bool:
    return module_for_path(path) is not None


def is_test_file(path: str, reader: ContentReader | None = None) -> bool:
    """Test-file classification by the owning adapter; unsupported files never are."""
    module = module_for_path(path)
    if module is None:
        return False
    return module.is_test_file(path, reader)
