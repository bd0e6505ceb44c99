"""
changegraph: file dependency graphs for change review

Builds a directed file-to-file dependency graph from a set of source files
by resolving each file's imports against the others. Fourteen languages
are understood through tree-sitter front ends; the file set usually comes
from a git commit, a commit range, or uncommitted work.

Modules:
- core: extraction model, resolution algorithms, graph, build, git and output
- languages: one adapter per language plus the static registry
"""

try:
    from importlib.metadata import version
    __version__ = version("changegraph")
except Exception:
    __version__ = "0.1.0"

from .modules.core.builder import (
    BuildResult,
    annotate,
    build_dependency_graph,
    build_from_directory,
)
from .modules.core.content import (
    CachingReader,
    GitRevisionReader,
    filesystem_reader,
    mapping_reader,
)
from .modules.core.graph import (
    DependencyGraph,
    FileDependencyGraph,
    FileStats,
    direct_connections,
    find_cycles,
    find_path_nodes,
)
from .modules.core.imports import Extraction, ImportDeclaration, ImportKind
from .modules.core.output_formats import format_graph

__all__ = [
    "__version__",
    "BuildResult",
    "CachingReader",
    "DependencyGraph",
    "Extraction",
    "FileDependencyGraph",
    "FileStats",
    "GitRevisionReader",
    "ImportDeclaration",
    "ImportKind",
    "annotate",
    "build_dependency_graph",
    "build_from_directory",
    "direct_connections",
    "filesystem_reader",
    "find_cycles",
    "find_path_nodes",
    "format_graph",
    "mapping_reader",
]
