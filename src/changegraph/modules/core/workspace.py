"""
Workspace configuration for graph builds.

Provides:
- WorkspaceConfig dataclass for holding config
- load_workspace_config() to parse .changegraph/workspace.json
- should_include_path() to check if a path may become a graph node
- filter_paths() to filter a list of paths by config
- iter_workspace_files() to walk a directory for supported files
"""

import fnmatch
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Union

logger = logging.getLogger(__name__)

CONFIG_DIR = ".changegraph"
CONFIG_FILE = "workspace.json"
MAX_WORKERS_ENV = "CHANGEGRAPH_MAX_WORKERS"

# Default exclude patterns for vendored and generated directories
DEFAULT_EXCLUDE_PATTERNS = [
    "**/node_modules/**",
    "**/.git/**",
    "**/target/**",
    "**/__pycache__/**",
    "**/.venv/**",
    "**/venv/**",
    "**/vendor/**",
    "**/dist/**",
    "**/build/**",
    "**/.gradle/**",
    "**/Pods/**",
]


def default_max_workers() -> int:
    return os.cpu_count() or 1


@dataclass
class WorkspaceConfig:
    """Configuration for a dependency-graph build."""

    active_packages: List[str] = field(default_factory=list)
    exclude_patterns: List[str] = field(default_factory=lambda: DEFAULT_EXCLUDE_PATTERNS.copy())
    include_tests: bool = True
    # Link the whole scope when symbol filtering finds nothing.
    symbol_fallback: bool = True
    max_workers: int = field(default_factory=default_max_workers)


def _env_max_workers() -> int | None:
    raw = os.environ.get(MAX_WORKERS_ENV)
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        logger.warning("ignoring %s=%r: not an integer", MAX_WORKERS_ENV, raw)
        return None
    return max(1, value)


def load_workspace_config(project_path: Union[str, Path]) -> WorkspaceConfig:
    """
    Load workspace configuration from .changegraph/workspace.json.

    Args:
        project_path: Root directory of the project

    Returns:
        WorkspaceConfig populated from the file. Returns defaults if the file
        is missing or invalid. CHANGEGRAPH_MAX_WORKERS overrides maxWorkers.
    """
    config = WorkspaceConfig()
    config_file = Path(project_path) / CONFIG_DIR / CONFIG_FILE

    if config_file.exists():
        try:
            with open(config_file, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as exc:
            logger.warning("ignoring invalid %s: %s", config_file, exc)
            data = {}
        if not isinstance(data, dict):
            logger.warning("ignoring %s: expected a JSON object", config_file)
            data = {}

        config.active_packages = list(data.get("activePackages", []))
        # If excludePatterns is not specified, use defaults
        # If explicitly set to [], use empty list
        exclude_patterns = data.get("excludePatterns")
        if exclude_patterns is not None:
            config.exclude_patterns = list(exclude_patterns)
        config.include_tests = bool(data.get("includeTests", True))
        config.symbol_fallback = bool(data.get("symbolFallback", True))
        if isinstance(data.get("maxWorkers"), int) and data["maxWorkers"] > 0:
            config.max_workers = data["maxWorkers"]

    env_workers = _env_max_workers()
    if env_workers is not None:
        config.max_workers = env_workers
    return config


def _normalize_path(path: str) -> str:
    """
    Normalize a path for consistent matching.

    - Converts backslashes to forward slashes
    - Removes leading ./
    - Removes trailing /
    """
    path = path.replace("\\", "/")
    if path.startswith("./"):
        path = path[2:]
    return path.rstrip("/")


def _matches_any_pattern(path: str, patterns: List[str]) -> bool:
    """
    Check if path matches any of the glob patterns.

    fnmatch does not treat ** as "any directories", so patterns such as
    **/node_modules/** also match on the literal directory name.
    """
    for pattern in patterns:
        if fnmatch.fnmatch(path, pattern):
            return True

        if "**" in pattern:
            for part in pattern.split("/"):
                if part and part != "**" and part != "*":
                    dir_name = part.rstrip("*")
                    if not dir_name:
                        continue
                    if path.startswith(f"{dir_name}/") or f"/{dir_name}/" in path or path == dir_name:
                        return True

    return False


def _is_under_active_package(path: str, active_packages: List[str]) -> bool:
    for pkg in active_packages:
        pkg_normalized = _normalize_path(pkg)
        if path == pkg_normalized or path.startswith(pkg_normalized + "/"):
            return True
    return False


def should_include_path(path: str, config: WorkspaceConfig) -> bool:
    """
    Determine if a repository-relative path should be included.

    Logic:
    1. If activePackages is non-empty, path must be under one of them
    2. Path must not match any excludePattern
    """
    normalized_path = _normalize_path(path)

    if config.active_packages:
        if not _is_under_active_package(normalized_path, config.active_packages):
            return False

    if config.exclude_patterns:
        if _matches_any_pattern(normalized_path, config.exclude_patterns):
            return False

    return True


def filter_paths(paths: Iterable[str], config: WorkspaceConfig, root: Union[str, Path, None] = None) -> List[str]:
    """
    Filter paths by workspace configuration.

    Absolute paths are matched relative to ``root`` when given.
    """
    kept = []
    for p in paths:
        rel = os.path.relpath(p, root) if root is not None and os.path.isabs(p) else p
        if should_include_path(rel, config):
            kept.append(p)
    return kept


def iter_workspace_files(
    root: Union[str, Path],
    extensions: set[str] | None = None,
    workspace_config: WorkspaceConfig | None = None,
    exclude_hidden: bool = True,
) -> Iterator[Path]:
    """Iterate files under ``root`` that pass the workspace filters.

    Args:
        root: Project root directory
        extensions: Optional set of extensions to include (e.g., {".py"})
        workspace_config: Optional WorkspaceConfig (auto-loaded if None)
        exclude_hidden: If True, skip hidden files/dirs

    Yields:
        Absolute Path objects for matching files
    """
    root_path = Path(root).resolve()
    config = workspace_config if workspace_config is not None else load_workspace_config(root_path)

    for dirpath, dirnames, filenames in os.walk(root_path):
        rel_dir = os.path.relpath(dirpath, root_path)
        if exclude_hidden:
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
        # Only exclusions prune directories; active packages may sit deeper.
        dirnames[:] = sorted(
            d for d in dirnames
            if not _matches_any_pattern(
                _normalize_path(os.path.join(rel_dir, d) if rel_dir != "." else d),
                config.exclude_patterns,
            )
        )

        for filename in sorted(filenames):
            if exclude_hidden and filename.startswith("."):
                continue
            if extensions and Path(filename).suffix not in extensions:
                continue
            file_path = Path(dirpath) / filename
            if not should_include_path(str(file_path.relative_to(root_path)), config):
                continue
            yield file_path
