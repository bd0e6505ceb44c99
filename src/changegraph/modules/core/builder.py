"""Build a file dependency graph from a supplied file set.

Phases run strictly in order:

1. extraction of every file, then one index build per language
2. per-file resolution against the frozen indexes
3. per-language finalize hooks on the assembled graph

Phases 1 and 2 fan out over a thread pool; each worker returns a private
result and only the calling thread touches the graph.
"""

from __future__ import annotations

import logging
import os
import time
from collections import defaultdict
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, Mapping, Sequence

from .content import CachingReader, ContentReader, filesystem_reader
from .errors import (
    ERR_INTERNAL,
    ERR_TIMEOUT,
    FileError,
    log_and_return_empty,
    make_read_error,
)
from .graph import DependencyGraph, FileDependencyGraph
from .imports import Extraction
from ..languages import registry as default_registry
from ..languages.base import BuildContext
from .workspace import default_max_workers

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    graph: DependencyGraph
    errors: list[FileError] = field(default_factory=list)
    # Files never scheduled because the deadline passed.
    unscheduled: list[str] = field(default_factory=list)
    # Supplied files no adapter handles; they are nodes without edges.
    unsupported: list[str] = field(default_factory=list)

    def adjacency(self) -> dict[str, list[str]]:
        return self.graph.adjacency_list()


def _run_pool(
    items: Sequence[Any],
    fn: Callable[[Any], Any],
    max_workers: int,
    deadline: float | None,
) -> Iterator[tuple[Any, Future | None]]:
    """Yield (item, finished future) pairs, or (item, None) for items never started.

    At most ``2 * max_workers`` tasks are in flight so a passed deadline stops
    new work promptly while running tasks finish.
    """
    if not items:
        return
    workers = max(1, min(max_workers, len(items)))
    window = workers * 2
    pending: dict[Future, Any] = {}
    queue = list(items)
    position = 0
    with ThreadPoolExecutor(max_workers=workers) as executor:
        while position < len(queue) or pending:
            while position < len(queue) and len(pending) < window:
                if deadline is not None and time.monotonic() >= deadline:
                    for item in queue[position:]:
                        yield item, None
                    position = len(queue)
                    break
                item = queue[position]
                position += 1
                pending[executor.submit(fn, item)] = item
            if not pending:
                break
            done, _ = wait(pending, return_when=FIRST_COMPLETED)
            for future in done:
                yield pending.pop(future), future


def _group(paths: Iterable[str], registry) -> tuple[dict, dict, dict, list[str]]:
    by_dir: dict[str, list[str]] = defaultdict(list)
    by_language: dict[str, list[str]] = defaultdict(list)
    module_of: dict[str, Any] = {}
    unsupported = []
    for path in paths:
        by_dir[os.path.dirname(path)].append(path)
        module = registry.module_for_path(path)
        if module is None:
            unsupported.append(path)
            continue
        module_of[path] = module
        by_language[module.name].append(path)
    return (
        {d: tuple(sorted(files)) for d, files in by_dir.items()},
        {lang: tuple(sorted(files)) for lang, files in by_language.items()},
        module_of,
        sorted(unsupported),
    )


def build_dependency_graph(
    paths: Iterable[str],
    reader: ContentReader | None = None,
    *,
    max_workers: int | None = None,
    symbol_fallback: bool = True,
    include_tests: bool = True,
    timeout: float | None = None,
    registry=None,
) -> BuildResult:
    """Resolve every supplied file's internal imports into graph edges.

    Args:
        paths: The supplied file set. Relative paths are made absolute.
        reader: Content reader; defaults to the working tree.
        max_workers: Pool size; defaults to the CPU count.
        symbol_fallback: Link a whole package/namespace when symbol filtering
            finds no declaring file.
        include_tests: When False, test files are removed from the result.
        timeout: Seconds after which no new file is scheduled.
        registry: Language registry module; defaults to the built-in one.

    Returns:
        BuildResult with a frozen graph and the per-file error list.
    """
    if registry is None:
        registry = default_registry

    reader = CachingReader(reader or filesystem_reader())
    deadline = time.monotonic() + timeout if timeout is not None else None
    workers = max_workers or default_max_workers()

    supplied = frozenset(os.path.normpath(os.path.abspath(p)) for p in paths)
    ordered = sorted(supplied)
    by_dir, by_language, module_of, unsupported = _group(ordered, registry)

    ctx = BuildContext(
        supplied=supplied,
        reader=reader,
        files_by_dir=by_dir,
        files_by_language=by_language,
        symbol_fallback=symbol_fallback,
    )
    graph = DependencyGraph(supplied)
    result = BuildResult(graph=graph, unsupported=unsupported)

    # Phase 1a: extraction.
    def extract(path: str) -> tuple[Extraction | None, FileError | None]:
        try:
            content = reader(path)
        except OSError as exc:
            logger.warning("skipping %s: %s", path, exc)
            return None, make_read_error(path, str(exc))
        try:
            return module_of[path].extract(content, path), None
        except Exception as exc:
            return log_and_return_empty(
                logger, logging.DEBUG, f"extraction failed for {path}", exc,
                return_value=(Extraction.empty(), None),
            )

    extractions: dict[str, Extraction] = {}
    for path, future in _run_pool(list(module_of), extract, workers, deadline):
        if future is None:
            result.unscheduled.append(path)
            continue
        extraction, error = future.result()
        if error is not None:
            result.errors.append(error)
        if extraction is not None:
            extractions[path] = extraction

    # Phase 1b: indexes, one per language, complete before any resolution.
    states: dict[str, Any] = {}
    per_language: dict[str, dict[str, Extraction]] = defaultdict(dict)
    for path in sorted(extractions):
        per_language[module_of[path].name][path] = extractions[path]
    for module in registry.modules():
        if module.name in by_language:
            states[module.name] = module.build_index(ctx, per_language.get(module.name, {}))

    # Phase 2: resolution.
    def resolve(path: str) -> list[str]:
        module = module_of[path]
        return module.resolve(path, extractions[path], states.get(module.name), ctx)

    resolved: dict[str, list[str]] = {}
    for path, future in _run_pool(sorted(extractions), resolve, workers, deadline):
        if future is None:
            result.unscheduled.append(path)
            continue
        try:
            targets = future.result()
        except Exception as exc:
            logger.warning("resolution failed for %s: %s", path, exc)
            result.errors.append(FileError(path=path, code=ERR_INTERNAL, message=str(exc)))
            continue
        resolved[path] = [t for t in targets if t in supplied and t != path]

    # Single merge point, in path order.
    for path in sorted(resolved):
        graph.add_edges(path, resolved[path])

    # Phase 3: finalize hooks.
    for module in registry.modules():
        if module.name in by_language:
            module.finalize(graph, states.get(module.name), ctx, per_language.get(module.name, {}))

    if result.unscheduled:
        result.errors.extend(
            FileError(path=p, code=ERR_TIMEOUT, message="build deadline passed before scheduling")
            for p in sorted(set(result.unscheduled))
        )

    if not include_tests:
        keep = [node for node in graph.nodes() if not registry.is_test_file(node, reader)]
        result.graph = graph.subgraph(keep)
    else:
        result.graph = graph.freeze()
    result.errors.sort(key=lambda e: (e.path, e.code))
    return result


def annotate(result: BuildResult, reader: ContentReader | None = None, stats=None, registry=None) -> FileDependencyGraph:
    """Attach test-file flags, extensions, change stats and cycle data."""
    if registry is None:
        registry = default_registry
    reader = reader or filesystem_reader()
    return FileDependencyGraph.annotate(
        result.graph,
        is_test=lambda path: registry.is_test_file(path, reader),
        stats=stats,
    )


def build_from_directory(root: str, config=None, **kwargs) -> BuildResult:
    """Build over every supported file under ``root`` honouring workspace config."""
    from .workspace import iter_workspace_files, load_workspace_config

    config = config or load_workspace_config(root)
    extensions = set(default_registry.supported_extensions())
    files = [str(p) for p in iter_workspace_files(root, extensions=extensions, workspace_config=config)]
    kwargs.setdefault("max_workers", config.max_workers)
    kwargs.setdefault("symbol_fallback", config.symbol_fallback)
    kwargs.setdefault("include_tests", config.include_tests)
    return build_dependency_graph(files, **kwargs)


def adjacency_for(paths: Iterable[str], reader: ContentReader | None = None, **kwargs) -> Mapping[str, list[str]]:
    return build_dependency_graph(paths, reader, **kwargs).adjacency()
