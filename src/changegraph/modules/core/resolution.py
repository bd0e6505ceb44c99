"""Shared resolution algorithms.

Every language adapter reduces its module system to one or more of:

1. extension / index-file probing for path-shaped imports
2. manifest-aware root resolution with longest-prefix remapping
3. symbol-indexed disambiguation against an :class:`ExportIndex`
4. fuzzy subsequence matching of qualified references

All functions return paths drawn from the supplied file set and never
anything else.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import AbstractSet, Callable, Iterable, Mapping, Sequence

from .errors import ManifestError
from .export_index import ExportIndex

logger = logging.getLogger(__name__)

GLOB_CHARS = set("*?[")


def clean_join(*parts: str) -> str:
    return os.path.normpath(os.path.join(*parts))


def existing(candidates: Iterable[str], supplied: AbstractSet[str]) -> list[str]:
    """Keep candidates present in ``supplied``, in order, without repeats."""
    seen: set[str] = set()
    found: list[str] = []
    for candidate in candidates:
        candidate = os.path.normpath(candidate)
        if candidate in supplied and candidate not in seen:
            seen.add(candidate)
            found.append(candidate)
    return found


# ---------------------------------------------------------------------------
# Family 1: extension / index-file probing
# ---------------------------------------------------------------------------


def probe_candidates(
    base: str,
    extensions: Sequence[str],
    index_names: Sequence[str] = ("index",),
    recognized: Iterable[str] | None = None,
) -> list[str]:
    """Candidate paths for an extension-less (or extension-bearing) base path."""
    recognized_exts = set(recognized if recognized is not None else extensions)
    if os.path.splitext(base)[1] in recognized_exts:
        return [base]
    candidates = [base + ext for ext in extensions]
    for index_name in index_names:
        candidates.extend(os.path.join(base, index_name + ext) for ext in extensions)
    return candidates


def probe_paths(
    base_dir: str,
    raw: str,
    extensions: Sequence[str],
    supplied: AbstractSet[str],
    index_names: Sequence[str] = ("index",),
    recognized: Iterable[str] | None = None,
) -> list[str]:
    """Resolve ``raw`` relative to ``base_dir`` by probing extensions then index files."""
    base = clean_join(base_dir, raw)
    return existing(probe_candidates(base, extensions, index_names, recognized), supplied)


def expand_glob(base_dir: str, pattern: str, supplied: AbstractSet[str]) -> list[str]:
    """Expand an embed-style pattern against the supplied set.

    ``*`` and ``?`` never cross a directory separator. A literal pattern
    naming a directory selects every supplied file beneath it.
    """
    target = clean_join(base_dir, pattern)
    if not GLOB_CHARS.intersection(pattern):
        if target in supplied:
            return [target]
        prefix = target.rstrip(os.sep) + os.sep
        return sorted(path for path in supplied if path.startswith(prefix))

    glob = PurePosixPath(target.replace(os.sep, "/"))
    depth = len(glob.parts)
    matches = []
    for path in supplied:
        candidate = PurePosixPath(path.replace(os.sep, "/"))
        if len(candidate.parts) == depth and candidate.match(str(glob)):
            matches.append(path)
    return sorted(matches)


# ---------------------------------------------------------------------------
# Family 2: manifest-aware root resolution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Manifest:
    """Build-root descriptor found by walking up from a source directory."""

    root: str
    name: str
    # import-path prefix -> absolute directory
    remaps: Mapping[str, str]
    source_root: str


def locate_manifests(
    directories: Iterable[str],
    filename: str,
    reader: Callable[[str], bytes],
    parse: Callable[[str, bytes], Manifest | None],
) -> dict[str, Manifest | None]:
    """Map each directory to the nearest enclosing manifest.

    Runs during the index phase so resolution only reads the result. Each
    directory on the way up is probed once; unreadable or unparsable manifests
    count as absent.
    """
    probed: dict[str, Manifest | None] = {}
    found_at: dict[str, Manifest | None] = {}

    def probe(directory: str) -> Manifest | None:
        if directory in probed:
            return probed[directory]
        manifest: Manifest | None = None
        try:
            content = reader(os.path.join(directory, filename))
        except OSError:
            content = None
        if content is not None:
            try:
                manifest = parse(directory, content)
            except ManifestError as exc:
                logger.debug("ignoring malformed %s in %s: %s", filename, directory, exc)
                manifest = None
        probed[directory] = manifest
        return manifest

    for start in directories:
        if start in found_at:
            continue
        visited = []
        directory = start
        manifest = None
        while True:
            if directory in found_at:
                manifest = found_at[directory]
                break
            visited.append(directory)
            manifest = probe(directory)
            if manifest is not None:
                break
            parent = os.path.dirname(directory)
            if parent == directory:
                break
            directory = parent
        for seen in visited:
            found_at[seen] = manifest
    return found_at


def longest_prefix_remap(import_path: str, remaps: Mapping[str, str]) -> str | None:
    """Apply the remap whose source is the longest prefix of ``import_path``.

    A source matches when it equals the import path or is followed by ``/``.
    The unmatched suffix is appended to the remap target.
    """
    best = ""
    for source in remaps:
        if import_path == source or import_path.startswith(source + "/"):
            if len(source) > len(best):
                best = source
    if not best:
        return None
    suffix = import_path[len(best):].lstrip("/")
    target = remaps[best]
    return os.path.normpath(os.path.join(target, suffix)) if suffix else os.path.normpath(target)


def resolve_module_path(import_path: str, manifest: Manifest | None, separator: str = "/") -> str | None:
    """Turn a declared-module import into a directory/base path, or None.

    The manifest's own name maps under its source root; otherwise the
    longest-prefix remap applies. With no manifest nothing resolves.
    """
    if manifest is None:
        return None
    path = import_path.replace(separator, "/") if separator != "/" else import_path
    name = manifest.name
    if name and (path == name or path.startswith(name + "/")):
        rest = path[len(name):].lstrip("/")
        return os.path.normpath(os.path.join(manifest.source_root, rest)) if rest else manifest.source_root
    return longest_prefix_remap(path, manifest.remaps)


# ---------------------------------------------------------------------------
# Family 3: symbol-indexed disambiguation
# ---------------------------------------------------------------------------


def filter_by_symbols(
    index: ExportIndex,
    scope: str,
    referenced: Iterable[str],
    excluded: Iterable[str] = (),
    candidates: Sequence[str] | None = None,
    fallback: bool = True,
) -> list[str]:
    """Narrow a scope's files to those declaring a referenced symbol.

    ``candidates`` defaults to every file in the scope. When no candidate
    declares a referenced, non-excluded symbol the full candidate list is
    returned if ``fallback`` is set, otherwise nothing.
    """
    pool = list(candidates) if candidates is not None else list(index.files_in_scope(scope))
    if not pool:
        return []
    wanted = set(referenced) - set(excluded)
    table = index.symbols_in_scope(scope)
    matched: set[str] = set()
    for symbol in wanted:
        matched.update(table.get(symbol, ()))
    filtered = [path for path in pool if path in matched]
    if filtered:
        return filtered
    return pool if fallback else []


def unique_declarers(index: ExportIndex, scope: str, referenced: Iterable[str]) -> list[str]:
    """Files that are the only declarer of some referenced symbol in ``scope``."""
    table = index.symbols_in_scope(scope)
    found: set[str] = set()
    for symbol in referenced:
        files = table.get(symbol, ())
        if len(files) == 1:
            found.add(files[0])
    return sorted(found)


# ---------------------------------------------------------------------------
# Family 4: fuzzy qualified-reference matching
# ---------------------------------------------------------------------------

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def camel_to_snake(name: str) -> str:
    """``RequestForgeryProtection`` -> ``request_forgery_protection``; ``HTTPClient`` -> ``http_client``."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def subsequence_indices(parts: Sequence[str], targets: Sequence[str]) -> list[int] | None:
    """Greedy left-to-right positions of ``targets`` inside ``parts``, or None."""
    if not targets:
        return None
    indices: list[int] = []
    position = 0
    for i, part in enumerate(parts):
        if position == len(targets):
            break
        if part == targets[position]:
            indices.append(i)
            position += 1
    return indices if position == len(targets) else None


def _score(parts: Sequence[str], indices: Sequence[int]) -> tuple[int, int, int]:
    gaps = sum(indices[i] - indices[i - 1] - 1 for i in range(1, len(indices)))
    trailing = len(parts) - 1 - indices[-1]
    leading = indices[0]
    return gaps, trailing, leading


def best_subsequence_match(
    segments: Sequence[str],
    candidates: Iterable[str],
    components: Callable[[str], Sequence[str]],
) -> str | None:
    """The single best-scoring candidate for ``segments``; None when absent or tied."""
    best_path: str | None = None
    best_score: tuple[int, int, int] | None = None
    tie = False
    for path in sorted(candidates):
        parts = components(path)
        indices = subsequence_indices(parts, segments)
        if indices is None:
            continue
        score = _score(parts, indices)
        if best_score is None or score < best_score:
            best_path, best_score, tie = path, score, False
        elif score == best_score:
            tie = True
    if tie:
        logger.debug("ambiguous qualified reference %s", "::".join(segments))
        return None
    return best_path


def fuzzy_resolve(
    segments: Sequence[str],
    candidates: Iterable[str],
    components: Callable[[str], Sequence[str]],
    normalize: Callable[[str], str] = camel_to_snake,
    min_segments: int = 2,
) -> str | None:
    """Resolve a qualified reference, preferring the longest uniquely matching prefix."""
    normalized = [normalize(segment) for segment in segments if segment]
    pool = list(candidates)
    for end in range(len(normalized), min_segments - 1, -1):
        match = best_subsequence_match(normalized[:end], pool, components)
        if match is not None:
            return match
    return None
