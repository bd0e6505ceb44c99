"""Git collaborator: which files a commit scope touches, and their content.

Three scopes are supported: uncommitted work (against HEAD, plus untracked
files), a single commit, and a ``base..head`` range. Deleted files are never
reported since they cannot be graph nodes.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path

from .errors import VcsError
from .graph import FileStats

logger = logging.getLogger(__name__)

_RENAME_BRACES = re.compile(r"\{([^{}]*) => ([^{}]*)\}")

# Report non-ASCII paths verbatim instead of as quoted octal escapes.
_GIT = ["git", "-c", "core.quotePath=false"]


def _git(repo: str | Path, args: list[str]) -> str:
    result = subprocess.run(
        _GIT + ["-C", str(repo)] + args,
        text=True,
        encoding="utf-8",
        errors="surrogateescape",
        capture_output=True,
    )
    if result.returncode != 0:
        raise VcsError(result.stderr.strip() or f"git {' '.join(args)} failed")
    return result.stdout


def is_repository(path: str | Path) -> bool:
    result = subprocess.run(
        _GIT + ["-C", str(path), "rev-parse", "--is-inside-work-tree"],
        text=True,
        capture_output=True,
    )
    return result.returncode == 0 and result.stdout.strip() == "true"


def repository_root(path: str | Path) -> str:
    path = Path(path).resolve()
    if not path.exists():
        raise VcsError(f"repository path does not exist: {path}")
    if path.is_file():
        path = path.parent
    return os.path.normpath(_git(path, ["rev-parse", "--show-toplevel"]).strip())


def validate_ref(repo: str | Path, ref: str) -> str:
    """Return the full commit id ``ref`` points at, or raise VcsError."""
    if not ref or ref.startswith("-"):
        raise VcsError(f"invalid git reference: {ref!r}")
    try:
        return _git(repo, ["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"]).strip()
    except VcsError:
        raise VcsError(f"unknown commit: {ref}") from None


def parent_commit(repo: str | Path, commit: str) -> str | None:
    """First parent of ``commit``; None for a root commit."""
    ids = _git(repo, ["rev-list", "--parents", "-n", "1", commit]).split()
    return ids[1] if len(ids) > 1 else None


def parse_range(spec: str) -> tuple[str, str]:
    """``a..b`` -> (a, b). A bare ref means ``ref..HEAD``."""
    if ".." in spec:
        base, _, head = spec.partition("..")
        return base.lstrip("."), head.lstrip(".") or "HEAD"
    return spec, "HEAD"


def _scope_args(commit: str | None, base: str | None, head: str | None) -> tuple[list[str], bool]:
    """git diff arguments for the scope, and whether it is the uncommitted scope."""
    if commit:
        return ["diff-tree", "--no-commit-id", "-r", "--root", commit], False
    if base:
        return ["diff", f"{base}..{head or 'HEAD'}"], False
    return ["diff", "HEAD"], True


def _untracked(root: str) -> list[str]:
    out = _git(root, ["ls-files", "--others", "--exclude-standard"])
    return [line for line in out.splitlines() if line.strip()]


def changed_files(
    repo: str | Path,
    commit: str | None = None,
    base: str | None = None,
    head: str | None = None,
    include_deleted: bool = False,
) -> list[str]:
    """Absolute paths of files added or modified in the scope.

    With ``include_deleted`` the paths a scope deleted or renamed away are
    reported too, for comparing the snapshots on either side of it.
    """
    root = repository_root(repo)
    if commit:
        validate_ref(root, commit)
    if base:
        validate_ref(root, base)
        validate_ref(root, head or "HEAD")
    args, uncommitted = _scope_args(commit, base, head)
    out = _git(root, args[:1] + ["--name-status"] + args[1:])

    paths: set[str] = set()
    for line in out.splitlines():
        fields = line.split("\t")
        if len(fields) < 2:
            continue
        status = fields[0][:1]
        if include_deleted:
            paths.update(fields[1:])
            continue
        if status == "D":
            continue
        # Renames and copies list old then new path.
        paths.add(fields[-1])
    if uncommitted:
        paths.update(_untracked(root))
    return sorted(os.path.normpath(os.path.join(root, rel)) for rel in paths)


def file_content(repo: str | Path, ref: str, relpath: str) -> bytes:
    relpath = relpath.replace(os.sep, "/")
    if relpath.startswith("../") or os.path.isabs(relpath):
        raise VcsError(f"path escapes repository: {relpath}")
    result = subprocess.run(
        ["git", "-C", str(repo), "show", f"{ref}:{relpath}"],
        capture_output=True,
    )
    if result.returncode != 0:
        raise VcsError(result.stderr.decode("utf-8", errors="replace").strip())
    return result.stdout


def renamed_path(raw: str) -> str:
    """New-side path of a numstat rename entry (``a => b`` or ``dir/{a => b}/f``)."""
    if "{" in raw and " => " in raw:
        return _RENAME_BRACES.sub(lambda m: m.group(2), raw).replace("//", "/")
    if " => " in raw:
        return raw.split(" => ", 1)[1]
    return raw


def parse_numstat(text: str, root: str) -> dict[str, FileStats]:
    stats: dict[str, FileStats] = {}
    for line in text.splitlines():
        fields = line.split("\t")
        if len(fields) < 3:
            continue
        additions = int(fields[0]) if fields[0].isdigit() else 0
        deletions = int(fields[1]) if fields[1].isdigit() else 0
        path = os.path.normpath(os.path.join(root, renamed_path("\t".join(fields[2:]))))
        stats[path] = FileStats(additions=additions, deletions=deletions)
    return stats


def file_stats(
    repo: str | Path,
    commit: str | None = None,
    base: str | None = None,
    head: str | None = None,
) -> dict[str, FileStats]:
    """Line additions/deletions per changed file, with newly added files flagged."""
    root = repository_root(repo)
    args, uncommitted = _scope_args(commit, base, head)
    stats = parse_numstat(_git(root, args[:1] + ["--numstat"] + args[1:]), root)

    added_out = _git(root, args[:1] + ["--name-only", "--diff-filter=A"] + args[1:])
    added = {os.path.normpath(os.path.join(root, rel)) for rel in added_out.splitlines() if rel}
    if uncommitted:
        for rel in _untracked(root):
            path = os.path.normpath(os.path.join(root, rel))
            added.add(path)
            try:
                with open(path, "rb") as f:
                    lines = f.read().count(b"\n")
            except OSError as exc:
                logger.debug("cannot count lines of %s: %s", path, exc)
                lines = 0
            stats.setdefault(path, FileStats(additions=lines))

    return {
        path: FileStats(value.additions, value.deletions, is_new=path in added)
        for path, value in stats.items()
    }
