"""Content readers: the seam between the engine and where bytes come from.

A reader is any callable ``(path) -> bytes`` that raises
:class:`ContentReadError` (an ``OSError``) when the file cannot be read.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Callable, Mapping

from .errors import ContentReadError, VcsError

logger = logging.getLogger(__name__)

ContentReader = Callable[[str], bytes]


def filesystem_reader() -> ContentReader:
    """Read files from the working tree."""

    def read(path: str) -> bytes:
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as exc:
            raise ContentReadError(path, exc.strerror or str(exc)) from exc

    return read


def mapping_reader(files: Mapping[str, bytes | str]) -> ContentReader:
    """Serve content from an in-memory mapping of absolute path -> content."""
    normalized = {
        os.path.normpath(path): data.encode("utf-8") if isinstance(data, str) else data
        for path, data in files.items()
    }

    def read(path: str) -> bytes:
        try:
            return normalized[os.path.normpath(path)]
        except KeyError:
            raise ContentReadError(path, "no such file") from None

    return read


class GitRevisionReader:
    """Read blobs as they exist at ``ref`` in the repository at ``repo``."""

    def __init__(self, repo: str, ref: str):
        from .vcs import repository_root

        self.root = repository_root(repo)
        self.ref = ref

    def __call__(self, path: str) -> bytes:
        from .vcs import file_content

        rel = os.path.relpath(path, self.root)
        if rel.startswith(".."):
            raise ContentReadError(path, f"outside repository {self.root}")
        try:
            return file_content(self.root, self.ref, rel)
        except VcsError as exc:
            raise ContentReadError(path, str(exc)) from exc


class CachingReader:
    """Memoise successful reads of another reader. Safe across worker threads."""

    def __init__(self, inner: ContentReader):
        self._inner = inner
        self._cache: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def __call__(self, path: str) -> bytes:
        with self._lock:
            cached = self._cache.get(path)
        if cached is not None:
            return cached
        data = self._inner(path)
        with self._lock:
            self._cache.setdefault(path, data)
        return data

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
