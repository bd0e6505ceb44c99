import os
import shutil
import subprocess
from pathlib import Path

import pytest

from changegraph.modules.core import vcs
from changegraph.modules.core.content import GitRevisionReader
from changegraph.modules.core.errors import ContentReadError, VcsError
from changegraph.modules.core.graph import FileStats

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not available")


def _git(repo: Path, *args: str) -> str:
    result = subprocess.run(["git", "-C", str(repo), *args], capture_output=True, text=True, check=True)
    return result.stdout.strip()


@pytest.fixture
def repo(tmp_path: Path, monkeypatch) -> Path:
    for key, value in {
        "GIT_AUTHOR_NAME": "Test",
        "GIT_AUTHOR_EMAIL": "test@example.com",
        "GIT_COMMITTER_NAME": "Test",
        "GIT_COMMITTER_EMAIL": "test@example.com",
        "GIT_CONFIG_NOSYSTEM": "1",
    }.items():
        monkeypatch.setenv(key, value)
    root = tmp_path / "repo"
    root.mkdir()
    _git(root, "init", "-q")
    (root / "a.py").write_text("import b\n")
    (root / "b.py").write_text("X = 1\n")
    (root / "old.py").write_text("gone = True\n")
    _git(root, "add", ".")
    _git(root, "commit", "-q", "-m", "initial")
    return root.resolve()


def test_repository_detection(repo: Path, tmp_path: Path):
    assert vcs.is_repository(repo)
    assert vcs.repository_root(repo / "a.py") == str(repo)
    outside = tmp_path / "plain"
    outside.mkdir()
    assert not vcs.is_repository(outside)


def test_validate_ref(repo: Path):
    assert len(vcs.validate_ref(repo, "HEAD")) == 40
    with pytest.raises(VcsError):
        vcs.validate_ref(repo, "no-such-branch")
    with pytest.raises(VcsError):
        vcs.validate_ref(repo, "--all")


def test_parse_range():
    assert vcs.parse_range("main..feature") == ("main", "feature")
    assert vcs.parse_range("main..") == ("main", "HEAD")
    assert vcs.parse_range("v1.0") == ("v1.0", "HEAD")


def test_uncommitted_scope_includes_untracked_and_skips_deleted(repo: Path):
    (repo / "b.py").write_text("X = 2\n")
    (repo / "new.py").write_text("import a\n")
    (repo / "old.py").unlink()

    changed = vcs.changed_files(repo)
    assert changed == [str(repo / "b.py"), str(repo / "new.py")]


def test_commit_and_range_scopes(repo: Path):
    base = _git(repo, "rev-parse", "HEAD")
    (repo / "a.py").write_text("import b\nimport c\n")
    (repo / "c.py").write_text("Y = 1\n")
    _git(repo, "add", ".")
    _git(repo, "commit", "-q", "-m", "second")

    assert vcs.changed_files(repo, commit="HEAD") == [str(repo / "a.py"), str(repo / "c.py")]
    assert vcs.changed_files(repo, base=base, head="HEAD") == [str(repo / "a.py"), str(repo / "c.py")]
    assert vcs.changed_files(repo, commit=base) == [str(repo / p) for p in ("a.py", "b.py", "old.py")]
    with pytest.raises(VcsError):
        vcs.changed_files(repo, commit="deadbeef")


def test_include_deleted_and_parent_commit(repo: Path):
    first = _git(repo, "rev-parse", "HEAD")
    (repo / "old.py").unlink()
    _git(repo, "mv", "b.py", "c.py")
    _git(repo, "commit", "-q", "-am", "drop and rename")

    assert vcs.changed_files(repo, commit="HEAD") == [str(repo / "c.py")]
    assert vcs.changed_files(repo, base=first, head="HEAD", include_deleted=True) == [
        str(repo / p) for p in ("b.py", "c.py", "old.py")
    ]
    assert vcs.parent_commit(repo, "HEAD") == first
    assert vcs.parent_commit(repo, first) is None


def test_file_stats_for_commit(repo: Path):
    (repo / "a.py").write_text("import b\nimport c\nprint(1)\n")
    (repo / "c.py").write_text("Y = 1\n")
    _git(repo, "add", ".")
    _git(repo, "commit", "-q", "-m", "second")

    stats = vcs.file_stats(repo, commit="HEAD")
    assert stats[str(repo / "a.py")] == FileStats(additions=2, deletions=0, is_new=False)
    assert stats[str(repo / "c.py")] == FileStats(additions=1, deletions=0, is_new=True)


def test_non_ascii_paths_are_not_quoted(repo: Path):
    (repo / "café.py").write_text("import b\n", encoding="utf-8")
    (repo / "b.py").write_text("X = 2\n")
    _git(repo, "add", ".")
    _git(repo, "commit", "-q", "-m", "accents")
    (repo / "naïve.py").write_text("Z = 1\n", encoding="utf-8")

    changed = vcs.changed_files(repo, commit="HEAD")
    assert changed == [str(repo / "b.py"), str(repo / "café.py")]
    stats = vcs.file_stats(repo, commit="HEAD")
    assert stats[str(repo / "café.py")] == FileStats(additions=1, deletions=0, is_new=True)
    assert str(repo / "naïve.py") in vcs.changed_files(repo)


def test_file_content_and_revision_reader(repo: Path):
    first = _git(repo, "rev-parse", "HEAD")
    (repo / "b.py").write_text("X = 2\n")
    _git(repo, "commit", "-q", "-am", "bump")

    assert vcs.file_content(repo, first, "b.py") == b"X = 1\n"
    reader = GitRevisionReader(str(repo), first)
    assert reader(str(repo / "b.py")) == b"X = 1\n"
    with pytest.raises(ContentReadError):
        reader(str(repo / "missing.py"))
    with pytest.raises(ContentReadError):
        reader(os.path.join(os.path.dirname(str(repo)), "elsewhere.py"))


def test_parse_numstat_renames_and_binary():
    text = "3\t1\tsrc/a.py\n-\t-\timg/logo.png\n2\t0\tlib/{old => new}/x.py\n1\t1\tfrom.py => to.py\n"
    stats = vcs.parse_numstat(text, "/r")
    assert stats["/r/src/a.py"] == FileStats(3, 1)
    assert stats["/r/img/logo.png"] == FileStats(0, 0)
    assert stats["/r/lib/new/x.py"] == FileStats(2, 0)
    assert stats["/r/to.py"] == FileStats(1, 1)
