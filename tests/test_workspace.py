import json
from pathlib import Path

from changegraph.modules.core.workspace import (
    CONFIG_DIR,
    MAX_WORKERS_ENV,
    WorkspaceConfig,
    filter_paths,
    iter_workspace_files,
    load_workspace_config,
    should_include_path,
)


def _write_config(root: Path, data) -> None:
    (root / CONFIG_DIR).mkdir()
    (root / CONFIG_DIR / "workspace.json").write_text(json.dumps(data))


def test_defaults_without_config(tmp_path: Path, monkeypatch):
    monkeypatch.delenv(MAX_WORKERS_ENV, raising=False)
    config = load_workspace_config(tmp_path)
    assert config.include_tests is True
    assert config.symbol_fallback is True
    assert "**/node_modules/**" in config.exclude_patterns
    assert config.max_workers >= 1


def test_config_file_values(tmp_path: Path, monkeypatch):
    monkeypatch.delenv(MAX_WORKERS_ENV, raising=False)
    _write_config(tmp_path, {
        "activePackages": ["services/api"],
        "excludePatterns": [],
        "includeTests": False,
        "symbolFallback": False,
        "maxWorkers": 3,
    })
    config = load_workspace_config(tmp_path)
    assert config.active_packages == ["services/api"]
    assert config.exclude_patterns == []
    assert config.include_tests is False
    assert config.symbol_fallback is False
    assert config.max_workers == 3


def test_invalid_config_falls_back_to_defaults(tmp_path: Path, monkeypatch):
    monkeypatch.delenv(MAX_WORKERS_ENV, raising=False)
    (tmp_path / CONFIG_DIR).mkdir()
    (tmp_path / CONFIG_DIR / "workspace.json").write_text("{not json")
    config = load_workspace_config(tmp_path)
    assert config.include_tests is True
    assert config.active_packages == []


def test_env_overrides_max_workers(tmp_path: Path, monkeypatch):
    _write_config(tmp_path, {"maxWorkers": 3})
    monkeypatch.setenv(MAX_WORKERS_ENV, "7")
    assert load_workspace_config(tmp_path).max_workers == 7


def test_env_max_workers_ignored_when_not_integer(tmp_path: Path, monkeypatch):
    _write_config(tmp_path, {"maxWorkers": 3})
    monkeypatch.setenv(MAX_WORKERS_ENV, "many")
    assert load_workspace_config(tmp_path).max_workers == 3


def test_should_include_path_patterns():
    config = WorkspaceConfig()
    assert should_include_path("src/app.py", config)
    assert not should_include_path("web/node_modules/lib/index.js", config)
    assert not should_include_path("vendor/pkg/a.go", config)


def test_active_packages_limit_paths():
    config = WorkspaceConfig(active_packages=["services/api"])
    assert should_include_path("services/api/main.go", config)
    assert not should_include_path("services/apiary/main.go", config)


def test_filter_paths_relative_to_root(tmp_path: Path):
    config = WorkspaceConfig()
    paths = [str(tmp_path / "src" / "a.py"), str(tmp_path / "node_modules" / "b.js")]
    assert filter_paths(paths, config, root=tmp_path) == [paths[0]]


def test_iter_workspace_files_skips_excluded_and_hidden(tmp_path: Path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "a.py").write_text("import b\n")
    (tmp_path / "src" / "notes.txt").write_text("x")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "x.js").write_text("")
    (tmp_path / ".hidden").mkdir()
    (tmp_path / ".hidden" / "h.py").write_text("")

    files = list(iter_workspace_files(tmp_path, extensions={".py", ".js"}, workspace_config=WorkspaceConfig()))
    rels = {str(p.relative_to(tmp_path.resolve())) for p in files}
    assert rels == {"src/a.py"}
