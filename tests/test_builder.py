"""Build orchestration tests over an in-memory toy language.

The toy language reads one directive per line:
``import ./x`` (probed as x.toy), ``use pkg/*`` (symbol-filtered
directory import), ``declare Sym``, ``ref Sym``, ``self`` (imports the
file itself), ``outside`` (imports a file outside the supplied set) and
``explode`` (extraction raises).
"""

import os

import pytest

from changegraph.modules.core.builder import annotate, build_dependency_graph
from changegraph.modules.core.content import mapping_reader
from changegraph.modules.core.errors import ERR_READ, ERR_TIMEOUT
from changegraph.modules.core.export_index import ExportIndexBuilder
from changegraph.modules.core.imports import ImportDeclaration, ImportKind, make_extraction
from changegraph.modules.core.resolution import filter_by_symbols, probe_paths
from changegraph.modules.languages.base import BaseLanguage, MaturityLevel


class ToyLanguage(BaseLanguage):
    name = "toy"
    extensions = (".toy",)
    maturity = MaturityLevel.STABLE

    def __init__(self):
        self.finalized_with = None

    def extract(self, content, path):
        imports, declared, referenced = [], [], []
        for line in content.decode().splitlines():
            word, _, arg = line.strip().partition(" ")
            if word == "explode":
                raise ValueError("grammar crashed")
            if word in ("import", "use", "self", "outside"):
                imports.append(ImportDeclaration(arg or word, ImportKind.INTERNAL, directive=word, origin=path))
            elif word == "declare":
                declared.append(arg)
            elif word == "ref":
                referenced.append(arg)
        return make_extraction(imports, declared=declared, referenced=referenced)

    def build_index(self, ctx, extractions):
        builder = ExportIndexBuilder()
        for path, extraction in extractions.items():
            builder.add_all(os.path.dirname(path), extraction.declared_symbols, path)
        return builder.build()

    def resolve(self, path, extraction, state, ctx):
        targets = []
        for imp in extraction.imports:
            if imp.directive == "import":
                targets.extend(probe_paths(os.path.dirname(path), imp.path, [".toy"], ctx.supplied))
            elif imp.directive == "use":
                scope = os.path.normpath(os.path.join(os.path.dirname(path), imp.path.rstrip("/*")))
                targets.extend(
                    filter_by_symbols(
                        state,
                        scope,
                        extraction.referenced_identifiers,
                        excluded=extraction.declared_symbols,
                        fallback=ctx.symbol_fallback,
                    )
                )
            elif imp.directive == "self":
                targets.append(path)
            elif imp.directive == "outside":
                targets.append("/elsewhere/thing.toy")
        return targets

    def is_test_file(self, path, reader=None):
        return os.path.basename(path).startswith("test_")

    def finalize(self, graph, state, ctx, extractions):
        self.finalized_with = graph.edges()


class ToyRegistry:
    def __init__(self):
        self.toy = ToyLanguage()

    def modules(self):
        return (self.toy,)

    def module_for_path(self, path):
        return self.toy if path.endswith(".toy") else None

    def is_test_file(self, path, reader=None):
        module = self.module_for_path(path)
        return module.is_test_file(path, reader) if module else False


def _build(files, **kwargs):
    registry = kwargs.pop("registry", ToyRegistry())
    return build_dependency_graph(list(files), mapping_reader(files), registry=registry, **kwargs)


def test_relative_import_probing_and_index_file():
    files = {
        "/r/app.toy": "import ./lib\nimport ./feature\n",
        "/r/lib.toy": "",
        "/r/feature/index.toy": "",
    }
    result = _build(files)
    assert result.graph.adjacency_list() == {"/r/app.toy": ["/r/feature/index.toy", "/r/lib.toy"]}
    assert result.errors == [] and result.unscheduled == []


def test_no_self_edges():
    result = _build({"/r/a.toy": "self\ndeclare A\nref A\nuse ./*\n"})
    assert result.graph.edges() == []


def test_targets_stay_inside_supplied_set():
    result = _build({"/r/a.toy": "outside\nimport ./missing\n"})
    assert result.graph.nodes() == ["/r/a.toy"]
    assert result.graph.edges() == []


def test_wildcard_import_links_only_declarers_of_referenced_symbols():
    files = {
        "/r/main.toy": "use pkg/*\nref X\n",
        "/r/pkg/a.toy": "declare X\n",
        "/r/pkg/b.toy": "declare Y\n",
    }
    assert _build(files).graph.dependencies("/r/main.toy") == ["/r/pkg/a.toy"]


def test_wildcard_fallback_policy():
    files = {
        "/r/main.toy": "use pkg/*\nref Unknown\n",
        "/r/pkg/a.toy": "declare X\n",
        "/r/pkg/b.toy": "declare Y\n",
    }
    assert _build(files).graph.dependencies("/r/main.toy") == ["/r/pkg/a.toy", "/r/pkg/b.toy"]
    assert _build(files, symbol_fallback=False).graph.dependencies("/r/main.toy") == []


def test_build_is_deterministic():
    files = {f"/r/m{i}.toy": f"import ./m{(i + 1) % 20}\nimport ./m{(i + 7) % 20}\n" for i in range(20)}
    first = _build(files, max_workers=8).graph.edges()
    second = _build(files, max_workers=3).graph.edges()
    assert first == second
    assert len(first) == 40


def test_cycles_are_kept():
    files = {"/r/a.toy": "import ./b\n", "/r/b.toy": "import ./a\n"}
    assert _build(files).graph.edges() == [("/r/a.toy", "/r/b.toy"), ("/r/b.toy", "/r/a.toy")]


def test_unreadable_file_is_reported_not_fatal():
    files = {"/r/a.toy": "import ./b\n", "/r/b.toy": ""}
    registry = ToyRegistry()
    result = build_dependency_graph(
        ["/r/a.toy", "/r/b.toy", "/r/gone.toy"],
        mapping_reader(files),
        registry=registry,
    )
    assert result.graph.edges() == [("/r/a.toy", "/r/b.toy")]
    assert "/r/gone.toy" in result.graph
    assert [(e.path, e.code) for e in result.errors] == [("/r/gone.toy", ERR_READ)]
    assert result.unscheduled == []


def test_extraction_failure_means_no_edges_and_no_error():
    files = {"/r/a.toy": "import ./b\nexplode\n", "/r/b.toy": "", "/r/c.toy": "import ./b\n"}
    result = _build(files)
    assert result.graph.edges() == [("/r/c.toy", "/r/b.toy")]
    assert result.errors == []


def test_unsupported_files_are_nodes_without_edges():
    files = {"/r/a.toy": "import ./README\n", "/r/README.md": "# hi"}
    result = _build(files)
    assert result.unsupported == ["/r/README.md"]
    assert "/r/README.md" in result.graph
    assert result.graph.edges() == []


def test_exclude_tests():
    files = {"/r/a.toy": "import ./b\n", "/r/b.toy": "", "/r/test_a.toy": "import ./a\n"}
    result = _build(files, include_tests=False)
    assert result.graph.nodes() == ["/r/a.toy", "/r/b.toy"]
    assert result.graph.frozen


def test_finalize_sees_resolved_edges():
    registry = ToyRegistry()
    _build({"/r/a.toy": "import ./b\n", "/r/b.toy": ""}, registry=registry)
    assert registry.toy.finalized_with == [("/r/a.toy", "/r/b.toy")]


def test_expired_deadline_schedules_nothing():
    files = {"/r/a.toy": "import ./b\n", "/r/b.toy": ""}
    result = _build(files, timeout=0)
    assert sorted(result.unscheduled) == ["/r/a.toy", "/r/b.toy"]
    assert {e.code for e in result.errors} == {ERR_TIMEOUT}
    assert result.graph.edges() == []


def test_graph_is_frozen():
    result = _build({"/r/a.toy": ""})
    with pytest.raises(RuntimeError):
        result.graph.add_edge("/r/a.toy", "/r/b.toy")


def test_annotate_marks_tests_and_cycles():
    files = {"/r/a.toy": "import ./b\n", "/r/b.toy": "import ./a\n", "/r/test_a.toy": "import ./a\n"}
    registry = ToyRegistry()
    result = _build(files, registry=registry)
    fdg = annotate(result, mapping_reader(files), registry=registry)
    assert fdg.files["/r/test_a.toy"].is_test
    assert fdg.files["/r/a.toy"].in_cycle
    assert fdg.cycles == [["/r/a.toy", "/r/b.toy"]]
