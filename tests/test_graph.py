import pytest

from changegraph.modules.core.graph import (
    DependencyGraph,
    FileDependencyGraph,
    FileStats,
    diff_graphs,
    direct_connections,
    find_cycles,
    find_path_nodes,
    strongly_connected_components,
)


def _graph(adjacency):
    return DependencyGraph.from_adjacency(adjacency).freeze()


def test_add_edges_skips_self_and_duplicate_edges():
    graph = DependencyGraph()
    added = graph.add_edges("/r/a.py", ["/r/b.py", "/r/a.py", "/r/b.py", "/r/c.py"])

    assert added == 2
    assert graph.adjacency_list() == {"/r/a.py": ["/r/b.py", "/r/c.py"]}


def test_adjacency_list_includes_isolated_nodes_on_request():
    graph = DependencyGraph(["/r/a.py", "/r/b.py", "/r/lonely.py"])
    graph.add_edge("/r/a.py", "/r/b.py")

    assert "/r/lonely.py" not in graph.adjacency_list()
    full = graph.adjacency_list(include_isolated=True)
    assert full["/r/lonely.py"] == []
    assert full["/r/b.py"] == []


def test_frozen_graph_rejects_edges():
    graph = DependencyGraph(["/r/a.py"]).freeze()
    with pytest.raises(RuntimeError):
        graph.add_edge("/r/a.py", "/r/b.py")


def test_subgraph_keeps_only_edges_between_retained_nodes():
    graph = _graph({"a": ["b", "c"], "b": ["c"], "c": []})
    sub = graph.subgraph(["a", "c", "missing"])

    assert sub.nodes() == ["a", "c"]
    assert sub.edges() == [("a", "c")]


def test_dependents_are_reverse_edges():
    graph = _graph({"a": ["c"], "b": ["c"], "c": []})
    assert graph.dependents("c") == ["a", "b"]
    assert graph.dependencies("c") == []


def test_find_path_nodes_keeps_intermediate_files():
    graph = _graph({"a": ["b"], "b": ["c"], "c": [], "x": ["a"], "y": ["c"]})
    sub = find_path_nodes(graph, ["a", "c"])

    assert sub.nodes() == ["a", "b", "c"]
    assert sub.edges() == [("a", "b"), ("b", "c")]


def test_find_path_nodes_considers_both_directions():
    graph = _graph({"c": ["b"], "b": ["a"], "a": []})
    sub = find_path_nodes(graph, ["a", "c"])
    assert sub.nodes() == ["a", "b", "c"]


def test_find_path_nodes_with_one_valid_target():
    graph = _graph({"a": ["b"], "b": []})
    sub = find_path_nodes(graph, ["a", "not-there"])

    assert sub.nodes() == ["a"]
    assert sub.edges() == []


def test_find_path_nodes_unconnected_targets():
    graph = _graph({"a": [], "b": [], "c": ["a"]})
    assert find_path_nodes(graph, ["a", "b"]).nodes() == ["a", "b"]


def test_direct_connections_reports_each_direction():
    graph = _graph({"a": ["b"], "b": ["a"], "c": []})
    assert direct_connections(graph, "a", "b") == [("a", "b"), ("b", "a")]
    assert direct_connections(graph, "a", "c") == []


def test_strongly_connected_components_are_sorted():
    graph = _graph({"b": ["a"], "a": ["b"], "c": ["a"]})
    assert strongly_connected_components(graph) == [["a", "b"], ["c"]]


def test_find_cycles_starts_at_smallest_member():
    graph = _graph({"c": ["a"], "a": ["b"], "b": ["c"], "d": ["d2"], "d2": ["d"]})
    assert find_cycles(graph) == [["a", "b", "c"], ["d", "d2"]]


def test_find_cycles_acyclic_graph():
    assert find_cycles(_graph({"a": ["b"], "b": ["c"], "c": []})) == []


def test_annotate_flags_cycles_tests_and_stats():
    graph = _graph({"/r/a.py": ["/r/b.py"], "/r/b.py": ["/r/a.py"], "/r/test_a.py": ["/r/a.py"]})
    stats = {"/r/a.py": FileStats(additions=3, deletions=1)}
    fdg = FileDependencyGraph.annotate(
        graph,
        is_test=lambda p: p.endswith("test_a.py"),
        stats=stats,
    )

    assert fdg.cycles == [["/r/a.py", "/r/b.py"]]
    assert fdg.cycle_edges == {("/r/a.py", "/r/b.py"), ("/r/b.py", "/r/a.py")}
    assert fdg.files["/r/a.py"].in_cycle
    assert not fdg.files["/r/test_a.py"].in_cycle
    assert fdg.files["/r/test_a.py"].is_test
    assert fdg.files["/r/a.py"].stats == FileStats(3, 1)
    assert fdg.files["/r/b.py"].stats is None
    assert fdg.files["/r/b.py"].extension == ".py"


def test_relabel_makes_paths_relative():
    graph = _graph({"/r/src/a.py": ["/r/src/b.py"], "/r/src/b.py": []})
    assert graph.relabel("/r") == {"src/a.py": ["src/b.py"], "src/b.py": []}


def test_to_dict_shape():
    data = _graph({"a": ["b"], "b": []}).to_dict()
    assert data == {"nodes": ["a", "b"], "edges": [["a", "b"]], "adjacency": {"a": ["b"]}}


def test_diff_graphs_reports_added_and_removed_nodes_and_edges():
    old = _graph({"/r/a.py": ["/r/b.py"], "/r/gone.py": ["/r/b.py"]})
    new = _graph({"/r/a.py": ["/r/c.py"], "/r/b.py": []})

    diff = diff_graphs(old, new)
    assert diff.added_nodes == ["/r/c.py"]
    assert diff.removed_nodes == ["/r/gone.py"]
    assert diff.added_edges == [("/r/a.py", "/r/c.py")]
    assert diff.removed_edges == [("/r/a.py", "/r/b.py"), ("/r/gone.py", "/r/b.py")]
    assert diff.summary() == "1 files added, 1 files removed, 1 dependencies added, 2 dependencies removed"
    assert diff.to_dict(root="/r")["added_edges"] == [["a.py", "c.py"]]


def test_diff_of_identical_graphs_is_empty():
    graph = _graph({"/r/a.py": ["/r/b.py"]})
    assert diff_graphs(graph, _graph({"/r/a.py": ["/r/b.py"]})).empty
