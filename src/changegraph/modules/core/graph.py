"""File dependency graph: assembly, adjacency views and path queries.

Edges point from a file to the files it depends on. Self-edges and
duplicate pairs are dropped on insert; cycles are kept as they are.
"""

from __future__ import annotations

import os
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Iterable, Iterator


class DependencyGraph:
    """Directed file graph. Becomes immutable after :meth:`freeze`."""

    def __init__(self, nodes: Iterable[str] = ()) -> None:
        self._nodes: set[str] = set(nodes)
        self._out: dict[str, set[str]] = defaultdict(set)
        self._in: dict[str, set[str]] = defaultdict(set)
        self._frozen = False

    # -- assembly -----------------------------------------------------------

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RuntimeError("dependency graph is frozen")

    def add_node(self, path: str) -> None:
        self._check_mutable()
        self._nodes.add(path)

    def add_edge(self, from_file: str, to_file: str) -> bool:
        """Add one edge; False when it is a self-edge or already present."""
        self._check_mutable()
        if from_file == to_file:
            return False
        self._nodes.add(from_file)
        self._nodes.add(to_file)
        targets = self._out[from_file]
        if to_file in targets:
            return False
        targets.add(to_file)
        self._in[to_file].add(from_file)
        return True

    def add_edges(self, from_file: str, to_files: Iterable[str]) -> int:
        """Append an edge per target, skipping self and duplicate edges."""
        self._check_mutable()
        self._nodes.add(from_file)
        return sum(1 for to_file in to_files if self.add_edge(from_file, to_file))

    def freeze(self) -> "DependencyGraph":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    # -- queries ------------------------------------------------------------

    def __contains__(self, path: object) -> bool:
        return path in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._nodes))

    def nodes(self) -> list[str]:
        return sorted(self._nodes)

    def edges(self) -> list[tuple[str, str]]:
        return sorted((src, dst) for src, targets in self._out.items() for dst in targets)

    def edge_count(self) -> int:
        return sum(len(targets) for targets in self._out.values())

    def has_edge(self, from_file: str, to_file: str) -> bool:
        return to_file in self._out.get(from_file, ())

    def dependencies(self, path: str) -> list[str]:
        return sorted(self._out.get(path, ()))

    def dependents(self, path: str) -> list[str]:
        return sorted(self._in.get(path, ()))

    def adjacency_list(self, include_isolated: bool = False) -> dict[str, list[str]]:
        """Map each node with outgoing edges to its sorted, duplicate-free targets.

        With ``include_isolated`` every node appears, with an empty list when
        it has no dependencies.
        """
        adjacency = {src: sorted(targets) for src, targets in self._out.items() if targets}
        if include_isolated:
            for node in self._nodes:
                adjacency.setdefault(node, [])
        return dict(sorted(adjacency.items()))

    def subgraph(self, keep: Iterable[str]) -> "DependencyGraph":
        """Nodes in ``keep`` that exist here, with edges between them."""
        kept = {node for node in keep if node in self._nodes}
        sub = DependencyGraph(kept)
        for src in kept:
            for dst in self._out.get(src, ()):
                if dst in kept:
                    sub.add_edge(src, dst)
        return sub.freeze()

    def relabel(self, root: str) -> dict[str, list[str]]:
        """Adjacency (isolated nodes included) with paths relative to ``root``."""
        return {
            os.path.relpath(src, root): [os.path.relpath(dst, root) for dst in targets]
            for src, targets in self.adjacency_list(include_isolated=True).items()
        }

    def to_dict(self) -> dict:
        return {
            "nodes": self.nodes(),
            "edges": [list(edge) for edge in self.edges()],
            "adjacency": self.adjacency_list(),
        }

    @classmethod
    def from_adjacency(cls, adjacency: dict[str, Iterable[str]]) -> "DependencyGraph":
        graph = cls(adjacency)
        for src, targets in adjacency.items():
            graph.add_edges(src, targets)
        return graph


# ---------------------------------------------------------------------------
# Path and cycle queries
# ---------------------------------------------------------------------------


def _reachable(start: str, neighbours) -> set[str]:
    seen = {start}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for nxt in neighbours(current):
            if nxt not in seen:
                seen.add(nxt)
                queue.append(nxt)
    return seen


def find_path_nodes(graph: DependencyGraph, targets: Iterable[str]) -> DependencyGraph:
    """Subgraph of every node on a directed path between any two targets.

    Paths are considered in both directions for each pair. Targets absent
    from the graph are ignored; with fewer than two remaining the result
    holds just those targets.
    """
    valid = sorted({target for target in targets if target in graph})
    if len(valid) < 2:
        return graph.subgraph(valid)

    forward = {node: _reachable(node, graph.dependencies) for node in valid}
    backward = {node: _reachable(node, graph.dependents) for node in valid}

    keep = set(valid)
    for i, a in enumerate(valid):
        for b in valid[i + 1:]:
            keep |= forward[a] & backward[b]
            keep |= forward[b] & backward[a]
    return graph.subgraph(keep)


def direct_connections(graph: DependencyGraph, a: str, b: str) -> list[tuple[str, str]]:
    """The direct edges between ``a`` and ``b``, in either direction."""
    found = []
    if graph.has_edge(a, b):
        found.append((a, b))
    if graph.has_edge(b, a):
        found.append((b, a))
    return found


@dataclass(frozen=True)
class GraphDiff:
    """Nodes and edges present in only one of two graph snapshots."""

    added_nodes: list[str] = field(default_factory=list)
    removed_nodes: list[str] = field(default_factory=list)
    added_edges: list[tuple[str, str]] = field(default_factory=list)
    removed_edges: list[tuple[str, str]] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.added_nodes or self.removed_nodes or self.added_edges or self.removed_edges)

    def summary(self) -> str:
        return (
            f"{len(self.added_nodes)} files added, {len(self.removed_nodes)} files removed, "
            f"{len(self.added_edges)} dependencies added, {len(self.removed_edges)} dependencies removed"
        )

    def to_dict(self, root: str | None = None) -> dict:
        def rel(path: str) -> str:
            return os.path.relpath(path, root) if root else path

        return {
            "added_nodes": [rel(p) for p in self.added_nodes],
            "removed_nodes": [rel(p) for p in self.removed_nodes],
            "added_edges": [[rel(a), rel(b)] for a, b in self.added_edges],
            "removed_edges": [[rel(a), rel(b)] for a, b in self.removed_edges],
        }


def diff_graphs(old: DependencyGraph, new: DependencyGraph) -> GraphDiff:
    old_nodes, new_nodes = set(old.nodes()), set(new.nodes())
    old_edges, new_edges = set(old.edges()), set(new.edges())
    return GraphDiff(
        added_nodes=sorted(new_nodes - old_nodes),
        removed_nodes=sorted(old_nodes - new_nodes),
        added_edges=sorted(new_edges - old_edges),
        removed_edges=sorted(old_edges - new_edges),
    )


def strongly_connected_components(graph: DependencyGraph) -> list[list[str]]:
    """Tarjan's algorithm, iterative. Components are sorted internally and by first member."""
    index_of: dict[str, int] = {}
    low: dict[str, int] = {}
    on_stack: set[str] = set()
    stack: list[str] = []
    components: list[list[str]] = []
    counter = 0

    for root in graph.nodes():
        if root in index_of:
            continue
        work = [(root, iter(graph.dependencies(root)))]
        index_of[root] = low[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        while work:
            node, children = work[-1]
            advanced = False
            for child in children:
                if child not in index_of:
                    index_of[child] = low[child] = counter
                    counter += 1
                    stack.append(child)
                    on_stack.add(child)
                    work.append((child, iter(graph.dependencies(child))))
                    advanced = True
                    break
                if child in on_stack:
                    low[node] = min(low[node], index_of[child])
            if advanced:
                continue
            work.pop()
            if work:
                parent = work[-1][0]
                low[parent] = min(low[parent], low[node])
            if low[node] == index_of[node]:
                component = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                components.append(sorted(component))
    return sorted(components, key=lambda comp: comp[0])


def _shortest_cycle_through(graph: DependencyGraph, start: str, members: set[str]) -> list[str]:
    parents: dict[str, str] = {}
    queue = deque([start])
    seen = {start}
    while queue:
        current = queue.popleft()
        for nxt in graph.dependencies(current):
            if nxt == start:
                path = [current]
                while path[-1] != start:
                    path.append(parents[path[-1]])
                return list(reversed(path))
            if nxt in members and nxt not in seen:
                seen.add(nxt)
                parents[nxt] = current
                queue.append(nxt)
    return [start]


def find_cycles(graph: DependencyGraph) -> list[list[str]]:
    """One canonical cycle per cyclic component.

    Each cycle starts at the component's smallest path and follows a
    shortest route back to it.
    """
    cycles = []
    for component in strongly_connected_components(graph):
        if len(component) < 2:
            continue
        cycles.append(_shortest_cycle_through(graph, component[0], set(component)))
    return cycles


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileStats:
    additions: int = 0
    deletions: int = 0
    is_new: bool = False


@dataclass
class FileMetadata:
    is_test: bool = False
    extension: str = ""
    stats: FileStats | None = None
    in_cycle: bool = False


@dataclass
class FileDependencyGraph:
    """A frozen graph plus per-file and per-edge annotations."""

    graph: DependencyGraph
    files: dict[str, FileMetadata] = field(default_factory=dict)
    cycles: list[list[str]] = field(default_factory=list)
    cycle_edges: set[tuple[str, str]] = field(default_factory=set)

    @classmethod
    def annotate(
        cls,
        graph: DependencyGraph,
        is_test=None,
        stats: dict[str, FileStats] | None = None,
    ) -> "FileDependencyGraph":
        cycles = find_cycles(graph)
        cycle_nodes: set[str] = set()
        cycle_edges: set[tuple[str, str]] = set()
        for component in strongly_connected_components(graph):
            if len(component) < 2:
                continue
            members = set(component)
            cycle_nodes |= members
            for src in component:
                cycle_edges.update((src, dst) for dst in graph.dependencies(src) if dst in members)

        files = {}
        for node in graph.nodes():
            files[node] = FileMetadata(
                is_test=bool(is_test(node)) if is_test else False,
                extension=os.path.splitext(node)[1],
                stats=(stats or {}).get(node),
                in_cycle=node in cycle_nodes,
            )
        return cls(graph=graph, files=files, cycles=cycles, cycle_edges=cycle_edges)
