"""Dependency graph output formatting helpers."""

from __future__ import annotations

import base64
import json
import os
from collections import Counter
from typing import Iterable
from urllib.parse import quote

from .graph import FileDependencyGraph, FileMetadata

FORMATS = ("json", "dot", "mermaid", "text")

# Fill colours for files whose extension is not the majority one.
EXTENSION_PALETTE = (
    "lightblue", "lightyellow", "mistyrose", "lightsalmon",
    "lightpink", "lavender", "peachpuff", "plum", "powderblue", "khaki",
    "palegoldenrod", "thistle",
)

TEST_COLOR = "lightgreen"
DEFAULT_COLOR = "white"
NEW_FILE_MARKER = "\U0001fab4"


def _path_suffix(path: str, depth: int) -> str:
    parts = os.path.normpath(path).replace(os.sep, "/").lstrip("/").split("/")
    return "/".join(parts[-min(depth, len(parts)):])


def build_node_names(paths: Iterable[str]) -> dict[str, str]:
    """Display name per path: the basename, or the shortest suffix that tells same-named files apart."""
    by_base: dict[str, list[str]] = {}
    for path in paths:
        by_base.setdefault(os.path.basename(path), []).append(path)

    names: dict[str, str] = {}
    for base, group in by_base.items():
        if len(group) == 1:
            names[group[0]] = base
            continue
        depth = 2
        while True:
            suffixes = [_path_suffix(p, depth) for p in group]
            longest = max(len(os.path.normpath(p).split(os.sep)) for p in group)
            if len(set(suffixes)) == len(group) or depth >= longest:
                names.update(zip(group, suffixes))
                break
            depth += 1
    return names


def extension_colors(paths: Iterable[str]) -> dict[str, str]:
    extensions = sorted({os.path.splitext(p)[1] for p in paths} - {""})
    return {ext: EXTENSION_PALETTE[i % len(EXTENSION_PALETTE)] for i, ext in enumerate(extensions)}


def majority_extension(paths: Iterable[str]) -> str:
    """Most common extension; ties go to the alphabetically first."""
    counts = Counter(os.path.splitext(p)[1] for p in paths)
    if not counts:
        return ""
    return min(counts, key=lambda ext: (-counts[ext], ext))


def _relative(path: str, root: str | None) -> str:
    return os.path.relpath(path, root) if root else path


def _stats_label(name: str, meta: FileMetadata | None, line_break: str) -> str:
    if meta is None or meta.stats is None:
        return name
    stats = meta.stats
    prefix = f"{NEW_FILE_MARKER} {name}" if stats.is_new else name
    parts = []
    if stats.additions > 0:
        parts.append(f"+{stats.additions}")
    if stats.deletions > 0:
        parts.append(f"-{stats.deletions}")
    if parts:
        return f"{prefix}{line_break}{' '.join(parts)}"
    return prefix


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def graph_payload(fdg: FileDependencyGraph, root: str | None = None, **meta) -> dict:
    """Nodes, edges, adjacency and per-file metadata as a JSON-ready dict."""
    graph = fdg.graph

    def rel(path: str) -> str:
        return _relative(path, root)

    files = {}
    for path, info in sorted(fdg.files.items()):
        files[rel(path)] = {
            "is_test": info.is_test,
            "extension": info.extension,
            "in_cycle": info.in_cycle,
            "stats": (
                {
                    "additions": info.stats.additions,
                    "deletions": info.stats.deletions,
                    "is_new": info.stats.is_new,
                }
                if info.stats is not None
                else None
            ),
        }
    payload = {
        "nodes": sorted(rel(n) for n in graph.nodes()),
        "edges": sorted([rel(a), rel(b)] for a, b in graph.edges()),
        "adjacency": {
            rel(src): sorted(rel(dst) for dst in targets)
            for src, targets in graph.adjacency_list(include_isolated=True).items()
        },
        "meta": {
            "files": files,
            "cycles": [[rel(p) for p in cycle] for cycle in fdg.cycles],
            **meta,
        },
    }
    return payload


def format_json(fdg: FileDependencyGraph, root: str | None = None, **meta) -> str:
    return json.dumps(graph_payload(fdg, root=root, **meta), indent=2)


def format_dot(fdg: FileDependencyGraph, label: str | None = None, root: str | None = None) -> str:
    """Graphviz digraph with tests, foreign extensions and cycles highlighted."""
    adjacency = fdg.graph.adjacency_list(include_isolated=True)
    paths = sorted(adjacency)
    names = build_node_names([_relative(p, root) for p in paths])
    name_of = {p: names[_relative(p, root)] for p in paths}

    colors = extension_colors(paths)
    majority = majority_extension(paths)
    mixed = len({os.path.splitext(p)[1] for p in paths}) > 1

    lines = ["digraph dependencies {", "  rankdir=LR;", "  node [shape=box];"]
    if label:
        lines += [
            f"  label={_quote(label)};",
            "  labelloc=t;",
            "  labeljust=l;",
            "  fontsize=10;",
            "  fontname=Courier;",
        ]
    lines.append("")

    if fdg.cycles:
        lines.append("  // Cyclic paths:")
        for i, cycle in enumerate(fdg.cycles, 1):
            hops = [os.path.basename(p) for p in cycle] + [os.path.basename(cycle[0])]
            lines.append(f"  // C{i}: {' -> '.join(hops)}")
        lines.append("")

    for path in paths:
        meta = fdg.files.get(path)
        ext = os.path.splitext(path)[1]
        if meta is not None and meta.is_test:
            color = TEST_COLOR
        elif ext == majority or not mixed:
            color = DEFAULT_COLOR
        else:
            color = colors.get(ext, DEFAULT_COLOR)
        node_label = _stats_label(name_of[path], meta, "\n")
        attrs = f"label={_quote(node_label)}, style=filled, fillcolor={color}"
        if meta is not None and meta.in_cycle:
            attrs += ", color=red"
        lines.append(f"  {_quote(name_of[path])} [{attrs}];")

    edges = fdg.graph.edges()
    if paths and edges:
        lines.append("")
    for src, dst in edges:
        edge = f"  {_quote(name_of[src])} -> {_quote(name_of[dst])}"
        if (src, dst) in fdg.cycle_edges:
            edge += " [color=red, style=dashed]"
        lines.append(edge + ";")

    lines.append("}")
    return "\n".join(lines)


def format_mermaid(fdg: FileDependencyGraph, label: str | None = None, root: str | None = None) -> str:
    """Mermaid flowchart; node ids follow sorted path order."""
    paths = fdg.graph.nodes()
    names = build_node_names([_relative(p, root) for p in paths])
    ids = {path: f"n{i}" for i, path in enumerate(paths)}

    lines = []
    if label:
        lines += ["---", f"title: {label}", "---"]
    lines.append("flowchart LR")
    for path in paths:
        text = _stats_label(names[_relative(path, root)], fdg.files.get(path), "<br/>")
        lines.append(f'    {ids[path]}["{text.replace(chr(34), "#quot;")}"]')
    lines.append("")
    for src, dst in fdg.graph.edges():
        lines.append(f"    {ids[src]} --> {ids[dst]}")
    lines.append("")

    tests = [ids[p] for p in paths if fdg.files.get(p) and fdg.files[p].is_test]
    new_files = [
        ids[p]
        for p in paths
        if p in fdg.files and not fdg.files[p].is_test and fdg.files[p].stats and fdg.files[p].stats.is_new
    ]
    cyclic = [ids[p] for p in paths if fdg.files.get(p) and fdg.files[p].in_cycle]
    lines.append("    classDef testFile fill:#90EE90,stroke:#228B22,color:#000000")
    lines.append("    classDef newFile fill:#87CEEB,stroke:#4682B4")
    lines.append("    classDef cycle stroke:#FF0000,stroke-width:2px")
    if tests:
        lines.append(f"    class {','.join(tests)} testFile")
    if new_files:
        lines.append(f"    class {','.join(new_files)} newFile")
    if cyclic:
        lines.append(f"    class {','.join(cyclic)} cycle")
    return "\n".join(lines)


def format_text(fdg: FileDependencyGraph, root: str | None = None) -> str:
    """One ``file -> dependency`` line per edge; files without edges stand alone."""
    lines = []
    connected = set()
    for src, dst in fdg.graph.edges():
        connected.update((src, dst))
        lines.append(f"{_relative(src, root)} -> {_relative(dst, root)}")
    lines.extend(_relative(p, root) for p in fdg.graph.nodes() if p not in connected)
    return "\n".join(lines)


def format_graph(
    fdg: FileDependencyGraph,
    fmt: str = "json",
    label: str | None = None,
    root: str | None = None,
    **meta,
) -> str:
    """Format a dependency graph for output.

    Args:
        fdg: Annotated graph
        fmt: "json", "dot", "mermaid", or "text"
        label: Optional caption (dot and mermaid)
        root: Paths are shown relative to this directory when given
    """
    if fmt == "json":
        return format_json(fdg, root=root, **meta)
    if fmt == "dot":
        return format_dot(fdg, label=label, root=root)
    if fmt == "mermaid":
        return format_mermaid(fdg, label=label, root=root)
    if fmt == "text":
        return format_text(fdg, root=root)
    raise ValueError(f"Unknown format: {fmt}")


def viewer_url(output: str, fmt: str) -> str | None:
    """Link that opens the rendered graph in an online viewer, if one exists for ``fmt``."""
    if fmt == "dot":
        return f"https://dreampuf.github.io/GraphvizOnline/?engine=dot#{quote(output, safe='')}"
    if fmt == "mermaid":
        payload = json.dumps(
            {"code": output, "mermaid": {"theme": "default"}, "autoSync": True, "updateDiagram": True},
            separators=(",", ":"),
        )
        return f"https://mermaid.live/edit#base64:{base64.urlsafe_b64encode(payload.encode()).decode()}"
    return None
