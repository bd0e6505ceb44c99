#!/usr/bin/env python3
"""
changegraph CLI - file dependency graphs for reviewing a change.

Usage:
    changegraph graph                      Graph uncommitted changes
    changegraph graph --commit HEAD        Graph the files one commit touched
    changegraph graph --range main..HEAD   Graph the files a range touched
    changegraph graph src/                 Graph every supported file under src/
    changegraph why a.py b.py              Explain how two files are connected
    changegraph diff --commit A,B          Dependency changes between two commits
    changegraph languages                  List supported languages
"""
import argparse
import json
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Optional

from . import __version__
from .modules.core import vcs
from .modules.core.builder import annotate, build_dependency_graph
from .modules.core.content import CachingReader, ContentReader, GitRevisionReader, filesystem_reader
from .modules.core.errors import ERR_INTERNAL, ERR_NOT_FOUND, ERR_VCS, VcsError, make_error
from .modules.core.graph import FileStats, diff_graphs, direct_connections, find_path_nodes
from .modules.core.output_formats import FORMATS, format_graph, graph_payload, viewer_url
from .modules.core.workspace import WorkspaceConfig, filter_paths, iter_workspace_files, load_workspace_config
from .modules.languages import registry

logger = logging.getLogger(__name__)


def _machine_output(result: dict | list, args) -> None:
    """Print result in machine-readable format if --machine flag is set.

    For --machine mode, wraps result in success envelope:
    {"success": true, "result": <result>}

    Otherwise prints with standard indentation.
    """
    if getattr(args, "machine", False):
        wrapped = {"success": True, "result": result}
        print(json.dumps(wrapped, separators=(",", ":"), ensure_ascii=False))
    else:
        print(json.dumps(result, indent=2))


@dataclass
class FileSelection:
    """The supplied file set for one invocation and where its content comes from."""

    files: list[str]
    reader: ContentReader
    root: Optional[str] = None
    stats: dict[str, FileStats] = field(default_factory=dict)
    scope: str = "paths"
    config: WorkspaceConfig = field(default_factory=WorkspaceConfig)


def _add_selection_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--repo", default=".", help="Repository or project root (default: .)")
    scope = p.add_mutually_exclusive_group()
    scope.add_argument("--commit", "-c", help="Files changed by one commit")
    scope.add_argument("--range", "-r", dest="commit_range", help="Files changed in BASE..HEAD")
    scope.add_argument(
        "--uncommitted",
        "-u",
        action="store_true",
        help="Uncommitted and untracked files (default inside a git repository)",
    )
    p.add_argument(
        "--exclude-tests",
        action="store_true",
        help="Drop test files from the graph",
    )
    p.add_argument("--timeout", type=float, default=None, help="Stop scheduling files after N seconds")


def _expand(paths: list[str], config) -> list[str]:
    extensions = set(registry.supported_extensions())
    files = []
    for path in paths:
        if os.path.isdir(path):
            files.extend(str(p) for p in iter_workspace_files(path, extensions=extensions, workspace_config=config))
        elif os.path.exists(path):
            files.append(os.path.abspath(path))
        else:
            raise FileNotFoundError(f"No such file or directory: {path}")
    return files


def _select_files(args, paths: list[str]) -> FileSelection:
    """Resolve CLI scope flags into a file set, a content reader and change stats."""
    repo = os.path.abspath(args.repo)
    config = load_workspace_config(repo)
    commit = getattr(args, "commit", None)
    commit_range = getattr(args, "commit_range", None)
    uncommitted = getattr(args, "uncommitted", False)

    if paths and not (commit or commit_range or uncommitted):
        reader = filesystem_reader()
        root = vcs.repository_root(repo) if vcs.is_repository(repo) else repo
        return FileSelection(files=_expand(paths, config), reader=reader, root=root, config=config)

    if not vcs.is_repository(repo):
        if commit or commit_range or uncommitted:
            raise VcsError(f"not a git repository: {repo}")
        return FileSelection(files=_expand([repo], config), reader=filesystem_reader(), root=repo, config=config)

    root = vcs.repository_root(repo)
    if commit:
        files = vcs.changed_files(root, commit=commit)
        stats = vcs.file_stats(root, commit=commit)
        reader: ContentReader = GitRevisionReader(root, commit)
        scope = f"commit {commit}"
    elif commit_range:
        base, head = vcs.parse_range(commit_range)
        files = vcs.changed_files(root, base=base, head=head)
        stats = vcs.file_stats(root, base=base, head=head)
        reader = GitRevisionReader(root, head)
        scope = f"range {base}..{head}"
    else:
        files = vcs.changed_files(root)
        stats = vcs.file_stats(root)
        reader = filesystem_reader()
        scope = "uncommitted"

    files = filter_paths(files, config, root=root)
    if paths:
        wanted = [os.path.abspath(p) for p in paths]
        files = [f for f in files if any(f == w or f.startswith(w + os.sep) for w in wanted)]
    logger.debug("%s: %d changed files", scope, len(files))
    return FileSelection(files=files, reader=reader, root=root, stats=stats, scope=scope, config=config)


def _build(args, selection: FileSelection):
    result = build_dependency_graph(
        selection.files,
        selection.reader,
        max_workers=selection.config.max_workers,
        symbol_fallback=selection.config.symbol_fallback,
        include_tests=selection.config.include_tests and not args.exclude_tests,
        timeout=args.timeout,
    )
    for error in result.errors:
        logger.warning("%s: %s", error.code, error.message)
    return result


def _cmd_graph(args) -> None:
    selection = _select_files(args, args.paths)
    result = _build(args, selection)
    graph = result.graph
    if args.between:
        targets = [os.path.abspath(p) for p in args.between]
        missing = [p for p in args.between if os.path.abspath(p) not in graph]
        if missing:
            logger.warning("not in graph: %s", ", ".join(missing))
        graph = find_path_nodes(graph, targets)
        result.graph = graph

    fdg = annotate(result, selection.reader, stats=selection.stats)
    meta = {
        "scope": selection.scope,
        "errors": [e.to_dict() for e in result.errors],
        "unsupported": [os.path.relpath(p, selection.root) if selection.root else p for p in result.unsupported],
    }

    if args.format == "json":
        _machine_output(graph_payload(fdg, root=selection.root, **meta), args)
        return

    output = format_graph(fdg, args.format, label=args.label, root=selection.root)
    url = viewer_url(output, args.format) if args.url else None
    if getattr(args, "machine", False):
        _machine_output({"format": args.format, "output": output, "url": url, **meta}, args)
        return
    print(output)
    if url:
        print(url)


def _cmd_why(args) -> None:
    source, target = os.path.abspath(args.source), os.path.abspath(args.target)
    paths = args.paths
    if not paths and not (args.commit or args.commit_range or args.uncommitted):
        paths = [args.repo]
    selection = _select_files(args, paths)
    files = set(selection.files) | {source, target}
    selection.files = sorted(files)
    result = _build(args, selection)

    for name, path in ((args.source, source), (args.target, target)):
        if path not in result.graph:
            raise FileNotFoundError(f"{name} is not in the graph")

    def rel(path: str) -> str:
        return os.path.relpath(path, selection.root) if selection.root else path

    sub = find_path_nodes(result.graph, [source, target])
    report = {
        "from": rel(source),
        "to": rel(target),
        "direct": [[rel(a), rel(b)] for a, b in direct_connections(result.graph, source, target)],
        "paths": {rel(src): [rel(d) for d in deps] for src, deps in sub.adjacency_list().items()},
    }
    if getattr(args, "machine", False) or args.json:
        _machine_output(report, args)
        return

    if report["direct"]:
        for a, b in report["direct"]:
            print(f"{a} -> {b}")
    elif report["paths"]:
        print(f"No direct edge between {report['from']} and {report['to']}; connected through:")
        for src, deps in report["paths"].items():
            for dep in deps:
                print(f"  {src} -> {dep}")
    else:
        print(f"{report['from']} and {report['to']} are not connected")


def parse_commit_spec(spec: str) -> tuple[Optional[str], str]:
    """``<commit>`` -> (None, commit); ``<A>,<B>`` -> (A, B)."""
    spec = spec.strip()
    if not spec:
        raise ValueError("--commit requires a value")
    if spec.count(",") > 1:
        raise ValueError(f"invalid --commit value {spec!r}: expected <commit> or <A>,<B>")
    if "," not in spec:
        return None, spec
    left, _, right = spec.partition(",")
    left, right = left.strip(), right.strip()
    if not left or not right:
        raise ValueError(f"invalid --commit value {spec!r}: both refs are required in <A>,<B>")
    return left, right


def _present(files: list[str], reader: ContentReader) -> list[str]:
    present = []
    for path in files:
        try:
            reader(path)
        except OSError:
            continue
        present.append(path)
    return present


def _cmd_diff(args) -> None:
    repo = os.path.abspath(args.repo)
    if not vcs.is_repository(repo):
        raise VcsError(f"not a git repository: {repo}")
    root = vcs.repository_root(repo)
    config = load_workspace_config(root)

    old_reader: Optional[ContentReader]
    if args.commit is None:
        mode, base, target = "working-tree", "HEAD", None
        files = vcs.changed_files(root, include_deleted=True)
        old_reader = GitRevisionReader(root, "HEAD")
        new_reader: ContentReader = filesystem_reader()
    else:
        base, target = parse_commit_spec(args.commit)
        mode = "commit"
        if base is None:
            vcs.validate_ref(root, target)
            base = vcs.parent_commit(root, target)
            files = vcs.changed_files(root, commit=target, include_deleted=True)
        else:
            files = vcs.changed_files(root, base=base, head=target, include_deleted=True)
        old_reader = GitRevisionReader(root, base) if base else None
        new_reader = GitRevisionReader(root, target)

    files = filter_paths(files, config, root=root)
    new_reader = CachingReader(new_reader)
    snapshots = []
    for reader in (old_reader, new_reader):
        if reader is None:
            # Root commit: nothing before it.
            snapshots.append(FileSelection(files=[], reader=new_reader, root=root, config=config))
            continue
        reader = CachingReader(reader)
        snapshots.append(FileSelection(files=_present(files, reader), reader=reader, root=root, config=config))
    old, new = (_build(args, selection).graph for selection in snapshots)

    diff = diff_graphs(old, new)
    logger.debug("diff %s: %d changed files, %s", mode, len(files), diff.summary())
    report = {
        "mode": mode,
        "base": base,
        "target": target,
        **diff.to_dict(root),
        "summary": diff.summary(),
    }
    if getattr(args, "machine", False) or args.json:
        _machine_output(report, args)
        return
    if not args.summary:
        for path in report["added_nodes"]:
            print(f"+ {path}")
        for path in report["removed_nodes"]:
            print(f"- {path}")
        for a, b in report["added_edges"]:
            print(f"+ {a} -> {b}")
        for a, b in report["removed_edges"]:
            print(f"- {a} -> {b}")
    print(report["summary"])


def _cmd_languages(args) -> None:
    rows = [
        {
            "name": module.name,
            "extensions": list(module.extensions),
            "maturity": module.maturity.label,
            "symbol": module.maturity.symbol,
        }
        for module in registry.supported_languages()
    ]
    if getattr(args, "machine", False) or args.json:
        _machine_output(rows, args)
        return
    width = max(len(row["name"]) for row in rows)
    for row in rows:
        print(f"{row['symbol']} {row['name']:<{width}}  {' '.join(row['extensions'])}")
    levels = sorted({module.maturity for module in registry.supported_languages()})
    print()
    print("  ".join(f"{level.symbol} {level.label}" for level in levels))


def main():
    parser = argparse.ArgumentParser(
        prog="changegraph",
        description="File dependency graphs for reviewing changes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Version: %(prog)s """ + __version__ + """

Examples:
    changegraph graph                           # Uncommitted changes, as JSON
    changegraph graph -c HEAD -f dot            # Last commit as Graphviz
    changegraph graph -r main..HEAD -f mermaid  # A branch as a Mermaid flowchart
    changegraph graph src/ --exclude-tests      # Everything under src/ except tests
    changegraph graph --between a.go b.go       # Only files on paths between a.go and b.go
    changegraph why src/app.py src/db.py        # How two files are connected
    changegraph diff -c main,HEAD --summary     # Dependency changes across a branch

Configuration:
    <repo>/.changegraph/workspace.json sets activePackages, excludePatterns,
    includeTests, symbolFallback and maxWorkers.
    CHANGEGRAPH_MAX_WORKERS overrides maxWorkers.
        """,
    )

    # Global flags
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Debug logging on stderr",
    )
    parser.add_argument(
        "--machine",
        action="store_true",
        help="Machine-readable output (forces JSON with consistent schema and error codes)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # changegraph graph [paths...]
    graph_p = subparsers.add_parser("graph", help="Build the dependency graph of a file set")
    graph_p.add_argument("paths", nargs="*", help="Files or directories (narrows a git scope when one is given)")
    _add_selection_args(graph_p)
    graph_p.add_argument(
        "--format", "-f",
        choices=FORMATS,
        default="json",
        help="Output format (default: json)",
    )
    graph_p.add_argument(
        "--between",
        nargs="+",
        metavar="FILE",
        help="Keep only files on dependency paths between these files",
    )
    graph_p.add_argument("--label", help="Caption for dot and mermaid output")
    graph_p.add_argument("--url", action="store_true", help="Also print an online viewer link (dot, mermaid)")

    # changegraph why <from> <to>
    why_p = subparsers.add_parser("why", help="Explain how one file depends on another")
    why_p.add_argument("source", help="Dependent file")
    why_p.add_argument("target", help="Dependency file")
    why_p.add_argument("--in", dest="paths", nargs="+", default=[], metavar="PATH",
                       help="Files or directories to build over (default: the repo)")
    _add_selection_args(why_p)
    why_p.add_argument("--json", action="store_true", help="JSON output")

    # changegraph diff [--commit C | --commit A,B]
    diff_p = subparsers.add_parser("diff", help="Show dependency-graph changes between snapshots")
    diff_p.add_argument("--repo", default=".", help="Git repository path (default: .)")
    diff_p.add_argument(
        "--commit", "-c",
        help="Compare committed snapshots: <commit> against its parent, or <A>,<B> (default: HEAD against the working tree)",
    )
    diff_p.add_argument("--summary", action="store_true", help="Print the summary line only")
    diff_p.add_argument("--exclude-tests", action="store_true", help="Drop test files from both snapshots")
    diff_p.add_argument("--timeout", type=float, default=None, help="Stop scheduling files after N seconds")
    diff_p.add_argument("--json", action="store_true", help="JSON output")

    # changegraph languages
    lang_p = subparsers.add_parser("languages", help="List supported languages and their maturity")
    lang_p.add_argument("--json", action="store_true", help="JSON output")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "graph":
            _cmd_graph(args)
        elif args.command == "why":
            _cmd_why(args)
        elif args.command == "diff":
            _cmd_diff(args)
        elif args.command == "languages":
            _cmd_languages(args)

    except FileNotFoundError as e:
        if getattr(args, "machine", False):
            print(json.dumps(make_error(ERR_NOT_FOUND, str(e))))
        else:
            print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except VcsError as e:
        if getattr(args, "machine", False):
            print(json.dumps(make_error(ERR_VCS, str(e))))
        else:
            print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        if getattr(args, "machine", False):
            print(json.dumps(make_error(ERR_INTERNAL, str(e))))
        else:
            print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        if getattr(args, "machine", False):
            print(json.dumps(make_error(ERR_INTERNAL, str(e))))
        else:
            print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
