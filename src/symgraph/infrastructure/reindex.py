"""Index orchestrator: full two-pass rebuild and single-file re-index."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from symgraph import __version__
from symgraph.infrastructure.config import IndexConfig, is_ignored, load_config
from symgraph.infrastructure.db import SCHEMA_VERSION
from symgraph.symbols.extractor import extract_nodes
from symgraph.symbols.parser import is_parseable, is_source_file
from symgraph.symbols.resolver import RelationshipResolver

if TYPE_CHECKING:
    from collections.abc import Iterable

    from symgraph.infrastructure.store import SymbolStore
    from symgraph.infrastructure.watcher import ChangeWatcher
    from symgraph.symbols.parser import SyntaxTreeProvider

logger = logging.getLogger(__name__)


@dataclass
class IndexResult:
    """Summary of a full index run.

    ``files_indexed``, ``nodes_created`` and ``edges_created`` are read back
    from the store after the run.
    """

    files_indexed: int = 0
    nodes_created: int = 0
    edges_created: int = 0
    files_scanned: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "files_indexed": self.files_indexed,
            "nodes_created": self.nodes_created,
            "edges_created": self.edges_created,
            "files_scanned": self.files_scanned,
            "errors": list(self.errors),
        }


def relative_path(project_root: Path, path: Path) -> str:
    """Project-relative path with POSIX separators (the store's file key)."""
    return path.relative_to(project_root).as_posix()


def scan_source_files(project_root: Path, ignore_patterns: Iterable[str]) -> list[Path]:
    """Enumerate source files under *project_root*, sorted.

    Ignored directories are pruned without being descended into.  Scan-only
    extensions (``.go``, ``.rs``) are included.
    """
    patterns = tuple(ignore_patterns)
    found: list[Path] = []

    for dirpath, dirnames, filenames in os.walk(project_root):
        current = Path(dirpath)
        rel_dir = "" if current == project_root else relative_path(project_root, current) + "/"

        dirnames[:] = sorted(
            d for d in dirnames if not is_ignored(rel_dir + d, patterns, is_dir=True)
        )
        for name in filenames:
            if not is_source_file(os.path.splitext(name)[1]):
                continue
            if is_ignored(rel_dir + name, patterns):
                continue
            found.append(current / name)

    return sorted(found)


def reindex_file(
    store: SymbolStore,
    provider: SyntaxTreeProvider,
    file_path: str,
    content: str,
) -> tuple[int, int] | None:
    """Replace the records of one file.

    Parses *content*, deletes the file's previous rows, inserts the freshly
    extracted nodes, then resolves and inserts edges against the current
    store.  Returns ``(nodes, edges)`` or ``None`` when *content* could not be
    parsed (the store is left untouched in that case).
    """
    tree = provider.parse(content, Path(file_path).suffix)
    if tree is None:
        return None

    store.delete_by_file(file_path)
    nodes = extract_nodes(tree, file_path, content)
    store.insert_nodes(nodes)
    edges = RelationshipResolver(store).resolve(tree, file_path, content, nodes)
    store.insert_edges(edges)
    return len(nodes), len(edges)


def remove_file(store: SymbolStore, file_path: str) -> int:
    """Drop every node of *file_path* (edges cascade).  Returns nodes removed."""
    return store.delete_by_file(file_path)


def index_project(
    project_root: Path,
    store: SymbolStore,
    provider: SyntaxTreeProvider,
    *,
    config: IndexConfig | None = None,
    watcher: ChangeWatcher | None = None,
) -> IndexResult:
    """Full rebuild of the symbol graph for *project_root*.

    Steps, in order: load grammars, clear the store, enumerate files, pass 1
    (extract and insert nodes per file), pass 2 (re-parse and resolve edges
    per file against the complete node set), record meta, and finally start
    *watcher* when one is given.

    Per-file read, parse, extraction and resolution failures are logged and
    reported in :attr:`IndexResult.errors`; the file is skipped.  Grammar and
    store failures propagate.
    """
    if config is None:
        config = load_config(project_root)

    provider.load_grammars()
    store.clear()

    files = scan_source_files(project_root, config.ignore)
    result = IndexResult(files_scanned=len(files))
    logger.info("Indexing %d source file(s) under %s", len(files), project_root)

    # Pass 1: nodes.
    with_nodes: list[tuple[Path, str]] = []
    for path in files:
        if not is_parseable(path.suffix):
            continue
        rel = relative_path(project_root, path)
        try:
            content = path.read_text(encoding="utf-8")
            tree = provider.parse(content, path.suffix)
            if tree is None:
                raise ValueError("parser returned no tree")
            nodes = extract_nodes(tree, rel, content)
        except Exception as exc:  # any per-file failure skips only that file
            logger.warning("Skipping %s: %s", rel, exc)
            result.errors.append(f"{rel}: {exc}")
            continue

        store.insert_nodes(nodes)
        if nodes:
            with_nodes.append((path, rel))

    # Pass 2: edges, now that every file's nodes are in the store.
    resolver = RelationshipResolver(store)
    for path, rel in with_nodes:
        try:
            content = path.read_text(encoding="utf-8")
            tree = provider.parse(content, path.suffix)
            if tree is None:
                raise ValueError("parser returned no tree")
            edges = resolver.resolve(tree, rel, content, store.nodes_by_file(rel))
        except Exception as exc:  # file changed or vanished since pass 1
            logger.warning("Skipping relationships of %s: %s", rel, exc)
            result.errors.append(f"{rel}: {exc}")
            continue

        store.insert_edges(edges)

    counts = store.counts()
    result.files_indexed = counts.files
    result.nodes_created = counts.nodes
    result.edges_created = counts.edges

    store.set_meta("last_indexed_at", datetime.now(tz=timezone.utc).isoformat())
    store.set_meta("symgraph_version", __version__)
    store.set_meta("schema_version", SCHEMA_VERSION)

    logger.info(
        "Indexed %d file(s): %d node(s), %d edge(s), %d error(s)",
        result.files_indexed,
        result.nodes_created,
        result.edges_created,
        len(result.errors),
    )

    if watcher is not None:
        watcher.start(project_root)

    return result
