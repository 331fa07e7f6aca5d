"""Shared test fixtures for symgraph."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from symgraph.infrastructure.store import SymbolStore
from symgraph.symbols.extractor import extract_nodes
from symgraph.symbols.parser import SyntaxTreeProvider

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from tree_sitter import Tree

    from symgraph.symbols.models import Node


@pytest.fixture(scope="session")
def provider() -> SyntaxTreeProvider:
    """A provider with every grammar loaded (shared; parsing is stateless)."""
    p = SyntaxTreeProvider()
    p.load_grammars()
    return p


@pytest.fixture()
def store(tmp_path: Path) -> Iterator[SymbolStore]:
    s = SymbolStore(tmp_path / ".symgraph" / "index.db")
    yield s
    s.close()


@pytest.fixture()
def make_project(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    """Write ``{relative_path: content}`` under a fresh project root."""

    def _make(files: dict[str, str]) -> Path:
        root = tmp_path / "proj"
        root.mkdir(exist_ok=True)
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root

    return _make


@pytest.fixture()
def persist(
    store: SymbolStore, provider: SyntaxTreeProvider
) -> Callable[[str, str], tuple[Tree, list[Node]]]:
    """Parse, extract and insert one file's nodes; returns the tree and nodes."""

    def _persist(file_path: str, source: str) -> tuple[Tree, list[Node]]:
        tree = provider.parse(source, Path(file_path).suffix)
        assert tree is not None
        nodes = extract_nodes(tree, file_path, source)
        store.insert_nodes(nodes)
        return tree, nodes

    return _persist
