"""Query helpers returning JSON-ready structures over the symbol store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from symgraph.infrastructure.store import DEFAULT_SEARCH_LIMIT

if TYPE_CHECKING:
    from symgraph.infrastructure.store import SymbolStore
    from symgraph.symbols.models import Node


def _node_ref(node: Node) -> dict[str, Any]:
    return {"file_path": node.file_path, "name": node.name, "kind": node.kind}


def file_structure(store: SymbolStore, file_path: str) -> dict[str, Any]:
    """Declarations of one file, in line order."""
    return {
        "file_path": file_path,
        "symbols": [
            {
                "kind": n.kind,
                "name": n.name,
                "signature": n.signature,
                "start_line": n.start_line,
                "end_line": n.end_line,
                "exported": n.exported,
            }
            for n in store.nodes_by_file(file_path)
        ],
    }


def search_symbols(
    store: SymbolStore,
    query: str,
    kind: str | None = None,
    *,
    limit: int = DEFAULT_SEARCH_LIMIT,
    case_sensitive: bool = False,
) -> dict[str, Any]:
    """Substring search on symbol names, optionally restricted to one kind."""
    nodes = store.search(query, kind=kind, limit=limit, case_sensitive=case_sensitive)
    return {
        "query": query,
        "kind": kind or "all",
        "results": [
            {
                "file_path": n.file_path,
                "kind": n.kind,
                "name": n.name,
                "signature": n.signature,
                "start_line": n.start_line,
                "end_line": n.end_line,
            }
            for n in nodes
        ],
    }


def dependencies(
    store: SymbolStore,
    file_path: str | None = None,
    symbol_name: str | None = None,
) -> dict[str, Any]:
    """Outgoing edges of a symbol (exact name) or of every symbol in a file.

    *symbol_name* wins when both are given.

    Raises
    ------
    ValueError
        If neither *file_path* nor *symbol_name* is provided.
    """
    if not file_path and not symbol_name:
        raise ValueError("Either file_path or symbol_name must be provided")

    if symbol_name:
        sources = [n for n in store.search(symbol_name) if n.name == symbol_name]
    else:
        assert file_path is not None
        sources = store.nodes_by_file(file_path)

    deps: list[dict[str, Any]] = []
    for source in sources:
        for edge in store.edges_by_source(source.id):
            target = store.get_node(edge.target_node_id)
            if target is None:
                continue
            deps.append(
                {
                    "source": _node_ref(source),
                    "relation": edge.relation,
                    "target": _node_ref(target),
                }
            )

    return {"file_path": file_path, "symbol_name": symbol_name, "dependencies": deps}
