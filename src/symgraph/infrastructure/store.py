"""Symbol store: persistent nodes and edges behind an explicit handle."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from symgraph.infrastructure.db import create_schema, get_meta, open_db, set_meta
from symgraph.symbols.models import Edge, Node, StoreCounts

if TYPE_CHECKING:
    import sqlite3
    from collections.abc import Iterable
    from pathlib import Path
    from types import TracebackType

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 100

_NODE_COLUMNS = (
    "id, file_path, name, kind, start_line, end_line, "
    "signature, doc_comment, exported, updated_at"
)
_EDGE_COLUMNS = "id, source_node_id, target_node_id, relation"


class StoreNotConfiguredError(RuntimeError):
    """A store operation was attempted before a database location was set."""


def _row_to_node(row: sqlite3.Row) -> Node:
    return Node(
        id=row["id"],
        file_path=row["file_path"],
        name=row["name"],
        kind=row["kind"],
        start_line=row["start_line"],
        end_line=row["end_line"],
        signature=row["signature"],
        doc_comment=row["doc_comment"],
        exported=bool(row["exported"]),
        updated_at=row["updated_at"],
    )


def _row_to_edge(row: sqlite3.Row) -> Edge:
    return Edge(
        id=row["id"],
        source_node_id=row["source_node_id"],
        target_node_id=row["target_node_id"],
        relation=row["relation"],
    )


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SymbolStore:
    """SQLite-backed table of declaration nodes and relationship edges.

    The connection is opened lazily on first use and shared with the watcher
    thread (``check_same_thread=False``).  There is a single writer per
    process and no lock: do not run a manual index while a watcher is active.

    Usage::

        with SymbolStore(root / ".symgraph" / "index.db") as store:
            store.insert_nodes(nodes)
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    # -- lifecycle ----------------------------------------------------------

    @property
    def db_path(self) -> Path | None:
        return self._db_path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def ensure_at(self, db_path: Path) -> None:
        """Point the handle at *db_path*, closing any connection to another file."""
        if self._db_path == db_path:
            return
        if self._conn is not None:
            logger.debug("Store moving from %s to %s", self._db_path, db_path)
        self.close()
        self._db_path = db_path

    def _connection(self) -> sqlite3.Connection:
        if self._db_path is None:
            raise StoreNotConfiguredError(
                "Symbol store location is not configured. Index a project first."
            )
        if self._conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = open_db(self._db_path, check_same_thread=False)
            create_schema(conn)
            self._conn = conn
            logger.debug("Opened symbol store at %s", self._db_path)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> SymbolStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # -- writes -------------------------------------------------------------

    def insert_nodes(self, nodes: Iterable[Node]) -> int:
        """Insert *nodes* in one transaction.  Returns the number inserted."""
        conn = self._connection()
        now = datetime.now(tz=timezone.utc).isoformat()
        rows = [
            (
                n.id,
                n.file_path,
                n.name,
                n.kind,
                n.start_line,
                n.end_line,
                n.signature,
                n.doc_comment,
                1 if n.exported else 0,
                now,
            )
            for n in nodes
        ]
        if not rows:
            return 0
        with conn:
            conn.executemany(
                f"INSERT INTO nodes ({_NODE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                rows,
            )
        return len(rows)

    def insert_edges(self, edges: Iterable[Edge]) -> int:
        """Insert *edges* in one transaction.

        Raises ``sqlite3.IntegrityError`` if any endpoint does not exist; the
        whole call is rolled back in that case.
        """
        conn = self._connection()
        rows = [(e.id, e.source_node_id, e.target_node_id, e.relation) for e in edges]
        if not rows:
            return 0
        with conn:
            conn.executemany(f"INSERT INTO edges ({_EDGE_COLUMNS}) VALUES (?, ?, ?, ?)", rows)
        return len(rows)

    def delete_by_file(self, file_path: str) -> int:
        """Delete every node of *file_path*; edges touching them cascade.

        Returns the number of deleted nodes.
        """
        conn = self._connection()
        with conn:
            cur = conn.execute("DELETE FROM nodes WHERE file_path = ?", (file_path,))
        return cur.rowcount

    def clear(self) -> None:
        """Remove all nodes and edges (meta is kept)."""
        conn = self._connection()
        with conn:
            conn.execute("DELETE FROM edges")
            conn.execute("DELETE FROM nodes")

    # -- reads --------------------------------------------------------------

    def get_node(self, node_id: str) -> Node | None:
        row = (
            self._connection()
            .execute(f"SELECT {_NODE_COLUMNS} FROM nodes WHERE id = ?", (node_id,))
            .fetchone()
        )
        return _row_to_node(row) if row is not None else None

    def nodes_by_file(self, file_path: str) -> list[Node]:
        rows = (
            self._connection()
            .execute(
                f"SELECT {_NODE_COLUMNS} FROM nodes WHERE file_path = ? ORDER BY start_line",
                (file_path,),
            )
            .fetchall()
        )
        return [_row_to_node(r) for r in rows]

    def all_nodes(self) -> list[Node]:
        rows = (
            self._connection()
            .execute(f"SELECT {_NODE_COLUMNS} FROM nodes ORDER BY file_path, start_line")
            .fetchall()
        )
        return [_row_to_node(r) for r in rows]

    def find_node(
        self,
        name: str,
        *,
        kind: str | None = None,
        exported: bool | None = None,
        exclude_file: str | None = None,
    ) -> Node | None:
        """Return the first node named *name* in (file path, start line) order."""
        sql = f"SELECT {_NODE_COLUMNS} FROM nodes WHERE name = ?"
        params: list[Any] = [name]
        if kind is not None:
            sql += " AND kind = ?"
            params.append(kind)
        if exported is not None:
            sql += " AND exported = ?"
            params.append(1 if exported else 0)
        if exclude_file is not None:
            sql += " AND file_path != ?"
            params.append(exclude_file)
        sql += " ORDER BY file_path, start_line LIMIT 1"

        row = self._connection().execute(sql, params).fetchone()
        return _row_to_node(row) if row is not None else None

    def search(
        self,
        query: str,
        *,
        kind: str | None = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
        case_sensitive: bool = False,
    ) -> list[Node]:
        """Nodes whose name contains *query*, ordered by name, at most *limit*.

        ``%`` and ``_`` in *query* match literally.
        """
        if case_sensitive:
            sql = f"SELECT {_NODE_COLUMNS} FROM nodes WHERE instr(name, ?) > 0"
            params: list[Any] = [query]
        else:
            sql = f"SELECT {_NODE_COLUMNS} FROM nodes WHERE name LIKE ? ESCAPE '\\'"
            params = [f"%{_escape_like(query)}%"]
        if kind is not None:
            sql += " AND kind = ?"
            params.append(kind)
        sql += " ORDER BY name LIMIT ?"
        params.append(max(limit, 0))

        rows = self._connection().execute(sql, params).fetchall()
        return [_row_to_node(r) for r in rows]

    def edges_by_source(self, node_id: str) -> list[Edge]:
        rows = (
            self._connection()
            .execute(f"SELECT {_EDGE_COLUMNS} FROM edges WHERE source_node_id = ?", (node_id,))
            .fetchall()
        )
        return [_row_to_edge(r) for r in rows]

    def edges_by_target(self, node_id: str) -> list[Edge]:
        rows = (
            self._connection()
            .execute(f"SELECT {_EDGE_COLUMNS} FROM edges WHERE target_node_id = ?", (node_id,))
            .fetchall()
        )
        return [_row_to_edge(r) for r in rows]

    def edges_by_file(self, file_path: str) -> list[Edge]:
        """Edges whose source node lives in *file_path*."""
        rows = (
            self._connection()
            .execute(
                "SELECT DISTINCT e.id, e.source_node_id, e.target_node_id, e.relation "
                "FROM edges e JOIN nodes n ON e.source_node_id = n.id "
                "WHERE n.file_path = ?",
                (file_path,),
            )
            .fetchall()
        )
        return [_row_to_edge(r) for r in rows]

    def counts(self) -> StoreCounts:
        conn = self._connection()
        nodes = conn.execute("SELECT COUNT(*) FROM nodes").fetchone()[0]
        edges = conn.execute("SELECT COUNT(*) FROM edges").fetchone()[0]
        files = conn.execute("SELECT COUNT(DISTINCT file_path) FROM nodes").fetchone()[0]
        return StoreCounts(files=files, nodes=nodes, edges=edges)

    def kind_counts(self) -> dict[str, int]:
        """Node count per kind, largest first."""
        rows = (
            self._connection()
            .execute("SELECT kind, count(*) AS cnt FROM nodes GROUP BY kind ORDER BY cnt DESC")
            .fetchall()
        )
        return {r["kind"]: r["cnt"] for r in rows}

    # -- meta ---------------------------------------------------------------

    def get_meta(self, key: str, default: str | None = None) -> str | None:
        return get_meta(self._connection(), key, default)

    def set_meta(self, key: str, value: str) -> None:
        set_meta(self._connection(), key, value)
