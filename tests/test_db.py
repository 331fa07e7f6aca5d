"""Tests for symgraph.infrastructure.db: SQLite schema and connection management."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

import pytest

from symgraph.infrastructure.db import create_schema, get_meta, open_db, set_meta

if TYPE_CHECKING:
    from pathlib import Path


class TestOpenDb:
    def test_wal_mode_enabled(self, tmp_path: Path) -> None:
        conn = open_db(tmp_path / "test.db")
        assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        conn.close()

    def test_foreign_keys_enabled(self, tmp_path: Path) -> None:
        conn = open_db(tmp_path / "test.db")
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        conn.close()

    def test_returns_row_factory(self, tmp_path: Path) -> None:
        conn = open_db(tmp_path / "test.db", check_same_thread=False)
        assert conn.row_factory == sqlite3.Row
        conn.close()


class TestCreateSchema:
    @pytest.fixture()
    def conn(self, tmp_path: Path) -> sqlite3.Connection:
        c = open_db(tmp_path / "test.db")
        create_schema(c)
        return c

    def test_all_tables_exist(self, conn: sqlite3.Connection) -> None:
        tables = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
        }
        assert {"nodes", "edges", "meta"}.issubset(tables)

    def test_indexes_exist(self, conn: sqlite3.Connection) -> None:
        indexes = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='index'").fetchall()
        }
        assert {
            "idx_nodes_file",
            "idx_nodes_name",
            "idx_nodes_kind",
            "idx_edges_source",
            "idx_edges_target",
            "idx_edges_relation",
        }.issubset(indexes)

    def test_idempotent(self, conn: sqlite3.Connection) -> None:
        create_schema(conn)

    def test_edge_relation_check(self, conn: sqlite3.Connection) -> None:
        for node_id in ("n1", "n2"):
            conn.execute(
                "INSERT INTO nodes (id, file_path, name, kind, start_line, end_line) "
                "VALUES (?, 'a.ts', ?, 'function', 1, 1)",
                (node_id, node_id),
            )
        conn.execute(
            "INSERT INTO edges (id, source_node_id, target_node_id, relation) "
            "VALUES ('e1', 'n1', 'n2', 'calls')"
        )
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                "INSERT INTO edges (id, source_node_id, target_node_id, relation) "
                "VALUES ('e2', 'n1', 'n2', 'uses')"
            )

    def test_exported_check(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                "INSERT INTO nodes (id, file_path, name, kind, start_line, end_line, exported) "
                "VALUES ('n', 'a.ts', 'f', 'function', 1, 1, 2)"
            )


class TestMeta:
    def test_get_set(self, tmp_path: Path) -> None:
        conn = open_db(tmp_path / "test.db")
        create_schema(conn)
        assert get_meta(conn, "k") is None
        assert get_meta(conn, "k", "dflt") == "dflt"
        set_meta(conn, "k", "v1")
        set_meta(conn, "k", "v2")
        assert get_meta(conn, "k") == "v2"
        conn.close()
