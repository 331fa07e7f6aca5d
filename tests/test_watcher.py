"""Tests for symgraph.infrastructure.watcher: per-file store maintenance."""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import pytest
from watchfiles import Change

from symgraph.infrastructure.config import DEFAULT_IGNORE_PATTERNS, IndexConfig
from symgraph.infrastructure.reindex import index_project
from symgraph.infrastructure.watcher import ChangeWatcher, SourceFilter, order_batch

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    from symgraph.infrastructure.store import SymbolStore
    from symgraph.symbols.parser import SyntaxTreeProvider

    MakeProject = Callable[[dict[str, str]], Path]


FILES = {
    "a.ts": "export class Base {}\n",
    "b.ts": (
        'import { Base } from "./a";\n'
        "export class Child extends Base {}\n"
        "export function one() {}\n"
        "export function two() {}\n"
    ),
    "c.ts": 'import { one } from "./b";\nexport function useOne() {}\n',
}


@pytest.fixture()
def idle_watch(monkeypatch: pytest.MonkeyPatch) -> None:
    """Replace the filesystem subscription with one that yields nothing."""

    def _fake_watch(*_paths: Any, stop_event: threading.Event, **_kwargs: Any) -> Iterator[Any]:
        stop_event.wait(5.0)
        yield from ()

    monkeypatch.setattr("symgraph.infrastructure.watcher.watch", _fake_watch)


@pytest.fixture()
def regenerations() -> list[int]:
    return []


@pytest.fixture()
def watcher(
    store: SymbolStore,
    provider: SyntaxTreeProvider,
    regenerations: list[int],
    idle_watch: None,
) -> Iterator[ChangeWatcher]:
    config = IndexConfig(regen_threshold=1, regen_delay_seconds=60.0)
    w = ChangeWatcher(store, provider, config=config, on_regenerate=regenerations.append)
    yield w
    w.stop()


class TestLifecycle:
    def test_start_and_stop(self, watcher: ChangeWatcher, tmp_path: Path) -> None:
        watcher.start(tmp_path)
        assert watcher.running
        assert watcher.scheduler.running
        assert watcher.project_root == tmp_path

        watcher.stop()
        assert not watcher.running
        assert not watcher.scheduler.running

    def test_second_start_is_noop(
        self, watcher: ChangeWatcher, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        watcher.start(tmp_path)
        thread = watcher._thread
        with caplog.at_level(logging.INFO, logger="symgraph.infrastructure.watcher"):
            watcher.start(tmp_path)
        assert watcher._thread is thread
        assert "already running" in caplog.text

    def test_handle_event_requires_start(self, watcher: ChangeWatcher, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError):
            watcher.handle_event("add", tmp_path / "a.ts")

    def test_unknown_change_type(self, watcher: ChangeWatcher, tmp_path: Path) -> None:
        watcher.start(tmp_path)
        with pytest.raises(ValueError):
            watcher.handle_event("rename", tmp_path / "a.ts")


class TestHandleEvent:
    def test_change_replaces_file_records(
        self,
        watcher: ChangeWatcher,
        store: SymbolStore,
        provider: SyntaxTreeProvider,
        make_project: MakeProject,
    ) -> None:
        root = make_project(FILES)
        index_project(root, store, provider)
        assert len(store.nodes_by_file("b.ts")) == 3
        assert len(store.edges_by_file("c.ts")) == 1
        watcher.start(root)

        (root / "b.ts").write_text("export function only() {}\n", encoding="utf-8")
        assert watcher.handle_event("change", root / "b.ts")

        assert [n.name for n in store.nodes_by_file("b.ts")] == ["only"]
        # Edges into and out of the replaced nodes are gone.
        assert store.edges_by_file("b.ts") == []
        assert store.edges_by_file("c.ts") == []
        assert store.counts().edges == 0

    def test_add_resolves_against_store(
        self,
        watcher: ChangeWatcher,
        store: SymbolStore,
        provider: SyntaxTreeProvider,
        make_project: MakeProject,
    ) -> None:
        root = make_project({"a.ts": FILES["a.ts"]})
        index_project(root, store, provider)
        watcher.start(root)

        (root / "d.ts").write_text("export class D extends Base {}\n", encoding="utf-8")
        assert watcher.handle_event("add", str(root / "d.ts"))

        (edge,) = store.edges_by_file("d.ts")
        assert edge.relation == "extends"

    def test_delete_removes_file(
        self,
        watcher: ChangeWatcher,
        store: SymbolStore,
        provider: SyntaxTreeProvider,
        make_project: MakeProject,
    ) -> None:
        root = make_project(FILES)
        index_project(root, store, provider)
        watcher.start(root)

        (root / "a.ts").unlink()
        assert watcher.handle_event("delete", root / "a.ts")

        assert store.nodes_by_file("a.ts") == []
        # Both of b.ts's edges pointed at Base.
        assert store.edges_by_file("b.ts") == []
        assert len(store.edges_by_file("c.ts")) == 1

    def test_mutations_notify_scheduler(
        self,
        watcher: ChangeWatcher,
        regenerations: list[int],
        make_project: MakeProject,
    ) -> None:
        root = make_project({"a.ts": FILES["a.ts"]})
        watcher.start(root)

        assert watcher.handle_event("add", root / "a.ts")
        deadline = time.monotonic() + 2.0
        while not regenerations and time.monotonic() < deadline:
            time.sleep(0.01)
        assert regenerations == [1]

    def test_unsupported_extension_ignored(
        self, provider: SyntaxTreeProvider, idle_watch: None, tmp_path: Path
    ) -> None:
        store = MagicMock()
        w = ChangeWatcher(store, provider, config=IndexConfig())
        w.start(tmp_path)
        try:
            assert not w.handle_event("add", tmp_path / "README.md")
            assert not w.handle_event("delete", tmp_path / "main.go")
        finally:
            w.stop()
        assert store.method_calls == []

    def test_ignored_path_skipped(
        self, provider: SyntaxTreeProvider, idle_watch: None, tmp_path: Path
    ) -> None:
        store = MagicMock()
        w = ChangeWatcher(store, provider, config=IndexConfig())
        w.start(tmp_path)
        try:
            assert not w.handle_event("add", tmp_path / "node_modules" / "x.ts")
        finally:
            w.stop()
        assert store.method_calls == []

    def test_unreadable_file_dropped(
        self, watcher: ChangeWatcher, store: SymbolStore, regenerations: list[int], tmp_path: Path
    ) -> None:
        watcher.start(tmp_path)
        assert not watcher.handle_event("change", tmp_path / "missing.ts")
        assert store.counts().nodes == 0
        assert regenerations == []


class TestBatchHelpers:
    def test_deletes_first(self) -> None:
        batch = {
            (Change.added, "/p/b.ts"),
            (Change.deleted, "/p/b.ts"),
            (Change.modified, "/p/a.ts"),
        }
        assert order_batch(batch) == [
            (Change.deleted, "/p/b.ts"),
            (Change.modified, "/p/a.ts"),
            (Change.added, "/p/b.ts"),
        ]

    def test_source_filter(self, tmp_path: Path) -> None:
        source_filter = SourceFilter(tmp_path, DEFAULT_IGNORE_PATTERNS)
        assert source_filter(Change.added, str(tmp_path / "src" / "a.ts"))
        assert source_filter(Change.deleted, str(tmp_path / "pkg" / "mod.py"))
        assert not source_filter(Change.added, str(tmp_path / "README.md"))
        assert not source_filter(Change.added, str(tmp_path / "dist" / "a.js"))
        assert not source_filter(Change.added, str(tmp_path.parent / "other.ts"))
