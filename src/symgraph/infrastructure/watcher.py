"""File watcher: keep the symbol store in sync with source edits."""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from watchfiles import Change, DefaultFilter, watch

from symgraph.infrastructure.config import IndexConfig, is_ignored, load_config
from symgraph.infrastructure.regen import RegenerationScheduler, log_regeneration
from symgraph.infrastructure.reindex import relative_path, reindex_file, remove_file
from symgraph.symbols.parser import is_parseable

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from symgraph.infrastructure.store import SymbolStore
    from symgraph.symbols.parser import SyntaxTreeProvider

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 500

_CHANGE_NAMES: dict[Change, str] = {
    Change.added: "add",
    Change.modified: "change",
    Change.deleted: "delete",
}


class SourceFilter(DefaultFilter):
    """Pass only parseable source files outside the ignore globs."""

    def __init__(self, project_root: Path, ignore_patterns: Iterable[str]) -> None:
        self._root = project_root
        self._patterns = tuple(ignore_patterns)
        super().__init__()

    def __call__(self, change: Change, path: str) -> bool:
        p = Path(path)
        if not is_parseable(p.suffix):
            return False
        try:
            rel = relative_path(self._root, p)
        except ValueError:
            return False
        return not is_ignored(rel, self._patterns) and super().__call__(change, path)


def order_batch(batch: Iterable[tuple[Change, str]]) -> list[tuple[Change, str]]:
    """Deletes first, then adds and modifications, each group by path."""
    return sorted(batch, key=lambda item: (item[0] != Change.deleted, item[1]))


class ChangeWatcher:
    """Re-index single files as they are added, changed or deleted.

    Events are handled one at a time on a background thread.  Every successful
    store mutation is counted by a :class:`RegenerationScheduler`, which calls
    *on_regenerate* with the number of pending changes once the threshold is
    reached or the stream has been quiet for the configured delay.
    """

    def __init__(
        self,
        store: SymbolStore,
        provider: SyntaxTreeProvider,
        *,
        config: IndexConfig | None = None,
        on_regenerate: Callable[[int], None] | None = None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
    ) -> None:
        self._store = store
        self._provider = provider
        self._config = config
        self._on_regenerate = on_regenerate or log_regeneration
        self._debounce_ms = debounce_ms
        self._project_root: Path | None = None
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._scheduler = self._make_scheduler(config or IndexConfig())

    def _make_scheduler(self, config: IndexConfig) -> RegenerationScheduler:
        return RegenerationScheduler(
            self._on_regenerate,
            threshold=config.regen_threshold,
            delay_s=config.regen_delay_seconds,
        )

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def project_root(self) -> Path | None:
        return self._project_root

    @property
    def scheduler(self) -> RegenerationScheduler:
        return self._scheduler

    # -- lifecycle ----------------------------------------------------------

    def start(self, project_root: Path) -> None:
        """Begin watching *project_root* in a background thread.

        Calling ``start`` while already running only logs.
        """
        if self.running:
            logger.info("Watcher already running on %s", self._project_root)
            return

        if self._config is None:
            self._config = load_config(project_root)
            self._scheduler = self._make_scheduler(self._config)

        self._provider.load_grammars()
        self._project_root = project_root
        self._stop_event.clear()
        self._scheduler.start()

        self._thread = threading.Thread(
            target=self._watch_loop,
            args=(project_root,),
            name="symgraph-watcher",
            daemon=True,
        )
        self._thread.start()
        logger.info("Watching %s for changes", project_root)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop the watch thread and cancel any pending regeneration."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self._scheduler.stop()
        logger.info("Watcher stopped")

    def _watch_loop(self, project_root: Path) -> None:
        assert self._config is not None
        watch_filter = SourceFilter(project_root, self._config.ignore)
        try:
            for batch in watch(
                project_root,
                watch_filter=watch_filter,
                debounce=self._debounce_ms,
                step=100,
                stop_event=self._stop_event,
            ):
                for change, path in order_batch(batch):
                    name = _CHANGE_NAMES.get(change)
                    if name is not None:
                        self.handle_event(name, path)
        except Exception:  # filesystem subscription died
            logger.exception("Watch loop for %s terminated", project_root)

    # -- events -------------------------------------------------------------

    def handle_event(self, change: str, path: str | Path) -> bool:
        """Apply one file event to the store.

        *change* is ``"add"``, ``"change"`` or ``"delete"``; *path* is absolute.
        Returns ``True`` when the store was modified.  Files without a parser
        are ignored without touching the store; per-file failures are logged
        and the event is dropped.
        """
        if change not in ("add", "change", "delete"):
            raise ValueError(f"Unknown change type: {change!r}")
        if self._project_root is None:
            raise RuntimeError("Watcher has no project root. Call start() first.")

        p = Path(path)
        if not is_parseable(p.suffix):
            logger.debug("Ignoring %s (unsupported extension)", p)
            return False
        try:
            rel = relative_path(self._project_root, p)
        except ValueError:
            logger.debug("Ignoring %s (outside %s)", p, self._project_root)
            return False
        if self._config is not None and is_ignored(rel, self._config.ignore):
            return False

        try:
            if change == "delete":
                removed = remove_file(self._store, rel)
                logger.info("Removed %s (%d node(s))", rel, removed)
            else:
                content = p.read_text(encoding="utf-8")
                counts = reindex_file(self._store, self._provider, rel, content)
                if counts is None:
                    logger.warning("Could not parse %s; event dropped", rel)
                    return False
                logger.info(
                    "%s %s: %d node(s), %d edge(s)",
                    "Added" if change == "add" else "Updated",
                    rel,
                    counts[0],
                    counts[1],
                )
        except sqlite3.Error:
            logger.exception("Store error while handling %s of %s", change, rel)
            return False
        except Exception as exc:  # unreadable file, extraction failure
            logger.warning("Failed to handle %s of %s: %s", change, rel, exc)
            return False

        self._scheduler.notify()
        return True
