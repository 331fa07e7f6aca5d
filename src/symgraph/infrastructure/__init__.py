"""Infrastructure domain: database layer, symbol store, config, indexing, watcher.

``symgraph.infrastructure.reindex`` and ``symgraph.infrastructure.watcher`` are
not re-exported here; they pull in the symbols domain.  Import them directly::

    from symgraph.infrastructure.reindex import index_project
"""

from symgraph.infrastructure.config import (
    DEFAULT_IGNORE_PATTERNS,
    ConfigError,
    IndexConfig,
    is_ignored,
    load_config,
    resolve_db_path,
)
from symgraph.infrastructure.db import (
    SCHEMA_VERSION,
    create_schema,
    get_meta,
    open_db,
    set_meta,
)
from symgraph.infrastructure.store import StoreNotConfiguredError, SymbolStore

__all__ = [
    "DEFAULT_IGNORE_PATTERNS",
    "SCHEMA_VERSION",
    "ConfigError",
    "IndexConfig",
    "StoreNotConfiguredError",
    "SymbolStore",
    "create_schema",
    "get_meta",
    "is_ignored",
    "load_config",
    "open_db",
    "resolve_db_path",
    "set_meta",
]
