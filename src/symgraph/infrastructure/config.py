"""Project configuration: ``.symgraph/config.yml``, ignore globs, store location."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DATA_DIR_NAME = ".symgraph"
CONFIG_FILE_NAME = "config.yml"
DEFAULT_DB_NAME = "index.db"

DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    "**/node_modules/**",
    "**/.git/**",
    "**/.symgraph/**",
    "**/dist/**",
    "**/build/**",
    "**/.next/**",
    "**/.nuxt/**",
    "**/coverage/**",
    "**/__pycache__/**",
    "**/.venv/**",
    "**/*.log",
)

DEFAULT_REGEN_THRESHOLD = 5
DEFAULT_REGEN_DELAY_SECONDS = 30.0
DEFAULT_SEARCH_LIMIT = 100


class ConfigError(ValueError):
    """``config.yml`` is malformed or holds a value of the wrong type."""


@dataclass(frozen=True)
class IndexConfig:
    """Settings for one project root."""

    ignore: tuple[str, ...] = DEFAULT_IGNORE_PATTERNS
    db_path: str | None = None
    search_limit: int = DEFAULT_SEARCH_LIMIT
    case_sensitive_search: bool = False
    regen_threshold: int = DEFAULT_REGEN_THRESHOLD
    regen_delay_seconds: float = DEFAULT_REGEN_DELAY_SECONDS
    extra: dict[str, Any] = field(default_factory=dict, compare=False)


def config_path(project_root: Path) -> Path:
    return project_root / DATA_DIR_NAME / CONFIG_FILE_NAME


def _expect(value: object, expected: type | tuple[type, ...], key: str) -> Any:
    # bool is an int subclass; reject it where a number is wanted.
    if not isinstance(value, expected) or (isinstance(value, bool) and expected is not bool):
        raise ConfigError(f"config.yml: '{key}' has invalid type {type(value).__name__}")
    return value


def load_config(project_root: Path) -> IndexConfig:
    """Read ``.symgraph/config.yml`` under *project_root*.

    A missing or empty file yields the defaults.  Extra ``ignore`` globs are
    appended to :data:`DEFAULT_IGNORE_PATTERNS`; unknown keys are kept in
    ``extra`` and otherwise ignored.

    Raises
    ------
    ConfigError
        If the file is not valid YAML, is not a mapping, or a known key has the
        wrong type.
    """
    path = config_path(project_root)
    if not path.is_file():
        return IndexConfig()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        return IndexConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")

    data = dict(data)
    ignore = list(DEFAULT_IGNORE_PATTERNS)
    extra_ignore = data.pop("ignore", None)
    if extra_ignore is not None:
        _expect(extra_ignore, list, "ignore")
        ignore.extend(str(p) for p in extra_ignore if p)

    db_path = data.pop("db_path", None)
    if db_path is not None:
        _expect(db_path, str, "db_path")

    search_limit = _expect(data.pop("search_limit", DEFAULT_SEARCH_LIMIT), int, "search_limit")
    if search_limit < 1:
        raise ConfigError("config.yml: 'search_limit' must be positive")
    case_sensitive = _expect(
        data.pop("case_sensitive_search", False), bool, "case_sensitive_search"
    )

    regen = data.pop("regenerate", None) or {}
    _expect(regen, dict, "regenerate")
    threshold = _expect(
        regen.get("threshold", DEFAULT_REGEN_THRESHOLD), int, "regenerate.threshold"
    )
    delay = _expect(
        regen.get("delay_seconds", DEFAULT_REGEN_DELAY_SECONDS),
        (int, float),
        "regenerate.delay_seconds",
    )
    if threshold < 1 or delay < 0:
        raise ConfigError("config.yml: 'regenerate' values must be positive")

    if data:
        logger.debug("Unknown config.yml keys: %s", ", ".join(sorted(map(str, data))))

    return IndexConfig(
        ignore=tuple(ignore),
        db_path=db_path,
        search_limit=search_limit,
        case_sensitive_search=case_sensitive,
        regen_threshold=threshold,
        regen_delay_seconds=float(delay),
        extra=data,
    )


def resolve_db_path(project_root: Path, config: IndexConfig | None = None) -> Path:
    """Database location: ``db_path`` from config (relative to the root) or the default."""
    if config is not None and config.db_path:
        candidate = Path(config.db_path)
        return candidate if candidate.is_absolute() else project_root / candidate
    return project_root / DATA_DIR_NAME / DEFAULT_DB_NAME


def _matches(path: str, pattern: str) -> bool:
    if fnmatchcase(path, pattern):
        return True
    # "**/x" also matches "x" at the project root.
    return pattern.startswith("**/") and fnmatchcase(path, pattern[3:])


def is_ignored(
    rel_path: str, patterns: tuple[str, ...] | list[str], *, is_dir: bool = False
) -> bool:
    """Check a project-relative POSIX path against ignore globs.

    Directories are also tested with a trailing ``/`` so that
    ``**/node_modules/**`` prunes the ``node_modules`` directory itself.
    """
    candidates = (rel_path, rel_path + "/") if is_dir else (rel_path,)
    return any(_matches(c, p) for c in candidates for p in patterns)
