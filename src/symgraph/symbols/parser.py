"""Syntax tree provider: tree-sitter grammar loading and parsing."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tree_sitter import Language, Parser

if TYPE_CHECKING:
    from collections.abc import Callable

    from tree_sitter import Tree

logger = logging.getLogger(__name__)


class GrammarLoadError(Exception):
    """A tree-sitter grammar could not be loaded."""


class GrammarsNotLoadedError(RuntimeError):
    """``parse()`` was called before ``load_grammars()`` completed."""


# ---- Language loaders ----


def _load_typescript() -> Language:
    import tree_sitter_typescript as tstypescript

    return Language(tstypescript.language_typescript())


def _load_tsx() -> Language:
    import tree_sitter_typescript as tstypescript

    return Language(tstypescript.language_tsx())


def _load_python() -> Language:
    import tree_sitter_python as tspython

    return Language(tspython.language())


# Language name -> loader function.
_LANGUAGE_LOADERS: dict[str, Callable[[], Language]] = {
    "typescript": _load_typescript,
    "tsx": _load_tsx,
    "python": _load_python,
}

# Extension -> language name.  JS/JSX go through the TypeScript grammar
# (a superset), JSX-bearing files through its TSX dialect.
_EXTENSION_LANGUAGES: dict[str, str] = {
    ".ts": "typescript",
    ".js": "typescript",
    ".tsx": "tsx",
    ".jsx": "tsx",
    ".py": "python",
}

PARSEABLE_EXTENSIONS: frozenset[str] = frozenset(_EXTENSION_LANGUAGES)

# Counted as project files during a scan, never parsed.
SCAN_ONLY_EXTENSIONS: frozenset[str] = frozenset({".go", ".rs"})

SOURCE_EXTENSIONS: frozenset[str] = PARSEABLE_EXTENSIONS | SCAN_ONLY_EXTENSIONS


def language_for(extension: str) -> str | None:
    """Return the grammar name used for *extension*, or ``None``."""
    return _EXTENSION_LANGUAGES.get(extension)


def is_parseable(extension: str) -> bool:
    return extension in PARSEABLE_EXTENSIONS


def is_source_file(extension: str) -> bool:
    return extension in SOURCE_EXTENSIONS


class SyntaxTreeProvider:
    """Holds one tree-sitter parser per supported language.

    Usage::

        provider = SyntaxTreeProvider()
        provider.load_grammars()
        tree = provider.parse(source, ".ts")
    """

    def __init__(self) -> None:
        self._parsers: dict[str, Parser] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load_grammars(self) -> None:
        """Load every grammar.  Safe to call repeatedly.

        Raises
        ------
        GrammarLoadError
            If any grammar package is missing or incompatible; indexing cannot
            proceed without all of them.
        """
        if self._loaded:
            return

        parsers: dict[str, Parser] = {}
        for name, loader in _LANGUAGE_LOADERS.items():
            try:
                parsers[name] = Parser(loader())
            except ImportError as exc:
                raise GrammarLoadError(
                    f"Grammar package for '{name}' is not installed: {exc}"
                ) from exc
            except (ValueError, TypeError) as exc:
                raise GrammarLoadError(f"Could not load grammar for '{name}': {exc}") from exc
            logger.debug("Loaded tree-sitter grammar for %s", name)

        self._parsers = parsers
        self._loaded = True
        logger.info("Tree-sitter grammars loaded: %s", ", ".join(sorted(parsers)))

    def parse(self, content: str, extension: str) -> Tree | None:
        """Parse *content* with the grammar for *extension*.

        Returns ``None`` for unsupported (or scan-only) extensions and when the
        underlying parser fails on the input.
        """
        if not self._loaded:
            raise GrammarsNotLoadedError("Grammars not loaded. Call load_grammars() first.")

        language = _EXTENSION_LANGUAGES.get(extension)
        if language is None:
            return None

        try:
            return self._parsers[language].parse(content.encode("utf-8"))
        except Exception as exc:
            logger.warning("Failed to parse %s content: %s", extension, exc)
            return None
