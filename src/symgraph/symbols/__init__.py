"""Symbols domain: grammars, declaration extraction, relationship resolution."""

from symgraph.symbols.extractor import extract_nodes
from symgraph.symbols.models import (
    EDGE_RELATIONS,
    NODE_KINDS,
    Edge,
    Node,
    StoreCounts,
)
from symgraph.symbols.parser import (
    PARSEABLE_EXTENSIONS,
    SCAN_ONLY_EXTENSIONS,
    SOURCE_EXTENSIONS,
    GrammarLoadError,
    GrammarsNotLoadedError,
    SyntaxTreeProvider,
    is_parseable,
    is_source_file,
    language_for,
)
from symgraph.symbols.resolver import RelationshipResolver

__all__ = [
    "EDGE_RELATIONS",
    "NODE_KINDS",
    "PARSEABLE_EXTENSIONS",
    "SCAN_ONLY_EXTENSIONS",
    "SOURCE_EXTENSIONS",
    "Edge",
    "GrammarLoadError",
    "GrammarsNotLoadedError",
    "Node",
    "RelationshipResolver",
    "StoreCounts",
    "SyntaxTreeProvider",
    "extract_nodes",
    "is_parseable",
    "is_source_file",
    "language_for",
]
