"""Graph records: declaration nodes and relationship edges."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from typing import Any

# Declaration kinds accepted by the store (mirrors the CHECK constraint).
NODE_KINDS: frozenset[str] = frozenset(
    {"function", "class", "variable", "interface", "method", "type_alias", "enum"}
)

# Relationship kinds accepted by the store.  ``calls`` is reserved in the
# schema; the resolver does not produce call edges.
EDGE_RELATIONS: frozenset[str] = frozenset({"imports", "calls", "extends", "implements"})

# Signatures longer than this are cut and suffixed with "...".
MAX_SIGNATURE_LEN = 200


def new_id() -> str:
    """Return a fresh opaque record id."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Node:
    """A declaration found in a source file.

    ``start_line`` and ``end_line`` are 1-based and inclusive.  ``updated_at``
    is filled in by the store when the row is read back.
    """

    id: str
    file_path: str
    name: str
    kind: str
    start_line: int
    end_line: int
    signature: str | None = None
    doc_comment: str | None = None
    exported: bool = False
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Edge:
    """A directed relationship between two nodes."""

    id: str
    source_node_id: str
    target_node_id: str
    relation: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class StoreCounts:
    """Row totals reported by :meth:`SymbolStore.counts`."""

    files: int
    nodes: int
    edges: int


def make_signature(source_lines: list[str], row: int) -> str:
    """Return the trimmed source line at 0-based *row*, truncated to 200 chars."""
    line = source_lines[row].strip() if 0 <= row < len(source_lines) else ""
    if len(line) > MAX_SIGNATURE_LEN:
        return line[: MAX_SIGNATURE_LEN - 3] + "..."
    return line
