"""Relationship resolver: import and inheritance edges between declarations.

Targets are looked up by name in the *global* store, so resolution must run
after every file's nodes have been persisted (pass 2 of a full index, or after
the single-file insert in the watcher).  Name matching is first-match-wins in
store order (file path, start line); there is no disambiguation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from symgraph.symbols.extractor import iter_preorder
from symgraph.symbols.models import Edge, Node, new_id

if TYPE_CHECKING:
    from tree_sitter import Node as TSNode
    from tree_sitter import Tree

    from symgraph.infrastructure.store import SymbolStore

logger = logging.getLogger(__name__)

_TS_CLASS_TYPES = frozenset({"class_declaration", "abstract_class_declaration"})

_TS_EXTENSIONS = frozenset({".ts", ".tsx", ".js", ".jsx"})
_PY_EXTENSIONS = frozenset({".py"})


@dataclass
class _FileScope:
    """Per-call state threaded through the walk."""

    file_path: str
    data: bytes
    file_nodes: list[Node]
    edges: list[Edge] = field(default_factory=list)

    def text(self, node: TSNode) -> str:
        return self.data[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def first_exported(self) -> Node | None:
        for node in self.file_nodes:
            if node.exported:
                return node
        return None

    def local_class(self, name: str) -> Node | None:
        for node in self.file_nodes:
            if node.kind == "class" and node.name == name:
                return node
        return None


class RelationshipResolver:
    """Produce :class:`Edge` records for one parsed file."""

    def __init__(self, store: SymbolStore) -> None:
        self._store = store

    def resolve(
        self,
        tree: Tree,
        file_path: str,
        source: str,
        file_nodes: list[Node],
    ) -> list[Edge]:
        """Return import, extends and implements edges for *file_path*.

        *source* is the text *tree* was parsed from and *file_nodes* the nodes
        extracted from it (already persisted).  Unresolvable names produce no
        edge.  The resolver never produces ``calls`` edges.
        """
        suffix = PurePosixPath(file_path).suffix
        scope = _FileScope(
            file_path=file_path, data=source.encode("utf-8"), file_nodes=file_nodes
        )

        if suffix in _TS_EXTENSIONS:
            visit = self._visit_typescript
        elif suffix in _PY_EXTENSIONS:
            visit = self._visit_python
        else:
            return []

        for ts_node in iter_preorder(tree.root_node):
            visit(ts_node, scope)

        logger.debug("Resolved %d edge(s) for %s", len(scope.edges), file_path)
        return scope.edges

    # -- shared -------------------------------------------------------------

    def _add_import(self, scope: _FileScope, name: str) -> None:
        # Any exported symbol of the file stands in as the importer.
        source_node = scope.first_exported()
        if source_node is None or not name:
            return
        target = self._store.find_node(name, exported=True, exclude_file=scope.file_path)
        if target is None:
            return
        scope.edges.append(_edge(source_node, target, "imports"))

    def _add_heritage(self, scope: _FileScope, child: Node, name: str, relation: str) -> None:
        kind = "interface" if relation == "implements" else "class"
        target = self._store.find_node(name, kind=kind)
        if target is None:
            return
        scope.edges.append(_edge(child, target, relation))

    # -- TypeScript / JavaScript ----------------------------------------------

    def _visit_typescript(self, node: TSNode, scope: _FileScope) -> None:
        if node.type == "import_clause":
            for sub in iter_preorder(node):
                if sub.type == "identifier":
                    self._add_import(scope, scope.text(sub))
            return

        if node.type not in _TS_CLASS_TYPES:
            return

        name_node = node.child_by_field_name("name")
        heritage = next((c for c in node.children if c.type == "class_heritage"), None)
        if name_node is None or heritage is None:
            return
        child = scope.local_class(scope.text(name_node))
        if child is None:
            return

        for clause in heritage.named_children:
            if clause.type == "extends_clause":
                values = clause.children_by_field_name("value") or clause.named_children
                for value in values:
                    name = _ts_expression_name(value, scope)
                    if name:
                        self._add_heritage(scope, child, name, "extends")
            elif clause.type == "implements_clause":
                for type_node in clause.named_children:
                    name = _ts_type_name(type_node, scope)
                    if name:
                        self._add_heritage(scope, child, name, "implements")

    # -- Python -----------------------------------------------------------------

    def _visit_python(self, node: TSNode, scope: _FileScope) -> None:
        if node.type == "import_statement":
            # import a.b [as c] -> "a.b"
            for name_node in node.children_by_field_name("name"):
                self._add_import(scope, scope.text(_unalias(name_node)))
        elif node.type == "import_from_statement":
            # from m import x, y as z -> "x", "y"
            for name_node in node.children_by_field_name("name"):
                self._add_import(scope, scope.text(_unalias(name_node)))
        elif node.type == "class_definition":
            name_node = node.child_by_field_name("name")
            bases = node.child_by_field_name("superclasses")
            if name_node is None or bases is None:
                return
            child = scope.local_class(scope.text(name_node))
            if child is None:
                return
            for base in bases.named_children:
                if base.type == "identifier":
                    self._add_heritage(scope, child, scope.text(base), "extends")
                elif base.type == "attribute":
                    attr = base.child_by_field_name("attribute")
                    if attr is not None:
                        self._add_heritage(scope, child, scope.text(attr), "extends")


def _edge(source: Node, target: Node, relation: str) -> Edge:
    return Edge(
        id=new_id(),
        source_node_id=source.id,
        target_node_id=target.id,
        relation=relation,
    )


def _unalias(node: TSNode) -> TSNode:
    """For ``aliased_import`` return the imported name, else *node* itself."""
    if node.type == "aliased_import":
        inner = node.child_by_field_name("name")
        if inner is not None:
            return inner
    return node


def _ts_expression_name(node: TSNode, scope: _FileScope) -> str | None:
    """Class name referenced by an ``extends`` expression (``Base`` or ``ns.Base``)."""
    if node.type == "identifier":
        return scope.text(node)
    if node.type == "member_expression":
        prop = node.child_by_field_name("property")
        if prop is not None:
            return scope.text(prop)
    return None


def _ts_type_name(node: TSNode, scope: _FileScope) -> str | None:
    """Interface name referenced by an ``implements`` entry, ignoring type arguments."""
    if node.type == "type_identifier":
        return scope.text(node)
    if node.type == "generic_type":
        inner = node.child_by_field_name("name")
        return _ts_type_name(inner, scope) if inner is not None else None
    if node.type == "nested_type_identifier":
        inner = node.child_by_field_name("name")
        return scope.text(inner) if inner is not None else None
    return None
