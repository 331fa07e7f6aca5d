"""Symbol extractor: walk a tree-sitter tree and collect declaration nodes."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from symgraph.symbols.models import Node, make_signature, new_id

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from tree_sitter import Node as TSNode
    from tree_sitter import Tree

# Comment openers that mark a documentation comment.
DOC_COMMENT_MARKERS: tuple[str, ...] = ("/**", '"""', "'''")

# TypeScript / JavaScript node type -> kind.
_TS_DECLARATION_KINDS: dict[str, str] = {
    "function_declaration": "function",
    "generator_function_declaration": "function",
    "class_declaration": "class",
    "abstract_class_declaration": "class",
    "interface_declaration": "interface",
    "type_alias_declaration": "type_alias",
    "enum_declaration": "enum",
    "method_definition": "method",
}

_TS_VARIABLE_DECLARATIONS = frozenset({"lexical_declaration", "variable_declaration"})

# Initializers that turn a variable binding into an indexed declaration.
_TS_FUNCTION_VALUES = frozenset({"arrow_function", "function", "function_expression"})

_PY_DEFINITIONS = frozenset({"function_definition", "class_definition"})


@dataclass(frozen=True)
class _FileContext:
    file_path: str
    lines: list[str]


# ---------------------------------------------------------------------------
# Tree helpers (shared with the resolver)
# ---------------------------------------------------------------------------


def iter_preorder(root: TSNode) -> Iterator[TSNode]:
    """Yield *root* and every descendant in pre-order, without recursion."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def node_text(node: TSNode) -> str:
    return node.text.decode("utf-8") if node.text else ""


def is_exported(node: TSNode) -> bool:
    """True if *node* sits in an export wrapper or follows an ``export`` token."""
    parent = node.parent
    if parent is None:
        return False
    if parent.type == "export_statement":
        return True
    for sibling in parent.children:
        if sibling.start_byte >= node.start_byte:
            break
        if sibling.text == b"export":
            return True
    return False


def _emit(
    acc: list[Node],
    ctx: _FileContext,
    node: TSNode,
    kind: str,
    *,
    exported: bool,
    doc_comment: str | None,
) -> None:
    name_node = node.child_by_field_name("name")
    if name_node is None:
        return
    name = node_text(name_node)
    if not name:
        return

    # tree-sitter uses 0-based rows; we want 1-based lines.
    acc.append(
        Node(
            id=new_id(),
            file_path=ctx.file_path,
            name=name,
            kind=kind,
            start_line=node.start_point.row + 1,
            end_line=node.end_point.row + 1,
            signature=make_signature(ctx.lines, node.start_point.row),
            doc_comment=doc_comment,
            exported=exported,
        )
    )


# ---------------------------------------------------------------------------
# TypeScript / JavaScript
# ---------------------------------------------------------------------------


def _ts_doc_comment(node: TSNode) -> str | None:
    """Return the doc comment directly above *node* (or above its export wrapper).

    Only the immediately preceding sibling is considered.
    """
    anchor = node
    if node.parent is not None and node.parent.type == "export_statement":
        anchor = node.parent

    prev = anchor.prev_sibling
    if prev is None or prev.type != "comment":
        return None
    text = node_text(prev).strip()
    if text.startswith(DOC_COMMENT_MARKERS):
        return text
    return None


def _visit_typescript(node: TSNode, ctx: _FileContext, acc: list[Node]) -> None:
    kind = _TS_DECLARATION_KINDS.get(node.type)
    if kind is not None:
        _emit(
            acc,
            ctx,
            node,
            kind,
            exported=False if kind == "method" else is_exported(node),
            doc_comment=_ts_doc_comment(node),
        )
        return

    if node.type not in _TS_VARIABLE_DECLARATIONS:
        return

    exported = is_exported(node)
    doc_comment = _ts_doc_comment(node)
    for declarator in node.named_children:
        if declarator.type != "variable_declarator":
            continue
        value = declarator.child_by_field_name("value")
        if value is None or value.type not in _TS_FUNCTION_VALUES:
            continue
        name_node = declarator.child_by_field_name("name")
        # Destructuring patterns have no single name.
        if name_node is None or name_node.type != "identifier":
            continue
        _emit(acc, ctx, declarator, "variable", exported=exported, doc_comment=doc_comment)


# ---------------------------------------------------------------------------
# Python
# ---------------------------------------------------------------------------


def _enclosing_definition(node: TSNode) -> TSNode | None:
    """Nearest ancestor function or class definition, or ``None`` at module level."""
    parent = node.parent
    while parent is not None:
        if parent.type in _PY_DEFINITIONS:
            return parent
        parent = parent.parent
    return None


def _python_docstring(node: TSNode) -> str | None:
    """Return the docstring literal opening the body of *node*, if any."""
    body = node.child_by_field_name("body")
    if body is None or not body.named_children:
        return None
    first = body.named_children[0]
    if first.type != "expression_statement" or not first.named_children:
        return None
    literal = first.named_children[0]
    if literal.type != "string":
        return None
    text = node_text(literal).strip()
    if text.startswith(DOC_COMMENT_MARKERS[1:]):
        return text
    return None


def _visit_python(node: TSNode, ctx: _FileContext, acc: list[Node]) -> None:
    if node.type not in _PY_DEFINITIONS:
        return

    owner = _enclosing_definition(node)
    if node.type == "class_definition":
        kind = "class"
    elif owner is not None and owner.type == "class_definition":
        kind = "method"
    else:
        kind = "function"

    # No export keyword in Python: module-level definitions are public.
    _emit(
        acc,
        ctx,
        node,
        kind,
        exported=owner is None,
        doc_comment=_python_docstring(node),
    )


_VISITORS: dict[str, Callable[[TSNode, _FileContext, list[Node]], None]] = {
    ".ts": _visit_typescript,
    ".tsx": _visit_typescript,
    ".js": _visit_typescript,
    ".jsx": _visit_typescript,
    ".py": _visit_python,
}


def extract_nodes(tree: Tree, file_path: str, source: str) -> list[Node]:
    """Extract declaration nodes from a parsed file.

    Pure function of its inputs.  Returns an empty list for extensions without
    a visitor.  Export wrappers and decorators are never recorded themselves;
    the walk reaches the wrapped declaration and records it once.
    """
    visit = _VISITORS.get(PurePosixPath(file_path).suffix)
    if visit is None:
        return []

    ctx = _FileContext(file_path=file_path, lines=source.split("\n"))
    nodes: list[Node] = []
    for ts_node in iter_preorder(tree.root_node):
        visit(ts_node, ctx, nodes)
    return nodes
