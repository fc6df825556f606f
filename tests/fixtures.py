# Shared test fixtures utilities.
# Provides on-disk source samples and a tiny hand-built syntax tree (FakeNode) with the
# subset of the tree_sitter.Node API the chunker reads, so collapsing can be asserted
# byte-for-byte without depending on a grammar's exact node layout.

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

# Directory for on-disk source fixtures used by tests
FIXTURES_DIR = Path(__file__).with_name("fixtures")


def load_bytes(name: str) -> bytes:
    """Load a named fixture file from tests/fixtures directory."""
    return (FIXTURES_DIR / name).read_bytes()


def _point(source: bytes, index: int) -> Tuple[int, int]:
    row = source.count(b"\n", 0, index)
    last_nl = source.rfind(b"\n", 0, index)
    col = index if last_nl == -1 else index - (last_nl + 1)
    return (row, col)


class FakeNode:
    """Stand-in for tree_sitter.Node: type, byte span, points, children, parent, fields."""

    def __init__(
            self,
            type: str,
            source: bytes,
            start: int,
            end: int,
            children: Iterable["FakeNode"] = (),
            fields: Optional[Dict[str, "FakeNode"]] = None,
            named: bool = True,
    ) -> None:
        self.type = type
        self.start_byte = start
        self.end_byte = end
        self.start_point = _point(source, start)
        self.end_point = _point(source, end)
        self.children: List[FakeNode] = list(children)
        self.is_named = named
        self.parent: Optional[FakeNode] = None
        self._fields = dict(fields or {})
        for child in self.children:
            child.parent = self

    @property
    def named_children(self) -> List["FakeNode"]:
        return [c for c in self.children if c.is_named]

    def child_by_field_name(self, name: str) -> Optional["FakeNode"]:
        return self._fields.get(name)

    def __repr__(self) -> str:
        return f"FakeNode({self.type!r}, {self.start_byte}, {self.end_byte})"


class SourceBuilder:
    """Append text while recording byte spans."""

    def __init__(self) -> None:
        self._parts: List[bytes] = []
        self.pos = 0

    def add(self, text: str) -> Tuple[int, int]:
        data = text.encode("utf-8")
        start = self.pos
        self._parts.append(data)
        self.pos += len(data)
        return start, self.pos

    def source(self) -> bytes:
        return b"".join(self._parts)


class MemberSpec:
    """One method in a built class: name, body statement text, optional leading comment."""

    def __init__(self, name: str, body: str, comment: Optional[str] = None, has_body: bool = True) -> None:
        self.name = name
        self.body = body
        self.comment = comment
        self.has_body = has_body


def build_class(
        members: Sequence[MemberSpec],
        *,
        class_name: str = "Shape",
        container_type: str = "class_declaration",
        body_type: str = "class_body",
        member_type: str = "method_declaration",
        block_type: str = "block",
        prelude: str = "",
) -> Tuple[bytes, FakeNode, FakeNode]:
    """
    Build source text like:

        class Shape {
            void foo() {
                a b c
            }

            void bar() {
                d e f
            }
        }

    Returns (source, root, class_node). The root ("program") spans the whole source.
    """
    b = SourceBuilder()
    prelude_span = b.add(prelude) if prelude else None
    cls_start = b.pos
    kw = b.add("class")
    b.add(" ")
    ident = b.add(class_name)
    b.add(" ")
    lbrace = b.add("{")
    # (comment, start, name, block, end) spans, collected before the source is final
    # (kind, spans...) collected before the source is final
    member_layout = []
    for i, member in enumerate(members):
        b.add("\n\n    " if i else "\n    ")
        comment_span = None
        if member.comment:
            comment_span = b.add(member.comment)
            b.add("\n    ")
        m_start = b.pos
        b.add("void ")
        name_span = b.add(member.name)
        b.add("()")
        if member.has_body:
            b.add(" ")
            blk = b.add("{\n        " + member.body + "\n    }")
        else:
            blk = None
            b.add(";")
        member_layout.append((comment_span, m_start, name_span, blk, b.pos))
    b.add("\n")
    rbrace = b.add("}")
    cls_end = b.pos
    source = b.source()

    body_children: List[FakeNode] = [FakeNode("{", source, *lbrace, named=False)]
    for comment_span, m_start, name_span, blk, m_end in member_layout:
        if comment_span is not None:
            body_children.append(FakeNode("comment", source, *comment_span))
        name_node = FakeNode("identifier", source, *name_span)
        fields = {"name": name_node}
        kids = [name_node]
        if blk is not None:
            block = FakeNode(block_type, source, *blk)
            fields["body"] = block
            kids.append(block)
        else:
            kids.append(FakeNode(";", source, m_end - 1, m_end, named=False))
        body_children.append(FakeNode(member_type, source, m_start, m_end, children=kids, fields=fields))
    body_children.append(FakeNode("}", source, *rbrace, named=False))

    class_body = FakeNode(body_type, source, lbrace[0], rbrace[1], children=body_children)
    ident_node = FakeNode("identifier", source, *ident)
    class_node = FakeNode(
        container_type,
        source,
        cls_start,
        cls_end,
        children=[FakeNode("class", source, *kw, named=False), ident_node, class_body],
        fields={"name": ident_node, "body": class_body},
    )
    root_children = []
    if prelude_span is not None:
        root_children.append(FakeNode("expression_statement", source, prelude_span[0], prelude_span[1] - 1))
    root_children.append(class_node)
    root = FakeNode("program", source, 0, cls_end, children=root_children)
    return source, root, class_node


def member_nodes(class_node: FakeNode) -> List[FakeNode]:
    body = class_node.child_by_field_name("body")
    return [c for c in body.children if c.type not in ("{", "}", "comment")]


__all__ = [
    "FIXTURES_DIR",
    "load_bytes",
    "FakeNode",
    "SourceBuilder",
    "MemberSpec",
    "build_class",
    "member_nodes",
]
