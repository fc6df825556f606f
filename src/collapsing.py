# Collapsing engine: structural rewrites of oversized containers and functions.
# - All edits are slices of the immutable source bytes; offsets always come from the tree,
#   never from previously rewritten text.
# - Containers: every member function's body becomes a placeholder, then whole members are
#   evicted last-declared-first until the rendering fits the token budget.
# - Functions: signature verbatim, body replaced wholesale, optionally prefixed with the
#   enclosing container's scaffold (exactly two levels up).

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from tree_sitter import Node

from Calculators.TokenEstimator import TokenEstimator
from node_roles import NodeRole, NodeRoles

logger = logging.getLogger(__name__)

CONTAINER_ELLIPSIS = "...\n\n"

_TRIVIA_MARKERS = ("comment", "doc", "annotation", "attribute")


class StructuralDefectError(ValueError):
    """A container or function-like node is missing the body the collapser needs."""

    def __init__(self, node: Node, reason: str) -> None:
        self.node_type = node.type
        self.start_bytes = node.start_byte
        self.end_bytes = node.end_byte
        self.start_line = node.start_point[0] + 1
        self.end_line = node.end_point[0] + 1
        super().__init__(
            f"{reason}: {self.node_type} at bytes {self.start_bytes}:{self.end_bytes} "
            f"(lines {self.start_line}-{self.end_line})"
        )


@dataclass(frozen=True)
class EvictableUnit:
    """One collapsed member of a container: its source span and its collapsed text."""

    start: int
    end: int
    text: str


def collapse_node(
        node: Node,
        source: bytes,
        max_tokens: int,
        estimator: TokenEstimator,
        roles: NodeRoles,
) -> str:
    """Dispatch to the container or function collapser based on the node's role."""
    role = roles.role_of(node)
    if role is NodeRole.CONTAINER:
        return collapse_container(node, source, max_tokens, estimator, roles)
    if role is NodeRole.FUNCTION_LIKE:
        return collapse_function(node, source, roles)
    raise ValueError(f"{node.type} is neither a container nor function-like")


def collapse_container(
        node: Node,
        source: bytes,
        max_tokens: int,
        estimator: TokenEstimator,
        roles: NodeRoles,
) -> str:
    """
    Render a container with member bodies collapsed, evicting members until it fits.

    Logic:
      - Find the container's member list (first child tagged as a container body).
      - Each function-like member owning a body block becomes an EvictableUnit whose text has
        that block replaced by its placeholder.
      - While the stripped rendering is at/over `max_tokens`, drop the source-order-last
        remaining unit. At most one pass over the units, so a misbehaving estimator still
        terminates with an over-budget result.
      - If anything was evicted, squeeze the blank-line runs the eviction left behind.

    Raises:
      StructuralDefectError: if the container has no member list.
    """
    body = _first_child_of(roles.unwrap(node), roles.container_body)
    if body is None:
        raise StructuralDefectError(node, "container has no body block")

    units = member_units(body, source, roles)
    kept = len(units)
    text = render_units(node, source, units, kept)
    while kept > 0 and estimator.estimate(text.strip()) >= max_tokens:
        kept -= 1
        text = render_units(node, source, units, kept)

    if kept < len(units):
        logger.debug(
            "Evicted %d of %d members from %s at line %d",
            len(units) - kept, len(units), node.type, node.start_point[0] + 1,
        )
        text = normalize_blank_lines(text)
    return text


def collapse_function(node: Node, source: bytes, roles: NodeRoles) -> str:
    """
    Render a function-like node as its signature followed by the body placeholder.

    When the function sits directly in a container's member list, the container's own
    header (container start up to its member list) and an ellipsis line come first, and the
    function is re-indented to its original column. A wrapper node (decorators) keeps its
    decorators and collapses the body of the definition it carries.

    Raises:
      StructuralDefectError: if no body can be found.
    """
    body = function_body(roles.unwrap(node), roles)
    text = _slice(source, node.start_byte, body.start_byte) + roles.placeholder_for(body)

    parent = node.parent
    if parent is None or not roles.is_container_body(parent.type):
        return text
    container = parent.parent
    if container is None or roles.classify(container.type) is not NodeRole.CONTAINER:
        return text
    outer = container.parent
    if outer is None or outer.type not in roles.wrapper:
        outer = container
    scaffold = _slice(source, outer.start_byte, parent.start_byte)
    indent = " " * node.start_point[1]
    return f"{scaffold}{CONTAINER_ELLIPSIS}{indent}{text}"


def function_body(node: Node, roles: NodeRoles) -> Node:
    """Return the body of a function-like node: its `body` field, else a trailing block child."""
    body = node.child_by_field_name("body")
    if body is None and node.children:
        last = node.children[-1]
        if last.type in roles.body_block or roles.is_container_body(last.type):
            body = last
    if body is None:
        raise StructuralDefectError(node, "function-like node has no body")
    return body


def member_units(body: Node, source: bytes, roles: NodeRoles) -> List[EvictableUnit]:
    """
    Build the evictable units of a container's member list, in source order.

    A unit starts at the member's leading comment trivia (no blank line in between) and runs
    up to the next named sibling, or to the member's own end when it is the last one. Units
    never overlap; anything between them stays in the rendering verbatim. A decorated
    member counts as one unit, decorators included.
    """
    children = list(body.children)
    units: List[EvictableUnit] = []
    for i, child in enumerate(children):
        definition = roles.unwrap(child)
        if roles.classify(definition.type) is not NodeRole.FUNCTION_LIKE:
            continue
        block = _first_child_of(definition, roles.body_block)
        if block is None:
            continue
        start = _leading_trivia_start(source, children, i)
        end = _unit_end(children, i)
        text = (
            _slice(source, start, block.start_byte)
            + roles.placeholder_for(block)
            + _slice(source, block.end_byte, end)
        )
        units.append(EvictableUnit(start=start, end=end, text=text))
    return units


def render_units(node: Node, source: bytes, units: Sequence[EvictableUnit], kept: int) -> str:
    """Render `node` with its first `kept` units collapsed and the remaining units removed."""
    parts: List[str] = []
    cursor = node.start_byte
    for i, unit in enumerate(units):
        parts.append(_slice(source, cursor, unit.start))
        if i < kept:
            parts.append(unit.text)
        cursor = unit.end
    parts.append(_slice(source, cursor, node.end_byte))
    return "".join(parts)


def normalize_blank_lines(text: str) -> str:
    """
    Squeeze runs of blank lines left behind by eviction.

    Scans bottom-to-top; a run of two or more whitespace-only lines with a non-blank line
    above it is reduced to its last line. Blank lines at the very top are left alone and
    non-blank lines are never touched, so applying this twice equals applying it once.
    """
    lines = text.split("\n")
    group_end = -1
    for i in range(len(lines) - 1, -1, -1):
        if not lines[i].strip():
            if group_end < 0:
                group_end = i
            continue
        if group_end - i > 1:
            del lines[i + 1:group_end]
        group_end = -1
    return "\n".join(lines)


# -----------------------------
# Helpers (small, single-purpose)
# -----------------------------

def _slice(source: bytes, start: int, end: int) -> str:
    return source[start:end].decode("utf-8", errors="replace")


def _first_child_of(node: Node, tags) -> Optional[Node]:
    for child in node.children:
        if child.type in tags:
            return child
    return None


def _unit_end(children: Sequence[Node], index: int) -> int:
    for sibling in children[index + 1:]:
        if sibling.is_named:
            return sibling.start_byte
    return children[index].end_byte


def _leading_trivia_start(source: bytes, children: Sequence[Node], index: int) -> int:
    """
    Find the start byte including contiguous leading comments/attributes with no blank-line gap.
    """
    start = children[index].start_byte
    for sibling in reversed(children[:index]):
        if not sibling.is_named:
            break
        if not any(marker in sibling.type for marker in _TRIVIA_MARKERS):
            break
        if _has_blank_line_between(source, sibling.end_byte, start):
            break
        start = sibling.start_byte
    return start


def _has_blank_line_between(source: bytes, a_end: int, b_start: int) -> bool:
    """Return True if a blank line exists between byte offsets a_end and b_start."""
    return bool(re.search(rb"\r?\n[ \t]*\r?\n", source[a_end:b_start]))


__all__ = [
    "StructuralDefectError",
    "EvictableUnit",
    "collapse_node",
    "collapse_container",
    "collapse_function",
    "function_body",
    "member_units",
    "render_units",
    "normalize_blank_lines",
]
