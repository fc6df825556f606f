# Hierarchical chunk generation over a Tree-sitter syntax tree.
# - Parse RAW BYTES; all offsets are byte offsets into the immutable source.
#   Decode only after slicing.
# - Preorder, left-to-right walk. The root, and any container/function-like node, is emitted
#   verbatim when its text estimates under the token budget (no descent).
# - Oversized containers/functions emit one collapsed chunk (see collapsing.py) and the walk
#   still descends, so oversized members get chunks of their own.
# - Every other node emits nothing and is descended into.
# - Lazy and deterministic: no state survives between calls.

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from tree_sitter import Node, Tree
from tree_sitter_language_pack import get_parser

from Calculators.TokenEstimator import TokenEstimator
from Calculators.WhitespaceTokenCalculator import WhitespaceTokenCalculator
from collapsing import StructuralDefectError, collapse_node
from node_roles import NodeRoles, language_for_extension, roles_for_language

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 1000

NodeDecorator = Callable[[Node, bytes], Dict[str, Any]]


@dataclass(frozen=True)
class Chunk:
    content: str
    start_line: int
    end_line: int
    node_type: str
    start_bytes: int
    end_bytes: int
    collapsed: bool = False
    path: str = ""
    language: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    def id(self):
        id = f"{self.path}::{self.node_type}::{self.start_bytes}::{self.end_bytes}"
        return hashlib.sha256(id.encode()).hexdigest()


def chunk_file(
        path: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        *,
        estimator: Optional[TokenEstimator] = None,
        decorate: Optional[NodeDecorator] = None,
) -> Iterator[Chunk]:
    """
    Lazily chunk a source file chosen by extension.

    Unsupported extensions are logged and produce no chunks.
    """
    extension = Path(path).suffix[1:]
    language = language_for_extension(extension)
    if not language:
        logger.warning("Unsupported file extension: %s (%s)", extension or "<none>", path)
        return
    contents = Path(path).read_bytes()
    yield from chunk_source(
        contents, language, max_tokens, estimator=estimator, decorate=decorate, path=path
    )


def chunk_source(
        source: bytes,
        language: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        *,
        estimator: Optional[TokenEstimator] = None,
        decorate: Optional[NodeDecorator] = None,
        path: str = "",
) -> Iterator[Chunk]:
    """Parse `source` with the Tree-sitter grammar for `language` and lazily chunk it."""
    tree = parse_source(source, language)
    yield from iter_chunks(
        tree.root_node,
        source,
        max_tokens,
        estimator=estimator,
        roles=roles_for_language(language),
        decorate=decorate,
        path=path,
        language=language,
    )


def parse_source(source: bytes, language: str) -> Tree:
    """Parse raw bytes with the Tree-sitter grammar for `language`."""
    parser = get_parser(language)
    return parser.parse(source)


def iter_chunks(
        root: Node,
        source: bytes,
        max_tokens: int,
        *,
        estimator: Optional[TokenEstimator] = None,
        roles: Optional[NodeRoles] = None,
        decorate: Optional[NodeDecorator] = None,
        path: str = "",
        language: str = "",
) -> Iterator[Chunk]:
    """
    Yield chunks for the tree under `root` in preorder.

    Per node:
      - root, or container/function-like: verbatim chunk if estimate(text) < max_tokens; stop.
      - container/function-like that does not fit: one collapsed chunk, then descend.
      - anything else: descend without emitting.
    A structural defect while collapsing is logged and that node's chunk is skipped; the walk
    carries on with its children and siblings. A failing `decorate` is logged and leaves that
    chunk's metadata empty. The tree's root chunk covers the whole file, from line 1.

    Raises:
      ValueError: if max_tokens is not a positive integer.
    """
    if max_tokens <= 0:
        raise ValueError(f"max_tokens must be positive, got {max_tokens}")
    estimator = estimator or WhitespaceTokenCalculator()
    roles = roles or roles_for_language(language or None)

    stack: List[Tuple[Node, bool]] = [(root, True)]
    while stack:
        node, is_root = stack.pop()
        collapsible = roles.is_collapsible(roles.unwrap(node).type)
        # The tree's own root stands for the whole file, leading/trailing blank lines included.
        whole_file = is_root and node.parent is None

        if is_root or collapsible:
            if whole_file:
                text = _slice(source, 0, len(source))
            else:
                text = _slice(source, node.start_byte, node.end_byte)
            if estimator.estimate(text) < max_tokens:
                yield _make_chunk(node, source, text, False, decorate, path, language, whole_file)
                continue

        if collapsible:
            try:
                content = collapse_node(node, source, max_tokens, estimator, roles)
            except StructuralDefectError as e:
                logger.warning("Skipping collapsed chunk in %s: %s", path or "<source>", e)
            else:
                yield _make_chunk(node, source, content, True, decorate, path, language)

        stack.extend((child, False) for child in reversed(_descent_children(node, roles)))


def _descent_children(node: Node, roles: NodeRoles) -> List[Node]:
    """Children to visit next; a wrapper's definition is replaced by its own children."""
    inner = roles.unwrap(node)
    if inner is node:
        return list(node.children)
    outer = [
        child for child in node.children
        if (child.start_byte, child.end_byte, child.type) != (inner.start_byte, inner.end_byte, inner.type)
    ]
    return outer + list(inner.children)


def _make_chunk(
        node: Node,
        source: bytes,
        content: str,
        collapsed: bool,
        decorate: Optional[NodeDecorator],
        path: str,
        language: str,
        whole_file: bool = False,
) -> Chunk:
    metadata: Dict[str, Any] = {}
    if decorate is not None:
        try:
            metadata = decorate(node, source)
        except Exception as e:
            logger.warning(
                "Decorator failed for %s at line %d in %s: %s",
                node.type, node.start_point[0] + 1, path or "<source>", e,
            )
    if whole_file:
        start_line, end_line = 1, source.rstrip().count(b"\n") + 1
        start_bytes, end_bytes = 0, len(source)
    else:
        start_line, end_line = node.start_point[0] + 1, node.end_point[0] + 1
        start_bytes, end_bytes = node.start_byte, node.end_byte
    chunk = Chunk(
        content=content,
        start_line=start_line,
        end_line=end_line,
        node_type=node.type,
        start_bytes=start_bytes,
        end_bytes=end_bytes,
        collapsed=collapsed,
        path=path,
        language=language,
        metadata=metadata,
    )
    logger.debug(
        "Chunk %s %d-%d (%s)", chunk.node_type, chunk.start_line, chunk.end_line,
        "collapsed" if collapsed else "verbatim",
    )
    return chunk


def _slice(source: bytes, start: int, end: int) -> str:
    return source[start:end].decode("utf-8", errors="replace")


__all__ = [
    "DEFAULT_MAX_TOKENS",
    "Chunk",
    "NodeDecorator",
    "chunk_file",
    "chunk_source",
    "parse_source",
    "iter_chunks",
]
