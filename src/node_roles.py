# Node classification for the collapsing chunker.
# - Grammar tags map to one of four roles: CONTAINER, FUNCTION_LIKE, BODY_BLOCK, OTHER.
# - Tables live in node_roles.json: a "default" table plus per-language additions
#   that are merged on top of it. Unknown tags are OTHER; unknown languages get the default.
# - Pure lookups only; nothing here touches a tree.

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Dict, FrozenSet, Optional

from tree_sitter import Node

ROLE_KEYS = ("container", "function", "body_block", "container_body", "brace_block", "wrapper")

BRACE_PLACEHOLDER = "{ ... }"
PLAIN_PLACEHOLDER = "..."


class NodeRole(Enum):
    CONTAINER = "container"
    FUNCTION_LIKE = "function"
    BODY_BLOCK = "body_block"
    OTHER = "other"


def _load_roles_config() -> tuple[dict[str, str], dict[str, dict[str, list[str]]]]:
    """Load the extension map and per-language role tables from JSON configuration."""
    cfg_path = Path(__file__).with_name("node_roles.json")
    with cfg_path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)

    extensions = {k.lower(): str(v) for k, v in data.get("extensions", {}).items()}
    tables_raw = data.get("roles", {})
    tables: dict[str, dict[str, list[str]]] = {}
    for language, table in tables_raw.items():
        tables[language] = {key: list(table.get(key, [])) for key in ROLE_KEYS}
    return extensions, tables


LANGUAGE_EXTENSIONS, ROLE_TABLES = _load_roles_config()


@dataclass(frozen=True)
class NodeRoles:
    """Fixed tag → role table for one language."""

    container: FrozenSet[str]
    function: FrozenSet[str]
    body_block: FrozenSet[str]
    container_body: FrozenSet[str]
    brace_block: FrozenSet[str]
    wrapper: FrozenSet[str]
    language: str = "default"

    @classmethod
    def from_tables(cls, *tables: Dict[str, list[str]], language: str = "default") -> "NodeRoles":
        """Union the given tables key by key (later tables extend earlier ones)."""
        merged: dict[str, set[str]] = {key: set() for key in ROLE_KEYS}
        for table in tables:
            for key in ROLE_KEYS:
                merged[key].update(table.get(key, []))
        return cls(
            container=frozenset(merged["container"]),
            function=frozenset(merged["function"]),
            body_block=frozenset(merged["body_block"]),
            container_body=frozenset(merged["container_body"]),
            brace_block=frozenset(merged["brace_block"]),
            wrapper=frozenset(merged["wrapper"]),
            language=language,
        )

    def classify(self, tag: str) -> NodeRole:
        # Container and function tags take precedence over block tags.
        if tag in self.container:
            return NodeRole.CONTAINER
        if tag in self.function:
            return NodeRole.FUNCTION_LIKE
        if tag in self.body_block:
            return NodeRole.BODY_BLOCK
        return NodeRole.OTHER

    def is_collapsible(self, tag: str) -> bool:
        return self.classify(tag) in (NodeRole.CONTAINER, NodeRole.FUNCTION_LIKE)

    def unwrap(self, node: Node) -> Node:
        """Return the definition a wrapper node (e.g. decorators + def) carries, else the node itself."""
        if node.type in self.wrapper:
            inner = node.child_by_field_name("definition")
            if inner is not None:
                return inner
        return node

    def role_of(self, node: Node) -> NodeRole:
        """Role of a node, looking through wrapper tags to the definition they carry."""
        return self.classify(self.unwrap(node).type)

    def is_container_body(self, tag: str) -> bool:
        return tag in self.container_body

    def placeholder_for(self, body: Node) -> str:
        """Return the collapse placeholder for a body node: braces for brace blocks, else dots."""
        if body.type in self.brace_block:
            return BRACE_PLACEHOLDER
        return PLAIN_PLACEHOLDER


def load_node_roles(language: Optional[str] = None) -> NodeRoles:
    """Build the role table for `language` (default table merged with its additions)."""
    default = ROLE_TABLES.get("default", {})
    if language and language in ROLE_TABLES and language != "default":
        return NodeRoles.from_tables(default, ROLE_TABLES[language], language=language)
    return NodeRoles.from_tables(default)


@lru_cache(maxsize=None)
def roles_for_language(language: Optional[str] = None) -> NodeRoles:
    return load_node_roles(language)


def language_for_extension(extension: str) -> Optional[str]:
    """Map a file extension (with or without the leading dot) to a parser language tag."""
    return LANGUAGE_EXTENSIONS.get(extension.lower().lstrip("."))


__all__ = [
    "NodeRole",
    "NodeRoles",
    "BRACE_PLACEHOLDER",
    "PLAIN_PLACEHOLDER",
    "LANGUAGE_EXTENSIONS",
    "ROLE_TABLES",
    "load_node_roles",
    "roles_for_language",
    "language_for_extension",
]
