"""
Optional enrichment for C chunks.

- `extract_node_details` is a stateless decorator: pass it to `iter_chunks(decorate=...)`
  and each chunk's metadata gets the node's declared name, parameters, and a summary of
  the variables, control structures and calls in a function body.
- `SymbolTable` is an explicit, caller-owned accumulator of definitions and use sites
  across one or more files. Chunk generation never reads it. It is not thread-safe:
  keep a single writer per table.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from tree_sitter import Node

CONTROL_STRUCTURES = ("if_statement", "for_statement", "while_statement", "do_statement")
NAME_TYPES = ("identifier", "field_identifier", "type_identifier")


def extract_node_details(node: Node, source: bytes) -> Dict[str, Any]:
    """Describe `node`: type, 1-based line range and tag-specific details."""
    details: Dict[str, Any] = {
        "type": node.type,
        "start_line": node.start_point[0] + 1,
        "end_line": node.end_point[0] + 1,
    }
    extractor = _DETAIL_EXTRACTORS.get(node.type)
    if extractor is not None:
        details.update(extractor(node, source))
    return details


def _function_details(node: Node, source: bytes) -> Dict[str, Any]:
    declarator = node.child_by_field_name("declarator")
    func_declarator = _function_declarator(declarator)
    return {
        "name": _declared_name(declarator, source) or _field_text(node, "name", source),
        "return_type": _field_text(node, "type", source),
        "parameters": extract_parameters(
            func_declarator.child_by_field_name("parameters") if func_declarator else None, source
        ),
        "body": extract_function_body(node.child_by_field_name("body"), source),
    }


def _declaration_details(node: Node, source: bytes) -> Dict[str, Any]:
    declarator = node.child_by_field_name("declarator")
    return {
        "declaration_type": _field_text(node, "type", source),
        "declaration_name": _declared_name(declarator, source),
        "is_pointer": _is_pointer(declarator),
    }


def _identifier_details(node: Node, source: bytes) -> Dict[str, Any]:
    return {"name": _text(node, source), "usage": "access"}


def _pointer_details(node: Node, source: bytes) -> Dict[str, Any]:
    return {"pointer_name": _field_text(node, "argument", source), "usage": "dereference"}


def _call_details(node: Node, source: bytes) -> Dict[str, Any]:
    return {
        "function_name": _field_text(node, "function", source),
        "arguments": extract_arguments(node.child_by_field_name("arguments"), source),
    }


def _macro_details(node: Node, source: bytes) -> Dict[str, Any]:
    return {"name": _field_text(node, "name", source), "value": _field_text(node, "value", source)}


def _include_details(node: Node, source: bytes) -> Dict[str, Any]:
    return {"path": _field_text(node, "path", source)}


_DETAIL_EXTRACTORS: Dict[str, Callable[[Node, bytes], Dict[str, Any]]] = {
    "function_definition": _function_details,
    "declaration": _declaration_details,
    "identifier": _identifier_details,
    "pointer_expression": _pointer_details,
    "call_expression": _call_details,
    "preproc_def": _macro_details,
    "preproc_function_def": _macro_details,
    "preproc_include": _include_details,
}


def extract_parameters(parameters: Optional[Node], source: bytes) -> List[Dict[str, Optional[str]]]:
    if parameters is None:
        return []
    return [
        {
            "type": _field_text(param, "type", source),
            "name": _declared_name(param.child_by_field_name("declarator"), source),
        }
        for param in parameters.children
        if param.type == "parameter_declaration"
    ]


def extract_arguments(arguments: Optional[Node], source: bytes) -> List[str]:
    if arguments is None:
        return []
    return [_text(arg, source) for arg in arguments.named_children if arg.type != "comment"]


def extract_function_body(body: Optional[Node], source: bytes) -> Dict[str, List[Dict[str, Any]]]:
    """Summarize local declarations, control structures and calls inside a function body."""
    summary: Dict[str, List[Dict[str, Any]]] = {
        "variables": [],
        "control_structures": [],
        "function_calls": [],
    }
    if body is None:
        return summary

    for node in _walk(body):
        line = node.start_point[0] + 1
        if node.type == "declaration":
            summary["variables"].append({
                "type": _field_text(node, "type", source),
                "name": _declared_name(node.child_by_field_name("declarator"), source),
                "line": line,
            })
        elif node.type in CONTROL_STRUCTURES:
            summary["control_structures"].append({
                "type": node.type,
                "condition": _field_text(node, "condition", source),
                "line": line,
            })
        elif node.type == "call_expression":
            summary["function_calls"].append({
                "name": _field_text(node, "function", source),
                "arguments": extract_arguments(node.child_by_field_name("arguments"), source),
                "line": line,
            })
    return summary


@dataclass
class SymbolTable:
    """Definitions and use sites gathered from every file passed to `record_tree`."""

    functions: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    variables: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    macros: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    call_sites: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    accesses: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    def record_tree(self, root: Node, source: bytes, path: str) -> None:
        """Walk one file's tree and record its definitions and use sites."""
        stack: List[tuple[Node, Optional[str]]] = [(root, None)]
        while stack:
            node, current = stack.pop()
            line = node.start_point[0] + 1
            site = {"file": path, "function": current, "line": line}

            if node.type == "function_definition":
                details = _function_details(node, source)
                current = details["name"]
                self.functions[current or ""] = {
                    "name": current,
                    "return_type": details["return_type"],
                    "parameters": details["parameters"],
                    "file": path,
                    "line": line,
                }
            elif node.type == "declaration":
                details = _declaration_details(node, source)
                name = details["declaration_name"]
                if name:
                    self.variables[name] = {**details, "file": path, "function": current, "line": line}
            elif node.type in ("preproc_def", "preproc_function_def"):
                details = _macro_details(node, source)
                if details["name"]:
                    self.macros[details["name"]] = {**details, "file": path, "line": line}
            elif node.type == "call_expression":
                name = _field_text(node, "function", source)
                if name:
                    self.call_sites.setdefault(name, []).append(site)
            elif node.type == "identifier" and not _is_declared_here(node):
                self.accesses.setdefault(_text(node, source), []).append(site)

            stack.extend((child, current) for child in reversed(node.children))

    def callers_of(self, name: str) -> List[Dict[str, Any]]:
        return list(self.call_sites.get(name, []))

    def accesses_of(self, name: str) -> List[Dict[str, Any]]:
        return list(self.accesses.get(name, []))

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready view: definitions with their call/access sites attached."""
        return {
            "functions": {
                name: {**info, "calls": self.callers_of(name)} for name, info in sorted(self.functions.items())
            },
            "variables": {
                name: {**info, "accesses": self.accesses_of(name)} for name, info in sorted(self.variables.items())
            },
            "macros": {
                name: {**info, "uses": self.accesses_of(name)} for name, info in sorted(self.macros.items())
            },
        }


# -----------------------------
# Helpers (small, single-purpose)
# -----------------------------

def _walk(node: Node):
    stack = [node]
    while stack:
        cur = stack.pop()
        yield cur
        stack.extend(reversed(cur.children))


def _text(node: Node, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def _field_text(node: Node, name: str, source: bytes) -> Optional[str]:
    child = node.child_by_field_name(name)
    return _text(child, source) if child is not None else None


def _declared_name(declarator: Optional[Node], source: bytes) -> Optional[str]:
    """Follow nested `declarator` fields (pointer, array, init, function) down to the name."""
    cur = declarator
    while cur is not None:
        if cur.type in NAME_TYPES:
            return _text(cur, source)
        nxt = cur.child_by_field_name("declarator")
        if nxt is None:
            break
        cur = nxt
    return _text(declarator, source) if declarator is not None else None


def _function_declarator(declarator: Optional[Node]) -> Optional[Node]:
    cur = declarator
    while cur is not None and cur.type != "function_declarator":
        cur = cur.child_by_field_name("declarator")
    return cur


def _is_pointer(declarator: Optional[Node]) -> bool:
    cur = declarator
    while cur is not None:
        if cur.type == "pointer_declarator":
            return True
        cur = cur.child_by_field_name("declarator")
    return False


def _is_declared_here(node: Node) -> bool:
    """True when `node` is the name being declared (a `declarator` or `name` field), not a use."""
    parent = node.parent
    if parent is None:
        return False
    for field_name in ("declarator", "name"):
        declared = parent.child_by_field_name(field_name)
        if declared is not None and (declared.start_byte, declared.end_byte) == (node.start_byte, node.end_byte):
            return True
    return False


__all__ = [
    "extract_node_details",
    "extract_parameters",
    "extract_arguments",
    "extract_function_body",
    "SymbolTable",
]
