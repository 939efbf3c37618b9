"""
Printing and serialization of fig trees and documents.
"""

from datetime import time
from typing import Any, List

import yaml

from .ast import Node, Option, Object, List as ListNode, Macro, Call


def debug_tree(root: Object, indent: int = 0) -> str:
    """Indented listing of a tree (expanded or not) for debugging."""
    lines: List[str] = []
    _write_object(root, indent, lines)
    return "\n".join(lines)


def _write_object(obj: Object, indent: int, lines: List[str]) -> None:
    prefix = "  " * indent
    lines.append(f"{prefix}object({obj.name}) {{")
    for directive in obj.directives:
        _write_macro(directive, indent + 1, lines)
    for node in obj.fields.values():
        _write_node(node, indent + 1, lines)
    lines.append(f"{prefix}}}")


def _write_macro(macro: Macro, indent: int, lines: List[str]) -> None:
    prefix = "  " * indent
    call = Call(macro.span, macro.name, macro.arguments, macro.named_arguments)
    lines.append(f"{prefix}.{call}")
    if macro.body is not None:
        _write_object(macro.body, indent + 1, lines)


def _write_node(node: Node, indent: int, lines: List[str]) -> None:
    prefix = "  " * indent
    if isinstance(node, Option):
        lines.append(f"{prefix}{node.name}: {node.value}")
    elif isinstance(node, Object):
        _write_object(node, indent, lines)
    elif isinstance(node, ListNode):
        lines.append(f"{prefix}list({node.name}) [")
        for item in node.items:
            _write_node(item, indent + 1, lines)
        lines.append(f"{prefix}]")


def to_dict(document) -> dict:
    """Evaluate every option of a document into nested dicts and lists."""
    result = {}
    for name, node in document.root.fields.items():
        if isinstance(node, Object) or (
                isinstance(node, ListNode) and isinstance(node.items[0], Object)):
            subs = [to_dict(sub) for sub in document.documents(name)]
            result[name] = subs[0] if isinstance(node, Object) else subs
        else:
            result[name] = document.value(name)
    return result


def _plain(data: Any) -> Any:
    """Replace values the YAML safe dumper cannot represent."""
    if isinstance(data, dict):
        return {key: _plain(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_plain(value) for value in data]
    if isinstance(data, time):
        return data.isoformat()
    return data


def to_yaml(document) -> str:
    """Serialize an evaluated document as YAML, keeping declaration order."""
    return yaml.safe_dump(_plain(to_dict(document)), sort_keys=False)
