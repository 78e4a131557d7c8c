"""Markdown outline export of a single map.

The hierarchy edges of a map are undirected, so the outline is built from a
breadth-first spanning tree of each connected component. A component is
rooted at its earliest-created node, and components are emitted in creation
order of those roots. Siblings are ordered by ``(created, id)``. Reference
connections are annotations and do not shape the outline.
"""

from __future__ import annotations

import re
from collections import deque

from mfschema import MapSnapshot, NodeRecord

DEFAULT_NODE_TEXT = "New Thought"
INDENT = "  "

_NEWLINES = re.compile(r"(\r?\n)+")
_SPACES = re.compile(r" {2,}")


def _clean(text: str) -> str:
    return _SPACES.sub(" ", _NEWLINES.sub(" ", text)).rstrip()


def _order_key(node: NodeRecord) -> tuple[str, str]:
    return (node.created, node.id)


def export_markdown_outline(snapshot: MapSnapshot) -> str:
    """Render a map as a nested Markdown bullet list, two spaces per level.

    Node text has line breaks and repeated spaces collapsed. A map without
    nodes renders as ``# <name>`` followed by ``(Empty graph)``.
    """
    if not snapshot.nodes:
        return f"# {snapshot.name}\n(Empty graph)"

    by_id = {node.id: node for node in snapshot.nodes}
    adjacency: dict[str, set[str]] = {node_id: set() for node_id in by_id}
    for edge in snapshot.edges:
        if edge.source_node_id in by_id and edge.target_node_id in by_id:
            adjacency[edge.source_node_id].add(edge.target_node_id)
            adjacency[edge.target_node_id].add(edge.source_node_id)

    visited: set[str] = set()
    lines: list[str] = []

    def emit_component(root_id: str) -> None:
        children: dict[str, list[str]] = {}
        visited.add(root_id)
        queue = deque([root_id])
        while queue:
            current = queue.popleft()
            fresh = sorted(
                (by_id[n] for n in adjacency[current] if n not in visited),
                key=_order_key,
            )
            for node in fresh:
                visited.add(node.id)
                children.setdefault(current, []).append(node.id)
                queue.append(node.id)

        stack = [(root_id, 0)]
        while stack:
            node_id, depth = stack.pop()
            text = by_id[node_id].text or DEFAULT_NODE_TEXT
            lines.append(f"{INDENT * depth}- {_clean(text)}")
            for child_id in reversed(children.get(node_id, [])):
                stack.append((child_id, depth + 1))

    for node in sorted(snapshot.nodes, key=_order_key):
        if node.id not in visited:
            emit_component(node.id)

    return "\n".join(lines) + "\n"
