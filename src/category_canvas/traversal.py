"""Depth and search helpers over a category forest.

Depth counts from the roots: a root is at depth 0, its children at 1, and
so on.  These helpers drive bulk collapse ("show up to layer N") and
search-driven expand-and-center in the session layer.
"""

from __future__ import annotations
from typing import AbstractSet, Iterable, Iterator, Optional

from .models import CategoryNode, SearchMatch


def iter_nodes(
    roots: Iterable[CategoryNode],
    depth: int = 0,
) -> Iterator[tuple[CategoryNode, int]]:
    """Yield ``(node, depth)`` for every node, in pre-order."""
    stack = [(node, depth) for node in reversed(list(roots))]
    while stack:
        node, level = stack.pop()
        yield node, level
        stack.extend((child, level + 1) for child in reversed(node.children))


def depth_map(roots: Iterable[CategoryNode]) -> dict[str, int]:
    """Map every node id to its depth."""
    return {node.id: depth for node, depth in iter_nodes(roots)}


def max_depth(roots: Iterable[CategoryNode]) -> int:
    """Deepest level in the forest; 0 when every root is a leaf (or empty)."""
    deepest = 0
    for _, depth in iter_nodes(roots):
        deepest = max(deepest, depth)
    return deepest


def ids_at_or_below_depth(
    roots: Iterable[CategoryNode],
    target_depth: int,
) -> set[str]:
    """Ids of every node at ``target_depth`` or deeper.

    Passing the result to the layout as ``collapsed`` truncates the diagram
    so that nothing deeper than ``target_depth`` is shown.
    """
    return {node.id for node, depth in iter_nodes(roots) if depth >= target_depth}


def find_by_id(roots: Iterable[CategoryNode], node_id: str) -> Optional[CategoryNode]:
    for node, _ in iter_nodes(roots):
        if node.id == node_id:
            return node
    return None


def find_by_name_with_ancestors(
    roots: Iterable[CategoryNode],
    query: str,
) -> Optional[SearchMatch]:
    """Find the first node (depth-first) whose name contains ``query``.

    Matching is a case-insensitive substring test.  An empty or
    whitespace-only query matches nothing.

    Returns the node plus the ids of its ancestors, nearest first.
    """
    needle = query.strip().casefold()
    if not needle:
        return None

    # Explicit stack of (node, ancestor ids nearest-first), visited in pre-order
    stack: list[tuple[CategoryNode, list[str]]] = [
        (node, []) for node in reversed(list(roots))
    ]
    while stack:
        node, ancestors = stack.pop()
        if needle in node.name.casefold():
            return SearchMatch(node=node, ancestor_ids=ancestors)
        lineage = [node.id] + ancestors
        for child in reversed(node.children):
            stack.append((child, lineage))
    return None


def expand_ancestors(
    collapsed: AbstractSet[str],
    ancestor_ids: Iterable[str],
) -> set[str]:
    """Return ``collapsed`` without ``ancestor_ids``, so a node becomes visible."""
    return set(collapsed) - set(ancestor_ids)
