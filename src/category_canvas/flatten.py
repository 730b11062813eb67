"""Tabular projection of a category forest.

Each category becomes one row.  The row's level cells hold the names along
the path from its root down to the category itself, padded with ``None``
so every row has ``max_depth + 1`` cells:

    Cardiology                 ->  ["Cardiology", None,         None]
    Cardiology / Arrhythmia    ->  ["Cardiology", "Arrhythmia", None]

Rows come out in pre-order, so a parent is immediately followed by its
subtree, in the builder's sorted child order.
"""

from __future__ import annotations
from typing import Iterable, Optional

from .models import CategoryNode, FlatRow, FlatTable
from .traversal import max_depth as forest_max_depth


def level_columns(max_depth: int) -> list[str]:
    """Column headers for the level cells: ``category1`` .. ``category{max_depth + 1}``."""
    return [f"category{i + 1}" for i in range(max_depth + 1)]


def flatten_forest(roots: Iterable[CategoryNode]) -> FlatTable:
    """Flatten the forest into fixed-width rows.

    Only true roots (``parent_id is None``) start a traversal, so a node
    handed in alongside its own ancestor is not emitted twice.
    """
    top = [node for node in roots if node.is_root()]
    depth = forest_max_depth(top)
    width = depth + 1
    rows: list[FlatRow] = []

    # Explicit stack of (node, names above it), visited in pre-order
    stack: list[tuple[CategoryNode, list[str]]] = [(root, []) for root in reversed(top)]
    while stack:
        node, ancestors = stack.pop()
        path = ancestors + [node.name]
        padded: list[Optional[str]] = list(path[:width])
        padded.extend([None] * (width - len(padded)))
        rows.append(FlatRow(
            id=node.id,
            description=node.description,
            path_by_depth=padded,
            full_path=path,
        ))
        stack.extend((child, path) for child in reversed(node.children))

    return FlatTable(rows=rows, max_depth=depth)


def resolve_cell(
    roots: Iterable[CategoryNode],
    row_id: str,
    level: int,
) -> Optional[str]:
    """Id of the category displayed in a row's level cell.

    ``level`` is 0-based (``category1`` is level 0).  Editing a level cell
    renames that ancestor, not the row's own category.  Returns None when
    the row does not exist or the cell is padding.
    """
    if level < 0:
        return None

    stack: list[tuple[CategoryNode, list[str]]] = [(node, []) for node in reversed(list(roots))]
    while stack:
        node, lineage = stack.pop()
        path = lineage + [node.id]
        if node.id == row_id:
            return path[level] if level < len(path) else None
        stack.extend((child, path) for child in reversed(node.children))
    return None
