"""
Tree layout for category-canvas.

Converts a forest into positioned nodes and parent → child edges for a
left-to-right node-link diagram.

Horizontal placement depends only on depth:

    x = x_offset + depth * level_width

Vertical placement is computed bottom-up.  Each sibling list is laid out
from a cursor that moves downward:

  - A node without visible children (a leaf, or a node in ``collapsed``)
    takes exactly one row at the cursor.
  - A node with visible children first lays out its children from the
    cursor, then centers itself on the span they consumed.
  - Siblings are separated by ``vertical_spacing``.

Subtree heights are computed first, children before parents, so every
sibling's region is sized to its whole visible subtree before anything is
placed.  This is what keeps a deep branch from running into a shallow
sibling.  Both passes walk an explicit stack, so depth is not bounded by
the interpreter's recursion limit.

Every region handed to a subtree holds only that subtree, so two nodes can
share vertical space only when one is an ancestor of the other.

Spacing constants:
  - Rows: 32px high, 4px apart
  - Levels: 300px apart
  - Origin: offset 10px from the top-left corner
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import AbstractSet, Optional

from .models import CategoryNode, LayoutResult, PositionedEdge, PositionedNode


# --- Spacing constants ---

NODE_HEIGHT = 32
NODE_WIDTH = 250
LEVEL_WIDTH = 300
VERTICAL_SPACING = 4

X_OFFSET = 10
Y_OFFSET = 10


@dataclass
class LayoutOptions:
    """Layout options for the tree layout."""
    node_height: float = NODE_HEIGHT
    node_width: float = NODE_WIDTH
    level_width: float = LEVEL_WIDTH
    vertical_spacing: float = VERTICAL_SPACING
    x_offset: float = X_OFFSET
    y_offset: float = Y_OFFSET


@dataclass
class Bounds:
    """Bounding box of a set of positioned nodes."""
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)


def edge_id(parent_id: str, child_id: str) -> str:
    return f"e-{parent_id}-{child_id}"


# ---------------------------------------------------------------------------
# Core layout algorithm
# ---------------------------------------------------------------------------

def _visible_children(node: CategoryNode, collapsed: AbstractSet[str]) -> list[CategoryNode]:
    if node.id in collapsed:
        return []
    return node.children


def _span(siblings: list[CategoryNode], heights: dict[str, float], opts: LayoutOptions) -> float:
    """Height of a sibling list: its subtrees plus the gaps between them."""
    if not siblings:
        return 0
    total = sum(heights[node.id] for node in siblings)
    return total + opts.vertical_spacing * (len(siblings) - 1)


def _subtree_heights(
    roots: list[CategoryNode],
    collapsed: AbstractSet[str],
    opts: LayoutOptions,
) -> dict[str, float]:
    """Height of every visible subtree, computed children before parents."""
    heights: dict[str, float] = {}
    stack: list[tuple[CategoryNode, bool]] = [(node, False) for node in roots]

    while stack:
        node, children_done = stack.pop()
        children = _visible_children(node, collapsed)
        if not children:
            heights[node.id] = opts.node_height
        elif children_done:
            heights[node.id] = _span(children, heights, opts)
        else:
            stack.append((node, True))
            stack.extend((child, False) for child in children)

    return heights


def _sibling_tops(
    siblings: list[CategoryNode],
    top: float,
    heights: dict[str, float],
    opts: LayoutOptions,
) -> list[float]:
    tops = []
    cursor = top
    for node in siblings:
        tops.append(cursor)
        cursor += heights[node.id] + opts.vertical_spacing
    return tops


def layout_forest(
    roots: list[CategoryNode],
    collapsed: Optional[AbstractSet[str]] = None,
    selected_id: Optional[str] = None,
    options: Optional[LayoutOptions] = None,
) -> LayoutResult:
    """
    Position every visible node of the forest.

    Children of a node whose id is in ``collapsed`` are not emitted; the
    collapsed node itself is, with ``is_collapsed`` set.

    Args:
        roots: The forest, in display order.
        collapsed: Ids whose children are hidden for this call.
        selected_id: Id to flag as selected in the output.
        options: Spacing overrides.

    Returns:
        The positioned nodes (pre-order), one edge per emitted non-root
        node, and the total height consumed by the forest.
    """
    opts = options or LayoutOptions()
    hidden = collapsed if collapsed is not None else frozenset()
    heights = _subtree_heights(roots, hidden, opts)

    nodes: list[PositionedNode] = []
    edges: list[PositionedEdge] = []

    # Pre-order walk over (node, depth, top of its region)
    root_tops = _sibling_tops(roots, opts.y_offset, heights, opts)
    stack = [(node, 0, top) for node, top in zip(reversed(roots), reversed(root_tops))]
    while stack:
        node, depth, top = stack.pop()
        children = _visible_children(node, hidden)

        if children:
            y = top + (heights[node.id] - opts.node_height) / 2
        else:
            y = top

        nodes.append(PositionedNode(
            id=node.id,
            x=opts.x_offset + depth * opts.level_width,
            y=y,
            label=node.name,
            description=node.description,
            depth=depth,
            has_children=node.has_children(),
            is_collapsed=node.id in hidden,
            is_selected=node.id == selected_id,
        ))
        if node.parent_id is not None:
            edges.append(PositionedEdge(
                id=edge_id(node.parent_id, node.id),
                source_id=node.parent_id,
                target_id=node.id,
            ))

        child_tops = _sibling_tops(children, top, heights, opts)
        for child, child_top in zip(reversed(children), reversed(child_tops)):
            stack.append((child, depth + 1, child_top))

    return LayoutResult(nodes=nodes, edges=edges, subtree_height=_span(roots, heights, opts))


# ---------------------------------------------------------------------------
# Viewport helpers
# ---------------------------------------------------------------------------

def layout_bounds(
    result: LayoutResult,
    options: Optional[LayoutOptions] = None,
) -> Optional[Bounds]:
    """Compute the bounding box of all emitted nodes.

    Returns None if nothing was emitted.  Used to fit the view after the
    collapsed set changes.
    """
    if not result.nodes:
        return None

    opts = options or LayoutOptions()
    min_x = math.inf
    min_y = math.inf
    max_x = -math.inf
    max_y = -math.inf

    for node in result.nodes:
        min_x = min(min_x, node.x)
        min_y = min(min_y, node.y)
        max_x = max(max_x, node.x + opts.node_width)
        max_y = max(max_y, node.y + opts.node_height)

    return Bounds(x=min_x, y=min_y, width=max_x - min_x, height=max_y - min_y)


def center_of(
    result: LayoutResult,
    node_id: str,
    options: Optional[LayoutOptions] = None,
) -> Optional[tuple[float, float]]:
    """Center point of a positioned node, for re-centering the view on it.

    Returns None when the node was not emitted (it is hidden under a
    collapsed ancestor or does not exist).
    """
    node = result.get_node(node_id)
    if node is None:
        return None

    opts = options or LayoutOptions()
    return (node.x + opts.node_width / 2, node.y + opts.node_height / 2)
