"""
Data models for category-canvas.

A user's categories form a forest: each root heads a tree, and every node
carries a name and a description.

    Forest
    └── CategoryNode      — a root (parent_id is None)
        └── CategoryNode      — a child, exclusively owned by its parent
            └── ...

The forest is rebuilt from two flat record sets on every reload:

    CategoryRecord   — one row per category (id, name, description)
    CategoryEdge     — one row per parent → child relation

Two derived views are computed from the forest:

    LayoutResult     — positioned nodes and edges for a node-link diagram
    FlatTable        — one row per node, with the ancestor names by depth

Nodes store ``parent_id`` as a plain id, never as a live reference, so a tree
can be compared, copied and serialized like any other value.
"""

from __future__ import annotations
from typing import Optional
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Persistence records
# ---------------------------------------------------------------------------

class CategoryRecord(BaseModel):
    """A category row as returned by the persistence layer."""
    id: str
    name: str
    description: str = ""


class CategoryEdge(BaseModel):
    """A directed parent → child relation row.

    Malformed input may name the same child more than once; the tree
    builder honours only the first edge it accepts for a given child.
    """
    parent_id: str
    child_id: str


class Snapshot(BaseModel):
    """A complete, consistent (records, edges) pair."""
    categories: list[CategoryRecord] = Field(default_factory=list)
    relations: list[CategoryEdge] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------

class CategoryNode(BaseModel):
    """A category inside the built forest.

    ``children`` is ordered and owned by this node; no node is a child of
    two parents.  ``parent_id`` equals the id of the node whose ``children``
    holds this one, or ``None`` for a root.

    Equality is structural (pydantic compares field by field, recursing into
    ``children``), which is what the undo history relies on to recognise a
    rebuilt forest that did not actually change.
    """
    id: str
    name: str
    description: str = ""
    parent_id: Optional[str] = None
    children: list[CategoryNode] = Field(default_factory=list)

    def is_root(self) -> bool:
        return self.parent_id is None

    def has_children(self) -> bool:
        return bool(self.children)


# ---------------------------------------------------------------------------
# Layout output
# ---------------------------------------------------------------------------

class PositionedNode(BaseModel):
    """A node placed on the diagram.

    ``x``/``y`` are the top-left corner.  The remaining fields are display
    data passed through to whatever draws the diagram.
    """
    id: str
    x: float
    y: float
    label: str
    description: str = ""
    depth: int = 0
    has_children: bool = False
    is_collapsed: bool = False
    is_selected: bool = False


class PositionedEdge(BaseModel):
    """A directed parent → child connector between two positioned nodes."""
    id: str
    source_id: str
    target_id: str


class LayoutResult(BaseModel):
    """Output of one layout pass."""
    nodes: list[PositionedNode] = Field(default_factory=list)
    edges: list[PositionedEdge] = Field(default_factory=list)
    subtree_height: float = 0.0

    def get_node(self, node_id: str) -> Optional[PositionedNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


# ---------------------------------------------------------------------------
# Table output
# ---------------------------------------------------------------------------

class FlatRow(BaseModel):
    """One table row per category.

    ``path_by_depth[i]`` is the name of the ancestor at depth ``i`` (the
    last non-null entry is the node itself), or ``None`` past the end of
    the node's path.  Its length is the forest's max depth + 1.
    """
    id: str
    description: str = ""
    path_by_depth: list[Optional[str]] = Field(default_factory=list)
    full_path: list[str] = Field(default_factory=list)


class FlatTable(BaseModel):
    """Flattened forest: rows in pre-order plus the depth that sized them."""
    rows: list[FlatRow] = Field(default_factory=list)
    max_depth: int = 0


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

class SearchMatch(BaseModel):
    """The first node whose name matched a query, with its ancestor chain.

    ``ancestor_ids`` runs from the match's parent up to its root.
    """
    node: CategoryNode
    ancestor_ids: list[str] = Field(default_factory=list)
