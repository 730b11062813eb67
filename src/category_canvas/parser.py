"""YAML snapshot parser for category-canvas.

Supports two formats:
1. Flat snapshot (``categories`` + ``relations`` rows, as stored)
2. Nested tree (``tree`` of named items with ``children``)

Both parse to a ``Snapshot``, the same (records, edges) pair the
persistence layer returns, so the tree builder treats them identically.
"""

from __future__ import annotations
import re
from pathlib import Path
from typing import Iterable, Optional

import yaml

from .models import CategoryEdge, CategoryNode, CategoryRecord, Snapshot


def parse_yaml(yaml_str: str) -> Snapshot:
    """Parse a YAML string into a Snapshot."""
    data = yaml.safe_load(yaml_str)
    if not data:
        raise ValueError("Empty YAML input")
    if not isinstance(data, dict):
        raise ValueError("Expected a mapping at the top level of the YAML input")

    # Nested format
    if "tree" in data:
        return _parse_tree_format(data["tree"] or [])

    if "categories" in data:
        return _parse_flat_format(data)

    raise ValueError("YAML input has neither 'categories' nor 'tree'")


def parse_file(path: str) -> Snapshot:
    """Parse a YAML file into a Snapshot."""
    content = Path(path).read_text()
    return parse_yaml(content)


def _parse_flat_format(data: dict) -> Snapshot:
    """Parse the flat snapshot format.

    Example:
        categories:
          - id: c1
            name: Cardiology
            description: "Heart and vessels"
          - id: c2
            name: Arrhythmia
        relations:
          - parent: c1
            child: c2
    """
    categories = [
        CategoryRecord(
            id=str(item["id"]),
            name=str(item["name"]),
            description=item.get("description") or "",
        )
        for item in data.get("categories") or []
    ]
    relations = [_parse_relation(item) for item in data.get("relations") or []]
    return Snapshot(categories=categories, relations=relations)


def _parse_relation(data: dict) -> CategoryEdge:
    """Parse a single relation row; accepts ``parent``/``child`` or the ``*_id`` keys."""
    parent = data.get("parent", data.get("parent_id"))
    child = data.get("child", data.get("child_id"))
    if parent is None or child is None:
        raise ValueError(f"Relation {data!r} needs both a parent and a child")
    return CategoryEdge(parent_id=str(parent), child_id=str(child))


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.casefold()).strip("-") or "category"


def _parse_tree_format(items: list) -> Snapshot:
    """Parse the nested tree format.

    Example:
        tree:
          - name: Cardiology
            description: "Heart and vessels"
            children:
              - name: Arrhythmia
                children:
                  - name: Atrial Fib

    Items without an ``id`` get one derived from their name path
    (``cardiology/arrhythmia``), so re-parsing the same file yields the
    same ids.  Same-named siblings get a numeric suffix (``stroke-2``);
    an explicit ``id`` used twice is an error.
    """
    snapshot = Snapshot()
    used_ids: set[str] = set()

    def derive_id(name: str, parent_id: Optional[str]) -> str:
        base = _slug(name) if parent_id is None else f"{parent_id}/{_slug(name)}"
        node_id = base
        suffix = 2
        while node_id in used_ids:
            node_id = f"{base}-{suffix}"
            suffix += 1
        return node_id

    def visit(item: dict, parent_id: Optional[str]) -> None:
        name = str(item["name"])
        if "id" in item:
            node_id = str(item["id"])
            if node_id in used_ids:
                raise ValueError(f"Category id {node_id!r} appears more than once")
        else:
            node_id = derive_id(name, parent_id)
        used_ids.add(node_id)

        snapshot.categories.append(CategoryRecord(
            id=node_id,
            name=name,
            description=item.get("description") or "",
        ))
        if parent_id is not None:
            snapshot.relations.append(CategoryEdge(parent_id=parent_id, child_id=node_id))

        for child in item.get("children") or []:
            visit(child, node_id)

    for item in items:
        visit(item, None)
    return snapshot


def snapshot_to_yaml(snapshot: Snapshot) -> str:
    """Serialize a Snapshot to the flat format."""
    data = {
        "categories": [],
        "relations": [],
    }
    for record in snapshot.categories:
        cat_data = {"id": record.id, "name": record.name}
        if record.description:
            cat_data["description"] = record.description
        data["categories"].append(cat_data)

    for edge in snapshot.relations:
        data["relations"].append({"parent": edge.parent_id, "child": edge.child_id})

    return yaml.dump(data, default_flow_style=False, sort_keys=False)


def forest_to_yaml(roots: Iterable[CategoryNode]) -> str:
    """Serialize a built forest to the nested format."""

    def dump_node(node: CategoryNode) -> dict:
        node_data = {"id": node.id, "name": node.name}
        if node.description:
            node_data["description"] = node.description
        if node.children:
            node_data["children"] = [dump_node(child) for child in node.children]
        return node_data

    data = {"tree": [dump_node(root) for root in roots]}
    return yaml.dump(data, default_flow_style=False, sort_keys=False)
