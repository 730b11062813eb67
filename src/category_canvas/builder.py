"""
Tree builder for category-canvas.

Turns the flat (records, edges) pair returned by the persistence layer into
a forest of ``CategoryNode`` trees.

Steps:
  1. Index every record by id (an arena), keeping input order
  2. Walk the edges, accepting at most one parent per child
  3. Collect roots: nodes that never became a child
  4. Materialize nodes bottom-up (children before parents), sorted by name

Malformed edges never fail the build.  An edge is dropped when:
  - its parent or child id has no record          ("missing")
  - its child already has a different parent      ("duplicate-parent")
  - its child is the parent or one of its ancestors ("cycle")

Repeating an already accepted edge is harmless and is simply ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from .models import CategoryEdge, CategoryNode, CategoryRecord

logger = logging.getLogger(__name__)

DROP_MISSING = "missing"
DROP_DUPLICATE_PARENT = "duplicate-parent"
DROP_CYCLE = "cycle"


@dataclass
class BuildReport:
    """What the builder did with the edge list."""
    accepted: int = 0
    dropped: list[tuple[CategoryEdge, str]] = field(default_factory=list)


def _sort_key(record: CategoryRecord) -> str:
    return record.name.casefold()


def _is_ancestor_or_self(
    candidate_id: str,
    node_id: str,
    parent_of: dict[str, str],
) -> bool:
    """True if ``candidate_id`` is ``node_id`` or sits above it."""
    current = node_id
    seen: set[str] = set()
    while current is not None and current not in seen:
        if current == candidate_id:
            return True
        seen.add(current)
        current = parent_of.get(current)
    return False


def build_forest_with_report(
    records: Iterable[CategoryRecord],
    edges: Iterable[CategoryEdge],
) -> tuple[list[CategoryNode], BuildReport]:
    """Build the forest and report which edges were dropped, and why."""
    report = BuildReport()

    # --- Step 1: Arena of records, first occurrence of an id wins ---
    arena: dict[str, CategoryRecord] = {}
    for record in records:
        if record.id in arena:
            logger.debug(f"Ignoring repeated category record {record.id!r}")
            continue
        arena[record.id] = record

    # --- Step 2: Accept edges ---
    parent_of: dict[str, str] = {}
    children_of: dict[str, list[str]] = {node_id: [] for node_id in arena}

    for edge in edges:
        parent_id, child_id = edge.parent_id, edge.child_id

        if parent_id not in arena or child_id not in arena:
            report.dropped.append((edge, DROP_MISSING))
            logger.debug(f"Dropping edge {parent_id!r} -> {child_id!r}: unknown category")
            continue

        existing = parent_of.get(child_id)
        if existing is not None:
            if existing != parent_id:
                report.dropped.append((edge, DROP_DUPLICATE_PARENT))
                logger.debug(
                    f"Dropping edge {parent_id!r} -> {child_id!r}: "
                    f"already a child of {existing!r}"
                )
            continue

        if _is_ancestor_or_self(child_id, parent_id, parent_of):
            report.dropped.append((edge, DROP_CYCLE))
            logger.debug(f"Dropping edge {parent_id!r} -> {child_id!r}: would form a cycle")
            continue

        parent_of[child_id] = parent_id
        children_of[parent_id].append(child_id)
        report.accepted += 1

    # --- Step 3: Roots ---
    root_ids = [node_id for node_id in arena if node_id not in parent_of]

    # --- Step 4: Materialize children before parents, sorted by name ---
    roots = sorted((arena[root_id] for root_id in root_ids), key=_sort_key)
    built: dict[str, CategoryNode] = {}

    # Explicit stack; a node is pushed again once its children are queued
    stack: list[tuple[str, bool]] = [(record.id, False) for record in roots]
    while stack:
        node_id, children_done = stack.pop()
        if not children_done:
            stack.append((node_id, True))
            stack.extend((child_id, False) for child_id in children_of[node_id])
            continue

        record = arena[node_id]
        child_records = sorted(
            (arena[child_id] for child_id in children_of[node_id]),
            key=_sort_key,
        )
        built[node_id] = CategoryNode(
            id=record.id,
            name=record.name,
            description=record.description or "",
            parent_id=parent_of.get(node_id),
            children=[built[child.id] for child in child_records],
        )

    forest = [built[record.id] for record in roots]

    if report.dropped:
        logger.info(
            f"Built forest with {len(forest)} roots; "
            f"dropped {len(report.dropped)} of {report.accepted + len(report.dropped)} edges"
        )
    return forest, report


def build_forest(
    records: Iterable[CategoryRecord],
    edges: Iterable[CategoryEdge],
) -> list[CategoryNode]:
    """Build a sorted forest from category records and parent → child edges."""
    forest, _ = build_forest_with_report(records, edges)
    return forest
