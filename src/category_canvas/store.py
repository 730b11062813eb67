"""Category persistence for category-canvas.

The core never talks to a database directly.  It asks a store for a
complete snapshot, builds a forest from it, and asks again after every
change.  ``CategoryStore`` is that contract; ``InMemoryCategoryStore`` is a
process-local implementation that can be seeded from, and saved to, a YAML
snapshot file.

Store semantics:
  - ``create`` inserts a category and, when a parent is given, its relation
  - ``update`` renames, re-describes and re-parents (old relations for the
    child are replaced; a move under its own descendant is refused)
  - ``delete`` removes the category and every relation touching it; its
    children become roots
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Optional, Protocol

from .models import CategoryEdge, CategoryRecord, Snapshot
from .parser import parse_file, parse_yaml, snapshot_to_yaml

logger = logging.getLogger(__name__)


class CategoryNotFoundError(LookupError):
    """Raised when a category or parent id does not exist in the store."""

    def __init__(self, category_id: str, role: str = "Category"):
        self.category_id = category_id
        super().__init__(f"{role} '{category_id}' not found")


class CategoryStore(Protocol):
    """What the session needs from a persistence backend."""

    def fetch_all(self) -> Snapshot:
        ...

    def create(
        self,
        name: str,
        description: str = "",
        parent_id: Optional[str] = None,
    ) -> CategoryRecord:
        ...

    def update(
        self,
        category_id: str,
        name: str,
        description: str = "",
        parent_id: Optional[str] = None,
    ) -> CategoryRecord:
        ...

    def delete(self, category_id: str) -> None:
        ...


def _clean_name(name: str) -> str:
    if not isinstance(name, str):
        raise ValueError(f"Category name must be a string, got {type(name).__name__}")
    cleaned = name.strip()
    if not cleaned:
        raise ValueError("Category name must not be empty")
    return cleaned


class InMemoryCategoryStore:
    """A ``CategoryStore`` that keeps its rows in memory.

    Rows are kept in insertion order, which is the order the tree builder
    sees them in.
    """

    def __init__(self, snapshot: Optional[Snapshot] = None):
        snapshot = snapshot or Snapshot()
        self._categories: dict[str, CategoryRecord] = {
            record.id: record.model_copy() for record in snapshot.categories
        }
        self._relations: list[CategoryEdge] = [
            edge.model_copy() for edge in snapshot.relations
        ]

    # --- Loading and saving ---

    @classmethod
    def from_yaml(cls, yaml_str: str) -> InMemoryCategoryStore:
        return cls(parse_yaml(yaml_str))

    @classmethod
    def from_file(cls, path: str) -> InMemoryCategoryStore:
        store = cls(parse_file(path))
        logger.info(f"Loaded {len(store._categories)} categories from {path}")
        return store

    def to_yaml(self) -> str:
        return snapshot_to_yaml(self.fetch_all())

    def save(self, path: str) -> None:
        Path(path).write_text(self.to_yaml())
        logger.info(f"Saved {len(self._categories)} categories to {path}")

    # --- CategoryStore ---

    def fetch_all(self) -> Snapshot:
        """Return a copy of every row, so callers cannot mutate the store."""
        return Snapshot(
            categories=[record.model_copy() for record in self._categories.values()],
            relations=[edge.model_copy() for edge in self._relations],
        )

    def _require(self, category_id: str, role: str = "Category") -> CategoryRecord:
        record = self._categories.get(category_id)
        if record is None:
            raise CategoryNotFoundError(category_id, role)
        return record

    def _is_descendant(self, candidate_id: str, ancestor_id: str) -> bool:
        """True when ``ancestor_id`` is reachable walking up from ``candidate_id``."""
        parents: dict[str, list[str]] = {}
        for edge in self._relations:
            parents.setdefault(edge.child_id, []).append(edge.parent_id)

        stack = [candidate_id]
        visited: set[str] = set()
        while stack:
            current = stack.pop()
            if current == ancestor_id:
                return True
            if current in visited:
                continue
            visited.add(current)
            stack.extend(parents.get(current, []))
        return False

    def create(
        self,
        name: str,
        description: str = "",
        parent_id: Optional[str] = None,
    ) -> CategoryRecord:
        name = _clean_name(name)
        if parent_id is not None:
            self._require(parent_id, "Parent category")

        record = CategoryRecord(id=str(uuid.uuid4()), name=name, description=description or "")
        self._categories[record.id] = record
        if parent_id is not None:
            self._relations.append(CategoryEdge(parent_id=parent_id, child_id=record.id))

        logger.debug(f"Created category {record.id} ({name!r}) under {parent_id!r}")
        return record.model_copy()

    def update(
        self,
        category_id: str,
        name: str,
        description: str = "",
        parent_id: Optional[str] = None,
    ) -> CategoryRecord:
        record = self._require(category_id)
        name = _clean_name(name)
        if parent_id is not None:
            self._require(parent_id, "Parent category")
            if parent_id == category_id:
                raise ValueError("A category cannot be its own parent")
            if self._is_descendant(parent_id, category_id):
                raise ValueError("A category cannot be moved under its own descendant")

        record.name = name
        record.description = description or ""

        self._relations = [edge for edge in self._relations if edge.child_id != category_id]
        if parent_id is not None:
            self._relations.append(CategoryEdge(parent_id=parent_id, child_id=category_id))

        logger.debug(f"Updated category {category_id} ({name!r}) under {parent_id!r}")
        return record.model_copy()

    def delete(self, category_id: str) -> None:
        self._require(category_id)
        del self._categories[category_id]
        self._relations = [
            edge for edge in self._relations
            if edge.child_id != category_id and edge.parent_id != category_id
        ]
        logger.debug(f"Deleted category {category_id}")
