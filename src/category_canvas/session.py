"""
Category editing session.

Wires a ``CategoryStore`` to the undo history and to the diagram's view
state.  One session corresponds to one open diagram/table pair:

    store ──fetch_all──> build_forest ──> history.present ──> layout / flatten
                                              ▲
    edits ──store.create/update/delete ──────┘ (full rebuild, then update)

Rules:
  - The forest is never patched in place.  After every confirmed store
    change the whole snapshot is fetched again and rebuilt.
  - ``reload`` resets the history; edits push onto it.
  - Undo/redo only move between forests already seen.  They do not write
    back to the store.
  - Store errors propagate unchanged, and the history is only touched once
    the store call has returned.

View state (``collapsed`` and ``selected_id``) is plain session state that
is handed to the layout on every call.
"""

from __future__ import annotations

import logging
from typing import Optional

from . import history
from .builder import build_forest
from .flatten import flatten_forest, resolve_cell
from .layout import Bounds, LayoutOptions, center_of, layout_bounds, layout_forest
from .models import CategoryNode, CategoryRecord, FlatTable, LayoutResult, SearchMatch
from .store import CategoryStore
from .traversal import (
    depth_map,
    expand_ancestors,
    find_by_id,
    find_by_name_with_ancestors,
    ids_at_or_below_depth,
    max_depth,
)

logger = logging.getLogger(__name__)


class CategorySession:
    """Holds the category forest, its undo history and the diagram view state."""

    def __init__(
        self,
        store: CategoryStore,
        layout_options: Optional[LayoutOptions] = None,
        history_limit: Optional[int] = None,
    ):
        self.store = store
        self.layout_options = layout_options or LayoutOptions()
        self.history_limit = history_limit
        self.history: history.HistoryState[list[CategoryNode]] = history.create([])
        self.collapsed: set[str] = set()
        self.selected_id: Optional[str] = None

    # --- Forest ---

    @property
    def categories(self) -> list[CategoryNode]:
        return self.history.present

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def _fetch_forest(self) -> list[CategoryNode]:
        snapshot = self.store.fetch_all()
        return build_forest(snapshot.categories, snapshot.relations)

    def _prune_view_state(self) -> None:
        """Forget collapsed/selected ids that no longer exist."""
        known = set(depth_map(self.categories))
        self.collapsed &= known
        if self.selected_id is not None and self.selected_id not in known:
            self.selected_id = None

    def reload(self) -> list[CategoryNode]:
        """Rebuild from the store and start a fresh history."""
        forest = self._fetch_forest()
        self.history = history.reset(self.history, forest)
        self._prune_view_state()
        logger.info(f"Reloaded {len(depth_map(forest))} categories ({len(forest)} roots)")
        return forest

    def _commit(self) -> None:
        forest = self._fetch_forest()
        self.history = history.update(self.history, forest, limit=self.history_limit)
        self._prune_view_state()

    # --- Edits (store first, then rebuild) ---

    def add_category(
        self,
        name: str,
        description: str = "",
        parent_id: Optional[str] = None,
    ) -> CategoryRecord:
        record = self.store.create(name, description, parent_id)
        self._commit()
        logger.info(f"Added category {record.id} ({record.name!r})")
        return record

    def update_category(
        self,
        category_id: str,
        name: str,
        description: str = "",
        parent_id: Optional[str] = None,
    ) -> CategoryRecord:
        record = self.store.update(category_id, name, description, parent_id)
        self._commit()
        logger.info(f"Updated category {record.id} ({record.name!r})")
        return record

    def delete_category(self, category_id: str) -> None:
        self.store.delete(category_id)
        self._commit()
        logger.info(f"Deleted category {category_id}")

    def rename_cell(self, row_id: str, level: int, value: str) -> Optional[CategoryRecord]:
        """Rename the category shown in a table row's level cell.

        Returns None when the cell is padding or the name is unchanged.
        """
        target_id = resolve_cell(self.categories, row_id, level)
        if target_id is None:
            return None
        node = find_by_id(self.categories, target_id)
        if node is None or value.strip() == node.name:
            return None
        return self.update_category(node.id, value, node.description, node.parent_id)

    # --- History ---

    def undo(self) -> bool:
        """Step back one forest.  Returns False when there was nothing to undo."""
        if not self.history.can_undo:
            return False
        self.history = history.undo(self.history)
        self._prune_view_state()
        logger.debug("Undo")
        return True

    def redo(self) -> bool:
        """Step forward one forest.  Returns False when there was nothing to redo."""
        if not self.history.can_redo:
            return False
        self.history = history.redo(self.history)
        self._prune_view_state()
        logger.debug("Redo")
        return True

    # --- View state ---

    def select(self, category_id: str) -> None:
        self.selected_id = category_id

    def clear_selection(self) -> None:
        self.selected_id = None

    def toggle_collapse(self, category_id: str) -> bool:
        """Collapse or expand one node.  Returns True if it is now collapsed."""
        if category_id in self.collapsed:
            self.collapsed.discard(category_id)
            return False
        self.collapsed.add(category_id)
        return True

    def collapse_to_layer(self, depth: int) -> set[str]:
        """Show only layers ``0..depth``; replaces the collapsed set."""
        self.collapsed = ids_at_or_below_depth(self.categories, depth)
        return set(self.collapsed)

    def reset_layout(self) -> None:
        """Expand everything."""
        self.collapsed = set()

    def layer_count(self) -> int:
        """Number of layers the "show up to layer N" control offers."""
        if not self.categories:
            return 0
        return max_depth(self.categories) + 1

    def search(self, query: str) -> Optional[SearchMatch]:
        """Find a category by name, expand its ancestors and select it.

        An empty query changes nothing and returns None.
        """
        match = find_by_name_with_ancestors(self.categories, query)
        if match is None:
            return None
        self.collapsed = expand_ancestors(self.collapsed, match.ancestor_ids)
        self.selected_id = match.node.id
        return match

    # --- Derived views ---

    def layout(self) -> LayoutResult:
        return layout_forest(
            self.categories,
            self.collapsed,
            selected_id=self.selected_id,
            options=self.layout_options,
        )

    def bounds(self) -> Optional[Bounds]:
        return layout_bounds(self.layout(), self.layout_options)

    def center_on(self, category_id: str) -> Optional[tuple[float, float]]:
        return center_of(self.layout(), category_id, self.layout_options)

    def flatten(self) -> FlatTable:
        return flatten_forest(self.categories)
