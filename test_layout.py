"""Tests for the tree layout.

Coordinates below follow the default spacing: rows 32px high and 4px
apart, levels 300px apart, origin offset 10px.
"""

import pytest

from category_canvas.builder import build_forest
from category_canvas.layout import (
    LayoutOptions,
    center_of,
    layout_bounds,
    layout_forest,
)
from category_canvas.models import CategoryEdge, CategoryRecord, LayoutResult
from category_canvas.traversal import ids_at_or_below_depth


def forest_from(spec: dict[str, list[str]], extra_roots: tuple[str, ...] = ()):
    """Build a forest from a {parent: [children]} mapping; ids double as names."""
    ids: list[str] = []
    for parent, children in spec.items():
        for node_id in [parent, *children]:
            if node_id not in ids:
                ids.append(node_id)
    ids.extend(r for r in extra_roots if r not in ids)
    records = [CategoryRecord(id=i, name=i) for i in ids]
    edges = [
        CategoryEdge(parent_id=parent, child_id=child)
        for parent, children in spec.items()
        for child in children
    ]
    return build_forest(records, edges)


def positions(result: LayoutResult) -> dict[str, tuple[float, float]]:
    return {n.id: (n.x, n.y) for n in result.nodes}


def ancestors_by_id(forest) -> dict[str, set[str]]:
    out: dict[str, set[str]] = {}

    def walk(nodes, lineage):
        for node in nodes:
            out[node.id] = set(lineage)
            walk(node.children, lineage + [node.id])

    walk(forest, [])
    return out


def assert_no_overlap(result: LayoutResult, forest, row_height: float = 32):
    lineage = ancestors_by_id(forest)
    nodes = result.nodes
    for i, a in enumerate(nodes):
        for b in nodes[i + 1:]:
            if a.id in lineage[b.id] or b.id in lineage[a.id]:
                continue
            overlaps = a.y < b.y + row_height and b.y < a.y + row_height
            assert not overlaps, f"{a.id} {a.y} overlaps {b.id} {b.y}"


class TestPositions:

    def test_single_root(self):
        result = layout_forest(forest_from({}, extra_roots=("A",)))
        assert positions(result) == {"A": (10, 10)}
        assert result.edges == []
        assert result.subtree_height == 32

    def test_empty_forest(self):
        result = layout_forest([])
        assert result.nodes == [] and result.edges == []
        assert result.subtree_height == 0

    def test_parent_centered_on_children(self):
        forest = forest_from({"A": ["B", "C"]}, extra_roots=("D",))
        result = layout_forest(forest)
        assert positions(result) == {
            "A": (10, 28),
            "B": (310, 10),
            "C": (310, 46),
            "D": (10, 82),
        }
        assert result.subtree_height == 104

    def test_x_depends_only_on_depth(self):
        forest = forest_from({"A": ["B"], "B": ["C"], "C": ["D"]})
        result = layout_forest(forest)
        assert [n.x for n in result.nodes] == [10, 310, 610, 910]
        assert [n.depth for n in result.nodes] == [0, 1, 2, 3]

    def test_deep_branch_pushes_sibling_down(self):
        forest = forest_from({"A": ["A1", "A2", "A3"], "A1": ["x", "y"]}, extra_roots=("B",))
        result = layout_forest(forest)
        pos = positions(result)
        # A's subtree: x, y (68), then A2, A3 (+36 each) = 140 high from y=10
        assert pos["B"][1] == 10 + 140 + 4
        assert_no_overlap(result, forest)

    def test_nodes_in_pre_order(self):
        forest = forest_from({"A": ["B", "C"], "B": ["B1"]}, extra_roots=("D",))
        result = layout_forest(forest)
        assert [n.id for n in result.nodes] == ["A", "B", "B1", "C", "D"]

    def test_custom_options(self):
        forest = forest_from({"A": ["B"]})
        opts = LayoutOptions(node_height=10, level_width=100, vertical_spacing=0, x_offset=0, y_offset=0)
        result = layout_forest(forest, options=opts)
        assert positions(result) == {"A": (0, 0), "B": (100, 0)}


class TestEdges:

    def test_one_edge_per_non_root(self):
        forest = forest_from({"A": ["B", "C"], "C": ["D"]})
        result = layout_forest(forest)
        assert {(e.source_id, e.target_id) for e in result.edges} == {
            ("A", "B"), ("A", "C"), ("C", "D"),
        }
        assert {e.id for e in result.edges} == {"e-A-B", "e-A-C", "e-C-D"}

    def test_no_edges_into_hidden_nodes(self):
        forest = forest_from({"A": ["B"], "B": ["C"]})
        result = layout_forest(forest, collapsed={"B"})
        assert [e.target_id for e in result.edges] == ["B"]


class TestCollapse:

    def test_collapsed_node_takes_one_row(self):
        forest = forest_from({"A": ["B", "C"]}, extra_roots=("D",))
        result = layout_forest(forest, collapsed={"A"})
        assert positions(result) == {"A": (10, 10), "D": (10, 46)}
        a = result.get_node("A")
        assert a.is_collapsed and a.has_children

    def test_collapsing_a_leaf_changes_nothing_but_the_flag(self):
        forest = forest_from({"A": ["B"]})
        plain = layout_forest(forest)
        flagged = layout_forest(forest, collapsed={"B"})
        assert positions(plain) == positions(flagged)
        assert flagged.get_node("B").is_collapsed

    @pytest.mark.parametrize("depth", [0, 1, 2, 3])
    def test_depth_collapse_hides_deeper_layers(self, depth):
        forest = forest_from({
            "A": ["B", "C"], "B": ["B1", "B2"], "B1": ["B1a"], "C": ["C1"],
        }, extra_roots=("Z",))
        result = layout_forest(forest, collapsed=ids_at_or_below_depth(forest, depth))
        assert result.nodes
        assert max(n.depth for n in result.nodes) <= depth
        assert_no_overlap(result, forest)


class TestProperties:

    def test_deterministic(self):
        forest = forest_from({"A": ["B", "C"], "B": ["D", "E"], "C": ["F"]})
        first = layout_forest(forest, collapsed={"C"}, selected_id="E")
        second = layout_forest(forest, collapsed={"C"}, selected_id="E")
        assert first == second

    def test_selection_flag(self):
        forest = forest_from({"A": ["B"]})
        result = layout_forest(forest, selected_id="B")
        assert [n.id for n in result.nodes if n.is_selected] == ["B"]

    def test_no_overlap_unbalanced(self):
        spec = {
            "root": ["a", "b", "c"],
            "a": ["a1"],
            "a1": ["a2"],
            "a2": ["a3", "a4", "a5"],
            "c": ["c1", "c2", "c3", "c4", "c5", "c6"],
            "c3": ["c3x", "c3y"],
        }
        forest = forest_from(spec, extra_roots=("solo",))
        result = layout_forest(forest)
        assert len(result.nodes) == 18
        assert_no_overlap(result, forest)

    def test_subtree_height_covers_every_node(self):
        forest = forest_from({"A": ["B", "C", "D"], "C": ["C1", "C2"]}, extra_roots=("E",))
        result = layout_forest(forest)
        bottom = max(n.y + 32 for n in result.nodes)
        assert bottom == pytest.approx(10 + result.subtree_height)


class TestViewport:

    def test_center_of_visible_node(self):
        forest = forest_from({"A": ["B", "C"]})
        result = layout_forest(forest)
        assert center_of(result, "B") == (310 + 125, 10 + 16)

    def test_center_of_hidden_node(self):
        forest = forest_from({"A": ["B"]})
        result = layout_forest(forest, collapsed={"A"})
        assert center_of(result, "B") is None

    def test_bounds(self):
        forest = forest_from({"A": ["B", "C"]})
        bounds = layout_bounds(layout_forest(forest))
        assert (bounds.x, bounds.y) == (10, 10)
        assert bounds.width == 300 + 250
        assert bounds.height == 68
        assert bounds.center == (10 + 275, 10 + 34)

    def test_bounds_of_empty_layout(self):
        assert layout_bounds(layout_forest([])) is None


class TestDeepChains:

    def test_chain_deeper_than_recursion_limit(self):
        ids = [f"n{i:04d}" for i in range(1500)]
        forest = build_forest(
            [CategoryRecord(id=i, name=i) for i in ids],
            [CategoryEdge(parent_id=p, child_id=c) for p, c in zip(ids, ids[1:])],
        )
        result = layout_forest(forest)
        assert [n.id for n in result.nodes] == ids
        assert len(result.edges) == 1499
        assert result.nodes[-1].x == 10 + 1499 * 300
        # a single-child chain sits on one row
        assert {n.y for n in result.nodes} == {10}
        assert result.subtree_height == 32

    def test_collapsed_deep_chain(self):
        ids = [f"n{i:04d}" for i in range(1500)]
        forest = build_forest(
            [CategoryRecord(id=i, name=i) for i in ids],
            [CategoryEdge(parent_id=p, child_id=c) for p, c in zip(ids, ids[1:])],
        )
        result = layout_forest(forest, collapsed={"n1000"})
        assert len(result.nodes) == 1001
        assert result.get_node("n1000").is_collapsed
