"""Tests for the in-memory category store."""

import pytest

from category_canvas.store import CategoryNotFoundError, InMemoryCategoryStore

SEED_YAML = """
categories:
  - id: card
    name: Cardiology
  - id: arr
    name: Arrhythmia
  - id: af
    name: Atrial Fib
relations:
  - parent: card
    child: arr
  - parent: arr
    child: af
"""


@pytest.fixture
def store():
    return InMemoryCategoryStore.from_yaml(SEED_YAML)


def relations(store) -> set[tuple[str, str]]:
    return {(r.parent_id, r.child_id) for r in store.fetch_all().relations}


class TestCreate:

    def test_create_root(self, store):
        record = store.create("Neurology", "Brain")
        ids = [c.id for c in store.fetch_all().categories]
        assert ids[-1] == record.id
        assert record.name == "Neurology" and record.description == "Brain"
        assert all(r.child_id != record.id for r in store.fetch_all().relations)

    def test_create_child(self, store):
        record = store.create("Flutter", parent_id="arr")
        assert ("arr", record.id) in relations(store)

    def test_name_is_stripped(self, store):
        assert store.create("  Padded  ").name == "Padded"

    def test_blank_name_rejected(self, store):
        with pytest.raises(ValueError):
            store.create("   ")

    def test_non_string_name_rejected(self, store):
        with pytest.raises(ValueError, match="string"):
            store.create(None)

    def test_unknown_parent_rejected(self, store):
        with pytest.raises(CategoryNotFoundError):
            store.create("Orphan", parent_id="missing")
        assert len(store.fetch_all().categories) == 3


class TestUpdate:

    def test_rename(self, store):
        store.update("af", "Atrial Fibrillation", "AF", "arr")
        record = next(c for c in store.fetch_all().categories if c.id == "af")
        assert record.name == "Atrial Fibrillation"
        assert record.description == "AF"
        assert relations(store) == {("card", "arr"), ("arr", "af")}

    def test_reparent_replaces_relation(self, store):
        store.update("af", "Atrial Fib", parent_id="card")
        assert relations(store) == {("card", "arr"), ("card", "af")}

    def test_move_to_root(self, store):
        store.update("arr", "Arrhythmia", parent_id=None)
        assert relations(store) == {("arr", "af")}

    def test_unknown_category(self, store):
        with pytest.raises(CategoryNotFoundError):
            store.update("nope", "Name")

    def test_own_parent_rejected(self, store):
        with pytest.raises(ValueError):
            store.update("arr", "Arrhythmia", parent_id="arr")

    @pytest.mark.parametrize("new_parent", ["arr", "af"])
    def test_move_under_descendant_rejected(self, store, new_parent):
        with pytest.raises(ValueError, match="descendant"):
            store.update("card", "Cardiology", parent_id=new_parent)
        assert relations(store) == {("card", "arr"), ("arr", "af")}

    def test_move_under_sibling_branch_allowed(self, store):
        neuro = store.create("Neurology")
        store.update("arr", "Arrhythmia", parent_id=neuro.id)
        assert relations(store) == {(neuro.id, "arr"), ("arr", "af")}


class TestDelete:

    def test_delete_cascades_relations(self, store):
        store.delete("arr")
        assert [c.id for c in store.fetch_all().categories] == ["card", "af"]
        assert relations(store) == set()

    def test_delete_unknown(self, store):
        with pytest.raises(CategoryNotFoundError, match="nope"):
            store.delete("nope")


class TestSnapshots:

    def test_fetch_all_returns_copies(self, store):
        snapshot = store.fetch_all()
        snapshot.categories[0].name = "Changed"
        snapshot.relations.clear()
        assert store.fetch_all().categories[0].name == "Cardiology"
        assert len(store.fetch_all().relations) == 2

    def test_save_and_load(self, store, tmp_path):
        path = tmp_path / "snapshot.yaml"
        store.create("Neurology")
        store.save(str(path))
        loaded = InMemoryCategoryStore.from_file(str(path))
        assert loaded.fetch_all() == store.fetch_all()

    def test_empty_store(self):
        snapshot = InMemoryCategoryStore().fetch_all()
        assert snapshot.categories == [] and snapshot.relations == []
