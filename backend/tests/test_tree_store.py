"""
NoteTree Backend — NoteTreeStore Unit Tests
===========================================

What:  Tests for the in-memory forest and its mutations.
How:   Pure, synchronous tests; no database.

What we test:
    ✅ add / update / delete / move behaviour and their no-op cases
    ✅ move rejections (cycle, unknown target) leave the forest untouched
    ✅ move coalescing (interaction ids, re-entrant calls)
    ✅ import validation and position normalisation
    ✅ contiguity, uniqueness and round-trip properties
"""

import random

import pytest

from conftest import make_note
from notetree.exceptions import ValidationError
from notetree.schemas.note import FilterType, ImageRef, Note, NotesData
from notetree.services import tree_ops
from notetree.services.tree_store import DEFAULT_NOTE_CONTENT, MoveOutcome, NoteTreeStore


def snapshot(store: NoteTreeStore):
    return [note.model_dump() for note in store.notes]


def sibling_lists(store: NoteTreeStore):
    yield list(store.notes)
    for note, _ in tree_ops.iter_notes(store.notes):
        yield note.children


def assert_contiguous(store: NoteTreeStore):
    for siblings in sibling_lists(store):
        assert [note.position for note in siblings] == list(range(len(siblings)))


def root_ids(store: NoteTreeStore):
    return [note.id for note in store.notes]


class TestAdd:
    """Tests for NoteTreeStore.add."""

    def test_add_root_notes_appends_with_next_position(self):
        """Root notes are appended in order with positions 0, 1."""
        store = NoteTreeStore()
        first = store.add()
        second = store.add(content="Second")

        assert root_ids(store) == [first.id, second.id]
        assert (first.position, second.position) == (0, 1)
        assert first.content == DEFAULT_NOTE_CONTENT
        assert second.content == "Second"
        assert first.children == []

    def test_add_child_goes_to_end_of_parent(self, store):
        """A child is appended after the parent's existing children."""
        note = store.add("a", content="a3")

        parent, _ = store.find("a")
        assert [child.id for child in parent.children] == ["a1", "a2", note.id]
        assert note.position == 2

    def test_add_generates_unique_ids(self, store):
        """Generated ids never collide with existing ones."""
        added = {store.add().id for _ in range(20)}
        assert len(added) == 20
        assert tree_ops.duplicate_ids(store.notes) == []

    def test_add_with_fields(self):
        """Initial attributes are stored on the new note."""
        store = NoteTreeStore()
        image = ImageRef(id="img", url="https://cdn/img.png", storage_path="p/img.png")
        note = store.add(
            content="Watch",
            youtube_url="https://youtu.be/x",
            is_discussion=True,
            images=[image],
        )

        assert note.youtube_url == "https://youtu.be/x"
        assert note.is_discussion is True
        assert note.images[0].id == "img"
        assert note.images[0] is not image

    def test_add_under_missing_parent_is_noop(self, store):
        """An unknown parent id returns None and leaves the forest unchanged."""
        before = snapshot(store)
        assert store.add("missing") is None
        assert snapshot(store) == before


class TestUpdate:
    """Tests for NoteTreeStore.update."""

    def test_update_fields_in_place(self, store):
        """Leaf fields are replaced on the stored note object."""
        live, _ = store.find("b")
        changed = Note(id="b", content="Bee", url=None, time_set="09:30")

        assert store.update(changed) is True
        assert live.content == "Bee"
        assert live.url is None
        assert live.time_set == "09:30"

    def test_update_with_empty_children_keeps_subtree(self, store):
        """Editing only leaf fields must not truncate the subtree."""
        assert store.update(Note(id="a", content="A edited", children=[])) is True

        note, _ = store.find("a")
        assert note.content == "A edited"
        assert [child.id for child in note.children] == ["a1", "a2"]
        assert note.children[0].children[0].id == "a1x"

    def test_update_with_children_replaces_subtree(self, store):
        """Non-empty children replace the subtree and are renumbered."""
        replacement = [
            Note(id="n2", content="second", position=7),
            Note(id="n1", content="first", position=3),
        ]
        assert store.update(Note(id="a", content="A", children=replacement)) is True

        note, _ = store.find("a")
        assert [child.id for child in note.children] == ["n1", "n2"]
        assert [child.position for child in note.children] == [0, 1]
        assert store.find("a1")[0] is None

    def test_update_children_may_reuse_ids_from_replaced_subtree(self, store):
        """Ids of the subtree being replaced may appear in the replacement."""
        assert store.update(Note(id="a", children=[Note(id="a1x"), Note(id="a2")])) is True
        note, _ = store.find("a")
        assert [child.id for child in note.children] == ["a1x", "a2"]

    def test_update_children_with_foreign_ids_rejected(self, store):
        """Children reusing ids from elsewhere in the forest raise and change nothing."""
        before = snapshot(store)
        with pytest.raises(ValidationError) as exc_info:
            store.update(Note(id="a", content="changed", children=[Note(id="b")]))

        assert exc_info.value.context["duplicate_ids"] == ["b"]
        assert snapshot(store) == before

    def test_update_keeps_stored_position(self, store):
        """Position is owned by the store, not by the caller."""
        store.update(Note(id="c", content="C", position=0))
        note, _ = store.find("c")
        assert note.position == 2
        assert root_ids(store) == ["a", "b", "c"]

    def test_update_missing_id_is_noop(self, store):
        """Unknown id returns False."""
        before = snapshot(store)
        assert store.update(Note(id="nope", content="x")) is False
        assert snapshot(store) == before


class TestDelete:
    """Tests for NoteTreeStore.delete."""

    def test_delete_middle_root_renumbers(self, store):
        """Deleting position 1 of 3 leaves 0, 1 in the original relative order."""
        assert store.delete("b") is True
        assert root_ids(store) == ["a", "c"]
        assert [note.position for note in store.notes] == [0, 1]

    def test_delete_removes_subtree(self, store):
        """Descendants go with the deleted note."""
        store.delete("a1")
        assert store.find("a1x")[0] is None
        parent, _ = store.find("a")
        assert [(child.id, child.position) for child in parent.children] == [("a2", 0)]

    def test_delete_missing_id_is_noop(self, store):
        before = snapshot(store)
        assert store.delete("nope") is False
        assert snapshot(store) == before


class TestMove:
    """Tests for NoteTreeStore.move."""

    def test_move_second_root_to_front(self):
        """A, B; move B to index 0 → B at 0, A at 1."""
        store = NoteTreeStore()
        a = store.add(content="A")
        b = store.add(content="B")

        assert store.move(b.id, None, 0) is MoveOutcome.MOVED

        assert root_ids(store) == [b.id, a.id]
        assert store.find(a.id)[0].position == 1
        assert store.find(b.id)[0].position == 0

    def test_move_into_other_parent(self, store):
        """The note and its subtree move under the new parent."""
        assert store.move("a1", "c", 0) is MoveOutcome.MOVED

        c, _ = store.find("c")
        assert [child.id for child in c.children] == ["a1"]
        assert c.children[0].children[0].id == "a1x"
        a, _ = store.find("a")
        assert [(child.id, child.position) for child in a.children] == [("a2", 0)]
        assert_contiguous(store)

    def test_move_to_root(self, store):
        """Moving a child to the root list with an index past the end appends it."""
        assert store.move("a2", None, 99) is MoveOutcome.MOVED
        assert root_ids(store) == ["a", "b", "c", "a2"]
        assert_contiguous(store)

    def test_move_negative_index_clamps_to_front(self, store):
        assert store.move("c", None, -5) is MoveOutcome.MOVED
        assert root_ids(store) == ["c", "a", "b"]

    def test_move_inserts_clone(self, store):
        """The moved note is a new object; the old reference is abandoned."""
        old, _ = store.find("a1")
        store.move("a1", None, 0)
        new, _ = store.find("a1")

        assert new is not old
        assert new.children[0] is not old.children[0]
        assert new.content == old.content

    def test_move_into_own_child_is_rejected(self, store):
        """Moving a note under its own descendant changes nothing."""
        before = snapshot(store)
        assert store.move("a", "a1x", 0) is MoveOutcome.CYCLE
        assert snapshot(store) == before

    def test_move_into_itself_is_rejected(self, store):
        before = snapshot(store)
        assert store.move("a", "a", 0) is MoveOutcome.CYCLE
        assert snapshot(store) == before

    def test_move_to_missing_target_keeps_note(self, store):
        """An unknown target parent is rejected before the note is detached."""
        before = snapshot(store)
        assert store.move("b", "missing", 0) is MoveOutcome.TARGET_NOT_FOUND
        assert snapshot(store) == before

    def test_move_missing_note_is_noop(self, store):
        before = snapshot(store)
        assert store.move("missing", None, 0) is MoveOutcome.NOT_FOUND
        assert snapshot(store) == before

    def test_duplicate_interaction_is_dropped(self, store):
        """A second move from the same drag interaction is not applied."""
        assert store.move("c", None, 0, interaction_id="drag-1") is MoveOutcome.MOVED
        assert store.move("c", None, 2, interaction_id="drag-1") is MoveOutcome.DUPLICATE
        assert root_ids(store) == ["c", "a", "b"]

        assert store.move("c", None, 2, interaction_id="drag-2") is MoveOutcome.MOVED
        assert root_ids(store) == ["a", "b", "c"]

    def test_rejected_move_does_not_consume_interaction(self, store):
        """Only applied moves are remembered for coalescing."""
        assert store.move("a", "a1", 0, interaction_id="drag-1") is MoveOutcome.CYCLE
        assert store.move("b", None, 0, interaction_id="drag-1") is MoveOutcome.MOVED

    def test_reentrant_move_from_listener_is_dropped(self, store):
        """A move triggered while another move runs is dropped, not double-applied."""
        nested = []

        def listener(event, note_id):
            if event == "move":
                nested.append(store.move("b", None, 0))

        store.add_listener(listener)
        assert store.move("c", None, 0) is MoveOutcome.MOVED

        assert nested == [MoveOutcome.IN_FLIGHT]
        assert root_ids(store) == ["c", "a", "b"]
        # The guard is released once the move has finished
        assert store.move("b", None, 0) is MoveOutcome.MOVED

    def test_outcome_moved_flag(self):
        assert MoveOutcome.MOVED.moved is True
        assert MoveOutcome.CYCLE.moved is False


class TestImportExport:
    """Tests for import_notes / export_notes."""

    def test_import_normalises_positions(self):
        """A lone note imported at position 5 ends up at 0."""
        store = NoteTreeStore()
        store.import_notes({"notes": [{"id": "x", "position": 5, "children": []}]})

        assert store.notes[0].id == "x"
        assert store.notes[0].position == 0

    def test_import_sorts_siblings_by_position(self):
        store = NoteTreeStore()
        store.import_notes(
            {"notes": [make_note("b", position=4), make_note("a", position=1), make_note("c", position=9)]}
        )
        assert root_ids(store) == ["a", "b", "c"]
        assert_contiguous(store)

    def test_import_accepts_null_children(self):
        store = NoteTreeStore()
        store.import_notes({"notes": [{"id": "x", "content": "X", "children": None}]})
        assert store.notes[0].children == []

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"notes": None},
            {"notes": "not a list"},
            {"notes": {"id": "x"}},
            "notes",
            None,
        ],
    )
    def test_import_rejects_malformed_payload(self, store, payload):
        """Missing or non-list notes raise and keep the previous forest."""
        before = snapshot(store)
        with pytest.raises(ValidationError):
            store.import_notes(payload)
        assert snapshot(store) == before

    def test_import_rejects_invalid_note(self, store):
        before = snapshot(store)
        with pytest.raises(ValidationError) as exc_info:
            store.import_notes({"notes": [{"content": "no id"}]})
        assert exc_info.value.context["errors"]
        assert snapshot(store) == before

    def test_import_rejects_duplicate_ids(self, store):
        before = snapshot(store)
        with pytest.raises(ValidationError) as exc_info:
            store.import_notes({"notes": [make_note("x"), make_note("y", children=[make_note("x")])]})
        assert exc_info.value.context["duplicate_ids"] == ["x"]
        assert snapshot(store) == before

    def test_import_accepts_notes_data(self, sample_forest):
        store = NoteTreeStore()
        store.import_notes(NotesData.model_validate({"notes": sample_forest}))
        assert store.count() == 6

    def test_export_is_independent_copy(self, store):
        """Mutating the export does not touch the store."""
        exported = store.export_notes()
        exported.notes[0].content = "changed"
        exported.notes[0].children.clear()

        note, _ = store.find("a")
        assert note.content == "A"
        assert len(note.children) == 2

    def test_round_trip(self, store):
        """import(export()) gives a structurally equal forest."""
        exported = store.export_notes()
        copy = NoteTreeStore()
        copy.import_notes(exported)
        assert snapshot(copy) == snapshot(store)

    def test_round_trip_through_json(self, store):
        payload = store.export_notes().model_dump(mode="json")
        copy = NoteTreeStore()
        copy.import_notes(payload)
        assert snapshot(copy) == snapshot(store)


class TestReadSide:
    """Tests for find, filter, search and counters."""

    def test_find_returns_ancestors_root_first(self, store):
        note, path = store.find("a1x")
        assert note.id == "a1x"
        assert [ancestor.id for ancestor in path] == ["a", "a1"]

    def test_find_missing(self, store):
        assert store.find("nope") == (None, [])

    def test_counters(self, store):
        assert store.count() == 6
        assert store.height() == 3
        assert store.depth_of("a1x") == 2
        assert store.depth_of("nope") is None
        assert store.all_ids() == ["a", "a1", "a1x", "a2", "b", "c"]

    def test_filter(self, store):
        assert [(note.id, depth) for note, depth in store.filter(FilterType.TIME)] == [("a2", 1)]
        assert [note.id for note, _ in store.filter(FilterType.LINK)] == ["b"]
        assert [note.id for note, _ in store.filter(FilterType.DISCUSSION)] == ["c"]
        assert store.filter(FilterType.VIDEO) == []

    def test_search_is_case_insensitive_with_path(self, store):
        results = store.search("a1")
        assert [result.id for result in results] == ["a1", "a1x"]
        assert results[1].path == ["A", "A1", "A1X"]


class TestInvariants:
    """Properties that must hold after any sequence of operations."""

    def test_random_operations_keep_invariants(self, store):
        rng = random.Random(1234)
        for _ in range(300):
            ids = store.all_ids()
            action = rng.choice(["add", "delete", "move", "move"])
            if action == "add":
                store.add(rng.choice(ids + [None]) if ids else None)
            elif action == "delete" and ids:
                store.delete(rng.choice(ids))
            elif ids:
                store.move(rng.choice(ids), rng.choice(ids + [None]), rng.randint(-1, 6))

            assert_contiguous(store)
            assert tree_ops.duplicate_ids(store.notes) == []
            for note, _ in tree_ops.iter_notes(store.notes):
                assert not tree_ops.is_in_subtree(note, note.id)

    def test_clean_positions_repairs_gaps(self, store):
        """Out-of-order positions are re-sorted and renumbered from 0, recursively."""
        a, _ = store.find("a")
        store.find("c")[0].position = 10
        store.find("b")[0].position = -1
        a.children[0].position = 7

        store.clean_positions()

        assert root_ids(store) == ["b", "a", "c"]
        assert [child.id for child in a.children] == ["a2", "a1"]
        assert_contiguous(store)

        before = [n.model_dump() for n in store.notes]
        store.clean_positions()
        assert [n.model_dump() for n in store.notes] == before

    def test_listeners_receive_events(self, store):
        events = []
        store.add_listener(lambda event, note_id: events.append((event, note_id)))

        added = store.add()
        store.update(Note(id="b", content="B2"))
        store.move("c", None, 0)
        store.delete("b")
        store.move("a", "a1", 0)  # rejected: no event

        assert events == [("add", added.id), ("update", "b"), ("move", "c"), ("delete", "b")]
