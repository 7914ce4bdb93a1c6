"""
NoteTree Backend — Forest ⇄ Rows Codec Tests
============================================

What:  Tests for flatten_note_hierarchy / build_note_hierarchy, including
       rows written by older clients and damaged parent links.
"""

import json

from notetree.schemas.note import ImageRef, Note
from notetree.services.hierarchy import build_note_hierarchy, flatten_note_hierarchy
from notetree.services.tree_store import NoteTreeStore


def row(note_id, parent_id=None, position=0, **fields):
    data = {"id": note_id, "parent_id": parent_id, "position": position, "content": note_id}
    data.update(fields)
    return data


class TestFlatten:

    def test_rows_in_pre_order_with_parent_ids(self, store):
        rows = flatten_note_hierarchy(store.notes, "project-1")

        assert [(r["id"], r["parent_id"]) for r in rows] == [
            ("a", None),
            ("a1", "a"),
            ("a1x", "a1"),
            ("a2", "a"),
            ("b", None),
            ("c", None),
        ]
        assert {r["project_id"] for r in rows} == {"project-1"}
        assert rows[3]["time_set"] == "10:00"

    def test_images_are_plain_dicts(self):
        note = Note(id="n", images=[ImageRef(id="i", url="u", storage_path="s", position=1)])
        [record] = flatten_note_hierarchy([note], "p")
        assert record["images"] == [{"id": "i", "url": "u", "storage_path": "s", "position": 1}]


class TestBuild:

    def test_rebuild_matches_original_forest(self, store):
        rows = flatten_note_hierarchy(store.notes, "p")
        rebuilt = build_note_hierarchy(reversed(rows))

        assert [n.model_dump() for n in rebuilt] == [n.model_dump() for n in store.notes]

    def test_positions_are_cleaned(self):
        notes = build_note_hierarchy([row("x", position=4), row("y", position=9), row("z", "x", position=3)])
        assert [(n.id, n.position) for n in notes] == [("x", 0), ("y", 1)]
        assert notes[0].children[0].position == 0

    def test_missing_parent_becomes_root(self):
        notes = build_note_hierarchy([row("orphan", parent_id="gone"), row("r", position=1)])
        assert [n.id for n in notes] == ["orphan", "r"]

    def test_parent_cycle_is_broken(self):
        """Rows pointing at each other are attached at the root instead of being lost."""
        notes = build_note_hierarchy([row("p", parent_id="q"), row("q", parent_id="p", position=1)])

        store = NoteTreeStore(notes)
        assert store.count() == 2
        assert sorted(store.all_ids()) == ["p", "q"]

    def test_note_below_a_cycle_keeps_its_parent(self):
        """Only a cycle member is detached; a note hanging off the cycle stays put."""
        notes = build_note_hierarchy(
            [
                row("c", parent_id="a", position=0),
                row("a", parent_id="b", position=1),
                row("b", parent_id="a", position=2),
            ]
        )

        assert [n.id for n in notes] == ["a"]
        assert [(n.id, n.position) for n in notes[0].children] == [("c", 0), ("b", 1)]

    def test_self_parent_becomes_root(self):
        notes = build_note_hierarchy([row("s", parent_id="s")])
        assert [n.id for n in notes] == ["s"]

    def test_duplicate_rows_keep_first(self):
        notes = build_note_hierarchy([row("d", content="first"), row("d", content="second", position=1)])
        assert [n.content for n in notes] == ["first"]

    def test_legacy_position_and_meta(self):
        """Older rows carry note_position and a JSON _meta blob."""
        meta = json.dumps({"is_discussion": True, "youtube_url": "https://youtu.be/v", "time_set": "07:00"})
        notes = build_note_hierarchy(
            [
                row("late", note_position=2, position=None, _meta=meta),
                row("early", note_position=0, position=None),
            ]
        )

        assert [n.id for n in notes] == ["early", "late"]
        late = notes[1]
        assert late.is_discussion is True
        assert late.youtube_url == "https://youtu.be/v"
        assert late.time_set == "07:00"

    def test_unreadable_meta_is_ignored(self):
        [note] = build_note_hierarchy([row("m", _meta="{not json", url="https://example.com")])
        assert note.url == "https://example.com"
        assert note.is_discussion is False

    def test_null_content_and_images(self):
        [note] = build_note_hierarchy([row("n", content=None, images=None)])
        assert note.content == ""
        assert note.images == []
