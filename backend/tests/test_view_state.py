"""
NoteTree Backend — Outline Expansion Tests
==========================================

What:  Tests for ExpansionState (expand to level, expand all, collapse all).
"""

from notetree.services.view_state import ExpansionState


class TestExpansionState:

    def test_level_one_expands_nothing(self, store):
        """Level 1 shows only root notes."""
        state = ExpansionState(store)
        assert state.expanded_ids() == []
        assert state.current_level == 1

    def test_level_two_expands_every_root(self, store):
        state = ExpansionState(store)
        assert state.expand_to_level(2) == ["a", "b", "c"]
        assert state.is_expanded("a")
        assert not state.is_expanded("a1")

    def test_level_three_expands_second_level(self, store):
        state = ExpansionState(store, level=3)
        assert state.expanded_ids() == ["a", "a1", "a2", "b", "c"]
        assert state.current_level == 3

    def test_negative_level_is_zero(self, store):
        state = ExpansionState(store)
        assert state.expand_to_level(-4) == []
        assert state.current_level == 0

    def test_expand_all_uses_tree_height(self, store):
        state = ExpansionState(store)
        state.expand_all()
        assert state.expanded_ids() == store.all_ids()
        assert state.current_level == 3

    def test_collapse_all(self, store):
        state = ExpansionState(store, level=5)
        state.collapse_all()
        assert state.expanded_ids() == []
        assert state.current_level == 0

    def test_toggle(self, store):
        state = ExpansionState(store)
        assert state.toggle("a1") is True
        assert state.toggle("a1") is False
        assert not state.is_expanded("a1")

    def test_prune_forgets_deleted_notes(self, store):
        state = ExpansionState(store, level=3)
        store.delete("a")
        state.prune()
        assert state.expanded_ids() == ["b", "c"]
        assert not state.is_expanded("a1")
