"""
NoteTree Backend — Outline Expansion State
==========================================

What:  The set of expanded note ids for an outline view, with the level
       shortcuts (expand to level N, expand all, collapse all).
How:   Reads the forest of a NoteTreeStore; never mutates it.

Levels:
    Level 1 shows only root notes, level 2 also shows their children, and so
    on. Showing level N means expanding every note at depth 0..N-2.
"""

from typing import List, Set

from notetree.services import tree_ops
from notetree.services.tree_store import NoteTreeStore


class ExpansionState:
    """Expanded-id set for one view of a store."""

    def __init__(self, store: NoteTreeStore, level: int = 1):
        self._store = store
        self._expanded: Set[str] = set()
        self.current_level = 1
        if level != 1:
            self.expand_to_level(level)

    def is_expanded(self, note_id: str) -> bool:
        return note_id in self._expanded

    def toggle(self, note_id: str) -> bool:
        """Flip one note; returns its new state."""
        if note_id in self._expanded:
            self._expanded.discard(note_id)
            return False
        self._expanded.add(note_id)
        return True

    def expand_all(self) -> None:
        self._expanded = set(self._store.all_ids())
        self.current_level = self._store.height()

    def collapse_all(self) -> None:
        self._expanded = set()
        self.current_level = 0

    def expand_to_level(self, level: int) -> List[str]:
        """
        Expand exactly the notes needed to show `level` levels.

        Levels below 0 are treated as 0. Returns the expanded ids in document order.
        """
        target = max(0, level)
        ids = [
            note.id
            for note, depth in tree_ops.iter_notes(self._store.notes)
            if depth < target - 1
        ]
        self._expanded = set(ids)
        self.current_level = target
        return ids

    def prune(self) -> None:
        """Forget ids that are no longer in the forest."""
        self._expanded &= set(self._store.all_ids())

    def expanded_ids(self) -> List[str]:
        """Expanded ids in document order."""
        return [note_id for note_id in self._store.all_ids() if note_id in self._expanded]
