"""
NoteTree Backend — Note Tree Store
==================================

What:  In-memory owner of one project's forest of notes, exposing the
       mutation operations (add, update, delete, move, import, export).
How:   Synchronous, single-writer. Every operation runs to completion before
       returning; structural changes end with a position clean-up so that each
       sibling list is numbered 0..n-1.
Who:   NoteService holds one store per open project. Tests use it directly.

Invariants kept after every operation:
    - note ids are unique across the forest
    - positions in every sibling list are exactly 0..n-1
    - no note is its own descendant
    - `children` is always a list

Failure semantics:
    - an unknown id makes update/delete/move/add a no-op (False / None /
      MoveOutcome.NOT_FOUND), never an exception
    - a move into the note itself or its subtree is rejected before anything
      is detached
    - malformed import payloads and id collisions raise ValidationError and
      leave the forest untouched
"""

import logging
import uuid
from collections import deque
from enum import Enum
from typing import Any, Callable, Deque, Iterable, List, Mapping, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from notetree.exceptions import ValidationError
from notetree.schemas.note import FilterType, ImageRef, Note, NotesData, SearchResult
from notetree.services import tree_ops

logger = logging.getLogger(__name__)

DEFAULT_NOTE_CONTENT = "New note"

# How many recent drag-and-drop interaction ids are remembered for coalescing
INTERACTION_HISTORY = 64

ChangeListener = Callable[[str, Optional[str]], None]


class MoveOutcome(str, Enum):
    """Result of NoteTreeStore.move. Only MOVED changes the forest."""

    MOVED = "moved"
    NOT_FOUND = "not_found"
    TARGET_NOT_FOUND = "target_not_found"
    CYCLE = "cycle"
    DUPLICATE = "duplicate"
    IN_FLIGHT = "in_flight"

    @property
    def moved(self) -> bool:
        return self is MoveOutcome.MOVED


class NoteTreeStore:
    """
    Owns a forest of notes and the operations that mutate it.

    Read accessors (`notes`, `find`) return the live nodes; callers must not
    mutate them and should go through `update` instead. `export_notes`
    returns an independent copy.

    Change listeners registered with `add_listener` are called with
    `(event, note_id)` after each successful mutation, where event is one of
    "add", "update", "delete", "move", "import".
    """

    def __init__(self, notes: Optional[Iterable[Any]] = None):
        self._notes: List[Note] = []
        self._listeners: List[ChangeListener] = []
        self._move_in_flight = False
        self._recent_interactions: Deque[str] = deque(maxlen=INTERACTION_HISTORY)
        if notes is not None:
            self.import_notes({"notes": list(notes)})

    # ── Read side ─────────────────────────────────────────────────────────

    @property
    def notes(self) -> Tuple[Note, ...]:
        return tuple(self._notes)

    def find(self, note_id: str) -> Tuple[Optional[Note], List[Note]]:
        """The note with `note_id` and its ancestors (root first), or (None, [])."""
        return tree_ops.find_note_and_path(self._notes, note_id)

    def all_ids(self) -> List[str]:
        return tree_ops.all_note_ids(self._notes)

    def count(self) -> int:
        return tree_ops.count_notes(self._notes)

    def depth_of(self, note_id: str) -> Optional[int]:
        return tree_ops.note_depth(self._notes, note_id)

    def height(self) -> int:
        return tree_ops.tree_height(self._notes)

    def filter(self, filter_type: FilterType) -> List[Tuple[Note, int]]:
        return tree_ops.filter_notes(self._notes, filter_type)

    def search(self, term: str) -> List[SearchResult]:
        return tree_ops.search_notes(self._notes, term)

    # ── Listeners ─────────────────────────────────────────────────────────

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _notify(self, event: str, note_id: Optional[str]) -> None:
        for listener in list(self._listeners):
            listener(event, note_id)

    # ── Mutations ─────────────────────────────────────────────────────────

    def add(
        self,
        parent_id: Optional[str] = None,
        content: Optional[str] = None,
        *,
        is_discussion: bool = False,
        time_set: Optional[str] = None,
        youtube_url: Optional[str] = None,
        url: Optional[str] = None,
        url_display_text: Optional[str] = None,
        images: Optional[Iterable[ImageRef]] = None,
    ) -> Optional[Note]:
        """
        Append a new note to the root list or to `parent_id`'s children.

        The note gets a fresh UUID and position equal to the previous sibling
        count. Returns the inserted note, or None when the parent is unknown.
        """
        if parent_id is None:
            siblings = self._notes
        else:
            parent, _ = self.find(parent_id)
            if parent is None:
                logger.debug("add: parent %s not found", parent_id)
                return None
            siblings = parent.children

        note = Note(
            id=str(uuid.uuid4()),
            content=DEFAULT_NOTE_CONTENT if content is None else content,
            position=len(siblings),
            is_discussion=is_discussion,
            time_set=time_set,
            youtube_url=youtube_url,
            url=url,
            url_display_text=url_display_text,
            children=[],
            images=[image.model_copy() for image in images or ()],
        )
        siblings.append(note)
        tree_ops.renumber(siblings)

        self._notify("add", note.id)
        return note

    def update(self, note: Note) -> bool:
        """
        Overwrite the stored fields of the note with the same id, in place.

        Empty `children` keep the existing subtree. Non-empty `children`
        replace it; their ids must not collide with any note outside the
        replaced subtree. The stored position is kept.

        Returns False when no note has this id.

        Raises:
            ValidationError: replacement children reuse ids already in the forest
        """
        existing, _, _ = tree_ops.find_note_and_parent(self._notes, note.id)
        if existing is None:
            logger.debug("update: note %s not found", note.id)
            return False

        if note.children:
            children = tree_ops.clone_forest(note.children)
            replaced = set(tree_ops.all_note_ids(existing.children))
            others = set(self.all_ids()) - replaced
            incoming = tree_ops.all_note_ids(children)
            clashes = sorted(
                set(tree_ops.duplicate_ids(children)) | (set(incoming) & others)
            )
            if clashes:
                raise ValidationError(
                    message="Replacement children reuse note ids that already exist",
                    field="children",
                    context={"note_id": note.id, "duplicate_ids": clashes[:20]},
                )
            tree_ops.clean_positions(children)
        else:
            children = existing.children

        existing.content = note.content
        existing.is_discussion = note.is_discussion
        existing.time_set = note.time_set
        existing.youtube_url = note.youtube_url
        existing.url = note.url
        existing.url_display_text = note.url_display_text
        existing.images = [image.model_copy() for image in note.images]
        existing.children = children

        self._notify("update", note.id)
        return True

    def delete(self, note_id: str) -> bool:
        """Remove a note (and its subtree). Returns False when the id is unknown."""
        note, parent, index = tree_ops.find_note_and_parent(self._notes, note_id)
        if note is None:
            logger.debug("delete: note %s not found", note_id)
            return False

        siblings = parent.children if parent is not None else self._notes
        del siblings[index]
        tree_ops.renumber(siblings)
        tree_ops.clean_positions(self._notes)

        self._notify("delete", note_id)
        return True

    def move(
        self,
        note_id: str,
        target_parent_id: Optional[str],
        target_index: int,
        interaction_id: Optional[str] = None,
    ) -> MoveOutcome:
        """
        Relocate a note under `target_parent_id` (None for the root list).

        Steps:
            1. Drop the call if another move is executing (re-entrant call from
               a listener) or if `interaction_id` was already applied
            2. Locate the note; unknown id is a no-op
            3. Reject targets equal to the note or inside its subtree, and
               unknown targets, before detaching anything
            4. Detach, clone, and insert the clone at
               min(max(target_index, 0), sibling_count) in the destination
            5. Renumber the source and destination lists

        The destination index is interpreted after the note has been detached,
        so moving B in [A, B] to index 0 gives [B, A].
        """
        if self._move_in_flight:
            logger.debug("move: %s dropped, another move is in progress", note_id)
            return MoveOutcome.IN_FLIGHT
        if interaction_id is not None and interaction_id in self._recent_interactions:
            logger.debug("move: %s dropped, interaction %s already applied", note_id, interaction_id)
            return MoveOutcome.DUPLICATE

        self._move_in_flight = True
        try:
            note, source_parent, source_index = tree_ops.find_note_and_parent(self._notes, note_id)
            if note is None:
                logger.debug("move: note %s not found", note_id)
                return MoveOutcome.NOT_FOUND

            if target_parent_id is None:
                destination = self._notes
            else:
                if target_parent_id == note_id or tree_ops.is_in_subtree(note, target_parent_id):
                    logger.warning(
                        "move: refusing to move note %s into itself or its descendant %s",
                        note_id,
                        target_parent_id,
                    )
                    return MoveOutcome.CYCLE
                target_parent, _ = self.find(target_parent_id)
                if target_parent is None:
                    logger.debug("move: target parent %s not found", target_parent_id)
                    return MoveOutcome.TARGET_NOT_FOUND
                destination = target_parent.children

            source = source_parent.children if source_parent is not None else self._notes
            source_parent_id = source_parent.id if source_parent is not None else None

            del source[source_index]
            moved = tree_ops.clone_note(note)
            insert_at = max(0, min(target_index, len(destination)))
            destination.insert(insert_at, moved)

            tree_ops.renumber(source)
            if destination is not source:
                tree_ops.renumber(destination)
            tree_ops.clean_positions(self._notes)

            if interaction_id is not None:
                self._recent_interactions.append(interaction_id)

            logger.info(
                "%s",
                tree_ops.describe_move(moved, source_parent_id, source_index, target_parent_id, insert_at),
            )
            self._notify("move", note_id)
            return MoveOutcome.MOVED
        finally:
            self._move_in_flight = False

    def clean_positions(self) -> List[Note]:
        """Re-establish contiguous positions over the whole forest."""
        return tree_ops.clean_positions(self._notes)

    # ── Import / Export ───────────────────────────────────────────────────

    def import_notes(self, data: Any) -> None:
        """
        Replace the entire forest with `data["notes"]`.

        Accepts a NotesData instance or a mapping with a `notes` list whose
        items are Note instances or dicts. Positions are cleaned on the way in.

        Raises:
            ValidationError: missing/non-list `notes`, an invalid note, or
            duplicate ids. The current forest is left as it was.
        """
        if isinstance(data, NotesData):
            raw = data.notes
        elif isinstance(data, Mapping):
            raw = data.get("notes")
        else:
            raw = None

        if not isinstance(raw, (list, tuple)):
            raise ValidationError(
                message="Invalid notes format. Expected { notes: [] }",
                field="notes",
            )

        try:
            notes = [
                tree_ops.clone_note(item) if isinstance(item, Note) else Note.model_validate(item)
                for item in raw
            ]
        except PydanticValidationError as exc:
            raise ValidationError(
                message="Invalid note data in import",
                field="notes",
                context={"errors": exc.errors(include_url=False, include_context=False, include_input=False)[:10]},
            ) from exc

        duplicates = tree_ops.duplicate_ids(notes)
        if duplicates:
            raise ValidationError(
                message="Imported notes contain duplicate ids",
                field="notes",
                context={"duplicate_ids": duplicates[:20]},
            )

        self._notes = tree_ops.clean_positions(notes)
        self._notify("import", None)

    def export_notes(self) -> NotesData:
        """Independent copy of the whole forest."""
        return NotesData.model_construct(notes=tree_ops.clone_forest(self._notes))
