"""
NoteTree Backend — Tree Operations
==================================

What:  Pure helpers over a forest of `Note` objects: structural clone,
       position cleaning, lookups, flattening, filters and search.
How:   Plain functions taking the root list (the forest) and returning new
       values or mutating the lists they are given, as documented per function.
Who:   NoteTreeStore (mutations), ExpansionState (view helpers) and the
       persistence codec in services.hierarchy.

None of these functions perform I/O or raise for missing ids; lookups return
None / empty results instead.
"""

from collections import Counter
from typing import Iterator, List, Optional, Sequence, Tuple

from notetree.schemas.note import FilterType, Note, SearchResult

# Content longer than this is cut around the match in search results
SEARCH_SNIPPET_THRESHOLD = 100
# Characters kept on each side of the match
SEARCH_SNIPPET_CONTEXT = 40


# ══════════════════════════════════════════════════════════════════════════
# Structure
# ══════════════════════════════════════════════════════════════════════════


def clone_note(note: Note) -> Note:
    """
    Structural deep copy of a note and its whole subtree.

    Every field of the typed shape is copied explicitly; the result shares no
    lists or child objects with the original.
    """
    return Note.model_construct(
        id=note.id,
        content=note.content,
        position=note.position,
        is_discussion=note.is_discussion,
        time_set=note.time_set,
        youtube_url=note.youtube_url,
        url=note.url,
        url_display_text=note.url_display_text,
        children=[clone_note(child) for child in note.children],
        images=[image.model_copy() for image in note.images],
    )


def clone_forest(notes: Sequence[Note]) -> List[Note]:
    return [clone_note(note) for note in notes]


def renumber(siblings: List[Note]) -> None:
    """Assign positions 0..n-1 following the current list order."""
    for index, note in enumerate(siblings):
        note.position = index


def clean_positions(notes: List[Note]) -> List[Note]:
    """
    Make every sibling list contiguous from 0, in place.

    Each list is stable-sorted by its current `position` (ties keep document
    order) and renumbered, recursively. Returns the same list object.
    Running it twice gives the same forest as running it once.
    """
    notes.sort(key=lambda n: n.position)
    for index, note in enumerate(notes):
        note.position = index
        clean_positions(note.children)
    return notes


# ══════════════════════════════════════════════════════════════════════════
# Lookup
# ══════════════════════════════════════════════════════════════════════════


def find_note_and_path(
    notes: Sequence[Note],
    note_id: str,
    path: Optional[List[Note]] = None,
) -> Tuple[Optional[Note], List[Note]]:
    """
    Depth-first search in document order.

    Returns:
        (note, ancestors) where ancestors are ordered root first, or
        (None, []) when the id is not in the forest.
    """
    path = path or []
    for note in notes:
        if note.id == note_id:
            return note, path
        if note.children:
            found, found_path = find_note_and_path(note.children, note_id, path + [note])
            if found is not None:
                return found, found_path
    return None, []


def find_note_and_parent(
    notes: Sequence[Note],
    note_id: str,
    parent: Optional[Note] = None,
) -> Tuple[Optional[Note], Optional[Note], int]:
    """
    Locate a note together with its parent and index in the parent's list.

    Returns (None, None, -1) when absent. A root note has parent None.
    """
    for index, note in enumerate(notes):
        if note.id == note_id:
            return note, parent, index
        if note.children:
            found, found_parent, found_index = find_note_and_parent(note.children, note_id, note)
            if found is not None:
                return found, found_parent, found_index
    return None, None, -1


def iter_notes(notes: Sequence[Note], depth: int = 0) -> Iterator[Tuple[Note, int]]:
    """Yield (note, depth) for the whole forest in document (pre-)order."""
    stack: List[Tuple[Note, int]] = [(note, depth) for note in reversed(notes)]
    while stack:
        note, level = stack.pop()
        yield note, level
        stack.extend((child, level + 1) for child in reversed(note.children))


def all_note_ids(notes: Sequence[Note]) -> List[str]:
    return [note.id for note, _ in iter_notes(notes)]


def count_notes(notes: Sequence[Note]) -> int:
    return sum(1 for _ in iter_notes(notes))


def note_depth(notes: Sequence[Note], note_id: str) -> Optional[int]:
    """0 for root notes, None when the id is not in the forest."""
    note, path = find_note_and_path(notes, note_id)
    if note is None:
        return None
    return len(path)


def tree_height(notes: Sequence[Note]) -> int:
    """Number of levels in the forest (0 when empty)."""
    return max((depth + 1 for _, depth in iter_notes(notes)), default=0)


def is_in_subtree(root: Note, note_id: str) -> bool:
    """True when `note_id` is a strict descendant of `root`."""
    return any(note.id == note_id for note, _ in iter_notes(root.children))


def duplicate_ids(notes: Sequence[Note]) -> List[str]:
    """Ids that occur more than once in the forest, sorted."""
    counts = Counter(note.id for note, _ in iter_notes(notes))
    return sorted(note_id for note_id, count in counts.items() if count > 1)


# ══════════════════════════════════════════════════════════════════════════
# Filters & Search
# ══════════════════════════════════════════════════════════════════════════


_FILTER_PREDICATES = {
    FilterType.TIME: lambda note: bool(note.time_set),
    FilterType.VIDEO: lambda note: bool(note.youtube_url),
    FilterType.IMAGE: lambda note: bool(note.images),
    FilterType.DISCUSSION: lambda note: bool(note.is_discussion),
    FilterType.LINK: lambda note: bool(note.url),
}


def filter_notes(notes: Sequence[Note], filter_type: FilterType) -> List[Tuple[Note, int]]:
    """All (note, depth) pairs whose attribute for `filter_type` is set, in document order."""
    predicate = _FILTER_PREDICATES[FilterType(filter_type)]
    return [(note, depth) for note, depth in iter_notes(notes) if predicate(note)]


def filter_detail(note: Note, filter_type: FilterType) -> Optional[str]:
    """The attribute value a filter matched on, formatted for display."""
    filter_type = FilterType(filter_type)
    if filter_type is FilterType.TIME:
        return note.time_set
    if filter_type is FilterType.VIDEO:
        return note.youtube_url
    if filter_type is FilterType.IMAGE:
        count = len(note.images)
        return f"{count} image{'' if count == 1 else 's'}" if count else None
    if filter_type is FilterType.LINK:
        return note.url_display_text or note.url
    return None


def _snippet(content: str, match_index: int, term_length: int) -> str:
    if len(content) <= SEARCH_SNIPPET_THRESHOLD:
        return content
    start = max(0, match_index - SEARCH_SNIPPET_CONTEXT)
    end = min(len(content), match_index + term_length + SEARCH_SNIPPET_CONTEXT)
    prefix = "..." if start > 0 else ""
    suffix = "..." if end < len(content) else ""
    return f"{prefix}{content[start:end]}{suffix}"


def search_notes(notes: Sequence[Note], term: str) -> List[SearchResult]:
    """
    Case-insensitive substring search over note contents.

    Each hit carries a snippet of the content and the path of contents from
    the root note down to the hit. A blank term matches nothing.
    """
    if not term or not term.strip():
        return []
    needle = term.lower()
    results: List[SearchResult] = []

    def visit(note: Note, path: List[str]) -> None:
        here = path + [note.content]
        index = note.content.lower().find(needle)
        if index >= 0:
            results.append(
                SearchResult(
                    id=note.id,
                    content=_snippet(note.content, index, len(term)),
                    path=here,
                )
            )
        for child in note.children:
            visit(child, here)

    for root in notes:
        visit(root, [])
    return results


# ══════════════════════════════════════════════════════════════════════════
# Move Descriptions (log lines)
# ══════════════════════════════════════════════════════════════════════════


def format_position(parent_id: Optional[str], position: int) -> str:
    if parent_id:
        return f"child of {parent_id[:6]}... at pos {position}"
    return f"root at pos {position}"


def describe_move(
    note: Note,
    source_parent_id: Optional[str],
    source_position: int,
    target_parent_id: Optional[str],
    target_position: int,
) -> str:
    """
    One-line description of a move, e.g.

        Moving note "Groceries" (moving up) from root at pos 2 to root at pos 0
    """
    preview = note.content[:15] + ("..." if len(note.content) > 15 else "")

    if source_parent_id == target_parent_id:
        if target_position < source_position:
            movement = "moving up"
        elif target_position > source_position:
            movement = "moving down"
        else:
            movement = "no change"
    elif source_parent_id is None:
        movement = "moving to child level"
    elif target_parent_id is None:
        movement = "moving to root level"
    else:
        movement = "moving to different parent"

    return (
        f'Moving note "{preview}" ({movement}) '
        f"from {format_position(source_parent_id, source_position)} "
        f"to {format_position(target_parent_id, target_position)}"
    )
