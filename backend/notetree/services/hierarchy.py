"""
NoteTree Backend — Forest ⇄ Rows Codec
======================================

What:  Converts between the nested forest held in memory and the flat rows
       stored in the `notes` table.
Who:   ProjectService.load_notes / save_notes.

Row shape (one per note):
    project_id, id, parent_id, content, position, is_discussion, time_set,
    youtube_url, url, url_display_text, images

Rows written by older clients are also accepted:
    - `note_position` instead of `position`
    - a `_meta` JSON string holding is_discussion / time_set / youtube_url /
      url / url_display_text
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from notetree.schemas.note import ImageRef, Note
from notetree.services import tree_ops

logger = logging.getLogger(__name__)

_META_FIELDS = ("is_discussion", "time_set", "youtube_url", "url", "url_display_text")


def flatten_note_hierarchy(notes: Iterable[Note], project_id: str) -> List[Dict[str, Any]]:
    """Pre-order list of row dicts for every note of the forest."""
    rows: List[Dict[str, Any]] = []

    def visit(note: Note, parent_id: Optional[str]) -> None:
        rows.append(
            {
                "project_id": project_id,
                "id": note.id,
                "parent_id": parent_id,
                "content": note.content,
                "position": note.position,
                "is_discussion": note.is_discussion,
                "time_set": note.time_set,
                "youtube_url": note.youtube_url,
                "url": note.url,
                "url_display_text": note.url_display_text,
                "images": [image.model_dump() for image in note.images],
            }
        )
        for child in note.children:
            visit(child, note.id)

    for root in notes:
        visit(root, None)
    return rows


def _get(row: Any, name: str, default: Any = None) -> Any:
    if isinstance(row, Mapping):
        return row.get(name, default)
    return getattr(row, name, default)


def _row_position(row: Any) -> int:
    legacy = _get(row, "note_position")
    if legacy is not None:
        return int(legacy)
    return int(_get(row, "position") or 0)


def _row_meta(row: Any) -> Dict[str, Any]:
    raw = _get(row, "_meta")
    if not raw:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    try:
        meta = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring unreadable _meta on note %s", _get(row, "id"))
        return {}
    return meta if isinstance(meta, dict) else {}


def _row_to_note(row: Any) -> Note:
    meta = _row_meta(row)
    fields = {name: meta.get(name) or _get(row, name) for name in _META_FIELDS}
    return Note(
        id=str(_get(row, "id")),
        content=_get(row, "content") or "",
        position=_row_position(row),
        is_discussion=bool(fields["is_discussion"]),
        time_set=fields["time_set"] or None,
        youtube_url=fields["youtube_url"] or None,
        url=fields["url"] or None,
        url_display_text=fields["url_display_text"] or None,
        children=[],
        images=[ImageRef.model_validate(image) for image in _get(row, "images") or []],
    )


def build_note_hierarchy(rows: Iterable[Any]) -> List[Note]:
    """
    Rebuild the nested forest from flat rows (ORM objects or dicts).

    How:
        1. Sort rows by position and create one Note per id (first row wins
           on duplicate ids)
        2. Attach every note to its parent; rows whose parent is missing, or
           whose parent chain loops back on itself, become root notes
        3. Clean positions so each sibling list is 0..n-1
    """
    ordered = sorted(rows, key=_row_position)

    nodes: Dict[str, Note] = {}
    parent_of: Dict[str, Optional[str]] = {}
    for row in ordered:
        note = _row_to_note(row)
        if note.id in nodes:
            logger.warning("Skipping duplicate note row %s", note.id)
            continue
        nodes[note.id] = note
        parent_of[note.id] = _get(row, "parent_id")

    for note_id, parent_id in parent_of.items():
        if parent_id is not None and (parent_id not in nodes or parent_id == note_id):
            parent_of[note_id] = None

    for note_id in parent_of:
        seen = {note_id}
        current = parent_of[note_id]
        while current is not None:
            if current == note_id:
                logger.warning("Note %s is part of a parent cycle; attaching it at the root", note_id)
                parent_of[note_id] = None
                break
            if current in seen:
                # Hangs below a cycle it is not part of; a cycle member breaks it.
                break
            seen.add(current)
            current = parent_of[current]

    roots: List[Note] = []
    for note_id, note in nodes.items():
        parent_id = parent_of[note_id]
        if parent_id is None:
            roots.append(note)
        else:
            nodes[parent_id].children.append(note)

    return tree_ops.clean_positions(roots)
