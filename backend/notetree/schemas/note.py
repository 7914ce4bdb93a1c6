"""
NoteTree Backend — Note Tree Schemas
====================================

What:  Pydantic models for the note forest and the note-level API.
How:   `Note` is both the JSON wire shape used by import/export and the node
       type held by NoteTreeStore; request/response wrappers sit on top.
Who:   The tree core (services.tree_ops, services.tree_store), the persistence
       codec (services.hierarchy) and the notes routes.

Wire format (import/export, persistence contract):

    NotesData := { notes: Note[] }
    Note := {
      id: string, content: string, position: integer,
      is_discussion: boolean, time_set: string|null,
      youtube_url: string|null, url: string|null, url_display_text: string|null,
      children: Note[], images?: ImageRef[]
    }
    ImageRef := { id: string, url: string, storage_path: string, position: integer }
"""

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

# Widths of the notes.id / notes.parent_id and notes.time_set columns
NOTE_ID_MAX_LENGTH = 64
TIME_SET_MAX_LENGTH = 64


# ══════════════════════════════════════════════════════════════════════════
# Tree Shapes
# ══════════════════════════════════════════════════════════════════════════


class ImageRef(BaseModel):
    """Descriptor of an image attached to a note (the bytes live in external storage)."""

    id: str = Field(description="Image identifier")
    url: str = Field(description="Public URL of the stored image")
    storage_path: str = Field(description="Path of the object in the storage bucket")
    position: int = Field(default=0, description="Zero-based order among the note's images")


class Note(BaseModel):
    """
    A node in a forest of notes.

    `children` is always a list; an explicit null coming from a client is
    coerced to an empty list. Positions are owned by NoteTreeStore and are
    renumbered after every structural change.
    """

    id: str = Field(
        min_length=1,
        max_length=NOTE_ID_MAX_LENGTH,
        description="Opaque identifier, unique across the forest",
    )
    content: str = Field(default="", description="Free-form text; first line is the title")
    position: int = Field(default=0, description="Zero-based rank among siblings")
    is_discussion: bool = Field(default=False)
    time_set: Optional[str] = Field(default=None, max_length=TIME_SET_MAX_LENGTH)
    youtube_url: Optional[str] = Field(default=None)
    url: Optional[str] = Field(default=None)
    url_display_text: Optional[str] = Field(default=None)
    children: List["Note"] = Field(default_factory=list)
    images: List[ImageRef] = Field(default_factory=list)

    @field_validator("children", "images", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("content", mode="before")
    @classmethod
    def none_as_blank(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def title(self) -> str:
        """First line of the content, used for breadcrumbs and log lines."""
        return self.content.split("\n", 1)[0]


Note.model_rebuild()


class NotesData(BaseModel):
    """Whole-forest payload consumed by import and produced by export."""

    notes: List[Note] = Field(default_factory=list)


class FilterType(str, Enum):
    """Attribute filters offered by the notes view."""

    TIME = "time"
    VIDEO = "video"
    IMAGE = "image"
    DISCUSSION = "discussion"
    LINK = "link"


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class NoteCreate(BaseModel):
    """
    Body of POST /api/projects/{id}/notes.

    parent_id null inserts a root note; the new note is always appended at the
    end of its sibling list.
    """

    parent_id: Optional[str] = Field(default=None, description="Parent note id; null for a root note")
    content: Optional[str] = Field(default=None, description="Initial content (defaults to 'New note')")
    is_discussion: bool = False
    time_set: Optional[str] = Field(default=None, max_length=TIME_SET_MAX_LENGTH)
    youtube_url: Optional[str] = None
    url: Optional[str] = None
    url_display_text: Optional[str] = None
    images: List[ImageRef] = Field(default_factory=list)


class NoteUpdate(BaseModel):
    """
    Body of PATCH /api/projects/{id}/notes/{note_id}.

    Only fields present in the request are changed. Omitting `children` (or
    sending an empty list) keeps the existing subtree.
    """

    content: Optional[str] = None
    is_discussion: Optional[bool] = None
    time_set: Optional[str] = Field(default=None, max_length=TIME_SET_MAX_LENGTH)
    youtube_url: Optional[str] = None
    url: Optional[str] = None
    url_display_text: Optional[str] = None
    images: Optional[List[ImageRef]] = None
    children: Optional[List[Note]] = None


class MoveRequest(BaseModel):
    """
    Body of POST /api/projects/{id}/notes/{note_id}/move.

    interaction_id: identifier of the drag-and-drop interaction that produced
    the move. Repeated moves with the same id are applied once.
    """

    target_parent_id: Optional[str] = Field(default=None, description="New parent id; null for root")
    target_index: int = Field(default=0, description="Index in the destination list (clamped)")
    interaction_id: Optional[str] = Field(default=None, max_length=128)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class Breadcrumb(BaseModel):
    id: str
    title: str


class NoteDetailResponse(BaseModel):
    """A single note with its ancestor path (root first)."""

    note: Note
    breadcrumbs: List[Breadcrumb] = Field(default_factory=list)
    depth: int = Field(description="0 for root notes")


class MoveResponse(BaseModel):
    """Result of a move; rejected moves are reported, not raised."""

    moved: bool
    outcome: str = Field(description="moved, target_not_found, cycle, duplicate, in_flight")
    note: Optional[Note] = None


class NoteSummary(BaseModel):
    """Flat view of a note used by filter results."""

    id: str
    title: str
    depth: int
    detail: Optional[str] = Field(default=None, description="Value of the filtered attribute")


class FilterResponse(BaseModel):
    filter: FilterType
    count: int
    notes: List[NoteSummary]


class SearchResult(BaseModel):
    id: str
    content: str = Field(description="Matching content, cut around the match when long")
    path: List[str] = Field(description="Contents from the root note down to the match")


class SearchResponse(BaseModel):
    term: str
    results: List[SearchResult]


class OutlineResponse(BaseModel):
    """Expanded-node set for an outline level."""

    level: int
    expanded_ids: List[str]
