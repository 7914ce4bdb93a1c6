"""
NoteTree Backend — Notes Route Handlers
=======================================

What:  Note-level endpoints of a project: export/import of the whole forest,
       add / read / update / delete / move of single notes, and the filter,
       search and outline views.
How:   Thin handlers; every call is delegated to NoteService, which owns the
       in-memory forest and writes it through to the database.
Who:   Called by the frontend tree view and by API clients doing bulk import.

Caching Strategy:
    The forest changes on every edit, so responses carry no cache headers.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from notetree.database import get_db_session
from notetree.schemas.note import (
    FilterResponse,
    FilterType,
    MoveRequest,
    MoveResponse,
    Note,
    NoteCreate,
    NoteDetailResponse,
    NotesData,
    NoteUpdate,
    OutlineResponse,
    SearchResponse,
)
from notetree.schemas.project import ErrorResponse
from notetree.services.note_service import note_service

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/api/projects/{project_id}", tags=["Notes"])

_NOT_FOUND = {404: {"description": "Project or note not found", "model": ErrorResponse}}


# ═══════════════════════════════════════════════════════════════════════════
# Whole Forest
# ═══════════════════════════════════════════════════════════════════════════


@router.get(
    "/notes",
    response_model=NotesData,
    responses=_NOT_FOUND,
    summary="Export the project's notes",
    description="Returns the whole forest as { notes: [...] }, ordered by position.",
)
async def export_notes(
    project_id: str,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> NotesData:
    data = await note_service.export_notes(db, project_id)
    response.headers["Cache-Control"] = "no-store"
    return data


@router.put(
    "/notes",
    response_model=NotesData,
    responses={
        400: {"description": "Malformed payload or duplicate ids", "model": ErrorResponse},
        **_NOT_FOUND,
    },
    summary="Import notes, replacing the project's forest",
)
async def import_notes(
    project_id: str,
    data: dict,
    db: AsyncSession = Depends(get_db_session),
) -> NotesData:
    """
    Replace the whole forest.

    The body is taken as a raw object so that a missing or non-list `notes`
    gets the same 400 error as a malformed note, and the previous forest
    stays in place on any error.
    """
    return await note_service.import_notes(db, project_id, data)


# ═══════════════════════════════════════════════════════════════════════════
# Single Notes
# ═══════════════════════════════════════════════════════════════════════════


@router.post(
    "/notes",
    response_model=Note,
    status_code=201,
    responses=_NOT_FOUND,
    summary="Add a note",
    description="Appends a note at the end of the root list or of the given parent's children.",
)
async def add_note(
    project_id: str,
    body: NoteCreate,
    db: AsyncSession = Depends(get_db_session),
) -> Note:
    return await note_service.add_note(db, project_id, body)


@router.get(
    "/notes/{note_id}",
    response_model=NoteDetailResponse,
    responses=_NOT_FOUND,
    summary="Get a note with its breadcrumbs",
)
async def get_note(
    project_id: str,
    note_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> NoteDetailResponse:
    return await note_service.get_note(db, project_id, note_id)


@router.patch(
    "/notes/{note_id}",
    response_model=Note,
    responses={
        400: {"description": "Replacement children reuse existing ids", "model": ErrorResponse},
        **_NOT_FOUND,
    },
    summary="Update a note",
)
async def update_note(
    project_id: str,
    note_id: str,
    body: NoteUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> Note:
    return await note_service.update_note(db, project_id, note_id, body)


@router.delete(
    "/notes/{note_id}",
    status_code=204,
    responses=_NOT_FOUND,
    summary="Delete a note and its subtree",
)
async def delete_note(
    project_id: str,
    note_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await note_service.delete_note(db, project_id, note_id)
    return Response(status_code=204)


@router.post(
    "/notes/{note_id}/move",
    response_model=MoveResponse,
    responses=_NOT_FOUND,
    summary="Move a note",
    description=(
        "Moves a note under a new parent (null for the root list) at the given index. "
        "Moves into the note's own subtree, to unknown targets, or repeating an "
        "already applied interaction_id are reported with moved=false."
    ),
)
async def move_note(
    project_id: str,
    note_id: str,
    body: MoveRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MoveResponse:
    return await note_service.move_note(db, project_id, note_id, body)


# ═══════════════════════════════════════════════════════════════════════════
# Views
# ═══════════════════════════════════════════════════════════════════════════


@router.get(
    "/filter",
    response_model=FilterResponse,
    responses=_NOT_FOUND,
    summary="List notes with a given attribute",
)
async def filter_notes(
    project_id: str,
    type: FilterType = Query(description="time, video, image, discussion or link"),
    db: AsyncSession = Depends(get_db_session),
) -> FilterResponse:
    return await note_service.filter_notes(db, project_id, type)


@router.get(
    "/search",
    response_model=SearchResponse,
    responses=_NOT_FOUND,
    summary="Search note contents",
)
async def search_notes(
    project_id: str,
    q: str = Query(default="", max_length=500, description="Case-insensitive search term"),
    db: AsyncSession = Depends(get_db_session),
) -> SearchResponse:
    return await note_service.search_notes(db, project_id, q)


@router.get(
    "/outline",
    response_model=OutlineResponse,
    responses={
        400: {"description": "Unknown mode", "model": ErrorResponse},
        **_NOT_FOUND,
    },
    summary="Expanded notes for an outline level",
    description="Use level=N to show N levels, or mode=all / mode=none.",
)
async def outline(
    project_id: str,
    level: Optional[int] = Query(default=None, ge=0, le=100),
    mode: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> OutlineResponse:
    return await note_service.outline(db, project_id, level=level, mode=mode)
