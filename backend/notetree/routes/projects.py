"""
NoteTree Backend — Project & Trash Route Handlers
=================================================

What:  Project CRUD (/api/projects) and the trash (/api/trash).
How:   Metadata goes through ProjectService; anything touching the forest
       goes through NoteService so the in-memory workspace stays in step.
Who:   Called by the frontend project picker and trash dialog.

Lifecycle:
    create ──▶ live ──DELETE /api/projects/{id}──▶ trashed
                 ▲                                    │
                 └──POST /api/trash/{id}/restore──────┤
                                                      └─DELETE /api/trash/{id}─▶ gone
"""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from notetree.database import get_db_session
from notetree.models.project import Project
from notetree.schemas.note import NotesData
from notetree.schemas.project import (
    ErrorResponse,
    ProjectCreate,
    ProjectListResponse,
    ProjectResponse,
    ProjectSummary,
    ProjectUpdate,
    TrashedProject,
    TrashListResponse,
)
from notetree.services.note_service import note_service
from notetree.services.project_service import project_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Projects"])

_NOT_FOUND = {404: {"description": "Project not found", "model": ErrorResponse}}


def _project_response(project: Project, data: NotesData) -> ProjectResponse:
    summary = ProjectSummary.model_validate(project)
    return ProjectResponse(**summary.model_dump(), data=data)


# ═══════════════════════════════════════════════════════════════════════════
# Projects
# ═══════════════════════════════════════════════════════════════════════════


@router.get(
    "/projects",
    response_model=ProjectListResponse,
    summary="List projects",
    description="Live projects, most recently updated first.",
)
async def list_projects(
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> ProjectListResponse:
    projects = await project_service.list_projects(db)
    response.headers["X-Total-Count"] = str(len(projects))
    return ProjectListResponse(
        projects=[ProjectSummary.model_validate(project) for project in projects],
        total_count=len(projects),
    )


@router.post(
    "/projects",
    response_model=ProjectResponse,
    status_code=201,
    responses={400: {"description": "Invalid initial notes", "model": ErrorResponse}},
    summary="Create a project",
)
async def create_project(
    body: ProjectCreate,
    db: AsyncSession = Depends(get_db_session),
) -> ProjectResponse:
    project = await note_service.create_project(db, body)
    data = await note_service.export_notes(db, project.id)
    return _project_response(project, data)


@router.get(
    "/projects/{project_id}",
    response_model=ProjectResponse,
    responses=_NOT_FOUND,
    summary="Get a project with its notes",
)
async def get_project(
    project_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> ProjectResponse:
    project = await project_service.get_project(db, project_id)
    data = await note_service.export_notes(db, project_id)
    return _project_response(project, data)


@router.patch(
    "/projects/{project_id}",
    response_model=ProjectSummary,
    responses={
        400: {"description": "Name already in use", "model": ErrorResponse},
        **_NOT_FOUND,
    },
    summary="Rename or describe a project",
)
async def update_project(
    project_id: str,
    body: ProjectUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> ProjectSummary:
    project = await project_service.update_project(
        db,
        project_id,
        name=body.name,
        description=body.description,
        last_level=body.last_level,
    )
    return ProjectSummary.model_validate(project)


@router.delete(
    "/projects/{project_id}",
    status_code=204,
    responses=_NOT_FOUND,
    summary="Move a project to the trash",
)
async def delete_project(
    project_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await project_service.soft_delete(db, project_id)
    note_service.evict(project_id)
    return Response(status_code=204)


# ═══════════════════════════════════════════════════════════════════════════
# Trash
# ═══════════════════════════════════════════════════════════════════════════


@router.get(
    "/trash",
    response_model=TrashListResponse,
    summary="List trashed projects",
)
async def list_trash(db: AsyncSession = Depends(get_db_session)) -> TrashListResponse:
    projects = await project_service.list_trash(db)
    return TrashListResponse(
        projects=[TrashedProject.model_validate(project) for project in projects],
        total_count=len(projects),
    )


@router.post(
    "/trash/{project_id}/restore",
    response_model=ProjectSummary,
    responses=_NOT_FOUND,
    summary="Restore a trashed project",
)
async def restore_project(
    project_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> ProjectSummary:
    project = await project_service.restore(db, project_id)
    return ProjectSummary.model_validate(project)


@router.delete(
    "/trash/{project_id}",
    status_code=204,
    responses=_NOT_FOUND,
    summary="Permanently delete a trashed project",
)
async def purge_project(
    project_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await project_service.purge(db, project_id)
    note_service.evict(project_id)
    return Response(status_code=204)
