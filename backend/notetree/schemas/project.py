"""
NoteTree Backend — Project Schemas
==================================

What:  Request/response models for the project and trash endpoints, plus the
       error and health payloads shared by every router.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from notetree.schemas.note import Note, NotesData


class ProjectCreate(BaseModel):
    """
    Body of POST /api/projects.

    An empty or missing name falls back to settings.default_project_name.
    A name already used by a live project gets a " (n)" suffix.
    """

    name: Optional[str] = Field(default=None, max_length=200)
    description: str = Field(default="", max_length=10_000)
    notes: List[Note] = Field(default_factory=list, description="Initial forest")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class ProjectUpdate(BaseModel):
    """Body of PATCH /api/projects/{id}; only supplied fields change."""

    name: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=10_000)
    last_level: Optional[int] = Field(default=None, ge=0, le=100)


class ProjectSummary(BaseModel):
    """Project metadata as shown in project lists."""

    id: str
    name: str
    description: str
    note_count: int
    last_level: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProjectResponse(ProjectSummary):
    """Project metadata together with its whole forest."""

    data: NotesData


class TrashedProject(ProjectSummary):
    deleted_at: datetime


class ProjectListResponse(BaseModel):
    projects: List[ProjectSummary]
    total_count: int


class TrashListResponse(BaseModel):
    projects: List[TrashedProject]
    total_count: int


# ══════════════════════════════════════════════════════════════════════════
# Shared Payloads
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Error body returned by every exception handler.

    Example:
        {
            "error": "validation_error",
            "message": "Invalid notes format. Expected { notes: [] }",
            "details": {"field": "notes"},
            "request_id": "3f2a9c1e"
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="healthy or unhealthy")
    version: str
    database: str = Field(description="connected or disconnected")
    open_workspaces: int = Field(description="Projects currently held in memory")
    uptime_seconds: float
