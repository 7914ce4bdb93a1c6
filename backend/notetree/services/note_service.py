"""
NoteTree Backend — Note Service (Workspace Orchestrator)
========================================================

What:  Runs note-level operations against the forest of one project and keeps
       the database in step with it.
How:   Holds one NoteTreeStore per open project (a "workspace"), loaded lazily
       through ProjectService. Operations on a project are serialised with an
       asyncio.Lock; any mutation that changed the forest is written through
       before the lock is released (last write wins).
Who:   Called by the notes and projects route handlers.

Flow (PATCH /api/projects/{id}/notes/{note_id}):
    ┌──────────┐    ┌─────────────┐    ┌──────────────┐    ┌──────────┐
    │  Route   │───▶│  Workspace  │───▶│ NoteTreeStore│───▶│  Save    │
    │          │    │  (lock)     │    │  (mutate)    │    │  (DB)    │
    └──────────┘    └─────────────┘    └──────────────┘    └──────────┘

    On failure:
    - unknown note ids        → NotFoundError (404)
    - rejected moves          → reported in MoveResponse, nothing saved
    - database failure on save → workspace evicted, DatabaseError propagates
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from notetree.exceptions import DatabaseError, NotFoundError, ValidationError
from notetree.models.project import Project
from notetree.schemas.note import (
    Breadcrumb,
    FilterResponse,
    FilterType,
    MoveRequest,
    MoveResponse,
    Note,
    NoteCreate,
    NoteDetailResponse,
    NotesData,
    NoteSummary,
    NoteUpdate,
    OutlineResponse,
    SearchResponse,
)
from notetree.schemas.project import ProjectCreate
from notetree.services import tree_ops
from notetree.services.project_service import project_service
from notetree.services.tree_store import MoveOutcome, NoteTreeStore
from notetree.services.view_state import ExpansionState

logger = logging.getLogger(__name__)

OUTLINE_MODES = ("all", "none")


class Workspace:
    """An open project: its store, its lock and whether it has unsaved changes."""

    def __init__(self, project_id: str, store: NoteTreeStore):
        self.project_id = project_id
        self.store = store
        self.lock = asyncio.Lock()
        self.dirty = False
        store.add_listener(self._on_change)

    def _on_change(self, event: str, note_id: Optional[str]) -> None:
        logger.debug("Project %s changed: %s %s", self.project_id, event, note_id or "")
        self.dirty = True


class NoteService:
    """
    Note operations for every open project.

    Unlike the other services this one is stateful: it caches workspaces in
    process memory. Run a single worker process, or evict on every request,
    when more than one process serves the same database.
    """

    def __init__(self):
        self._workspaces: Dict[str, Workspace] = {}

    @property
    def open_workspaces(self) -> int:
        return len(self._workspaces)

    def evict(self, project_id: str) -> None:
        """Drop the cached forest of a project; the next access reloads it."""
        if self._workspaces.pop(project_id, None) is not None:
            logger.debug("Workspace %s evicted", project_id)

    def clear(self) -> None:
        self._workspaces.clear()

    async def _workspace(self, db: AsyncSession, project_id: str) -> Workspace:
        workspace = self._workspaces.get(project_id)
        if workspace is not None:
            return workspace

        notes = await project_service.load_notes(db, project_id)
        workspace = Workspace(project_id, NoteTreeStore(notes))
        logger.info("Workspace %s opened with %d notes", project_id, workspace.store.count())
        return self._workspaces.setdefault(project_id, workspace)

    async def _write_through(self, db: AsyncSession, workspace: Workspace) -> None:
        if not workspace.dirty:
            return
        try:
            await project_service.save_notes(db, workspace.project_id, workspace.store.notes)
        except DatabaseError:
            # Memory is ahead of the database now; reload on next access
            self.evict(workspace.project_id)
            raise
        workspace.dirty = False

    @staticmethod
    def _require(workspace: Workspace, note_id: str) -> Note:
        note, _ = workspace.store.find(note_id)
        if note is None:
            raise NotFoundError(
                resource="note",
                resource_id=note_id,
                context={"project_id": workspace.project_id},
            )
        return note

    # ── Projects ──────────────────────────────────────────────────────────

    async def create_project(self, db: AsyncSession, body: ProjectCreate) -> Project:
        """
        Create a project from an optional initial forest.

        The forest goes through a NoteTreeStore first, so duplicate ids are
        rejected and positions are cleaned before anything is written.
        """
        store = NoteTreeStore(body.notes)
        project = await project_service.create_project(
            db,
            name=body.name,
            description=body.description,
            notes=store.notes,
        )
        self._workspaces[project.id] = Workspace(project.id, store)
        return project

    # ── Read side ─────────────────────────────────────────────────────────

    async def get_tree(self, db: AsyncSession, project_id: str) -> List[Note]:
        """Copy of the project's root notes with their subtrees."""
        workspace = await self._workspace(db, project_id)
        async with workspace.lock:
            return tree_ops.clone_forest(workspace.store.notes)

    async def export_notes(self, db: AsyncSession, project_id: str) -> NotesData:
        workspace = await self._workspace(db, project_id)
        async with workspace.lock:
            return workspace.store.export_notes()

    async def get_note(self, db: AsyncSession, project_id: str, note_id: str) -> NoteDetailResponse:
        workspace = await self._workspace(db, project_id)
        async with workspace.lock:
            note, path = workspace.store.find(note_id)
            if note is None:
                raise NotFoundError(
                    resource="note",
                    resource_id=note_id,
                    context={"project_id": project_id},
                )
            return NoteDetailResponse(
                note=tree_ops.clone_note(note),
                breadcrumbs=[Breadcrumb(id=ancestor.id, title=ancestor.title) for ancestor in path],
                depth=len(path),
            )

    async def filter_notes(
        self,
        db: AsyncSession,
        project_id: str,
        filter_type: FilterType,
    ) -> FilterResponse:
        workspace = await self._workspace(db, project_id)
        async with workspace.lock:
            matches = workspace.store.filter(filter_type)
            return FilterResponse(
                filter=filter_type,
                count=len(matches),
                notes=[
                    NoteSummary(
                        id=note.id,
                        title=note.title,
                        depth=depth,
                        detail=tree_ops.filter_detail(note, filter_type),
                    )
                    for note, depth in matches
                ],
            )

    async def search_notes(self, db: AsyncSession, project_id: str, term: str) -> SearchResponse:
        workspace = await self._workspace(db, project_id)
        async with workspace.lock:
            return SearchResponse(term=term, results=workspace.store.search(term))

    async def outline(
        self,
        db: AsyncSession,
        project_id: str,
        level: Optional[int] = None,
        mode: Optional[str] = None,
    ) -> OutlineResponse:
        """
        Expanded ids for an outline level, or for mode "all" / "none".

        The resulting level is remembered on the project as its last level.
        """
        if mode is not None and mode not in OUTLINE_MODES:
            raise ValidationError(
                message=f"Unknown outline mode '{mode}'. Expected one of: {', '.join(OUTLINE_MODES)}",
                field="mode",
            )

        workspace = await self._workspace(db, project_id)
        async with workspace.lock:
            state = ExpansionState(workspace.store)
            if mode == "all":
                state.expand_all()
            elif mode == "none":
                state.collapse_all()
            else:
                state.expand_to_level(1 if level is None else level)
            expanded = state.expanded_ids()

        await project_service.update_project(db, project_id, last_level=state.current_level)
        return OutlineResponse(level=state.current_level, expanded_ids=expanded)

    # ── Mutations ─────────────────────────────────────────────────────────

    async def add_note(self, db: AsyncSession, project_id: str, body: NoteCreate) -> Note:
        workspace = await self._workspace(db, project_id)
        async with workspace.lock:
            note = workspace.store.add(
                body.parent_id,
                body.content,
                is_discussion=body.is_discussion,
                time_set=body.time_set,
                youtube_url=body.youtube_url,
                url=body.url,
                url_display_text=body.url_display_text,
                images=body.images,
            )
            if note is None:
                raise NotFoundError(
                    resource="note",
                    resource_id=body.parent_id,
                    context={"project_id": project_id, "role": "parent"},
                )
            await self._write_through(db, workspace)
            logger.info("Note %s added to project %s", note.id, project_id)
            return tree_ops.clone_note(note)

    async def update_note(
        self,
        db: AsyncSession,
        project_id: str,
        note_id: str,
        body: NoteUpdate,
    ) -> Note:
        """
        Apply the fields present in `body` to a note.

        Explicit nulls for content / is_discussion are ignored; omitted or
        empty children keep the existing subtree.
        """
        workspace = await self._workspace(db, project_id)
        async with workspace.lock:
            existing = self._require(workspace, note_id)

            changes = body.model_dump(exclude_unset=True, exclude={"children", "images"})
            for key in ("content", "is_discussion"):
                if changes.get(key, "") is None:
                    changes.pop(key)
            if body.images is not None:
                changes["images"] = body.images
            changes["children"] = body.children or []

            workspace.store.update(existing.model_copy(update=changes))
            await self._write_through(db, workspace)
            return tree_ops.clone_note(self._require(workspace, note_id))

    async def delete_note(self, db: AsyncSession, project_id: str, note_id: str) -> None:
        workspace = await self._workspace(db, project_id)
        async with workspace.lock:
            if not workspace.store.delete(note_id):
                raise NotFoundError(
                    resource="note",
                    resource_id=note_id,
                    context={"project_id": project_id},
                )
            await self._write_through(db, workspace)
            logger.info("Note %s deleted from project %s", note_id, project_id)

    async def move_note(
        self,
        db: AsyncSession,
        project_id: str,
        note_id: str,
        body: MoveRequest,
    ) -> MoveResponse:
        workspace = await self._workspace(db, project_id)
        async with workspace.lock:
            outcome = workspace.store.move(
                note_id,
                body.target_parent_id,
                body.target_index,
                interaction_id=body.interaction_id,
            )
            if outcome is MoveOutcome.NOT_FOUND:
                raise NotFoundError(
                    resource="note",
                    resource_id=note_id,
                    context={"project_id": project_id},
                )
            if not outcome.moved:
                return MoveResponse(moved=False, outcome=outcome.value)

            await self._write_through(db, workspace)
            note, _ = workspace.store.find(note_id)
            return MoveResponse(moved=True, outcome=outcome.value, note=tree_ops.clone_note(note))

    async def import_notes(self, db: AsyncSession, project_id: str, data: Any) -> NotesData:
        """
        Replace the project's forest with `data` ({"notes": [...]} or NotesData).

        Invalid payloads raise ValidationError and leave the forest unchanged.
        """
        workspace = await self._workspace(db, project_id)
        async with workspace.lock:
            workspace.store.import_notes(data)
            await self._write_through(db, workspace)
            logger.info("Imported %d notes into project %s", workspace.store.count(), project_id)
            return workspace.store.export_notes()


# ── Singleton Instance ────────────────────────────────────────────────────
note_service = NoteService()
