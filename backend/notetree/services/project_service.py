"""
NoteTree Backend — Project Service
==================================

What:  Persistence adapter for projects and their forests: project CRUD,
       trash (soft delete / restore / purge), and whole-forest load/save.
How:   Async SQLAlchemy against the `projects` and `notes` tables. A forest is
       saved by deleting the project's rows and bulk-inserting the flattened
       forest in batches (last write wins).
Who:   Project routes, and NoteService for loading/writing through forests.

Errors:
    NotFoundError: unknown project, or trashed project where a live one is needed
    ValidationError: no free project name could be found
    DatabaseError: any SQLAlchemy failure (details logged, not returned)
"""

import logging
import time
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Optional

from sqlalchemy import delete, desc, func, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from notetree.config import settings
from notetree.exceptions import DatabaseError, NotFoundError, ValidationError
from notetree.models.note import NoteRecord
from notetree.models.project import Project
from notetree.schemas.note import Note
from notetree.services.hierarchy import build_note_hierarchy, flatten_note_hierarchy

logger = logging.getLogger(__name__)

# Plain " (n)" suffixes tried before falling back to timestamped names
NUMBERED_SUFFIXES = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def candidate_names(base: str, attempts: int) -> Iterator[str]:
    """
    Names tried for a new project, in order:

        "Base", "Base (1)" .. "Base (5)", "Base (123456-1)", "Base (123456-2)", ...

    where 123456 is the last six digits of the current time in milliseconds.
    """
    stamp = str(int(time.time() * 1000))[-6:]
    for attempt in range(attempts):
        if attempt == 0:
            yield base
        elif attempt <= NUMBERED_SUFFIXES:
            yield f"{base} ({attempt})"
        else:
            yield f"{base} ({stamp}-{attempt - NUMBERED_SUFFIXES})"


class ProjectService:
    """Stateless; every method receives the request's session."""

    # ── Queries ───────────────────────────────────────────────────────────

    async def list_projects(self, db: AsyncSession) -> List[Project]:
        """Live projects, most recently updated first."""
        try:
            result = await db.execute(
                select(Project)
                .where(Project.deleted_at.is_(None))
                .order_by(desc(Project.updated_at))
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing projects: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve projects. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def list_trash(self, db: AsyncSession) -> List[Project]:
        """Trashed projects, most recently deleted first."""
        try:
            result = await db.execute(
                select(Project)
                .where(Project.deleted_at.is_not(None))
                .order_by(desc(Project.deleted_at))
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing trash: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve trashed projects. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def get_project(
        self,
        db: AsyncSession,
        project_id: str,
        trashed: bool = False,
    ) -> Project:
        """
        Fetch a live project (or, with trashed=True, a trashed one).

        Raises:
            NotFoundError: no project with this id in the requested state
        """
        try:
            project = await db.get(Project, project_id)
        except SQLAlchemyError as e:
            logger.error("Database error fetching project %s: %s", project_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the project. Please try again.",
                context={"project_id": project_id},
            )

        if project is None or project.is_trashed != trashed:
            raise NotFoundError(resource="project", resource_id=project_id)
        return project

    async def _name_taken(
        self,
        db: AsyncSession,
        name: str,
        exclude_id: Optional[str] = None,
    ) -> bool:
        query = select(func.count(Project.id)).where(
            Project.name == name,
            Project.deleted_at.is_(None),
        )
        if exclude_id is not None:
            query = query.where(Project.id != exclude_id)
        result = await db.execute(query)
        return (result.scalar() or 0) > 0

    async def _free_name(
        self,
        db: AsyncSession,
        base: str,
        exclude_id: Optional[str] = None,
    ) -> str:
        for name in candidate_names(base, settings.project_name_max_attempts):
            if not await self._name_taken(db, name, exclude_id):
                return name
            logger.debug("Project name %r already in use", name)
        raise ValidationError(
            message=f"Could not find a free project name based on '{base}'",
            field="name",
            context={"attempts": settings.project_name_max_attempts},
        )

    # ── Project CRUD ──────────────────────────────────────────────────────

    async def create_project(
        self,
        db: AsyncSession,
        name: Optional[str],
        description: str = "",
        notes: Iterable[Note] = (),
    ) -> Project:
        """
        Create a project with an initial forest.

        A name already used by a live project gets a " (n)" suffix. The forest
        is expected to be clean already (NoteService runs it through a store).
        """
        forest = list(notes)
        try:
            chosen = await self._free_name(db, name or settings.default_project_name)
            project = Project(
                name=chosen,
                description=description,
                note_count=len(forest),
            )
            db.add(project)
            await db.flush()
            logger.info("Project created: %s (%s)", project.id, chosen)

            if forest:
                await self.save_notes(db, project.id, forest, project=project)
            return project
        except (ValidationError, DatabaseError):
            raise
        except SQLAlchemyError as e:
            logger.error("Database error creating project: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the project. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def update_project(
        self,
        db: AsyncSession,
        project_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        last_level: Optional[int] = None,
    ) -> Project:
        """
        Rename / describe a live project or record its last outline level.

        Raises:
            ValidationError: the new name is used by another live project
        """
        project = await self.get_project(db, project_id)
        try:
            if name is not None:
                name = name.strip() or settings.default_project_name
                if name != project.name and await self._name_taken(db, name, exclude_id=project_id):
                    raise ValidationError(
                        message=f"A project named '{name}' already exists",
                        field="name",
                    )
                project.name = name
            if description is not None:
                project.description = description
            if last_level is not None:
                project.last_level = last_level
            project.updated_at = _utcnow()
            await db.flush()
            return project
        except ValidationError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error updating project %s: %s", project_id, str(e))
            raise DatabaseError(
                message="Could not update the project. Please try again.",
                context={"project_id": project_id},
            )

    # ── Forest Persistence ────────────────────────────────────────────────

    async def load_notes(self, db: AsyncSession, project_id: str) -> List[Note]:
        """Read a live project's rows and rebuild its forest."""
        await self.get_project(db, project_id)
        try:
            result = await db.execute(
                select(NoteRecord.__table__)
                .where(NoteRecord.project_id == project_id)
                .order_by(NoteRecord.position)
            )
            rows = result.mappings().all()
        except SQLAlchemyError as e:
            logger.error("Database error loading notes of %s: %s", project_id, str(e))
            raise DatabaseError(
                message="Could not load the project's notes. Please try again.",
                context={"project_id": project_id},
            )

        forest = build_note_hierarchy(rows)
        logger.debug("Loaded %d note rows for project %s", len(rows), project_id)
        return forest

    async def save_notes(
        self,
        db: AsyncSession,
        project_id: str,
        notes: Iterable[Note],
        project: Optional[Project] = None,
    ) -> int:
        """
        Replace the stored forest of a project.

        How:
            1. DELETE every row of the project
            2. INSERT the flattened forest in batches of settings.save_batch_size
            3. Update note_count and updated_at on the project

        Returns:
            Number of note rows written
        """
        if project is None:
            project = await self.get_project(db, project_id)
        forest = list(notes)
        rows = flatten_note_hierarchy(forest, project_id)
        batch_size = settings.save_batch_size

        try:
            await db.execute(
                delete(NoteRecord)
                .where(NoteRecord.project_id == project_id)
                .execution_options(synchronize_session=False)
            )
            for start in range(0, len(rows), batch_size):
                batch = rows[start:start + batch_size]
                await db.execute(insert(NoteRecord), batch)
                logger.debug(
                    "Inserted batch %d/%d (%d rows) for project %s",
                    start // batch_size + 1,
                    (len(rows) + batch_size - 1) // batch_size,
                    len(batch),
                    project_id,
                )

            project.note_count = len(forest)
            project.updated_at = _utcnow()
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error saving notes of %s: %s", project_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save your notes. Please try again.",
                context={"project_id": project_id, "rows": len(rows)},
            )

        logger.info("Saved %d notes for project %s", len(rows), project_id)
        return len(rows)

    # ── Trash ─────────────────────────────────────────────────────────────

    async def soft_delete(self, db: AsyncSession, project_id: str) -> Project:
        """Move a live project to the trash. Its notes are kept for restore."""
        project = await self.get_project(db, project_id)
        try:
            now = _utcnow()
            project.deleted_at = now
            project.updated_at = now
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error trashing project %s: %s", project_id, str(e))
            raise DatabaseError(
                message="Could not delete the project. Please try again.",
                context={"project_id": project_id},
            )
        logger.info("Project %s moved to trash", project_id)
        return project

    async def restore(self, db: AsyncSession, project_id: str) -> Project:
        """
        Bring a trashed project back.

        If its name was taken by another project meanwhile, a suffixed name is used.
        """
        project = await self.get_project(db, project_id, trashed=True)
        try:
            project.name = await self._free_name(db, project.name, exclude_id=project_id)
            project.deleted_at = None
            project.updated_at = _utcnow()
            await db.flush()
        except ValidationError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error restoring project %s: %s", project_id, str(e))
            raise DatabaseError(
                message="Could not restore the project. Please try again.",
                context={"project_id": project_id},
            )
        logger.info("Project %s restored as %r", project_id, project.name)
        return project

    async def purge(self, db: AsyncSession, project_id: str) -> None:
        """Permanently delete a trashed project and all of its notes."""
        project = await self.get_project(db, project_id, trashed=True)
        try:
            await db.execute(
                delete(NoteRecord)
                .where(NoteRecord.project_id == project_id)
                .execution_options(synchronize_session=False)
            )
            await db.delete(project)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error purging project %s: %s", project_id, str(e))
            raise DatabaseError(
                message="Could not permanently delete the project. Please try again.",
                context={"project_id": project_id},
            )
        logger.info("Project %s permanently deleted", project_id)


project_service = ProjectService()
