"""
NoteTree Backend — Project SQLAlchemy Model
===========================================

What:  ORM model for the `projects` table. A project is a named container for
       one forest of notes.
Who:   ProjectService (CRUD, trash) and Alembic.

Table design:
    - id: UUID string generated in Python (portable across PostgreSQL and SQLite)
    - name: unique among live projects; ProjectService picks "Name (n)" on collision
    - note_count: number of root notes at the last save (shown in project lists)
    - last_level: last outline expansion level the client used
    - deleted_at: NULL for live projects, set when the project is moved to trash
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from notetree.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Project(Base):
    """
    Lifecycle:
        1. Created with an initial (possibly empty) forest
        2. Renamed / forest replaced any number of times (updated_at bumps)
        3. Soft-deleted into the trash (deleted_at set, notes kept)
        4. Restored (deleted_at cleared) or purged (row removed)
    """

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Display name, unique among live projects",
    )

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        server_default=text("''"),
    )

    note_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
        comment="Root notes at last save",
    )

    last_level: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        server_default=text("1"),
        comment="Last outline expansion level",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
        comment="Set when the project is in the trash",
    )

    __table_args__ = (
        Index("idx_projects_updated_at", updated_at.desc()),
        Index("idx_projects_name", "name"),
    )

    @property
    def is_trashed(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, name='{self.name}', deleted={self.is_trashed})>"
