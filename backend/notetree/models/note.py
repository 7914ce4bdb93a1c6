"""
NoteTree Backend — Note SQLAlchemy Model
========================================

What:  ORM model for the `notes` table: one row per note, flattened from the
       in-memory forest by services.hierarchy.
Who:   ProjectService.load_notes / save_notes and Alembic.

Table design:
    - Composite primary key (project_id, id): note ids are client-generated and
      only unique within one project's forest (importing the same export into
      two projects must not collide)
    - parent_id: id of the parent note in the same project, NULL for roots
    - position: zero-based rank among siblings
    - images: JSON list of {id, url, storage_path, position} descriptors;
      the image bytes live in external storage

Index on (project_id, parent_id, position) matches the load query, which
reads a whole project ordered by position.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from notetree.database import Base
from notetree.schemas.note import NOTE_ID_MAX_LENGTH, TIME_SET_MAX_LENGTH


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NoteRecord(Base):
    """Persistent row for a single note of a project's forest."""

    __tablename__ = "notes"

    project_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("projects.id", ondelete="CASCADE"),
        primary_key=True,
    )

    id: Mapped[str] = mapped_column(
        String(NOTE_ID_MAX_LENGTH),
        primary_key=True,
        comment="Client-visible note id, unique within the project",
    )

    parent_id: Mapped[Optional[str]] = mapped_column(
        String(NOTE_ID_MAX_LENGTH),
        nullable=True,
        comment="Parent note id within the same project; NULL for root notes",
    )

    content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    is_discussion: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    time_set: Mapped[Optional[str]] = mapped_column(String(TIME_SET_MAX_LENGTH), nullable=True)
    youtube_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    url_display_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    images: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
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

    __table_args__ = (
        Index("idx_notes_project_parent_position", "project_id", "parent_id", "position"),
    )

    def __repr__(self) -> str:
        return (
            f"<NoteRecord(project_id={self.project_id}, id={self.id}, "
            f"parent_id={self.parent_id}, position={self.position})>"
        )
