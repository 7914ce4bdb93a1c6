"""Create projects and notes tables

Revision ID: 001
Revises: None
Create Date: 2024-06-01 00:00:00.000000+00:00

What:  Creates `projects` (named containers, soft-deletable into the trash)
       and `notes` (one row per note of a project's forest).
How:   Portable column types only (string ids, JSON images), so the same
       schema works on PostgreSQL and SQLite.

Rollback: downgrade() drops both tables (destructive, all data lost).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "projects",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column(
            "name",
            sa.String(255),
            nullable=False,
            comment="Display name, unique among live projects",
        ),
        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column(
            "note_count",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
            comment="Root notes at last save",
        ),
        sa.Column(
            "last_level",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("1"),
            comment="Last outline expansion level",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "deleted_at",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="Set when the project is in the trash",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    # Project lists are ordered by most recent update
    op.create_index("idx_projects_updated_at", "projects", [sa.text("updated_at DESC")])
    op.create_index("idx_projects_name", "projects", ["name"])

    op.create_table(
        "notes",
        sa.Column("project_id", sa.String(36), nullable=False),
        sa.Column(
            "id",
            sa.String(64),
            nullable=False,
            comment="Client-visible note id, unique within the project",
        ),
        sa.Column(
            "parent_id",
            sa.String(64),
            nullable=True,
            comment="Parent note id within the same project; NULL for root notes",
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_discussion", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("time_set", sa.String(64), nullable=True),
        sa.Column("youtube_url", sa.Text(), nullable=True),
        sa.Column("url", sa.Text(), nullable=True),
        sa.Column("url_display_text", sa.Text(), nullable=True),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("project_id", "id"),
    )
    # Loading a forest reads all rows of a project ordered by position
    op.create_index(
        "idx_notes_project_parent_position",
        "notes",
        ["project_id", "parent_id", "position"],
    )


def downgrade() -> None:
    op.drop_index("idx_notes_project_parent_position", table_name="notes")
    op.drop_table("notes")
    op.drop_index("idx_projects_name", table_name="projects")
    op.drop_index("idx_projects_updated_at", table_name="projects")
    op.drop_table("projects")
