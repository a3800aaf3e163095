"""index completed tasks for the recurrence poll"""
from __future__ import annotations

from alembic import op

revision = "0002_add_completed_index"
down_revision = "0001_create_tasks"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_index(
        "ix_tasks_status_completed_at",
        "tasks",
        ["status", "completed_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_tasks_status_completed_at", table_name="tasks")
