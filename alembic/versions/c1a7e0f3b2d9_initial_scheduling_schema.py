"""initial_scheduling_schema

Revision ID: c1a7e0f3b2d9
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "c1a7e0f3b2d9"
down_revision: str | None = None
branch_labels = None
depends_on = None

_user_role = sa.Enum("ADMIN", "MANAGER", "WORKER", "VIEWER", name="userrole")
_notification_type = sa.Enum(
    "INFO", "WARNING", "ACTION_REQUIRED", "RESOURCE_CONFLICT", "TASK_OVERDUE",
    name="notificationtype",
)
_project_status = sa.Enum(
    "PLANNED", "ACTIVE", "ON_HOLD", "COMPLETED", "CANCELLED", name="projectstatus"
)
_quote_line_type = sa.Enum("LABOUR", "MATERIAL", "EQUIPMENT", "OTHER", name="quotelinetype")
_schedule_status = sa.Enum("DRAFT", "ACTIVE", name="schedulestatus")
_schedule_item_status = sa.Enum(
    "DRAFT", "ACTIVE", "IN_PROGRESS", "ON_HOLD", "DONE", name="scheduleitemstatus"
)


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), server_default="0", nullable=False),
    ]


def _append_only_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # ── Core ──────────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        *_base_columns(),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("role", _user_role, nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default="1", nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "notifications",
        *_append_only_columns(),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", _notification_type, nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(1000)),
        sa.Column("is_read", sa.Boolean(), server_default="0", nullable=False),
        sa.Column("project_id", sa.Uuid()),
        sa.Column("schedule_item_id", sa.Uuid()),
    )
    op.create_index("ix_notifications_user_id_is_read", "notifications", ["user_id", "is_read"])
    op.create_index("ix_notifications_user_id_project_id", "notifications", ["user_id", "project_id"])

    # ── Workforce ─────────────────────────────────────────────────────────────
    op.create_table(
        "workers",
        *_base_columns(),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("is_active", sa.Boolean(), server_default="1", nullable=False),
    )
    op.create_index("ix_workers_user_id", "workers", ["user_id"], unique=True)

    # ── Projects & quotes ─────────────────────────────────────────────────────
    op.create_table(
        "projects",
        *_base_columns(),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("project_number", sa.String(50), nullable=False),
        sa.Column("status", _project_status, nullable=False),
        sa.Column("assigned_to_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL")),
    )
    op.create_index("ix_projects_status", "projects", ["status"])
    op.create_index("ix_projects_project_number", "projects", ["project_number"], unique=True)
    op.create_index("ix_projects_assigned_to_id", "projects", ["assigned_to_id"])

    op.create_table(
        "quotes",
        *_base_columns(),
        sa.Column("project_id", sa.Uuid(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("reference", sa.String(100), nullable=False),
    )
    op.create_index("ix_quotes_project_id", "quotes", ["project_id"], unique=True)

    op.create_table(
        "quote_lines",
        *_base_columns(),
        sa.Column("quote_id", sa.Uuid(), sa.ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("unit", sa.String(50)),
        sa.Column("quantity", sa.Float()),
        sa.Column("item_type", _quote_line_type, nullable=False),
        sa.Column("section", sa.String(100)),
        sa.Column("meta", sa.JSON().with_variant(postgresql.JSONB(), "postgresql")),
    )
    op.create_index("ix_quote_lines_quote_id", "quote_lines", ["quote_id"])

    # ── Scheduling ────────────────────────────────────────────────────────────
    op.create_table(
        "task_templates",
        *_base_columns(),
        sa.Column("key", sa.String(64), nullable=False),
        sa.Column("label", sa.String(255), nullable=False),
        sa.Column("hours_per_unit", sa.Float(), nullable=False),
        sa.Column("complexity_factor", sa.Float(), nullable=False),
        sa.Column("unit_label", sa.String(50), nullable=False),
    )
    op.create_index("ix_task_templates_key", "task_templates", ["key"], unique=True)

    op.create_table(
        "schedules",
        *_base_columns(),
        sa.Column("project_id", sa.Uuid(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("note", sa.Text()),
        sa.Column("status", _schedule_status, nullable=False),
        sa.Column("created_by", sa.Uuid()),
        sa.Column("updated_by", sa.Uuid()),
    )
    op.create_index("ix_schedules_project_id", "schedules", ["project_id"], unique=True)

    op.create_table(
        "schedule_items",
        *_base_columns(),
        sa.Column("schedule_id", sa.Uuid(), sa.ForeignKey("schedules.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("unit", sa.String(50)),
        sa.Column("quantity", sa.Float()),
        sa.Column("template_key", sa.String(64)),
        sa.Column("planned_start", sa.DateTime()),
        sa.Column("planned_end", sa.DateTime()),
        sa.Column("status", _schedule_item_status, nullable=False),
        sa.Column("estimated_hours", sa.Float(), nullable=False),
        sa.Column("percent_complete", sa.Integer(), nullable=False),
        sa.Column("has_conflict", sa.Boolean(), server_default="0", nullable=False),
        sa.Column("conflict_note", sa.Text()),
        sa.Column("note", sa.Text()),
        sa.Column("quote_line_id", sa.Uuid(), sa.ForeignKey("quote_lines.id", ondelete="SET NULL")),
        sa.Column("completed_at", sa.DateTime()),
        sa.Column("overdue_notified_at", sa.DateTime()),
        sa.Column("archived_at", sa.DateTime()),
    )
    op.create_index("ix_schedule_items_schedule_id_position", "schedule_items", ["schedule_id", "position"])
    op.create_index("ix_schedule_items_planned_range", "schedule_items", ["planned_start", "planned_end"])
    op.create_index("ix_schedule_items_status", "schedule_items", ["status"])

    op.create_table(
        "schedule_item_assignments",
        *_append_only_columns(),
        sa.Column("item_id", sa.Uuid(), sa.ForeignKey("schedule_items.id", ondelete="CASCADE"), nullable=False),
        sa.Column("worker_id", sa.Uuid(), sa.ForeignKey("workers.id"), nullable=False),
        sa.Column("hours_per_day", sa.Float(), nullable=False),
        sa.UniqueConstraint("item_id", "worker_id", name="uq_schedule_item_assignments_item_worker"),
    )
    op.create_index(
        "ix_schedule_item_assignments_worker_id", "schedule_item_assignments", ["worker_id"]
    )

    # No ON DELETE: a task with progress history cannot be hard-deleted
    op.create_table(
        "progress_reports",
        *_append_only_columns(),
        sa.Column("item_id", sa.Uuid(), sa.ForeignKey("schedule_items.id"), nullable=False),
        sa.Column("worker_id", sa.Uuid(), sa.ForeignKey("workers.id"), nullable=False),
        sa.Column("percent", sa.Integer(), nullable=False),
        sa.Column("note", sa.Text()),
    )
    op.create_index(
        "ix_progress_reports_item_id_created_at", "progress_reports", ["item_id", "created_at"]
    )


def downgrade() -> None:
    op.drop_table("progress_reports")
    op.drop_table("schedule_item_assignments")
    op.drop_table("schedule_items")
    op.drop_table("schedules")
    op.drop_table("task_templates")
    op.drop_table("quote_lines")
    op.drop_table("quotes")
    op.drop_table("projects")
    op.drop_table("workers")
    op.drop_table("notifications")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in (
        _schedule_item_status,
        _schedule_status,
        _quote_line_type,
        _project_status,
        _notification_type,
        _user_role,
    ):
        enum_type.drop(bind, checkfirst=True)
