"""Native enums for all domain models."""

import enum


# ── Core ─────────────────────────────────────────────────────────────────────


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    WORKER = "worker"
    VIEWER = "viewer"


class NotificationType(str, enum.Enum):
    INFO = "info"
    WARNING = "warning"
    ACTION_REQUIRED = "action_required"
    RESOURCE_CONFLICT = "resource_conflict"
    TASK_OVERDUE = "task_overdue"


# ── Projects & quotes ────────────────────────────────────────────────────────


class ProjectStatus(str, enum.Enum):
    PLANNED = "planned"
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class QuoteLineType(str, enum.Enum):
    LABOUR = "labour"
    MATERIAL = "material"
    EQUIPMENT = "equipment"
    OTHER = "other"


# ── Scheduling ───────────────────────────────────────────────────────────────


class ScheduleStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"


class ScheduleItemStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    DONE = "done"
