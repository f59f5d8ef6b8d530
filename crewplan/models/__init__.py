"""SQLAlchemy models package. Imports all models so Base.metadata is populated."""

from crewplan.models.base import AuditMixin, BaseModel, ModelMixin, TimestampedModel
from crewplan.models.core import Notification, User
from crewplan.models.enums import (
    NotificationType,
    ProjectStatus,
    QuoteLineType,
    ScheduleItemStatus,
    ScheduleStatus,
    UserRole,
)
from crewplan.models.projects import Project, Quote, QuoteLine
from crewplan.models.scheduling import (
    ProgressReport,
    Schedule,
    ScheduleItem,
    ScheduleItemAssignment,
    TaskTemplate,
)
from crewplan.models.workforce import Worker

__all__ = [
    "AuditMixin",
    "BaseModel",
    "ModelMixin",
    "Notification",
    "NotificationType",
    "ProgressReport",
    "Project",
    "ProjectStatus",
    "Quote",
    "QuoteLine",
    "QuoteLineType",
    "Schedule",
    "ScheduleItem",
    "ScheduleItemAssignment",
    "ScheduleItemStatus",
    "ScheduleStatus",
    "TaskTemplate",
    "TimestampedModel",
    "User",
    "Worker",
]
