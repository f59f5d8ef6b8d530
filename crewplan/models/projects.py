"""Project models: Project, Quote, QuoteLine."""

import uuid
from typing import Any

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from crewplan.models.base import BaseModel
from crewplan.models.enums import ProjectStatus, QuoteLineType

_JSON = JSON().with_variant(JSONB(), "postgresql")


class Project(BaseModel):
    __tablename__ = "projects"
    __table_args__ = (
        Index("ix_projects_status", "status"),
        Index("ix_projects_project_number", "project_number", unique=True),
        Index("ix_projects_assigned_to_id", "assigned_to_id"),
    )

    name: Mapped[str] = mapped_column(String(500), nullable=False)
    project_number: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[ProjectStatus] = mapped_column(
        nullable=False, default=ProjectStatus.PLANNED
    )
    # Responsible user: receives conflict and overdue alerts for this project
    assigned_to_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL")
    )

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, number={self.project_number!r})>"


class Quote(BaseModel):
    __tablename__ = "quotes"
    __table_args__ = (
        Index("ix_quotes_project_id", "project_id", unique=True),
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    reference: Mapped[str] = mapped_column(String(100), nullable=False, default="")


class QuoteLine(BaseModel):
    __tablename__ = "quote_lines"
    __table_args__ = (
        Index("ix_quote_lines_quote_id", "quote_id"),
    )

    quote_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("quotes.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    unit: Mapped[str | None] = mapped_column(String(50))
    quantity: Mapped[float | None] = mapped_column()
    item_type: Mapped[QuoteLineType] = mapped_column(
        nullable=False, default=QuoteLineType.OTHER
    )
    section: Mapped[str | None] = mapped_column(String(100))
    meta: Mapped[dict[str, Any] | None] = mapped_column(_JSON)
