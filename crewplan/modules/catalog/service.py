"""Productivity catalog service: template lookup and maintenance."""

import math
from collections.abc import Iterable

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crewplan.core.errors import NotFoundError, ValidationError
from crewplan.models.scheduling import TaskTemplate
from crewplan.modules.catalog.defaults import resolve_key
from crewplan.modules.catalog.schemas import TemplateUpsert
from crewplan.modules.scheduling.engine import EstimationEngine, TemplateRates

logger = structlog.get_logger()


async def get_template(db: AsyncSession, key: str | None) -> TaskTemplate | None:
    """Look up a template by key. Aliases and case differences resolve to the canonical row."""
    resolved = resolve_key(key)
    if resolved is None:
        return None
    stmt = select(TaskTemplate).where(
        TaskTemplate.key == resolved,
        TaskTemplate.is_deleted.is_(False),
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def require_template(db: AsyncSession, key: str) -> TaskTemplate:
    template = await get_template(db, key)
    if template is None:
        raise NotFoundError(f"Task template {key!r} not found")
    return template


async def list_templates(db: AsyncSession) -> list[TaskTemplate]:
    stmt = (
        select(TaskTemplate)
        .where(TaskTemplate.is_deleted.is_(False))
        .order_by(TaskTemplate.key)
    )
    return list((await db.execute(stmt)).scalars().all())


async def upsert_template(db: AsyncSession, key: str, body: TemplateUpsert) -> TaskTemplate:
    """Create or replace a template's rates. Keys are stored canonical (upper-case)."""
    resolved = resolve_key(key)
    if resolved is None:
        raise ValidationError("Template key must not be empty")
    if not math.isfinite(body.hours_per_unit) or body.hours_per_unit < 0:
        raise ValidationError("hours_per_unit must be a finite, non-negative number")
    if not math.isfinite(body.complexity_factor) or body.complexity_factor <= 0:
        raise ValidationError("complexity_factor must be a finite, positive number")

    stmt = select(TaskTemplate).where(TaskTemplate.key == resolved)
    template = (await db.execute(stmt)).scalar_one_or_none()
    if template is None:
        template = TaskTemplate(key=resolved)
        db.add(template)
        logger.info("catalog.template_created", key=resolved)
    else:
        logger.info("catalog.template_updated", key=resolved)

    template.label = body.label
    template.hours_per_unit = body.hours_per_unit
    template.complexity_factor = body.complexity_factor
    template.unit_label = body.unit_label
    template.is_deleted = False
    await db.flush()
    return template


async def build_engine(db: AsyncSession, keys: Iterable[str | None]) -> EstimationEngine:
    """Load the templates referenced by ``keys`` into an estimation engine."""
    resolved = {k for k in (resolve_key(key) for key in keys) if k}
    rates: dict[str, TemplateRates] = {}
    if resolved:
        stmt = select(TaskTemplate).where(
            TaskTemplate.key.in_(resolved),
            TaskTemplate.is_deleted.is_(False),
        )
        for template in (await db.execute(stmt)).scalars().all():
            rates[template.key] = TemplateRates.from_template(template)
    return EstimationEngine(rates)
