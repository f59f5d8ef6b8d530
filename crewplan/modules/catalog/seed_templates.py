"""Seed the default productivity templates.

Idempotent: templates whose key already exists are left untouched, so
rates tuned by an administrator survive a redeploy.

Run with: python -m crewplan.modules.catalog.seed_templates
"""

import asyncio

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crewplan.models.scheduling import TaskTemplate
from crewplan.modules.catalog.defaults import DEFAULT_TEMPLATES

logger = structlog.get_logger()


async def seed_default_templates(db: AsyncSession) -> int:
    """Insert any missing default template. Returns the number created."""
    existing = set((await db.execute(select(TaskTemplate.key))).scalars().all())
    created = 0
    for tmpl in DEFAULT_TEMPLATES:
        if tmpl["key"] in existing:
            logger.info("template_exists", key=tmpl["key"])
            continue
        db.add(
            TaskTemplate(
                key=tmpl["key"],
                label=tmpl["label"],
                hours_per_unit=tmpl["hours_per_unit"],
                complexity_factor=tmpl.get("complexity_factor", 1.0),
                unit_label=tmpl["unit_label"],
            )
        )
        created += 1
        logger.info("template_created", key=tmpl["key"])
    await db.flush()
    return created


async def _main() -> None:
    from crewplan.core.database import async_session_factory, engine

    async with async_session_factory() as session:
        created = await seed_default_templates(session)
        await session.commit()
    await engine.dispose()
    logger.info("seed_templates_complete", created=created)


if __name__ == "__main__":
    asyncio.run(_main())
