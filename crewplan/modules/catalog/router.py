"""Productivity catalog API router."""

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from crewplan.auth.dependencies import require_permission
from crewplan.core.database import get_db
from crewplan.core.errors import DomainError, NotFoundError, http_error
from crewplan.modules.catalog import service
from crewplan.modules.catalog.schemas import (
    EstimateRequest,
    EstimateResponse,
    TemplateResponse,
    TemplateUpsert,
)
from crewplan.schemas.auth import CurrentUser

logger = structlog.get_logger()

router = APIRouter(prefix="/templates", tags=["catalog"])


@router.get("", response_model=list[TemplateResponse])
async def list_templates(
    current_user: CurrentUser = Depends(require_permission("view", "template")),
    db: AsyncSession = Depends(get_db),
) -> list[TemplateResponse]:
    templates = await service.list_templates(db)
    return [TemplateResponse.model_validate(t) for t in templates]


@router.post("/estimate", response_model=EstimateResponse)
async def preview_estimate(
    body: EstimateRequest,
    current_user: CurrentUser = Depends(require_permission("view", "template")),
    db: AsyncSession = Depends(get_db),
) -> EstimateResponse:
    """Estimate hours and duration for a quantity without saving anything."""
    engine = await service.build_engine(db, [body.template_key])
    try:
        estimate = engine.estimate(
            body.template_key,
            body.quantity,
            assignee_count=body.assignee_count,
            planned_start=body.planned_start,
        )
    except DomainError as exc:
        raise http_error(exc)
    return EstimateResponse(
        template_key=estimate.template_key,
        estimated_hours=estimate.estimated_hours,
        duration_days=estimate.duration_days,
        planned_start=estimate.planned_start,
        planned_end=estimate.planned_end,
    )


@router.get("/{key}", response_model=TemplateResponse)
async def get_template(
    key: str,
    current_user: CurrentUser = Depends(require_permission("view", "template")),
    db: AsyncSession = Depends(get_db),
) -> TemplateResponse:
    try:
        template = await service.require_template(db, key)
    except NotFoundError as exc:
        raise http_error(exc)
    return TemplateResponse.model_validate(template)


@router.put("/{key}", response_model=TemplateResponse)
async def upsert_template(
    key: str,
    body: TemplateUpsert,
    current_user: CurrentUser = Depends(require_permission("manage", "template")),
    db: AsyncSession = Depends(get_db),
) -> TemplateResponse:
    """Create or update a productivity template (admin only)."""
    try:
        template = await service.upsert_template(db, key, body)
        await db.commit()
    except DomainError as exc:
        raise http_error(exc)
    except Exception as exc:
        logger.error("catalog.upsert_template.error", key=key, error=str(exc))
        raise HTTPException(status_code=500, detail="Failed to save template")
    return TemplateResponse.model_validate(template)
