"""
EstimationEngine: deterministic labour-hour and duration estimates.

No I/O happens here. The catalog service loads template rates and hands them
in; the schedule builder persists the results.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_CEILING, Decimal
from typing import Any

from crewplan.core.errors import ValidationError
from crewplan.models.base import utcnow
from crewplan.modules.catalog.defaults import resolve_key

HOURS_PER_DAY = 8
DEFAULT_ESTIMATED_HOURS = 8.0


@dataclass(frozen=True)
class TemplateRates:
    key: str
    hours_per_unit: float
    complexity_factor: float = 1.0

    @classmethod
    def from_template(cls, template: Any) -> TemplateRates:
        return cls(
            key=template.key,
            hours_per_unit=template.hours_per_unit,
            complexity_factor=template.complexity_factor,
        )


@dataclass(frozen=True)
class Estimate:
    template_key: str | None  # canonical key, None when no template resolved
    estimated_hours: float
    duration_days: int | None
    planned_start: datetime
    planned_end: datetime | None


def _decimal(value: float) -> Decimal:
    # str() keeps 0.08 as 0.08 rather than its binary expansion
    return Decimal(str(value))


def duration_days(estimated_hours: float, assignee_count: int, hours_per_day: int = HOURS_PER_DAY) -> int:
    """Whole calendar days needed; any partial day consumes a full day."""
    capacity = Decimal(max(assignee_count, 1) * hours_per_day)
    days = (_decimal(estimated_hours) / capacity).to_integral_value(rounding=ROUND_CEILING)
    return int(days)


def _is_positive_finite(quantity: float) -> bool:
    return math.isfinite(quantity) and quantity > 0


class EstimationEngine:
    """Pure-Python estimation over a fixed set of template rates."""

    def __init__(
        self,
        templates: Mapping[str, TemplateRates] | None = None,
        hours_per_day: int = HOURS_PER_DAY,
    ) -> None:
        self._templates = dict(templates or {})
        self.hours_per_day = hours_per_day

    def lookup(self, template_key: str | None) -> TemplateRates | None:
        resolved = resolve_key(template_key)
        if resolved is None:
            return None
        return self._templates.get(resolved)

    def estimate(
        self,
        template_key: str | None,
        quantity: float | None,
        assignee_count: int = 1,
        planned_start: datetime | None = None,
        *,
        now: datetime | None = None,
    ) -> Estimate:
        """
        Estimate labour hours and the planned end for one task.

        hours = quantity × hours_per_unit × complexity_factor
        days  = ceil(hours / (max(assignees, 1) × hours_per_day))
        end   = start + days (calendar days, weekends included)

        A missing or unknown template falls back to the default 8 hours with
        no planned end.
        """
        start = planned_start or now or utcnow()

        if template_key and quantity is not None and not _is_positive_finite(quantity):
            raise ValidationError(
                f"Quantity must be a positive finite number, got {quantity!r}",
                [{"reason": "invalid_quantity", "template_key": template_key}],
            )

        template = self.lookup(template_key)
        if template is None:
            return Estimate(
                template_key=None,
                estimated_hours=DEFAULT_ESTIMATED_HOURS,
                duration_days=None,
                planned_start=start,
                planned_end=None,
            )

        if quantity is None:
            raise ValidationError(
                f"Quantity is required for template {template.key}",
                [{"reason": "missing_quantity", "template_key": template.key}],
            )

        hours = (
            _decimal(quantity)
            * _decimal(template.hours_per_unit)
            * _decimal(template.complexity_factor)
        )
        estimated_hours = float(hours)
        days = (
            duration_days(estimated_hours, assignee_count, self.hours_per_day)
            if math.isfinite(estimated_hours)
            else None
        )
        latest = datetime.max.replace(tzinfo=start.tzinfo)
        if days is None or days > (latest - start).days:
            raise ValidationError(
                f"Quantity {quantity!r} is too large to schedule",
                [{"reason": "quantity_too_large", "template_key": template.key}],
            )
        return Estimate(
            template_key=template.key,
            estimated_hours=estimated_hours,
            duration_days=days,
            planned_start=start,
            planned_end=start + timedelta(days=days),
        )
