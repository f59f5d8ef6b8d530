"""Seeded productivity templates, key aliases and template inference from quote units."""

# One standard 8-hour workday divided by the daily output of one worker
DEFAULT_TEMPLATES: list[dict] = [
    {"key": "EXCAVATION", "label": "Excavation", "hours_per_unit": 1.6, "unit_label": "m"},          # 5 m/day
    {"key": "BUILDING", "label": "Brickwork", "hours_per_unit": 0.08, "unit_label": "bricks"},      # 100 bricks/day
    {"key": "PLASTERING", "label": "Plastering", "hours_per_unit": 0.5, "unit_label": "sqm"},       # 16 sqm/day
    {"key": "CONCRETE", "label": "Concrete Works", "hours_per_unit": 1.6, "unit_label": "m3"},      # 5 m3/day
    {"key": "TILING", "label": "Tiling", "hours_per_unit": 0.4, "unit_label": "sqm"},               # 20 sqm/day
    {"key": "FOUNDATION_DIG", "label": "Foundation Digging", "hours_per_unit": 2.5, "unit_label": "m3"},
]

TEMPLATE_ALIASES: dict[str, str] = {
    "BRICKWORK": "BUILDING",
    "BRICKLAYING": "BUILDING",
    "PLASTER": "PLASTERING",
    "CUBIC": "CONCRETE",
    "TILER": "TILING",
}


def resolve_key(key: str | None) -> str | None:
    """Normalise a template key: trimmed, upper-cased, aliases followed."""
    if key is None:
        return None
    normalized = key.strip().upper().replace(" ", "_").replace("-", "_")
    if not normalized:
        return None
    return TEMPLATE_ALIASES.get(normalized, normalized)


def infer_template_key(unit: str | None, description: str | None) -> str | None:
    """Guess the productivity template for a quote line from its unit and wording."""
    u = (unit or "").strip().lower()
    d = (description or "").lower()
    if "tile" in d or "tiling" in d:
        return "TILING"
    if "m3" in u or "cubic" in u:
        return "CONCRETE"
    if "m2" in u or "sqm" in u or "plaster" in d:
        return "PLASTERING"
    if "brick" in u or "brick" in d:
        return "BUILDING"
    if u == "m" or "excav" in d:
        return "EXCAVATION"
    return None
