"""RBAC permission matrix and checker.

Roles inherit cumulatively: viewer < worker < manager < admin.
Permissions are (action, resource_type) tuples in a set for O(1) lookup.
"""

import uuid

from crewplan.models.enums import UserRole


# ── Actions ───────────────────────────────────────────────────────────────


class Action:
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    ACTIVATE = "activate"
    REPORT = "report"
    MANAGE = "manage"


# ── Resource Types ────────────────────────────────────────────────────────


class Resource:
    SCHEDULE = "schedule"
    TEMPLATE = "template"
    PROGRESS = "progress"
    REPORT = "report"
    NOTIFICATION = "notification"


# ── Role hierarchy (higher = more privilege) ──────────────────────────────

ROLE_HIERARCHY: dict[UserRole, int] = {
    UserRole.VIEWER: 0,
    UserRole.WORKER: 1,
    UserRole.MANAGER: 2,
    UserRole.ADMIN: 3,
}

# ── Per-role permission sets ──────────────────────────────────────────────

_VIEWER_PERMS: set[tuple[str, str]] = {
    (Action.VIEW, Resource.SCHEDULE),
    (Action.VIEW, Resource.TEMPLATE),
    (Action.VIEW, Resource.REPORT),
    (Action.VIEW, Resource.NOTIFICATION),
}

_WORKER_EXTRA: set[tuple[str, str]] = {
    (Action.VIEW, Resource.PROGRESS),
    (Action.REPORT, Resource.PROGRESS),
}

_MANAGER_EXTRA: set[tuple[str, str]] = {
    (Action.CREATE, Resource.SCHEDULE),
    (Action.EDIT, Resource.SCHEDULE),
    (Action.ACTIVATE, Resource.SCHEDULE),
}

_ADMIN_EXTRA: set[tuple[str, str]] = {
    (Action.MANAGE, Resource.TEMPLATE),
    (Action.MANAGE, Resource.SCHEDULE),
}

# ── Cumulative permission matrix ──────────────────────────────────────────

PERMISSION_MATRIX: dict[UserRole, set[tuple[str, str]]] = {
    UserRole.VIEWER: _VIEWER_PERMS,
    UserRole.WORKER: _VIEWER_PERMS | _WORKER_EXTRA,
    UserRole.MANAGER: _VIEWER_PERMS | _WORKER_EXTRA | _MANAGER_EXTRA,
    UserRole.ADMIN: _VIEWER_PERMS | _WORKER_EXTRA | _MANAGER_EXTRA | _ADMIN_EXTRA,
}


# ── Public API ────────────────────────────────────────────────────────────


def check_permission(
    role: UserRole,
    action: str,
    resource_type: str,
    resource_id: uuid.UUID | None = None,  # reserved for object-level checks
) -> bool:
    """Check if a role has permission for an action on a resource type."""
    perms = PERMISSION_MATRIX.get(role)
    if perms is None:
        return False
    return (action, resource_type) in perms


def get_permissions_for_role(role: UserRole) -> dict[str, list[str]]:
    """Return permissions grouped by resource type (for API responses)."""
    perms = PERMISSION_MATRIX.get(role, set())
    result: dict[str, list[str]] = {}
    for action, resource in sorted(perms):
        result.setdefault(resource, []).append(action)
    return result
