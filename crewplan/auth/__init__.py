"""Auth package: bearer JWT, RBAC matrix, FastAPI dependencies."""

from crewplan.auth.dependencies import get_current_user, require_permission
from crewplan.auth.rbac import check_permission, get_permissions_for_role

__all__ = [
    "check_permission",
    "get_current_user",
    "get_permissions_for_role",
    "require_permission",
]
