"""Auth schemas: CurrentUser, permissions."""

import uuid

from pydantic import BaseModel

from crewplan.models.enums import UserRole


class CurrentUser(BaseModel):
    """Caller identity passed explicitly into every core operation."""

    user_id: uuid.UUID
    role: UserRole
    email: str


class PermissionMatrixResponse(BaseModel):
    role: UserRole
    permissions: dict[str, list[str]]  # resource_type -> actions


class UserProfileResponse(BaseModel):
    id: uuid.UUID
    email: str
    full_name: str
    role: UserRole
    worker_id: uuid.UUID | None = None
    permissions: dict[str, list[str]]
