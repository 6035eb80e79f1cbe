"""Share schemas."""

from pydantic import BaseModel, ConfigDict, Field

from taskgrid.models.enums import Permission, ResourceType


class ShareCreate(BaseModel):
    """Share a resource with another user."""

    model_config = ConfigDict(extra="forbid")

    user_email: str = Field(..., min_length=3, max_length=255)
    permission: Permission = Permission.VIEW


class ShareUpdate(BaseModel):
    """Change the permission of an existing share."""

    model_config = ConfigDict(extra="forbid")

    permission: Permission


class OwnershipTransfer(BaseModel):
    """Hand a resource over to another user."""

    model_config = ConfigDict(extra="forbid")

    new_owner_id: int = Field(..., gt=0)


class ShareResponse(BaseModel):
    """Share response."""

    id: int
    resource_type: ResourceType
    resource_id: int
    user_id: int
    permission: Permission


class PermissionResponse(BaseModel):
    """Effective permission of the current user on a resource."""

    resource_type: ResourceType
    resource_id: int
    permission: Permission | None
    can_view: bool
    can_edit: bool
    can_admin: bool


class CascadeDeleteResponse(BaseModel):
    """What a cascading delete removed."""

    deleted_resources: int
    revoked_shares: int
