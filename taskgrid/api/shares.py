"""Sharing API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from taskgrid.api.dependencies import get_current_user, get_sharing_service
from taskgrid.database import get_db
from taskgrid.models.enums import Permission, ResourceType
from taskgrid.models.user import User
from taskgrid.schemas.share import (
    CascadeDeleteResponse,
    OwnershipTransfer,
    PermissionResponse,
    ShareCreate,
    ShareResponse,
    ShareUpdate,
)
from taskgrid.services.access_snapshot import share_visible
from taskgrid.services.auth import get_user_by_email
from taskgrid.services.errors import NotFoundError
from taskgrid.services.graph import ResourceRef, ShareRecord, ShareRef
from taskgrid.services.sharing import SharingService

router = APIRouter(prefix="/api/v1", tags=["sharing"])


def to_response(record: ShareRecord) -> ShareResponse:
    return ShareResponse(
        id=record.id,
        resource_type=record.resource.type,
        resource_id=record.resource.id,
        user_id=record.user_id,
        permission=record.permission,
    )


def grant_share_by_email(
    db: Session,
    sharing: SharingService,
    actor: User,
    resource: ResourceRef,
    email: str,
    permission: Permission,
) -> ShareRecord:
    """Look up the invited user by email and share ``resource`` with them."""
    grantee = get_user_by_email(db, email)
    if grantee is None:
        raise NotFoundError("User not found")
    return sharing.grant_share(actor.id, resource, grantee.id, permission)


@router.get(
    "/resources/{resource_type}/{resource_id}/permission", response_model=PermissionResponse
)
def get_permission(
    resource_type: ResourceType,
    resource_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    sharing: Annotated[SharingService, Depends(get_sharing_service)],
):
    """Get the current user's effective permission on a resource."""
    permission = sharing.resolve(current_user.id, ResourceRef(resource_type, resource_id))
    return PermissionResponse(
        resource_type=resource_type,
        resource_id=resource_id,
        permission=permission,
        can_view=permission is not None,
        can_edit=permission is not None and permission.can_edit(),
        can_admin=permission is not None and permission.can_admin(),
    )


@router.get(
    "/resources/{resource_type}/{resource_id}/shares", response_model=list[ShareResponse]
)
def get_shares(
    resource_type: ResourceType,
    resource_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    sharing: Annotated[SharingService, Depends(get_sharing_service)],
):
    """List the direct shares of a resource.

    Admins see every collaborator; other users only see their own share.
    """
    ref = ResourceRef(resource_type, resource_id)
    permission = sharing.resolver.require(current_user.id, ref, Permission.VIEW)
    return [
        to_response(record)
        for record in sharing.store.get_shares(ref)
        if share_visible(record.user_id, current_user.id, permission)
    ]


@router.post(
    "/resources/{resource_type}/{resource_id}/shares",
    response_model=ShareResponse,
    status_code=status.HTTP_201_CREATED,
)
def share_resource(
    resource_type: ResourceType,
    resource_id: int,
    share_data: ShareCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    sharing: Annotated[SharingService, Depends(get_sharing_service)],
    db: Annotated[Session, Depends(get_db)],
):
    """Share a resource with another user by email (ADMIN only)."""
    record = grant_share_by_email(
        db,
        sharing,
        current_user,
        ResourceRef(resource_type, resource_id),
        share_data.user_email,
        share_data.permission,
    )
    return to_response(record)


@router.patch("/shares/{resource_type}/{share_id}", response_model=ShareResponse)
def update_share(
    resource_type: ResourceType,
    share_id: int,
    share_data: ShareUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    sharing: Annotated[SharingService, Depends(get_sharing_service)],
):
    """Change the permission of a share (ADMIN only)."""
    record = sharing.update_share(
        current_user.id, ShareRef(resource_type, share_id), share_data.permission
    )
    return to_response(record)


@router.delete("/shares/{resource_type}/{share_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_share(
    resource_type: ResourceType,
    share_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    sharing: Annotated[SharingService, Depends(get_sharing_service)],
):
    """Remove a user's share (ADMIN only)."""
    sharing.revoke_share(current_user.id, ShareRef(resource_type, share_id))


@router.post("/resources/{resource_type}/{resource_id}/transfer")
def transfer_ownership(
    resource_type: ResourceType,
    resource_id: int,
    transfer: OwnershipTransfer,
    current_user: Annotated[User, Depends(get_current_user)],
    sharing: Annotated[SharingService, Depends(get_sharing_service)],
    db: Annotated[Session, Depends(get_db)],
):
    """Transfer ownership of a resource to another user (ADMIN only)."""
    if db.get(User, transfer.new_owner_id) is None:
        raise NotFoundError("User not found")

    previous_owner_id = sharing.transfer_ownership(
        current_user.id, ResourceRef(resource_type, resource_id), transfer.new_owner_id
    )
    return {"previous_owner_id": previous_owner_id, "new_owner_id": transfer.new_owner_id}


@router.delete("/resources/{resource_type}/{resource_id}", response_model=CascadeDeleteResponse)
def delete_resource(
    resource_type: ResourceType,
    resource_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    sharing: Annotated[SharingService, Depends(get_sharing_service)],
):
    """Delete a resource with everything below it and all their shares (ADMIN only)."""
    result = sharing.cascade_delete_resource(
        current_user.id, ResourceRef(resource_type, resource_id)
    )
    return CascadeDeleteResponse(
        deleted_resources=len(result.resources), revoked_shares=len(result.shares)
    )
