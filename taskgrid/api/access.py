"""Effective-access snapshot endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from taskgrid.api.dependencies import get_current_user, get_sharing_service
from taskgrid.database import get_db
from taskgrid.models.user import User
from taskgrid.schemas.access import AccessSnapshot
from taskgrid.services.access_snapshot import build_access_snapshot
from taskgrid.services.sharing import SharingService

router = APIRouter(prefix="/api/v1", tags=["access"])


@router.get("/access", response_model=AccessSnapshot)
def get_access_snapshot(
    current_user: Annotated[User, Depends(get_current_user)],
    sharing: Annotated[SharingService, Depends(get_sharing_service)],
    db: Annotated[Session, Depends(get_db)],
):
    """Get every resource visible to the current user, with owner and share data."""
    return build_access_snapshot(db, sharing.resolver, current_user.id)
