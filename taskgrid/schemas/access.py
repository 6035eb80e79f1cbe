"""Schemas for the effective-access snapshot consumed by clients."""

from pydantic import BaseModel

from taskgrid.models.enums import Permission


class ShareEntry(BaseModel):
    """A share as seen by the client."""

    id: int
    user_id: int
    permission: Permission


class AccessibleList(BaseModel):
    id: int
    name: str
    owner_id: int | None
    shares: list[ShareEntry] = []
    # None when the list is only included as context for a shared child
    permission: Permission | None = None


class AccessibleCategory(BaseModel):
    id: int
    list_id: int
    owner_id: int | None
    name: str
    shares: list[ShareEntry] = []
    permission: Permission | None = None


class AccessibleTask(BaseModel):
    id: int
    list_id: int
    category_id: int | None
    owner_id: int | None
    name: str
    shares: list[ShareEntry] = []
    permission: Permission | None = None


class AccessSnapshot(BaseModel):
    """Everything a user can see, with the owner/share data needed to derive flags."""

    user_id: int
    lists: list[AccessibleList] = []
    categories: list[AccessibleCategory] = []
    tasks: list[AccessibleTask] = []
