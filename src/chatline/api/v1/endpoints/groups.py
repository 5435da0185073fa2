"""Group conversation endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, File, Form, UploadFile, status

from chatline.api.v1.dependencies import (
    CurrentUserDep,
    PageDep,
    RegistryDep,
    SessionDep,
    StorageDep,
)
from chatline.api.v1.endpoints.messages import store_upload
from chatline.schemas.common import Pagination, StatusMessage
from chatline.schemas.group import (
    GroupCreate,
    GroupListEntry,
    GroupListPage,
    GroupMemberAction,
    GroupMessagePage,
    GroupResponse,
    GroupUpdate,
    LeaveGroupResult,
)
from chatline.schemas.message import MessageResponse
from chatline.services.groups import GroupService
from chatline.services.messages import MessageService

router = APIRouter(tags=["groups"])


@router.post("/create/group", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
async def create_group(
    payload: GroupCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
) -> GroupResponse:
    """Create a group; the caller becomes its admin."""
    group = GroupService(db, registry).create(current_user, payload)
    return GroupResponse.model_validate(group)


@router.post("/add/member/{group_id}", response_model=GroupResponse)
async def add_member(
    group_id: int,
    payload: GroupMemberAction,
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
) -> GroupResponse:
    group = GroupService(db, registry).add_member(current_user, group_id, payload.user_id)
    return GroupResponse.model_validate(group)


@router.post("/remove/member/{group_id}", response_model=GroupResponse)
async def remove_member(
    group_id: int,
    payload: GroupMemberAction,
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
) -> GroupResponse:
    group = GroupService(db, registry).remove_member(current_user, group_id, payload.user_id)
    return GroupResponse.model_validate(group)


@router.delete("/leave/{group_id}", response_model=LeaveGroupResult)
async def leave_group(
    group_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
    storage: StorageDep,
) -> LeaveGroupResult:
    result = GroupService(db, registry, storage).leave(current_user, group_id)
    return LeaveGroupResult(**result)


@router.put("/group/{group_id}", response_model=GroupResponse)
async def update_group(
    group_id: int,
    payload: GroupUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
) -> GroupResponse:
    """Rename the group or hand the admin role to another member."""
    group = GroupService(db, registry).update_info(current_user, group_id, payload)
    return GroupResponse.model_validate(group)


@router.delete("/group/{group_id}", response_model=StatusMessage)
async def delete_group(
    group_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
    storage: StorageDep,
) -> StatusMessage:
    GroupService(db, registry, storage).delete(current_user, group_id)
    return StatusMessage(status="ok", message="Group deleted")


@router.post(
    "/group/{group_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_group_message(
    group_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
    storage: StorageDep,
    message: Annotated[str | None, Form()] = None,
    file: Annotated[UploadFile | None, File()] = None,
) -> MessageResponse:
    attachment = store_upload(storage, file)
    service = MessageService(db, registry, storage)
    sent = await service.send_group(current_user, group_id, message, attachment)
    return MessageResponse.model_validate(sent)


@router.get("/group/{group_id}/messages", response_model=GroupMessagePage)
async def get_group_messages(
    group_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
    page: PageDep,
) -> GroupMessagePage:
    """Newest messages first; unread messages on the page become read after listing."""
    service = GroupService(db, registry)
    messages, total = await service.list_messages(current_user, group_id, page.page, page.limit)
    return GroupMessagePage(
        messages=messages,
        pagination=Pagination.build(page.page, page.limit, total),
    )


@router.get("/groups", response_model=GroupListPage)
async def list_groups(
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
    page: PageDep,
) -> GroupListPage:
    entries, total = GroupService(db, registry).list_groups(current_user, page.page, page.limit)
    return GroupListPage(
        groups=[GroupListEntry.model_validate(entry, from_attributes=True) for entry in entries],
        pagination=Pagination.build(page.page, page.limit, total),
    )
