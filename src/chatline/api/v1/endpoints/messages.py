# src/chatline/api/v1/endpoints/messages.py
"""Direct message endpoints for the Chatline API."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Body, File, Form, UploadFile, status

from chatline.api.v1.dependencies import (
    CurrentUserDep,
    PageDep,
    RegistryDep,
    SessionDep,
    StorageDep,
)
from chatline.schemas.common import Pagination, StatusMessage
from chatline.schemas.message import (
    ConversationStatusResult,
    ConversationSummary,
    InboxPage,
    MessageDelete,
    MessageEdit,
    MessageResponse,
    StatusUpdate,
)
from chatline.services.messages import MessageService
from chatline.services.storage import AttachmentStorage, StoredFile

router = APIRouter(tags=["messages"])


def store_upload(storage: AttachmentStorage, upload: UploadFile | None) -> StoredFile | None:
    """Write an optional multipart file to the attachment store."""
    if upload is None or not upload.filename:
        return None
    return storage.save_attachment(upload.file, upload.filename, upload.content_type)


@router.post(
    "/message/{user_id}",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    user_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
    storage: StorageDep,
    message: Annotated[str | None, Form()] = None,
    file: Annotated[UploadFile | None, File()] = None,
) -> MessageResponse:
    """Send a text message and/or one attachment to another user."""
    attachment = store_upload(storage, file)
    service = MessageService(db, registry, storage)
    sent = await service.send_direct(current_user, user_id, message, attachment)
    return MessageResponse.model_validate(sent)


@router.get("/message/{user_id}", response_model=list[MessageResponse])
async def get_messages(
    user_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
) -> list[MessageResponse]:
    """Conversation history with ``user_id``, oldest first."""
    service = MessageService(db, registry)
    return [MessageResponse.model_validate(m) for m in service.list_direct(current_user, user_id)]


@router.patch("/message/{message_id}", response_model=MessageResponse)
async def edit_message(
    message_id: int,
    payload: MessageEdit,
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
) -> MessageResponse:
    service = MessageService(db, registry)
    edited = await service.edit(message_id, payload.message, current_user)
    return MessageResponse.model_validate(edited)


@router.delete("/message/{message_id}", response_model=StatusMessage)
async def delete_message(
    message_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
    storage: StorageDep,
    payload: Annotated[MessageDelete | None, Body()] = None,
) -> StatusMessage:
    """Hide a message for yourself (``me``) or remove it for everyone (``all``)."""
    scope = payload.delete_for if payload is not None else "me"
    service = MessageService(db, registry, storage)
    await service.delete(message_id, current_user, scope)
    return StatusMessage(status="ok", message=f"Message deleted for {scope}")


@router.patch("/message/{message_id}/status", response_model=MessageResponse)
async def update_message_status(
    message_id: int,
    payload: StatusUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
) -> MessageResponse:
    service = MessageService(db, registry)
    updated = await service.update_status(message_id, payload.status, current_user)
    return MessageResponse.model_validate(updated)


@router.patch(
    "/conversation/{conversation_id}/status",
    response_model=ConversationStatusResult,
)
async def update_conversation_status(
    conversation_id: int,
    payload: StatusUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
) -> ConversationStatusResult:
    """Advance every message the other participant sent in this conversation."""
    service = MessageService(db, registry)
    count = await service.update_conversation_status(conversation_id, payload.status, current_user)
    return ConversationStatusResult(
        conversation_id=conversation_id, status=payload.status, updated=count
    )


@router.get("/conversations", response_model=InboxPage)
async def get_inbox(
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
    page: PageDep,
) -> InboxPage:
    """Direct conversations, most recently active first."""
    service = MessageService(db, registry)
    entries, total = service.list_inbox(current_user, page.page, page.limit)
    return InboxPage(
        conversations=[
            ConversationSummary.model_validate(entry, from_attributes=True) for entry in entries
        ],
        pagination=Pagination.build(page.page, page.limit, total),
    )
