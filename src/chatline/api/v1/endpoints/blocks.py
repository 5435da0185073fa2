"""Block list endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from chatline.api.v1.dependencies import CurrentUserDep, SessionDep, StorageDep
from chatline.schemas.block import BlockRequest, BlockResponse, UnblockRequest
from chatline.schemas.common import StatusMessage
from chatline.services import relationships

router = APIRouter(tags=["blocks"])


@router.post("/block", response_model=BlockResponse, status_code=status.HTTP_201_CREATED)
async def block_user(
    payload: BlockRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
    storage: StorageDep,
) -> BlockResponse:
    """Block a user.

    Any live friend request between the pair is frozen and the direct
    conversation is deleted together with its attachments.
    """
    record = relationships.block_user(
        db, current_user, payload.user_id, payload.reason, storage=storage
    )
    return BlockResponse.model_validate(record)


@router.post("/unblock", response_model=StatusMessage)
async def unblock_user(
    payload: UnblockRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> StatusMessage:
    target = relationships.unblock_user(db, current_user, payload.user_id)
    return StatusMessage(status="ok", message=f"{target.username} has been unblocked")


@router.get("/list/block", response_model=list[BlockResponse])
async def list_blocks(current_user: CurrentUserDep, db: SessionDep) -> list[BlockResponse]:
    return [BlockResponse.model_validate(b) for b in relationships.list_blocks(db, current_user)]
