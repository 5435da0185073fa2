"""Call log endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from chatline.api.v1.dependencies import CurrentUserDep, RegistryDep, SessionDep
from chatline.schemas.call import CallHistoryEntry, CallLogCreate, CallLogResponse
from chatline.services import calls

router = APIRouter(prefix="/calls", tags=["calls"])


@router.post("/{receiver_id}", response_model=CallLogResponse, status_code=status.HTTP_201_CREATED)
async def create_call_log(
    receiver_id: int,
    payload: CallLogCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
) -> CallLogResponse:
    """Record a finished or missed call; the receiver is notified."""
    log = await calls.create_call_log(db, registry, current_user, receiver_id, payload)
    return CallLogResponse.model_validate(log)


@router.get("/history", response_model=list[CallHistoryEntry])
async def call_history(current_user: CurrentUserDep, db: SessionDep) -> list[CallHistoryEntry]:
    entries = calls.call_history(db, current_user)
    return [CallHistoryEntry.model_validate(entry, from_attributes=True) for entry in entries]


@router.get("/history/{user_id}", response_model=list[CallHistoryEntry])
async def call_history_with(
    user_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> list[CallHistoryEntry]:
    entries = calls.call_history_with(db, current_user, user_id)
    return [CallHistoryEntry.model_validate(entry, from_attributes=True) for entry in entries]
