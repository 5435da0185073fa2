"""Message reaction endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from chatline.api.v1.dependencies import CurrentUserDep, RegistryDep, SessionDep
from chatline.schemas.common import StatusMessage
from chatline.schemas.reaction import ReactionCreate, ReactionResponse
from chatline.services.reactions import ReactionService

router = APIRouter(prefix="/reactions", tags=["reactions"])


@router.post("", response_model=ReactionResponse, status_code=status.HTTP_201_CREATED)
async def add_reaction(
    payload: ReactionCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
) -> ReactionResponse:
    service = ReactionService(db, registry)
    reaction = await service.add(current_user, payload.message_id, payload.emoji)
    return ReactionResponse.model_validate(reaction)


@router.delete("/{reaction_id}", response_model=StatusMessage)
async def remove_reaction(
    reaction_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
) -> StatusMessage:
    await ReactionService(db, registry).remove(current_user, reaction_id)
    return StatusMessage(status="ok", message="Reaction removed")


@router.get("/message/{message_id}", response_model=list[ReactionResponse])
async def list_reactions(
    message_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    registry: RegistryDep,
) -> list[ReactionResponse]:
    reactions = ReactionService(db, registry).list_for_message(current_user, message_id)
    return [ReactionResponse.model_validate(r) for r in reactions]
