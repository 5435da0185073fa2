# src/chatline/api/v1/endpoints/auth.py
"""Authentication and account endpoints for the Chatline API."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, File, Form, Response, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError

from chatline.api.v1.dependencies import CurrentUserDep, SessionDep, StorageDep
from chatline.core.security import create_access_token
from chatline.core.settings import settings
from chatline.schemas.common import StatusMessage
from chatline.schemas.user import (
    AuthResponse,
    LoginRequest,
    PasswordUpdateRequest,
    ProfileUpdate,
    RegisterRequest,
    UserResponse,
)
from chatline.services import accounts

router = APIRouter(tags=["authentication"])


def _issue_token(response: Response, user_id: int) -> str:
    """Create an access token and mirror it into the auth cookie."""
    token = create_access_token(user_id)
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        samesite="strict",
        secure=settings.cookie_secure,
    )
    return token


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, response: Response, db: SessionDep) -> AuthResponse:
    """Create an account and sign it in."""
    user = accounts.register_user(db, payload)
    token = _issue_token(response, user.id)
    return AuthResponse(access_token=token, user=UserResponse.model_validate(user))


@router.post("/login", response_model=AuthResponse)
async def login(payload: LoginRequest, response: Response, db: SessionDep) -> AuthResponse:
    """Exchange username and password for an access token."""
    user = accounts.authenticate(db, payload.username, payload.password)
    token = _issue_token(response, user.id)
    return AuthResponse(access_token=token, user=UserResponse.model_validate(user))


@router.delete("/logout", response_model=StatusMessage)
async def logout(response: Response) -> StatusMessage:
    """Clear the auth cookie. Bearer tokens simply expire."""
    response.delete_cookie(settings.auth_cookie_name)
    return StatusMessage(status="ok", message="Logged out successfully")


@router.get("/get-user", response_model=UserResponse)
async def get_user(current_user: CurrentUserDep) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.patch("/update-profile", response_model=UserResponse)
async def update_profile(
    current_user: CurrentUserDep,
    db: SessionDep,
    storage: StorageDep,
    fullname: Annotated[str | None, Form()] = None,
    username: Annotated[str | None, Form()] = None,
    gender: Annotated[str | None, Form()] = None,
    profile_pic: Annotated[UploadFile | None, File()] = None,
) -> UserResponse:
    """Update profile fields and optionally upload a new picture.

    Only the fields that were sent are changed. When a picture is uploaded the
    previous uploaded picture is removed from disk once the update succeeds.
    """
    submitted = {
        key: value
        for key, value in {"fullname": fullname, "username": username, "gender": gender}.items()
        if value is not None
    }
    try:
        update = ProfileUpdate(**submitted)
    except PydanticValidationError as err:
        raise RequestValidationError(err.errors()) from err

    uploaded = None
    if profile_pic is not None and profile_pic.filename:
        uploaded = storage.save_profile_image(
            profile_pic.file, profile_pic.filename, profile_pic.content_type
        )

    previous_path = current_user.profile_pic_path
    try:
        user = accounts.update_profile(db, current_user, update, uploaded=uploaded)
    except Exception:
        if uploaded is not None:
            storage.delete(uploaded.path)
        raise

    if uploaded is not None and previous_path:
        storage.delete(previous_path)
    return UserResponse.model_validate(user)


@router.patch("/update-password", response_model=StatusMessage)
async def update_password(
    payload: PasswordUpdateRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> StatusMessage:
    accounts.update_password(db, current_user, payload)
    return StatusMessage(status="ok", message="Password updated successfully")
