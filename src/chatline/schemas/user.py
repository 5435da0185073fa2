"""User-related Pydantic schemas."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from chatline.schemas.common import UserPresence, UTCDateTime

Gender = Literal["male", "female"]


class RegisterRequest(BaseModel):
    """Schema for account registration."""

    fullname: str = Field(..., min_length=1, max_length=128)
    username: str = Field(..., min_length=3, max_length=64, pattern=r"^[A-Za-z0-9_.]+$")
    password: str = Field(..., min_length=6, max_length=128)
    confirm_password: str = Field(..., min_length=6, max_length=128)
    gender: Gender
    profile_pic: str | None = Field(None, description="Optional avatar URL")

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        """Reject registrations whose password confirmation differs."""
        if self.password != self.confirm_password:
            raise ValueError("Password and confirmation do not match")
        return self


class LoginRequest(BaseModel):
    """Schema for login submissions."""

    username: str
    password: str


class UserResponse(UserPresence):
    """Full profile of the authenticated user."""

    gender: Gender
    created_at: UTCDateTime

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    """Response returned after successful registration or login."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field("bearer", description="Token type (always 'bearer')")
    user: UserResponse


class ProfileUpdate(BaseModel):
    """Partial profile update.

    Only fields present in ``model_fields_set`` are applied; ``profile_pic``
    explicitly set to None clears the avatar.
    """

    fullname: str | None = Field(None, min_length=1, max_length=128)
    username: str | None = Field(None, min_length=3, max_length=64, pattern=r"^[A-Za-z0-9_.]+$")
    gender: Gender | None = None
    profile_pic: str | None = None


class PasswordUpdateRequest(BaseModel):
    """Schema for changing the account password."""

    old_password: str
    new_password: str = Field(..., min_length=6, max_length=128)
