from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError

from habitauth.domain.users.email import email_problem, normalize_email
from habitauth.domain.users.entities import Session, User


class RegisterRequestDTO(BaseModel):
    email: str = Field(max_length=320)
    # Strength rules are applied by the password policy, not here.
    password: str = Field(min_length=1, max_length=1024)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        problem = email_problem(value)
        if problem:
            raise PydanticCustomError("email", problem, {})
        return normalize_email(value)


class LoginRequestDTO(BaseModel):
    email: str = Field(min_length=1, max_length=320)
    password: str = Field(min_length=1, max_length=1024)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        if not value.strip():
            raise PydanticCustomError("missing", "Email is required", {})
        return normalize_email(value)


class RefreshRequestDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str | None = Field(default=None, alias="refreshToken")


class ChangePasswordRequestDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(min_length=1, max_length=1024, alias="currentPassword")
    new_password: str = Field(min_length=1, max_length=1024, alias="newPassword")


class DeleteAccountRequestDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    confirmation: str | None = None
    email: str | None = None


class UserProfileDTO(BaseModel):
    id: str
    email: str
    roles: list[str]
    created_at: datetime = Field(serialization_alias="createdAt")
    last_login_at: datetime | None = Field(default=None, serialization_alias="lastLoginAt")
    password_changed_at: datetime = Field(serialization_alias="passwordChangedAt")

    @classmethod
    def from_user(cls, user: User) -> UserProfileDTO:
        return cls(
            id=user.id,
            email=user.email,
            roles=list(user.roles),
            created_at=user.created_at,
            last_login_at=user.last_login_at,
            password_changed_at=user.password_changed_at,
        )


class SessionDTO(BaseModel):
    id: str
    device_info: str | None = Field(default=None, serialization_alias="deviceInfo")
    ip_address: str | None = Field(default=None, serialization_alias="ipAddress")
    created_at: datetime = Field(serialization_alias="createdAt")
    last_accessed_at: datetime = Field(serialization_alias="lastAccessedAt")
    expires_at: datetime = Field(serialization_alias="expiresAt")
    is_active: bool = Field(serialization_alias="isActive")

    @classmethod
    def from_session(cls, session: Session) -> SessionDTO:
        return cls(
            id=session.id,
            device_info=session.device_info,
            ip_address=session.ip_address,
            created_at=session.created_at,
            last_accessed_at=session.last_accessed_at,
            expires_at=session.expires_at,
            is_active=session.is_active,
        )


class TokenMetaDTO(BaseModel):
    access_token_expires_in: int = Field(serialization_alias="accessTokenExpiresIn")
    refresh_token_expires_in: int = Field(serialization_alias="refreshTokenExpiresIn")


class AuthSuccessDTO(BaseModel):
    ok: bool = True
    message: str
    user: UserProfileDTO
    tokens: TokenMetaDTO


class MessageDTO(BaseModel):
    ok: bool = True
    message: str
