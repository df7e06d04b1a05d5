from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.actor import ActorKind, StaffRole


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(min_length=1, max_length=128)
    phone: str | None = Field(default=None, max_length=40)


class AgentCreate(RegisterRequest):
    agency_id: UUID
    position: str | None = Field(default=None, max_length=100)
    department: str | None = Field(default=None, max_length=100)


class StaffCreate(RegisterRequest):
    role: StaffRole = StaffRole.moderator


class LoginRequest(BaseModel):
    email: str
    password: str


class StaffLoginRequest(LoginRequest):
    role: StaffRole | None = None


class AccessCodeLoginRequest(BaseModel):
    access_code: str = Field(min_length=1, max_length=32)


class IdentityCodeRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=500)
    days: int | None = Field(default=None, ge=1, le=90)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    actor_kind: ActorKind
    role: str | None = None


class IdentityCodeResponse(TokenResponse):
    access_code: str
    code_expires_at: datetime


class RecoveryRequest(BaseModel):
    email: str
    kind: ActorKind | None = None


class RecoveryVerifyRequest(BaseModel):
    email: str
    access_code: str


class PasswordResetRequest(RecoveryVerifyRequest):
    new_password: str = Field(min_length=1, max_length=128)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=1, max_length=128)


class ActorRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    kind: ActorKind
    name: str | None = None
    email: str | None = None
    role: str | None = None
    agency_id: UUID | None = None
    is_active: bool
    last_login_at: datetime | None = None
    expires_at: datetime | None = None
    usage_count: int | None = None


class MessageResponse(BaseModel):
    message: str
