from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.schemas.role import Role


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    first_name: str
    last_name: str
    role: Role
    email_verified: bool
    phone_verified: bool
    kyc_verified: bool
    is_banned: bool
    banned_until: datetime | None = None
    is_muted: bool
    muted_until: datetime | None = None


class UserRegister(BaseModel):
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=8)
    role: Literal["student", "owner"] = "student"


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: User


class BanRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
    days: int | None = Field(None, gt=0, description="Omit for an indefinite ban")


class MuteRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
    hours: int | None = Field(None, gt=0, description="Omit for an indefinite mute")


class ModerationStatus(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    is_banned: bool
    banned_until: datetime | None = None
    ban_reason: str | None = None
    is_muted: bool
    muted_until: datetime | None = None
    mute_reason: str | None = None
