from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
import uuid


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class MeResponse(BaseModel):
    id: str
    email: EmailStr
    role: str
    centre: Optional[str] = None


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    role: str = Field(default="staff", pattern="^(admin|staff)$")
    centre: Optional[str] = None

    @field_validator("centre", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    role: str
    centre: Optional[str] = None
    is_active: bool = True

    class Config:
        from_attributes = True
