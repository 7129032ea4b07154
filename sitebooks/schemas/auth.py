import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from ..models.enums import Role


class LoginRequest(BaseModel):
    identifier: str  # username or email
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class MeResponse(BaseModel):
    id: uuid.UUID
    username: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Role

    class Config:
        from_attributes = True


class UserCreate(BaseModel):
    username: str = Field(min_length=3)
    name: str
    email: EmailStr
    phone: Optional[str] = None
    password: str = Field(min_length=8)
    role: Role = Role.supervisor


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=8)
    role: Optional[Role] = None
    is_active: Optional[bool] = None

    @field_validator("name", "phone", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class UserResponse(BaseModel):
    id: uuid.UUID
    username: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Role
    is_active: bool
    created_at: datetime
    last_login_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SupervisorResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    class Config:
        from_attributes = True
