"""User administration schemas."""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel

from backend.app.core.security import Role


class UserView(BaseModel):
    id: str
    username: str
    role: Role
    department: str
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserSummary(BaseModel):
    id: str
    username: str
    role: Role
    department: str

    class Config:
        from_attributes = True


class UserCreate(BaseModel):
    # Optional here so missing fields surface as the domain's 400, not a 422
    username: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    department: Optional[str] = None


class UserUpdate(BaseModel):
    username: Optional[str] = None
    role: Optional[str] = None
    department: Optional[str] = None
    is_active: Optional[bool] = None


class UserMutated(BaseModel):
    message: str
    user: UserView


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserSummary
