"""
Security and Authentication for the Incident Report API.

Issues and validates HS256 JWT bearer tokens. A valid token decodes to a
Principal (user id + role); no database lookup is needed to authenticate
a request.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from backend.app.core.config import get_settings
from backend.app.core.exceptions import AuthenticationError
from backend.app.core.logging import principal_id_ctx

settings = get_settings()

# auto_error is off so a missing token is rendered like any other AuthenticationError
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.api_prefix.lstrip('/')}/auth/login",
    auto_error=False,
)


class Role(str, Enum):
    ADMIN = "admin"
    SUPERUSER = "superuser"
    USER = "user"


class Principal(BaseModel):
    """The authenticated identity attached to a request."""
    id: str
    role: Role


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Generate a signed JWT token.
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)

    if isinstance(to_encode.get("role"), Role):
        to_encode["role"] = to_encode["role"].value

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
    return encoded_jwt


def create_principal_token(user_id: str, role: Role | str, expires_delta: Optional[timedelta] = None) -> str:
    """Token carrying {userId, role}; `sub` mirrors userId for standard JWT consumers."""
    role_value = role.value if isinstance(role, Role) else role
    return create_access_token(
        {"sub": user_id, "userId": user_id, "role": role_value},
        expires_delta=expires_delta or timedelta(minutes=settings.access_token_expire_minutes),
    )


def decode_access_token(token: str) -> Principal:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")

    user_id = payload.get("userId") or payload.get("sub")
    role = payload.get("role")
    if not user_id or role not in {r.value for r in Role}:
        raise AuthenticationError("Invalid or expired token")
    return Principal(id=str(user_id), role=Role(role))


async def get_current_principal(token: Optional[str] = Depends(oauth2_scheme)) -> Principal:
    """
    Validate the bearer token and return the request's principal.
    """
    if not token:
        raise AuthenticationError("Access token required")
    principal = decode_access_token(token)
    principal_id_ctx.set(principal.id)
    return principal
