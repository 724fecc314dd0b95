"""
Authentication router.
Exchanges username/password for a bearer token and reports the caller's identity.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.security import Principal, Role, create_principal_token, get_current_principal
from backend.app.schemas.users import LoginRequest, LoginResponse, UserSummary, UserView
from backend.app.services import auth_service, query_service

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Exchange credentials for a token valid for 8 hours.
    Disabled accounts are refused with 403 even when the password is correct.
    """
    user = await auth_service.authenticate_user(db, payload.username, payload.password)
    token = create_principal_token(user.id, Role(user.role))
    return LoginResponse(token=token, user=UserSummary.model_validate(user))


@router.get("/me", response_model=UserView)
async def read_current_user(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await query_service.get_user(db, principal, principal.id)
