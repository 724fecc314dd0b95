"""
User administration router.

Creation is open to admins and superusers; update, archive and delete are
admin-only. Reads are scoped by the query layer.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.security import Principal, get_current_principal
from backend.app.schemas.users import UserCreate, UserMutated, UserUpdate, UserView
from backend.app.services import query_service, user_service

router = APIRouter()


@router.get("", response_model=List[UserView])
async def list_users(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await query_service.list_users(db, principal)


@router.get("/{user_id}", response_model=UserView)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await query_service.get_user(db, principal, user_id)


@router.post("", response_model=UserMutated, status_code=201)
async def create_user(
    payload: Optional[UserCreate] = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    user = await user_service.create_user(db, principal, payload or UserCreate())
    return UserMutated(message="User created successfully", user=UserView.model_validate(user))


@router.put("/{user_id}", response_model=UserMutated)
async def update_user(
    user_id: str,
    payload: Optional[UserUpdate] = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    user = await user_service.update_user(db, principal, user_id, payload or UserUpdate())
    return UserMutated(message="User updated successfully", user=UserView.model_validate(user))


@router.patch("/{user_id}/archive", response_model=UserMutated)
async def archive_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Deactivate an account; archived users can no longer log in."""
    user = await user_service.archive_user(db, principal, user_id)
    return UserMutated(message="User archived successfully", user=UserView.model_validate(user))


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    await user_service.delete_user(db, principal, user_id)
    return {"message": "User deleted successfully"}
