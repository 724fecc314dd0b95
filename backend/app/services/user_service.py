"""
User administration: create, update, archive and delete user accounts.
"""
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import Conflict, UpstreamFailure, ValidationError
from backend.app.core.security import Principal, Role
from backend.app.models.user_orm import UserORM
from backend.app.schemas.users import UserCreate, UserUpdate
from backend.app.services.auth_service import check_password_length, get_user_by_username, hash_password
from backend.app.services.authorization import Action, require
from backend.app.services.query_service import get_user_or_404

logger = logging.getLogger(__name__)


def _parse_role(value: str) -> Role:
    try:
        return Role(value)
    except ValueError:
        raise ValidationError("Invalid role")


async def _commit(session: AsyncSession, conflict_message: str, failure_message: str) -> None:
    """Commit; a constraint violation (duplicate username, live references) becomes Conflict."""
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        logger.warning(f"{conflict_message}: {e.orig}")
        raise Conflict(conflict_message) from e
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"{failure_message}: {e}", exc_info=True)
        raise UpstreamFailure(failure_message) from e


async def create_user(session: AsyncSession, principal: Principal, payload: UserCreate) -> UserORM:
    require(principal, Action.USER_CREATE)
    if not (payload.username and payload.password and payload.role and payload.department):
        raise ValidationError("All fields are required")
    role = _parse_role(payload.role)
    check_password_length(payload.password)

    if await get_user_by_username(session, payload.username):
        raise Conflict("Username already exists")

    user = UserORM(
        id=str(uuid.uuid4()),
        username=payload.username,
        hashed_password=hash_password(payload.password),
        role=role.value,
        department=payload.department,
        is_active=True,
        created_by=principal.id,
        created_at=datetime.now(timezone.utc),
    )
    session.add(user)
    # A concurrent insert of the same username is caught by the unique constraint
    await _commit(session, "Username already exists", "Failed to create user")
    logger.info(f"User '{user.username}' ({user.role}) created by {principal.id}")
    return user


async def update_user(session: AsyncSession, principal: Principal, user_id: str, payload: UserUpdate) -> UserORM:
    """Partial update: only non-empty fields (and an explicit is_active) are applied."""
    require(principal, Action.USER_UPDATE)
    user = await get_user_or_404(session, user_id)

    if payload.username:
        user.username = payload.username
    if payload.role:
        user.role = _parse_role(payload.role).value
    if payload.department:
        user.department = payload.department
    if payload.is_active is not None:
        user.is_active = payload.is_active

    await _commit(session, "Username already exists", "Failed to update user")
    logger.info(f"User {user.id} updated by {principal.id}")
    return user


async def archive_user(session: AsyncSession, principal: Principal, user_id: str) -> UserORM:
    require(principal, Action.USER_ARCHIVE)
    user = await get_user_or_404(session, user_id)
    user.is_active = False
    await _commit(session, "Could not archive user", "Failed to archive user")
    logger.info(f"User {user.id} archived by {principal.id}")
    return user


async def delete_user(session: AsyncSession, principal: Principal, user_id: str) -> None:
    require(principal, Action.USER_DELETE)
    if user_id == principal.id:
        raise ValidationError("Cannot delete your own account")

    user = await get_user_or_404(session, user_id)
    await session.delete(user)
    await _commit(
        session,
        "User is still referenced by incidents or responses; archive the account instead",
        "Failed to delete user",
    )
    logger.info(f"User {user_id} deleted by {principal.id}")
