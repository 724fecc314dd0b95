import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import bcrypt

from backend.app.core.config import Settings
from backend.app.core.exceptions import AccountDisabledError, AuthenticationError, ValidationError
from backend.app.core.security import Role
from backend.app.models.user_orm import UserORM

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes and refuses longer input
MAX_PASSWORD_BYTES = 72


def check_password_length(plain: str) -> None:
    if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


def hash_password(plain: str) -> str:
    """Hash a password using direct bcrypt."""
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(plain.encode('utf-8'), salt)
    return hashed.decode('utf-8')

def verify_password(plain: str, hashed: str) -> bool:
    """Verify a password against a hash using direct bcrypt."""
    if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(plain.encode('utf-8'), hashed.encode('utf-8'))
    except ValueError as e:
        logger.error(f"Password verification error: {e}")
        return False


async def get_user_by_username(db: AsyncSession, username: str) -> Optional[UserORM]:
    result = await db.execute(select(UserORM).where(UserORM.username == username))
    return result.scalar_one_or_none()

async def authenticate_user(db: AsyncSession, username: Optional[str], password: Optional[str]) -> UserORM:
    """
    Return the user for valid credentials.
    Unknown user or wrong password -> AuthenticationError (401); disabled account -> AccountDisabledError (403).
    """
    if not username or not password:
        raise AuthenticationError("Invalid credentials")
    user = await get_user_by_username(db, username)
    if not user:
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        logger.warning(f"Login attempt for disabled account '{username}'")
        raise AccountDisabledError("Account is disabled")
    if not verify_password(password, user.hashed_password):
        raise AuthenticationError("Invalid credentials")
    return user

async def seed_bootstrap_admin(db: AsyncSession, settings: Settings) -> Optional[UserORM]:
    """Seed the first admin on an empty users table, from BOOTSTRAP_ADMIN_* settings."""
    if not (settings.bootstrap_admin_username and settings.bootstrap_admin_password):
        return None
    existing = await db.execute(select(UserORM).limit(1))
    if existing.scalar_one_or_none():
        return None
    check_password_length(settings.bootstrap_admin_password)
    admin = UserORM(
        username=settings.bootstrap_admin_username,
        hashed_password=hash_password(settings.bootstrap_admin_password),
        role=Role.ADMIN.value,
        department=settings.bootstrap_admin_department,
    )
    db.add(admin)
    await db.commit()
    logger.info(f"Seeded bootstrap admin '{admin.username}'")
    return admin
