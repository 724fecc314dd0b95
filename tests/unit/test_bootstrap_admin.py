import pytest
from sqlalchemy import select

from backend.app.core.config import Settings
from backend.app.models.user_orm import UserORM
from backend.app.core.exceptions import ValidationError
from backend.app.services.auth_service import hash_password, seed_bootstrap_admin, verify_password


def settings_with_admin(**overrides) -> Settings:
    values = {
        "secret_key": "k",
        "bootstrap_admin_username": "root-admin",
        "bootstrap_admin_password": "first-login",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.mark.asyncio
async def test_seeds_admin_into_empty_table(db_session):
    admin = await seed_bootstrap_admin(db_session, settings_with_admin())
    assert admin.role == "admin"
    assert admin.is_active is True
    assert verify_password("first-login", admin.hashed_password)


@pytest.mark.asyncio
async def test_does_not_seed_twice(db_session):
    await seed_bootstrap_admin(db_session, settings_with_admin())
    assert await seed_bootstrap_admin(db_session, settings_with_admin(bootstrap_admin_username="another")) is None
    users = (await db_session.execute(select(UserORM))).scalars().all()
    assert [u.username for u in users] == ["root-admin"]


@pytest.mark.asyncio
async def test_no_credentials_no_seed(db_session):
    settings = Settings(secret_key="k", bootstrap_admin_username=None, bootstrap_admin_password=None)
    assert await seed_bootstrap_admin(db_session, settings) is None


@pytest.mark.asyncio
async def test_overlong_bootstrap_password_rejected(db_session):
    with pytest.raises(ValidationError):
        await seed_bootstrap_admin(db_session, settings_with_admin(bootstrap_admin_password="p" * 73))
    assert (await db_session.execute(select(UserORM))).scalars().all() == []


def test_overlong_password_never_verifies():
    hashed = hash_password("p" * 72)
    assert verify_password("p" * 72, hashed)
    assert not verify_password("p" * 73, hashed)
