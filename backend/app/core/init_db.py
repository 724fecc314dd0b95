"""
Database initialization script.

Creates the incident reporting schema and seeds the bootstrap admin
(BOOTSTRAP_ADMIN_USERNAME / BOOTSTRAP_ADMIN_PASSWORD) into an empty
users table. Run this to initialize a fresh database:

    python -m backend.app.core.init_db
    python -m backend.app.core.init_db --drop
"""

import asyncio

from backend.app.core.config import get_settings
from backend.app.core.database import Base, engine, get_db_context
import backend.app.models  # noqa: F401  registers ORM tables on Base.metadata
from backend.app.services.auth_service import seed_bootstrap_admin

settings = get_settings()


async def init_database():
    """Create all tables and seed the first admin."""
    print(f"Initializing database at {settings.database_url}...")
    async with engine.begin() as conn:
        print("Creating tables...")
        await conn.run_sync(Base.metadata.create_all)

    async with get_db_context() as db:
        admin = await seed_bootstrap_admin(db, settings)
    if admin:
        print(f"Seeded bootstrap admin '{admin.username}'.")
    elif not settings.bootstrap_admin_username:
        print("BOOTSTRAP_ADMIN_USERNAME not set; no admin seeded.")

    await engine.dispose()
    print("Database initialized.")


async def drop_all_tables():
    """Drop all tables (use with caution!)."""
    async with engine.begin() as conn:
        print("Dropping all tables...")
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()
    print("All tables dropped.")


if __name__ == "__main__":
    import sys

    if len(sys.argv) > 1 and sys.argv[1] == "--drop":
        print("WARNING: This will drop all tables!")
        confirm = input("Type 'yes' to confirm: ")
        if confirm == "yes":
            asyncio.run(drop_all_tables())
        else:
            print("Aborted.")
    else:
        asyncio.run(init_database())
