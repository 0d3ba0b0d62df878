"""
Seed the first superadmin account.

Run once after the schema exists, with env set:
  SUPERADMIN_USERNAME=root
  SUPERADMIN_EMAIL=admin@example.com
  SUPERADMIN_PASSWORD=YourSecurePassword

Idempotent: an existing account with that username or email is left alone.
"""
import asyncio
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.security import hash_password
from app.core.config import settings
from app.core.enums import Role
from app.core.logging_config import get_logger, setup_logging
from app.db.schema_check import ensure_tables
from app.db.session import AsyncSessionLocal, engine

logger = get_logger(__name__)


async def seed_superadmin(
    db: AsyncSession,
    username: Optional[str] = None,
    email: Optional[str] = None,
    password: Optional[str] = None,
) -> Optional[User]:
    """Create the superadmin unless one with the same username/email exists.

    Returns the new user, or None when nothing was created.
    """
    username = username or settings.superadmin_username
    email = email or settings.superadmin_email
    password = password or settings.superadmin_password
    if not username or not email or not password:
        logger.warning("SUPERADMIN_USERNAME/EMAIL/PASSWORD not set; skipping superadmin seed")
        return None

    email = email.strip().lower()
    result = await db.execute(
        select(User).where(or_(User.username == username, func.lower(User.email) == email))
    )
    if result.scalar_one_or_none():
        logger.info(f"Superadmin {username} already exists")
        return None

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=Role.SUPERADMIN.value,
        school_id=None,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info(f"Created superadmin {user.id} ({username})")
    return user


async def main() -> None:
    setup_logging()
    await ensure_tables()
    async with AsyncSessionLocal() as db:
        await seed_superadmin(db)
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
