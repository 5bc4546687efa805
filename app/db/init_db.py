import asyncio
import logging

from sqlalchemy import select

from app.core.security import get_password_hash
from app.core.settings import settings
from app.db.session import AsyncSessionLocal
from app.models.user import User, UserRole
from app.services.role_policy import normalize_email

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """Ensure the configured seed administrator exists and holds the admin role."""
    if not settings.seed_admin_email or not settings.seed_admin_password:
        logger.info("No seed admin configured; skipping seeding")
        return

    email = normalize_email(settings.seed_admin_email)
    async with AsyncSessionLocal() as session:
        admin = (await session.execute(select(User).where(User.email == email))).scalar_one_or_none()
        if admin is None:
            session.add(
                User(
                    email=email,
                    name=settings.seed_admin_name,
                    hashed_password=get_password_hash(settings.seed_admin_password),
                    role=UserRole.ADMIN,
                    token_version=0,
                )
            )
            action = "created"
        elif admin.role != UserRole.ADMIN:
            admin.role = UserRole.ADMIN
            action = "promoted"
        else:
            logger.info("Seed admin already present", extra={"event": {"email": email}})
            return
        await session.commit()
    logger.info("Seed admin %s", action, extra={"event": {"email": email}})


if __name__ == "__main__":
    asyncio.run(init_db())
