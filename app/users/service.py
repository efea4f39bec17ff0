import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.users.models import User


async def get_user_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_full_name(db: AsyncSession, user_id: uuid.UUID) -> str | None:
    result = await db.execute(select(User.full_name).where(User.id == user_id))
    return result.scalar_one_or_none()
