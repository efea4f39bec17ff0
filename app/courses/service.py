import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.courses.models import Course


async def get_course_title(db: AsyncSession, course_id: uuid.UUID) -> str | None:
    result = await db.execute(select(Course.title).where(Course.id == course_id))
    return result.scalar_one_or_none()
