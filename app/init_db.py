"""Startup script: create tables."""

import asyncio
import logging

from app.database import Base, engine

# Import all models so Base.metadata knows about them
from app.audit.models import AuditLog  # noqa: F401
from app.certificates.models import Certificate  # noqa: F401
from app.courses.models import Course, Lesson, LessonProgress, Module  # noqa: F401
from app.users.models import User  # noqa: F401

logger = logging.getLogger(__name__)


async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def startup():
    await init_db()


if __name__ == "__main__":
    asyncio.run(startup())
