"""Seed helpers and fake collaborators shared by the tests."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.audit.models import AuditLog
from app.auth.blacklist import revoked_key
from app.auth.service import create_access_token, decode_access_token
from app.courses.completion import CompletionVerifier
from app.courses.models import Course, Lesson, LessonProgress, Module
from app.database import async_session
from app.redis import get_redis
from app.users.models import User


async def make_user(full_name: str = "Budi Santoso", *, is_active: bool = True) -> User:
    async with async_session() as session:
        user = User(
            email=f"{uuid.uuid4().hex[:10]}@example.com",
            full_name=full_name,
            is_active=is_active,
        )
        session.add(user)
        await session.commit()
        return user


async def make_course(
    title: str = "Dasar Pemrograman Python", lessons_per_module: tuple[int, ...] = (2, 1)
) -> tuple[Course, list[uuid.UUID]]:
    """Create a course with active modules/lessons; returns it and its lesson ids."""
    async with async_session() as session:
        course = Course(title=title)
        session.add(course)
        await session.flush()
        lesson_ids = []
        for order, count in enumerate(lessons_per_module):
            module = Module(course_id=course.id, title=f"Modul {order + 1}", order_index=order)
            session.add(module)
            await session.flush()
            for i in range(count):
                lesson = Lesson(module_id=module.id, title=f"Pelajaran {i + 1}", order_index=i)
                session.add(lesson)
                await session.flush()
                lesson_ids.append(lesson.id)
        await session.commit()
        return course, lesson_ids


async def add_module(
    course_id: uuid.UUID,
    lessons: int = 1,
    *,
    module_active: bool = True,
    lessons_active: bool = True,
) -> list[uuid.UUID]:
    async with async_session() as session:
        module = Module(course_id=course_id, title="Tambahan", is_active=module_active)
        session.add(module)
        await session.flush()
        ids = []
        for i in range(lessons):
            lesson = Lesson(module_id=module.id, title=f"Ekstra {i + 1}", is_active=lessons_active)
            session.add(lesson)
            await session.flush()
            ids.append(lesson.id)
        await session.commit()
        return ids


async def complete_lessons(
    user_id: uuid.UUID,
    lesson_ids: list[uuid.UUID],
    *,
    completed: bool = True,
    at: datetime | None = None,
) -> None:
    async with async_session() as session:
        for lesson_id in lesson_ids:
            session.add(
                LessonProgress(
                    user_id=user_id,
                    lesson_id=lesson_id,
                    completed=completed,
                    completed_at=(at or datetime.now(timezone.utc)) if completed else None,
                )
            )
        await session.commit()


def auth_headers(user_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user_id))}"}


# --- Fake completion verifiers ---


class StaticVerifier(CompletionVerifier):
    def __init__(self, result: bool):
        self.result = result
        self.calls = 0

    async def is_complete(self, db, user_id, course_id) -> bool:
        self.calls += 1
        return self.result


class UnreachableVerifier(CompletionVerifier):
    async def is_complete(self, db, user_id, course_id) -> bool:
        raise OperationalError("SELECT 1", {}, Exception("database unreachable"))

    async def completed_courses(self, db, user_id):
        raise OperationalError("SELECT 1", {}, Exception("database unreachable"))


async def audit_entries(resource_type: str) -> list[AuditLog]:
    async with async_session() as session:
        result = await session.execute(
            select(AuditLog)
            .where(AuditLog.resource_type == resource_type)
            .order_by(AuditLog.timestamp)
        )
        return list(result.scalars().all())


async def revoke(token: str) -> None:
    """Blacklist a token the way the login service does on logout."""
    claims = decode_access_token(token)
    ttl = int(claims["exp"]) - int(datetime.now(timezone.utc).timestamp())
    r = await get_redis()
    await r.setex(revoked_key(claims["jti"]), max(ttl, 1), "1")
