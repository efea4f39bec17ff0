"""Course completion checks.

A course is complete for a user when it has at least one active lesson inside
an active module and every such lesson has a ``completed`` progress record
for that user. Inactive modules hide all of their lessons, whatever the
lessons' own flag says.

Data access errors are never folded into a ``False`` answer; they propagate
to the caller.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.courses.models import Course, Lesson, LessonProgress, Module


@dataclass(frozen=True)
class CourseCompletion:
    course_id: uuid.UUID
    course_title: str
    total_lessons: int
    completed_lessons: int
    last_completed_at: datetime | None


def _active_lessons():
    return (
        select(Lesson.id, Module.course_id)
        .join(Module, Lesson.module_id == Module.id)
        .where(Module.is_active.is_(True), Lesson.is_active.is_(True))
    )


class CompletionVerifier:
    """Answers "has this user finished every lesson of this course?"."""

    async def is_complete(
        self, db: AsyncSession, user_id: uuid.UUID, course_id: uuid.UUID
    ) -> bool:
        active = _active_lessons().where(Module.course_id == course_id).subquery()

        total = (
            await db.execute(select(func.count()).select_from(active))
        ).scalar_one()
        if total == 0:
            return False

        done = (
            await db.execute(
                select(func.count(LessonProgress.id))
                .join(active, LessonProgress.lesson_id == active.c.id)
                .where(
                    LessonProgress.user_id == user_id,
                    LessonProgress.completed.is_(True),
                )
            )
        ).scalar_one()
        return done >= total

    async def completed_courses(
        self, db: AsyncSession, user_id: uuid.UUID
    ) -> list[CourseCompletion]:
        """Every course the user has completed, ordered by title."""
        active = _active_lessons().subquery()

        totals_result = await db.execute(
            select(active.c.course_id, func.count(active.c.id)).group_by(
                active.c.course_id
            )
        )
        totals = {row[0]: row[1] for row in totals_result.all()}
        if not totals:
            return []

        done_result = await db.execute(
            select(
                active.c.course_id,
                func.count(LessonProgress.id),
                func.max(LessonProgress.completed_at),
            )
            .join(active, LessonProgress.lesson_id == active.c.id)
            .where(
                LessonProgress.user_id == user_id,
                LessonProgress.completed.is_(True),
            )
            .group_by(active.c.course_id)
        )
        done = {row[0]: (row[1], row[2]) for row in done_result.all()}

        finished_ids = [
            course_id
            for course_id, total in totals.items()
            if course_id in done and done[course_id][0] >= total
        ]
        if not finished_ids:
            return []

        courses_result = await db.execute(
            select(Course.id, Course.title)
            .where(Course.id.in_(finished_ids))
            .order_by(Course.title)
        )
        return [
            CourseCompletion(
                course_id=course_id,
                course_title=title,
                total_lessons=totals[course_id],
                completed_lessons=done[course_id][0],
                last_completed_at=done[course_id][1],
            )
            for course_id, title in courses_result.all()
        ]


_default_verifier = CompletionVerifier()


def get_completion_verifier() -> CompletionVerifier:
    """FastAPI dependency; override in tests to inject a fake verifier."""
    return _default_verifier
