from __future__ import annotations

from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, or_, update

from shieldcuisine_api.db.models.elearning import (
    Certificate,
    Course,
    CourseModule,
    Enrollment,
    Lesson,
    LessonProgress,
    Quiz,
    QuizAttempt,
    QuizQuestion,
)
from .base import BaseRepository


class CourseRepository(BaseRepository):
    """Repository for courses and their content: modules, lessons and quizzes."""

    async def list_courses(
        self, *, published: Optional[bool], search: Optional[str], limit: int, offset: int
    ) -> Tuple[List[Course], int]:
        stmt = self.scoped(Course)
        if published is not None:
            stmt = stmt.where(Course.is_published.is_(published))
        if search:
            like = f"%{search}%"
            stmt = stmt.where(or_(Course.title.ilike(like), Course.description.ilike(like)))
        return await self.paginate(stmt.order_by(Course.title), limit, offset)

    async def get_course(self, course_id: UUID) -> Optional[Course]:
        stmt = self.scoped(Course).where(Course.id == course_id)
        return await self.scalar_one_or_none(stmt)

    async def list_lessons(self, course_id: UUID) -> List[Lesson]:
        stmt = (
            self.scoped(Lesson)
            .where(Lesson.course_id == course_id)
            .order_by(Lesson.order_index, Lesson.created_at)
        )
        return list(await self.scalars(stmt))

    async def count_lessons(self, course_id: UUID) -> int:
        return await self.count(self.scoped(Lesson).where(Lesson.course_id == course_id))

    async def get_lesson(self, lesson_id: UUID) -> Optional[Lesson]:
        stmt = self.scoped(Lesson).where(Lesson.id == lesson_id)
        return await self.scalar_one_or_none(stmt)

    async def list_modules(self, course_id: UUID) -> List[CourseModule]:
        stmt = (
            self.scoped(CourseModule)
            .where(CourseModule.course_id == course_id)
            .order_by(CourseModule.order_index, CourseModule.created_at)
        )
        return list(await self.scalars(stmt))

    async def count_modules(self, course_id: UUID) -> int:
        return await self.count(self.scoped(CourseModule).where(CourseModule.course_id == course_id))

    async def get_module(self, module_id: UUID) -> Optional[CourseModule]:
        stmt = self.scoped(CourseModule).where(CourseModule.id == module_id)
        return await self.scalar_one_or_none(stmt)

    async def list_module_lessons(self, module_id: UUID) -> List[Lesson]:
        stmt = (
            self.scoped(Lesson)
            .where(Lesson.module_id == module_id)
            .order_by(Lesson.order_index, Lesson.created_at)
        )
        return list(await self.scalars(stmt))

    async def detach_module(self, module_id: UUID) -> None:
        """Unlink lessons and quizzes from a module about to be removed (no commit)."""
        for model in (Lesson, Quiz):
            await self.execute(
                update(model)
                .where(model.module_id == module_id, model.tenant_id == self.tenant_id)
                .values(module_id=None)
                .execution_options(synchronize_session=False)
            )

    async def list_quizzes(self, course_id: UUID) -> List[Quiz]:
        stmt = self.scoped(Quiz).where(Quiz.course_id == course_id).order_by(Quiz.created_at)
        return list(await self.scalars(stmt))

    async def get_quiz(self, quiz_id: UUID) -> Optional[Quiz]:
        stmt = self.scoped(Quiz).where(Quiz.id == quiz_id)
        return await self.scalar_one_or_none(stmt)

    async def list_questions(self, quiz_id: UUID) -> List[QuizQuestion]:
        stmt = (
            self.scoped(QuizQuestion)
            .where(QuizQuestion.quiz_id == quiz_id)
            .order_by(QuizQuestion.order_index, QuizQuestion.created_at)
        )
        return list(await self.scalars(stmt))

    async def count_questions(self, quiz_id: UUID) -> int:
        return await self.count(self.scoped(QuizQuestion).where(QuizQuestion.quiz_id == quiz_id))

    async def get_question(self, question_id: UUID) -> Optional[QuizQuestion]:
        stmt = self.scoped(QuizQuestion).where(QuizQuestion.id == question_id)
        return await self.scalar_one_or_none(stmt)

    async def drop_quiz_content(self, quiz_ids) -> None:
        """Remove questions and attempts of the given quizzes (no commit)."""
        for model in (QuizAttempt, QuizQuestion):
            await self.execute(
                delete(model)
                .where(model.quiz_id.in_(quiz_ids), model.tenant_id == self.tenant_id)
                .execution_options(synchronize_session=False)
            )

    async def drop_course_content(self, course_id: UUID) -> None:
        """Remove quizzes, lessons, modules and certificates of a course (no commit)."""
        quiz_ids = self.scoped(Quiz).where(Quiz.course_id == course_id).with_only_columns(Quiz.id)
        await self.drop_quiz_content(quiz_ids)
        for model in (Quiz, Lesson, CourseModule, Certificate):
            await self.execute(
                delete(model)
                .where(model.course_id == course_id, model.tenant_id == self.tenant_id)
                .execution_options(synchronize_session=False)
            )


class EnrollmentRepository(BaseRepository):
    """Repository for enrollments and lesson progress."""

    async def get_enrollment(self, course_id: UUID, user_id: UUID) -> Optional[Enrollment]:
        stmt = self.scoped(Enrollment).where(
            Enrollment.course_id == course_id, Enrollment.user_id == user_id
        )
        return await self.scalar_one_or_none(stmt)

    async def list_for_user(self, user_id: UUID) -> List[Enrollment]:
        stmt = self.scoped(Enrollment).where(Enrollment.user_id == user_id).order_by(
            Enrollment.created_at.desc()
        )
        return list(await self.scalars(stmt))

    async def get_progress(self, enrollment_id: UUID, lesson_id: UUID) -> Optional[LessonProgress]:
        stmt = self.scoped(LessonProgress).where(
            LessonProgress.enrollment_id == enrollment_id, LessonProgress.lesson_id == lesson_id
        )
        return await self.scalar_one_or_none(stmt)

    async def count_completed_lessons(self, enrollment_id: UUID, course_id: UUID) -> int:
        stmt = (
            self.scoped(LessonProgress)
            .join(Lesson, Lesson.id == LessonProgress.lesson_id)
            .where(LessonProgress.enrollment_id == enrollment_id, Lesson.course_id == course_id)
        )
        return await self.count(stmt)

    async def list_completed_lesson_ids(self, enrollment_id: UUID) -> List[UUID]:
        stmt = self.scoped(LessonProgress).where(LessonProgress.enrollment_id == enrollment_id)
        return [p.lesson_id for p in await self.scalars(stmt)]

    async def drop_lesson_progress(self, lesson_id: UUID) -> None:
        """Remove progress rows pointing at a lesson (no commit)."""
        stmt = delete(LessonProgress).where(
            LessonProgress.lesson_id == lesson_id, LessonProgress.tenant_id == self.tenant_id
        )
        await self.execute(stmt.execution_options(synchronize_session=False))

    async def drop_course_enrollments(self, course_id: UUID) -> None:
        """Remove enrollments of a course and their lesson progress (no commit)."""
        enrollment_ids = self.scoped(Enrollment).where(Enrollment.course_id == course_id).with_only_columns(
            Enrollment.id
        )
        await self.execute(
            delete(LessonProgress)
            .where(LessonProgress.enrollment_id.in_(enrollment_ids))
            .execution_options(synchronize_session=False)
        )
        await self.execute(
            delete(Enrollment)
            .where(Enrollment.course_id == course_id, Enrollment.tenant_id == self.tenant_id)
            .execution_options(synchronize_session=False)
        )

    async def list_for_course(
        self, course_id: UUID, *, limit: int, offset: int
    ) -> Tuple[List[Enrollment], int]:
        stmt = self.scoped(Enrollment).where(Enrollment.course_id == course_id).order_by(Enrollment.created_at)
        return await self.paginate(stmt, limit, offset)

    async def passed_quiz_ids(self, user_id: UUID, course_id: UUID) -> List[UUID]:
        stmt = (
            self.scoped(QuizAttempt)
            .join(Quiz, Quiz.id == QuizAttempt.quiz_id)
            .where(QuizAttempt.user_id == user_id, QuizAttempt.passed.is_(True), Quiz.course_id == course_id)
        )
        return sorted({a.quiz_id for a in await self.scalars(stmt)}, key=str)

    async def get_certificate(self, course_id: UUID, user_id: UUID) -> Optional[Certificate]:
        stmt = self.scoped(Certificate).where(Certificate.course_id == course_id, Certificate.user_id == user_id)
        return await self.scalar_one_or_none(stmt)

    async def get_certificate_by_code(self, code: str) -> Optional[Certificate]:
        stmt = self.scoped(Certificate).where(Certificate.code == code)
        return await self.scalar_one_or_none(stmt)

    async def list_certificates(self, user_id: UUID) -> List[Certificate]:
        stmt = self.scoped(Certificate).where(Certificate.user_id == user_id).order_by(Certificate.issued_at.desc())
        return list(await self.scalars(stmt))
