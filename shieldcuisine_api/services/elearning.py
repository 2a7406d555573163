from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import ValidationError

from shieldcuisine_api.core.errors import ForbiddenError, NotFoundError, UpstreamError, ValidationFailed
from shieldcuisine_api.db.base import utcnow
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
from shieldcuisine_api.repositories.elearning import CourseRepository, EnrollmentRepository
from shieldcuisine_api.schemas.elearning import (
    CourseProgress,
    GeneratedLesson,
    GeneratedQuestions,
    GenerateLessonRequest,
    GenerateQuestionsRequest,
    QuestionCreate,
    QuizResult,
)
from shieldcuisine_api.services.ai import AIProvider
from shieldcuisine_api.services.base import BaseService
from shieldcuisine_api.services.notifications import NotificationService

logger = logging.getLogger(__name__)

NO_ACCESS = "No tienes acceso a este curso"


# PUBLIC_INTERFACE
def progress_percent(completed: int, total: int) -> int:
    """Completed lessons over total lessons, as a percentage rounded down."""
    if total <= 0:
        return 0
    return min(100, completed * 100 // total)


# PUBLIC_INTERFACE
def score_answers(questions: List[QuizQuestion], answers: Dict[UUID, int]) -> tuple[int, int]:
    """
    Score chosen option indexes against the questions.

    Returns (score, correct_answers); score is earned points over total points,
    as a percentage rounded down. Unanswered or out of range answers earn nothing.
    """
    total_points = sum(q.points or 1 for q in questions)
    earned = 0
    correct = 0
    for question in questions:
        choice = answers.get(question.id)
        options = question.options or []
        if choice is not None and 0 <= choice < len(options) and options[choice].get("is_correct"):
            earned += question.points or 1
            correct += 1
    score = earned * 100 // total_points if total_points else 0
    return score, correct


def new_certificate_code() -> str:
    return f"SC-{uuid.uuid4().hex[:12].upper()}"


class ElearningService(BaseService):
    """Course content, enrollment, lesson progress, quizzes and certificates."""

    def __init__(self, session) -> None:
        super().__init__(session)
        self.courses = CourseRepository(session)
        self.enrollments = EnrollmentRepository(session)

    async def require_course(self, course_id: UUID) -> Course:
        course = await self.courses.get_course(course_id)
        if course is None:
            raise NotFoundError("Course not found")
        return course

    async def require_lesson(self, lesson_id: UUID) -> Lesson:
        lesson = await self.courses.get_lesson(lesson_id)
        if lesson is None:
            raise NotFoundError("Lesson not found")
        return lesson

    async def require_module(self, module_id: UUID) -> CourseModule:
        module = await self.courses.get_module(module_id)
        if module is None:
            raise NotFoundError("Module not found")
        return module

    async def require_quiz(self, quiz_id: UUID) -> Quiz:
        quiz = await self.courses.get_quiz(quiz_id)
        if quiz is None:
            raise NotFoundError("Quiz not found")
        return quiz

    async def require_question(self, question_id: UUID) -> QuizQuestion:
        question = await self.courses.get_question(question_id)
        if question is None:
            raise NotFoundError("Question not found")
        return question

    async def require_enrollment(self, course_id: UUID, user_id: UUID) -> Enrollment:
        enrollment = await self.enrollments.get_enrollment(course_id, user_id)
        if enrollment is None:
            raise ForbiddenError(NO_ACCESS)
        return enrollment

    async def check_module(self, course_id: UUID, module_id: Optional[UUID]) -> None:
        """A lesson or quiz may only point at a module of its own course."""
        if module_id is None:
            return
        module = await self.courses.get_module(module_id)
        if module is None or module.course_id != course_id:
            raise ValidationFailed("The module does not belong to this course")

    # PUBLIC_INTERFACE
    async def add_module(self, course_id: UUID, values: dict) -> CourseModule:
        """Create a module; without an explicit order_index it is appended at the end."""
        await self.require_course(course_id)
        if values.get("order_index") is None:
            values["order_index"] = await self.courses.count_modules(course_id)
        return await self.courses.save(CourseModule(course_id=course_id, **values))

    # PUBLIC_INTERFACE
    async def delete_module(self, module_id: UUID) -> None:
        """Remove a module; its lessons and quizzes stay in the course, unassigned."""
        module = await self.require_module(module_id)
        await self.courses.detach_module(module.id)
        await self.courses.delete(module)

    # PUBLIC_INTERFACE
    async def add_lesson(self, course_id: UUID, values: dict) -> Lesson:
        """Create a lesson; without an explicit order_index it is appended at the end."""
        await self.require_course(course_id)
        await self.check_module(course_id, values.get("module_id"))
        if values.get("order_index") is None:
            values["order_index"] = await self.courses.count_lessons(course_id)
        return await self.courses.save(Lesson(course_id=course_id, **values))

    # PUBLIC_INTERFACE
    async def add_quiz(self, course_id: UUID, values: dict) -> Quiz:
        await self.require_course(course_id)
        await self.check_module(course_id, values.get("module_id"))
        return await self.courses.save(Quiz(course_id=course_id, **values))

    # PUBLIC_INTERFACE
    async def delete_quiz(self, quiz_id: UUID) -> None:
        """Remove a quiz with its questions and attempts."""
        quiz = await self.require_quiz(quiz_id)
        await self.courses.drop_quiz_content([quiz.id])
        await self.courses.delete(quiz)

    # PUBLIC_INTERFACE
    async def add_question(self, quiz_id: UUID, values: dict) -> QuizQuestion:
        """Create a question; without an explicit order_index it is appended at the end."""
        await self.require_quiz(quiz_id)
        if values.get("order_index") is None:
            values["order_index"] = await self.courses.count_questions(quiz_id)
        return await self.courses.save(QuizQuestion(quiz_id=quiz_id, **values))

    # PUBLIC_INTERFACE
    async def delete_course(self, course_id: UUID) -> None:
        """Remove a course with everything hanging from it."""
        course = await self.require_course(course_id)
        await self.enrollments.drop_course_enrollments(course.id)
        await self.courses.drop_course_content(course.id)
        await self.courses.delete(course)

    # PUBLIC_INTERFACE
    async def enroll(self, course_id: UUID, user_id: UUID) -> Enrollment:
        """Enroll a user; enrolling twice returns the existing enrollment."""
        await self.require_course(course_id)
        existing = await self.enrollments.get_enrollment(course_id, user_id)
        if existing is not None:
            return existing
        enrollment = Enrollment(course_id=course_id, user_id=user_id, status="enrolled", progress=0)
        return await self.enrollments.save(enrollment)

    # PUBLIC_INTERFACE
    async def unenroll(self, course_id: UUID, user_id: UUID) -> None:
        enrollment = await self.enrollments.get_enrollment(course_id, user_id)
        if enrollment is None:
            raise NotFoundError("Enrollment not found")
        await self.enrollments.delete(enrollment)

    # PUBLIC_INTERFACE
    async def complete_lesson(self, lesson_id: UUID, user_id: UUID) -> Enrollment:
        """
        Mark a lesson as done for an enrolled user and recompute course progress.

        Users not enrolled in the course get a 403. Completing every lesson
        completes the enrollment, issues the certificate and sends a learning
        notification.
        """
        lesson = await self.require_lesson(lesson_id)
        course = await self.require_course(lesson.course_id)
        enrollment = await self.require_enrollment(course.id, user_id)

        if await self.enrollments.get_progress(enrollment.id, lesson.id) is None:
            await self.enrollments.add(
                LessonProgress(enrollment_id=enrollment.id, lesson_id=lesson.id, completed_at=utcnow())
            )
            await self.session.flush()

        total = await self.courses.count_lessons(course.id)
        done = await self.enrollments.count_completed_lessons(enrollment.id, course.id)
        enrollment.progress = progress_percent(done, total)
        just_completed = total > 0 and done >= total and enrollment.status != "completed"
        certificate = None
        if just_completed:
            enrollment.status = "completed"
            enrollment.completed_at = utcnow()
            certificate = await self.enrollments.get_certificate(course.id, user_id)
            if certificate is None:
                certificate = Certificate(
                    course_id=course.id, user_id=user_id, code=new_certificate_code(), issued_at=utcnow()
                )
                await self.enrollments.add(certificate)
        await self.commit_and_refresh(enrollment)

        if just_completed:
            logger.info("User %s completed course %s (certificate %s)", user_id, course.id, certificate.code)
            await NotificationService(self.session).notify(
                [user_id],
                type="learning",
                title="Curso completado",
                message=f"Has completado el curso «{course.title}». Certificado {certificate.code}.",
                link=f"/e-learning/certificates/{certificate.code}",
            )
        return enrollment

    # PUBLIC_INTERFACE
    async def course_progress(self, course_id: UUID, user_id: UUID) -> CourseProgress:
        """Progress of an enrolled user in a course; 403 when not enrolled."""
        await self.require_course(course_id)
        enrollment = await self.require_enrollment(course_id, user_id)
        total = await self.courses.count_lessons(course_id)
        done_ids = await self.lesson_ids_done(enrollment)
        done = await self.enrollments.count_completed_lessons(enrollment.id, course_id)
        return CourseProgress(
            course_id=course_id,
            status=enrollment.status,
            course_progress=progress_percent(done, total),
            completed_lessons=done,
            total_lessons=total,
            completed_lesson_ids=done_ids,
            passed_quizzes=await self.enrollments.passed_quiz_ids(user_id, course_id),
        )

    # PUBLIC_INTERFACE
    async def submit_quiz(self, quiz_id: UUID, user_id: UUID, answers: Dict[UUID, int]) -> QuizResult:
        """Score a quiz submission of an enrolled user and store the attempt."""
        quiz = await self.require_quiz(quiz_id)
        await self.require_enrollment(quiz.course_id, user_id)
        questions = await self.courses.list_questions(quiz.id)
        if not questions:
            raise ValidationFailed("The quiz has no questions")

        score, correct = score_answers(questions, answers)
        attempt = QuizAttempt(
            quiz_id=quiz.id,
            user_id=user_id,
            answers={str(k): v for k, v in answers.items()},
            score=score,
            passed=score >= quiz.passing_score,
        )
        await self.courses.save(attempt)
        logger.info("User %s scored %s on quiz %s", user_id, score, quiz.id)
        return QuizResult(
            attempt_id=attempt.id,
            quiz_id=quiz.id,
            score=score,
            passed=attempt.passed,
            passing_score=quiz.passing_score,
            correct_answers=correct,
            total_questions=len(questions),
        )

    async def lesson_ids_done(self, enrollment: Optional[Enrollment]) -> list:
        if enrollment is None:
            return []
        return await self.enrollments.list_completed_lesson_ids(enrollment.id)


LESSON_SYSTEM_PROMPT = (
    "Eres un formador experto en seguridad alimentaria, higiene y APPCC para restaurantes. "
    "Escribe lecciones claras y prácticas para el personal de cocina. Responde siempre en JSON con "
    'la estructura: { "content": "HTML de la lección", "durationMinutes": número estimado }'
)
QUESTIONS_SYSTEM_PROMPT = (
    "Eres un formador experto en seguridad alimentaria, higiene y APPCC para restaurantes. "
    "Redacta preguntas de evaluación tipo test. Responde siempre en JSON con la estructura: "
    '{ "questions": [ { "question": "texto", "options": [ { "text": "opción", "isCorrect": true } ], '
    '"explanation": "por qué es correcta", "points": 1 } ] }. '
    "Cada pregunta tiene cuatro opciones y exactamente una correcta."
)


def _to_question(raw: Any) -> QuestionCreate:
    if not isinstance(raw, dict):
        raise UpstreamError("Invalid AI response format: question is not an object")
    options = [
        {"text": o.get("text"), "is_correct": bool(o.get("is_correct", o.get("isCorrect", False)))}
        for o in raw.get("options") or []
        if isinstance(o, dict)
    ]
    try:
        return QuestionCreate(
            question=raw.get("question") or "",
            options=options,
            explanation=raw.get("explanation"),
            points=raw.get("points") or 1,
        )
    except ValidationError as exc:
        raise UpstreamError("Invalid AI response format: malformed question", details=str(exc))


class ElearningAuthoring(BaseService):
    """Drafts lessons and quiz questions with a text generation provider."""

    def __init__(self, session, provider: AIProvider) -> None:
        super().__init__(session)
        self.provider = provider
        self.courses = CourseRepository(session)

    # PUBLIC_INTERFACE
    async def generate_lesson(self, request: GenerateLessonRequest) -> GeneratedLesson:
        course = await self.courses.get_course(request.course_id)
        if course is None:
            raise NotFoundError("Course not found")
        prompt = "\n".join(
            [
                f"Curso: {course.title}",
                f"Descripción del curso: {course.description or '-'}",
                f"Título de la lección: {request.title}",
                "",
                request.prompt,
            ]
        )
        logger.info("Requesting lesson draft for course %s from %s", course.id, self.provider.name)
        data = await self.provider.complete_json(LESSON_SYSTEM_PROMPT, prompt, temperature=0.7)
        content = data.get("content")
        if not isinstance(content, str) or not content.strip():
            raise UpstreamError('Invalid AI response format: missing "content" field')
        duration = data.get("durationMinutes", data.get("duration_minutes"))
        try:
            duration = int(duration) if duration is not None else None
        except (TypeError, ValueError):
            duration = None
        return GeneratedLesson(course_id=course.id, title=request.title, content=content, duration_minutes=duration)

    # PUBLIC_INTERFACE
    async def generate_questions(self, request: GenerateQuestionsRequest) -> GeneratedQuestions:
        quiz = await self.courses.get_quiz(request.quiz_id)
        if quiz is None:
            raise NotFoundError("Quiz not found")
        course = await self.courses.get_course(quiz.course_id)
        prompt = "\n".join(
            [
                f"Curso: {course.title if course else '-'}",
                f"Evaluación: {quiz.title}",
                f"Tema: {request.topic}",
                f"Número de preguntas: {request.number_of_questions}",
            ]
        )
        logger.info(
            "Requesting %d questions for quiz %s from %s", request.number_of_questions, quiz.id, self.provider.name
        )
        data = await self.provider.complete_json(QUESTIONS_SYSTEM_PROMPT, prompt, temperature=0.7)
        raw = data.get("questions")
        if not isinstance(raw, list) or not raw:
            raise UpstreamError('Invalid AI response format: missing "questions" field')
        questions = [_to_question(item) for item in raw[: request.number_of_questions]]
        return GeneratedQuestions(quiz_id=quiz.id, questions=questions)
