from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shieldcuisine_api.core.deps import get_current_active_user, get_tenant_session, require_roles
from shieldcuisine_api.core.errors import NotFoundError
from shieldcuisine_api.db.models.elearning import Course
from shieldcuisine_api.db.models.security import User
from shieldcuisine_api.repositories.elearning import CourseRepository, EnrollmentRepository
from shieldcuisine_api.repositories.security import SecurityRepository
from shieldcuisine_api.schemas.auth import Message
from shieldcuisine_api.schemas.common import Page, page_of
from shieldcuisine_api.schemas.elearning import (
    CertificateDetail,
    CertificateRead,
    CourseCreate,
    CourseDetail,
    CourseProgress,
    CourseRead,
    CourseUpdate,
    EnrollmentDetail,
    EnrollmentRead,
    GeneratedLesson,
    GeneratedQuestions,
    GenerateLessonRequest,
    GenerateQuestionsRequest,
    LessonCreate,
    LessonRead,
    LessonUpdate,
    ModuleCreate,
    ModuleDetail,
    ModuleRead,
    ModuleUpdate,
    QuestionCreate,
    QuestionPublic,
    QuestionRead,
    QuestionUpdate,
    QuizCreate,
    QuizDetail,
    QuizRead,
    QuizResult,
    QuizSubmission,
    QuizUpdate,
)
from shieldcuisine_api.services.ai import ProviderRegistry, get_ai_providers
from shieldcuisine_api.services.elearning import ElearningAuthoring, ElearningService

router = APIRouter(prefix="/e-learning", tags=["E-learning"])

MANAGE_COURSES = require_roles("admin", "elearning:manage")


# Courses

# PUBLIC_INTERFACE
@router.get(
    "/courses",
    response_model=Page[CourseRead],
    summary="List courses",
    dependencies=[Depends(get_current_active_user)],
)
async def list_courses(
    session: AsyncSession = Depends(get_tenant_session),
    published: Optional[bool] = Query(None, description="Filter by publication state"),
    search: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    items, total = await CourseRepository(session).list_courses(
        published=published, search=search, limit=limit, offset=offset
    )
    return page_of([CourseRead.model_validate(c) for c in items], total, limit, offset)


async def _detail(service: ElearningService, course: Course) -> CourseDetail:
    lessons = await service.courses.list_lessons(course.id)
    return CourseDetail(
        **CourseRead.model_validate(course).model_dump(),
        lessons=[LessonRead.model_validate(lesson) for lesson in lessons],
    )


# PUBLIC_INTERFACE
@router.get(
    "/courses/{course_id}",
    response_model=CourseDetail,
    summary="Get course with lessons",
    dependencies=[Depends(get_current_active_user)],
)
async def get_course(
    course_id: UUID = Path(..., description="Course ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> CourseDetail:
    service = ElearningService(session)
    return await _detail(service, await service.require_course(course_id))


# PUBLIC_INTERFACE
@router.post(
    "/courses",
    response_model=CourseRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create course",
    dependencies=[Depends(MANAGE_COURSES)],
)
async def create_course(
    payload: CourseCreate,
    session: AsyncSession = Depends(get_tenant_session),
) -> CourseRead:
    course = await CourseRepository(session).save(Course(**payload.model_dump()))
    return CourseRead.model_validate(course)


# PUBLIC_INTERFACE
@router.patch(
    "/courses/{course_id}",
    response_model=CourseRead,
    summary="Update course",
    dependencies=[Depends(MANAGE_COURSES)],
)
async def update_course(
    payload: CourseUpdate,
    course_id: UUID = Path(..., description="Course ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> CourseRead:
    service = ElearningService(session)
    course = await service.require_course(course_id)
    service.courses.apply_changes(course, payload.model_dump(exclude_unset=True))
    await service.courses.commit()
    await session.refresh(course)
    return CourseRead.model_validate(course)


# PUBLIC_INTERFACE
@router.delete(
    "/courses/{course_id}",
    response_model=Message,
    summary="Delete course",
    description="Modules, lessons, quizzes, enrollments, progress and certificates of the course are removed too.",
    dependencies=[Depends(MANAGE_COURSES)],
)
async def delete_course(
    course_id: UUID = Path(..., description="Course ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> Message:
    await ElearningService(session).delete_course(course_id)
    return Message(message="Course deleted")


# Lessons

# PUBLIC_INTERFACE
@router.get(
    "/courses/{course_id}/lessons",
    response_model=List[LessonRead],
    summary="List lessons of a course",
    dependencies=[Depends(get_current_active_user)],
)
async def list_lessons(
    course_id: UUID = Path(..., description="Course ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[LessonRead]:
    service = ElearningService(session)
    await service.require_course(course_id)
    return [LessonRead.model_validate(lesson) for lesson in await service.courses.list_lessons(course_id)]


# PUBLIC_INTERFACE
@router.post(
    "/courses/{course_id}/lessons",
    response_model=LessonRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add lesson",
    dependencies=[Depends(MANAGE_COURSES)],
)
async def create_lesson(
    payload: LessonCreate,
    course_id: UUID = Path(..., description="Course ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> LessonRead:
    lesson = await ElearningService(session).add_lesson(course_id, payload.model_dump())
    return LessonRead.model_validate(lesson)


# PUBLIC_INTERFACE
@router.patch(
    "/lessons/{lesson_id}",
    response_model=LessonRead,
    summary="Update lesson",
    dependencies=[Depends(MANAGE_COURSES)],
)
async def update_lesson(
    payload: LessonUpdate,
    lesson_id: UUID = Path(..., description="Lesson ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> LessonRead:
    service = ElearningService(session)
    lesson = await service.require_lesson(lesson_id)
    # module_id may be cleared with null; other fields ignore nulls
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None or k == "module_id"}
    await service.check_module(lesson.course_id, changes.get("module_id"))
    service.courses.apply_changes(lesson, changes)
    await service.courses.commit()
    await session.refresh(lesson)
    return LessonRead.model_validate(lesson)


# PUBLIC_INTERFACE
@router.delete(
    "/lessons/{lesson_id}",
    response_model=Message,
    summary="Delete lesson",
    dependencies=[Depends(MANAGE_COURSES)],
)
async def delete_lesson(
    lesson_id: UUID = Path(..., description="Lesson ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> Message:
    service = ElearningService(session)
    lesson = await service.require_lesson(lesson_id)
    await service.enrollments.drop_lesson_progress(lesson_id)
    await service.courses.delete(lesson)
    return Message(message="Lesson deleted")


# PUBLIC_INTERFACE
@router.post(
    "/lessons/{lesson_id}/complete",
    response_model=EnrollmentRead,
    summary="Mark lesson as completed",
    description="The user must be enrolled in the course (403 otherwise). Completing every lesson issues the certificate.",
)
async def complete_lesson(
    lesson_id: UUID = Path(..., description="Lesson ID"),
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> EnrollmentRead:
    enrollment = await ElearningService(session).complete_lesson(lesson_id, user.id)
    return EnrollmentRead.model_validate(enrollment)


# Enrollment

# PUBLIC_INTERFACE
@router.post(
    "/courses/{course_id}/enroll",
    response_model=EnrollmentRead,
    summary="Enroll in course",
    description="Enrolling twice returns the existing enrollment.",
)
async def enroll(
    course_id: UUID = Path(..., description="Course ID"),
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> EnrollmentRead:
    return EnrollmentRead.model_validate(await ElearningService(session).enroll(course_id, user.id))


# PUBLIC_INTERFACE
@router.delete(
    "/courses/{course_id}/enroll",
    response_model=Message,
    summary="Leave course",
)
async def unenroll(
    course_id: UUID = Path(..., description="Course ID"),
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> Message:
    await ElearningService(session).unenroll(course_id, user.id)
    return Message(message="Enrollment removed")


# PUBLIC_INTERFACE
@router.get(
    "/my-enrollments",
    response_model=List[EnrollmentDetail],
    summary="Current user's enrollments",
)
async def my_enrollments(
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[EnrollmentDetail]:
    service = ElearningService(session)
    out: List[EnrollmentDetail] = []
    for enrollment in await EnrollmentRepository(session).list_for_user(user.id):
        course = await service.courses.get_course(enrollment.course_id)
        out.append(
            EnrollmentDetail(
                **EnrollmentRead.model_validate(enrollment).model_dump(),
                course=CourseRead.model_validate(course) if course else None,
                completed_lessons=await service.lesson_ids_done(enrollment),
            )
        )
    return out


# PUBLIC_INTERFACE
@router.get(
    "/courses/{course_id}/enrollments",
    response_model=Page[EnrollmentRead],
    summary="Enrollments of a course",
    dependencies=[Depends(MANAGE_COURSES)],
)
async def course_enrollments(
    course_id: UUID = Path(..., description="Course ID"),
    session: AsyncSession = Depends(get_tenant_session),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    service = ElearningService(session)
    await service.require_course(course_id)
    items, total = await service.enrollments.list_for_course(course_id, limit=limit, offset=offset)
    return page_of([EnrollmentRead.model_validate(e) for e in items], total, limit, offset)


# PUBLIC_INTERFACE
@router.get(
    "/courses/{course_id}/progress",
    response_model=CourseProgress,
    summary="Current user's progress in a course",
    description="403 when the user is not enrolled in the course.",
)
async def course_progress(
    course_id: UUID = Path(..., description="Course ID"),
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> CourseProgress:
    return await ElearningService(session).course_progress(course_id, user.id)


# Modules

# PUBLIC_INTERFACE
@router.get(
    "/courses/{course_id}/modules",
    response_model=List[ModuleRead],
    summary="List modules of a course",
    dependencies=[Depends(get_current_active_user)],
)
async def list_modules(
    course_id: UUID = Path(..., description="Course ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[ModuleRead]:
    service = ElearningService(session)
    await service.require_course(course_id)
    return [ModuleRead.model_validate(m) for m in await service.courses.list_modules(course_id)]


# PUBLIC_INTERFACE
@router.get(
    "/modules/{module_id}",
    response_model=ModuleDetail,
    summary="Get module with its lessons",
    dependencies=[Depends(get_current_active_user)],
)
async def get_module(
    module_id: UUID = Path(..., description="Module ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> ModuleDetail:
    service = ElearningService(session)
    module = await service.require_module(module_id)
    lessons = await service.courses.list_module_lessons(module.id)
    return ModuleDetail(
        **ModuleRead.model_validate(module).model_dump(),
        lessons=[LessonRead.model_validate(lesson) for lesson in lessons],
    )


# PUBLIC_INTERFACE
@router.post(
    "/courses/{course_id}/modules",
    response_model=ModuleRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add module",
    dependencies=[Depends(MANAGE_COURSES)],
)
async def create_module(
    payload: ModuleCreate,
    course_id: UUID = Path(..., description="Course ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> ModuleRead:
    module = await ElearningService(session).add_module(course_id, payload.model_dump())
    return ModuleRead.model_validate(module)


# PUBLIC_INTERFACE
@router.patch(
    "/modules/{module_id}",
    response_model=ModuleRead,
    summary="Update module",
    dependencies=[Depends(MANAGE_COURSES)],
)
async def update_module(
    payload: ModuleUpdate,
    module_id: UUID = Path(..., description="Module ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> ModuleRead:
    service = ElearningService(session)
    module = await service.require_module(module_id)
    service.courses.apply_changes(module, payload.model_dump(exclude_unset=True, exclude_none=True))
    await service.courses.commit()
    await session.refresh(module)
    return ModuleRead.model_validate(module)


# PUBLIC_INTERFACE
@router.delete(
    "/modules/{module_id}",
    response_model=Message,
    summary="Delete module",
    description="Lessons and quizzes of the module stay in the course without a module.",
    dependencies=[Depends(MANAGE_COURSES)],
)
async def delete_module(
    module_id: UUID = Path(..., description="Module ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> Message:
    await ElearningService(session).delete_module(module_id)
    return Message(message="Module deleted")


# Quizzes

# PUBLIC_INTERFACE
@router.get(
    "/courses/{course_id}/quizzes",
    response_model=List[QuizRead],
    summary="List quizzes of a course",
    dependencies=[Depends(get_current_active_user)],
)
async def list_quizzes(
    course_id: UUID = Path(..., description="Course ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[QuizRead]:
    service = ElearningService(session)
    await service.require_course(course_id)
    return [QuizRead.model_validate(q) for q in await service.courses.list_quizzes(course_id)]


# PUBLIC_INTERFACE
@router.get(
    "/quizzes/{quiz_id}",
    response_model=QuizDetail,
    summary="Get quiz",
    description="Questions are listed without their correct answers.",
    dependencies=[Depends(get_current_active_user)],
)
async def get_quiz(
    quiz_id: UUID = Path(..., description="Quiz ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> QuizDetail:
    service = ElearningService(session)
    quiz = await service.require_quiz(quiz_id)
    questions = await service.courses.list_questions(quiz.id)
    return QuizDetail(
        **QuizRead.model_validate(quiz).model_dump(),
        questions=[
            QuestionPublic(id=q.id, question=q.question, options=[o["text"] for o in q.options], points=q.points)
            for q in questions
        ],
    )


# PUBLIC_INTERFACE
@router.post(
    "/courses/{course_id}/quizzes",
    response_model=QuizRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add quiz",
    dependencies=[Depends(MANAGE_COURSES)],
)
async def create_quiz(
    payload: QuizCreate,
    course_id: UUID = Path(..., description="Course ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> QuizRead:
    quiz = await ElearningService(session).add_quiz(course_id, payload.model_dump())
    return QuizRead.model_validate(quiz)


# PUBLIC_INTERFACE
@router.patch(
    "/quizzes/{quiz_id}",
    response_model=QuizRead,
    summary="Update quiz",
    dependencies=[Depends(MANAGE_COURSES)],
)
async def update_quiz(
    payload: QuizUpdate,
    quiz_id: UUID = Path(..., description="Quiz ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> QuizRead:
    service = ElearningService(session)
    quiz = await service.require_quiz(quiz_id)
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None or k == "module_id"}
    await service.check_module(quiz.course_id, changes.get("module_id"))
    service.courses.apply_changes(quiz, changes)
    await service.courses.commit()
    await session.refresh(quiz)
    return QuizRead.model_validate(quiz)


# PUBLIC_INTERFACE
@router.delete(
    "/quizzes/{quiz_id}",
    response_model=Message,
    summary="Delete quiz",
    description="Questions and attempts of the quiz are removed too.",
    dependencies=[Depends(MANAGE_COURSES)],
)
async def delete_quiz(
    quiz_id: UUID = Path(..., description="Quiz ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> Message:
    await ElearningService(session).delete_quiz(quiz_id)
    return Message(message="Quiz deleted")


# PUBLIC_INTERFACE
@router.post(
    "/quizzes/{quiz_id}/submit",
    response_model=QuizResult,
    summary="Submit quiz answers",
    description=(
        "answers maps question ids to the index of the chosen option. The score is the share of "
        "points earned, rounded down; the quiz is passed at or above its passing_score."
    ),
)
async def submit_quiz(
    payload: QuizSubmission,
    quiz_id: UUID = Path(..., description="Quiz ID"),
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> QuizResult:
    return await ElearningService(session).submit_quiz(quiz_id, user.id, payload.answers)


# Questions

# PUBLIC_INTERFACE
@router.get(
    "/quizzes/{quiz_id}/questions",
    response_model=List[QuestionRead],
    summary="List questions with answers",
    dependencies=[Depends(MANAGE_COURSES)],
)
async def list_questions(
    quiz_id: UUID = Path(..., description="Quiz ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[QuestionRead]:
    service = ElearningService(session)
    await service.require_quiz(quiz_id)
    return [QuestionRead.model_validate(q) for q in await service.courses.list_questions(quiz_id)]


# PUBLIC_INTERFACE
@router.post(
    "/quizzes/{quiz_id}/questions",
    response_model=QuestionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add question",
    dependencies=[Depends(MANAGE_COURSES)],
)
async def create_question(
    payload: QuestionCreate,
    quiz_id: UUID = Path(..., description="Quiz ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> QuestionRead:
    question = await ElearningService(session).add_question(quiz_id, payload.model_dump())
    return QuestionRead.model_validate(question)


# PUBLIC_INTERFACE
@router.patch(
    "/questions/{question_id}",
    response_model=QuestionRead,
    summary="Update question",
    dependencies=[Depends(MANAGE_COURSES)],
)
async def update_question(
    payload: QuestionUpdate,
    question_id: UUID = Path(..., description="Question ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> QuestionRead:
    service = ElearningService(session)
    question = await service.require_question(question_id)
    service.courses.apply_changes(question, payload.model_dump(exclude_unset=True, exclude_none=True))
    await service.courses.commit()
    await session.refresh(question)
    return QuestionRead.model_validate(question)


# PUBLIC_INTERFACE
@router.delete(
    "/questions/{question_id}",
    response_model=Message,
    summary="Delete question",
    dependencies=[Depends(MANAGE_COURSES)],
)
async def delete_question(
    question_id: UUID = Path(..., description="Question ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> Message:
    service = ElearningService(session)
    await service.courses.delete(await service.require_question(question_id))
    return Message(message="Question deleted")


# Certificates

# PUBLIC_INTERFACE
@router.get(
    "/my-certificates",
    response_model=List[CertificateRead],
    summary="Current user's certificates",
)
async def my_certificates(
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[CertificateRead]:
    certificates = await EnrollmentRepository(session).list_certificates(user.id)
    return [CertificateRead.model_validate(c) for c in certificates]


# PUBLIC_INTERFACE
@router.get(
    "/certificates/{code}",
    response_model=CertificateDetail,
    summary="Look up a certificate by code",
    dependencies=[Depends(get_current_active_user)],
)
async def get_certificate(
    code: str = Path(..., description="Certificate code"),
    session: AsyncSession = Depends(get_tenant_session),
) -> CertificateDetail:
    certificate = await EnrollmentRepository(session).get_certificate_by_code(code)
    if certificate is None:
        raise NotFoundError("Certificado no encontrado")
    course = await CourseRepository(session).get_course(certificate.course_id)
    holder = await SecurityRepository(session).get_user_by_id(certificate.user_id)
    return CertificateDetail(
        **CertificateRead.model_validate(certificate).model_dump(),
        course_title=course.title if course else None,
        holder_name=(holder.full_name or holder.username) if holder else None,
    )


# AI authoring

# PUBLIC_INTERFACE
@router.post(
    "/ai/generate-lesson",
    response_model=GeneratedLesson,
    summary="Draft a lesson with AI",
    description="Returns a draft only; save it with POST /courses/{course_id}/lessons.",
    dependencies=[Depends(MANAGE_COURSES)],
)
async def generate_lesson(
    payload: GenerateLessonRequest,
    session: AsyncSession = Depends(get_tenant_session),
    registry: ProviderRegistry = Depends(get_ai_providers),
) -> GeneratedLesson:
    return await ElearningAuthoring(session, registry.get(payload.provider)).generate_lesson(payload)


# PUBLIC_INTERFACE
@router.post(
    "/ai/generate-quiz-questions",
    response_model=GeneratedQuestions,
    summary="Draft quiz questions with AI",
    description="Returns drafts only; save them with POST /quizzes/{quiz_id}/questions.",
    dependencies=[Depends(MANAGE_COURSES)],
)
async def generate_quiz_questions(
    payload: GenerateQuestionsRequest,
    session: AsyncSession = Depends(get_tenant_session),
    registry: ProviderRegistry = Depends(get_ai_providers),
) -> GeneratedQuestions:
    return await ElearningAuthoring(session, registry.get(payload.provider)).generate_questions(payload)
