from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

Level = Literal["beginner", "intermediate", "advanced"]


class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    level: Level = "beginner"
    duration_minutes: Optional[int] = Field(None, ge=0)
    is_published: bool = False
    thumbnail: Optional[str] = None


class CourseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    level: Optional[Level] = None
    duration_minutes: Optional[int] = Field(None, ge=0)
    is_published: Optional[bool] = None
    thumbnail: Optional[str] = None


class LessonCreate(BaseModel):
    title: str = Field(..., min_length=1)
    content: Optional[str] = None
    module_id: Optional[UUID] = None
    order_index: Optional[int] = Field(None, ge=0, description="Appended at the end when omitted")
    duration_minutes: Optional[int] = Field(None, ge=0)


class LessonUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    content: Optional[str] = None
    module_id: Optional[UUID] = None
    order_index: Optional[int] = Field(None, ge=0)
    duration_minutes: Optional[int] = Field(None, ge=0)


class LessonRead(BaseModel):
    """Read model for a lesson."""
    id: UUID
    course_id: UUID
    title: str
    content: Optional[str] = None
    module_id: Optional[UUID] = None
    order_index: int
    duration_minutes: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CourseRead(BaseModel):
    """Read model for a course."""
    id: UUID
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    level: str
    duration_minutes: Optional[int] = None
    is_published: bool
    thumbnail: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CourseDetail(CourseRead):
    lessons: List[LessonRead] = Field(default_factory=list)


class EnrollmentRead(BaseModel):
    """Read model for an enrollment."""
    id: UUID
    course_id: UUID
    user_id: UUID
    status: str
    progress: int = Field(..., ge=0, le=100)
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class EnrollmentDetail(EnrollmentRead):
    course: Optional[CourseRead] = None
    completed_lessons: List[UUID] = Field(default_factory=list)


class CourseProgress(BaseModel):
    """Progress of the current user in a course."""
    course_id: UUID
    status: str
    course_progress: int = Field(..., ge=0, le=100)
    completed_lessons: int
    total_lessons: int
    completed_lesson_ids: List[UUID] = Field(default_factory=list)
    passed_quizzes: List[UUID] = Field(default_factory=list)


# Modules

class ModuleCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    order_index: Optional[int] = Field(None, ge=0, description="Appended at the end when omitted")


class ModuleUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    order_index: Optional[int] = Field(None, ge=0)


class ModuleRead(BaseModel):
    id: UUID
    course_id: UUID
    title: str
    description: Optional[str] = None
    order_index: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ModuleDetail(ModuleRead):
    lessons: List[LessonRead] = Field(default_factory=list)


# Quizzes

class QuestionOption(BaseModel):
    text: str = Field(..., min_length=1)
    is_correct: bool = False


def _check_options(options: List[QuestionOption]) -> List[QuestionOption]:
    if len(options) < 2:
        raise ValueError("A question needs at least two options")
    if not any(o.is_correct for o in options):
        raise ValueError("At least one option must be correct")
    return options


class QuestionCreate(BaseModel):
    question: str = Field(..., min_length=1)
    options: List[QuestionOption]
    explanation: Optional[str] = None
    points: int = Field(1, ge=1)
    order_index: Optional[int] = Field(None, ge=0, description="Appended at the end when omitted")

    @field_validator("options")
    @classmethod
    def _valid_options(cls, v: List[QuestionOption]) -> List[QuestionOption]:
        return _check_options(v)


class QuestionUpdate(BaseModel):
    question: Optional[str] = Field(None, min_length=1)
    options: Optional[List[QuestionOption]] = None
    explanation: Optional[str] = None
    points: Optional[int] = Field(None, ge=1)
    order_index: Optional[int] = Field(None, ge=0)

    @field_validator("options")
    @classmethod
    def _valid_options(cls, v: Optional[List[QuestionOption]]) -> Optional[List[QuestionOption]]:
        if v is not None:
            _check_options(v)
        return v


class QuestionRead(BaseModel):
    """Full question, including the correct answers."""
    id: UUID
    quiz_id: UUID
    question: str
    options: List[QuestionOption]
    explanation: Optional[str] = None
    points: int
    order_index: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class QuestionPublic(BaseModel):
    """Question as shown to learners: option texts only."""
    id: UUID
    question: str
    options: List[str]
    points: int


class QuizCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    module_id: Optional[UUID] = None
    passing_score: int = Field(70, ge=0, le=100)


class QuizUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    module_id: Optional[UUID] = None
    passing_score: Optional[int] = Field(None, ge=0, le=100)


class QuizRead(BaseModel):
    """Read model for a quiz."""
    id: UUID
    course_id: UUID
    module_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    passing_score: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class QuizDetail(QuizRead):
    questions: List[QuestionPublic] = Field(default_factory=list)


class QuizSubmission(BaseModel):
    answers: Dict[UUID, int] = Field(
        default_factory=dict, description="Question id -> index of the chosen option"
    )


class QuizResult(BaseModel):
    attempt_id: UUID
    quiz_id: UUID
    score: int = Field(..., ge=0, le=100)
    passed: bool
    passing_score: int
    correct_answers: int
    total_questions: int


# Certificates

class CertificateRead(BaseModel):
    """Read model for a completion certificate."""
    id: UUID
    code: str
    course_id: UUID
    user_id: UUID
    issued_at: datetime

    class Config:
        from_attributes = True


class CertificateDetail(CertificateRead):
    course_title: Optional[str] = None
    holder_name: Optional[str] = None


# AI authoring

class GenerateLessonRequest(BaseModel):
    course_id: UUID
    title: str = Field(..., min_length=1)
    prompt: str = Field(..., min_length=1, description="What the lesson should cover")
    provider: Optional[str] = Field(None, description="openai | perplexity; default provider when omitted")


class GeneratedLesson(BaseModel):
    """Draft lesson; it is not saved until posted to the course."""
    course_id: UUID
    title: str
    content: str
    duration_minutes: Optional[int] = None


class GenerateQuestionsRequest(BaseModel):
    quiz_id: UUID
    topic: str = Field(..., min_length=1)
    number_of_questions: int = Field(5, ge=1, le=20)
    provider: Optional[str] = Field(None, description="openai | perplexity; default provider when omitted")


class GeneratedQuestions(BaseModel):
    """Draft questions; they are not saved until posted to the quiz."""
    quiz_id: UUID
    questions: List[QuestionCreate]
