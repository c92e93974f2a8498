"""
Adaptive Learning Engine - Assessment Schemas
Pydantic schemas for questions, assessments and attempts
"""
import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from learning_engine.schemas.common import DifficultyLevel, QuestionType


class Question(BaseModel):
    """A question as stored in the bank and frozen into assessments."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    subject_area: str
    topics: list[str] = Field(default_factory=list)
    difficulty_level: DifficultyLevel
    question_type: QuestionType = QuestionType.MULTIPLE_CHOICE
    question_text: str
    options: Optional[list[str]] = None
    correct_answer: Any = None  # str, or list[str] for multi_select
    explanation: Optional[str] = None
    points: int = Field(default=1, ge=1)


class QuestionCreate(BaseModel):
    subject_area: str
    topics: list[str] = Field(default_factory=list)
    difficulty_level: DifficultyLevel
    question_type: QuestionType = QuestionType.MULTIPLE_CHOICE
    question_text: str
    options: Optional[list[str]] = None
    correct_answer: Any = None
    explanation: Optional[str] = None
    points: int = Field(default=1, ge=1)


class InitialAssessmentConfig(BaseModel):
    subject_area: str
    topics: list[str]
    question_count: int
    difficulty_levels: Optional[list[DifficultyLevel]] = None
    time_limit: Optional[int] = Field(default=None, gt=0)  # minutes


class PersonalizedAssessmentRequest(BaseModel):
    subject_area: str


class AssessmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    kind: str
    subject_area: str
    student_id: Optional[str] = None
    questions: list[Question]
    time_limit: int
    minimum_passing_score: float
    max_attempts: Optional[int] = None
    created_at: datetime


class AnswerSubmission(BaseModel):
    question_id: uuid.UUID
    student_answer: Any = None
    # Graders may award partial credit for free-text questions
    points_awarded: Optional[float] = Field(default=None, ge=0.0)


class AttemptSubmitRequest(BaseModel):
    answers: list[AnswerSubmission]


class AnswerRecord(BaseModel):
    question_id: uuid.UUID
    student_answer: Any = None
    is_correct: bool
    points_earned: float = Field(ge=0.0)
    points_possible: float = Field(gt=0.0)


class AttemptRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    student_id: str
    assessment_id: uuid.UUID
    answers: list[AnswerRecord]
    score: float
    passed: bool
    submitted_at: datetime
    analyzed_at: Optional[datetime] = None
    graded_by: Optional[str] = None


class ManualGradeRequest(BaseModel):
    """question_id -> points awarded by the instructor."""
    corrections: dict[uuid.UUID, float]


class QuestionAuthorRequest(BaseModel):
    subject_area: str
    topic: str
    difficulty_level: DifficultyLevel = DifficultyLevel.INTERMEDIATE
    count: int = Field(default=5, ge=1, le=20)
