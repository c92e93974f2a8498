"""
Adaptive Learning Engine - Assessment Repository
Question bank, assessments and attempts
"""
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from learning_engine.core.errors import NotFoundError
from learning_engine.models.assessment import Assessment, AssessmentAttempt, BankQuestion
from learning_engine.schemas.assessment import (
    AnswerRecord,
    AssessmentRead,
    AttemptRead,
    Question,
    QuestionCreate,
)


class AssessmentRepository(ABC):

    @abstractmethod
    async def add_question(self, question: QuestionCreate) -> Question:
        ...

    @abstractmethod
    async def bank_questions(self, subject_area: str) -> list[Question]:
        """Every bank question of a subject area in insertion order."""

    @abstractmethod
    async def create_assessment(
        self,
        title: str,
        kind: str,
        subject_area: str,
        questions: list[Question],
        time_limit: int,
        minimum_passing_score: float,
        max_attempts: Optional[int] = None,
        student_id: Optional[str] = None,
    ) -> AssessmentRead:
        ...

    @abstractmethod
    async def get_assessment(self, assessment_id: uuid.UUID) -> Optional[AssessmentRead]:
        ...

    @abstractmethod
    async def create_attempt(
        self,
        student_id: str,
        assessment_id: uuid.UUID,
        answers: list[AnswerRecord],
        score: float,
        passed: bool,
        submitted_at: datetime,
    ) -> AttemptRead:
        ...

    @abstractmethod
    async def get_attempt(self, attempt_id: uuid.UUID, for_update: bool = False) -> Optional[AttemptRead]:
        ...

    @abstractmethod
    async def count_attempts(self, student_id: str, assessment_id: uuid.UUID) -> int:
        ...

    @abstractmethod
    async def update_attempt(self, attempt_id: uuid.UUID, **fields: Any) -> AttemptRead:
        """Overwrite the given attempt fields (answers, score, passed, graded_by, analyzed_at)."""


class SqlAssessmentRepository(AssessmentRepository):

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add_question(self, question: QuestionCreate) -> Question:
        row = BankQuestion(
            subject_area=question.subject_area,
            topics=list(question.topics),
            difficulty_level=question.difficulty_level.value,
            question_type=question.question_type.value,
            question_text=question.question_text,
            options=question.options,
            correct_answer=question.correct_answer,
            explanation=question.explanation,
            points=question.points,
        )
        self.db.add(row)
        await self.db.flush()
        return Question.model_validate(row)

    async def bank_questions(self, subject_area: str) -> list[Question]:
        result = await self.db.execute(
            select(BankQuestion)
            .where(BankQuestion.subject_area == subject_area)
            .order_by(BankQuestion.created_at, BankQuestion.id)
        )
        return [Question.model_validate(row) for row in result.scalars().all()]

    async def create_assessment(
        self,
        title: str,
        kind: str,
        subject_area: str,
        questions: list[Question],
        time_limit: int,
        minimum_passing_score: float,
        max_attempts: Optional[int] = None,
        student_id: Optional[str] = None,
    ) -> AssessmentRead:
        row = Assessment(
            title=title,
            kind=kind,
            subject_area=subject_area,
            student_id=student_id,
            questions=[q.model_dump(mode="json") for q in questions],
            time_limit=time_limit,
            minimum_passing_score=minimum_passing_score,
            max_attempts=max_attempts,
        )
        self.db.add(row)
        await self.db.flush()
        return AssessmentRead.model_validate(row)

    async def get_assessment(self, assessment_id: uuid.UUID) -> Optional[AssessmentRead]:
        row = await self.db.get(Assessment, assessment_id)
        return AssessmentRead.model_validate(row) if row else None

    async def create_attempt(
        self,
        student_id: str,
        assessment_id: uuid.UUID,
        answers: list[AnswerRecord],
        score: float,
        passed: bool,
        submitted_at: datetime,
    ) -> AttemptRead:
        row = AssessmentAttempt(
            student_id=student_id,
            assessment_id=assessment_id,
            answers=[a.model_dump(mode="json") for a in answers],
            score=score,
            passed=passed,
            submitted_at=submitted_at,
        )
        self.db.add(row)
        await self.db.flush()
        return AttemptRead.model_validate(row)

    async def _get_attempt_row(self, attempt_id: uuid.UUID, for_update: bool = False):
        query = select(AssessmentAttempt).where(AssessmentAttempt.id == attempt_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_attempt(self, attempt_id: uuid.UUID, for_update: bool = False) -> Optional[AttemptRead]:
        row = await self._get_attempt_row(attempt_id, for_update)
        return AttemptRead.model_validate(row) if row else None

    async def count_attempts(self, student_id: str, assessment_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(AssessmentAttempt.id)).where(
                AssessmentAttempt.student_id == student_id,
                AssessmentAttempt.assessment_id == assessment_id,
            )
        )
        return result.scalar() or 0

    async def update_attempt(self, attempt_id: uuid.UUID, **fields: Any) -> AttemptRead:
        row = await self._get_attempt_row(attempt_id)
        if row is None:
            raise NotFoundError(f"Attempt {attempt_id} not found")
        if "answers" in fields:
            fields["answers"] = [
                a.model_dump(mode="json") if isinstance(a, AnswerRecord) else a
                for a in fields["answers"]
            ]
        for field, value in fields.items():
            setattr(row, field, value)
        await self.db.flush()
        return AttemptRead.model_validate(row)
