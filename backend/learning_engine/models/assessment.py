"""
Adaptive Learning Engine - Assessment Models
Question bank, generated assessments and graded attempts
"""
import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, Float, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from learning_engine.core.database import Base, JSONType, utcnow


class BankQuestion(Base):
    """A reusable question in a subject area's bank."""

    __tablename__ = "question_bank"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    subject_area: Mapped[str] = mapped_column(String(128), index=True)
    topics: Mapped[list] = mapped_column(JSONType, default=list)
    difficulty_level: Mapped[str] = mapped_column(String(20))  # beginner, intermediate, advanced
    question_type: Mapped[str] = mapped_column(String(20), default="multiple_choice")

    question_text: Mapped[str] = mapped_column(Text)
    options: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    # Scalar answer, or a list for multi_select
    correct_answer: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
    explanation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    points: Mapped[int] = mapped_column(Integer, default=1)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow
    )


class Assessment(Base):
    """A concrete assessment: a frozen snapshot of its questions."""

    __tablename__ = "assessments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255))
    kind: Mapped[str] = mapped_column(String(20))  # initial, personalized
    subject_area: Mapped[str] = mapped_column(String(128), index=True)
    student_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    # Stores list of Question dicts
    questions: Mapped[list] = mapped_column(JSONType, default=list)
    time_limit: Mapped[int] = mapped_column(Integer)  # minutes
    minimum_passing_score: Mapped[float] = mapped_column(Float, default=0.0)
    max_attempts: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow
    )


class AssessmentAttempt(Base):
    """A graded attempt. Only manual-grade corrections may change it."""

    __tablename__ = "assessment_attempts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[str] = mapped_column(String(64), index=True)
    assessment_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True)

    # Stores list of {question_id, student_answer, is_correct, points_earned, points_possible}
    answers: Mapped[list] = mapped_column(JSONType, default=list)
    score: Mapped[float] = mapped_column(Float, default=0.0)  # 0 - 100
    passed: Mapped[bool] = mapped_column(default=False)

    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    analyzed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    graded_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
