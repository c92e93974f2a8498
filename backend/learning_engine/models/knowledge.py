"""
Adaptive Learning Engine - Knowledge Models
Per-topic mastery estimates and append-only knowledge gaps
"""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from learning_engine.core.database import Base, utcnow


class TopicMastery(Base):
    """One entry of a student's knowledge profile."""

    __tablename__ = "topic_mastery"
    __table_args__ = (
        UniqueConstraint("student_id", "topic", name="uq_topic_mastery"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[str] = mapped_column(String(64), index=True)
    topic: Mapped[str] = mapped_column(String(128))
    subject_area: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    mastery: Mapped[float] = mapped_column(Float, default=0.0)      # 0.0 - 1.0
    confidence: Mapped[float] = mapped_column(Float, default=0.0)   # 0.0 - 1.0
    observations: Mapped[int] = mapped_column(Integer, default=0)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow
    )


class KnowledgeGap(Base):
    """A detected weakness. Never overwritten; only resolved."""

    __tablename__ = "knowledge_gaps"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[str] = mapped_column(String(64), index=True)
    subject_area: Mapped[str] = mapped_column(String(128))
    topic: Mapped[str] = mapped_column(String(128), index=True)
    severity: Mapped[float] = mapped_column(Float)
    mastery_at_detection: Mapped[float] = mapped_column(Float, default=0.0)

    detected_from: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)
    detected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    resolved: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by_attempt: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
