"""
Adaptive Learning Engine - Recommendation Models
Scored recommendations and learner feedback on them
"""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from learning_engine.core.database import Base, JSONType


class Recommendation(Base):
    """A ranked suggestion. The score is written once; only flags change."""

    __tablename__ = "recommendations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[str] = mapped_column(String(64), index=True)
    content_id: Mapped[str] = mapped_column(String(64))
    content_type: Mapped[str] = mapped_column(String(20))
    rank: Mapped[int] = mapped_column(Integer)

    score: Mapped[float] = mapped_column(Float)
    # Stores {factor: {value, weight, contribution}}
    factor_breakdown: Mapped[dict] = mapped_column(JSONType)
    explanation: Mapped[str] = mapped_column(Text)
    used_fallback: Mapped[bool] = mapped_column(Boolean, default=False)

    viewed: Mapped[bool] = mapped_column(Boolean, default=False)
    clicked: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class RecommendationFeedback(Base):
    """Explicit feedback left by a learner on a recommendation."""

    __tablename__ = "recommendation_feedback"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    recommendation_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True)
    student_id: Mapped[str] = mapped_column(String(64))
    rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # 1 - 5
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
