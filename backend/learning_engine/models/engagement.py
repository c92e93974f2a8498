"""
Adaptive Learning Engine - Engagement Models
Raw interaction events and the derived engagement pattern cache
"""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from learning_engine.core.database import Base, JSONType


class InteractionEvent(Base):
    """A single view/start/complete interaction."""

    __tablename__ = "interaction_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[str] = mapped_column(String(64), index=True)
    content_id: Mapped[str] = mapped_column(String(64), index=True)
    content_type: Mapped[str] = mapped_column(String(20))
    interaction_type: Mapped[str] = mapped_column(String(20))
    duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # seconds
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)


class EngagementSnapshot(Base):
    """
    Cached EngagementPattern for a student.

    Always recomputable from interaction_events; never the source of truth.
    """

    __tablename__ = "engagement_snapshots"

    student_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    pattern: Mapped[dict] = mapped_column(JSONType)
    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
