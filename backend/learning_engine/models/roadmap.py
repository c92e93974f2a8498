"""
Adaptive Learning Engine - Roadmap Models
"""
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from learning_engine.core.database import Base, JSONType


class Roadmap(Base):
    """A student's ordered learning path. Paused rather than deleted."""

    __tablename__ = "roadmaps"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[str] = mapped_column(String(64), index=True)
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)

    # Stores list of RoadmapStep dicts
    learning_path: Mapped[list] = mapped_column(JSONType, default=list)
    total_estimated_time: Mapped[int] = mapped_column(Integer, default=0)  # minutes
    remaining_time: Mapped[int] = mapped_column(Integer, default=0)        # minutes
    personalization_factors: Mapped[dict] = mapped_column(JSONType, default=dict)
    input_fingerprint: Mapped[str] = mapped_column(String(64))

    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
