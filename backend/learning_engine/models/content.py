"""
Adaptive Learning Engine - Content Models
Content metadata, prerequisite edges and course enrollments
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from learning_engine.core.database import Base, JSONType, utcnow


class ContentItem(Base):
    """
    Metadata for a lesson, course or assessment.

    The catalog itself is owned by the authoring service; the engine keeps
    the fields it needs for gating, ranking and planning.
    """

    __tablename__ = "content_items"

    content_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    content_type: Mapped[str] = mapped_column(String(20), index=True)  # lesson, course, assessment
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    course_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    # Topic tags, e.g. ["algebra", "linear-equations"]
    topics: Mapped[list] = mapped_column(JSONType, default=list)
    difficulty: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # 0.0 - 1.0
    estimated_time: Mapped[int] = mapped_column(Integer, default=0)  # minutes
    order_index: Mapped[int] = mapped_column(Integer, default=0)
    is_published: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow
    )


class PrerequisiteEdge(Base):
    """content_id requires requires_content_id (optionally with a minimum score)."""

    __tablename__ = "prerequisite_edges"
    __table_args__ = (
        UniqueConstraint("content_id", "requires_content_id", name="uq_prerequisite_edge"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content_id: Mapped[str] = mapped_column(String(64), index=True)
    requires_content_id: Mapped[str] = mapped_column(String(64), index=True)
    minimum_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)


class Enrollment(Base):
    """A student enrolled in a course."""

    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_enrollment"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[str] = mapped_column(String(64), index=True)
    course_id: Mapped[str] = mapped_column(String(64), index=True)
    enrolled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow
    )
