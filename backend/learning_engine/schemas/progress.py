"""
Adaptive Learning Engine - Progression Schemas
Pydantic schemas for access decisions, progress updates and blocks
"""
import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from learning_engine.schemas.common import ContentType, ProgressStatus


class MissingPrerequisite(BaseModel):
    content_id: str
    required_score: Optional[float] = None
    current_score: Optional[float] = None
    status: ProgressStatus = ProgressStatus.NOT_STARTED


class AccessDecision(BaseModel):
    """Result of a gating check."""
    content_id: str
    granted: bool
    reason: Optional[str] = None
    blocked: bool = False
    missing_prerequisites: list[MissingPrerequisite] = Field(default_factory=list)


class ProgressUpdate(BaseModel):
    """
    A progress report for one content item.

    time_spent is the number of seconds spent since the last report.
    """
    student_id: str
    content_id: str
    content_type: ContentType
    status: ProgressStatus
    completion_percentage: float = Field(default=0.0, ge=0.0, le=100.0)
    time_spent: int = Field(default=0, ge=0)
    score: Optional[float] = Field(default=None, ge=0.0, le=100.0)


class ProgressRecordRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    student_id: str
    content_id: str
    content_type: ContentType
    status: ProgressStatus
    completion_percentage: float
    time_spent: int
    score: Optional[float] = None
    created_at: datetime
    updated_at: datetime


class ProgressUpdateResult(BaseModel):
    record: ProgressRecordRead
    unlocked_content_ids: list[str] = Field(default_factory=list)


class BlockRequest(BaseModel):
    student_id: str
    content_id: str
    reason: str = Field(min_length=1)


class ProgressionBlockRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    student_id: str
    content_id: str
    reason: str
    blocked_by: str
    created_at: datetime
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None


class CourseItemStatus(BaseModel):
    content_id: str
    content_type: ContentType
    title: str
    order_index: int
    status: ProgressStatus
    completion_percentage: float = 0.0
    score: Optional[float] = None
    can_access: bool
    blocked: bool = False
    missing_prerequisites: list[str] = Field(default_factory=list)


class CourseOverview(BaseModel):
    student_id: str
    course_id: str
    title: str
    items: list[CourseItemStatus]
    total_items: int
    completed_items: int
    overall_progress: float  # percent
    is_completed: bool
