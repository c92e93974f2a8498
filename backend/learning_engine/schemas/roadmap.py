"""
Adaptive Learning Engine - Roadmap Schemas
"""
import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from learning_engine.schemas.common import ContentType, ProgressStatus, RoadmapStatus


class TimeConstraints(BaseModel):
    hours_per_week: float = Field(gt=0.0)
    target_completion_date: Optional[date] = None


class RoadmapRequest(BaseModel):
    target_skills: list[str] = Field(default_factory=list)
    time_constraints: Optional[TimeConstraints] = None
    force_regenerate: bool = False


class RoadmapStep(BaseModel):
    content_id: str
    content_type: ContentType
    title: str
    order_index: int
    estimated_time: int  # minutes
    prerequisites: list[str] = Field(default_factory=list)
    completion_status: ProgressStatus = ProgressStatus.NOT_STARTED
    gap_severity: float = 0.0
    scheduled_week: int = 1
    is_unlocked: bool = False


class RoadmapRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    student_id: str
    status: RoadmapStatus
    learning_path: list[RoadmapStep]
    total_estimated_time: int
    remaining_time: int
    personalization_factors: dict[str, Any]
    generated_at: datetime
    updated_at: datetime


class RoadmapStatusUpdate(BaseModel):
    status: RoadmapStatus


class AlternativePathRequest(BaseModel):
    current_content_id: str
    # Unresolved knowledge gaps are used when empty
    struggling_topics: list[str] = Field(default_factory=list)


class AlternativePath(BaseModel):
    topic: str
    original_content_id: str
    alternative_content: list[RoadmapStep]
    reason: str
    difficulty_adjustment: str  # easier, similar or harder
    estimated_time_difference: int  # minutes, relative to the original item
