"""
Adaptive Learning Engine - Engagement Schemas
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from learning_engine.schemas.common import ContentType, InteractionType


class InteractionEventIn(BaseModel):
    content_id: str
    content_type: ContentType
    interaction_type: InteractionType
    duration: Optional[int] = Field(default=None, ge=0)  # seconds
    timestamp: Optional[datetime] = None


class InteractionEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    student_id: str
    content_id: str
    content_type: ContentType
    interaction_type: InteractionType
    duration: Optional[int] = None
    timestamp: datetime


class ContentTypeEngagement(BaseModel):
    interaction_count: int = 0
    views: int = 0
    starts: int = 0
    completions: int = 0
    completion_rate: float = 0.0
    momentum: float = 0.0         # decayed, weighted interaction volume
    momentum_share: float = 0.0   # momentum relative to the strongest type


class EngagementPattern(BaseModel):
    student_id: str
    by_content_type: dict[str, ContentTypeEngagement] = Field(default_factory=dict)
    completion_rate: float = 0.0
    average_session_duration: float = 0.0  # seconds
    preferred_content_type: Optional[str] = None
    pace_preference: str = "moderate"       # fast, moderate, slow
    patterns: list[str] = Field(default_factory=list)
    event_count: int = 0
    computed_at: datetime

    def momentum_share(self, content_type: str) -> float:
        entry = self.by_content_type.get(content_type)
        return entry.momentum_share if entry else 0.0


class RecordEventsRequest(BaseModel):
    events: list[InteractionEventIn] = Field(min_length=1)
