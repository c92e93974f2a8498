"""
Adaptive Learning Engine - Knowledge Schemas
Pydantic schemas for knowledge profiles and gaps
"""
import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TopicMasteryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    topic: str
    subject_area: Optional[str] = None
    mastery: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    observations: int = 0
    last_updated: datetime


class KnowledgeProfile(BaseModel):
    """A student's per-topic mastery estimates. Absent topics read as zero."""
    student_id: str
    topics: dict[str, TopicMasteryRead] = Field(default_factory=dict)

    def mastery(self, topic: str) -> float:
        entry = self.topics.get(topic)
        return entry.mastery if entry else 0.0

    def confidence(self, topic: str) -> float:
        entry = self.topics.get(topic)
        return entry.confidence if entry else 0.0


class KnowledgeGapRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    student_id: str
    subject_area: str
    topic: str
    severity: float = Field(ge=0.0)
    mastery_at_detection: float
    detected_from: Optional[uuid.UUID] = None
    detected_at: datetime
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    resolved_by_attempt: Optional[uuid.UUID] = None


class KnowledgeGapIn(BaseModel):
    """Externally supplied gap (e.g. from an instructor review)."""
    subject_area: str
    topic: str
    severity: float = Field(ge=0.0)
    detected_from: Optional[uuid.UUID] = None


class ProfileUpdateRequest(BaseModel):
    attempt_ids: list[uuid.UUID] = Field(default_factory=list)
    extra_gaps: list[KnowledgeGapIn] = Field(default_factory=list)
