"""
Adaptive Learning Engine - Content Schemas
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from learning_engine.schemas.common import ContentType


class ContentMetadata(BaseModel):
    """What the engine knows about a content item."""
    model_config = ConfigDict(from_attributes=True)

    content_id: str
    content_type: ContentType
    title: str
    description: Optional[str] = None
    course_id: Optional[str] = None
    topics: list[str] = Field(default_factory=list)
    difficulty: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    estimated_time: int = Field(default=0, ge=0)  # minutes
    order_index: int = 0
    is_published: bool = True


class PrerequisiteEdgeSchema(BaseModel):
    """content_id requires requires_content_id."""
    model_config = ConfigDict(from_attributes=True)

    content_id: str
    requires_content_id: str
    minimum_score: Optional[float] = Field(default=None, ge=0.0, le=100.0)
