"""
Adaptive Learning Engine - Recommendation Schemas
"""
import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from learning_engine.schemas.common import ContentType


class RecommendationRequest(BaseModel):
    content_type: Optional[ContentType] = None
    limit: int = Field(default=10, ge=1, le=50)
    exclude_completed: bool = True


class FactorContribution(BaseModel):
    value: float = Field(ge=0.0, le=1.0)
    weight: float
    contribution: float


class RecommendationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    student_id: str
    content_id: str
    content_type: ContentType
    rank: int
    score: float
    factor_breakdown: dict[str, FactorContribution]
    explanation: str
    used_fallback: bool = False
    viewed: bool = False
    clicked: bool = False
    created_at: datetime


class RecommendationFeedbackIn(BaseModel):
    recommendation_id: uuid.UUID
    viewed: Optional[bool] = None
    clicked: Optional[bool] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    comment: Optional[str] = None


class RecommendationExplanation(BaseModel):
    recommendation_id: uuid.UUID
    content_id: str
    score: float
    factors: dict[str, FactorContribution]
    explanation: str
