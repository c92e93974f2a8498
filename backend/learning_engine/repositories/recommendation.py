"""
Adaptive Learning Engine - Recommendation Repository
"""
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from learning_engine.core.errors import NotFoundError
from learning_engine.models.recommendation import Recommendation, RecommendationFeedback
from learning_engine.schemas.common import ContentType
from learning_engine.schemas.recommendation import FactorContribution, RecommendationRead


class RecommendationRepository(ABC):

    @abstractmethod
    async def add(
        self,
        student_id: str,
        content_id: str,
        content_type: ContentType,
        rank: int,
        score: float,
        factor_breakdown: dict[str, FactorContribution],
        explanation: str,
        used_fallback: bool,
        created_at: datetime,
    ) -> RecommendationRead:
        ...

    @abstractmethod
    async def get(self, recommendation_id: uuid.UUID) -> Optional[RecommendationRead]:
        ...

    @abstractmethod
    async def set_flags(
        self,
        recommendation_id: uuid.UUID,
        viewed: Optional[bool] = None,
        clicked: Optional[bool] = None,
    ) -> RecommendationRead:
        ...

    @abstractmethod
    async def add_feedback(
        self,
        recommendation_id: uuid.UUID,
        student_id: str,
        rating: Optional[int],
        comment: Optional[str],
        created_at: datetime,
    ) -> None:
        ...


class SqlRecommendationRepository(RecommendationRepository):

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(
        self,
        student_id: str,
        content_id: str,
        content_type: ContentType,
        rank: int,
        score: float,
        factor_breakdown: dict[str, FactorContribution],
        explanation: str,
        used_fallback: bool,
        created_at: datetime,
    ) -> RecommendationRead:
        row = Recommendation(
            student_id=student_id,
            content_id=content_id,
            content_type=content_type.value,
            rank=rank,
            score=score,
            factor_breakdown={
                name: factor.model_dump() for name, factor in factor_breakdown.items()
            },
            explanation=explanation,
            used_fallback=used_fallback,
            viewed=False,
            clicked=False,
            created_at=created_at,
        )
        self.db.add(row)
        await self.db.flush()
        return RecommendationRead.model_validate(row)

    async def get(self, recommendation_id: uuid.UUID) -> Optional[RecommendationRead]:
        row = await self.db.get(Recommendation, recommendation_id)
        return RecommendationRead.model_validate(row) if row else None

    async def set_flags(
        self,
        recommendation_id: uuid.UUID,
        viewed: Optional[bool] = None,
        clicked: Optional[bool] = None,
    ) -> RecommendationRead:
        row = await self.db.get(Recommendation, recommendation_id)
        if row is None:
            raise NotFoundError(f"Recommendation {recommendation_id} not found")
        if viewed is not None:
            row.viewed = viewed
        if clicked is not None:
            row.clicked = clicked
        await self.db.flush()
        return RecommendationRead.model_validate(row)

    async def add_feedback(
        self,
        recommendation_id: uuid.UUID,
        student_id: str,
        rating: Optional[int],
        comment: Optional[str],
        created_at: datetime,
    ) -> None:
        self.db.add(RecommendationFeedback(
            recommendation_id=recommendation_id,
            student_id=student_id,
            rating=rating,
            comment=comment,
            created_at=created_at,
        ))
        await self.db.flush()
