"""
Adaptive Learning Engine - Repositories
Storage interfaces per entity family, with SQLAlchemy implementations
"""
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from learning_engine.repositories.assessment import AssessmentRepository, SqlAssessmentRepository
from learning_engine.repositories.content import ContentRepository, SqlContentRepository
from learning_engine.repositories.engagement import EngagementRepository, SqlEngagementRepository
from learning_engine.repositories.knowledge import KnowledgeRepository, SqlKnowledgeRepository
from learning_engine.repositories.progress import ProgressRepository, SqlProgressRepository
from learning_engine.repositories.recommendation import (
    RecommendationRepository,
    SqlRecommendationRepository,
)
from learning_engine.repositories.roadmap import RoadmapRepository, SqlRoadmapRepository


@dataclass
class Repositories:
    """Every repository a request may need, sharing one unit of work."""
    content: ContentRepository
    knowledge: KnowledgeRepository
    progress: ProgressRepository
    assessments: AssessmentRepository
    engagement: EngagementRepository
    recommendations: RecommendationRepository
    roadmaps: RoadmapRepository


def sql_repositories(db: AsyncSession) -> Repositories:
    return Repositories(
        content=SqlContentRepository(db),
        knowledge=SqlKnowledgeRepository(db),
        progress=SqlProgressRepository(db),
        assessments=SqlAssessmentRepository(db),
        engagement=SqlEngagementRepository(db),
        recommendations=SqlRecommendationRepository(db),
        roadmaps=SqlRoadmapRepository(db),
    )


__all__ = [
    "Repositories",
    "sql_repositories",
    "AssessmentRepository",
    "ContentRepository",
    "EngagementRepository",
    "KnowledgeRepository",
    "ProgressRepository",
    "RecommendationRepository",
    "RoadmapRepository",
]
