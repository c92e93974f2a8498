"""
Adaptive Learning Engine - API Dependencies
FastAPI dependencies for authentication and service wiring
"""
from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from learning_engine.ai.content_analysis import ContentAnalyzer, select_content_analyzer
from learning_engine.ai.llm import get_llm_client
from learning_engine.ai.question_author import QuestionAuthor
from learning_engine.core.config import settings
from learning_engine.core.database import get_db
from learning_engine.core.security import Actor, actor_from_token
from learning_engine.repositories import Repositories, sql_repositories
from learning_engine.services.assessment_generator import AssessmentGenerator
from learning_engine.services.engagement import EngagementAnalyzer
from learning_engine.services.gap_analyzer import GapAnalyzer
from learning_engine.services.progression import ProgressionController
from learning_engine.services.recommendation import RecommendationRanker
from learning_engine.services.roadmap import RoadmapPlanner

# Security scheme
security = HTTPBearer()


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> Actor:
    """
    Get the authenticated actor from the JWT bearer token.

    Raises:
        HTTPException: If the token is invalid or expired
    """
    actor = actor_from_token(credentials.credentials)
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return actor


DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]


def get_repositories(db: DbSession) -> Repositories:
    return sql_repositories(db)


Repos = Annotated[Repositories, Depends(get_repositories)]


@lru_cache
def get_content_analyzer() -> ContentAnalyzer:
    """Process-wide analysis strategy, chosen once from configuration."""
    return select_content_analyzer(get_llm_client() if settings.LLM_API_KEY else None)


def get_question_author() -> Optional[QuestionAuthor]:
    if not settings.LLM_API_KEY:
        return None
    return QuestionAuthor(get_llm_client())


Analyzer = Annotated[ContentAnalyzer, Depends(get_content_analyzer)]


# ============================================================================
# Services
# ============================================================================

def get_progression_controller(repos: Repos) -> ProgressionController:
    return ProgressionController(repos.progress, repos.content)


def get_gap_analyzer(repos: Repos, analyzer: Analyzer) -> GapAnalyzer:
    return GapAnalyzer(repos.knowledge, repos.assessments, repos.content, analyzer)


def get_assessment_generator(
    repos: Repos,
    author: Annotated[Optional[QuestionAuthor], Depends(get_question_author)],
) -> AssessmentGenerator:
    return AssessmentGenerator(repos.assessments, repos.knowledge, author)


def get_engagement_analyzer(repos: Repos) -> EngagementAnalyzer:
    return EngagementAnalyzer(repos.engagement)


def get_recommendation_ranker(repos: Repos, analyzer: Analyzer) -> RecommendationRanker:
    return RecommendationRanker(
        repos.recommendations,
        repos.knowledge,
        ProgressionController(repos.progress, repos.content),
        EngagementAnalyzer(repos.engagement),
        analyzer,
    )


def get_roadmap_planner(repos: Repos) -> RoadmapPlanner:
    return RoadmapPlanner(
        repos.roadmaps,
        repos.knowledge,
        ProgressionController(repos.progress, repos.content),
        repos.content,
        repos.assessments,
    )


Progression = Annotated[ProgressionController, Depends(get_progression_controller)]
Gaps = Annotated[GapAnalyzer, Depends(get_gap_analyzer)]
Assessments = Annotated[AssessmentGenerator, Depends(get_assessment_generator)]
Engagement = Annotated[EngagementAnalyzer, Depends(get_engagement_analyzer)]
Recommendations = Annotated[RecommendationRanker, Depends(get_recommendation_ranker)]
Roadmaps = Annotated[RoadmapPlanner, Depends(get_roadmap_planner)]
