"""
Adaptive Learning Engine - Test Configuration
Pytest fixtures and configuration for testing
"""
import os

# Settings are read at import time: point them at SQLite and keep AI offline
os.environ["DATABASE_URL_OVERRIDE"] = "sqlite+aiosqlite://"
os.environ["LLM_PROVIDER"] = "openai"
os.environ["OPENAI_API_KEY"] = ""
os.environ["OTEL_ENABLED"] = "false"

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import learning_engine.models  # noqa: F401
from learning_engine.ai.content_analysis import RuleBasedContentAnalyzer
from learning_engine.core.database import Base, get_db
from learning_engine.core.security import Role, create_access_token
from learning_engine.main import app
from learning_engine.repositories import Repositories, sql_repositories
from learning_engine.schemas.assessment import Question, QuestionCreate
from learning_engine.schemas.common import ContentType, DifficultyLevel, QuestionType
from learning_engine.schemas.content import ContentMetadata, PrerequisiteEdgeSchema
from learning_engine.services.assessment_generator import AssessmentGenerator
from learning_engine.services.engagement import EngagementAnalyzer
from learning_engine.services.gap_analyzer import GapAnalyzer
from learning_engine.services.progression import ProgressionController
from learning_engine.services.recommendation import RecommendationRanker
from learning_engine.services.roadmap import RoadmapPlanner


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database for each test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    """Bearer headers for an actor: auth_headers("s1") or auth_headers("t1", Role.INSTRUCTOR)."""
    def make(user_id: str, role: Role = Role.STUDENT) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}
    return make


# ============================================================================
# Repositories and services
# ============================================================================

@pytest.fixture
def repos(db_session: AsyncSession) -> Repositories:
    return sql_repositories(db_session)


@pytest.fixture
def analyzer() -> RuleBasedContentAnalyzer:
    return RuleBasedContentAnalyzer()


@pytest.fixture
def progression(repos: Repositories) -> ProgressionController:
    return ProgressionController(repos.progress, repos.content)


@pytest.fixture
def gap_analyzer(repos: Repositories, analyzer) -> GapAnalyzer:
    return GapAnalyzer(repos.knowledge, repos.assessments, repos.content, analyzer)


@pytest.fixture
def generator(repos: Repositories) -> AssessmentGenerator:
    return AssessmentGenerator(repos.assessments, repos.knowledge)


@pytest.fixture
def engagement(repos: Repositories) -> EngagementAnalyzer:
    return EngagementAnalyzer(repos.engagement)


@pytest.fixture
def ranker(repos: Repositories, progression, engagement, analyzer) -> RecommendationRanker:
    return RecommendationRanker(repos.recommendations, repos.knowledge, progression, engagement, analyzer)


@pytest.fixture
def planner(repos: Repositories, progression) -> RoadmapPlanner:
    return RoadmapPlanner(repos.roadmaps, repos.knowledge, progression, repos.content, repos.assessments)


# ============================================================================
# Catalog helpers
# ============================================================================

@pytest.fixture
def add_content(repos: Repositories) -> Callable[..., Awaitable[ContentMetadata]]:
    """Save a catalog item; the title defaults to the id."""
    async def add(
        content_id: str,
        content_type: ContentType = ContentType.LESSON,
        **fields: Any,
    ) -> ContentMetadata:
        fields.setdefault("title", content_id.replace("-", " ").title())
        return await repos.content.save(
            ContentMetadata(content_id=content_id, content_type=content_type, **fields)
        )
    return add


@pytest.fixture
def add_edge(repos: Repositories) -> Callable[..., Awaitable[PrerequisiteEdgeSchema]]:
    """add_edge("L2", requires="L1", minimum_score=80)"""
    async def add(content_id: str, requires: str, minimum_score: Optional[float] = None):
        return await repos.content.add_edge(PrerequisiteEdgeSchema(
            content_id=content_id,
            requires_content_id=requires,
            minimum_score=minimum_score,
        ))
    return add


@pytest.fixture
def add_question(repos: Repositories) -> Callable[..., Awaitable[Question]]:
    async def add(
        subject_area: str,
        topics: list[str],
        difficulty: DifficultyLevel = DifficultyLevel.INTERMEDIATE,
        correct_answer: Any = "A",
        question_type: QuestionType = QuestionType.MULTIPLE_CHOICE,
        points: int = 1,
        text: Optional[str] = None,
    ) -> Question:
        return await repos.assessments.add_question(QuestionCreate(
            subject_area=subject_area,
            topics=topics,
            difficulty_level=difficulty,
            question_type=question_type,
            question_text=text or f"{', '.join(topics)} ({difficulty.value})?",
            options=["A", "B", "C", "D"] if question_type == QuestionType.MULTIPLE_CHOICE else None,
            correct_answer=correct_answer,
            points=points,
        ))
    return add
