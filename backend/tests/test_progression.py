"""
Adaptive Learning Engine - Progression Controller Tests
"""
import asyncio

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from learning_engine.core.database import Base
from learning_engine.core.errors import NotFoundError, ValidationError
from learning_engine.repositories import sql_repositories
from learning_engine.schemas.common import ContentType, ProgressStatus
from learning_engine.schemas.content import ContentMetadata, PrerequisiteEdgeSchema
from learning_engine.schemas.progress import ProgressUpdate
from learning_engine.services.progression import ProgressionController

STUDENT = "student-1"


def _update(content_id: str, status: ProgressStatus, score=None, content_type=ContentType.LESSON, **kw):
    return ProgressUpdate(
        student_id=STUDENT,
        content_id=content_id,
        content_type=content_type,
        status=status,
        score=score,
        **kw,
    )


@pytest_asyncio.fixture
async def two_lessons(add_content, add_edge):
    await add_content("L1")
    await add_content("L2")
    await add_edge("L2", requires="L1", minimum_score=80)


@pytest.mark.asyncio
async def test_passing_score_unlocks_dependent(progression, two_lessons):
    before = await progression.can_access(STUDENT, "L2", ContentType.LESSON)
    assert before.granted is False
    assert [m.content_id for m in before.missing_prerequisites] == ["L1"]

    result = await progression.update_progress(_update("L1", ProgressStatus.COMPLETED, score=85))

    assert result.unlocked_content_ids == ["L2"]
    assert result.record.completion_percentage == 100.0
    after = await progression.can_access(STUDENT, "L2", ContentType.LESSON)
    assert after.granted is True


@pytest.mark.asyncio
async def test_score_below_minimum_keeps_dependent_locked(progression, two_lessons):
    result = await progression.update_progress(_update("L1", ProgressStatus.COMPLETED, score=60))

    assert result.unlocked_content_ids == []
    decision = await progression.can_access(STUDENT, "L2", ContentType.LESSON)
    assert decision.granted is False
    assert decision.missing_prerequisites[0].required_score == 80
    assert decision.missing_prerequisites[0].current_score == 60


@pytest.mark.asyncio
async def test_progress_is_sticky(progression, two_lessons):
    await progression.update_progress(_update("L1", ProgressStatus.COMPLETED, score=90, time_spent=60))
    result = await progression.update_progress(
        _update("L1", ProgressStatus.IN_PROGRESS, score=40, time_spent=30, completion_percentage=10)
    )

    record = result.record
    assert record.status == ProgressStatus.COMPLETED
    assert record.score == 90
    assert record.completion_percentage == 100.0
    assert record.time_spent == 90
    assert result.unlocked_content_ids == []


@pytest.mark.asyncio
async def test_concurrent_completions_report_unlock_once(progression, two_lessons):
    results = await asyncio.gather(
        progression.update_progress(_update("L1", ProgressStatus.COMPLETED, score=85)),
        progression.update_progress(_update("L1", ProgressStatus.COMPLETED, score=95)),
    )

    unlocks = [r.unlocked_content_ids for r in results]
    assert sorted(unlocks) == [[], ["L2"]]
    decision = await progression.can_access(STUDENT, "L2", ContentType.LESSON)
    assert decision.granted is True


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """File-backed database so each request gets its own connection and transaction."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'progress.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.mark.asyncio
async def test_parallel_requests_completing_sibling_prerequisites(session_factory):
    async with session_factory() as session:
        content = sql_repositories(session).content
        for content_id in ("L1", "L2", "L3"):
            await content.save(ContentMetadata(
                content_id=content_id, content_type=ContentType.LESSON, title=content_id,
            ))
        await content.add_edge(PrerequisiteEdgeSchema(content_id="L3", requires_content_id="L1"))
        await content.add_edge(PrerequisiteEdgeSchema(content_id="L3", requires_content_id="L2"))
        await session.commit()

    async def complete(content_id: str):
        async with session_factory() as session:
            repos = sql_repositories(session)
            controller = ProgressionController(repos.progress, repos.content)
            result = await controller.update_progress(_update(content_id, ProgressStatus.COMPLETED))
            await session.commit()
            return result

    results = await asyncio.gather(complete("L1"), complete("L2"))

    unlocks = sorted(r.unlocked_content_ids for r in results)
    assert unlocks == [[], ["L3"]]

    async with session_factory() as session:
        repos = sql_repositories(session)
        decision = await ProgressionController(repos.progress, repos.content).can_access(
            STUDENT, "L3", ContentType.LESSON
        )
    assert decision.granted is True


@pytest.mark.asyncio
async def test_block_overrides_satisfied_prerequisites(progression, two_lessons):
    await progression.block(STUDENT, "L2", reason="Academic review", blocked_by="teacher-1")
    result = await progression.update_progress(_update("L1", ProgressStatus.COMPLETED, score=100))

    assert result.unlocked_content_ids == []
    decision = await progression.can_access(STUDENT, "L2", ContentType.LESSON)
    assert decision.granted is False
    assert decision.blocked is True
    assert "Academic review" in decision.reason

    decision = await progression.unblock(STUDENT, "L2", ContentType.LESSON, unblocked_by="teacher-1")
    assert decision.granted is True
    assert await progression.blocked_content(STUDENT) == []


@pytest.mark.asyncio
async def test_block_is_idempotent(progression, two_lessons):
    first = await progression.block(STUDENT, "L1", reason="Pause", blocked_by="teacher-1")
    second = await progression.block(STUDENT, "L1", reason="Pause again", blocked_by="teacher-2")

    assert first.id == second.id
    assert len(await progression.blocked_content(STUDENT)) == 1


@pytest.mark.asyncio
async def test_unblock_without_block_is_not_found(progression, two_lessons):
    with pytest.raises(NotFoundError):
        await progression.unblock(STUDENT, "L1", ContentType.LESSON, unblocked_by="teacher-1")


@pytest.mark.asyncio
async def test_unknown_content_and_type_mismatch(progression, two_lessons):
    with pytest.raises(NotFoundError):
        await progression.can_access(STUDENT, "missing", ContentType.LESSON)
    with pytest.raises(ValidationError):
        await progression.can_access(STUDENT, "L1", ContentType.COURSE)


@pytest.mark.asyncio
async def test_course_rolls_up_and_unlocks_dependents(progression, add_content, add_edge):
    await add_content("C1", ContentType.COURSE)
    await add_content("C1-L1", course_id="C1", order_index=1)
    await add_content("C1-L2", course_id="C1", order_index=2)
    await add_content("C1-draft", course_id="C1", order_index=3, is_published=False)
    await add_content("advanced")
    await add_edge("advanced", requires="C1")

    first = await progression.update_progress(_update("C1-L1", ProgressStatus.COMPLETED))
    assert first.unlocked_content_ids == []

    second = await progression.update_progress(_update("C1-L2", ProgressStatus.COMPLETED))
    assert second.unlocked_content_ids == ["advanced"]

    overview = await progression.course_overview(STUDENT, "C1")
    assert overview.is_completed is True
    assert overview.total_items == 2
    assert [item.content_id for item in overview.items] == ["C1-L1", "C1-L2"]


@pytest.mark.asyncio
async def test_reset_progress_relocks_dependents(progression, two_lessons):
    await progression.update_progress(_update("L1", ProgressStatus.COMPLETED, score=85, time_spent=120))
    record = await progression.reset_progress(STUDENT, "L1", reset_by="teacher-1")

    assert record.status == ProgressStatus.NOT_STARTED
    assert record.score is None
    assert record.time_spent == 120
    decision = await progression.can_access(STUDENT, "L2", ContentType.LESSON)
    assert decision.granted is False


@pytest.mark.asyncio
async def test_reset_without_progress_is_not_found(progression, two_lessons):
    with pytest.raises(NotFoundError):
        await progression.reset_progress(STUDENT, "L1", reset_by="teacher-1")
