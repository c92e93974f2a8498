"""
Adaptive Learning Engine - Recommendation Ranker Tests
"""
import uuid

import pytest
import pytest_asyncio

from learning_engine.core.database import utcnow
from learning_engine.core.errors import NotFoundError, PermissionDeniedError
from learning_engine.schemas.common import ContentType, InteractionType, ProgressStatus
from learning_engine.schemas.engagement import InteractionEventIn
from learning_engine.schemas.knowledge import TopicMasteryRead
from learning_engine.schemas.progress import ProgressUpdate
from learning_engine.schemas.recommendation import RecommendationFeedbackIn, RecommendationRequest

STUDENT = "student-1"


@pytest_asyncio.fixture
async def algebra_gap(repos, add_content):
    """A weak algebra student choosing between algebra and geometry lessons."""
    await add_content("alg-1", topics=["algebra"], difficulty=0.3)
    await add_content("geo-1", topics=["geometry"], difficulty=0.3)

    now = utcnow()
    await repos.knowledge.save_entry(STUDENT, TopicMasteryRead(
        topic="algebra", subject_area="math", mastery=0.2, confidence=0.4, observations=2, last_updated=now,
    ))
    await repos.knowledge.add_gap(
        student_id=STUDENT, subject_area="math", topic="algebra",
        severity=0.5, mastery_at_detection=0.2, detected_at=now,
    )


@pytest.mark.asyncio
async def test_gap_content_ranks_first(ranker, algebra_gap):
    recommendations = await ranker.generate(STUDENT, RecommendationRequest())

    assert [r.content_id for r in recommendations] == ["alg-1", "geo-1"]
    assert [r.rank for r in recommendations] == [1, 2]

    top = recommendations[0]
    assert top.factor_breakdown["gap_relevance"].value == 1.0
    assert top.factor_breakdown["difficulty_fit"].value == pytest.approx(0.9)
    assert top.factor_breakdown["engagement_fit"].value == 0.0
    assert top.score == pytest.approx(0.35 + 0.25 * 0.9 + 0.15 + 0.10)
    assert "algebra" in top.explanation

    assert recommendations[1].score == pytest.approx(0.25 * 0.7 + 0.15 + 0.10)


@pytest.mark.asyncio
async def test_ranking_is_deterministic(ranker, algebra_gap, add_content):
    await add_content("alg-2", topics=["algebra"], difficulty=0.3)

    first = await ranker.generate(STUDENT, RecommendationRequest())
    second = await ranker.generate(STUDENT, RecommendationRequest())

    assert [(r.content_id, r.score) for r in first] == [(r.content_id, r.score) for r in second]
    # Equal scores fall back to content id
    assert [r.content_id for r in first][:2] == ["alg-1", "alg-2"]


@pytest.mark.asyncio
async def test_explanation_sums_to_score(ranker, algebra_gap):
    recommendations = await ranker.generate(STUDENT, RecommendationRequest())

    for recommendation in recommendations:
        explanation = await ranker.explain(STUDENT, recommendation.id)
        assert set(explanation.factors) == {
            "gap_relevance", "difficulty_fit", "engagement_fit", "novelty", "prerequisite_readiness",
        }
        total = sum(f.contribution for f in explanation.factors.values())
        assert total == pytest.approx(explanation.score)
        for factor in explanation.factors.values():
            assert factor.contribution == pytest.approx(factor.weight * factor.value)


@pytest.mark.asyncio
async def test_blocked_unreachable_and_completed_are_excluded(
    ranker, progression, algebra_gap, add_content, add_edge
):
    await add_content("alg-3", topics=["algebra"], difficulty=0.4)
    await add_edge("alg-3", requires="alg-1")
    await add_content("draft", topics=["algebra"], is_published=False)
    await progression.block(STUDENT, "geo-1", reason="Review", blocked_by="teacher-1")

    ids = [r.content_id for r in await ranker.generate(STUDENT, RecommendationRequest())]
    assert ids == ["alg-1"]

    await progression.update_progress(ProgressUpdate(
        student_id=STUDENT, content_id="alg-1", content_type=ContentType.LESSON,
        status=ProgressStatus.COMPLETED, score=90,
    ))
    ids = [r.content_id for r in await ranker.generate(STUDENT, RecommendationRequest())]
    assert ids == ["alg-3"]

    ids = [r.content_id for r in await ranker.generate(STUDENT, RecommendationRequest(exclude_completed=False))]
    assert sorted(ids) == ["alg-1", "alg-3"]


@pytest.mark.asyncio
async def test_engagement_and_novelty_factors(ranker, engagement, add_content):
    await add_content("L1", topics=["reading"], difficulty=0.5)
    await add_content("Q1", ContentType.ASSESSMENT, topics=["reading"], difficulty=0.5)
    now = utcnow()
    await engagement.record(STUDENT, [
        InteractionEventIn(content_id="L1", content_type=ContentType.LESSON,
                           interaction_type=InteractionType.COMPLETE, timestamp=now),
    ], now=now)

    recommendations = {r.content_id: r for r in await ranker.generate(STUDENT, RecommendationRequest())}

    assert recommendations["L1"].factor_breakdown["engagement_fit"].value == 1.0
    assert recommendations["L1"].factor_breakdown["novelty"].value == 0.0
    assert recommendations["Q1"].factor_breakdown["engagement_fit"].value == 0.0
    assert recommendations["Q1"].factor_breakdown["novelty"].value == 1.0


@pytest.mark.asyncio
async def test_missing_metadata_is_inferred(ranker, algebra_gap, add_content):
    await add_content("mystery", description="Practice algebra with worked examples")

    recommendations = {r.content_id: r for r in await ranker.generate(STUDENT, RecommendationRequest())}

    mystery = recommendations["mystery"]
    assert mystery.used_fallback is True
    assert mystery.factor_breakdown["gap_relevance"].value == 1.0


@pytest.mark.asyncio
async def test_limit_and_content_type_filter(ranker, algebra_gap, add_content):
    await add_content("quiz", ContentType.ASSESSMENT, topics=["algebra"], difficulty=0.2)

    only_assessments = await ranker.generate(
        STUDENT, RecommendationRequest(content_type=ContentType.ASSESSMENT)
    )
    assert [r.content_id for r in only_assessments] == ["quiz"]

    top_one = await ranker.generate(STUDENT, RecommendationRequest(limit=1))
    assert len(top_one) == 1


@pytest.mark.asyncio
async def test_feedback_is_owner_only(ranker, algebra_gap):
    recommendation = (await ranker.generate(STUDENT, RecommendationRequest()))[0]

    with pytest.raises(PermissionDeniedError):
        await ranker.record_feedback("student-2", RecommendationFeedbackIn(
            recommendation_id=recommendation.id, clicked=True,
        ))
    with pytest.raises(NotFoundError):
        await ranker.explain(STUDENT, uuid.uuid4())

    updated = await ranker.record_feedback(STUDENT, RecommendationFeedbackIn(
        recommendation_id=recommendation.id, viewed=True, clicked=True, rating=5, comment="Helpful",
    ))
    assert updated.viewed is True
    assert updated.clicked is True


@pytest.mark.asyncio
async def test_flagging_unknown_recommendation_is_not_found(repos):
    with pytest.raises(NotFoundError):
        await repos.recommendations.set_flags(uuid.uuid4(), viewed=True)


@pytest.mark.asyncio
async def test_readiness_reflects_prerequisite_margin(ranker, progression, add_content, add_edge):
    await add_content("base", topics=["logic"], difficulty=0.3)
    await add_content("guided", topics=["logic"], difficulty=0.3)
    await add_content("open", topics=["logic"], difficulty=0.3)
    await add_content("free", topics=["logic"], difficulty=0.3)
    await add_edge("guided", requires="base", minimum_score=70)
    await add_edge("open", requires="base")
    await progression.update_progress(ProgressUpdate(
        student_id=STUDENT, content_id="base", content_type=ContentType.LESSON,
        status=ProgressStatus.COMPLETED, score=85,
    ))

    recommendations = await ranker.generate(STUDENT, RecommendationRequest())
    readiness = {r.content_id: r.factor_breakdown["prerequisite_readiness"].value for r in recommendations}

    assert readiness == pytest.approx({"free": 1.0, "open": 0.925, "guided": 0.75})
    assert [r.content_id for r in recommendations] == ["free", "open", "guided"]
