"""
Adaptive Learning Engine - Gap Analyzer Tests
"""
import math
import uuid

import pytest
import pytest_asyncio

from learning_engine.core.database import utcnow
from learning_engine.core.errors import NotFoundError, ValidationError
from learning_engine.schemas.assessment import (
    AnswerRecord,
    AnswerSubmission,
    InitialAssessmentConfig,
)
from learning_engine.schemas.common import DifficultyLevel, QuestionType
from learning_engine.schemas.knowledge import KnowledgeGapIn, TopicMasteryRead

STUDENT = "student-1"
SUBJECT = "calculus"


@pytest_asyncio.fixture
async def calculus(add_content, add_edge, add_question):
    """Derivatives feed two downstream lessons; limits feed nothing."""
    await add_content("calc-1", topics=["derivatives"])
    await add_content("calc-2", topics=["chain rule"])
    await add_content("calc-3", topics=["optimization"])
    await add_content("limits-1", topics=["limits"])
    await add_edge("calc-2", requires="calc-1")
    await add_edge("calc-3", requires="calc-2")

    for topic in ("derivatives", "limits"):
        await add_question(SUBJECT, [topic], DifficultyLevel.BEGINNER)
        await add_question(SUBJECT, [topic], DifficultyLevel.ADVANCED)


async def _attempt(generator, correct_topics: set[str]):
    assessment = await generator.create_initial(
        InitialAssessmentConfig(subject_area=SUBJECT, topics=["derivatives", "limits"], question_count=4),
        student_id=STUDENT,
    )
    answers = [
        AnswerSubmission(
            question_id=q.id,
            student_answer="A" if set(q.topics) & correct_topics else "B",
        )
        for q in assessment.questions
    ]
    attempt = await generator.submit_attempt(STUDENT, assessment.id, answers)
    return assessment, attempt


def test_observation_math(gap_analyzer):
    # An unseen topic starts from zero mastery
    mastery, confidence = gap_analyzer.apply_observation(0.0, 0.0, 0.4)
    assert mastery == pytest.approx(0.12)
    assert confidence == pytest.approx(0.2)

    mastery, confidence = gap_analyzer.apply_observation(0.0, 0.0, 1.0)
    assert mastery == pytest.approx(0.3)

    mastery, confidence = gap_analyzer.apply_observation(mastery, confidence, 0.0)
    assert mastery == pytest.approx(0.21)
    assert confidence == pytest.approx(0.36)


@pytest.mark.parametrize("signal", [-1.0, 0.0, 0.25, 0.5, 1.0, 2.0])
def test_observation_stays_in_bounds(gap_analyzer, signal):
    mastery, confidence = 0.5, 0.5
    for _ in range(30):
        mastery, confidence = gap_analyzer.apply_observation(mastery, confidence, signal)
        assert 0.0 <= mastery <= 1.0
        assert 0.0 <= confidence <= 1.0


def test_severity_never_negative(gap_analyzer):
    assert gap_analyzer.severity(0.95, 3.0) == 0.0
    assert gap_analyzer.severity(0.2, 1.0) == pytest.approx(0.5)


@pytest.mark.asyncio
async def test_failed_topic_becomes_weighted_gap(gap_analyzer, generator, calculus):
    assessment, attempt = await _attempt(generator, correct_topics={"limits"})

    result = await gap_analyzer.analyze_attempt(STUDENT, assessment.id, attempt.id)

    assert result.updated_topics == ["derivatives", "limits"]
    # Two right answers lift limits from 0 to 0.51, still short of the threshold
    assert [g.topic for g in result.gaps] == ["derivatives", "limits"]
    derivatives, limits = result.gaps
    assert derivatives.mastery_at_detection == 0.0
    assert derivatives.detected_from == attempt.id
    # calc-1 is tagged derivatives and has two items downstream of it
    assert derivatives.severity == pytest.approx(round(0.7 * (1 + math.log(3)), 4))
    # limits-1 has nothing downstream
    assert limits.severity == pytest.approx(0.19)
    assert derivatives.severity > limits.severity

    profile = await gap_analyzer.get_profile(STUDENT)
    assert profile.mastery("derivatives") == 0.0
    assert profile.mastery("limits") == pytest.approx(0.51)
    assert profile.topics["limits"].observations == 2
    assert profile.confidence("limits") == pytest.approx(0.36)


@pytest.mark.asyncio
async def test_partial_credit_lowers_mastery_and_weights_the_gap(gap_analyzer, generator, repos, add_question, calculus):
    await repos.knowledge.save_entry(STUDENT, TopicMasteryRead(
        topic="derivatives", subject_area=SUBJECT, mastery=0.8, confidence=0.5,
        observations=4, last_updated=utcnow(),
    ))
    question = await add_question(
        SUBJECT, ["derivatives"],
        question_type=QuestionType.MULTI_SELECT,
        correct_answer=["a", "b", "c", "d", "e"],
        points=5,
    )
    assessment = await repos.assessments.create_assessment(
        title="Derivative rules",
        kind="initial",
        subject_area=SUBJECT,
        questions=[question],
        time_limit=10,
        minimum_passing_score=0.0,
        student_id=STUDENT,
    )
    attempt = await generator.submit_attempt(STUDENT, assessment.id, [
        AnswerSubmission(question_id=question.id, student_answer=["a", "b"]),
    ])
    assert attempt.score == 40.0

    result = await gap_analyzer.analyze_attempt(STUDENT, assessment.id, attempt.id)

    profile = await gap_analyzer.get_profile(STUDENT)
    new_mastery = profile.mastery("derivatives")
    assert new_mastery == pytest.approx(0.8 * 0.7 + 0.4 * 0.3)
    assert new_mastery < 0.8
    assert profile.topics["derivatives"].observations == 5

    [gap] = result.gaps
    assert gap.topic == "derivatives"
    assert gap.mastery_at_detection == pytest.approx(new_mastery)
    assert gap.severity == pytest.approx((0.7 - new_mastery) * (1 + math.log(3)), abs=1e-4)


@pytest.mark.asyncio
async def test_reanalysis_returns_original_gaps(gap_analyzer, generator, calculus):
    assessment, attempt = await _attempt(generator, correct_topics=set())

    first = await gap_analyzer.analyze_attempt(STUDENT, assessment.id, attempt.id)
    second = await gap_analyzer.analyze_attempt(STUDENT, assessment.id, attempt.id)

    assert second.already_analyzed is True
    assert sorted(g.id for g in second.gaps) == sorted(g.id for g in first.gaps)
    profile = await gap_analyzer.get_profile(STUDENT)
    assert profile.topics["derivatives"].observations == 2
    assert len(await gap_analyzer.list_gaps(STUDENT, unresolved_only=True)) == 2


@pytest.mark.asyncio
async def test_mastered_topic_resolves_open_gaps(gap_analyzer, generator, repos, calculus):
    await repos.knowledge.save_entry(STUDENT, TopicMasteryRead(
        topic="limits", subject_area=SUBJECT, mastery=0.9, confidence=0.6,
        observations=5, last_updated=utcnow(),
    ))
    await gap_analyzer.update_profile(
        STUDENT,
        attempt_ids=[],
        extra_gaps=[KnowledgeGapIn(subject_area=SUBJECT, topic="limits", severity=0.4)],
    )
    assert [g.topic for g in await gap_analyzer.list_gaps(STUDENT, unresolved_only=True)] == ["limits"]

    assessment, attempt = await _attempt(generator, correct_topics={"limits"})
    result = await gap_analyzer.analyze_attempt(STUDENT, assessment.id, attempt.id)

    assert result.resolved_topics == ["limits"]
    open_topics = [g.topic for g in await gap_analyzer.list_gaps(STUDENT, unresolved_only=True)]
    assert open_topics == ["derivatives"]
    resolved = [g for g in await gap_analyzer.list_gaps(STUDENT) if g.topic == "limits"]
    assert resolved[0].resolved is True
    assert resolved[0].resolved_by_attempt == attempt.id


@pytest.mark.asyncio
async def test_update_profile_analyzes_listed_attempts(gap_analyzer, generator, repos, calculus):
    _, attempt = await _attempt(generator, correct_topics={"derivatives", "limits"})

    profile = await gap_analyzer.update_profile(STUDENT, attempt_ids=[attempt.id], extra_gaps=[])

    assert profile.mastery("derivatives") == pytest.approx(0.51)
    assert profile.topics["derivatives"].observations == 2
    assert (await repos.assessments.get_attempt(attempt.id)).analyzed_at is not None


@pytest.mark.asyncio
async def test_attempt_must_match_student_and_assessment(gap_analyzer, generator, calculus):
    assessment, attempt = await _attempt(generator, correct_topics=set())
    other, _ = await _attempt(generator, correct_topics=set())

    with pytest.raises(ValidationError):
        await gap_analyzer.analyze_attempt("someone-else", assessment.id, attempt.id)
    with pytest.raises(ValidationError):
        await gap_analyzer.analyze_attempt(STUDENT, other.id, attempt.id)
    with pytest.raises(NotFoundError):
        await gap_analyzer.analyze_attempt(STUDENT, assessment.id, uuid.uuid4())


@pytest.mark.asyncio
async def test_untagged_question_topics_are_inferred(gap_analyzer, repos, add_content, add_question):
    await add_content("calc-1", topics=["derivatives"])
    question = await add_question(SUBJECT, [], text="Explain how derivatives describe the rate of change")
    assessment = await repos.assessments.create_assessment(
        title="Quick check",
        kind="initial",
        subject_area=SUBJECT,
        questions=[question],
        time_limit=10,
        minimum_passing_score=0.0,
        student_id=STUDENT,
    )
    attempt = await repos.assessments.create_attempt(
        student_id=STUDENT,
        assessment_id=assessment.id,
        answers=[AnswerRecord(
            question_id=question.id,
            student_answer="B",
            is_correct=False,
            points_earned=0.0,
            points_possible=1.0,
        )],
        score=0.0,
        passed=False,
        submitted_at=utcnow(),
    )

    result = await gap_analyzer.analyze_attempt(STUDENT, assessment.id, attempt.id)

    assert result.used_fallback is True
    assert result.updated_topics == ["derivatives"]
