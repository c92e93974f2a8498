"""
Adaptive Learning Engine - Engagement Analyzer Tests
"""
from datetime import timedelta

import pytest

from learning_engine.core.database import utcnow
from learning_engine.core.errors import ValidationError
from learning_engine.schemas.common import ContentType, InteractionType
from learning_engine.schemas.engagement import InteractionEventIn, InteractionEventRead

STUDENT = "student-1"


def _event(content_id, content_type, interaction, at, duration=None):
    return InteractionEventIn(
        content_id=content_id,
        content_type=content_type,
        interaction_type=interaction,
        duration=duration,
        timestamp=at,
    )


@pytest.mark.asyncio
async def test_pattern_recomputed_only_on_completion(engagement):
    now = utcnow()
    pattern = await engagement.record(STUDENT, [
        _event("L1", ContentType.LESSON, InteractionType.VIEW, now),
        _event("L1", ContentType.LESSON, InteractionType.START, now),
    ], now=now)
    assert pattern is None

    pattern = await engagement.record(STUDENT, [
        _event("L1", ContentType.LESSON, InteractionType.COMPLETE, now, duration=900),
    ], now=now)
    assert pattern is not None
    assert pattern.event_count == 3
    assert pattern.by_content_type["lesson"].completions == 1
    assert pattern.completion_rate == 1.0

    cached = await engagement.cached_pattern(STUDENT)
    assert cached.event_count == 3


@pytest.mark.asyncio
async def test_empty_batch_is_rejected(engagement):
    with pytest.raises(ValidationError):
        await engagement.record(STUDENT, [])


def test_recent_interactions_outweigh_old_ones(engagement):
    now = utcnow()
    events = [
        InteractionEventRead(
            student_id=STUDENT,
            content_id=f"A{i}",
            content_type=ContentType.ASSESSMENT,
            interaction_type=InteractionType.COMPLETE,
            timestamp=now - timedelta(days=28),
        )
        for i in range(4)
    ] + [
        InteractionEventRead(
            student_id=STUDENT,
            content_id="L1",
            content_type=ContentType.LESSON,
            interaction_type=InteractionType.COMPLETE,
            timestamp=now,
        ),
    ]

    pattern = engagement.compute(STUDENT, events, now)

    # Four completions four half-lives ago weigh 4 * 2 / 16 = 0.5; one today weighs 2
    assert pattern.by_content_type["assessment"].momentum == pytest.approx(0.5)
    assert pattern.by_content_type["lesson"].momentum == pytest.approx(2.0)
    assert pattern.preferred_content_type == "lesson"
    assert pattern.momentum_share("lesson") == 1.0
    assert pattern.momentum_share("assessment") == pytest.approx(0.25)
    assert pattern.momentum_share("course") == 0.0


def test_behaviour_labels(engagement):
    now = utcnow()
    events = []
    for day in range(3):
        for i in range(2):
            at = now - timedelta(days=day)
            events.append(InteractionEventRead(
                student_id=STUDENT, content_id=f"L{day}{i}", content_type=ContentType.LESSON,
                interaction_type=InteractionType.START, timestamp=at, duration=300,
            ))
    events.append(InteractionEventRead(
        student_id=STUDENT, content_id="L00", content_type=ContentType.LESSON,
        interaction_type=InteractionType.COMPLETE, timestamp=now, duration=300,
    ))

    pattern = engagement.compute(STUDENT, events, now)

    assert pattern.completion_rate == pytest.approx(round(1 / 6, 4))
    assert "struggling_learner" in pattern.patterns
    assert "consistent_learner" in pattern.patterns
    assert pattern.pace_preference == "fast"
    assert pattern.average_session_duration == 300


def test_no_events_gives_neutral_pattern(engagement):
    pattern = engagement.compute(STUDENT, [], utcnow())
    assert pattern.event_count == 0
    assert pattern.preferred_content_type is None
    assert pattern.completion_rate == 0.0
    assert pattern.patterns == []


@pytest.mark.asyncio
async def test_lookback_window_drops_stale_events(engagement):
    now = utcnow()
    await engagement.record(STUDENT, [
        _event("old", ContentType.LESSON, InteractionType.COMPLETE, now - timedelta(days=200)),
    ], now=now)

    pattern = await engagement.analyze(STUDENT, now=now)

    assert pattern.event_count == 0
    assert await engagement.interacted_content(STUDENT) == {"old"}
