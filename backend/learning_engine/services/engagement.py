"""
Adaptive Learning Engine - Engagement Analyzer
Derives a recency-weighted behaviour pattern from interaction events
"""
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional

from learning_engine.core.config import settings
from learning_engine.core.database import as_utc, utcnow
from learning_engine.core.errors import ValidationError
from learning_engine.repositories.engagement import EngagementRepository
from learning_engine.schemas.common import InteractionType
from learning_engine.schemas.engagement import (
    ContentTypeEngagement,
    EngagementPattern,
    InteractionEventIn,
    InteractionEventRead,
)

logger = logging.getLogger(__name__)


class EngagementAnalyzer:
    """
    Tracks how a student engages with each kind of content.

    Momentum is a decayed, weighted count of interactions: an event loses
    half its weight every ENGAGEMENT_HALF_LIFE_DAYS. The stored pattern is a
    cache; the event log is the source of truth.
    """

    INTERACTION_WEIGHTS = {
        InteractionType.VIEW: 0.5,
        InteractionType.START: 1.0,
        InteractionType.COMPLETE: 2.0,
    }

    # Pattern thresholds
    HIGH_COMPLETION_RATE = 0.8
    STRUGGLING_COMPLETION_RATE = 0.4
    MIN_STARTS_FOR_PATTERN = 3
    FAST_SESSION_SECONDS = 600
    SLOW_SESSION_SECONDS = 1800

    def __init__(self, engagement: EngagementRepository):
        self.engagement = engagement

    async def record(
        self,
        student_id: str,
        events: list[InteractionEventIn],
        now: Optional[datetime] = None,
    ) -> Optional[EngagementPattern]:
        """
        Store events. The pattern is recomputed only when the batch
        contains a completion; otherwise None is returned.
        """
        if not events:
            raise ValidationError("At least one interaction event is required")

        now = now or utcnow()
        await self.engagement.add_events([
            InteractionEventRead(
                student_id=student_id,
                content_id=event.content_id,
                content_type=event.content_type,
                interaction_type=event.interaction_type,
                duration=event.duration,
                timestamp=as_utc(event.timestamp) or now,
            )
            for event in events
        ])

        if any(e.interaction_type == InteractionType.COMPLETE for e in events):
            return await self.analyze(student_id, now=now)
        return None

    async def analyze(self, student_id: str, now: Optional[datetime] = None) -> EngagementPattern:
        """Recompute the pattern from the event log and refresh the cache."""
        now = now or utcnow()
        since = now - timedelta(days=settings.ENGAGEMENT_LOOKBACK_DAYS)
        events = await self.engagement.list_events(student_id, since=since)
        pattern = self.compute(student_id, events, now)
        await self.engagement.save_snapshot(pattern)
        return pattern

    async def cached_pattern(self, student_id: str) -> EngagementPattern:
        """Cached pattern, computing it on first use. May lag the event log."""
        cached = await self.engagement.get_snapshot(student_id)
        if cached is not None:
            return cached
        return await self.analyze(student_id)

    async def interacted_content(self, student_id: str) -> set[str]:
        events = await self.engagement.list_events(student_id)
        return {event.content_id for event in events}

    def compute(
        self, student_id: str, events: list[InteractionEventRead], now: datetime
    ) -> EngagementPattern:
        now = as_utc(now)
        half_life = settings.ENGAGEMENT_HALF_LIFE_DAYS
        by_type: dict[str, ContentTypeEngagement] = defaultdict(ContentTypeEngagement)
        durations: list[int] = []
        recent_days: set = set()

        for event in events:
            timestamp = as_utc(event.timestamp)
            stats = by_type[event.content_type.value]
            stats.interaction_count += 1
            if event.interaction_type == InteractionType.VIEW:
                stats.views += 1
            elif event.interaction_type == InteractionType.START:
                stats.starts += 1
            else:
                stats.completions += 1

            age_days = max(0.0, (now - timestamp).total_seconds() / 86400)
            stats.momentum += self.INTERACTION_WEIGHTS[event.interaction_type] * 0.5 ** (age_days / half_life)

            if event.duration is not None:
                durations.append(event.duration)
            if age_days <= 7:
                recent_days.add(timestamp.date())

        for stats in by_type.values():
            stats.completion_rate = _completion_rate(stats.starts, stats.completions)

        strongest = max((s.momentum for s in by_type.values()), default=0.0)
        for stats in by_type.values():
            stats.momentum = round(stats.momentum, 6)
            stats.momentum_share = round(stats.momentum / strongest, 6) if strongest > 0 else 0.0

        preferred = None
        if strongest > 0:
            preferred = min(by_type, key=lambda t: (-by_type[t].momentum, t))

        starts = sum(s.starts for s in by_type.values())
        completions = sum(s.completions for s in by_type.values())
        completion_rate = _completion_rate(starts, completions)
        average_duration = sum(durations) / len(durations) if durations else 0.0

        if not durations:
            pace = "moderate"
        elif average_duration < self.FAST_SESSION_SECONDS:
            pace = "fast"
        elif average_duration > self.SLOW_SESSION_SECONDS:
            pace = "slow"
        else:
            pace = "moderate"

        patterns = []
        if starts >= self.MIN_STARTS_FOR_PATTERN:
            if completion_rate >= self.HIGH_COMPLETION_RATE:
                patterns.append("high_completion")
            elif completion_rate < self.STRUGGLING_COMPLETION_RATE:
                patterns.append("struggling_learner")
        if len(recent_days) >= 3:
            patterns.append("consistent_learner")
        if preferred:
            patterns.append(f"prefers_{preferred}")

        return EngagementPattern(
            student_id=student_id,
            by_content_type=dict(sorted(by_type.items())),
            completion_rate=completion_rate,
            average_session_duration=round(average_duration, 2),
            preferred_content_type=preferred,
            pace_preference=pace,
            patterns=patterns,
            event_count=len(events),
            computed_at=now,
        )


def _completion_rate(starts: int, completions: int) -> float:
    # Completing without a recorded start still counts as one attempt
    attempts = max(starts, completions)
    return round(completions / attempts, 4) if attempts else 0.0
