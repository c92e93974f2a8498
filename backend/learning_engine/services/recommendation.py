"""
Adaptive Learning Engine - Recommendation Ranker
Scores reachable content against gaps, level and engagement, with an
inspectable per-factor breakdown for every recommendation.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from learning_engine.ai.content_analysis import ContentAnalysisType, ContentAnalyzer
from learning_engine.core.config import settings
from learning_engine.core.database import utcnow
from learning_engine.core.errors import ExternalServiceError, NotFoundError, PermissionDeniedError
from learning_engine.repositories.knowledge import KnowledgeRepository
from learning_engine.repositories.recommendation import RecommendationRepository
from learning_engine.schemas.common import ProgressStatus
from learning_engine.schemas.content import ContentMetadata
from learning_engine.schemas.engagement import EngagementPattern
from learning_engine.schemas.knowledge import KnowledgeProfile
from learning_engine.schemas.recommendation import (
    FactorContribution,
    RecommendationExplanation,
    RecommendationFeedbackIn,
    RecommendationRead,
    RecommendationRequest,
)
from learning_engine.services.engagement import EngagementAnalyzer
from learning_engine.services.progression import AccessSnapshot, ProgressionController
from learning_engine.services.scales import clamp01, nominal_difficulty

logger = logging.getLogger(__name__)

FACTORS = (
    "gap_relevance",
    "difficulty_fit",
    "engagement_fit",
    "novelty",
    "prerequisite_readiness",
)


@dataclass
class _Context:
    """Everything scoring needs about one student, loaded once per request."""
    profile: KnowledgeProfile
    gap_severity: dict[str, float]  # most recent unresolved severity per topic
    max_severity: float
    pattern: EngagementPattern
    touched: set[str]
    known_topics: list[str]
    exclude_completed: bool
    snapshot: AccessSnapshot


@dataclass
class _Candidate:
    item: ContentMetadata
    factors: dict[str, FactorContribution]
    score: float
    tie_severity: float
    used_fallback: bool
    gap_topics: list[str]


class RecommendationRanker:
    """
    Recommendation engine 🎯

    score = sum(weight_f * value_f) over the fixed factor set. Blocked and
    unreachable content is never recommended; a factor that cannot be
    computed contributes 0 instead of failing the request.
    """

    def __init__(
        self,
        recommendations: RecommendationRepository,
        knowledge: KnowledgeRepository,
        progression: ProgressionController,
        engagement: EngagementAnalyzer,
        analyzer: ContentAnalyzer,
    ):
        self.recommendations = recommendations
        self.knowledge = knowledge
        self.progression = progression
        self.engagement = engagement
        self.analyzer = analyzer
        self.weights = settings.RECOMMENDATION_WEIGHTS

    async def _context(
        self, student_id: str, request: RecommendationRequest, snapshot: AccessSnapshot
    ) -> _Context:
        gap_severity: dict[str, float] = {}
        for gap in await self.knowledge.list_gaps(student_id, unresolved_only=True):
            gap_severity[gap.topic] = gap.severity  # oldest first, so the latest wins

        touched = await self.engagement.interacted_content(student_id)
        touched |= {
            cid for cid, record in snapshot.records.items()
            if record.status != ProgressStatus.NOT_STARTED
        }

        return _Context(
            profile=await self.knowledge.get_profile(student_id),
            gap_severity=gap_severity,
            max_severity=max(gap_severity.values(), default=0.0),
            pattern=await self.engagement.cached_pattern(student_id),
            touched=touched,
            known_topics=sorted({t for item in snapshot.graph.content.values() for t in item.topics}),
            exclude_completed=request.exclude_completed,
            snapshot=snapshot,
        )

    async def _metadata(
        self, item: ContentMetadata, known_topics: list[str]
    ) -> tuple[list[str], Optional[float], bool]:
        """Topics and difficulty, inferred from the text when the catalog lacks them."""
        if item.topics and item.difficulty is not None:
            return item.topics, item.difficulty, False

        text = "\n\n".join(part for part in (item.title, item.description) if part)
        try:
            analysis = await self.analyzer.analyze_content(
                text, ContentAnalysisType.DIFFICULTY_ASSESSMENT, known_topics=known_topics
            )
        except ExternalServiceError as e:
            logger.warning("Could not infer metadata for %s: %s", item.content_id, e.message)
            return item.topics, item.difficulty, True

        topics = item.topics or analysis.key_topics
        difficulty = item.difficulty if item.difficulty is not None else nominal_difficulty(analysis.difficulty)
        return topics, difficulty, analysis.used_fallback

    @staticmethod
    def _readiness(content_id: str, snapshot: AccessSnapshot) -> float:
        """
        How comfortably the student cleared the item's prerequisites.

        Candidates are reachable, so every edge is already satisfied. An edge
        without a recorded score counts fully; a scored edge earns 0.5 at the
        minimum score rising to 1.0 at 100. No prerequisites means ready.
        """
        edges = snapshot.graph.prerequisites(content_id)
        if not edges:
            return 1.0
        total = 0.0
        for edge in edges:
            record = snapshot.records.get(edge.requires_content_id)
            score = record.score if record else None
            floor = edge.minimum_score or 0.0
            if score is None or floor >= 100:
                total += 1.0
                continue
            margin = clamp01((score - floor) / (100 - floor))
            total += 0.5 + 0.5 * margin
        return total / len(edges)

    def _factor_values(
        self,
        item: ContentMetadata,
        topics: list[str],
        difficulty: Optional[float],
        ctx: _Context,
    ) -> dict[str, Optional[float]]:
        gap_relevance = None
        severities = [ctx.gap_severity[t] for t in topics if t in ctx.gap_severity]
        if severities and ctx.max_severity > 0:
            gap_relevance = max(severities) / ctx.max_severity

        difficulty_fit = None
        if difficulty is not None:
            masteries = [ctx.profile.mastery(t) for t in topics] or [
                entry.mastery for entry in ctx.profile.topics.values()
            ]
            if masteries:
                level = sum(masteries) / len(masteries)
                difficulty_fit = 1.0 - abs(difficulty - level)

        engagement_fit = None
        if ctx.pattern.event_count:
            engagement_fit = ctx.pattern.momentum_share(item.content_type.value)

        if not ctx.exclude_completed:
            novelty = 1.0
        else:
            novelty = 0.0 if item.content_id in ctx.touched else 1.0

        return {
            "gap_relevance": gap_relevance,
            "difficulty_fit": difficulty_fit,
            "engagement_fit": engagement_fit,
            "novelty": novelty,
            "prerequisite_readiness": self._readiness(item.content_id, ctx.snapshot),
        }

    async def _score(self, item: ContentMetadata, ctx: _Context) -> _Candidate:
        topics, difficulty, used_fallback = await self._metadata(item, ctx.known_topics)
        values = self._factor_values(item, topics, difficulty, ctx)

        factors = {}
        for name in FACTORS:
            value = clamp01(values[name]) if values[name] is not None else 0.0
            weight = self.weights[name]
            factors[name] = FactorContribution(value=value, weight=weight, contribution=weight * value)

        score = 0.0
        for name in FACTORS:
            score += factors[name].contribution

        gap_topics = sorted(
            (t for t in topics if t in ctx.gap_severity),
            key=lambda t: (-ctx.gap_severity[t], t),
        )
        return _Candidate(
            item=item,
            factors=factors,
            score=score,
            tie_severity=ctx.gap_severity[gap_topics[0]] if gap_topics else 0.0,
            used_fallback=used_fallback,
            gap_topics=gap_topics,
        )

    @staticmethod
    def _explain(candidate: _Candidate) -> str:
        factors = candidate.factors
        reasons = []
        if factors["gap_relevance"].value > 0 and candidate.gap_topics:
            reasons.append(f"it targets your knowledge gap in {candidate.gap_topics[0]}")
        if factors["difficulty_fit"].value >= 0.7:
            reasons.append("it matches your current level")
        if factors["engagement_fit"].value >= 0.5:
            reasons.append(f"you engage well with {candidate.item.content_type.value}s")
        if factors["novelty"].value == 1.0:
            reasons.append("you have not seen it yet")
        if not reasons:
            return "Next available step in your learning path."
        return "Recommended because " + ", and ".join(reasons) + "."

    async def generate(
        self, student_id: str, request: Optional[RecommendationRequest] = None
    ) -> list[RecommendationRead]:
        request = request or RecommendationRequest(limit=settings.RECOMMENDATION_DEFAULT_LIMIT)
        snapshot = await self.progression.snapshot(student_id)
        ctx = await self._context(student_id, request, snapshot)

        candidates = []
        for content_id in sorted(snapshot.graph.content):
            item = snapshot.graph.content[content_id]
            if not item.is_published:
                continue
            if request.content_type is not None and item.content_type != request.content_type:
                continue
            if request.exclude_completed and snapshot.status(content_id) == ProgressStatus.COMPLETED:
                continue
            if not snapshot.decision(content_id).granted:
                continue
            candidates.append(await self._score(item, ctx))

        candidates.sort(key=lambda c: (-c.score, -c.tie_severity, c.item.content_id))

        now = utcnow()
        results = []
        for rank, candidate in enumerate(candidates[:request.limit], start=1):
            results.append(await self.recommendations.add(
                student_id=student_id,
                content_id=candidate.item.content_id,
                content_type=candidate.item.content_type,
                rank=rank,
                score=candidate.score,
                factor_breakdown=candidate.factors,
                explanation=self._explain(candidate),
                used_fallback=candidate.used_fallback,
                created_at=now,
            ))

        logger.info(
            "Generated %d recommendations for %s from %d candidates",
            len(results), student_id, len(candidates),
        )
        return results

    async def _owned(self, student_id: str, recommendation_id: uuid.UUID) -> RecommendationRead:
        recommendation = await self.recommendations.get(recommendation_id)
        if recommendation is None:
            raise NotFoundError(f"Recommendation {recommendation_id} not found")
        if recommendation.student_id != student_id:
            raise PermissionDeniedError(f"Recommendation {recommendation_id} belongs to another student")
        return recommendation

    async def record_feedback(
        self, student_id: str, feedback: RecommendationFeedbackIn
    ) -> RecommendationRead:
        recommendation = await self._owned(student_id, feedback.recommendation_id)
        if feedback.viewed is not None or feedback.clicked is not None:
            recommendation = await self.recommendations.set_flags(
                feedback.recommendation_id, viewed=feedback.viewed, clicked=feedback.clicked
            )
        if feedback.rating is not None or feedback.comment:
            await self.recommendations.add_feedback(
                recommendation_id=feedback.recommendation_id,
                student_id=student_id,
                rating=feedback.rating,
                comment=feedback.comment,
                created_at=utcnow(),
            )
        return recommendation

    async def explain(
        self, student_id: str, recommendation_id: uuid.UUID
    ) -> RecommendationExplanation:
        recommendation = await self._owned(student_id, recommendation_id)
        return RecommendationExplanation(
            recommendation_id=recommendation.id,
            content_id=recommendation.content_id,
            score=recommendation.score,
            factors=recommendation.factor_breakdown,
            explanation=recommendation.explanation,
        )
