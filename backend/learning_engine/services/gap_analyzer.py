"""
Adaptive Learning Engine - Gap Analyzer
Turns graded attempts into mastery updates and knowledge gap records
"""
import logging
import math
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime

from learning_engine.ai.content_analysis import ContentAnalysisType, ContentAnalyzer
from learning_engine.core.config import settings
from learning_engine.core.database import utcnow
from learning_engine.core.errors import NotFoundError, ValidationError
from learning_engine.core.locks import knowledge_locks
from learning_engine.repositories.assessment import AssessmentRepository
from learning_engine.repositories.content import ContentRepository
from learning_engine.repositories.knowledge import KnowledgeRepository
from learning_engine.schemas.assessment import AssessmentRead, AttemptRead, Question
from learning_engine.schemas.knowledge import (
    KnowledgeGapIn,
    KnowledgeGapRead,
    KnowledgeProfile,
    TopicMasteryRead,
)
from learning_engine.services.prerequisite_graph import PrerequisiteGraph
from learning_engine.services.scales import clamp01

logger = logging.getLogger(__name__)


@dataclass
class GapAnalysisResult:
    attempt_id: uuid.UUID
    gaps: list[KnowledgeGapRead] = field(default_factory=list)
    updated_topics: list[str] = field(default_factory=list)
    resolved_topics: list[str] = field(default_factory=list)
    used_fallback: bool = False
    already_analyzed: bool = False


class GapAnalyzer:
    """
    Knowledge tracker 🔎

    Each answered question yields a correctness signal in [0, 1] for the
    topics it tests. Mastery follows an exponential moving average of those
    signals; confidence grows with every observation and saturates at 1.
    """

    def __init__(
        self,
        knowledge: KnowledgeRepository,
        assessments: AssessmentRepository,
        content: ContentRepository,
        analyzer: ContentAnalyzer,
    ):
        self.knowledge = knowledge
        self.assessments = assessments
        self.content = content
        self.analyzer = analyzer
        self.alpha = settings.MASTERY_EMA_ALPHA
        self.threshold = settings.GAP_THRESHOLD

    # ------------------------------------------------------------------
    # Pure math
    # ------------------------------------------------------------------

    def apply_observation(self, mastery: float, confidence: float, signal: float) -> tuple[float, float]:
        """One EMA step. An unseen topic enters with mastery 0."""
        signal = clamp01(signal)
        new_mastery = mastery * (1 - self.alpha) + signal * self.alpha
        new_confidence = confidence + (1 - confidence) * settings.CONFIDENCE_GAIN
        return clamp01(new_mastery), clamp01(new_confidence)

    @staticmethod
    def signal_for(question: Question, points_earned: float, points_possible: float, is_correct: bool) -> float:
        if question.question_type.partial_credit and points_possible > 0:
            return clamp01(points_earned / points_possible)
        return 1.0 if is_correct else 0.0

    @staticmethod
    def importance(graph: PrerequisiteGraph, topic: str) -> float:
        """1 + ln(1 + number of items downstream of content tagged with the topic)."""
        return 1.0 + math.log1p(graph.downstream_count(graph.tagged_with(topic)))

    def severity(self, mastery: float, importance: float) -> float:
        return round(max(0.0, self.threshold - mastery) * importance, 4)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def _topic_signals(
        self, assessment: AssessmentRead, attempt: AttemptRead, graph: PrerequisiteGraph
    ) -> tuple[dict[str, list[float]], bool]:
        questions = {q.id: q for q in assessment.questions}
        known_topics = sorted(
            {t for q in assessment.questions for t in q.topics}
            | {t for item in graph.content.values() for t in item.topics}
        )

        signals: dict[str, list[float]] = defaultdict(list)
        used_fallback = False
        for answer in attempt.answers:
            question = questions.get(answer.question_id)
            if question is None:
                logger.warning("Attempt %s answers unknown question %s", attempt.id, answer.question_id)
                continue

            topics = question.topics
            if not topics:
                analysis = await self.analyzer.analyze_content(
                    question.question_text,
                    ContentAnalysisType.ASSESSMENT_GENERATION,
                    known_topics=known_topics,
                )
                used_fallback = used_fallback or analysis.used_fallback
                topics = analysis.key_topics[:1] or [assessment.subject_area]

            signal = self.signal_for(
                question, answer.points_earned, answer.points_possible, answer.is_correct
            )
            for topic in topics:
                signals[topic].append(signal)
        return signals, used_fallback

    async def _merge_topic(
        self,
        student_id: str,
        topic: str,
        subject_area: str,
        signals: list[float],
        now: datetime,
    ) -> TopicMasteryRead:
        entry = await self.knowledge.get_entry(student_id, topic, for_update=True)
        mastery = entry.mastery if entry else 0.0
        confidence = entry.confidence if entry else 0.0
        observations = entry.observations if entry else 0

        for signal in signals:
            mastery, confidence = self.apply_observation(mastery, confidence, signal)
            observations += 1

        return await self.knowledge.save_entry(student_id, TopicMasteryRead(
            topic=topic,
            subject_area=subject_area,
            mastery=mastery,
            confidence=confidence,
            observations=observations,
            last_updated=now,
        ))

    async def analyze_attempt(
        self, student_id: str, assessment_id: uuid.UUID, attempt_id: uuid.UUID
    ) -> GapAnalysisResult:
        """
        Fold an attempt into the student's profile.

        An attempt is analyzed once; repeat calls return the gaps recorded
        the first time without touching the profile again.
        """
        async with knowledge_locks.hold(("attempt", attempt_id)):
            assessment = await self.assessments.get_assessment(assessment_id)
            if assessment is None:
                raise NotFoundError(f"Assessment {assessment_id} not found")
            attempt = await self.assessments.get_attempt(attempt_id, for_update=True)
            if attempt is None:
                raise NotFoundError(f"Attempt {attempt_id} not found")
            if attempt.assessment_id != assessment_id:
                raise ValidationError(f"Attempt {attempt_id} does not belong to assessment {assessment_id}")
            if attempt.student_id != student_id:
                raise ValidationError(f"Attempt {attempt_id} does not belong to student {student_id}")

            if attempt.analyzed_at is not None:
                return GapAnalysisResult(
                    attempt_id=attempt_id,
                    gaps=await self.knowledge.gaps_from_attempt(attempt_id),
                    already_analyzed=True,
                )

            graph = await PrerequisiteGraph.load(self.content)
            signals, used_fallback = await self._topic_signals(assessment, attempt, graph)
            result = GapAnalysisResult(attempt_id=attempt_id, used_fallback=used_fallback)
            now = utcnow()

            async with knowledge_locks.hold_many((student_id, topic) for topic in signals):
                for topic in sorted(signals):
                    entry = await self._merge_topic(
                        student_id, topic, assessment.subject_area, signals[topic], now
                    )
                    result.updated_topics.append(topic)

                    if entry.mastery < self.threshold:
                        result.gaps.append(await self.knowledge.add_gap(
                            student_id=student_id,
                            subject_area=assessment.subject_area,
                            topic=topic,
                            severity=self.severity(entry.mastery, self.importance(graph, topic)),
                            mastery_at_detection=entry.mastery,
                            detected_at=now,
                            detected_from=attempt_id,
                        ))
                    elif await self.knowledge.resolve_gaps(student_id, topic, now, attempt_id):
                        result.resolved_topics.append(topic)

            await self.assessments.update_attempt(attempt_id, analyzed_at=now)

        logger.info(
            "Analyzed attempt %s for %s: %d topics, %d gaps, %d resolved",
            attempt_id, student_id, len(result.updated_topics), len(result.gaps),
            len(result.resolved_topics),
        )
        return result

    async def analyze(
        self, student_id: str, assessment_id: uuid.UUID, attempt_id: uuid.UUID
    ) -> list[KnowledgeGapRead]:
        result = await self.analyze_attempt(student_id, assessment_id, attempt_id)
        return result.gaps

    async def update_profile(
        self,
        student_id: str,
        attempt_ids: list[uuid.UUID],
        extra_gaps: list[KnowledgeGapIn],
    ) -> KnowledgeProfile:
        """Analyze several attempts and record externally detected gaps."""
        for attempt_id in attempt_ids:
            attempt = await self.assessments.get_attempt(attempt_id)
            if attempt is None:
                raise NotFoundError(f"Attempt {attempt_id} not found")
            await self.analyze_attempt(student_id, attempt.assessment_id, attempt_id)

        now = utcnow()
        for gap in extra_gaps:
            async with knowledge_locks.hold((student_id, gap.topic)):
                entry = await self.knowledge.get_entry(student_id, gap.topic)
                await self.knowledge.add_gap(
                    student_id=student_id,
                    subject_area=gap.subject_area,
                    topic=gap.topic,
                    severity=gap.severity,
                    mastery_at_detection=entry.mastery if entry else 0.0,
                    detected_at=now,
                    detected_from=gap.detected_from,
                )

        return await self.knowledge.get_profile(student_id)

    async def get_profile(self, student_id: str) -> KnowledgeProfile:
        return await self.knowledge.get_profile(student_id)

    async def list_gaps(self, student_id: str, unresolved_only: bool = False) -> list[KnowledgeGapRead]:
        return await self.knowledge.list_gaps(student_id, unresolved_only=unresolved_only)
