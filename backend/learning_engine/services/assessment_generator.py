"""
Adaptive Learning Engine - Adaptive Assessment Generator
Builds initial and personalized assessments from the question bank and
grades the attempts made against them.
"""
import logging
import math
import uuid
from typing import Any, Optional

from learning_engine.ai.question_author import QuestionAuthor
from learning_engine.core.config import settings
from learning_engine.core.database import utcnow
from learning_engine.core.errors import (
    ConfigurationError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from learning_engine.repositories.assessment import AssessmentRepository
from learning_engine.repositories.knowledge import KnowledgeRepository
from learning_engine.schemas.assessment import (
    AnswerRecord,
    AnswerSubmission,
    AssessmentRead,
    AttemptRead,
    InitialAssessmentConfig,
    Question,
    QuestionAuthorRequest,
    QuestionCreate,
)
from learning_engine.schemas.common import QuestionType
from learning_engine.services.scales import BAND_ORDER, bands_by_proximity

logger = logging.getLogger(__name__)


def _normalize(answer: Any) -> str:
    return str(answer).strip().casefold() if answer is not None else ""


class AssessmentGenerator:
    """
    The Examiner 📝

    Initial assessments sample every requested topic across difficulty
    bands. Personalized assessments aim each topic at the band closest to
    the student's current mastery, weakest topics first.
    """

    def __init__(
        self,
        assessments: AssessmentRepository,
        knowledge: KnowledgeRepository,
        author: Optional[QuestionAuthor] = None,
    ):
        self.assessments = assessments
        self.knowledge = knowledge
        self.author = author

    async def _bank(self, subject_area: str) -> list[Question]:
        bank = await self.assessments.bank_questions(subject_area)
        if not bank:
            raise ConfigurationError(f"No question bank exists for subject area '{subject_area}'")
        return bank

    # ------------------------------------------------------------------
    # Initial assessments
    # ------------------------------------------------------------------

    async def create_initial(
        self, config: InitialAssessmentConfig, student_id: Optional[str] = None
    ) -> AssessmentRead:
        topics = list(dict.fromkeys(t.strip() for t in config.topics if t.strip()))
        if not topics:
            raise ValidationError("At least one topic is required")
        if config.question_count <= 0:
            raise ValidationError("question_count must be positive")

        levels = config.difficulty_levels or list(BAND_ORDER)
        time_limit = config.time_limit or settings.INITIAL_ASSESSMENT_TIME_LIMIT
        bank = await self._bank(config.subject_area)
        bank_index = {q.id: i for i, q in enumerate(bank)}

        per_topic = math.ceil(config.question_count / len(topics))
        selected: list[Question] = []
        used: set[uuid.UUID] = set()

        for topic in topics:
            pool = [q for q in bank if topic in q.topics]
            if not pool:
                logger.warning("Question bank %s has nothing on topic %s", config.subject_area, topic)
                continue

            for i in range(per_topic):
                if len(selected) >= config.question_count:
                    break
                band = BAND_ORDER.index(levels[i % len(levels)])
                candidates = sorted(
                    (q for q in pool if q.id not in used),
                    key=lambda q: (abs(BAND_ORDER.index(q.difficulty_level) - band), bank_index[q.id]),
                )
                if not candidates:
                    break
                selected.append(candidates[0])
                used.add(candidates[0].id)

        if not selected:
            raise ConfigurationError(
                f"Question bank for '{config.subject_area}' has no questions on {', '.join(topics)}"
            )

        assessment = await self.assessments.create_assessment(
            title=f"{config.subject_area} placement assessment",
            kind="initial",
            subject_area=config.subject_area,
            questions=selected,
            time_limit=time_limit,
            minimum_passing_score=0.0,
            student_id=student_id,
        )
        logger.info(
            "Created initial assessment %s (%d questions, %d topics)",
            assessment.id, len(selected), len(topics),
        )
        return assessment

    # ------------------------------------------------------------------
    # Personalized assessments
    # ------------------------------------------------------------------

    async def generate_personalized(self, student_id: str, subject_area: str) -> AssessmentRead:
        bank = await self._bank(subject_area)
        bank_index = {q.id: i for i, q in enumerate(bank)}
        profile = await self.knowledge.get_profile(student_id)

        # Most recent unresolved severity per topic
        severities: dict[str, float] = {}
        for gap in await self.knowledge.list_gaps(student_id, unresolved_only=True, subject_area=subject_area):
            severities[gap.topic] = gap.severity

        topics = sorted({t for q in bank for t in q.topics})
        gap_topics = sorted((t for t in topics if t in severities), key=lambda t: (-severities[t], t))
        other_topics = sorted((t for t in topics if t not in severities), key=lambda t: (profile.mastery(t), t))
        ordered = gap_topics + other_topics

        pools = {}
        for topic in ordered:
            preference = bands_by_proximity(profile.mastery(topic))
            pools[topic] = sorted(
                (q for q in bank if topic in q.topics),
                key=lambda q: (preference.index(q.difficulty_level), bank_index[q.id]),
            )

        count = settings.PERSONALIZED_QUESTION_COUNT
        per_topic = max(1, math.ceil(count / max(1, len(ordered))))
        selected: list[Question] = []
        used: set[uuid.UUID] = set()

        while len(selected) < count:
            progressed = False
            for topic in ordered:
                taken = 0
                for question in pools[topic]:
                    if question.id in used:
                        continue
                    selected.append(question)
                    used.add(question.id)
                    taken += 1
                    progressed = True
                    if taken >= per_topic or len(selected) >= count:
                        break
                if len(selected) >= count:
                    break
            if not progressed:
                break

        if not selected:
            raise ConfigurationError(
                f"Question bank for '{subject_area}' has no topic-tagged questions to personalize from"
            )

        assessment = await self.assessments.create_assessment(
            title=f"Personalized {subject_area} practice",
            kind="personalized",
            subject_area=subject_area,
            questions=selected,
            time_limit=settings.PERSONALIZED_TIME_LIMIT,
            minimum_passing_score=settings.PERSONALIZED_PASSING_SCORE,
            max_attempts=settings.PERSONALIZED_MAX_ATTEMPTS,
            student_id=student_id,
        )
        logger.info(
            "Generated personalized assessment %s for %s (%d questions, %d gap topics)",
            assessment.id, student_id, len(selected), len(gap_topics),
        )
        return assessment

    # ------------------------------------------------------------------
    # Grading
    # ------------------------------------------------------------------

    @staticmethod
    def grade_answer(question: Question, submission: Optional[AnswerSubmission]) -> AnswerRecord:
        possible = float(question.points)
        answer = submission.student_answer if submission else None
        earned = 0.0

        if submission is None or answer is None:
            earned = 0.0
        elif question.question_type == QuestionType.MULTI_SELECT:
            correct = {_normalize(a) for a in (question.correct_answer or [])}
            chosen = {_normalize(a) for a in (answer if isinstance(answer, list) else [answer])}
            if correct:
                hits = len(correct & chosen) - len(chosen - correct)
                earned = possible * max(0, hits) / len(correct)
        elif question.question_type in (QuestionType.SHORT_ANSWER, QuestionType.ESSAY):
            if submission.points_awarded is not None:
                earned = min(possible, submission.points_awarded)
            elif question.question_type == QuestionType.SHORT_ANSWER and _normalize(answer) == _normalize(question.correct_answer):
                earned = possible
        elif _normalize(answer) == _normalize(question.correct_answer):
            earned = possible

        return AnswerRecord(
            question_id=question.id,
            student_answer=answer,
            is_correct=math.isclose(earned, possible),
            points_earned=round(earned, 4),
            points_possible=possible,
        )

    @staticmethod
    def _score(answers: list[AnswerRecord], passing_score: float) -> tuple[float, bool]:
        possible = sum(a.points_possible for a in answers)
        earned = sum(a.points_earned for a in answers)
        score = round(earned / possible * 100, 2) if possible else 0.0
        return score, score >= passing_score

    async def submit_attempt(
        self,
        student_id: str,
        assessment_id: uuid.UUID,
        answers: list[AnswerSubmission],
    ) -> AttemptRead:
        assessment = await self.assessments.get_assessment(assessment_id)
        if assessment is None:
            raise NotFoundError(f"Assessment {assessment_id} not found")
        if assessment.student_id is not None and assessment.student_id != student_id:
            raise PermissionDeniedError(f"Assessment {assessment_id} was generated for another student")

        if assessment.max_attempts is not None:
            attempts = await self.assessments.count_attempts(student_id, assessment_id)
            if attempts >= assessment.max_attempts:
                raise ValidationError(
                    f"Maximum attempts ({assessment.max_attempts}) reached for assessment {assessment_id}"
                )

        question_ids = {q.id for q in assessment.questions}
        submitted: dict[uuid.UUID, AnswerSubmission] = {}
        for submission in answers:
            if submission.question_id not in question_ids:
                raise ValidationError(f"Question {submission.question_id} is not part of this assessment")
            submitted[submission.question_id] = submission

        records = [self.grade_answer(q, submitted.get(q.id)) for q in assessment.questions]
        score, passed = self._score(records, assessment.minimum_passing_score)

        attempt = await self.assessments.create_attempt(
            student_id=student_id,
            assessment_id=assessment_id,
            answers=records,
            score=score,
            passed=passed,
            submitted_at=utcnow(),
        )
        logger.info("Attempt %s on %s scored %.1f (passed=%s)", attempt.id, assessment_id, score, passed)
        return attempt

    async def apply_manual_grade(
        self,
        attempt_id: uuid.UUID,
        corrections: dict[uuid.UUID, float],
        graded_by: str,
    ) -> AttemptRead:
        """Instructor correction of awarded points; score and passed are recomputed."""
        attempt = await self.assessments.get_attempt(attempt_id, for_update=True)
        if attempt is None:
            raise NotFoundError(f"Attempt {attempt_id} not found")
        assessment = await self.assessments.get_assessment(attempt.assessment_id)
        if assessment is None:
            raise NotFoundError(f"Assessment {attempt.assessment_id} not found")

        answers = {a.question_id: a for a in attempt.answers}
        for question_id, points in corrections.items():
            answer = answers.get(question_id)
            if answer is None:
                raise ValidationError(f"Question {question_id} is not part of attempt {attempt_id}")
            if not 0 <= points <= answer.points_possible:
                raise ValidationError(
                    f"Points for {question_id} must be between 0 and {answer.points_possible}"
                )
            answers[question_id] = answer.model_copy(update={
                "points_earned": float(points),
                "is_correct": math.isclose(points, answer.points_possible),
            })

        regraded = [answers[a.question_id] for a in attempt.answers]
        score, passed = self._score(regraded, assessment.minimum_passing_score)
        updated = await self.assessments.update_attempt(
            attempt_id,
            answers=regraded,
            score=score,
            passed=passed,
            graded_by=graded_by,
        )
        logger.info("Attempt %s regraded by %s: %.1f -> %.1f", attempt_id, graded_by, attempt.score, score)
        return updated

    # ------------------------------------------------------------------
    # Question bank
    # ------------------------------------------------------------------

    async def add_question(self, question: QuestionCreate) -> Question:
        return await self.assessments.add_question(question)

    async def author_questions(self, request: QuestionAuthorRequest) -> list[Question]:
        """AI-authored bank questions. External failures are surfaced, not masked."""
        if self.author is None:
            raise ConfigurationError("No question author is configured")
        drafts = await self.author.author_questions(
            subject_area=request.subject_area,
            topic=request.topic,
            difficulty=request.difficulty_level,
            count=request.count,
        )
        return [await self.assessments.add_question(draft) for draft in drafts]
