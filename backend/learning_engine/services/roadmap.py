"""
Adaptive Learning Engine - Roadmap Planner
Orders the prerequisite closure of a student's goals into a weekly plan
"""
import hashlib
import json
import logging
import math
import uuid
from datetime import date
from typing import Any, Optional

from learning_engine.core.config import settings
from learning_engine.core.database import utcnow
from learning_engine.core.errors import NotFoundError, ValidationError
from learning_engine.core.locks import roadmap_locks
from learning_engine.repositories.assessment import AssessmentRepository
from learning_engine.repositories.content import ContentRepository
from learning_engine.repositories.knowledge import KnowledgeRepository
from learning_engine.repositories.roadmap import RoadmapRepository
from learning_engine.schemas.common import ContentType, ProgressStatus, RoadmapStatus
from learning_engine.schemas.roadmap import (
    AlternativePath,
    RoadmapRead,
    RoadmapRequest,
    RoadmapStep,
    TimeConstraints,
)
from learning_engine.services.progression import AccessSnapshot, ProgressionController

logger = logging.getLogger(__name__)


class RoadmapPlanner:
    """
    Learning path planner 🗺️

    A roadmap is the set of targets plus everything they transitively
    require, in an order where every prerequisite comes first. Catalog order
    is used while the plan fits the weekly budget; once it does not, the
    most severe knowledge gaps are pulled forward instead.
    """

    def __init__(
        self,
        roadmaps: RoadmapRepository,
        knowledge: KnowledgeRepository,
        progression: ProgressionController,
        content: ContentRepository,
        assessments: AssessmentRepository,
    ):
        self.roadmaps = roadmaps
        self.knowledge = knowledge
        self.progression = progression
        self.content = content
        self.assessments = assessments

    @staticmethod
    def fingerprint(request: RoadmapRequest, constraints: TimeConstraints) -> str:
        payload = {
            "target_skills": sorted({s.strip().casefold() for s in request.target_skills if s.strip()}),
            "hours_per_week": constraints.hours_per_week,
            "target_completion_date": (
                constraints.target_completion_date.isoformat()
                if constraints.target_completion_date else None
            ),
        }
        return hashlib.sha256(json.dumps(payload, sort_keys=True).encode()).hexdigest()

    async def _targets(
        self, student_id: str, request: RoadmapRequest, snapshot: AccessSnapshot
    ) -> list[str]:
        published = [c for c in snapshot.graph.content.values() if c.is_published]

        skills = {s.strip().casefold() for s in request.target_skills if s.strip()}
        if skills:
            targets = [
                c.content_id for c in published
                if any(t.casefold() in skills for t in c.topics)
            ]
            if not targets:
                raise NotFoundError(f"No published content covers {', '.join(sorted(skills))}")
            return sorted(targets)

        courses = set(await self.content.enrolled_course_ids(student_id))
        return sorted(
            c.content_id for c in published
            if c.course_id in courses and c.content_type != ContentType.COURSE
        )

    async def _gap_severity(self, student_id: str) -> dict[str, float]:
        """Most recent unresolved severity per topic."""
        gap_severity: dict[str, float] = {}
        for gap in await self.knowledge.list_gaps(student_id, unresolved_only=True):
            gap_severity[gap.topic] = gap.severity
        return gap_severity

    @staticmethod
    def _severity(snapshot: AccessSnapshot, gap_severity: dict[str, float], content_id: str) -> float:
        topics = snapshot.graph.content[content_id].topics
        return max((gap_severity.get(t, 0.0) for t in topics), default=0.0)

    @staticmethod
    def _step(
        snapshot: AccessSnapshot,
        content_id: str,
        status: ProgressStatus,
        gap_severity: float,
        week: int,
    ) -> RoadmapStep:
        item = snapshot.graph.content[content_id]
        return RoadmapStep(
            content_id=content_id,
            content_type=item.content_type,
            title=item.title,
            order_index=item.order_index,
            estimated_time=item.estimated_time,
            prerequisites=snapshot.graph.requires_ids(content_id),
            completion_status=status,
            gap_severity=gap_severity,
            scheduled_week=week,
            is_unlocked=snapshot.decision(content_id).granted,
        )

    @staticmethod
    def _easier_first(snapshot: AccessSnapshot, content_id: str) -> tuple:
        item = snapshot.graph.content[content_id]
        difficulty = item.difficulty if item.difficulty is not None else 0.5
        return (difficulty, item.order_index, content_id)

    async def generate(
        self,
        student_id: str,
        request: RoadmapRequest,
        today: Optional[date] = None,
    ) -> RoadmapRead:
        """
        Build (or return) the student's active roadmap.

        With unchanged inputs and no force_regenerate the active roadmap is
        returned as is. Regeneration updates it in place and keeps the
        completion of steps that were already done.
        """
        today = today or utcnow().date()
        constraints = request.time_constraints or TimeConstraints(
            hours_per_week=settings.ROADMAP_DEFAULT_HOURS_PER_WEEK
        )
        target_date = constraints.target_completion_date
        if target_date is not None and target_date < today:
            raise ValidationError(f"Target completion date {target_date} is in the past")

        fingerprint = self.fingerprint(request, constraints)

        async with roadmap_locks.hold(student_id):
            existing = await self.roadmaps.get_latest(student_id, RoadmapStatus.ACTIVE, for_update=True)
            if (
                existing is not None
                and not request.force_regenerate
                and existing.personalization_factors.get("input_fingerprint") == fingerprint
            ):
                return existing

            snapshot = await self.progression.snapshot(student_id)
            graph = snapshot.graph
            targets = await self._targets(student_id, request, snapshot)

            def is_completed(content_id: str) -> bool:
                return snapshot.status(content_id) == ProgressStatus.COMPLETED

            nodes = graph.ancestors(
                targets, max_nodes=settings.ROADMAP_MAX_EXPLORED_NODES, stop=is_completed
            )

            gap_severity = await self._gap_severity(student_id)

            def severity(content_id: str) -> float:
                return self._severity(snapshot, gap_severity, content_id)

            def catalog_key(content_id: str) -> tuple:
                item = graph.content[content_id]
                return (0 if is_completed(content_id) else 1, item.course_id or "", item.order_index, content_id)

            remaining = sum(graph.content[n].estimated_time for n in nodes if not is_completed(n))
            total = sum(graph.content[n].estimated_time for n in nodes)

            if target_date is not None:
                weeks = max(1, math.ceil((target_date - today).days / 7))
            else:
                weeks = 1
            weekly_minutes = constraints.hours_per_week * 60
            budget = weekly_minutes * weeks
            fits = remaining <= budget

            if fits:
                order = graph.topological_order(nodes, priority=catalog_key)
            else:
                order = graph.topological_order(
                    nodes,
                    priority=lambda n: (0 if is_completed(n) else 1, -severity(n)) + catalog_key(n)[1:],
                )

            previously_done = set()
            if existing is not None:
                previously_done = {
                    step.content_id for step in existing.learning_path
                    if step.completion_status == ProgressStatus.COMPLETED
                }

            steps = []
            scheduled = 0
            for content_id in order:
                item = graph.content[content_id]
                status = snapshot.status(content_id)
                if content_id in previously_done:
                    status = ProgressStatus.COMPLETED
                if status == ProgressStatus.COMPLETED:
                    week = 0
                else:
                    week = int(scheduled // weekly_minutes) + 1
                    scheduled += item.estimated_time
                steps.append(self._step(snapshot, content_id, status, severity(content_id), week))

            factors: dict[str, Any] = {
                "input_fingerprint": fingerprint,
                "target_skills": sorted(request.target_skills),
                "target_content_ids": targets,
                "hours_per_week": constraints.hours_per_week,
                "target_completion_date": target_date.isoformat() if target_date else None,
                "weeks_available": weeks,
                "time_budget_minutes": budget,
                "fits_time_constraints": fits,
                "shortfall_minutes": max(0, remaining - budget),
                "prioritized_by_gap_severity": not fits,
                "knowledge_gaps": sorted(
                    {t for n in nodes for t in graph.content[n].topics if t in gap_severity}
                ),
            }

            now = utcnow()
            if existing is None:
                roadmap = await self.roadmaps.create(
                    student_id=student_id,
                    learning_path=steps,
                    total_estimated_time=total,
                    remaining_time=remaining,
                    personalization_factors=factors,
                    input_fingerprint=fingerprint,
                    generated_at=now,
                )
            else:
                roadmap = await self.roadmaps.update(
                    existing.id,
                    learning_path=steps,
                    total_estimated_time=total,
                    remaining_time=remaining,
                    personalization_factors=factors,
                    input_fingerprint=fingerprint,
                    generated_at=now,
                    updated_at=now,
                )

        if not fits:
            logger.warning(
                "Roadmap for %s needs %d min but only %d min fit before %s; prioritizing gaps",
                student_id, remaining, budget, target_date,
            )
        logger.info("Roadmap %s for %s: %d steps, %d min remaining", roadmap.id, student_id, len(steps), remaining)
        return roadmap

    async def get_with_progress(self, student_id: str) -> Optional[RoadmapRead]:
        """The active roadmap with step statuses refreshed from current progress."""
        roadmap = await self.roadmaps.get_latest(student_id, RoadmapStatus.ACTIVE)
        if roadmap is None:
            return None

        snapshot = await self.progression.snapshot(student_id)
        steps = []
        for step in roadmap.learning_path:
            status = max(step.completion_status, snapshot.status(step.content_id), key=lambda s: s.rank)
            unlocked = (
                snapshot.decision(step.content_id).granted
                if snapshot.graph.get(step.content_id) else False
            )
            steps.append(step.model_copy(update={"completion_status": status, "is_unlocked": unlocked}))

        remaining = sum(s.estimated_time for s in steps if s.completion_status != ProgressStatus.COMPLETED)
        return roadmap.model_copy(update={"learning_path": steps, "remaining_time": remaining})

    async def set_status(self, student_id: str, status: RoadmapStatus) -> RoadmapRead:
        """Pause the active roadmap or resume the most recently paused one."""
        async with roadmap_locks.hold(student_id):
            active = await self.roadmaps.get_latest(student_id, RoadmapStatus.ACTIVE, for_update=True)
            if status == RoadmapStatus.ACTIVE:
                if active is not None:
                    return active
                paused = await self.roadmaps.get_latest(student_id, RoadmapStatus.PAUSED, for_update=True)
                if paused is None:
                    raise NotFoundError(f"Student {student_id} has no paused roadmap")
                target = paused
            else:
                if active is None:
                    raise NotFoundError(f"Student {student_id} has no active roadmap")
                target = active

            roadmap = await self.roadmaps.update(target.id, status=status, updated_at=utcnow())
        logger.info("Roadmap %s for %s is now %s", roadmap.id, student_id, status.value)
        return roadmap

    # ------------------------------------------------------------------
    # Adaptation
    # ------------------------------------------------------------------

    async def alternative_paths(
        self,
        student_id: str,
        current_content_id: str,
        struggling_topics: Optional[list[str]] = None,
    ) -> list[AlternativePath]:
        """
        Other published content covering each topic the student struggles with.

        Without explicit topics the unresolved knowledge gaps are used, most
        severe first. Easier content is offered first; completed and blocked
        items are skipped. Topics with nothing to offer are left out.
        """
        snapshot = await self.progression.snapshot(student_id)
        graph = snapshot.graph
        current = graph.get(current_content_id)
        if current is None:
            raise NotFoundError(f"Content {current_content_id} not found")

        gap_severity = await self._gap_severity(student_id)
        topics = list(dict.fromkeys(t.strip() for t in (struggling_topics or []) if t.strip()))
        if not topics:
            topics = sorted(gap_severity, key=lambda t: (-gap_severity[t], t))

        paths = []
        for topic in topics:
            candidates = sorted(
                (
                    cid for cid in graph.tagged_with(topic)
                    if cid != current_content_id
                    and graph.content[cid].is_published
                    and graph.content[cid].content_type != ContentType.COURSE
                    and snapshot.status(cid) != ProgressStatus.COMPLETED
                    and not snapshot.decision(cid).blocked
                ),
                key=lambda cid: self._easier_first(snapshot, cid),
            )[:settings.ROADMAP_ALTERNATIVES_PER_TOPIC]
            if not candidates:
                continue

            steps = [
                self._step(
                    snapshot, cid, snapshot.status(cid), self._severity(snapshot, gap_severity, cid), week=1
                )
                for cid in candidates
            ]
            difficulties = [
                graph.content[cid].difficulty for cid in candidates
                if graph.content[cid].difficulty is not None
            ]
            adjustment = "similar"
            if current.difficulty is not None and difficulties:
                mean = sum(difficulties) / len(difficulties)
                if mean < current.difficulty - 0.05:
                    adjustment = "easier"
                elif mean > current.difficulty + 0.05:
                    adjustment = "harder"

            paths.append(AlternativePath(
                topic=topic,
                original_content_id=current_content_id,
                alternative_content=steps,
                reason=f"Alternative learning approach for {topic} to address learning difficulties",
                difficulty_adjustment=adjustment,
                estimated_time_difference=sum(s.estimated_time for s in steps) - current.estimated_time,
            ))

        logger.info(
            "Found %d alternative paths for %s around %s", len(paths), student_id, current_content_id
        )
        return paths

    async def handle_assessment_failure(self, student_id: str, attempt_id: uuid.UUID) -> RoadmapRead:
        """
        Insert remedial steps into the active roadmap after a failed attempt.

        The topics of wrongly answered questions select up to
        ROADMAP_REMEDIAL_PER_TOPIC unfinished published items each, easiest
        first, plus whatever unfinished prerequisites they bring along. They
        are placed before the first pending step on a failed topic, never
        ahead of a prerequisite already on the path. Each attempt adjusts a
        roadmap at most once.

        Raises:
            NotFoundError: unknown attempt, or no active roadmap
            ValidationError: the attempt passed or belongs to another student
        """
        attempt = await self.assessments.get_attempt(attempt_id)
        if attempt is None:
            raise NotFoundError(f"Attempt {attempt_id} not found")
        if attempt.student_id != student_id:
            raise ValidationError(f"Attempt {attempt_id} does not belong to student {student_id}")
        if attempt.passed:
            raise ValidationError(f"Attempt {attempt_id} passed; there is nothing to remediate")
        assessment = await self.assessments.get_assessment(attempt.assessment_id)
        if assessment is None:
            raise NotFoundError(f"Assessment {attempt.assessment_id} not found")

        questions = {q.id: q for q in assessment.questions}
        failed_topics = list(dict.fromkeys(
            topic
            for answer in attempt.answers if not answer.is_correct and answer.question_id in questions
            for topic in questions[answer.question_id].topics
        ))
        attempt_number = await self.assessments.count_attempts(student_id, assessment.id)

        async with roadmap_locks.hold(student_id):
            roadmap = await self.roadmaps.get_latest(student_id, RoadmapStatus.ACTIVE, for_update=True)
            if roadmap is None:
                raise NotFoundError(f"Student {student_id} has no active roadmap")
            adjustments = list(roadmap.personalization_factors.get("adjustments", []))
            if any(a.get("attempt_id") == str(attempt_id) for a in adjustments):
                return roadmap

            snapshot = await self.progression.snapshot(student_id)
            graph = snapshot.graph
            gap_severity = await self._gap_severity(student_id)

            def is_completed(content_id: str) -> bool:
                return snapshot.status(content_id) == ProgressStatus.COMPLETED

            on_path = {step.content_id for step in roadmap.learning_path}
            picked: list[str] = []
            for topic in failed_topics:
                candidates = sorted(
                    (
                        cid for cid in graph.tagged_with(topic)
                        if cid not in on_path and cid not in picked
                        and graph.content[cid].is_published
                        and graph.content[cid].content_type != ContentType.COURSE
                        and not is_completed(cid)
                    ),
                    key=lambda cid: self._easier_first(snapshot, cid),
                )
                picked.extend(candidates[:settings.ROADMAP_REMEDIAL_PER_TOPIC])

            added = {
                cid for cid in graph.ancestors(
                    picked, max_nodes=settings.ROADMAP_MAX_EXPLORED_NODES, stop=is_completed
                )
                if cid not in on_path and not is_completed(cid)
            }
            order = graph.topological_order(added, priority=lambda cid: self._easier_first(snapshot, cid))

            path = list(roadmap.learning_path)
            pending = [i for i, step in enumerate(path) if step.completion_status != ProgressStatus.COMPLETED]
            anchor = next(
                (
                    i for i in pending
                    if graph.get(path[i].content_id) is not None
                    and set(graph.content[path[i].content_id].topics) & set(failed_topics)
                ),
                pending[0] if pending else len(path),
            )
            required = {r for cid in added for r in graph.requires_ids(cid)}
            position = max([anchor] + [i + 1 for i, step in enumerate(path) if step.content_id in required])

            remedial = [
                self._step(
                    snapshot, cid, snapshot.status(cid), self._severity(snapshot, gap_severity, cid), week=1
                )
                for cid in order
            ]
            path[position:position] = remedial

            weekly_minutes = roadmap.personalization_factors.get(
                "hours_per_week", settings.ROADMAP_DEFAULT_HOURS_PER_WEEK
            ) * 60
            scheduled = 0
            for i, step in enumerate(path):
                if step.completion_status == ProgressStatus.COMPLETED:
                    continue
                path[i] = step.model_copy(update={"scheduled_week": int(scheduled // weekly_minutes) + 1})
                scheduled += step.estimated_time

            now = utcnow()
            adjustments.append({
                "trigger": "assessment_failure",
                "attempt_id": str(attempt_id),
                "assessment_id": str(assessment.id),
                "score": attempt.score,
                "attempt_number": attempt_number,
                "failed_topics": failed_topics,
                "added_content_ids": order,
                "suggest_alternative_approach": attempt_number >= settings.ROADMAP_ALTERNATIVE_APPROACH_ATTEMPTS,
                "applied_at": now.isoformat(),
            })
            factors = dict(roadmap.personalization_factors)
            factors["adjustments"] = adjustments
            factors["knowledge_gaps"] = sorted(set(factors.get("knowledge_gaps", [])) | set(failed_topics))

            updated = await self.roadmaps.update(
                roadmap.id,
                learning_path=path,
                total_estimated_time=roadmap.total_estimated_time + sum(s.estimated_time for s in remedial),
                remaining_time=sum(
                    s.estimated_time for s in path if s.completion_status != ProgressStatus.COMPLETED
                ),
                personalization_factors=factors,
                updated_at=now,
            )

        if not order:
            logger.warning("No remedial content found for %s on %s", student_id, ", ".join(failed_topics) or "-")
        logger.info(
            "Roadmap %s for %s adjusted after attempt %s: %d remedial steps",
            updated.id, student_id, attempt_id, len(order),
        )
        return updated
