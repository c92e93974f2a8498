"""
Adaptive Learning Engine - Progression Controller
Gates access to content and propagates unlocks when progress changes
"""
import logging
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from learning_engine.core.database import utcnow
from learning_engine.core.errors import NotFoundError, ValidationError
from learning_engine.core.locks import progress_locks
from learning_engine.repositories.content import ContentRepository
from learning_engine.repositories.progress import ProgressRepository
from learning_engine.schemas.common import ContentType, ProgressStatus
from learning_engine.schemas.content import ContentMetadata
from learning_engine.schemas.progress import (
    AccessDecision,
    CourseItemStatus,
    CourseOverview,
    MissingPrerequisite,
    ProgressionBlockRead,
    ProgressRecordRead,
    ProgressUpdate,
    ProgressUpdateResult,
)
from learning_engine.services.prerequisite_graph import PrerequisiteGraph

logger = logging.getLogger(__name__)


@dataclass
class AccessSnapshot:
    """A student's progress and blocks frozen against one graph."""
    graph: PrerequisiteGraph
    records: dict[str, ProgressRecordRead]
    blocks: dict[str, ProgressionBlockRead]

    def status(self, content_id: str) -> ProgressStatus:
        record = self.records.get(content_id)
        return record.status if record else ProgressStatus.NOT_STARTED

    def missing_prerequisites(self, content_id: str) -> list[MissingPrerequisite]:
        missing = []
        for edge in self.graph.prerequisites(content_id):
            record = self.records.get(edge.requires_content_id)
            status = record.status if record else ProgressStatus.NOT_STARTED
            score = record.score if record else None
            satisfied = status == ProgressStatus.COMPLETED and (
                edge.minimum_score is None
                or (score is not None and score >= edge.minimum_score)
            )
            if not satisfied:
                missing.append(MissingPrerequisite(
                    content_id=edge.requires_content_id,
                    required_score=edge.minimum_score,
                    current_score=score,
                    status=status,
                ))
        return missing

    def decision(self, content_id: str) -> AccessDecision:
        missing = self.missing_prerequisites(content_id)
        block = self.blocks.get(content_id)

        # A block always wins over the graph
        if block is not None:
            return AccessDecision(
                content_id=content_id,
                granted=False,
                blocked=True,
                reason=f"Blocked: {block.reason}",
                missing_prerequisites=missing,
            )
        if missing:
            return AccessDecision(
                content_id=content_id,
                granted=False,
                reason="Missing prerequisites: " + ", ".join(m.content_id for m in missing),
                missing_prerequisites=missing,
            )
        return AccessDecision(content_id=content_id, granted=True)


class ProgressionController:
    """
    The gatekeeper 🚦

    Access to a content item is granted iff no unresolved block exists for
    it and every prerequisite edge is satisfied. Progress only moves forward:
    statuses never regress, the best score is kept and time accumulates.
    """

    def __init__(self, progress: ProgressRepository, content: ContentRepository):
        self.progress = progress
        self.content = content

    @asynccontextmanager
    async def _serialized(self, student_id: str):
        """
        Exclusive access to one student's progress, committed before release.

        Unlock detection reads every record of the student, so writes to
        different items must not overlap, and the next holder has to see the
        previous holder's writes.
        """
        async with progress_locks.hold(student_id):
            await self.progress.lock_student(student_id)
            yield
            await self.progress.commit()

    async def snapshot(
        self, student_id: str, graph: Optional[PrerequisiteGraph] = None
    ) -> AccessSnapshot:
        graph = graph or await PrerequisiteGraph.load(self.content)
        records = await self.progress.list_for_student(student_id)
        blocks = await self.progress.list_blocks(student_id, active_only=True)
        return AccessSnapshot(
            graph=graph,
            records=records,
            blocks={block.content_id: block for block in blocks},
        )

    @staticmethod
    def _require_content(
        graph: PrerequisiteGraph,
        content_id: str,
        content_type: Optional[ContentType] = None,
    ) -> ContentMetadata:
        item = graph.get(content_id)
        if item is None:
            raise NotFoundError(f"Content {content_id} not found")
        if content_type is not None and item.content_type != content_type:
            raise ValidationError(
                f"Content {content_id} is a {item.content_type.value}, not a {content_type.value}"
            )
        return item

    # ------------------------------------------------------------------
    # Access checks
    # ------------------------------------------------------------------

    async def can_access(
        self, student_id: str, content_id: str, content_type: ContentType
    ) -> AccessDecision:
        graph = await PrerequisiteGraph.load(self.content)
        self._require_content(graph, content_id, content_type)
        snapshot = await self.snapshot(student_id, graph)
        return snapshot.decision(content_id)

    # ------------------------------------------------------------------
    # Progress updates
    # ------------------------------------------------------------------

    @staticmethod
    def _merge(existing: Optional[ProgressRecordRead], update: ProgressUpdate) -> dict:
        if existing is None:
            status = update.status
            completion = update.completion_percentage
            score = update.score
            time_spent = update.time_spent
        else:
            status = max(existing.status, update.status, key=lambda s: s.rank)
            completion = max(existing.completion_percentage, update.completion_percentage)
            scores = [s for s in (existing.score, update.score) if s is not None]
            score = max(scores) if scores else None
            time_spent = existing.time_spent + update.time_spent

        if status == ProgressStatus.COMPLETED:
            completion = 100.0
        return {
            "status": status,
            "completion_percentage": completion,
            "score": score,
            "time_spent": time_spent,
        }

    async def update_progress(self, update: ProgressUpdate) -> ProgressUpdateResult:
        """
        Upsert a progress record and report content unlocked by the change.

        Updates for the same student are serialized and committed in turn, so
        concurrent completions of different prerequisites never lose an unlock.
        """
        student_id = update.student_id

        async with self._serialized(student_id):
            graph = await PrerequisiteGraph.load(self.content)
            item = self._require_content(graph, update.content_id, update.content_type)
            before = await self.snapshot(student_id, graph)

            existing = await self.progress.get(student_id, update.content_id, for_update=True)
            record = await self.progress.save(
                student_id=student_id,
                content_id=update.content_id,
                content_type=update.content_type,
                **self._merge(existing, update),
            )

            changed = [update.content_id]
            if (
                record.status == ProgressStatus.COMPLETED
                and item.course_id
                and item.content_type != ContentType.COURSE
                and await self._roll_up_course(student_id, item.course_id, graph)
            ):
                changed.append(item.course_id)

            after = await self.snapshot(student_id, graph)
            unlocked = self._newly_unlocked(graph, before, after, changed)

        if unlocked:
            logger.info(
                "Student %s unlocked %s after progress on %s",
                student_id, ", ".join(unlocked), update.content_id,
            )
        return ProgressUpdateResult(record=record, unlocked_content_ids=unlocked)

    async def _roll_up_course(
        self, student_id: str, course_id: str, graph: PrerequisiteGraph
    ) -> bool:
        """
        Complete the course once all of its published items are complete.

        Runs inside the caller's student lock.
        """
        course = graph.get(course_id)
        if course is None or course.content_type != ContentType.COURSE:
            return False

        items = [
            c for c in graph.content.values()
            if c.course_id == course_id and c.is_published and c.content_type != ContentType.COURSE
        ]
        records = await self.progress.list_for_student(student_id)
        if not items or any(
            c.content_id not in records or records[c.content_id].status != ProgressStatus.COMPLETED
            for c in items
        ):
            return False

        course_record = records.get(course_id)
        if course_record and course_record.status == ProgressStatus.COMPLETED:
            return False

        await self.progress.save(
            student_id=student_id,
            content_id=course_id,
            content_type=ContentType.COURSE,
            status=ProgressStatus.COMPLETED,
            completion_percentage=100.0,
            time_spent=course_record.time_spent if course_record else 0,
            score=course_record.score if course_record else None,
        )
        logger.info("Student %s completed course %s", student_id, course_id)
        return True

    @staticmethod
    def _newly_unlocked(
        graph: PrerequisiteGraph,
        before: AccessSnapshot,
        after: AccessSnapshot,
        changed: list[str],
    ) -> list[str]:
        """Breadth-first walk from the changed nodes over their dependents."""
        unlocked = []
        visited = set(changed)
        queue = deque(changed)
        while queue:
            node = queue.popleft()
            for dependent in graph.dependents(node):
                if dependent in visited:
                    continue
                visited.add(dependent)
                if after.decision(dependent).granted and not before.decision(dependent).granted:
                    unlocked.append(dependent)
                # A dependent's own record did not change, so its dependents keep their state
        return sorted(unlocked)

    # ------------------------------------------------------------------
    # Instructor overrides
    # ------------------------------------------------------------------

    async def block(
        self, student_id: str, content_id: str, reason: str, blocked_by: str
    ) -> ProgressionBlockRead:
        if not reason.strip():
            raise ValidationError("A block needs a reason")

        async with self._serialized(student_id):
            if await self.content.get(content_id) is None:
                raise NotFoundError(f"Content {content_id} not found")

            existing = await self.progress.active_block(student_id, content_id)
            if existing is not None:
                return existing

            block = await self.progress.add_block(
                student_id=student_id,
                content_id=content_id,
                reason=reason.strip(),
                blocked_by=blocked_by,
                created_at=utcnow(),
            )
        logger.info("Content %s blocked for %s by %s: %s", content_id, student_id, blocked_by, reason)
        return block

    async def unblock(
        self,
        student_id: str,
        content_id: str,
        content_type: ContentType,
        unblocked_by: str,
    ) -> AccessDecision:
        """Resolve active blocks and return the graph-computed decision."""
        async with self._serialized(student_id):
            resolved = await self.progress.resolve_blocks(
                student_id=student_id,
                content_id=content_id,
                resolved_by=unblocked_by,
                resolved_at=utcnow(),
            )
        if resolved == 0:
            raise NotFoundError(f"No active block on {content_id} for student {student_id}")

        logger.info("Content %s unblocked for %s by %s", content_id, student_id, unblocked_by)
        return await self.can_access(student_id, content_id, content_type)

    async def blocked_content(self, student_id: str) -> list[ProgressionBlockRead]:
        return await self.progress.list_blocks(student_id, active_only=True)

    async def reset_progress(
        self, student_id: str, content_id: str, reset_by: str
    ) -> ProgressRecordRead:
        """Clear a sticky record back to not_started (time spent is kept)."""
        async with self._serialized(student_id):
            existing = await self.progress.get(student_id, content_id, for_update=True)
            if existing is None:
                raise NotFoundError(f"No progress on {content_id} for student {student_id}")

            record = await self.progress.save(
                student_id=student_id,
                content_id=content_id,
                content_type=existing.content_type,
                status=ProgressStatus.NOT_STARTED,
                completion_percentage=0.0,
                time_spent=existing.time_spent,
                score=None,
            )
        logger.info("Progress on %s reset for %s by %s", content_id, student_id, reset_by)
        return record

    # ------------------------------------------------------------------
    # Overview
    # ------------------------------------------------------------------

    async def course_overview(self, student_id: str, course_id: str) -> CourseOverview:
        graph = await PrerequisiteGraph.load(self.content)
        course = self._require_content(graph, course_id, ContentType.COURSE)
        snapshot = await self.snapshot(student_id, graph)

        members = sorted(
            (
                c for c in graph.content.values()
                if c.course_id == course_id and c.is_published and c.content_type != ContentType.COURSE
            ),
            key=lambda c: (c.order_index, c.content_id),
        )

        items = []
        for member in members:
            decision = snapshot.decision(member.content_id)
            record = snapshot.records.get(member.content_id)
            items.append(CourseItemStatus(
                content_id=member.content_id,
                content_type=member.content_type,
                title=member.title,
                order_index=member.order_index,
                status=snapshot.status(member.content_id),
                completion_percentage=record.completion_percentage if record else 0.0,
                score=record.score if record else None,
                can_access=decision.granted,
                blocked=decision.blocked,
                missing_prerequisites=[m.content_id for m in decision.missing_prerequisites],
            ))

        completed = sum(1 for item in items if item.status == ProgressStatus.COMPLETED)
        total = len(items)
        return CourseOverview(
            student_id=student_id,
            course_id=course_id,
            title=course.title,
            items=items,
            total_items=total,
            completed_items=completed,
            overall_progress=round(completed / total * 100, 1) if total else 0.0,
            is_completed=(
                snapshot.status(course_id) == ProgressStatus.COMPLETED
                or (total > 0 and completed == total)
            ),
        )
