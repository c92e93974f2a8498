"""
Adaptive Learning Engine - Knowledge Repository
Knowledge profile entries and the append-only gap log
"""
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learning_engine.models.knowledge import KnowledgeGap, TopicMastery
from learning_engine.schemas.knowledge import KnowledgeGapRead, KnowledgeProfile, TopicMasteryRead


class KnowledgeRepository(ABC):

    @abstractmethod
    async def get_profile(self, student_id: str) -> KnowledgeProfile:
        ...

    @abstractmethod
    async def get_entry(
        self, student_id: str, topic: str, for_update: bool = False
    ) -> Optional[TopicMasteryRead]:
        ...

    @abstractmethod
    async def save_entry(self, student_id: str, entry: TopicMasteryRead) -> TopicMasteryRead:
        ...

    @abstractmethod
    async def add_gap(
        self,
        student_id: str,
        subject_area: str,
        topic: str,
        severity: float,
        mastery_at_detection: float,
        detected_at: datetime,
        detected_from: Optional[uuid.UUID] = None,
    ) -> KnowledgeGapRead:
        ...

    @abstractmethod
    async def list_gaps(
        self,
        student_id: str,
        unresolved_only: bool = False,
        subject_area: Optional[str] = None,
    ) -> list[KnowledgeGapRead]:
        """Gaps ordered oldest first."""

    @abstractmethod
    async def gaps_from_attempt(self, attempt_id: uuid.UUID) -> list[KnowledgeGapRead]:
        ...

    @abstractmethod
    async def resolve_gaps(
        self,
        student_id: str,
        topic: str,
        resolved_at: datetime,
        resolved_by_attempt: Optional[uuid.UUID] = None,
    ) -> int:
        """Flag every unresolved gap on the topic as resolved; returns the count."""


class SqlKnowledgeRepository(KnowledgeRepository):

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_profile(self, student_id: str) -> KnowledgeProfile:
        result = await self.db.execute(
            select(TopicMastery)
            .where(TopicMastery.student_id == student_id)
            .order_by(TopicMastery.topic)
        )
        return KnowledgeProfile(
            student_id=student_id,
            topics={
                row.topic: TopicMasteryRead.model_validate(row)
                for row in result.scalars().all()
            },
        )

    async def _get_row(self, student_id: str, topic: str, for_update: bool = False):
        query = select(TopicMastery).where(
            TopicMastery.student_id == student_id,
            TopicMastery.topic == topic,
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_entry(
        self, student_id: str, topic: str, for_update: bool = False
    ) -> Optional[TopicMasteryRead]:
        row = await self._get_row(student_id, topic, for_update)
        return TopicMasteryRead.model_validate(row) if row else None

    async def save_entry(self, student_id: str, entry: TopicMasteryRead) -> TopicMasteryRead:
        row = await self._get_row(student_id, entry.topic)
        if row is None:
            row = TopicMastery(student_id=student_id, topic=entry.topic)
            self.db.add(row)
        row.subject_area = entry.subject_area
        row.mastery = entry.mastery
        row.confidence = entry.confidence
        row.observations = entry.observations
        row.last_updated = entry.last_updated
        await self.db.flush()
        return TopicMasteryRead.model_validate(row)

    async def add_gap(
        self,
        student_id: str,
        subject_area: str,
        topic: str,
        severity: float,
        mastery_at_detection: float,
        detected_at: datetime,
        detected_from: Optional[uuid.UUID] = None,
    ) -> KnowledgeGapRead:
        gap = KnowledgeGap(
            student_id=student_id,
            subject_area=subject_area,
            topic=topic,
            severity=severity,
            mastery_at_detection=mastery_at_detection,
            detected_at=detected_at,
            detected_from=detected_from,
            resolved=False,
        )
        self.db.add(gap)
        await self.db.flush()
        return KnowledgeGapRead.model_validate(gap)

    async def list_gaps(
        self,
        student_id: str,
        unresolved_only: bool = False,
        subject_area: Optional[str] = None,
    ) -> list[KnowledgeGapRead]:
        query = select(KnowledgeGap).where(KnowledgeGap.student_id == student_id)
        if unresolved_only:
            query = query.where(KnowledgeGap.resolved.is_(False))
        if subject_area is not None:
            query = query.where(KnowledgeGap.subject_area == subject_area)
        query = query.order_by(KnowledgeGap.detected_at, KnowledgeGap.topic)

        result = await self.db.execute(query)
        return [KnowledgeGapRead.model_validate(row) for row in result.scalars().all()]

    async def gaps_from_attempt(self, attempt_id: uuid.UUID) -> list[KnowledgeGapRead]:
        result = await self.db.execute(
            select(KnowledgeGap)
            .where(KnowledgeGap.detected_from == attempt_id)
            .order_by(KnowledgeGap.topic)
        )
        return [KnowledgeGapRead.model_validate(row) for row in result.scalars().all()]

    async def resolve_gaps(
        self,
        student_id: str,
        topic: str,
        resolved_at: datetime,
        resolved_by_attempt: Optional[uuid.UUID] = None,
    ) -> int:
        result = await self.db.execute(
            select(KnowledgeGap).where(
                KnowledgeGap.student_id == student_id,
                KnowledgeGap.topic == topic,
                KnowledgeGap.resolved.is_(False),
            )
        )
        gaps = result.scalars().all()
        for gap in gaps:
            gap.resolved = True
            gap.resolved_at = resolved_at
            gap.resolved_by_attempt = resolved_by_attempt
        await self.db.flush()
        return len(gaps)
