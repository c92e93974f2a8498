"""
Adaptive Learning Engine - Engagement Repository
Interaction event log and engagement pattern cache
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learning_engine.models.engagement import EngagementSnapshot, InteractionEvent
from learning_engine.schemas.engagement import EngagementPattern, InteractionEventRead


class EngagementRepository(ABC):

    @abstractmethod
    async def add_events(self, events: list[InteractionEventRead]) -> None:
        ...

    @abstractmethod
    async def list_events(
        self, student_id: str, since: Optional[datetime] = None
    ) -> list[InteractionEventRead]:
        """Events ordered by timestamp."""

    @abstractmethod
    async def get_snapshot(self, student_id: str) -> Optional[EngagementPattern]:
        ...

    @abstractmethod
    async def save_snapshot(self, pattern: EngagementPattern) -> None:
        ...


class SqlEngagementRepository(EngagementRepository):

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add_events(self, events: list[InteractionEventRead]) -> None:
        self.db.add_all([
            InteractionEvent(
                student_id=event.student_id,
                content_id=event.content_id,
                content_type=event.content_type.value,
                interaction_type=event.interaction_type.value,
                duration=event.duration,
                timestamp=event.timestamp,
            )
            for event in events
        ])
        await self.db.flush()

    async def list_events(
        self, student_id: str, since: Optional[datetime] = None
    ) -> list[InteractionEventRead]:
        query = select(InteractionEvent).where(InteractionEvent.student_id == student_id)
        if since is not None:
            query = query.where(InteractionEvent.timestamp >= since)
        result = await self.db.execute(query.order_by(InteractionEvent.timestamp))
        return [InteractionEventRead.model_validate(row) for row in result.scalars().all()]

    async def get_snapshot(self, student_id: str) -> Optional[EngagementPattern]:
        row = await self.db.get(EngagementSnapshot, student_id)
        return EngagementPattern.model_validate(row.pattern) if row else None

    async def save_snapshot(self, pattern: EngagementPattern) -> None:
        row = await self.db.get(EngagementSnapshot, pattern.student_id)
        payload = pattern.model_dump(mode="json")
        if row is None:
            self.db.add(EngagementSnapshot(
                student_id=pattern.student_id,
                pattern=payload,
                computed_at=pattern.computed_at,
            ))
        else:
            row.pattern = payload
            row.computed_at = pattern.computed_at
        await self.db.flush()
