"""
Adaptive Learning Engine - Roadmap Repository
"""
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learning_engine.core.errors import NotFoundError
from learning_engine.models.roadmap import Roadmap
from learning_engine.schemas.common import RoadmapStatus
from learning_engine.schemas.roadmap import RoadmapRead, RoadmapStep


class RoadmapRepository(ABC):

    @abstractmethod
    async def get_latest(
        self, student_id: str, status: RoadmapStatus, for_update: bool = False
    ) -> Optional[RoadmapRead]:
        """Most recently updated roadmap of the student with the given status."""

    @abstractmethod
    async def create(
        self,
        student_id: str,
        learning_path: list[RoadmapStep],
        total_estimated_time: int,
        remaining_time: int,
        personalization_factors: dict[str, Any],
        input_fingerprint: str,
        generated_at: datetime,
    ) -> RoadmapRead:
        ...

    @abstractmethod
    async def update(self, roadmap_id: uuid.UUID, **fields: Any) -> RoadmapRead:
        ...


class SqlRoadmapRepository(RoadmapRepository):

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_latest(
        self, student_id: str, status: RoadmapStatus, for_update: bool = False
    ) -> Optional[RoadmapRead]:
        query = (
            select(Roadmap)
            .where(Roadmap.student_id == student_id, Roadmap.status == status.value)
            .order_by(Roadmap.updated_at.desc())
            .limit(1)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        row = result.scalar_one_or_none()
        return RoadmapRead.model_validate(row) if row else None

    async def create(
        self,
        student_id: str,
        learning_path: list[RoadmapStep],
        total_estimated_time: int,
        remaining_time: int,
        personalization_factors: dict[str, Any],
        input_fingerprint: str,
        generated_at: datetime,
    ) -> RoadmapRead:
        row = Roadmap(
            student_id=student_id,
            status=RoadmapStatus.ACTIVE.value,
            learning_path=[step.model_dump(mode="json") for step in learning_path],
            total_estimated_time=total_estimated_time,
            remaining_time=remaining_time,
            personalization_factors=personalization_factors,
            input_fingerprint=input_fingerprint,
            generated_at=generated_at,
            updated_at=generated_at,
        )
        self.db.add(row)
        await self.db.flush()
        return RoadmapRead.model_validate(row)

    async def update(self, roadmap_id: uuid.UUID, **fields: Any) -> RoadmapRead:
        row = await self.db.get(Roadmap, roadmap_id)
        if row is None:
            raise NotFoundError(f"Roadmap {roadmap_id} not found")
        if "learning_path" in fields:
            fields["learning_path"] = [
                step.model_dump(mode="json") if isinstance(step, RoadmapStep) else step
                for step in fields["learning_path"]
            ]
        if isinstance(fields.get("status"), RoadmapStatus):
            fields["status"] = fields["status"].value
        for field, value in fields.items():
            setattr(row, field, value)
        await self.db.flush()
        return RoadmapRead.model_validate(row)
