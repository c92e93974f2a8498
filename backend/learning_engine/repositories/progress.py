"""
Adaptive Learning Engine - Progress Repository
Progress records and progression blocks
"""
import hashlib
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from learning_engine.core.database import utcnow
from learning_engine.models.progress import ProgressionBlock, ProgressRecord
from learning_engine.schemas.common import ContentType, ProgressStatus
from learning_engine.schemas.progress import ProgressionBlockRead, ProgressRecordRead


class ProgressRepository(ABC):

    @abstractmethod
    async def get(
        self, student_id: str, content_id: str, for_update: bool = False
    ) -> Optional[ProgressRecordRead]:
        ...

    @abstractmethod
    async def list_for_student(self, student_id: str) -> dict[str, ProgressRecordRead]:
        """All records of a student keyed by content_id."""

    @abstractmethod
    async def save(
        self,
        student_id: str,
        content_id: str,
        content_type: ContentType,
        status: ProgressStatus,
        completion_percentage: float,
        time_spent: int,
        score: Optional[float],
    ) -> ProgressRecordRead:
        """Insert or overwrite the record for (student, content)."""

    @abstractmethod
    async def active_block(self, student_id: str, content_id: str) -> Optional[ProgressionBlockRead]:
        ...

    @abstractmethod
    async def list_blocks(self, student_id: str, active_only: bool = True) -> list[ProgressionBlockRead]:
        ...

    @abstractmethod
    async def add_block(
        self,
        student_id: str,
        content_id: str,
        reason: str,
        blocked_by: str,
        created_at: datetime,
    ) -> ProgressionBlockRead:
        ...

    @abstractmethod
    async def resolve_blocks(
        self,
        student_id: str,
        content_id: str,
        resolved_by: str,
        resolved_at: datetime,
    ) -> int:
        ...

    @abstractmethod
    async def lock_student(self, student_id: str) -> None:
        """Take the storage-level lock on a student's progress until commit."""

    @abstractmethod
    async def commit(self) -> None:
        """Make pending progress writes visible to other sessions."""


class SqlProgressRepository(ProgressRepository):

    def __init__(self, db: AsyncSession):
        self.db = db

    async def lock_student(self, student_id: str) -> None:
        # Advisory lock spans worker processes; SQLite already has a single writer
        if self.db.get_bind().dialect.name == "postgresql":
            digest = hashlib.sha256(f"progress:{student_id}".encode()).digest()
            key = int.from_bytes(digest[:8], "big", signed=True)
            await self.db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})

    async def commit(self) -> None:
        await self.db.commit()

    async def _get_row(self, student_id: str, content_id: str, for_update: bool = False):
        query = select(ProgressRecord).where(
            ProgressRecord.student_id == student_id,
            ProgressRecord.content_id == content_id,
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get(
        self, student_id: str, content_id: str, for_update: bool = False
    ) -> Optional[ProgressRecordRead]:
        row = await self._get_row(student_id, content_id, for_update)
        return ProgressRecordRead.model_validate(row) if row else None

    async def list_for_student(self, student_id: str) -> dict[str, ProgressRecordRead]:
        result = await self.db.execute(
            select(ProgressRecord).where(ProgressRecord.student_id == student_id)
        )
        return {
            row.content_id: ProgressRecordRead.model_validate(row)
            for row in result.scalars().all()
        }

    async def save(
        self,
        student_id: str,
        content_id: str,
        content_type: ContentType,
        status: ProgressStatus,
        completion_percentage: float,
        time_spent: int,
        score: Optional[float],
    ) -> ProgressRecordRead:
        row = await self._get_row(student_id, content_id)
        now = utcnow()
        if row is None:
            row = ProgressRecord(student_id=student_id, content_id=content_id, created_at=now)
            self.db.add(row)
        row.content_type = content_type.value
        row.status = status.value
        row.completion_percentage = completion_percentage
        row.time_spent = time_spent
        row.score = score
        row.updated_at = now
        await self.db.flush()
        return ProgressRecordRead.model_validate(row)

    def _blocks_query(self, student_id: str, active_only: bool):
        query = select(ProgressionBlock).where(ProgressionBlock.student_id == student_id)
        if active_only:
            query = query.where(ProgressionBlock.resolved_at.is_(None))
        return query

    async def active_block(self, student_id: str, content_id: str) -> Optional[ProgressionBlockRead]:
        result = await self.db.execute(
            self._blocks_query(student_id, active_only=True)
            .where(ProgressionBlock.content_id == content_id)
            .order_by(ProgressionBlock.created_at.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return ProgressionBlockRead.model_validate(row) if row else None

    async def list_blocks(self, student_id: str, active_only: bool = True) -> list[ProgressionBlockRead]:
        result = await self.db.execute(
            self._blocks_query(student_id, active_only).order_by(ProgressionBlock.created_at)
        )
        return [ProgressionBlockRead.model_validate(row) for row in result.scalars().all()]

    async def add_block(
        self,
        student_id: str,
        content_id: str,
        reason: str,
        blocked_by: str,
        created_at: datetime,
    ) -> ProgressionBlockRead:
        block = ProgressionBlock(
            student_id=student_id,
            content_id=content_id,
            reason=reason,
            blocked_by=blocked_by,
            created_at=created_at,
        )
        self.db.add(block)
        await self.db.flush()
        return ProgressionBlockRead.model_validate(block)

    async def resolve_blocks(
        self,
        student_id: str,
        content_id: str,
        resolved_by: str,
        resolved_at: datetime,
    ) -> int:
        result = await self.db.execute(
            self._blocks_query(student_id, active_only=True)
            .where(ProgressionBlock.content_id == content_id)
        )
        blocks = result.scalars().all()
        for block in blocks:
            block.resolved_at = resolved_at
            block.resolved_by = resolved_by
        await self.db.flush()
        return len(blocks)
