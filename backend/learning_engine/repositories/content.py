"""
Adaptive Learning Engine - Content Repository
Content metadata provider, prerequisite edges and enrollments
"""
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learning_engine.models.content import ContentItem, Enrollment, PrerequisiteEdge
from learning_engine.schemas.common import ContentType
from learning_engine.schemas.content import ContentMetadata, PrerequisiteEdgeSchema


class ContentRepository(ABC):
    """Read access to the content catalog plus the writes used for seeding."""

    @abstractmethod
    async def get(self, content_id: str) -> Optional[ContentMetadata]:
        ...

    @abstractmethod
    async def list_content(
        self,
        content_type: Optional[ContentType] = None,
        course_id: Optional[str] = None,
        published_only: bool = True,
    ) -> list[ContentMetadata]:
        ...

    @abstractmethod
    async def list_edges(self) -> list[PrerequisiteEdgeSchema]:
        ...

    @abstractmethod
    async def enrolled_course_ids(self, student_id: str) -> list[str]:
        ...

    @abstractmethod
    async def save(self, content: ContentMetadata) -> ContentMetadata:
        ...

    @abstractmethod
    async def add_edge(self, edge: PrerequisiteEdgeSchema) -> PrerequisiteEdgeSchema:
        ...

    @abstractmethod
    async def enroll(self, student_id: str, course_id: str) -> None:
        ...


class SqlContentRepository(ContentRepository):

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, content_id: str) -> Optional[ContentMetadata]:
        item = await self.db.get(ContentItem, content_id)
        return ContentMetadata.model_validate(item) if item else None

    async def list_content(
        self,
        content_type: Optional[ContentType] = None,
        course_id: Optional[str] = None,
        published_only: bool = True,
    ) -> list[ContentMetadata]:
        query = select(ContentItem)
        if content_type is not None:
            query = query.where(ContentItem.content_type == content_type.value)
        if course_id is not None:
            query = query.where(ContentItem.course_id == course_id)
        if published_only:
            query = query.where(ContentItem.is_published.is_(True))

        result = await self.db.execute(query)
        items = [ContentMetadata.model_validate(row) for row in result.scalars().all()]
        return sorted(items, key=lambda c: (c.course_id or "", c.order_index, c.content_id))

    async def list_edges(self) -> list[PrerequisiteEdgeSchema]:
        result = await self.db.execute(
            select(PrerequisiteEdge).order_by(
                PrerequisiteEdge.content_id, PrerequisiteEdge.requires_content_id
            )
        )
        return [PrerequisiteEdgeSchema.model_validate(row) for row in result.scalars().all()]

    async def enrolled_course_ids(self, student_id: str) -> list[str]:
        result = await self.db.execute(
            select(Enrollment.course_id)
            .where(Enrollment.student_id == student_id)
            .order_by(Enrollment.course_id)
        )
        return [row[0] for row in result.fetchall()]

    async def save(self, content: ContentMetadata) -> ContentMetadata:
        item = await self.db.get(ContentItem, content.content_id)
        values = content.model_dump()
        values["content_type"] = content.content_type.value
        if item is None:
            item = ContentItem(**values)
            self.db.add(item)
        else:
            for field, value in values.items():
                setattr(item, field, value)
        await self.db.flush()
        return ContentMetadata.model_validate(item)

    async def add_edge(self, edge: PrerequisiteEdgeSchema) -> PrerequisiteEdgeSchema:
        row = PrerequisiteEdge(**edge.model_dump())
        self.db.add(row)
        await self.db.flush()
        return PrerequisiteEdgeSchema.model_validate(row)

    async def enroll(self, student_id: str, course_id: str) -> None:
        existing = await self.db.execute(
            select(Enrollment).where(
                Enrollment.student_id == student_id,
                Enrollment.course_id == course_id,
            )
        )
        if existing.scalar_one_or_none() is None:
            self.db.add(Enrollment(student_id=student_id, course_id=course_id))
            await self.db.flush()
