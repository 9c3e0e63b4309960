"""Base repository with common CRUD operations."""

from typing import Any, Generic, TypeVar

from sqlalchemy import Select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.base import BaseModel

ModelType = TypeVar("ModelType", bound=BaseModel)


class BaseRepository(Generic[ModelType]):
    """Repository bound to one session and one model class."""

    def __init__(self, session: AsyncSession, model_class: type[ModelType]):
        self.session = session
        self.model_class = model_class

    async def create(self, **kwargs: Any) -> ModelType:
        """Create a new entity and flush it so constraints fire immediately."""
        entity = self.model_class(**kwargs)
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def update(self, entity: ModelType, **kwargs: Any) -> ModelType:
        """Update an existing entity."""
        for key, value in kwargs.items():
            if hasattr(entity, key):
                setattr(entity, key, value)

        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def _execute_single_query(
        self, query: Select[tuple[ModelType]]
    ) -> ModelType | None:
        result = await self.session.execute(query)
        return result.scalar_one_or_none()
