from abc import ABC
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import object_session

from docvault.infrastructure.persistence.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(ABC, Generic[ModelType]):
    """
    Base repository implementing common persistence operations.

    Subclasses expose typed domain entities; the ORM rows never leave the
    repository layer.
    """

    def __init__(self, db: AsyncSession, model: type[ModelType]):
        self.db = db
        self.model = model

    async def get_model(self, id: str, *, fresh: bool = False) -> ModelType | None:
        """
        Get a single row by ID.

        ``fresh`` re-reads the row even when it is already in the identity
        map (needed after bulk UPDATE statements in the same session).
        """
        # Cast to Any for SQLAlchemy dynamic attribute access (id comes from CuidMixin)
        model: Any = self.model
        query = select(self.model).where(model.id == id)
        if fresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def add(self, obj: ModelType) -> ModelType:
        """Stage a new row and flush it so constraint violations surface here"""
        self.db.add(obj)
        await self.db.flush()
        return obj

    async def save(self, obj: ModelType) -> ModelType:
        """
        Flush pending changes on a row.

        Handles potentially detached objects by merging back to session.
        """
        if object_session(obj) is None:
            obj = await self.db.merge(obj)
        await self.db.flush()
        return obj

    async def remove(self, obj: ModelType) -> None:
        # delete() is awaitable on AsyncSession
        await self.db.delete(obj)
        await self.db.flush()
