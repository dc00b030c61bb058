"""Floorline — Base Service Interface.

Implements the Service Repository pattern to decouple business logic
from API routes. All store services inherit from this base class.

Usage:
    class MachineService(BaseService[Machine]):
        def __init__(self, db: AsyncSession):
            super().__init__(Machine, db)
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from logger import get_logger

ModelType = TypeVar("ModelType")

logger = get_logger(__name__)


class BaseService(Generic[ModelType]):
    """Base class for store services.

    Primary-key lookup and flush-and-refresh persistence bound to one
    async session. Routes and the liveness monitor go through services,
    never through raw sessions.
    """

    def __init__(self, model: type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db
        self.logger = logger.bind(service=self.__class__.__name__)

    async def get(self, id: Any) -> ModelType | None:
        """Get a single record by primary key."""
        result = await self.db.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def save(self, db_obj: ModelType) -> ModelType:
        """Flush a new or changed record and reload its server-side values."""
        self.db.add(db_obj)
        await self.db.flush()
        await self.db.refresh(db_obj)
        return db_obj

