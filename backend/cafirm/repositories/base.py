"""
Base repositories with generic CRUD operations.
"""

from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from cafirm.db.base import Base, MultiTenantBase

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    CRUD repository.

    Usage:
        class FirmRepository(BaseRepository[Firm]):
            def __init__(self, db: AsyncSession):
                super().__init__(Firm, db)
    """

    def __init__(self, model: type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    async def get_by_id(self, id: UUID) -> ModelType | None:
        """Fetches one row by primary key."""
        result = await self.db.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def add(self, instance: ModelType) -> ModelType:
        """Adds a row and flushes it without committing (for multi-step writes)."""
        self.db.add(instance)
        await self.db.flush()
        return instance

    async def create(self, **kwargs: Any) -> ModelType:
        """Creates and commits a row."""
        instance = self.model(**kwargs)
        self.db.add(instance)
        await self.db.commit()
        await self.db.refresh(instance)
        return instance

    async def update(
        self,
        id: UUID,
        **kwargs: Any,
    ) -> ModelType | None:
        """Applies non-None values and commits."""
        instance = await self.get_by_id(id)
        if not instance:
            return None

        for key, value in kwargs.items():
            if value is not None:
                setattr(instance, key, value)

        await self.db.commit()
        await self.db.refresh(instance)
        return instance

    async def paginate(
        self,
        query: Select,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[ModelType], int]:
        """Runs a query returning one page of rows plus the unpaged total."""
        total = await self.db.scalar(
            select(func.count()).select_from(query.order_by(None).subquery())
        )
        result = await self.db.execute(query.offset(skip).limit(limit))
        return list(result.scalars().all()), total or 0


class MultiTenantRepository(BaseRepository[ModelType]):
    """
    Repository for tenant-owned rows.

    Every query is filtered by firm_id.
    """

    def __init__(
        self,
        model: type[ModelType],
        db: AsyncSession,
        firm_id: UUID,
    ):
        super().__init__(model, db)
        self.firm_id = firm_id

    async def get_by_id(self, id: UUID) -> ModelType | None:
        """Fetches one row of this firm."""
        if not issubclass(self.model, MultiTenantBase):
            return await super().get_by_id(id)

        result = await self.db.execute(
            select(self.model).where(
                self.model.id == id,
                self.model.firm_id == self.firm_id,
            )
        )
        return result.scalar_one_or_none()

    async def add(self, instance: ModelType) -> ModelType:
        if isinstance(instance, MultiTenantBase):
            instance.firm_id = self.firm_id
        return await super().add(instance)

    async def create(self, **kwargs: Any) -> ModelType:
        """Creates a row bound to this firm."""
        if issubclass(self.model, MultiTenantBase):
            kwargs["firm_id"] = self.firm_id
        return await super().create(**kwargs)
