# galleria/db/repositories/base.py
from typing import Any, Generic, TypeVar, Type, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

ModelType = TypeVar("ModelType")


class BaseRepository(Generic[ModelType]):
    """Base repository with common CRUD operations.

    Repositories flush but never commit; the calling service owns the
    transaction so multi-step changes land atomically.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def get(self, id: Any) -> Optional[ModelType]:
        """Get by ID"""
        result = await self.session.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def create(self, obj_in: dict) -> ModelType:
        """Create new record"""
        db_obj = self.model(**obj_in)
        self.session.add(db_obj)
        await self.session.flush()
        return db_obj

    async def update_fields(self, db_obj: ModelType, values: dict) -> bool:
        """Assign values onto a loaded row; returns True when anything changed"""
        changed = False
        for key, value in values.items():
            if getattr(db_obj, key) != value:
                setattr(db_obj, key, value)
                changed = True
        if changed:
            await self.session.flush()
        return changed
