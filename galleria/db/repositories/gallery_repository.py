# galleria/db/repositories/gallery_repository.py
from typing import Optional, Tuple
from sqlalchemy import select, func, delete, case
from sqlalchemy.ext.asyncio import AsyncSession

from galleria.db.models.gallery import Gallery, MediaItem
from galleria.db.repositories.base import BaseRepository


class GalleryRepository(BaseRepository[Gallery]):
    """Galleries and their media. Every query is scoped by tenant id."""

    def __init__(self, session: AsyncSession):
        super().__init__(Gallery, session)

    async def get_for_tenant(self, tenant_id: int, gallery_id: int) -> Optional[Gallery]:
        result = await self.session.execute(
            select(Gallery).where(Gallery.id == gallery_id, Gallery.tenant_id == tenant_id)
        )
        return result.scalar_one_or_none()

    async def count_galleries(self, tenant_id: int) -> int:
        """Count galleries in tenant"""
        result = await self.session.execute(
            select(func.count(Gallery.id)).where(Gallery.tenant_id == tenant_id)
        )
        return result.scalar() or 0

    async def media_storage(self, tenant_id: int) -> Tuple[int, int, int]:
        """Return (recorded bytes, rows without a recorded size, total rows)"""
        result = await self.session.execute(
            select(
                func.coalesce(func.sum(MediaItem.size_bytes), 0),
                func.coalesce(func.sum(case((MediaItem.size_bytes.is_(None), 1), else_=0)), 0),
                func.count(MediaItem.id),
            ).where(MediaItem.tenant_id == tenant_id)
        )
        recorded, unsized, total = result.one()
        return int(recorded or 0), int(unsized or 0), int(total or 0)

    async def add_media(self, tenant_id: int, values: dict) -> MediaItem:
        media = MediaItem(tenant_id=tenant_id, **values)
        self.session.add(media)
        await self.session.flush()
        return media

    async def delete_for_tenant(self, tenant_id: int, gallery_id: int) -> bool:
        """Delete a gallery and its media rows; returns False if it was not found"""
        await self.session.execute(
            delete(MediaItem).where(
                MediaItem.tenant_id == tenant_id, MediaItem.gallery_id == gallery_id
            )
        )
        result = await self.session.execute(
            delete(Gallery).where(Gallery.tenant_id == tenant_id, Gallery.id == gallery_id)
        )
        return result.rowcount > 0
