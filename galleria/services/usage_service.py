# galleria/services/usage_service.py
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from galleria.core.config import settings
from galleria.db.repositories.gallery_repository import GalleryRepository


@dataclass(frozen=True)
class UsageSnapshot:
    storage_used_bytes: int
    galleries_used: int
    media_count: int


class UsageAccountant:
    """
    Computes what a tenant currently consumes.

    Snapshots are recomputed on every call; callers must not cache them
    across a limit decision.
    """

    def __init__(self, session: AsyncSession, average_bytes_per_media: Optional[int] = None):
        self.galleries = GalleryRepository(session)
        self.average_bytes_per_media = (
            settings.AVERAGE_BYTES_PER_MEDIA
            if average_bytes_per_media is None
            else average_bytes_per_media
        )

    async def usage(self, tenant_id: int) -> UsageSnapshot:
        galleries_used = await self.galleries.count_galleries(tenant_id)
        recorded_bytes, unsized, media_count = await self.galleries.media_storage(tenant_id)

        # Rows uploaded before sizes were recorded count at the average size
        storage_used = recorded_bytes + unsized * self.average_bytes_per_media

        return UsageSnapshot(
            storage_used_bytes=storage_used,
            galleries_used=galleries_used,
            media_count=media_count,
        )
