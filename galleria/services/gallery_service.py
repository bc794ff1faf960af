# galleria/services/gallery_service.py
import re
import uuid
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from galleria.core.constants import TENANT_STORAGE_CATEGORIES
from galleria.core.exceptions import NotFoundError, UpstreamUnavailableError
from galleria.core.logging import get_logger
from galleria.db.models.gallery import Gallery, MediaItem
from galleria.db.repositories.gallery_repository import GalleryRepository
from galleria.services.limit_service import LimitEnforcer
from galleria.services.storage_service import StorageService, tenant_key

logger = get_logger(__name__)

GALLERIES_CATEGORY = TENANT_STORAGE_CATEGORIES[0]


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "gallery"


class GalleryService:
    """Gallery and media writes, each gated by the limit enforcer under one transaction"""

    def __init__(self, session: AsyncSession, storage: Optional[StorageService] = None):
        self.session = session
        self.galleries = GalleryRepository(session)
        self.enforcer = LimitEnforcer(session)
        self.storage = storage or StorageService()

    async def create_gallery(self, tenant_id: int, name: str, slug: Optional[str] = None) -> Gallery:
        try:
            await self.enforcer.ensure_gallery_create(tenant_id)
            gallery = await self.galleries.create({
                "tenant_id": tenant_id,
                "name": name,
                "slug": slugify(slug or name),
            })
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        logger.info(f"Gallery created: {gallery.slug}", extra={"tenant_id": tenant_id})
        return gallery

    async def delete_gallery(self, tenant_id: int, gallery_id: int) -> None:
        try:
            deleted = await self.galleries.delete_for_tenant(tenant_id, gallery_id)
            if not deleted:
                raise NotFoundError("Gallery not found", {"gallery_id": gallery_id})
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    async def upload_media(
        self,
        tenant_id: int,
        gallery_id: int,
        data: bytes,
        content_type: str,
        filename: Optional[str] = None,
    ) -> Tuple[MediaItem, str]:
        """Store an object and record its real size; returns the row and public URL"""
        stored_key = None
        try:
            gallery = await self.galleries.get_for_tenant(tenant_id, gallery_id)
            if gallery is None:
                raise NotFoundError("Gallery not found", {"gallery_id": gallery_id})

            await self.enforcer.ensure_storage(tenant_id, len(data))

            safe = re.sub(r"[^A-Za-z0-9._-]", "_", filename or "")
            name = f"{uuid.uuid4().hex}-{safe}" if safe else uuid.uuid4().hex
            key = tenant_key(tenant_id, GALLERIES_CATEGORY, str(gallery_id), name)
            url = await self.storage.put(key, data, content_type)
            stored_key = key

            media = await self.galleries.add_media(tenant_id, {
                "gallery_id": gallery_id,
                "storage_key": key,
                "content_type": content_type,
                "size_bytes": len(data),
            })
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            if stored_key is not None:
                await self._discard(tenant_id, stored_key)
            raise
        return media, url

    async def _discard(self, tenant_id: int, key: str) -> None:
        """Remove an object whose row was never committed"""
        try:
            await self.storage.delete(key)
        except UpstreamUnavailableError:
            logger.error(f"Orphaned object left in storage: {key}", extra={"tenant_id": tenant_id})
