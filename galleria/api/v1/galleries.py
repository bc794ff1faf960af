# galleria/api/v1/galleries.py
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request, Response, status

from galleria.api.dependencies import get_gallery_service
from galleria.core.tenant import require_tenant
from galleria.schemas.gallery import Gallery as GallerySchema, GalleryCreate, MediaItem as MediaItemSchema
from galleria.services.gallery_service import GalleryService

router = APIRouter()


@router.post("", response_model=GallerySchema, status_code=status.HTTP_201_CREATED)
async def create_gallery(
    body: GalleryCreate,
    tenant_id: int = Depends(require_tenant),
    service: GalleryService = Depends(get_gallery_service),
):
    """Create a gallery; 403 when the gallery limit is reached"""
    return await service.create_gallery(tenant_id, body.name, body.slug)


@router.delete("/{gallery_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_gallery(
    gallery_id: int,
    tenant_id: int = Depends(require_tenant),
    service: GalleryService = Depends(get_gallery_service),
):
    await service.delete_gallery(tenant_id, gallery_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{gallery_id}/media", response_model=MediaItemSchema, status_code=status.HTTP_201_CREATED)
async def upload_media(
    gallery_id: int,
    request: Request,
    filename: Optional[str] = Query(None, max_length=255),
    content_type: str = Header("application/octet-stream"),
    tenant_id: int = Depends(require_tenant),
    service: GalleryService = Depends(get_gallery_service),
):
    """Upload the raw request body as a media object; 403 when storage would overflow"""
    data = await request.body()
    media, url = await service.upload_media(tenant_id, gallery_id, data, content_type, filename)
    result = MediaItemSchema.model_validate(media)
    result.url = url
    return result
