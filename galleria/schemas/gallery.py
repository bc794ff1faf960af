# galleria/schemas/gallery.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime


class GalleryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=255)


class Gallery(BaseModel):
    id: int
    tenant_id: int
    name: str
    slug: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MediaItem(BaseModel):
    id: int
    gallery_id: int
    storage_key: str
    content_type: Optional[str]
    size_bytes: Optional[int]
    url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
