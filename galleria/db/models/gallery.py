# galleria/db/models/gallery.py
from sqlalchemy import Column, String, Integer, BigInteger, ForeignKey
from galleria.db.base import BaseModel


class Gallery(BaseModel):
    """Client gallery (a "collection"); counted against the gallery limit"""
    __tablename__ = "galleries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False)


class MediaItem(BaseModel):
    """Stored photo or video; counted against the storage limit"""
    __tablename__ = "media_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    gallery_id = Column(Integer, ForeignKey("galleries.id"), nullable=True, index=True)
    storage_key = Column(String(500), nullable=False)
    content_type = Column(String(100), nullable=False, default="application/octet-stream")
    # Legacy rows predate size tracking and are estimated
    size_bytes = Column(BigInteger, nullable=True)
