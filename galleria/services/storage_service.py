# galleria/services/storage_service.py
"""
Tenant object storage on an S3-compatible bucket.

Every tenant owns the prefix `tenant-{id}/`; keys below it are grouped by
category (galleries, banners, ...).
"""
import asyncio
from typing import Any, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from galleria.core.config import settings
from galleria.core.constants import TENANT_STORAGE_CATEGORIES
from galleria.core.exceptions import NotConfiguredError, UpstreamUnavailableError
from galleria.core.logging import get_logger

logger = get_logger(__name__)

# S3 DeleteObjects accepts at most 1000 keys per request
DELETE_BATCH_SIZE = 1000


def tenant_prefix(tenant_id: int) -> str:
    return f"tenant-{tenant_id}/"


def tenant_key(tenant_id: int, category: str, *parts: str) -> str:
    """Build `tenant-{id}/{category}/{parts...}`"""
    segments = [category.strip("/")] + [p.strip("/") for p in parts if p]
    return tenant_prefix(tenant_id) + "/".join(segments)


class StorageService:
    """Object storage client"""

    def __init__(self, client: Optional[Any] = None, bucket: Optional[str] = None):
        self.bucket = settings.S3_BUCKET if bucket is None else bucket
        self._client = client

    @property
    def s3(self):
        if not self.bucket:
            raise NotConfiguredError("Object storage is not configured")
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=settings.S3_ENDPOINT or None,
                aws_access_key_id=settings.S3_ACCESS_KEY or None,
                aws_secret_access_key=settings.S3_SECRET_KEY or None,
                region_name=settings.S3_REGION,
            )
        return self._client

    def public_url(self, key: str) -> str:
        if settings.S3_PUBLIC_URL:
            return f"{settings.S3_PUBLIC_URL.rstrip('/')}/{key}"
        return f"s3://{self.bucket}/{key}"

    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Upload an object and return its public URL"""
        s3 = self.s3
        try:
            await asyncio.to_thread(
                s3.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Object upload failed for {key}: {e}")
            raise UpstreamUnavailableError("Object storage unavailable", {"key": key}) from e
        return self.public_url(key)

    async def delete(self, key: str) -> None:
        s3 = self.s3
        try:
            await asyncio.to_thread(s3.delete_object, Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Object delete failed for {key}: {e}")
            raise UpstreamUnavailableError("Object storage unavailable", {"key": key}) from e

    async def initialize_tenant(self, tenant_id: int) -> List[str]:
        """Create placeholder objects for the standard tenant categories"""
        keys = []
        for category in TENANT_STORAGE_CATEGORIES:
            key = tenant_key(tenant_id, category, ".keep")
            await self.put(key, b"", "text/plain")
            keys.append(key)
        logger.info("Tenant storage initialized", extra={"tenant_id": tenant_id})
        return keys

    async def purge_tenant(self, tenant_id: int) -> int:
        """Delete every object under the tenant prefix; returns the number deleted"""
        s3 = self.s3
        prefix = tenant_prefix(tenant_id)
        try:
            keys = await asyncio.to_thread(self._list_keys, s3, prefix)
            for start in range(0, len(keys), DELETE_BATCH_SIZE):
                batch = keys[start:start + DELETE_BATCH_SIZE]
                await asyncio.to_thread(
                    s3.delete_objects,
                    Bucket=self.bucket,
                    Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
                )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Tenant storage purge failed: {e}", extra={"tenant_id": tenant_id})
            raise UpstreamUnavailableError(
                "Object storage unavailable", {"tenant_id": tenant_id}
            ) from e

        logger.info(f"Purged {len(keys)} objects", extra={"tenant_id": tenant_id})
        return len(keys)

    def _list_keys(self, s3, prefix: str) -> List[str]:
        keys = []
        paginator = s3.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            keys.extend(obj["Key"] for obj in page.get("Contents", []))
        return keys
