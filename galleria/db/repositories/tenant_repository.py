# galleria/db/repositories/tenant_repository.py
from typing import Optional
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from galleria.db.models.tenant import Tenant
from galleria.db.models.gallery import Gallery, MediaItem
from galleria.db.models.subscription import Subscription, SubscriptionAddon
from galleria.db.repositories.base import BaseRepository


class TenantRepository(BaseRepository[Tenant]):
    """Repository for Tenant operations"""

    def __init__(self, session: AsyncSession):
        super().__init__(Tenant, session)

    async def get_by_id(self, tenant_id: int) -> Optional[Tenant]:
        """Get tenant by ID"""
        return await self.get(tenant_id)

    async def get_by_subdomain(self, subdomain: str) -> Optional[Tenant]:
        result = await self.session.execute(
            select(Tenant).where(Tenant.subdomain == subdomain.lower()).limit(1)
        )
        return result.scalar_one_or_none()

    async def get_by_custom_domain(self, domain: str) -> Optional[Tenant]:
        result = await self.session.execute(
            select(Tenant).where(Tenant.custom_domain == domain.lower()).limit(1)
        )
        return result.scalar_one_or_none()

    async def subdomain_exists(self, subdomain: str) -> bool:
        result = await self.session.execute(
            select(Tenant.id).where(Tenant.subdomain == subdomain.lower()).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def custom_domain_exists(self, domain: str) -> bool:
        result = await self.session.execute(
            select(Tenant.id).where(Tenant.custom_domain == domain.lower()).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def purge(self, tenant_id: int) -> None:
        """Delete the tenant and every row it owns, dependents first"""
        await self.session.execute(
            delete(SubscriptionAddon).where(SubscriptionAddon.tenant_id == tenant_id)
        )
        await self.session.execute(
            delete(Subscription).where(Subscription.tenant_id == tenant_id)
        )
        await self.session.execute(
            delete(MediaItem).where(MediaItem.tenant_id == tenant_id)
        )
        await self.session.execute(
            delete(Gallery).where(Gallery.tenant_id == tenant_id)
        )
        await self.session.execute(
            delete(Tenant).where(Tenant.id == tenant_id)
        )
