# scripts/seed_default_tenant.py
"""Seed the default tenant that unmatched hosts resolve to"""
import asyncio

from galleria.core.config import settings
from galleria.core.constants import PLAN_LIMITS, PlanType, SubscriptionStatus
from galleria.db.database import async_session_local
from galleria.db.repositories.subscription_repository import SubscriptionRepository
from galleria.db.repositories.tenant_repository import TenantRepository


async def seed_default_tenant():
    async with async_session_local() as session:
        tenant_repo = TenantRepository(session)
        subscription_repo = SubscriptionRepository(session)

        tenant = await tenant_repo.get_by_id(settings.DEFAULT_TENANT_ID)
        if tenant:
            print(f"Default tenant already exists: {tenant.name} ({tenant.subdomain})")
            return

        tenant = await tenant_repo.create({
            "id": settings.DEFAULT_TENANT_ID,
            "name": "Galleria",
            "email": f"studio@{settings.PLATFORM_DOMAIN}",
            "subdomain": "studio",
        })
        limits = PLAN_LIMITS[PlanType.COURTESY.value]
        await subscription_repo.create_for_tenant(tenant.id, {
            "plan": PlanType.COURTESY.value,
            "status": SubscriptionStatus.ACTIVE.value,
            "storage_limit_bytes": limits["storage_limit_bytes"],
            "gallery_limit": limits["gallery_limit"],
        })
        await session.commit()

        print(f"Created default tenant: {tenant.name} (id={tenant.id})")


if __name__ == "__main__":
    asyncio.run(seed_default_tenant())
