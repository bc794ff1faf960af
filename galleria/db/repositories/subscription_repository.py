# galleria/db/repositories/subscription_repository.py
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from galleria.core.exceptions import ConflictError, NotFoundError
from galleria.db.models.subscription import Subscription, SubscriptionAddon
from galleria.db.models.tenant import Tenant
from galleria.db.repositories.base import BaseRepository


class SubscriptionRepository(BaseRepository[Subscription]):
    """Persistence for the primary subscription and its add-ons.

    Two lookup paths: by tenant id (enforcement, dashboards) and by the
    processor's subscription handle (webhook joins). Both are unique indexes.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(Subscription, session)

    # ---- primary subscription ----

    async def get_by_tenant(self, tenant_id: int, for_update: bool = False) -> Optional[Subscription]:
        query = select(Subscription).where(Subscription.tenant_id == tenant_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_external_id(self, external_subscription_id: str) -> Optional[Subscription]:
        result = await self.session.execute(
            select(Subscription).where(
                Subscription.external_subscription_id == external_subscription_id
            )
        )
        return result.scalar_one_or_none()

    async def create_for_tenant(self, tenant_id: int, values: dict) -> Subscription:
        """Insert the tenant's single subscription; a second one is a conflict"""
        await self._require_tenant(tenant_id)
        if await self.get_by_tenant(tenant_id) is not None:
            raise ConflictError("Tenant already has a subscription", {"tenant_id": tenant_id})
        subscription = Subscription(tenant_id=tenant_id, **values)
        self.session.add(subscription)
        await self.session.flush()
        return subscription

    # ---- add-ons ----

    async def get_addon(self, tenant_id: int, addon_id: int) -> Optional[SubscriptionAddon]:
        result = await self.session.execute(
            select(SubscriptionAddon).where(
                SubscriptionAddon.id == addon_id,
                SubscriptionAddon.tenant_id == tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_addon_by_external_id(self, external_subscription_id: str) -> Optional[SubscriptionAddon]:
        result = await self.session.execute(
            select(SubscriptionAddon).where(
                SubscriptionAddon.external_subscription_id == external_subscription_id
            )
        )
        return result.scalar_one_or_none()

    async def list_addons(
        self,
        tenant_id: int,
        status: Optional[str] = None,
        addon_type: Optional[str] = None,
    ) -> List[SubscriptionAddon]:
        query = select(SubscriptionAddon).where(SubscriptionAddon.tenant_id == tenant_id)
        if status is not None:
            query = query.where(SubscriptionAddon.status == status)
        if addon_type is not None:
            query = query.where(SubscriptionAddon.addon_type == addon_type)
        result = await self.session.execute(query.order_by(SubscriptionAddon.id))
        return list(result.scalars().all())

    async def create_addon(self, tenant_id: int, values: dict) -> SubscriptionAddon:
        await self._require_tenant(tenant_id)
        handle = values.get("external_subscription_id")
        if handle and await self.get_addon_by_external_id(handle) is not None:
            raise ConflictError(
                "Add-on already recorded for this subscription handle",
                {"external_subscription_id": handle},
            )
        addon = SubscriptionAddon(tenant_id=tenant_id, **values)
        self.session.add(addon)
        await self.session.flush()
        return addon

    async def attach_orphan_addons(self, tenant_id: int, subscription_id: int) -> int:
        """Link add-ons bought before the tenant had a subscription; returns how many"""
        orphans = [
            a for a in await self.list_addons(tenant_id) if a.subscription_id is None
        ]
        for addon in orphans:
            addon.subscription_id = subscription_id
        if orphans:
            await self.session.flush()
        return len(orphans)

    async def _require_tenant(self, tenant_id: int) -> None:
        result = await self.session.execute(select(Tenant.id).where(Tenant.id == tenant_id))
        if result.scalar_one_or_none() is None:
            raise NotFoundError("Tenant not found", {"tenant_id": tenant_id})
