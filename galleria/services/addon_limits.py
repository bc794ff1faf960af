# galleria/services/addon_limits.py
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from galleria.core.config import settings
from galleria.core.constants import AddonStatus, AddonType
from galleria.core.logging import get_logger
from galleria.db.repositories.subscription_repository import SubscriptionRepository

logger = get_logger(__name__)


def addon_unit(addon_type: str) -> int:
    """Entitlement one unit of quantity grants for the add-on type"""
    if addon_type == AddonType.STORAGE.value:
        return settings.ADDON_STORAGE_UNIT_BYTES
    if addon_type == AddonType.GALLERIES.value:
        return settings.ADDON_GALLERIES_UNIT
    return 0


class AddonLimitRecalculator:
    """Rewrites the add-on cache on the subscription row from the active add-ons."""

    def __init__(self, session: AsyncSession):
        self.subscriptions = SubscriptionRepository(session)

    async def recalculate(self, tenant_id: int) -> Optional[Dict[str, int]]:
        subscription = await self.subscriptions.get_by_tenant(tenant_id, for_update=True)
        if subscription is None:
            logger.warning(
                "No subscription to recalculate add-on limits for",
                extra={"tenant_id": tenant_id},
            )
            return None

        active = await self.subscriptions.list_addons(tenant_id, status=AddonStatus.ACTIVE.value)
        extra_storage = sum(
            a.quantity * addon_unit(a.addon_type)
            for a in active if a.addon_type == AddonType.STORAGE.value
        )
        extra_galleries = sum(
            a.quantity * addon_unit(a.addon_type)
            for a in active if a.addon_type == AddonType.GALLERIES.value
        )

        await self.subscriptions.update_fields(subscription, {
            "extra_storage_bytes": extra_storage,
            "extra_galleries": extra_galleries,
        })
        logger.info(
            f"Add-on limits recalculated: +{extra_storage} bytes, +{extra_galleries} galleries",
            extra={"tenant_id": tenant_id},
        )
        return {"extra_storage_bytes": extra_storage, "extra_galleries": extra_galleries}
