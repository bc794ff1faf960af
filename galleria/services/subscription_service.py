# galleria/services/subscription_service.py
import math
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from galleria.core.config import settings
from galleria.core.constants import (
    COMPLIMENTARY_PLANS,
    PLAN_LIMITS,
    AddonStatus,
    AddonType,
    CheckoutType,
    PlanType,
    SubscriptionStatus,
)
from galleria.core.exceptions import NotFoundError, ValidationFailedError
from galleria.core.logging import get_logger
from galleria.db.base import utcnow
from galleria.db.models.subscription import Subscription
from galleria.db.repositories.subscription_repository import SubscriptionRepository
from galleria.db.repositories.tenant_repository import TenantRepository
from galleria.services.limit_service import usage_warnings_for
from galleria.services.stripe_service import StripeService
from galleria.services.usage_service import UsageAccountant

logger = get_logger(__name__)


def addon_price(addon_type: str) -> Optional[str]:
    return {
        AddonType.STORAGE.value: settings.STRIPE_PRICE_ADDON_STORAGE,
        AddonType.GALLERIES.value: settings.STRIPE_PRICE_ADDON_GALLERIES,
    }.get(addon_type)


EXPIRED_STATUSES = {
    SubscriptionStatus.PAUSED.value,
    SubscriptionStatus.CANCELLED.value,
    SubscriptionStatus.PAST_DUE.value,
}


def _billing_url(path: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}{path}"


def trial_status_for(subscription: Subscription, trial_ends_at: Optional[datetime], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Whether the tenant's access has lapsed, and how many trial days remain"""
    now = now or utcnow()
    status = {
        "plan": subscription.plan,
        "status": subscription.status,
        "trial_ends_at": trial_ends_at,
        "never_expires": False,
        "is_expired": False,
        "days_remaining": None,
    }

    if subscription.plan in COMPLIMENTARY_PLANS:
        status["never_expires"] = True
    elif subscription.status in EXPIRED_STATUSES:
        status["is_expired"] = True
    elif subscription.status == SubscriptionStatus.TRIALING.value:
        if trial_ends_at is None:
            status["is_expired"] = True
        else:
            remaining = (trial_ends_at - now).total_seconds()
            status["is_expired"] = remaining <= 0
            status["days_remaining"] = max(0, math.ceil(remaining / 86400))
    return status


class SubscriptionService:
    """Checkout, portal and read models for a tenant's subscription"""

    def __init__(self, session: AsyncSession, processor: Optional[StripeService] = None):
        self.session = session
        self.processor = processor or StripeService()
        self.subscriptions = SubscriptionRepository(session)
        self.tenants = TenantRepository(session)
        self.accountant = UsageAccountant(session)

    async def _require_subscription(self, tenant_id: int) -> Subscription:
        subscription = await self.subscriptions.get_by_tenant(tenant_id)
        if subscription is None:
            raise NotFoundError("Subscription not found", {"tenant_id": tenant_id})
        return subscription

    async def start_plan_checkout(
        self,
        tenant_id: int,
        plan: str = PlanType.BASIC.value,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        if plan not in PLAN_LIMITS or plan in COMPLIMENTARY_PLANS:
            raise ValidationFailedError(f"Plan {plan} cannot be purchased", {"plan": plan})

        tenant = await self.tenants.get_by_id(tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant not found", {"tenant_id": tenant_id})
        subscription = await self.subscriptions.get_by_tenant(tenant_id)

        return await self.processor.create_checkout_session(
            tenant_id=tenant_id,
            price_id=settings.STRIPE_PRICE_PLAN,
            metadata={"tenantId": tenant_id, "type": CheckoutType.PLAN.value, "plan": plan},
            success_url=success_url or _billing_url("/billing?checkout=success"),
            cancel_url=cancel_url or _billing_url("/billing?checkout=cancelled"),
            customer_id=subscription.external_customer_id if subscription else None,
            customer_email=tenant.email,
        )

    async def start_addon_checkout(
        self,
        tenant_id: int,
        addon_type: str,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Start a checkout for one unit of an add-on.

        Raises:
            ValidationFailedError: unknown add-on type, or the plan is neither
                active nor complimentary
        """
        if addon_type not in {t.value for t in AddonType}:
            raise ValidationFailedError(f"Unknown add-on type: {addon_type}", {"addon_type": addon_type})

        subscription = await self._require_subscription(tenant_id)
        if (
            subscription.status != SubscriptionStatus.ACTIVE.value
            and subscription.plan not in COMPLIMENTARY_PLANS
        ):
            raise ValidationFailedError(
                "An active subscription is required to buy add-ons",
                {"status": subscription.status},
            )

        tenant = await self.tenants.get_by_id(tenant_id)
        return await self.processor.create_checkout_session(
            tenant_id=tenant_id,
            price_id=addon_price(addon_type),
            metadata={
                "tenantId": tenant_id,
                "type": CheckoutType.ADDON.value,
                "addonType": addon_type,
            },
            success_url=success_url or _billing_url("/billing?addon=success"),
            cancel_url=cancel_url or _billing_url("/billing?addon=cancelled"),
            customer_id=subscription.external_customer_id,
            customer_email=tenant.email if tenant else None,
        )

    async def portal_session(self, tenant_id: int, return_url: Optional[str] = None) -> Dict[str, Any]:
        subscription = await self._require_subscription(tenant_id)
        if not subscription.external_customer_id:
            raise ValidationFailedError("No billing account for this tenant yet")
        return await self.processor.create_portal_session(
            subscription.external_customer_id, return_url or _billing_url("/billing")
        )

    async def trial_status(self, tenant_id: int) -> Dict[str, Any]:
        subscription = await self._require_subscription(tenant_id)
        tenant = await self.tenants.get_by_id(tenant_id)
        return trial_status_for(subscription, tenant.trial_ends_at if tenant else None)

    async def summary(self, tenant_id: int) -> Dict[str, Any]:
        subscription = await self._require_subscription(tenant_id)
        addons = await self.subscriptions.list_addons(tenant_id, status=AddonStatus.ACTIVE.value)
        usage = await self.accountant.usage(tenant_id)

        return {
            "subscription": subscription,
            "addons": addons,
            "limits": {
                "storage_limit_bytes": subscription.effective_storage_limit,
                "gallery_limit": subscription.effective_gallery_limit,
                "base_storage_limit_bytes": subscription.storage_limit_bytes,
                "base_gallery_limit": subscription.gallery_limit,
                "extra_storage_bytes": subscription.extra_storage_bytes,
                "extra_galleries": subscription.extra_galleries,
            },
            "usage": usage,
            "warnings": usage_warnings_for(subscription, usage),
        }
