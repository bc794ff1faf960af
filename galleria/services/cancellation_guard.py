"""
Cancellation of add-ons and of the primary plan.

An add-on may only be cancelled when current usage fits under the limit
that would remain without it. The processor is called before any local
write, so a processor failure leaves local state untouched.
"""
from sqlalchemy.ext.asyncio import AsyncSession

from galleria.core.constants import AddonStatus, AddonType, SubscriptionStatus
from galleria.core.exceptions import (
    ConflictError,
    LimitExceededError,
    NotFoundError,
    ValidationFailedError,
)
from galleria.core.logging import get_logger
from galleria.db.base import utcnow
from galleria.db.models.subscription import Subscription
from galleria.db.repositories.subscription_repository import SubscriptionRepository
from galleria.services.addon_limits import AddonLimitRecalculator, addon_unit
from galleria.services.limit_service import LimitDecision, percent_of
from galleria.services.stripe_service import StripeService
from galleria.services.usage_service import UsageAccountant

logger = get_logger(__name__)


class CancellationGuard:
    def __init__(self, session: AsyncSession, processor: StripeService):
        self.session = session
        self.processor = processor
        self.subscriptions = SubscriptionRepository(session)
        self.accountant = UsageAccountant(session)
        self.recalculator = AddonLimitRecalculator(session)

    async def can_cancel_addon(self, tenant_id: int, addon_id: int) -> LimitDecision:
        """
        Decide whether cancelling the add-on would leave usage over the limit.

        The hypothetical limit is the plan base plus every other active add-on
        of the same type.
        """
        addon = await self.subscriptions.get_addon(tenant_id, addon_id)
        if addon is None:
            raise NotFoundError("Add-on not found", {"tenant_id": tenant_id, "addon_id": addon_id})
        if addon.status == AddonStatus.CANCELLED.value:
            raise ConflictError("Add-on is already cancelled", {"addon_id": addon_id})

        subscription = await self.subscriptions.get_by_tenant(tenant_id)
        if subscription is None:
            raise NotFoundError("Subscription not found", {"tenant_id": tenant_id})

        others = [
            a for a in await self.subscriptions.list_addons(
                tenant_id, status=AddonStatus.ACTIVE.value, addon_type=addon.addon_type
            )
            if a.id != addon.id
        ]
        remaining_extra = sum(a.quantity * addon_unit(a.addon_type) for a in others)
        usage = await self.accountant.usage(tenant_id)

        if addon.addon_type == AddonType.STORAGE.value:
            used = usage.storage_used_bytes
            limit = subscription.storage_limit_bytes + remaining_extra
            noun = "storage"
        else:
            used = usage.galleries_used
            limit = subscription.gallery_limit + remaining_extra
            noun = "galleries"

        percent = percent_of(used, limit)
        if used > limit:
            return LimitDecision(
                allowed=False,
                resource=addon.addon_type,
                used=used,
                limit=limit,
                percent_used=percent,
                reason=(
                    f"Cancelling this add-on would leave {noun} usage at {percent}% "
                    "of your limit. Free resources first, then cancel."
                ),
            )
        return LimitDecision(True, addon.addon_type, used, limit, percent)

    async def cancel_addon(self, tenant_id: int, addon_id: int) -> LimitDecision:
        try:
            decision = await self.can_cancel_addon(tenant_id, addon_id)
            if not decision.allowed:
                logger.info(f"Add-on cancellation denied: {decision.reason}", extra={"tenant_id": tenant_id})
                raise LimitExceededError(
                    decision.reason,
                    resource=decision.resource,
                    used=decision.used,
                    limit=decision.limit,
                    percent_used=decision.percent_used,
                )

            addon = await self.subscriptions.get_addon(tenant_id, addon_id)
            await self.processor.cancel_at_period_end(addon.external_subscription_id)

            await self.subscriptions.update_fields(addon, {
                "status": AddonStatus.CANCELLED.value,
                "cancelled_at": utcnow(),
            })
            await self.recalculator.recalculate(tenant_id)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(f"Add-on {addon_id} cancelled", extra={"tenant_id": tenant_id})
        return decision

    async def _plan_with_handle(self, tenant_id: int) -> Subscription:
        subscription = await self.subscriptions.get_by_tenant(tenant_id, for_update=True)
        if subscription is None:
            raise NotFoundError("Subscription not found", {"tenant_id": tenant_id})
        if not subscription.external_subscription_id:
            raise ValidationFailedError(
                "Subscription is not billed through the payment processor",
                {"tenant_id": tenant_id},
            )
        return subscription

    async def cancel_plan(self, tenant_id: int) -> Subscription:
        """Schedule the primary plan to end with the current period"""
        try:
            subscription = await self._plan_with_handle(tenant_id)
            await self.processor.cancel_at_period_end(subscription.external_subscription_id)
            await self.subscriptions.update_fields(subscription, {"cancel_at_period_end": True})
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        logger.info("Plan set to cancel at period end", extra={"tenant_id": tenant_id})
        return subscription

    async def reactivate_plan(self, tenant_id: int) -> Subscription:
        """Undo a scheduled plan cancellation"""
        try:
            subscription = await self._plan_with_handle(tenant_id)
            if subscription.status == SubscriptionStatus.CANCELLED.value:
                raise ConflictError("Subscription has already ended", {"tenant_id": tenant_id})
            await self.processor.resume(subscription.external_subscription_id)
            await self.subscriptions.update_fields(subscription, {"cancel_at_period_end": False})
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        logger.info("Plan cancellation reverted", extra={"tenant_id": tenant_id})
        return subscription
