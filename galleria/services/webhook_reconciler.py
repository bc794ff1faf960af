"""
Webhook reconciliation.

Applies signed payment processor events to the local subscription mirror.
Each event is one transaction: the state change and its ledger row commit
together or not at all. Handlers only move a row toward the state the
payload describes, so re-delivery and out-of-order delivery converge.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from galleria.core.constants import (
    PLAN_LIMITS,
    PROCESSOR_STATUS_MAP,
    AddonStatus,
    AddonType,
    CheckoutType,
    PlanType,
    SubscriptionStatus,
    TenantStatus,
)
from galleria.core.exceptions import NotFoundError, ValidationFailedError
from galleria.core.logging import get_logger
from galleria.db.base import utcnow
from galleria.db.models.subscription import Subscription, SubscriptionAddon
from galleria.db.repositories.subscription_repository import SubscriptionRepository
from galleria.db.repositories.tenant_repository import TenantRepository
from galleria.db.repositories.webhook_event_repository import WebhookEventRepository
from galleria.services.addon_limits import AddonLimitRecalculator
from galleria.services.stripe_service import StripeService, from_timestamp

logger = get_logger(__name__)

# Processor event type -> handler name
EVENT_HANDLERS = {
    "checkout.session.completed": "checkout_completed",
    "customer.subscription.updated": "subscription_updated",
    "customer.subscription.deleted": "subscription_deleted",
    "invoice.paid": "invoice_paid",
    "invoice.payment_failed": "invoice_payment_failed",
}

CANCELLED = SubscriptionStatus.CANCELLED.value


@dataclass
class AddonTarget:
    addon: SubscriptionAddon


@dataclass
class PrimaryTarget:
    subscription: Subscription


ReconciliationTarget = Union[AddonTarget, PrimaryTarget]


def map_processor_status(status: Optional[str], for_addon: bool = False) -> Optional[str]:
    """Local status for a processor status, or None when it is not recognised"""
    mapped = PROCESSOR_STATUS_MAP.get((status or "").lower())
    if mapped is None:
        return None
    if for_addon and mapped == SubscriptionStatus.TRIALING:
        return AddonStatus.ACTIVE.value
    return mapped.value


def _period(obj: Dict[str, Any]) -> Dict[str, Any]:
    """Billing period from a subscription object (top level, or first item)"""
    start = obj.get("current_period_start")
    end = obj.get("current_period_end")
    items = (obj.get("items") or {}).get("data") or []
    if (start is None or end is None) and items:
        start = start if start is not None else items[0].get("current_period_start")
        end = end if end is not None else items[0].get("current_period_end")
    values = {}
    if start is not None:
        values["current_period_start"] = from_timestamp(start)
    if end is not None:
        values["current_period_end"] = from_timestamp(end)
    return values


def _invoice_subscription(invoice: Dict[str, Any]) -> Optional[str]:
    handle = invoice.get("subscription")
    if handle:
        return handle
    details = ((invoice.get("parent") or {}).get("subscription_details") or {})
    return details.get("subscription")


class WebhookReconciler:
    """Verifies, dedupes and applies processor events"""

    def __init__(self, session: AsyncSession, processor: StripeService):
        self.session = session
        self.processor = processor
        self.subscriptions = SubscriptionRepository(session)
        self.tenants = TenantRepository(session)
        self.ledger = WebhookEventRepository(session)
        self.recalculator = AddonLimitRecalculator(session)

    async def handle(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify a raw delivery, then process it"""
        event = self.processor.verify_webhook(payload, signature)
        return await self.process(event)

    async def process(self, event: Dict[str, Any]) -> Dict[str, Any]:
        event_id = event.get("id")
        event_type = event.get("type")
        log_context = {"event_id": event_id, "event_type": event_type}

        handler_name = EVENT_HANDLERS.get(event_type)
        if handler_name is None:
            logger.info(f"Ignoring unhandled webhook event {event_type}", extra=log_context)
            return {"received": True, "status": "ignored"}

        if event_id and await self.ledger.is_processed(event_id):
            logger.info("Duplicate webhook event, already applied", extra=log_context)
            return {"received": True, "status": "duplicate"}

        obj = (event.get("data") or {}).get("object") or {}
        handler = getattr(self, f"_on_{handler_name}")

        try:
            await handler(obj)
            if event_id:
                await self.ledger.mark_processed(event_id, event_type)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            # A concurrent delivery of the same event won the race
            if event_id and await self.ledger.is_processed(event_id):
                logger.info("Duplicate webhook event, applied concurrently", extra=log_context)
                return {"received": True, "status": "duplicate"}
            logger.error("Webhook event violated a constraint", extra=log_context)
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Webhook handler failed: {e}", extra=log_context)
            raise

        logger.info(f"Webhook event applied: {handler_name}", extra=log_context)
        return {"received": True, "status": "processed"}

    async def resolve_target(self, handle: str) -> ReconciliationTarget:
        """Join a processor subscription handle to an add-on or a primary subscription"""
        addon = await self.subscriptions.get_addon_by_external_id(handle)
        if addon is not None:
            return AddonTarget(addon)
        subscription = await self.subscriptions.get_by_external_id(handle)
        if subscription is not None:
            return PrimaryTarget(subscription)
        raise NotFoundError(
            "No subscription or add-on for processor handle",
            {"external_subscription_id": handle},
        )

    # ---- handlers ----

    async def _on_checkout_completed(self, session_obj: Dict[str, Any]) -> None:
        metadata = session_obj.get("metadata") or {}
        try:
            tenant_id = int(metadata.get("tenantId") or 0)
        except (TypeError, ValueError):
            tenant_id = 0
        if not tenant_id:
            raise ValidationFailedError("Missing tenantId in checkout metadata")

        handle = session_obj.get("subscription")
        if not handle:
            raise ValidationFailedError(
                "Checkout session has no subscription", {"tenant_id": tenant_id}
            )
        customer_id = session_obj.get("customer")
        checkout_type = metadata.get("type") or CheckoutType.PLAN.value

        if checkout_type == CheckoutType.ADDON.value:
            await self._complete_addon_checkout(tenant_id, handle, customer_id, metadata.get("addonType"))
        else:
            await self._complete_plan_checkout(tenant_id, handle, customer_id, metadata.get("plan"))

    async def _complete_addon_checkout(
        self, tenant_id: int, handle: str, customer_id: Optional[str], addon_type: Optional[str]
    ) -> None:
        if addon_type not in {t.value for t in AddonType}:
            raise ValidationFailedError(
                f"Unknown add-on type: {addon_type}", {"tenant_id": tenant_id}
            )

        details = await self.processor.retrieve_subscription(handle)
        subscription = await self.subscriptions.get_by_tenant(tenant_id)
        values = {
            "addon_type": addon_type,
            "external_price_id": details.get("price_id"),
            "current_period_start": details.get("current_period_start"),
            "current_period_end": details.get("current_period_end"),
        }

        existing = await self.subscriptions.get_addon_by_external_id(handle)
        if existing is None:
            await self.subscriptions.create_addon(tenant_id, {
                **values,
                "external_subscription_id": handle,
                "subscription_id": subscription.id if subscription else None,
                "status": AddonStatus.ACTIVE.value,
                "quantity": 1,
            })
            logger.info(f"Add-on {addon_type} purchased", extra={"tenant_id": tenant_id})
        elif existing.status != CANCELLED:
            await self.subscriptions.update_fields(existing, values)

        if subscription is not None and customer_id and not subscription.external_customer_id:
            await self.subscriptions.update_fields(subscription, {"external_customer_id": customer_id})

        await self.recalculator.recalculate(tenant_id)

    async def _complete_plan_checkout(
        self, tenant_id: int, handle: str, customer_id: Optional[str], plan: Optional[str]
    ) -> None:
        plan = plan or PlanType.BASIC.value
        if plan not in PLAN_LIMITS:
            raise ValidationFailedError(f"Unknown plan: {plan}", {"tenant_id": tenant_id})
        limits = PLAN_LIMITS[plan]

        subscription = await self.subscriptions.get_by_tenant(tenant_id, for_update=True)
        if (
            subscription is not None
            and subscription.status == CANCELLED
            and subscription.external_subscription_id == handle
        ):
            logger.info(
                "Checkout for an already cancelled subscription, not reviving",
                extra={"tenant_id": tenant_id},
            )
            return

        values = {
            "plan": plan,
            "status": SubscriptionStatus.ACTIVE.value,
            "external_subscription_id": handle,
            "cancel_at_period_end": False,
            "cancelled_at": None,
            "storage_limit_bytes": limits["storage_limit_bytes"],
            "gallery_limit": limits["gallery_limit"],
        }
        if customer_id:
            values["external_customer_id"] = customer_id

        if subscription is None:
            subscription = await self.subscriptions.create_for_tenant(tenant_id, values)
        else:
            await self.subscriptions.update_fields(subscription, values)

        attached = await self.subscriptions.attach_orphan_addons(tenant_id, subscription.id)
        if attached:
            logger.info(
                f"Attached {attached} earlier add-on(s) to the new plan",
                extra={"tenant_id": tenant_id},
            )
        await self.recalculator.recalculate(tenant_id)
        await self._set_tenant_status(tenant_id, TenantStatus.ACTIVE)
        logger.info(f"Plan {plan} purchased", extra={"tenant_id": tenant_id})

    async def _on_subscription_updated(self, obj: Dict[str, Any]) -> None:
        target = await self.resolve_target(obj.get("id"))
        row = target.addon if isinstance(target, AddonTarget) else target.subscription

        if row.status == CANCELLED:
            logger.info(
                "Update for a cancelled subscription ignored",
                extra={"tenant_id": row.tenant_id},
            )
            return

        processor_status = obj.get("status")
        status = map_processor_status(processor_status, for_addon=isinstance(target, AddonTarget))
        values = _period(obj)
        if status is None:
            logger.warning(
                f"Unknown processor status {processor_status!r}, status left unchanged",
                extra={"tenant_id": row.tenant_id},
            )
        else:
            values["status"] = status
            if status == CANCELLED and row.cancelled_at is None:
                values["cancelled_at"] = utcnow()

        if isinstance(target, AddonTarget):
            items = (obj.get("items") or {}).get("data") or []
            quantity = items[0].get("quantity") if items else None
            if quantity and quantity >= 1:
                values["quantity"] = int(quantity)
            await self.subscriptions.update_fields(target.addon, values)
            await self.recalculator.recalculate(row.tenant_id)
        else:
            values["cancel_at_period_end"] = bool(obj.get("cancel_at_period_end"))
            await self.subscriptions.update_fields(target.subscription, values)
            if status == CANCELLED:
                await self._set_tenant_status(row.tenant_id, TenantStatus.SUSPENDED)

    async def _on_subscription_deleted(self, obj: Dict[str, Any]) -> None:
        target = await self.resolve_target(obj.get("id"))
        row = target.addon if isinstance(target, AddonTarget) else target.subscription

        values = {"status": CANCELLED}
        if row.cancelled_at is None:
            values["cancelled_at"] = utcnow()

        if isinstance(target, AddonTarget):
            await self.subscriptions.update_fields(target.addon, values)
            await self.recalculator.recalculate(row.tenant_id)
        else:
            values["cancel_at_period_end"] = False
            await self.subscriptions.update_fields(target.subscription, values)
            await self._set_tenant_status(row.tenant_id, TenantStatus.SUSPENDED)
        logger.info("Subscription cancelled at processor", extra={"tenant_id": row.tenant_id})

    async def _on_invoice_paid(self, invoice: Dict[str, Any]) -> None:
        await self._apply_invoice(invoice, SubscriptionStatus.ACTIVE.value)

    async def _on_invoice_payment_failed(self, invoice: Dict[str, Any]) -> None:
        await self._apply_invoice(invoice, SubscriptionStatus.PAST_DUE.value)

    async def _apply_invoice(self, invoice: Dict[str, Any], status: str) -> None:
        handle = _invoice_subscription(invoice)
        if not handle:
            logger.info("Invoice without a subscription, nothing to reconcile")
            return

        target = await self.resolve_target(handle)
        row = target.addon if isinstance(target, AddonTarget) else target.subscription
        if row.status == CANCELLED:
            return

        await self.subscriptions.update_fields(row, {"status": status})
        if isinstance(target, AddonTarget):
            await self.recalculator.recalculate(row.tenant_id)
        if status == SubscriptionStatus.PAST_DUE.value:
            logger.warning("Invoice payment failed", extra={"tenant_id": row.tenant_id})

    async def _set_tenant_status(self, tenant_id: int, status: TenantStatus) -> None:
        tenant = await self.tenants.get_by_id(tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant not found", {"tenant_id": tenant_id})
        await self.tenants.update_fields(tenant, {"status": status.value})
