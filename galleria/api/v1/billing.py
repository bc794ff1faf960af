# galleria/api/v1/billing.py
from fastapi import APIRouter, Depends, Request

from galleria.api.dependencies import (
    get_cancellation_guard,
    get_subscription_service,
    get_webhook_reconciler,
    require_owner,
)
from galleria.core.tenant import require_tenant
from galleria.schemas.billing import (
    AddonCheckoutRequest,
    CheckoutSession,
    PlanCheckoutRequest,
    PortalRequest,
    PortalSession,
    SubscriptionOut,
    TrialStatus,
    WebhookAck,
)
from galleria.schemas.usage import LimitDecisionOut, SubscriptionSummary
from galleria.services.cancellation_guard import CancellationGuard
from galleria.services.subscription_service import SubscriptionService
from galleria.services.webhook_reconciler import WebhookReconciler

router = APIRouter()


@router.get("/subscription", response_model=SubscriptionSummary)
async def get_subscription(
    tenant_id: int = Depends(require_tenant),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Subscription, active add-ons, effective limits and usage"""
    return await service.summary(tenant_id)


@router.get("/trial-status", response_model=TrialStatus)
async def get_trial_status(
    tenant_id: int = Depends(require_tenant),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.trial_status(tenant_id)


@router.post("/checkout/plan", response_model=CheckoutSession)
async def create_plan_checkout(
    body: PlanCheckoutRequest,
    tenant_id: int = Depends(require_tenant),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.start_plan_checkout(
        tenant_id, body.plan.value, body.success_url, body.cancel_url
    )


@router.post("/checkout/addon", response_model=CheckoutSession)
async def create_addon_checkout(
    body: AddonCheckoutRequest,
    tenant_id: int = Depends(require_tenant),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.start_addon_checkout(
        tenant_id, body.addon_type.value, body.success_url, body.cancel_url
    )


@router.post("/portal", response_model=PortalSession, dependencies=[Depends(require_owner)])
async def create_portal_session(
    body: PortalRequest,
    tenant_id: int = Depends(require_tenant),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.portal_session(tenant_id, body.return_url)


@router.get("/addons/{addon_id}/can-cancel", response_model=LimitDecisionOut)
async def can_cancel_addon(
    addon_id: int,
    tenant_id: int = Depends(require_tenant),
    guard: CancellationGuard = Depends(get_cancellation_guard),
):
    return await guard.can_cancel_addon(tenant_id, addon_id)


@router.post(
    "/addons/{addon_id}/cancel",
    response_model=LimitDecisionOut,
    dependencies=[Depends(require_owner)],
)
async def cancel_addon(
    addon_id: int,
    tenant_id: int = Depends(require_tenant),
    guard: CancellationGuard = Depends(get_cancellation_guard),
):
    """Cancel an add-on at period end; 403 when usage would exceed the remaining limit"""
    return await guard.cancel_addon(tenant_id, addon_id)


@router.post("/cancel", response_model=SubscriptionOut, dependencies=[Depends(require_owner)])
async def cancel_plan(
    tenant_id: int = Depends(require_tenant),
    guard: CancellationGuard = Depends(get_cancellation_guard),
):
    return await guard.cancel_plan(tenant_id)


@router.post("/reactivate", response_model=SubscriptionOut, dependencies=[Depends(require_owner)])
async def reactivate_plan(
    tenant_id: int = Depends(require_tenant),
    guard: CancellationGuard = Depends(get_cancellation_guard),
):
    return await guard.reactivate_plan(tenant_id)


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
):
    """Handle payment processor webhooks; any non-2xx makes the processor retry"""
    # Raw body for signature verification
    body = await request.body()
    signature = request.headers.get("Stripe-Signature")
    return await reconciler.handle(body, signature)
