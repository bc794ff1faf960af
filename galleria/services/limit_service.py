"""
Limit enforcement for storage writes and gallery creation.

Limits are base plan entitlements plus the add-on cache on the
subscription row. Usage is recomputed for every decision.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from galleria.core.constants import (
    GIB,
    LimitResource,
    USAGE_WARNING_CRITICAL,
    USAGE_WARNING_HIGH,
)
from galleria.core.exceptions import LimitExceededError
from galleria.core.logging import get_logger
from galleria.db.models.subscription import Subscription
from galleria.db.repositories.subscription_repository import SubscriptionRepository
from galleria.services.usage_service import UsageAccountant, UsageSnapshot

logger = get_logger(__name__)


@dataclass(frozen=True)
class LimitDecision:
    allowed: bool
    resource: str
    used: int
    limit: int
    percent_used: int
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def percent_of(used: int, limit: int) -> int:
    if limit <= 0:
        return 100
    return round(used / limit * 100)


def format_gib(num_bytes: int) -> str:
    return f"{num_bytes / GIB:.2f} GB"


def storage_decision(used: int, additional: int, limit: int) -> LimitDecision:
    percent = percent_of(used, limit)
    if used + additional > limit:
        return LimitDecision(
            allowed=False,
            resource=LimitResource.STORAGE.value,
            used=used,
            limit=limit,
            percent_used=percent,
            reason=(
                f"Storage limit exceeded: {percent}% used "
                f"({format_gib(used)} of {format_gib(limit)}). "
                "Upgrade your plan or add a storage add-on."
            ),
        )
    return LimitDecision(True, LimitResource.STORAGE.value, used, limit, percent)


def gallery_decision(used: int, limit: int) -> LimitDecision:
    percent = percent_of(used, limit)
    if used >= limit:
        return LimitDecision(
            allowed=False,
            resource=LimitResource.GALLERIES.value,
            used=used,
            limit=limit,
            percent_used=percent,
            reason=(
                f"Gallery limit reached ({used}/{limit}). "
                "Upgrade your plan or add a gallery add-on."
            ),
        )
    return LimitDecision(True, LimitResource.GALLERIES.value, used, limit, percent)


def _missing_subscription(resource: LimitResource) -> LimitDecision:
    return LimitDecision(
        allowed=False,
        resource=resource.value,
        used=0,
        limit=0,
        percent_used=100,
        reason="Subscription not found",
    )


class LimitEnforcer:
    """
    Answers "may this tenant do X now?".

    `check_*` are advisory reads. `ensure_*` take a row lock on the
    subscription inside the caller's transaction and raise on denial, so the
    caller's insert commits under the same lock as the check.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.subscriptions = SubscriptionRepository(session)
        self.accountant = UsageAccountant(session)

    async def _load(self, tenant_id: int, for_update: bool):
        subscription = await self.subscriptions.get_by_tenant(tenant_id, for_update=for_update)
        if subscription is None:
            return None, None
        usage = await self.accountant.usage(tenant_id)
        return subscription, usage

    async def check_storage(
        self, tenant_id: int, additional_bytes: int = 0, for_update: bool = False
    ) -> LimitDecision:
        subscription, usage = await self._load(tenant_id, for_update)
        if subscription is None:
            return _missing_subscription(LimitResource.STORAGE)
        return storage_decision(
            usage.storage_used_bytes, additional_bytes, subscription.effective_storage_limit
        )

    async def check_gallery_create(self, tenant_id: int, for_update: bool = False) -> LimitDecision:
        subscription, usage = await self._load(tenant_id, for_update)
        if subscription is None:
            return _missing_subscription(LimitResource.GALLERIES)
        return gallery_decision(usage.galleries_used, subscription.effective_gallery_limit)

    async def ensure_storage(self, tenant_id: int, additional_bytes: int) -> LimitDecision:
        decision = await self.check_storage(tenant_id, additional_bytes, for_update=True)
        return self._raise_if_denied(tenant_id, decision)

    async def ensure_gallery_create(self, tenant_id: int) -> LimitDecision:
        decision = await self.check_gallery_create(tenant_id, for_update=True)
        return self._raise_if_denied(tenant_id, decision)

    def _raise_if_denied(self, tenant_id: int, decision: LimitDecision) -> LimitDecision:
        if decision.allowed:
            return decision
        logger.info(
            f"Limit denied: {decision.reason}",
            extra={"tenant_id": tenant_id},
        )
        raise LimitExceededError(
            decision.reason,
            resource=decision.resource,
            used=decision.used,
            limit=decision.limit,
            percent_used=decision.percent_used,
        )

    async def usage_warnings(self, tenant_id: int) -> List[Dict[str, Any]]:
        """Warnings for resources above the high (80%) or critical (90%) threshold"""
        subscription, usage = await self._load(tenant_id, for_update=False)
        if subscription is None:
            return []
        return usage_warnings_for(subscription, usage)


def usage_warnings_for(subscription: Subscription, usage: UsageSnapshot) -> List[Dict[str, Any]]:
    warnings = []
    figures = (
        (LimitResource.STORAGE, usage.storage_used_bytes, subscription.effective_storage_limit),
        (LimitResource.GALLERIES, usage.galleries_used, subscription.effective_gallery_limit),
    )
    for resource, used, limit in figures:
        percent = percent_of(used, limit)
        if percent > USAGE_WARNING_CRITICAL:
            level = "critical"
        elif percent > USAGE_WARNING_HIGH:
            level = "high"
        else:
            continue
        warnings.append({
            "resource": resource.value,
            "level": level,
            "percent_used": percent,
            "message": f"{resource.value.capitalize()} usage at {percent}% of your limit",
        })
    return warnings
