# galleria/api/dependencies.py
import hmac
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from galleria.core.config import settings
from galleria.core.exceptions import NotConfiguredError
from galleria.db.database import get_db
from galleria.services.cancellation_guard import CancellationGuard
from galleria.services.gallery_service import GalleryService
from galleria.services.limit_service import LimitEnforcer
from galleria.services.storage_service import StorageService
from galleria.services.stripe_service import StripeService
from galleria.services.subscription_service import SubscriptionService
from galleria.services.tenant_service import TenantService
from galleria.services.webhook_reconciler import WebhookReconciler

security = HTTPBearer(auto_error=False)


async def require_owner(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    """Gate destructive tenant and billing routes behind the owner token"""
    if not settings.OWNER_API_TOKEN:
        raise NotConfiguredError("Owner API token is not configured")
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not hmac.compare_digest(credentials.credentials.encode(), settings.OWNER_API_TOKEN.encode()):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid credentials",
        )


def get_stripe_service() -> StripeService:
    """Payment processor client; overridden in tests"""
    return StripeService()


def get_storage_service() -> StorageService:
    """Object storage client; overridden in tests"""
    return StorageService()


def get_tenant_service(
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
) -> TenantService:
    return TenantService(db, storage)


def get_subscription_service(
    db: AsyncSession = Depends(get_db),
    processor: StripeService = Depends(get_stripe_service),
) -> SubscriptionService:
    return SubscriptionService(db, processor)


def get_cancellation_guard(
    db: AsyncSession = Depends(get_db),
    processor: StripeService = Depends(get_stripe_service),
) -> CancellationGuard:
    return CancellationGuard(db, processor)


def get_webhook_reconciler(
    db: AsyncSession = Depends(get_db),
    processor: StripeService = Depends(get_stripe_service),
) -> WebhookReconciler:
    return WebhookReconciler(db, processor)


def get_limit_enforcer(db: AsyncSession = Depends(get_db)) -> LimitEnforcer:
    return LimitEnforcer(db)


def get_gallery_service(
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
) -> GalleryService:
    return GalleryService(db, storage)
