# galleria/services/tenant_service.py
import re
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from galleria.core.config import settings
from galleria.core.constants import (
    PLAN_LIMITS,
    SUBDOMAIN_PATTERN,
    PlanType,
    SubscriptionStatus,
    TenantStatus,
)
from galleria.core.exceptions import (
    ConflictError,
    GalleriaError,
    NotFoundError,
    ValidationFailedError,
)
from galleria.core.logging import get_logger
from galleria.core.tenant import is_subdomain_available, normalize_host
from galleria.db.base import utcnow
from galleria.db.models.tenant import Tenant
from galleria.db.repositories.subscription_repository import SubscriptionRepository
from galleria.db.repositories.tenant_repository import TenantRepository
from galleria.services.storage_service import StorageService

logger = get_logger(__name__)


class TenantService:
    """Tenant lifecycle: registration, custom domains, deletion"""

    def __init__(self, session: AsyncSession, storage: Optional[StorageService] = None):
        self.session = session
        self.tenants = TenantRepository(session)
        self.subscriptions = SubscriptionRepository(session)
        self.storage = storage or StorageService()

    async def register(self, name: str, email: str, subdomain: str) -> Tenant:
        """
        Create a tenant on a trial of the starter plan.

        Raises:
            ValidationFailedError: subdomain format
            ConflictError: subdomain reserved or taken
        """
        subdomain = subdomain.strip().lower()
        if not re.match(SUBDOMAIN_PATTERN, subdomain):
            raise ValidationFailedError(
                "Subdomain must be 3-50 characters of lowercase letters, digits and hyphens",
                {"subdomain": subdomain},
            )
        if not await is_subdomain_available(self.tenants, subdomain):
            raise ConflictError("Subdomain is not available", {"subdomain": subdomain})

        now = utcnow()
        trial_ends_at = now + timedelta(days=settings.TRIAL_DAYS)
        limits = PLAN_LIMITS[PlanType.STARTER.value]

        try:
            tenant = await self.tenants.create({
                "name": name,
                "email": email,
                "subdomain": subdomain,
                "status": TenantStatus.ACTIVE.value,
                "trial_ends_at": trial_ends_at,
            })
            await self.subscriptions.create_for_tenant(tenant.id, {
                "plan": PlanType.STARTER.value,
                "status": SubscriptionStatus.TRIALING.value,
                "storage_limit_bytes": limits["storage_limit_bytes"],
                "gallery_limit": limits["gallery_limit"],
                "current_period_start": now,
                "current_period_end": trial_ends_at,
            })
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError("Subdomain is not available", {"subdomain": subdomain}) from e
        except Exception:
            await self.session.rollback()
            raise

        logger.info(f"Tenant registered: {subdomain}", extra={"tenant_id": tenant.id})

        try:
            await self.storage.initialize_tenant(tenant.id)
        except GalleriaError as e:
            logger.warning(
                f"Tenant storage initialization failed: {e.message}",
                extra={"tenant_id": tenant.id},
            )

        return tenant

    async def set_custom_domain(self, tenant_id: int, domain: Optional[str]) -> Tenant:
        """Assign, replace or clear (None / empty) a tenant's custom domain"""
        tenant = await self.tenants.get_by_id(tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant not found", {"tenant_id": tenant_id})

        domain = normalize_host(domain) or None
        if domain is not None:
            if "." not in domain:
                raise ValidationFailedError("Invalid domain", {"domain": domain})
            platform = settings.PLATFORM_DOMAIN.lower()
            if domain in settings.MARKETING_DOMAINS or domain == platform or domain.endswith("." + platform):
                raise ValidationFailedError("Domain belongs to the platform", {"domain": domain})
            if domain != tenant.custom_domain and await self.tenants.custom_domain_exists(domain):
                raise ConflictError("Domain is already in use", {"domain": domain})

        try:
            await self.tenants.update_fields(tenant, {"custom_domain": domain})
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError("Domain is already in use", {"domain": domain}) from e

        logger.info(f"Custom domain set to {domain}", extra={"tenant_id": tenant_id})
        return tenant

    async def delete_tenant(self, tenant_id: int) -> None:
        """Remove the tenant, everything it owns, and its stored objects"""
        tenant = await self.tenants.get_by_id(tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant not found", {"tenant_id": tenant_id})

        try:
            await self.tenants.purge(tenant_id)
            await self.storage.purge_tenant(tenant_id)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("Tenant deleted", extra={"tenant_id": tenant_id})
