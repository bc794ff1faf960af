"""Tenant resolution from the request host."""
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from fastapi import Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from galleria.core.config import settings
from galleria.core.exceptions import NotFoundError
from galleria.core.logging import get_logger
from galleria.db.database import get_db
from galleria.db.repositories.tenant_repository import TenantRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResolvedTenant:
    """Outcome of host resolution: a tenant id, or the marketing site (no tenant)"""
    tenant_id: Optional[int]
    source: str

    @property
    def is_marketing(self) -> bool:
        return self.tenant_id is None


MARKETING_SITE = ResolvedTenant(tenant_id=None, source="marketing")


class TenantLookup(Protocol):
    async def get_by_custom_domain(self, domain: str): ...

    async def get_by_subdomain(self, subdomain: str): ...


def normalize_host(host_header: Optional[str]) -> str:
    """Lower-case the host and strip any port"""
    host = (host_header or "").strip().lower()
    if host.startswith("["):
        # IPv6 literal, e.g. [::1]:8000
        return host.split("]")[0] + "]"
    return host.split(":")[0].rstrip(".")


def _matches_pattern(domain: str, patterns: Iterable[str]) -> bool:
    return any(domain == p or domain.endswith("." + p) for p in patterns)


def is_reserved_subdomain(subdomain: str, reserved: Optional[Iterable[str]] = None) -> bool:
    reserved = settings.RESERVED_SUBDOMAINS if reserved is None else reserved
    return subdomain.strip().lower() in {r.lower() for r in reserved}


class TenantResolver:
    """
    Maps a Host header to a tenant.

    Order, first match wins:
        1. development hosts -> default tenant
        2. marketing domains -> MARKETING_SITE (never a tenant id)
        3. tenant custom domain
        4. first label of a 3+ label host as a tenant subdomain
        5. default tenant

    A failing lookup store degrades to the default tenant instead of failing
    the request.
    """

    def __init__(
        self,
        lookup: TenantLookup,
        default_tenant_id: Optional[int] = None,
        marketing_domains: Optional[Iterable[str]] = None,
        dev_host_patterns: Optional[Iterable[str]] = None,
    ):
        self.lookup = lookup
        self.default_tenant_id = (
            settings.DEFAULT_TENANT_ID if default_tenant_id is None else default_tenant_id
        )
        self.marketing_domains = {
            d.lower() for d in (settings.MARKETING_DOMAINS if marketing_domains is None else marketing_domains)
        }
        self.dev_host_patterns = [
            p.lower() for p in (settings.DEV_HOST_PATTERNS if dev_host_patterns is None else dev_host_patterns)
        ]

    def _default(self, source: str) -> ResolvedTenant:
        return ResolvedTenant(tenant_id=self.default_tenant_id, source=source)

    async def resolve(self, host_header: Optional[str]) -> ResolvedTenant:
        domain = normalize_host(host_header)

        if _matches_pattern(domain, self.dev_host_patterns):
            return self._default("development")

        if domain in self.marketing_domains:
            return MARKETING_SITE

        if not domain:
            return self._default("default")

        try:
            tenant = await self.lookup.get_by_custom_domain(domain)
            if tenant is not None:
                return ResolvedTenant(tenant_id=tenant.id, source="custom_domain")

            labels = domain.split(".")
            if len(labels) >= 3:
                tenant = await self.lookup.get_by_subdomain(labels[0])
                if tenant is not None:
                    return ResolvedTenant(tenant_id=tenant.id, source="subdomain")
        except (SQLAlchemyError, OSError) as exc:
            logger.warning(
                f"Tenant lookup unavailable for host {domain!r}, using default tenant: {exc}"
            )
            return self._default("lookup_unavailable")

        return self._default("default")


async def is_subdomain_available(repo: TenantRepository, subdomain: str) -> bool:
    """Reserved names and names already taken are unavailable"""
    if is_reserved_subdomain(subdomain):
        return False
    return not await repo.subdomain_exists(subdomain)


async def is_custom_domain_available(repo: TenantRepository, domain: str) -> bool:
    return not await repo.custom_domain_exists(normalize_host(domain))


async def get_request_tenant(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> ResolvedTenant:
    """FastAPI dependency resolving the tenant from the Host header"""
    resolver = TenantResolver(TenantRepository(db))
    resolved = await resolver.resolve(request.headers.get("host"))
    request.state.tenant = resolved
    return resolved


async def require_tenant(
    resolved: ResolvedTenant = Depends(get_request_tenant),
) -> int:
    """
    FastAPI dependency for routes that operate on tenant data.

    Raises:
        NotFoundError: the host is the marketing site, which has no tenant
    """
    if resolved.is_marketing:
        raise NotFoundError("No tenant for this host")
    return resolved.tenant_id
