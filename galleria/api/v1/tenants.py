# galleria/api/v1/tenants.py
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from galleria.api.dependencies import get_tenant_service, require_owner
from galleria.core.exceptions import NotFoundError
from galleria.core.tenant import (
    ResolvedTenant,
    get_request_tenant,
    is_custom_domain_available,
    is_subdomain_available,
    require_tenant,
)
from galleria.db.database import get_db
from galleria.db.repositories.tenant_repository import TenantRepository
from galleria.schemas.tenant import (
    Availability,
    CustomDomainUpdate,
    ResolvedTenantOut,
    Tenant as TenantSchema,
    TenantCreate,
)
from galleria.services.tenant_service import TenantService

router = APIRouter()


@router.post("", response_model=TenantSchema, status_code=status.HTTP_201_CREATED)
async def register_tenant(
    body: TenantCreate,
    service: TenantService = Depends(get_tenant_service),
):
    """Register a tenant on a trial of the starter plan"""
    return await service.register(body.name, body.email, body.subdomain)


@router.get("/resolve", response_model=ResolvedTenantOut)
async def resolve_tenant(resolved: ResolvedTenant = Depends(get_request_tenant)):
    """Which tenant the request's Host header maps to"""
    return ResolvedTenantOut(
        tenant_id=resolved.tenant_id,
        source=resolved.source,
        is_marketing=resolved.is_marketing,
    )


@router.get("/availability/subdomain/{subdomain}", response_model=Availability)
async def check_subdomain(subdomain: str, db: AsyncSession = Depends(get_db)):
    available = await is_subdomain_available(TenantRepository(db), subdomain)
    return Availability(value=subdomain.lower(), available=available)


@router.get("/availability/domain/{domain}", response_model=Availability)
async def check_custom_domain(domain: str, db: AsyncSession = Depends(get_db)):
    available = await is_custom_domain_available(TenantRepository(db), domain)
    return Availability(value=domain.lower(), available=available)


@router.get("/me", response_model=TenantSchema)
async def get_current_tenant(
    tenant_id: int = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Get current tenant information"""
    tenant = await TenantRepository(db).get_by_id(tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant not found", {"tenant_id": tenant_id})
    return tenant


@router.put("/me/custom-domain", response_model=TenantSchema, dependencies=[Depends(require_owner)])
async def set_custom_domain(
    body: CustomDomainUpdate,
    tenant_id: int = Depends(require_tenant),
    service: TenantService = Depends(get_tenant_service),
):
    return await service.set_custom_domain(tenant_id, body.custom_domain)


@router.delete(
    "/me",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_owner)],
)
async def delete_current_tenant(
    tenant_id: int = Depends(require_tenant),
    service: TenantService = Depends(get_tenant_service),
):
    """Delete the tenant, its data and its stored objects"""
    await service.delete_tenant(tenant_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
