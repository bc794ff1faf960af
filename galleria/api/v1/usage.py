# galleria/api/v1/usage.py
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from galleria.api.dependencies import get_limit_enforcer
from galleria.core.tenant import require_tenant
from galleria.db.database import get_db
from galleria.schemas.usage import LimitDecisionOut, UsageOut, UsageWarning
from galleria.services.limit_service import LimitEnforcer
from galleria.services.usage_service import UsageAccountant

router = APIRouter()


@router.get("", response_model=UsageOut)
async def get_usage(
    tenant_id: int = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    return await UsageAccountant(db).usage(tenant_id)


@router.get("/check/storage", response_model=LimitDecisionOut)
async def check_storage(
    additional_bytes: int = Query(0, ge=0),
    tenant_id: int = Depends(require_tenant),
    enforcer: LimitEnforcer = Depends(get_limit_enforcer),
):
    """Would an upload of `additional_bytes` fit? Advisory, no lock taken"""
    return await enforcer.check_storage(tenant_id, additional_bytes)


@router.get("/check/gallery", response_model=LimitDecisionOut)
async def check_gallery(
    tenant_id: int = Depends(require_tenant),
    enforcer: LimitEnforcer = Depends(get_limit_enforcer),
):
    return await enforcer.check_gallery_create(tenant_id)


@router.get("/warnings", response_model=List[UsageWarning])
async def get_usage_warnings(
    tenant_id: int = Depends(require_tenant),
    enforcer: LimitEnforcer = Depends(get_limit_enforcer),
):
    return await enforcer.usage_warnings(tenant_id)
