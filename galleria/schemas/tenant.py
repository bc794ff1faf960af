# galleria/schemas/tenant.py
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional
from datetime import datetime


class TenantBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr


class TenantCreate(TenantBase):
    subdomain: str = Field(..., min_length=3, max_length=50)


class CustomDomainUpdate(BaseModel):
    custom_domain: Optional[str] = None


class TenantInDB(TenantBase):
    id: int
    subdomain: str
    custom_domain: Optional[str]
    status: str
    trial_ends_at: Optional[datetime]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Tenant(TenantInDB):
    pass


class ResolvedTenantOut(BaseModel):
    tenant_id: Optional[int]
    source: str
    is_marketing: bool


class Availability(BaseModel):
    value: str
    available: bool
