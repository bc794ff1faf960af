# galleria/schemas/billing.py
from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime

from galleria.core.constants import AddonType, PlanType


class PlanCheckoutRequest(BaseModel):
    plan: PlanType = PlanType.BASIC
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class AddonCheckoutRequest(BaseModel):
    addon_type: AddonType
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class CheckoutSession(BaseModel):
    session_id: Optional[str]
    url: Optional[str]


class PortalRequest(BaseModel):
    return_url: Optional[str] = None


class PortalSession(BaseModel):
    url: Optional[str]


class SubscriptionOut(BaseModel):
    id: int
    tenant_id: int
    plan: str
    status: str
    storage_limit_bytes: int
    gallery_limit: int
    extra_storage_bytes: int
    extra_galleries: int
    current_period_start: Optional[datetime]
    current_period_end: Optional[datetime]
    cancel_at_period_end: bool
    cancelled_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class AddonOut(BaseModel):
    id: int
    addon_type: str
    status: str
    quantity: int
    current_period_end: Optional[datetime]
    cancelled_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class TrialStatus(BaseModel):
    plan: str
    status: str
    trial_ends_at: Optional[datetime]
    never_expires: bool
    is_expired: bool
    days_remaining: Optional[int]


class WebhookAck(BaseModel):
    received: bool
    status: str
