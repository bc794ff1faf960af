# galleria/schemas/usage.py
from pydantic import BaseModel, ConfigDict
from typing import List, Optional

from galleria.schemas.billing import AddonOut, SubscriptionOut


class UsageOut(BaseModel):
    storage_used_bytes: int
    galleries_used: int
    media_count: int

    model_config = ConfigDict(from_attributes=True)


class LimitsOut(BaseModel):
    storage_limit_bytes: int
    gallery_limit: int
    base_storage_limit_bytes: int
    base_gallery_limit: int
    extra_storage_bytes: int
    extra_galleries: int


class UsageWarning(BaseModel):
    resource: str
    level: str
    percent_used: int
    message: str


class LimitDecisionOut(BaseModel):
    allowed: bool
    resource: str
    used: int
    limit: int
    percent_used: int
    reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SubscriptionSummary(BaseModel):
    subscription: SubscriptionOut
    addons: List[AddonOut]
    limits: LimitsOut
    usage: UsageOut
    warnings: List[UsageWarning]
