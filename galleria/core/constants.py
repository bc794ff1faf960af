# galleria/core/constants.py
from enum import Enum
from typing import Dict, Any, List


GIB = 1024 * 1024 * 1024


class PlanType(str, Enum):
    STARTER = "starter"
    BASIC = "basic"
    COURTESY = "courtesy"
    FULL = "full"


class TenantStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"


class SubscriptionStatus(str, Enum):
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELLED = "cancelled"
    PAUSED = "paused"


class AddonStatus(str, Enum):
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELLED = "cancelled"
    PAUSED = "paused"


class AddonType(str, Enum):
    STORAGE = "storage"
    GALLERIES = "galleries"


class CheckoutType(str, Enum):
    PLAN = "plan"
    ADDON = "addon"


class LimitResource(str, Enum):
    STORAGE = "storage"
    GALLERIES = "galleries"


# Base entitlements per plan. Add-ons stack on top of these.
PLAN_LIMITS: Dict[str, Dict[str, Any]] = {
    PlanType.STARTER.value: {
        "storage_limit_bytes": 10 * GIB,
        "gallery_limit": 10,
        "never_expires": False,
    },
    PlanType.BASIC.value: {
        "storage_limit_bytes": 10 * GIB,
        "gallery_limit": 10,
        "never_expires": False,
    },
    PlanType.COURTESY.value: {
        "storage_limit_bytes": 10 * GIB,
        "gallery_limit": 10,
        "never_expires": True,
    },
    PlanType.FULL.value: {
        "storage_limit_bytes": 50 * GIB,
        "gallery_limit": 50,
        "never_expires": True,
    },
}

# Plans that may buy add-ons without an active paid subscription
COMPLIMENTARY_PLANS: List[str] = [PlanType.COURTESY.value, PlanType.FULL.value]

# Processor subscription status -> local status
PROCESSOR_STATUS_MAP: Dict[str, SubscriptionStatus] = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.TRIALING,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "incomplete": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELLED,
    "cancelled": SubscriptionStatus.CANCELLED,
    "incomplete_expired": SubscriptionStatus.CANCELLED,
    "paused": SubscriptionStatus.PAUSED,
}

# Object storage categories created for every new tenant
TENANT_STORAGE_CATEGORIES: List[str] = [
    "galleries",
    "banners",
    "portfolio",
    "sessions",
    "stock",
    "generated",
    "config",
]

# Usage warning thresholds (percent of effective limit)
USAGE_WARNING_HIGH = 80
USAGE_WARNING_CRITICAL = 90

SUBDOMAIN_PATTERN = r"^[a-z0-9-]{3,50}$"
