# galleria/db/models/subscription.py
from sqlalchemy import (
    Column, String, Integer, BigInteger, Boolean, DateTime, ForeignKey, CheckConstraint,
)
from galleria.db.base import BaseModel


class Subscription(BaseModel):
    """
    Primary subscription, one per tenant.

    `storage_limit_bytes` / `gallery_limit` are the plan's base entitlements.
    `extra_storage_bytes` / `extra_galleries` are a cache of the active add-ons,
    rewritten by the add-on limit recalculator; they are never edited directly.
    """
    __tablename__ = "subscriptions"
    __table_args__ = (
        CheckConstraint(
            "status IN ('trialing', 'active', 'past_due', 'cancelled', 'paused')",
            name="subscriptions_status_check",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"),
        unique=True, nullable=False, index=True,
    )
    plan = Column(String(50), default="starter", nullable=False)
    status = Column(String(20), default="trialing", nullable=False, index=True)

    # Entitlements
    storage_limit_bytes = Column(BigInteger, nullable=False)
    gallery_limit = Column(Integer, nullable=False)
    extra_storage_bytes = Column(BigInteger, default=0, nullable=False)
    extra_galleries = Column(Integer, default=0, nullable=False)

    # Billing period
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)
    cancelled_at = Column(DateTime, nullable=True)

    # Payment processor handles
    external_customer_id = Column(String(255), nullable=True)
    external_subscription_id = Column(String(255), unique=True, nullable=True, index=True)

    @property
    def effective_storage_limit(self) -> int:
        return (self.storage_limit_bytes or 0) + (self.extra_storage_bytes or 0)

    @property
    def effective_gallery_limit(self) -> int:
        return (self.gallery_limit or 0) + (self.extra_galleries or 0)


class SubscriptionAddon(BaseModel):
    """Independently billed increment to a base entitlement. Never deleted, only status-transitioned."""
    __tablename__ = "subscription_addons"
    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'past_due', 'cancelled', 'paused')",
            name="subscription_addons_status_check",
        ),
        CheckConstraint(
            "addon_type IN ('storage', 'galleries')",
            name="subscription_addons_type_check",
        ),
        CheckConstraint("quantity >= 1", name="subscription_addons_quantity_check"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    subscription_id = Column(
        Integer, ForeignKey("subscriptions.id", ondelete="SET NULL"), nullable=True,
    )
    addon_type = Column(String(20), nullable=False)
    external_subscription_id = Column(String(255), unique=True, nullable=False, index=True)
    external_price_id = Column(String(255), nullable=True)
    status = Column(String(20), default="active", nullable=False, index=True)
    quantity = Column(Integer, default=1, nullable=False)
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
