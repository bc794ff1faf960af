# galleria/db/models/tenant.py
from sqlalchemy import Column, String, Integer, DateTime, CheckConstraint
from galleria.db.base import BaseModel


class Tenant(BaseModel):
    """Tenant model for multi-tenancy.

    `subdomain` is immutable once assigned; `custom_domain` is optional and
    unique across tenants. Both are stored lower-cased.
    """
    __tablename__ = "tenants"
    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'suspended', 'cancelled')",
            name="tenants_status_check",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(320), nullable=False)

    # Host routing
    subdomain = Column(String(100), unique=True, nullable=False, index=True)
    custom_domain = Column(String(255), unique=True, nullable=True, index=True)

    # Status
    status = Column(String(20), default="active", nullable=False)
    trial_ends_at = Column(DateTime, nullable=True)
