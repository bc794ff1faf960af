# galleria/db/models/__init__.py
from galleria.db.models.tenant import Tenant
from galleria.db.models.subscription import Subscription, SubscriptionAddon
from galleria.db.models.gallery import Gallery, MediaItem
from galleria.db.models.webhook_event import ProcessedWebhookEvent

__all__ = [
    "Tenant",
    "Subscription",
    "SubscriptionAddon",
    "Gallery",
    "MediaItem",
    "ProcessedWebhookEvent",
]
