# galleria/db/repositories/webhook_event_repository.py
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from galleria.db.models.webhook_event import ProcessedWebhookEvent


class WebhookEventRepository:
    """Ledger of processed payment processor events"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def is_processed(self, event_id: str) -> bool:
        result = await self.session.execute(
            select(ProcessedWebhookEvent.id).where(ProcessedWebhookEvent.event_id == event_id)
        )
        return result.scalar_one_or_none() is not None

    async def mark_processed(self, event_id: str, event_type: str) -> None:
        self.session.add(ProcessedWebhookEvent(event_id=event_id, event_type=event_type))
        await self.session.flush()
