from typing import List, Optional, Tuple

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING

from fiscalai.core.database import get_database
from fiscalai.core.repository import BaseRepository
from .models import NotificationInDB


class NotificationRepository(BaseRepository[NotificationInDB]):
    model = NotificationInDB
    collection_name = "notifications"

    async def list_recent(
        self, invoice_id: Optional[str] = None, limit: int = 50
    ) -> Tuple[List[NotificationInDB], int]:
        """Notificações mais recentes e o total do conjunto filtrado."""
        query = {"invoice_id": invoice_id} if invoice_id else {}
        notifications = await self.list_by(query=query, limit=limit, sort=[("created_at", DESCENDING)])
        return notifications, await self.count(query)


async def get_notification_repository(db: AsyncIOMotorDatabase = Depends(get_database)) -> NotificationRepository:
    return NotificationRepository(db)
