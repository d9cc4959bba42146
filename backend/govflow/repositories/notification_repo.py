"""Notification Repository - Data access for notification outbox

Delivery (e-mail / Teams) is owned by an external worker that drains the
outbox; this repository only queues and acknowledges.
"""
from typing import List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING

from .mongo_client import get_collection, NOTIFICATION_OUTBOX
from ..domain.models import NotificationOutbox
from ..domain.enums import NotificationStatus
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class NotificationRepository:
    """Repository for notification outbox operations"""

    def __init__(self):
        self._outbox: Collection = get_collection(NOTIFICATION_OUTBOX)

    def create_notification(self, notification: NotificationOutbox) -> NotificationOutbox:
        """Create a notification in outbox"""
        doc = notification.model_dump(mode="json")
        doc["_id"] = notification.notification_id

        self._outbox.insert_one(doc)
        logger.info(
            f"Queued notification: {notification.template}",
            extra={"action": notification.template}
        )
        return notification

    def get_notification(self, notification_id: str) -> Optional[NotificationOutbox]:
        """Get notification by ID"""
        doc = self._outbox.find_one({"notification_id": notification_id})
        if doc:
            doc.pop("_id", None)
            return NotificationOutbox.model_validate(doc)
        return None

    def get_pending_notifications(self, limit: int = 100) -> List[NotificationOutbox]:
        """Pending notifications, oldest first"""
        cursor = self._outbox.find(
            {"status": NotificationStatus.PENDING.value}
        ).sort("created_at", ASCENDING).limit(limit)

        notifications = []
        for doc in cursor:
            doc.pop("_id", None)
            notifications.append(NotificationOutbox.model_validate(doc))
        return notifications

    def mark_sent(self, notification_id: str) -> bool:
        result = self._outbox.update_one(
            {"notification_id": notification_id, "status": NotificationStatus.PENDING.value},
            {"$set": {"status": NotificationStatus.SENT.value, "sent_at": utc_now().isoformat()}}
        )
        return result.modified_count == 1

    def mark_failed(self, notification_id: str) -> bool:
        result = self._outbox.update_one(
            {"notification_id": notification_id},
            {"$set": {"status": NotificationStatus.FAILED.value}, "$inc": {"retry_count": 1}}
        )
        return result.modified_count == 1
