"""Notification Service - Queues workflow notifications in the outbox

Delivery is owned by a separate worker that drains the outbox.
"""
from typing import Any, Dict, List, Optional

from ..domain.models import NotificationOutbox
from ..domain.enums import NotificationStatus
from ..repositories.notification_repo import NotificationRepository
from ..utils.idgen import generate_notification_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NotificationService:
    """Service for queueing notifications"""

    def __init__(self, repo: Optional[NotificationRepository] = None):
        self.repo = repo or NotificationRepository()

    def notify(
        self,
        template: str,
        payload: Dict[str, Any],
        roles: Optional[List[str]] = None,
        users: Optional[List[str]] = None,
        committees: Optional[List[str]] = None
    ) -> Optional[NotificationOutbox]:
        """
        Enqueue a notification for the given targets

        Returns:
            The queued notification, or None when there is nobody to notify
        """
        if not (roles or users or committees):
            logger.debug(f"Notification {template} has no recipients, skipped")
            return None

        notification = NotificationOutbox(
            notification_id=generate_notification_id(),
            template=template,
            notify_roles=list(roles or []),
            notify_users=list(users or []),
            notify_committees=list(committees or []),
            payload=payload,
            status=NotificationStatus.PENDING,
            created_at=utc_now()
        )
        return self.repo.create_notification(notification)

    def get_pending(self, limit: int = 100) -> List[NotificationOutbox]:
        return self.repo.get_pending_notifications(limit)
