"""Notification Repository - Data access for the email outbox

The outbox is the hand-off point to the external mail collaborator: rows are
written here as PENDING and delivered elsewhere.
"""
from typing import List
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo import ASCENDING

from .mongo_client import to_document, strip_id
from ..domain.models import NotificationOutbox
from ..domain.enums import NotificationStatus
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NotificationRepository:
    """Repository for notification outbox operations"""

    def __init__(self, db: Database):
        self._outbox: Collection = db["notification_outbox"]

    def create_notification(self, notification: NotificationOutbox) -> NotificationOutbox:
        """Create a notification in outbox"""
        doc = to_document(notification)
        doc["_id"] = notification.notification_id

        self._outbox.insert_one(doc)
        logger.info(
            f"Queued notification: {notification.template_key.value}",
            extra={"application_id": notification.application_id}
        )
        return notification

    def get_for_application(self, application_id: str) -> List[NotificationOutbox]:
        """Notifications queued for an application"""
        cursor = self._outbox.find({"application_id": application_id}).sort("created_at", ASCENDING)
        return [NotificationOutbox.model_validate(strip_id(doc)) for doc in cursor]

    def count_pending(self) -> int:
        """Emails still waiting for the mail collaborator"""
        return self._outbox.count_documents({"status": NotificationStatus.PENDING.value})
