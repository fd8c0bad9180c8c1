"""Notification Service - Queues provider emails for the mail collaborator"""
from datetime import datetime
from typing import Callable

from pymongo.database import Database
from pymongo.errors import PyMongoError

from ..domain.models import ActorContext, Application, CompletionLink, NotificationOutbox
from ..domain.enums import NotificationTemplateKey
from ..domain.errors import EmailSendError
from ..repositories.notification_repo import NotificationRepository
from ..templates import get_email_template
from ..config.settings import settings
from ..utils.idgen import generate_notification_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NotificationService:
    """Service for queueing notifications"""
    
    def __init__(self, db: Database, clock: Callable[[], datetime] = utc_now):
        self.repo = NotificationRepository(db)
        self._clock = clock
    
    @staticmethod
    def completion_url(token: str) -> str:
        """Link the provider follows to resume their application"""
        return f"{settings.completion_url_base}?token={token}"
    
    def queue_completion_link_email(
        self,
        link: CompletionLink,
        application: Application,
        actor: ActorContext
    ) -> NotificationOutbox:
        """
        Render and queue the completion-link email
        
        Raises:
            EmailSendError: the outbox write failed
        """
        rendered = get_email_template(
            NotificationTemplateKey.COMPLETION_LINK.value,
            {
                "provider_name": application.full_name,
                "missing_fields": link.missing_fields,
                "completion_url": self.completion_url(link.token),
                "ttl_hours": settings.completion_link_ttl_hours,
                "sent_by": actor.label,
            },
            app_url=settings.frontend_url
        )
        
        notification = NotificationOutbox(
            notification_id=generate_notification_id(),
            template_key=NotificationTemplateKey.COMPLETION_LINK,
            recipient_email=link.provider_email,
            subject=rendered["subject"],
            body_html=rendered["body"],
            application_id=link.application_id,
            payload={"missing_fields": link.missing_fields, "expires_at": link.expires_at.isoformat()},
            created_at=self._clock()
        )
        
        try:
            return self.repo.create_notification(notification)
        except PyMongoError as e:
            raise EmailSendError(
                f"Failed to queue completion email for {link.provider_email}",
                details={"application_id": link.application_id, "reason": str(e)}
            ) from e
