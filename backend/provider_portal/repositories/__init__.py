"""Repository modules - Data access layer"""
from .mongo_client import get_database, get_collection, create_indexes
from .application_repo import ApplicationRepository
from .provider_repo import ProviderRepository
from .completion_link_repo import CompletionLinkRepository
from .audit_repo import AuditRepository
from .notification_repo import NotificationRepository

__all__ = [
    "get_database",
    "get_collection",
    "create_indexes",
    "ApplicationRepository",
    "ProviderRepository",
    "CompletionLinkRepository",
    "AuditRepository",
    "NotificationRepository",
]
