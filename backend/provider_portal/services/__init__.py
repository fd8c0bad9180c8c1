"""Service modules - Business logic layer"""
from .audit_writer import AuditWriter
from .notification_service import NotificationService
from .document_service import DocumentGenerator
from .provisioning_service import ProviderProvisioner
from .application_service import ApplicationService
from .completion_link_service import CompletionLinkService

__all__ = [
    "AuditWriter",
    "NotificationService",
    "DocumentGenerator",
    "ProviderProvisioner",
    "ApplicationService",
    "CompletionLinkService",
]
