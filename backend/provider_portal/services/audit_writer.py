"""Audit Writer - Append-only activity log for applications"""
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from pymongo.database import Database

from ..domain.models import AuditEvent, ActorContext
from ..domain.enums import AuditEventType, ApplicationStatus
from ..repositories.audit_repo import AuditRepository
from ..utils.idgen import generate_audit_event_id
from ..utils.time import utc_now
from ..utils.logger import get_logger, get_correlation_id, mask_token

logger = get_logger(__name__)


class AuditWriter:
    """
    Write audit events (append-only)
    
    Every status change and link/provisioning action produces an event.
    """
    
    def __init__(self, db: Database, clock: Callable[[], datetime] = utc_now):
        self.repo = AuditRepository(db)
        self._clock = clock
    
    def write_event(
        self,
        application_id: str,
        event_type: AuditEventType,
        actor: Optional[ActorContext] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> AuditEvent:
        """Write a single audit event"""
        event = AuditEvent(
            audit_event_id=generate_audit_event_id(),
            application_id=application_id,
            event_type=event_type,
            actor=actor.username if actor else None,
            details=details or {},
            timestamp=self._clock(),
            correlation_id=get_correlation_id()
        )
        return self.repo.create_event(event)
    
    def write_submitted(self, application_id: str, draft_id: Optional[str], documents: List[str]) -> AuditEvent:
        return self.write_event(
            application_id,
            AuditEventType.APPLICATION_SUBMITTED,
            details={"draft_id": draft_id, "documents": documents}
        )
    
    def write_status_change(
        self,
        application_id: str,
        actor: ActorContext,
        previous: ApplicationStatus,
        new: ApplicationStatus
    ) -> AuditEvent:
        return self.write_event(
            application_id,
            AuditEventType.STATUS_CHANGED,
            actor=actor,
            details={"from": previous.value, "to": new.value}
        )
    
    def write_fields_updated(self, application_id: str, actor: ActorContext, fields: List[str]) -> AuditEvent:
        return self.write_event(
            application_id,
            AuditEventType.APPLICATION_UPDATED,
            actor=actor,
            details={"fields": sorted(fields)}
        )
    
    def write_note(self, application_id: str, actor: ActorContext, note: str) -> AuditEvent:
        return self.write_event(
            application_id,
            AuditEventType.NOTE_ADDED,
            actor=actor,
            details={"note": note[:200]}
        )
    
    def write_link_issued(
        self,
        application_id: str,
        actor: ActorContext,
        token: str,
        missing_fields: List[str],
        expires_at: datetime
    ) -> AuditEvent:
        return self.write_event(
            application_id,
            AuditEventType.COMPLETION_LINK_ISSUED,
            actor=actor,
            details={
                "token": mask_token(token),
                "missing_fields": missing_fields,
                "expires_at": expires_at.isoformat()
            }
        )
    
    def write_link_consumed(self, application_id: str, token: str, fields: List[str]) -> AuditEvent:
        return self.write_event(
            application_id,
            AuditEventType.COMPLETION_LINK_CONSUMED,
            details={"token": mask_token(token), "fields": fields}
        )
    
    def write_provisioned(
        self,
        application_id: str,
        actor: Optional[ActorContext],
        provider_id: str,
        provider_code: str
    ) -> AuditEvent:
        return self.write_event(
            application_id,
            AuditEventType.PROVIDER_PROVISIONED,
            actor=actor,
            details={"provider_id": provider_id, "provider_code": provider_code}
        )
    
    def write_provisioning_failed(
        self,
        application_id: str,
        actor: Optional[ActorContext],
        error: Dict[str, Any]
    ) -> AuditEvent:
        return self.write_event(
            application_id,
            AuditEventType.PROVISIONING_FAILED,
            actor=actor,
            details=error
        )
