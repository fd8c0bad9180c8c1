"""Audit Repository - Data access for application activity events"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo import DESCENDING

from .mongo_client import to_document, strip_id
from ..domain.models import AuditEvent
from ..domain.enums import AuditEventType
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AuditRepository:
    """Repository for audit event operations (append-only)"""
    
    def __init__(self, db: Database):
        self._audit_events: Collection = db["audit_events"]
    
    def create_event(self, event: AuditEvent) -> AuditEvent:
        """Create an audit event (append-only)"""
        doc = to_document(event)
        doc["_id"] = event.audit_event_id
        
        self._audit_events.insert_one(doc)
        logger.info(
            f"Created audit event: {event.event_type.value}",
            extra={
                "application_id": event.application_id,
                "actor": event.actor,
                "action": event.event_type.value
            }
        )
        return event
    
    def get_events_for_application(
        self,
        application_id: str,
        event_types: Optional[List[AuditEventType]] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[AuditEvent]:
        """Get audit events for an application, newest first"""
        query: Dict[str, Any] = {"application_id": application_id}
        
        if event_types:
            query["event_type"] = {"$in": [et.value for et in event_types]}
        
        cursor = self._audit_events.find(query).sort("timestamp", DESCENDING).skip(skip).limit(limit)
        return [AuditEvent.model_validate(strip_id(doc)) for doc in cursor]
    
    def count_events_for_application(
        self,
        application_id: str,
        event_type: Optional[AuditEventType] = None
    ) -> int:
        """Count audit events for an application"""
        query: Dict[str, Any] = {"application_id": application_id}
        if event_type:
            query["event_type"] = event_type.value
        return self._audit_events.count_documents(query)
