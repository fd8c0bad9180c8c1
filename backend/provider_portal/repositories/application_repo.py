"""Application Repository - Data access for provider applications"""
from typing import Any, Dict, List, Optional
from datetime import datetime
from pymongo import DESCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database

from .mongo_client import to_document, strip_id
from ..domain.models import Application, ApplicationNote
from ..domain.enums import ApplicationStatus
from ..domain.errors import ApplicationNotFoundError, ConcurrencyError
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class ApplicationRepository:
    """Repository for application operations"""
    
    def __init__(self, db: Database):
        self._applications: Collection = db["applications"]
        self._applications.create_index("application_id", unique=True)
    
    def create(self, application: Application) -> Application:
        """Insert a new application"""
        doc = to_document(application)
        doc["_id"] = application.application_id
        self._applications.insert_one(doc)
        logger.info(
            f"Created application: {application.application_id}",
            extra={"application_id": application.application_id}
        )
        return application
    
    def get(self, application_id: str) -> Optional[Application]:
        """Get application by ID"""
        doc = strip_id(self._applications.find_one({"application_id": application_id}))
        if doc:
            return Application.model_validate(doc)
        return None
    
    def get_or_raise(self, application_id: str) -> Application:
        """Get application by ID or raise error"""
        application = self.get(application_id)
        if not application:
            raise ApplicationNotFoundError(
                f"Application {application_id} not found",
                details={"application_id": application_id}
            )
        return application
    
    def list(
        self,
        status: Optional[ApplicationStatus] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[Application]:
        """List applications, newest first"""
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status.value
        
        cursor = self._applications.find(query).sort("created_at", DESCENDING).skip(skip).limit(limit)
        return [Application.model_validate(strip_id(doc)) for doc in cursor]
    
    def count(self, status: Optional[ApplicationStatus] = None) -> int:
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status.value
        return self._applications.count_documents(query)
    
    def update(
        self,
        application_id: str,
        updates: Dict[str, Any],
        expected_version: Optional[int] = None,
        expected_status: Optional[ApplicationStatus] = None,
        push: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None
    ) -> Application:
        """
        Update an application with compare-and-set guards
        
        expected_version and expected_status narrow the filter so a concurrent
        writer makes this call fail with ConcurrencyError instead of silently
        overwriting.
        """
        updates = dict(updates)
        updates["updated_at"] = now or utc_now()
        
        filter_query: Dict[str, Any] = {"application_id": application_id}
        if expected_version is not None:
            filter_query["version"] = expected_version
        if expected_status is not None:
            filter_query["status"] = expected_status.value
        
        operation: Dict[str, Any] = {"$set": updates, "$inc": {"version": 1}}
        if push:
            operation["$push"] = push
        
        result = self._applications.find_one_and_update(
            filter_query,
            operation,
            return_document=ReturnDocument.AFTER
        )
        
        if result is None:
            if self._applications.count_documents({"application_id": application_id}) > 0:
                raise ConcurrencyError(
                    f"Application {application_id} was modified. Please refresh and try again.",
                    details={
                        "expected_version": expected_version,
                        "expected_status": expected_status.value if expected_status else None
                    }
                )
            raise ApplicationNotFoundError(
                f"Application {application_id} not found",
                details={"application_id": application_id}
            )
        
        logger.info(f"Updated application: {application_id}", extra={"application_id": application_id})
        return Application.model_validate(strip_id(result))
    
    def add_note(self, application_id: str, note: ApplicationNote) -> Application:
        """Append an admin note"""
        return self.update(application_id, {}, push={"notes": to_document(note)}, now=note.created_at)
    
    def claim_completion_slot(
        self,
        application_id: str,
        expected_version: int,
        token: str,
        expires_at: datetime,
        now: Optional[datetime] = None
    ) -> Application:
        """Point the application at its new active completion link"""
        return self.update(
            application_id,
            {
                "active_completion_token": token,
                "active_completion_expires_at": expires_at,
            },
            expected_version=expected_version,
            now=now
        )
    
    def release_completion_slot(self, application_id: str, token: str) -> bool:
        """Clear the active link pointer if it still names this token"""
        result = self._applications.update_one(
            {"application_id": application_id, "active_completion_token": token},
            {
                "$set": {"active_completion_token": None, "active_completion_expires_at": None},
                "$inc": {"version": 1}
            }
        )
        return result.modified_count > 0
