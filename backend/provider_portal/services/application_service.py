"""Application Service - Submission and the admin status workflow

Status transitions are admin-driven and unconstrained in direction. Only the
edge into APPROVED (previous != approved, new == approved) provisions a
provider; re-writing APPROVED or editing fields of an approved application
does not.
"""
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from pymongo.database import Database

from ..domain.models import (
    ActorContext, Application, ApplicationNote, ApplicationSubmission,
    AuditEvent, StatusUpdateResult
)
from ..domain.enums import ApplicationStatus, EDITABLE_APPLICATION_FIELDS
from ..domain.errors import (
    ConcurrencyError, DomainError, InvalidStatusError, ValidationError
)
from ..repositories.application_repo import ApplicationRepository
from ..repositories.audit_repo import AuditRepository
from ..repositories.mongo_client import to_document
from ..utils.idgen import generate_application_id
from ..utils.time import utc_now
from ..utils.logger import get_logger
from .audit_writer import AuditWriter
from .document_service import DocumentGenerator
from .provisioning_service import ProviderProvisioner

logger = get_logger(__name__)

# Wizard fields promoted to top-level application columns when present
PROMOTED_FORM_FIELDS = ("npi_number", "dea_number", "practice_name")

MAX_UPDATE_ATTEMPTS = 3


def parse_status(value: Union[str, ApplicationStatus]) -> ApplicationStatus:
    """
    Parse a wire status value into the closed enum
    
    Raises:
        InvalidStatusError: value is not a known status
    """
    if isinstance(value, ApplicationStatus):
        return value
    try:
        return ApplicationStatus(str(value).strip().lower())
    except ValueError:
        raise InvalidStatusError(
            f"Invalid status: {value}",
            details={"status": value, "allowed": [s.value for s in ApplicationStatus]}
        )


def is_approval_edge(previous: ApplicationStatus, new: ApplicationStatus) -> bool:
    """True only for a transition into APPROVED"""
    return previous != ApplicationStatus.APPROVED and new == ApplicationStatus.APPROVED


class ApplicationService:
    """Service for application submission and review"""
    
    def __init__(
        self,
        db: Database,
        document_generator: Optional[DocumentGenerator] = None,
        provisioner: Optional[ProviderProvisioner] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.repo = ApplicationRepository(db)
        self.audit_repo = AuditRepository(db)
        self.audit_writer = AuditWriter(db, clock=clock)
        self.document_generator = document_generator or DocumentGenerator()
        self.provisioner = provisioner or ProviderProvisioner(db, clock=clock)
        self._clock = clock
    
    # =========================================================================
    # Submission
    # =========================================================================
    
    def submit_application(self, submission: ApplicationSubmission) -> Application:
        """
        Create a pending application from the final wizard submission
        
        Documents are rendered first; if that times out nothing is stored and
        the caller must resubmit.
        """
        documents = self.document_generator.generate(submission.model_dump(mode="json"))
        
        now = self._clock()
        form_values = dict(submission.form_values)
        promoted = {
            field: form_values.pop(field)
            for field in PROMOTED_FORM_FIELDS
            if form_values.get(field) not in (None, "")
        }
        
        application = Application(
            application_id=generate_application_id(),
            status=ApplicationStatus.PENDING,
            full_name=submission.full_name,
            email=submission.email,
            phone=submission.phone,
            address=submission.address,
            specialty=submission.specialty,
            license_type=submission.license_type,
            license_number=submission.license_number,
            license_state=submission.license_state,
            form_values=form_values,
            documents=documents,
            draft_id=submission.draft_id,
            created_at=now,
            updated_at=now,
            **promoted
        )
        self.repo.create(application)
        self.audit_writer.write_submitted(application.application_id, submission.draft_id, sorted(documents))
        return application
    
    # =========================================================================
    # Queries
    # =========================================================================
    
    def get_application(self, application_id: str) -> Application:
        return self.repo.get_or_raise(application_id)
    
    def list_applications(
        self,
        status: Optional[Union[str, ApplicationStatus]] = None,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[Application], int]:
        """Page of applications plus total count"""
        parsed = parse_status(status) if status else None
        return self.repo.list(parsed, skip=skip, limit=limit), self.repo.count(parsed)
    
    def get_activity(self, application_id: str, skip: int = 0, limit: int = 100) -> Tuple[List[AuditEvent], int]:
        """Activity log for an application, newest first"""
        self.repo.get_or_raise(application_id)
        events = self.audit_repo.get_events_for_application(application_id, skip=skip, limit=limit)
        total = self.audit_repo.count_events_for_application(application_id)
        return events, total
    
    # =========================================================================
    # Admin update (status machine)
    # =========================================================================
    
    def update_application(
        self,
        application_id: str,
        actor: ActorContext,
        status: Optional[Union[str, ApplicationStatus]] = None,
        fields: Optional[Dict[str, Any]] = None,
        note: Optional[str] = None
    ) -> StatusUpdateResult:
        """
        Apply an admin update and fire provisioning on the approval edge
        
        All input is validated before anything is written. The status write
        is conditioned on the status read, so of two racing approvals exactly
        one observes the edge; the other re-reads and sees approved->approved.
        
        Raises:
            ApplicationNotFoundError: no such application
            InvalidStatusError: unknown status value (record unchanged)
            ValidationError: non-editable field supplied
        """
        new_status = parse_status(status) if status is not None else None
        fields = dict(fields or {})
        
        not_editable = sorted(set(fields) - EDITABLE_APPLICATION_FIELDS)
        if not_editable:
            raise ValidationError(
                "Some fields cannot be edited",
                details={"fields": not_editable}
            )
        note = (note or "").strip() or None
        
        for attempt in range(1, MAX_UPDATE_ATTEMPTS + 1):
            current = self.repo.get_or_raise(application_id)
            previous_status = current.status
            target_status = new_status or previous_status
            
            updates: Dict[str, Any] = dict(fields)
            if new_status is not None:
                updates["status"] = new_status.value
            
            now = self._clock()
            push = None
            if note:
                push = {"notes": to_document(ApplicationNote(
                    content=note, created_by=actor.username, created_at=now
                ))}
            
            try:
                updated = self.repo.update(
                    application_id,
                    updates,
                    expected_status=previous_status,
                    push=push,
                    now=now
                )
                break
            except ConcurrencyError:
                logger.warning(
                    f"Status changed underneath update (attempt {attempt})",
                    extra={"application_id": application_id}
                )
                if attempt == MAX_UPDATE_ATTEMPTS:
                    raise
        
        self._record_update(application_id, actor, previous_status, target_status, fields, note)
        
        result = StatusUpdateResult(
            application=updated,
            previous_status=previous_status,
            entered_approved=is_approval_edge(previous_status, target_status)
        )
        
        if result.entered_approved:
            self._provision_on_approval(result, actor)
        
        return result
    
    def _record_update(
        self,
        application_id: str,
        actor: ActorContext,
        previous: ApplicationStatus,
        new: ApplicationStatus,
        fields: Dict[str, Any],
        note: Optional[str]
    ) -> None:
        if previous != new:
            self.audit_writer.write_status_change(application_id, actor, previous, new)
            logger.info(
                f"Application status {previous.value} -> {new.value}",
                extra={
                    "application_id": application_id,
                    "actor": actor.username,
                    "previous_status": previous.value,
                    "status": new.value
                }
            )
        if fields:
            self.audit_writer.write_fields_updated(application_id, actor, list(fields))
        if note:
            self.audit_writer.write_note(application_id, actor, note)
    
    def _provision_on_approval(self, result: StatusUpdateResult, actor: ActorContext) -> None:
        """
        Provision after the approval edge
        
        The status change is already committed; a provisioning failure is
        reported on the result and can be retried through the providers
        endpoint.
        """
        application_id = result.application.application_id
        try:
            result.provisioning = self.provisioner.provision(application_id, actor=actor)
        except DomainError as e:
            logger.error(
                f"Provisioning failed after approval: {e.message}",
                extra={"application_id": application_id, "error_code": e.error_code}
            )
            result.provisioning_error = e.to_dict()["error"]
            self.audit_writer.write_provisioning_failed(application_id, actor, result.provisioning_error)
            return
        
        if result.provisioning.provider.provider_code != result.application.provider_id:
            result.application = self.repo.get_or_raise(application_id)
