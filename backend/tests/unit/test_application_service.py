"""Tests for submission and the admin status workflow"""
import time

import pytest

from provider_portal.domain.enums import ApplicationStatus, AuditEventType, ProvisionOutcome
from provider_portal.domain.errors import (
    ApplicationNotApprovedError, ApplicationNotFoundError, ConcurrencyError,
    DocumentGenerationError, DocumentGenerationTimeoutError, InvalidStatusError, ValidationError
)
from provider_portal.domain.models import ApplicationSubmission
from provider_portal.repositories.application_repo import ApplicationRepository
from provider_portal.repositories.audit_repo import AuditRepository
from provider_portal.repositories.provider_repo import ProviderRepository
from provider_portal.services.application_service import ApplicationService, is_approval_edge, parse_status
from provider_portal.services.document_service import DocumentGenerator
from provider_portal.services.provisioning_service import ProviderProvisioner


class CountingProvisioner(ProviderProvisioner):
    def __init__(self, db, clock):
        super().__init__(db, clock=clock)
        self.calls = []
    
    def provision(self, application_id, actor=None):
        self.calls.append(application_id)
        return super().provision(application_id, actor=actor)


class RejectingProvisioner:
    def provision(self, application_id, actor=None):
        raise ApplicationNotApprovedError("not yet", details={"application_id": application_id})


@pytest.fixture
def provisioner(mongo_db, clock):
    return CountingProvisioner(mongo_db, clock)


@pytest.fixture
def service(mongo_db, clock, provisioner):
    return ApplicationService(mongo_db, provisioner=provisioner, clock=clock)


def submission(**overrides):
    values = {
        "first_name": "Jane",
        "last_name": "Doe",
        "email": "jane.doe@rushcare.org",
        "phone": "313-555-0100",
        "license_type": "Nurse Practitioner",
        "draft_id": "app_1772443800000_k2j4h5g6f",
        "form_values": {"npi_number": "1234567893", "years_experience": 7},
    }
    values.update(overrides)
    return ApplicationSubmission(**values)


# =============================================================================
# Status parsing and edge detection
# =============================================================================

def test_parse_status():
    assert parse_status("approved") == ApplicationStatus.APPROVED
    assert parse_status(" Under_Review ") == ApplicationStatus.UNDER_REVIEW
    with pytest.raises(InvalidStatusError):
        parse_status("archived")


@pytest.mark.parametrize("previous, new, expected", [
    (ApplicationStatus.PENDING, ApplicationStatus.APPROVED, True),
    (ApplicationStatus.UNDER_REVIEW, ApplicationStatus.APPROVED, True),
    (ApplicationStatus.REJECTED, ApplicationStatus.APPROVED, True),
    (ApplicationStatus.APPROVED, ApplicationStatus.APPROVED, False),
    (ApplicationStatus.APPROVED, ApplicationStatus.PENDING, False),
    (ApplicationStatus.PENDING, ApplicationStatus.UNDER_REVIEW, False),
])
def test_is_approval_edge(previous, new, expected):
    assert is_approval_edge(previous, new) is expected


# =============================================================================
# Status updates
# =============================================================================

def test_entering_approved_provisions(service, provisioner, make_application, admin):
    application = make_application()
    
    result = service.update_application(application.application_id, admin, status="approved")
    
    assert result.previous_status == ApplicationStatus.PENDING
    assert result.entered_approved is True
    assert result.provisioning.outcome == ProvisionOutcome.CREATED
    assert result.application.status == ApplicationStatus.APPROVED
    assert result.application.provider_id == result.provisioning.provider.provider_code
    assert provisioner.calls == [application.application_id]


def test_rewriting_approved_does_not_provision_again(service, provisioner, make_application, admin):
    application = make_application()
    service.update_application(application.application_id, admin, status="approved")
    
    result = service.update_application(application.application_id, admin, status="approved")
    
    assert result.entered_approved is False
    assert result.provisioning is None
    assert len(provisioner.calls) == 1


def test_field_edit_on_approved_application_does_not_provision(service, provisioner, make_application, admin):
    application = make_application(ApplicationStatus.APPROVED)
    
    result = service.update_application(application.application_id, admin, fields={"phone": "313-555-0142"})
    
    assert result.application.phone == "313-555-0142"
    assert result.entered_approved is False
    assert provisioner.calls == []


def test_reopen_and_reapprove_reuses_provider(service, provisioner, make_application, admin, mongo_db):
    application = make_application()
    first = service.update_application(application.application_id, admin, status="approved")
    service.update_application(application.application_id, admin, status="under_review")
    
    second = service.update_application(application.application_id, admin, status="approved")
    
    assert second.entered_approved is True
    assert second.provisioning.outcome == ProvisionOutcome.ALREADY_EXISTS
    assert second.provisioning.provider.provider_id == first.provisioning.provider.provider_id
    assert len(provisioner.calls) == 2
    assert ProviderRepository(mongo_db).count_for_application(application.application_id) == 1


def test_invalid_status_leaves_record_unchanged(service, make_application, admin, mongo_db):
    application = make_application()
    
    with pytest.raises(InvalidStatusError):
        service.update_application(application.application_id, admin, status="archived", note="should not stick")
    
    stored = ApplicationRepository(mongo_db).get(application.application_id)
    assert stored.status == ApplicationStatus.PENDING
    assert stored.version == application.version
    assert stored.notes == []


def test_unknown_application(service, admin):
    with pytest.raises(ApplicationNotFoundError):
        service.update_application("APP-missing", admin, status="approved")


def test_non_editable_field_rejected(service, make_application, admin):
    application = make_application()
    with pytest.raises(ValidationError):
        service.update_application(application.application_id, admin, fields={"status": "approved"})


def test_note_is_appended(service, make_application, admin, clock):
    application = make_application()
    
    result = service.update_application(
        application.application_id, admin, status="under_review", note="  Waiting on BLS card  "
    )
    
    assert len(result.application.notes) == 1
    note = result.application.notes[0]
    assert note.content == "Waiting on BLS card"
    assert note.created_by == "mreyes"
    assert note.created_at == clock()


def test_provisioning_failure_is_reported_not_raised(mongo_db, clock, make_application, admin):
    service = ApplicationService(mongo_db, provisioner=RejectingProvisioner(), clock=clock)
    application = make_application()
    
    result = service.update_application(application.application_id, admin, status="approved")
    
    assert result.application.status == ApplicationStatus.APPROVED
    assert result.provisioning is None
    assert result.provisioning_error["code"] == "APPLICATION_NOT_APPROVED"
    failures = AuditRepository(mongo_db).count_events_for_application(
        application.application_id, AuditEventType.PROVISIONING_FAILED
    )
    assert failures == 1


def test_status_changes_are_audited(service, make_application, admin):
    application = make_application()
    service.update_application(application.application_id, admin, status="under_review")
    service.update_application(application.application_id, admin, status="under_review")
    
    events, total = service.get_activity(application.application_id)
    status_events = [e for e in events if e.event_type == AuditEventType.STATUS_CHANGED]
    assert len(status_events) == 1
    assert status_events[0].details == {"from": "pending", "to": "under_review"}


def test_status_compare_and_set(make_application, mongo_db):
    application = make_application()
    repo = ApplicationRepository(mongo_db)
    repo.update(application.application_id, {"status": "approved"}, expected_status=ApplicationStatus.PENDING)
    
    with pytest.raises(ConcurrencyError):
        repo.update(application.application_id, {"status": "approved"}, expected_status=ApplicationStatus.PENDING)


def test_concurrent_approval_fires_once(service, provisioner, make_application, admin, mongo_db, monkeypatch):
    application = make_application()
    stale = service.repo.get_or_raise(application.application_id)
    
    # Another admin approves between this request's read and its write
    service.update_application(application.application_id, admin, status="approved")
    reads = iter([stale])
    real_get = service.repo.get_or_raise
    monkeypatch.setattr(
        service.repo, "get_or_raise",
        lambda application_id: next(reads, None) or real_get(application_id)
    )
    
    result = service.update_application(application.application_id, admin, status="approved")
    
    assert result.previous_status == ApplicationStatus.APPROVED
    assert result.entered_approved is False
    assert len(provisioner.calls) == 1


def test_list_applications(service, make_application):
    make_application()
    make_application(ApplicationStatus.APPROVED)
    
    items, total = service.list_applications()
    assert total == 2
    approved, approved_total = service.list_applications("approved")
    assert approved_total == 1
    assert approved[0].status == ApplicationStatus.APPROVED


# =============================================================================
# Submission
# =============================================================================

def test_submit_creates_pending_application(mongo_db, clock):
    generator = DocumentGenerator(renderer=lambda payload: {"application_pdf": f"docs/{payload['last_name']}.pdf"})
    service = ApplicationService(mongo_db, document_generator=generator, clock=clock)
    
    application = service.submit_application(submission())
    
    assert application.status == ApplicationStatus.PENDING
    assert application.full_name == "Jane Doe"
    assert application.npi_number == "1234567893"
    assert application.form_values == {"years_experience": 7}
    assert application.documents == {"application_pdf": "docs/Doe.pdf"}
    assert application.draft_id == "app_1772443800000_k2j4h5g6f"
    
    events, _ = service.get_activity(application.application_id)
    assert [e.event_type for e in events] == [AuditEventType.APPLICATION_SUBMITTED]


def test_submit_times_out_without_storing(mongo_db, clock):
    def slow_renderer(payload):
        time.sleep(0.5)
        return {"application_pdf": "late.pdf"}
    
    service = ApplicationService(
        mongo_db, document_generator=DocumentGenerator(slow_renderer, timeout_seconds=0.05), clock=clock
    )
    
    with pytest.raises(DocumentGenerationTimeoutError):
        service.submit_application(submission())
    assert mongo_db["applications"].count_documents({}) == 0


def test_submit_renderer_failure(mongo_db, clock):
    def broken_renderer(payload):
        raise ValueError("template missing")
    
    service = ApplicationService(mongo_db, document_generator=DocumentGenerator(broken_renderer), clock=clock)
    with pytest.raises(DocumentGenerationError):
        service.submit_application(submission())
