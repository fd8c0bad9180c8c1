"""Tests for idempotent provider provisioning"""
import re

import pytest
from pymongo.errors import DuplicateKeyError

from provider_portal.domain.enums import ApplicationStatus, AuditEventType, ProviderStatus, ProvisionOutcome
from provider_portal.domain.errors import ApplicationNotApprovedError, ApplicationNotFoundError
from provider_portal.repositories.application_repo import ApplicationRepository
from provider_portal.repositories.audit_repo import AuditRepository
from provider_portal.repositories.provider_repo import ProviderRepository
from provider_portal.services.provisioning_service import ProviderProvisioner


@pytest.fixture
def provisioner(mongo_db, clock):
    return ProviderProvisioner(mongo_db, clock=clock)


def test_second_call_reports_already_exists(provisioner, make_application, mongo_db):
    application = make_application(ApplicationStatus.APPROVED)
    
    first = provisioner.provision(application.application_id)
    second = provisioner.provision(application.application_id)
    
    assert first.outcome == ProvisionOutcome.CREATED
    assert second.outcome == ProvisionOutcome.ALREADY_EXISTS
    assert second.provider.provider_id == first.provider.provider_id
    assert ProviderRepository(mongo_db).count_for_application(application.application_id) == 1


def test_provider_fields_mapped_from_application(provisioner, make_application, mongo_db, clock):
    application = make_application(
        ApplicationStatus.APPROVED,
        license_number="NP-448812",
        npi_number="1234567893",
    )
    
    provider = provisioner.provision(application.application_id).provider
    
    assert re.fullmatch(r"RUSH-2026-\d{4}", provider.provider_code)
    assert provider.full_name == "Jane Doe"
    assert provider.email == "jane.doe@rushcare.org"
    assert provider.specialty == "Nurse Practitioner"
    assert provider.license_number == "NP-448812"
    assert provider.license_state == "MI"
    assert provider.practice_address == "12 Elm St, Detroit, MI"
    assert provider.practice_phone == "313-555-0100"
    assert provider.npi_number == "1234567893"
    assert provider.status == ProviderStatus.ACTIVE
    assert provider.approved_date == clock()
    
    stored_application = ApplicationRepository(mongo_db).get(application.application_id)
    assert stored_application.provider_id == provider.provider_code


def test_response_shape(provisioner, make_application):
    application = make_application(ApplicationStatus.APPROVED)
    created = provisioner.provision(application.application_id).to_response()
    repeated = provisioner.provision(application.application_id).to_response()
    
    assert created["success"] is True
    assert created["already_exists"] is False
    assert repeated["already_exists"] is True
    assert repeated["provider_id"] == created["provider_id"]
    assert repeated["provider_code"] == created["provider_code"]


@pytest.mark.parametrize("status", [
    ApplicationStatus.PENDING, ApplicationStatus.UNDER_REVIEW, ApplicationStatus.REJECTED
])
def test_not_approved_rejected(provisioner, make_application, mongo_db, status):
    application = make_application(status)
    with pytest.raises(ApplicationNotApprovedError):
        provisioner.provision(application.application_id)
    assert ProviderRepository(mongo_db).count_for_application(application.application_id) == 0


def test_unknown_application(provisioner):
    with pytest.raises(ApplicationNotFoundError):
        provisioner.provision("APP-missing")


def test_lost_race_resolves_to_existing_provider(mongo_db, clock, make_application, monkeypatch):
    application = make_application(ApplicationStatus.APPROVED)
    winner = ProviderProvisioner(mongo_db, clock=clock).provision(application.application_id).provider
    
    # The loser checked for a provider before the winner's insert landed
    loser = ProviderProvisioner(mongo_db, clock=clock)
    real_lookup = loser.provider_repo.get_by_application
    calls = []
    
    def racing_lookup(application_id):
        calls.append(application_id)
        return None if len(calls) == 1 else real_lookup(application_id)
    
    monkeypatch.setattr(loser.provider_repo, "get_by_application", racing_lookup)
    
    result = loser.provision(application.application_id)
    
    assert result.outcome == ProvisionOutcome.ALREADY_EXISTS
    assert result.provider.provider_id == winner.provider_id
    assert ProviderRepository(mongo_db).count_for_application(application.application_id) == 1


def test_unique_index_blocks_second_provider(mongo_db, clock, make_application):
    application = make_application(ApplicationStatus.APPROVED)
    provider = ProviderProvisioner(mongo_db, clock=clock).provision(application.application_id).provider
    
    duplicate = provider.model_copy(update={"provider_id": "PRV-other", "provider_code": "RUSH-2026-0000"})
    with pytest.raises(DuplicateKeyError):
        ProviderRepository(mongo_db).create(duplicate)


def test_provisioning_is_audited(provisioner, make_application, mongo_db, admin):
    application = make_application(ApplicationStatus.APPROVED)
    provisioner.provision(application.application_id, actor=admin)
    
    events = AuditRepository(mongo_db).get_events_for_application(
        application.application_id, event_types=[AuditEventType.PROVIDER_PROVISIONED]
    )
    assert len(events) == 1
    assert events[0].actor == "mreyes"
