"""Provisioning Service - Idempotent provider creation from approved applications"""
from datetime import datetime
from typing import Callable, Optional

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from ..domain.models import ActorContext, Application, Provider, ProvisionResult
from ..domain.enums import ApplicationStatus, ProviderStatus, ProvisionOutcome
from ..domain.errors import ApplicationNotApprovedError, ConflictError
from ..repositories.application_repo import ApplicationRepository
from ..repositories.provider_repo import ProviderRepository
from ..config.settings import settings
from ..utils.idgen import generate_provider_id, generate_provider_code
from ..utils.time import utc_now
from ..utils.logger import get_logger
from .audit_writer import AuditWriter

logger = get_logger(__name__)

MAX_CODE_ATTEMPTS = 25


class ProviderProvisioner:
    """
    Create a Provider from an approved Application
    
    Safe to call any number of times for the same application: the unique
    index on providers.application_id guarantees a single row, and a lost
    race is reported as ALREADY_EXISTS with the winner's record.
    """
    
    def __init__(self, db: Database, clock: Callable[[], datetime] = utc_now):
        self.app_repo = ApplicationRepository(db)
        self.provider_repo = ProviderRepository(db)
        self.audit_writer = AuditWriter(db, clock=clock)
        self._clock = clock
    
    def provision(self, application_id: str, actor: Optional[ActorContext] = None) -> ProvisionResult:
        """
        Provision the provider account for an application
        
        Raises:
            ApplicationNotFoundError: no such application
            ApplicationNotApprovedError: application is not approved
        """
        application = self.app_repo.get_or_raise(application_id)
        
        existing = self.provider_repo.get_by_application(application_id)
        if existing:
            logger.info(
                f"Provider already exists for application {application_id}",
                extra={"application_id": application_id, "provider_code": existing.provider_code}
            )
            return ProvisionResult(outcome=ProvisionOutcome.ALREADY_EXISTS, provider=existing)
        
        if application.status != ApplicationStatus.APPROVED:
            raise ApplicationNotApprovedError(
                "Application must be approved before provisioning",
                details={"application_id": application_id, "status": application.status.value}
            )
        
        now = self._clock()
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_provider_code(settings.provider_code_prefix, now.year)
            if self.provider_repo.code_exists(code):
                continue
            provider = self._build_provider(application, code, now)
            try:
                self.provider_repo.create(provider)
            except DuplicateKeyError:
                winner = self.provider_repo.get_by_application(application_id)
                if winner:
                    logger.info(
                        f"Concurrent provisioning resolved for {application_id}",
                        extra={"application_id": application_id, "provider_code": winner.provider_code}
                    )
                    return ProvisionResult(outcome=ProvisionOutcome.ALREADY_EXISTS, provider=winner)
                # Provider code collided with another application's; draw again
                continue
            
            self.app_repo.update(application_id, {"provider_id": provider.provider_code}, now=now)
            self.audit_writer.write_provisioned(
                application_id, actor, provider.provider_id, provider.provider_code
            )
            logger.info(
                f"Provisioned provider {provider.provider_code}",
                extra={
                    "application_id": application_id,
                    "provider_id": provider.provider_id,
                    "provider_code": provider.provider_code
                }
            )
            return ProvisionResult(outcome=ProvisionOutcome.CREATED, provider=provider)
        
        raise ConflictError(
            "Could not allocate a unique provider code",
            details={"application_id": application_id, "attempts": MAX_CODE_ATTEMPTS}
        )
    
    @staticmethod
    def _build_provider(application: Application, provider_code: str, now: datetime) -> Provider:
        return Provider(
            provider_id=generate_provider_id(),
            provider_code=provider_code,
            application_id=application.application_id,
            full_name=application.full_name,
            email=application.email,
            phone=application.phone,
            specialty=application.license_type or application.specialty,
            license_number=application.license_number,
            license_type=application.license_type,
            license_state=application.license_state or settings.default_license_state,
            practice_name=application.practice_name,
            practice_address=application.address,
            practice_phone=application.phone,
            practice_email=application.email,
            npi_number=application.npi_number,
            dea_number=application.dea_number,
            status=ProviderStatus.ACTIVE,
            approved_date=now,
            created_at=now,
            updated_at=now
        )
