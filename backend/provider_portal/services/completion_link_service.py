"""Completion Link Service - Single-use, time-limited links for missing fields

At most one link per application is active (unused and unexpired) at a time.
The application row carries a pointer to its active token, and issuing a new
link swings that pointer with a version-checked write, so two concurrent
issues cannot both succeed.
"""
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from email_validator import EmailNotValidError, validate_email
from pymongo.database import Database

from ..domain.models import ActorContext, Application, CompletionLink, CompletionLinkValidation
from ..domain.enums import COMPLETABLE_FIELDS
from ..domain.errors import (
    ActiveLinkExistsError, CompletionTokenExpiredError, CompletionTokenNotFoundError,
    CompletionTokenUsedError, ConcurrencyError, DomainError, IncompleteSubmissionError,
    InvalidFieldSetError, ValidationError
)
from ..repositories.application_repo import ApplicationRepository
from ..repositories.completion_link_repo import CompletionLinkRepository
from ..repositories.provider_repo import ProviderRepository
from ..config.settings import settings
from ..utils.idgen import generate_completion_token
from ..utils.time import has_expired, utc_now
from ..utils.logger import get_logger, mask_token
from .audit_writer import AuditWriter
from .notification_service import NotificationService

logger = get_logger(__name__)

# Completable fields stored as application columns; the rest go to form_values
APPLICATION_COLUMNS = frozenset({
    "full_name", "phone", "address", "specialty", "license_type", "license_number",
    "license_state", "npi_number", "dea_number", "practice_name",
})

# Completable fields mirrored onto an already provisioned provider
PROVIDER_COLUMNS = frozenset({
    "full_name", "phone", "specialty", "license_type", "license_number", "license_state",
    "npi_number", "dea_number", "practice_name", "practice_address", "practice_phone",
    "practice_email",
})

MAX_CLAIM_ATTEMPTS = 3


def is_blank(value: Any) -> bool:
    """A submitted value that does not count as supplied"""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict, tuple, set)):
        return len(value) == 0
    return False


def normalize_fields(fields: Iterable[str]) -> List[str]:
    """Strip and de-duplicate field identifiers, keeping first-seen order"""
    seen: List[str] = []
    for field in fields:
        name = (field or "").strip()
        if name and name not in seen:
            seen.append(name)
    return seen


class CompletionLinkService:
    """Service for issuing, validating and consuming completion links"""
    
    def __init__(
        self,
        db: Database,
        notifier: Optional[NotificationService] = None,
        clock: Callable[[], datetime] = utc_now,
        ttl_hours: Optional[int] = None
    ):
        self.link_repo = CompletionLinkRepository(db)
        self.app_repo = ApplicationRepository(db)
        self.provider_repo = ProviderRepository(db)
        self.audit_writer = AuditWriter(db, clock=clock)
        self.notifier = notifier or NotificationService(db, clock=clock)
        self._clock = clock
        self.ttl = timedelta(hours=ttl_hours if ttl_hours is not None else settings.completion_link_ttl_hours)
    
    # =========================================================================
    # Issue
    # =========================================================================
    
    def issue(
        self,
        application_id: str,
        provider_id: str,
        provider_email: str,
        missing_fields: Iterable[str],
        actor: ActorContext
    ) -> CompletionLink:
        """
        Issue a completion link and queue the provider email
        
        Raises:
            InvalidFieldSetError: no fields, or fields that cannot be completed
            ValidationError: malformed provider email
            ApplicationNotFoundError: no such application
            ActiveLinkExistsError: an unused, unexpired link already exists
        """
        fields = normalize_fields(missing_fields)
        if not fields:
            raise InvalidFieldSetError(
                "At least one missing field is required",
                details={"missing_fields": []}
            )
        unknown = [f for f in fields if f not in COMPLETABLE_FIELDS]
        if unknown:
            raise InvalidFieldSetError(
                "Some fields cannot be requested through a completion link",
                details={"fields": unknown}
            )
        
        try:
            provider_email = validate_email(provider_email, check_deliverability=False).normalized
        except EmailNotValidError as e:
            raise ValidationError(
                "Invalid provider email",
                details={"provider_email": provider_email, "reason": str(e)}
            )
        
        application = self.app_repo.get_or_raise(application_id)
        now = self._clock()
        self._ensure_no_active_link(application, now)
        
        link = CompletionLink(
            token=generate_completion_token(settings.completion_token_bytes),
            provider_id=provider_id,
            application_id=application_id,
            provider_email=provider_email,
            missing_fields=fields,
            issued_by=actor,
            issued_at=now,
            expires_at=now + self.ttl
        )
        
        for attempt in range(1, MAX_CLAIM_ATTEMPTS + 1):
            try:
                self.app_repo.claim_completion_slot(
                    application_id, application.version, link.token, link.expires_at, now=now
                )
                break
            except ConcurrencyError:
                # Only a competing link blocks issuance; other edits just need a fresh version
                application = self.app_repo.get_or_raise(application_id)
                self._ensure_no_active_link(application, now)
                if attempt == MAX_CLAIM_ATTEMPTS:
                    raise
                logger.info(
                    f"Application changed during link issue, retrying (attempt {attempt})",
                    extra={"application_id": application_id}
                )
        
        try:
            self.link_repo.create(link)
        except Exception:
            self.app_repo.release_completion_slot(application_id, link.token)
            raise
        
        self.audit_writer.write_link_issued(application_id, actor, link.token, fields, link.expires_at)
        logger.info(
            "Issued completion link",
            extra={
                "application_id": application_id,
                "token_id": mask_token(link.token),
                "actor": actor.username
            }
        )
        
        # Email hand-off never rolls back the link
        try:
            self.notifier.queue_completion_link_email(link, application, actor)
        except DomainError as e:
            logger.warning(
                f"Completion email not queued: {e.message}",
                extra={"application_id": application_id, "error_code": e.error_code}
            )
        
        return link
    
    def _ensure_no_active_link(self, application: Application, now: datetime) -> None:
        token = application.active_completion_token
        if not token or has_expired(application.active_completion_expires_at, now):
            return
        existing = self.link_repo.get(token)
        # A claimed pointer without its link yet is an issue still in flight
        if existing is None or existing.is_active(now):
            raise ActiveLinkExistsError(
                "An active completion link already exists for this application",
                details={
                    "application_id": application.application_id,
                    "expires_at": application.active_completion_expires_at.isoformat()
                }
            )
    
    # =========================================================================
    # Validate / consume
    # =========================================================================
    
    def validate(self, token: str) -> CompletionLinkValidation:
        """
        Check a token and return its link and application
        
        Raises:
            CompletionTokenNotFoundError, CompletionTokenUsedError,
            CompletionTokenExpiredError
        """
        link = self.link_repo.get(token) if token else None
        if link is None:
            raise CompletionTokenNotFoundError("Invalid or unknown completion link")
        if link.used_at is not None:
            raise CompletionTokenUsedError(
                "This completion link has already been used",
                details={"used_at": link.used_at.isoformat()}
            )
        if has_expired(link.expires_at, self._clock()):
            raise CompletionTokenExpiredError(
                "This completion link has expired. Please request a new one.",
                details={"expired_at": link.expires_at.isoformat()}
            )
        
        application = self.app_repo.get_or_raise(link.application_id)
        return CompletionLinkValidation(valid=True, link=link, application=application)
    
    def consume(self, token: str, submitted: Dict[str, Any]) -> Application:
        """
        Accept the provider's values for every requested field
        
        All-or-nothing: a partial submission is rejected and the link stays
        usable. used_at is claimed atomically before the values are written
        and released again if that write fails.
        
        Raises:
            token errors from validate()
            InvalidFieldSetError: values for fields that were not requested
            IncompleteSubmissionError: some requested field missing or blank
        """
        link = self.validate(token).link
        submitted = dict(submitted or {})
        
        unexpected = sorted(set(submitted) - set(link.missing_fields))
        if unexpected:
            raise InvalidFieldSetError(
                "Submission contains fields that were not requested",
                details={"fields": unexpected}
            )
        
        missing = [f for f in link.missing_fields if is_blank(submitted.get(f))]
        if missing:
            raise IncompleteSubmissionError(
                "All requested fields must be provided",
                details={"missing_fields": missing}
            )
        
        now = self._clock()
        if self.link_repo.mark_used(token, now, list(link.missing_fields)) is None:
            raise CompletionTokenUsedError("This completion link has already been used")
        
        try:
            application = self._apply_values(link, submitted, now)
        except Exception:
            self.link_repo.unmark_used(token)
            logger.error(
                "Rolled back completion link after failed write",
                extra={"application_id": link.application_id, "token_id": mask_token(token)}
            )
            raise
        
        self.audit_writer.write_link_consumed(link.application_id, token, list(link.missing_fields))
        logger.info(
            "Completion link consumed",
            extra={"application_id": link.application_id, "token_id": mask_token(token)}
        )
        return application
    
    def _apply_values(self, link: CompletionLink, values: Dict[str, Any], now: datetime) -> Application:
        updates: Dict[str, Any] = {}
        for field in link.missing_fields:
            value = values[field]
            if field in APPLICATION_COLUMNS:
                updates[field] = value
            else:
                updates[f"form_values.{field}"] = value
        
        self.app_repo.update(link.application_id, updates, now=now)
        self.app_repo.release_completion_slot(link.application_id, link.token)
        
        provider = self.provider_repo.get_by_application(link.application_id)
        if provider:
            mirrored = {f: values[f] for f in link.missing_fields if f in PROVIDER_COLUMNS}
            if mirrored:
                self.provider_repo.update_fields(provider.provider_id, mirrored)
        
        return self.app_repo.get_or_raise(link.application_id)
    
    # =========================================================================
    # Listing / maintenance
    # =========================================================================
    
    def list_for_application(self, application_id: str) -> List[Dict[str, Any]]:
        """Links for an application with their computed state"""
        now = self._clock()
        return [link.to_public_dict(now) for link in self.link_repo.list_for_application(application_id)]
    
    def purge_expired(self) -> int:
        """Delete unused links whose expiry has passed"""
        return self.link_repo.purge_expired(self._clock())
