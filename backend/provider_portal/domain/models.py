"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional
from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from .enums import (
    ApplicationStatus, ProviderStatus, CompletionLinkState, AdminRole,
    NotificationStatus, NotificationTemplateKey, AuditEventType, ProvisionOutcome
)
from ..utils.time import ensure_utc, has_expired


# Mongo returns naive datetimes; normalise everything to aware UTC
UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


# ============================================================================
# Identity
# ============================================================================

class ActorContext(BaseModel):
    """Admin identity forwarded by the auth gateway"""
    model_config = ConfigDict(extra="forbid")
    
    admin_id: str = Field(..., description="Admin user ID")
    username: str = Field(..., description="Admin username")
    role: AdminRole = Field(..., description="Admin role")
    
    @property
    def label(self) -> str:
        """Human readable 'username (role)' used in emails and logs"""
        return f"{self.username} ({self.role.value})"


# ============================================================================
# Application
# ============================================================================

class ApplicationNote(BaseModel):
    """Admin note attached to an application"""
    content: str
    created_by: str
    created_at: UtcDatetime


class Application(BaseModel):
    """Server-held provider application"""
    model_config = ConfigDict(extra="ignore")
    
    application_id: str = Field(..., description="Unique application ID")
    status: ApplicationStatus = Field(default=ApplicationStatus.PENDING)
    provider_id: Optional[str] = Field(None, description="Provider code once provisioned")
    
    full_name: str = ""
    email: str = ""
    phone: Optional[str] = None
    address: Optional[str] = None
    specialty: Optional[str] = None
    license_type: Optional[str] = None
    license_number: Optional[str] = None
    license_state: Optional[str] = None
    npi_number: Optional[str] = None
    dea_number: Optional[str] = None
    practice_name: Optional[str] = None
    
    form_values: Dict[str, Any] = Field(default_factory=dict, description="Remaining wizard fields")
    documents: Dict[str, str] = Field(default_factory=dict, description="Generated document references")
    notes: List[ApplicationNote] = Field(default_factory=list)
    draft_id: Optional[str] = Field(None, description="Browser draft the submission came from")
    
    # Pointer to the single active completion link
    active_completion_token: Optional[str] = None
    active_completion_expires_at: Optional[UtcDatetime] = None
    
    version: int = Field(default=1, description="Optimistic concurrency version")
    created_at: UtcDatetime
    updated_at: UtcDatetime


class ApplicationSubmission(BaseModel):
    """Final form submission from the wizard"""
    model_config = ConfigDict(extra="ignore")
    
    first_name: str = Field(..., min_length=1)
    last_name: str = ""
    email: str = Field(..., min_length=3)
    phone: Optional[str] = None
    address: Optional[str] = None
    specialty: Optional[str] = None
    license_type: Optional[str] = None
    license_number: Optional[str] = None
    license_state: Optional[str] = None
    draft_id: Optional[str] = None
    form_values: Dict[str, Any] = Field(default_factory=dict)
    
    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


# ============================================================================
# Provider
# ============================================================================

class Provider(BaseModel):
    """Provider account created from an approved application"""
    model_config = ConfigDict(extra="ignore")
    
    provider_id: str = Field(..., description="Internal provider record ID")
    provider_code: str = Field(..., description="Public code, e.g. RUSH-2026-0042")
    application_id: str
    full_name: str
    email: str
    phone: Optional[str] = None
    specialty: Optional[str] = None
    license_number: Optional[str] = None
    license_type: Optional[str] = None
    license_state: Optional[str] = None
    practice_name: Optional[str] = None
    practice_address: Optional[str] = None
    practice_phone: Optional[str] = None
    practice_email: Optional[str] = None
    npi_number: Optional[str] = None
    dea_number: Optional[str] = None
    status: ProviderStatus = ProviderStatus.ACTIVE
    approved_date: UtcDatetime
    created_at: UtcDatetime
    updated_at: UtcDatetime


class ProvisionResult(BaseModel):
    """Outcome of ProviderProvisioner.provision"""
    outcome: ProvisionOutcome
    provider: Provider
    
    @property
    def already_exists(self) -> bool:
        return self.outcome == ProvisionOutcome.ALREADY_EXISTS
    
    def to_response(self) -> Dict[str, Any]:
        """Wire shape of the provisioning endpoint"""
        return {
            "success": True,
            "already_exists": self.already_exists,
            "message": "Provider already exists" if self.already_exists else "Provider created successfully",
            "provider_id": self.provider.provider_id,
            "provider_code": self.provider.provider_code,
        }


class StatusUpdateResult(BaseModel):
    """Outcome of an application update"""
    application: Application
    previous_status: ApplicationStatus
    entered_approved: bool = False
    provisioning: Optional[ProvisionResult] = None
    provisioning_error: Optional[Dict[str, Any]] = None


# ============================================================================
# Completion Links
# ============================================================================

class CompletionLink(BaseModel):
    """Single-use, time-limited token for supplying missing fields"""
    model_config = ConfigDict(extra="ignore")
    
    token: str
    provider_id: str
    application_id: str
    provider_email: str
    missing_fields: List[str] = Field(..., min_length=1)
    issued_by: ActorContext
    issued_at: UtcDatetime
    expires_at: UtcDatetime
    used_at: Optional[UtcDatetime] = None
    submitted_fields: List[str] = Field(default_factory=list)
    
    def state(self, now: datetime) -> CompletionLinkState:
        """Expiry is computed from the clock, never stored"""
        if self.used_at is not None:
            return CompletionLinkState.USED
        if has_expired(self.expires_at, now):
            return CompletionLinkState.EXPIRED
        return CompletionLinkState.ACTIVE
    
    def is_active(self, now: datetime) -> bool:
        return self.state(now) == CompletionLinkState.ACTIVE
    
    def to_public_dict(self, now: datetime) -> Dict[str, Any]:
        """Serialized link with the computed state attached"""
        data = self.model_dump(mode="json")
        data["state"] = self.state(now).value
        return data


class CompletionLinkValidation(BaseModel):
    """Result of validating a completion token"""
    valid: bool = True
    link: CompletionLink
    application: Application


# ============================================================================
# Audit & Notifications
# ============================================================================

class AuditEvent(BaseModel):
    """Activity log entry (append-only)"""
    audit_event_id: str
    application_id: str
    event_type: AuditEventType
    actor: Optional[str] = Field(None, description="Admin username, or None for provider/system actions")
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: UtcDatetime
    correlation_id: Optional[str] = None


class NotificationOutbox(BaseModel):
    """Email queued for the external mail collaborator"""
    notification_id: str
    template_key: NotificationTemplateKey
    recipient_email: str
    subject: str
    body_html: str
    application_id: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    status: NotificationStatus = NotificationStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    created_at: UtcDatetime
    sent_at: Optional[UtcDatetime] = None


# ============================================================================
# Local Drafts
# ============================================================================

class SavedApplicationDraft(BaseModel):
    """Envelope stored under provider_app_<applicationId>"""
    model_config = ConfigDict(populate_by_name=True)
    
    application_id: str = Field(..., alias="applicationId")
    form_data: Dict[str, Any] = Field(default_factory=dict, alias="formData")
    current_step: int = Field(..., ge=1, alias="currentStep")
    last_modified: int = Field(..., description="Epoch milliseconds", alias="lastModified")
    version: str = "1.0"


class DraftSummary(BaseModel):
    """Entry of the bounded saved_applications list"""
    model_config = ConfigDict(populate_by_name=True)
    
    application_id: str = Field(..., alias="applicationId")
    applicant_name: str = Field(..., alias="applicantName")
    email: str = ""
    current_step: int = Field(..., alias="currentStep")
    last_modified: int = Field(..., alias="lastModified")
    progress: float = 0.0


class StorageUsage(BaseModel):
    """Advisory storage figures for UI warnings"""
    used_bytes: int
    estimated_capacity: int
    available_bytes: int
    percentage: float
