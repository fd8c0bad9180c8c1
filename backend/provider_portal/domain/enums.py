"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class ApplicationStatus(str, Enum):
    """Review status of a provider application"""
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class ProviderStatus(str, Enum):
    """Provider account status"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class CompletionLinkState(str, Enum):
    """Computed state of a completion link (never stored)"""
    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"


class AdminRole(str, Enum):
    """Roles allowed to drive the review workflow"""
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class NotificationStatus(str, Enum):
    """Notification outbox status"""
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class NotificationTemplateKey(str, Enum):
    """Notification template identifiers"""
    COMPLETION_LINK = "COMPLETION_LINK"


class AuditEventType(str, Enum):
    """Types of activity-log events"""
    APPLICATION_SUBMITTED = "APPLICATION_SUBMITTED"
    APPLICATION_UPDATED = "APPLICATION_UPDATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    NOTE_ADDED = "NOTE_ADDED"
    COMPLETION_LINK_ISSUED = "COMPLETION_LINK_ISSUED"
    COMPLETION_LINK_CONSUMED = "COMPLETION_LINK_CONSUMED"
    PROVIDER_PROVISIONED = "PROVIDER_PROVISIONED"
    PROVISIONING_FAILED = "PROVISIONING_FAILED"


class ProvisionOutcome(str, Enum):
    """Result of a provisioning call"""
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"


class AutoSaveState(str, Enum):
    """Dirty tracking for the application form"""
    CLEAN = "clean"
    DIRTY = "dirty"
    SAVING = "saving"


class SaveOutcome(str, Enum):
    """What happened to a save attempt"""
    SAVED = "saved"
    FAILED = "failed"
    OFFLINE = "offline"
    NOTHING_TO_SAVE = "nothing_to_save"
    SKIPPED_BUSY = "skipped_busy"


class SaveIndicator(str, Enum):
    """Auto-save badge shown next to the form"""
    OFFLINE = "offline"
    SAVING = "saving"
    UNSAVED = "unsaved"
    SAVED = "saved"
    IDLE = "idle"


class SaveTrigger(str, Enum):
    """Why a save was attempted"""
    TIMER = "timer"
    STEP_CHANGE = "step_change"
    VISIBILITY_HIDDEN = "visibility_hidden"
    RECONNECTED = "reconnected"
    MANUAL = "manual"


# Fields an admin may request through a completion link. Document fields hold
# upload references, never file content.
COMPLETABLE_FIELDS = frozenset({
    "full_name",
    "phone",
    "address",
    "date_of_birth",
    "specialty",
    "license_type",
    "license_number",
    "license_state",
    "npi_number",
    "dea_number",
    "practice_name",
    "practice_address",
    "practice_phone",
    "practice_email",
    "years_experience",
    "education",
    "work_history",
    "references_data",
    "profile_image",
    "drivers_license_image",
    "education_image",
    "license_image",
    "bls_cpr_image",
    "tb_test_image",
    "wound_care_image",
})

# Application columns editable through the admin PUT endpoint
EDITABLE_APPLICATION_FIELDS = frozenset({
    "full_name",
    "email",
    "phone",
    "address",
    "specialty",
    "license_type",
    "license_number",
    "license_state",
    "npi_number",
    "dea_number",
    "practice_name",
})
