"""Domain Errors - Centralized Exception Hierarchy"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""
    
    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400
    
    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


# Authentication & Authorization Errors
class AuthenticationError(DomainError):
    """Admin identity missing"""
    error_code = "AUTHENTICATION_ERROR"
    http_status = 401


class AuthorizationError(DomainError):
    """Admin lacks permission for action"""
    error_code = "AUTHORIZATION_ERROR"
    http_status = 403


# Validation Errors
class ValidationError(DomainError):
    """Input validation failed"""
    error_code = "VALIDATION_ERROR"
    http_status = 400


class InvalidStatusError(ValidationError):
    """Status value outside the application status enum"""
    error_code = "INVALID_STATUS"


class InvalidFieldSetError(ValidationError):
    """Missing-field set is empty or names fields that cannot be completed"""
    error_code = "INVALID_FIELD_SET"


class IncompleteSubmissionError(ValidationError):
    """Completion submission lacks one or more requested fields"""
    error_code = "INCOMPLETE_SUBMISSION"


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class ApplicationNotFoundError(NotFoundError):
    """Application not found"""
    error_code = "APPLICATION_NOT_FOUND"


class ProviderNotFoundError(NotFoundError):
    """Provider not found"""
    error_code = "PROVIDER_NOT_FOUND"


class CompletionTokenNotFoundError(NotFoundError):
    """Completion token does not exist"""
    error_code = "TOKEN_NOT_FOUND"


# Token lifecycle errors
class CompletionTokenExpiredError(DomainError):
    """Completion token is past its expiry"""
    error_code = "TOKEN_EXPIRED"
    http_status = 410


# Conflict Errors
class ConflictError(DomainError):
    """Resource conflict (e.g., concurrent modification)"""
    error_code = "CONFLICT"
    http_status = 409


class ConcurrencyError(ConflictError):
    """Optimistic concurrency conflict"""
    error_code = "CONCURRENCY_CONFLICT"


class CompletionTokenUsedError(ConflictError):
    """Completion token was already consumed"""
    error_code = "TOKEN_ALREADY_USED"


class ActiveLinkExistsError(ConflictError):
    """Another completion link is still active for the application"""
    error_code = "ACTIVE_LINK_EXISTS"


class ApplicationNotApprovedError(ConflictError):
    """Provisioning requested for an application that is not approved"""
    error_code = "APPLICATION_NOT_APPROVED"


# Draft storage errors
class DraftStorageError(DomainError):
    """Local draft persistence failed"""
    error_code = "DRAFT_STORAGE_ERROR"
    http_status = 500


class DraftQuotaExceededError(DraftStorageError):
    """Draft backend is full"""
    error_code = "DRAFT_QUOTA_EXCEEDED"
    http_status = 507


class DraftSerializationError(DraftStorageError):
    """Draft could not be serialized"""
    error_code = "DRAFT_SERIALIZATION_FAILED"
    http_status = 400


# External Service Errors
class ExternalServiceError(DomainError):
    """External service failure"""
    error_code = "EXTERNAL_SERVICE_ERROR"
    http_status = 502


class EmailSendError(ExternalServiceError):
    """Email hand-off failed"""
    error_code = "EMAIL_SEND_ERROR"


class DocumentGenerationError(ExternalServiceError):
    """Document/PDF generation failed"""
    error_code = "DOCUMENT_GENERATION_ERROR"


class DocumentGenerationTimeoutError(DocumentGenerationError):
    """Document/PDF generation did not finish in time"""
    error_code = "DOCUMENT_GENERATION_TIMEOUT"
    http_status = 504
