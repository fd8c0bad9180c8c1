"""ID Generation Utilities"""
import random
import secrets
import string
import uuid
from datetime import datetime, timezone
from typing import Optional

_BASE36 = string.digits + string.ascii_lowercase


def generate_id(prefix: Optional[str] = None) -> str:
    """
    Generate a unique ID with optional prefix
    
    Args:
        prefix: Optional prefix for the ID (e.g., 'APP', 'PRV', 'AUD')
        
    Returns:
        Unique ID string
        
    Examples:
        >>> generate_id('PRV')
        'PRV-a1b2c3d4e5f6'
        >>> generate_id()
        'a1b2c3d4e5f6'
    """
    unique_part = uuid.uuid4().hex[:12]
    
    if prefix:
        return f"{prefix}-{unique_part}"
    return unique_part


def generate_application_id() -> str:
    """Generate server-side application ID"""
    return generate_id("APP")


def generate_provider_id() -> str:
    """Generate provider record ID"""
    return generate_id("PRV")


def generate_audit_event_id() -> str:
    """Generate audit event ID"""
    return generate_id("AUD")


def generate_notification_id() -> str:
    """Generate notification ID"""
    return generate_id("NTF")


def generate_completion_token(num_bytes: int = 32) -> str:
    """
    Generate an unguessable completion-link token
    
    Returns:
        Hex string, two characters per byte of entropy
    """
    return secrets.token_hex(num_bytes)


def generate_draft_id(epoch_ms: int) -> str:
    """
    Generate a browser draft ID in the form app_<epoch_ms>_<9 base36 chars>
    """
    suffix = "".join(random.choice(_BASE36) for _ in range(9))
    return f"app_{epoch_ms}_{suffix}"


def generate_provider_code(prefix: str, year: int) -> str:
    """
    Generate a human-facing provider code, e.g. RUSH-2026-0042
    
    Uniqueness is enforced by the caller against the providers collection.
    """
    return f"{prefix}-{year}-{random.randint(1, 9999):04d}"


def generate_correlation_id() -> str:
    """
    Generate a correlation ID for request tracing
    
    Returns:
        Correlation ID string with timestamp prefix
    """
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    unique_part = uuid.uuid4().hex[:8]
    return f"COR-{timestamp}-{unique_part}"
