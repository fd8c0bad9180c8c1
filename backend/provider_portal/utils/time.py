"""Time Utilities - UTC timestamps and conversions"""
from datetime import datetime, timezone
from typing import Optional
from dateutil import parser as date_parser


def utc_now() -> datetime:
    """Get current UTC datetime"""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes
    
    MongoDB hands back naive datetimes unless the client is tz-aware, so
    everything read from a collection passes through here before comparison.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_iso(dt: datetime) -> str:
    """
    Format datetime to ISO 8601 string
    
    Args:
        dt: Datetime object
        
    Returns:
        ISO formatted string with Z suffix for UTC
    """
    return ensure_utc(dt).isoformat().replace("+00:00", "Z")


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 string to datetime
    
    Args:
        iso_string: ISO formatted datetime string
        
    Returns:
        Datetime object in UTC
    """
    return ensure_utc(date_parser.isoparse(iso_string))


def to_epoch_ms(dt: datetime) -> int:
    """Convert datetime to epoch milliseconds"""
    return int(ensure_utc(dt).timestamp() * 1000)


def now_ms() -> int:
    """Current time as epoch milliseconds"""
    return to_epoch_ms(utc_now())


def days_between_ms(earlier_ms: int, later_ms: int) -> float:
    """Fractional days between two epoch-millisecond timestamps"""
    return (later_ms - earlier_ms) / (1000 * 60 * 60 * 24)


def has_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """
    Check if an expiry instant has been reached
    
    Args:
        expires_at: Expiry datetime or None (never expires)
        now: Reference time, defaults to current UTC time
        
    Returns:
        True once now >= expires_at
    """
    if expires_at is None:
        return False
    reference = ensure_utc(now) if now is not None else utc_now()
    return reference >= ensure_utc(expires_at)


