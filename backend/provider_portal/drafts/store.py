"""Draft Store - Local persistence of in-progress applications

Layout in the key-value backend:

    provider_app_<applicationId>  -> {formData, currentStep, lastModified, version}
    saved_applications            -> [summary, ...] newest first, capped

Every mutation keeps the summary list in step so listing never has to parse
full snapshots. Drafts untouched for longer than the retention window are
treated as gone and deleted the first time they are looked up.
"""
import json
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from ..domain.models import DraftSummary, SavedApplicationDraft, StorageUsage
from ..domain.errors import DraftSerializationError, DraftStorageError, ValidationError
from ..config.settings import settings
from ..utils.idgen import generate_draft_id
from ..utils.time import days_between_ms, now_ms
from ..utils.logger import get_logger
from .backends import KeyValueBackend
from .serialization import to_serializable

logger = get_logger(__name__)

STORAGE_PREFIX = "provider_app_"
SUMMARIES_KEY = "saved_applications"
PROBE_KEY = "__storage_test__"
ENVELOPE_VERSION = "1.0"


def applicant_name(form_data: Dict[str, Any]) -> str:
    first = str(form_data.get("firstName") or "").strip()
    last = str(form_data.get("lastName") or "").strip()
    return " ".join(part for part in (first, last) if part) or "Unnamed Application"


def applicant_email(form_data: Dict[str, Any]) -> str:
    return str(form_data.get("username") or form_data.get("email") or "")


class DraftStore:
    """Persistence for form snapshots scoped to one browser profile"""
    
    def __init__(
        self,
        backend: KeyValueBackend,
        clock_ms: Callable[[], int] = now_ms,
        retention_days: Optional[int] = None,
        max_entries: Optional[int] = None,
        total_steps: Optional[int] = None,
        capacity_bytes: Optional[int] = None
    ):
        self.backend = backend
        self._clock_ms = clock_ms
        self.retention_days = retention_days if retention_days is not None else settings.draft_retention_days
        self.max_entries = max_entries if max_entries is not None else settings.draft_max_entries
        self.total_steps = total_steps if total_steps is not None else settings.draft_total_steps
        self.capacity_bytes = capacity_bytes if capacity_bytes is not None else settings.draft_storage_capacity_bytes
    
    @staticmethod
    def storage_key(application_id: str) -> str:
        return f"{STORAGE_PREFIX}{application_id}"
    
    def now(self) -> int:
        """Store clock, epoch milliseconds"""
        return self._clock_ms()
    
    def generate_application_id(self) -> str:
        return generate_draft_id(self._clock_ms())
    
    def is_expired(self, last_modified: int, now: Optional[int] = None) -> bool:
        reference = now if now is not None else self._clock_ms()
        return days_between_ms(last_modified, reference) > self.retention_days
    
    # =========================================================================
    # Save
    # =========================================================================
    
    def save(
        self,
        application_id: str,
        form_data: Dict[str, Any],
        current_step: int,
        captured_at: Optional[int] = None
    ) -> Optional[SavedApplicationDraft]:
        """
        Write a snapshot and refresh its summary entry
        
        File values become metadata and unserializable fields are dropped.
        A write captured before the stored lastModified is stale and ignored
        (returns None).
        
        Raises:
            ValidationError: step outside 1..total_steps
            DraftSerializationError: the envelope itself could not be encoded
            DraftQuotaExceededError: backend is full
        """
        if not 1 <= current_step <= self.total_steps:
            raise ValidationError(
                f"Step must be between 1 and {self.total_steps}",
                details={"current_step": current_step}
            )
        
        now = self._clock_ms()
        existing = self._read_envelope(application_id)
        if existing is not None and captured_at is not None and captured_at < existing.last_modified:
            logger.info(f"Ignoring stale draft write for {application_id}")
            return None
        
        snapshot, _ = to_serializable(form_data)
        last_modified = max(now, existing.last_modified) if existing else now
        draft = SavedApplicationDraft(
            application_id=application_id,
            form_data=snapshot,
            current_step=current_step,
            last_modified=last_modified,
            version=ENVELOPE_VERSION
        )
        
        try:
            payload = json.dumps(draft.model_dump(by_alias=True, exclude={"application_id"}))
        except (TypeError, ValueError) as e:
            raise DraftSerializationError(
                "Draft could not be serialized",
                details={"application_id": application_id, "reason": str(e)}
            ) from e
        
        key = self.storage_key(application_id)
        previous = self.backend.get(key)
        self.backend.set(key, payload)
        try:
            self._upsert_summary(draft, snapshot)
        except DraftStorageError:
            # Draft and summary list must change together
            if previous is None:
                self.backend.delete(key)
            else:
                self.backend.set(key, previous)
            raise
        logger.debug(f"Saved draft {application_id} at step {current_step}")
        return draft
    
    # =========================================================================
    # Lookup
    # =========================================================================
    
    def load_draft(self, application_id: str) -> Optional[SavedApplicationDraft]:
        """Full envelope, or None if absent or expired (expired is deleted)"""
        draft = self._read_envelope(application_id)
        if draft is None:
            return None
        if self.is_expired(draft.last_modified):
            logger.info(f"Draft {application_id} expired, removing")
            self.delete(application_id)
            return None
        return draft
    
    def load(self, application_id: str) -> Optional[Dict[str, Any]]:
        """Snapshot only"""
        draft = self.load_draft(application_id)
        return draft.form_data if draft else None
    
    def list_summaries(self) -> List[DraftSummary]:
        """Summaries newest first, dropping expired drafts on the way"""
        summaries = self._read_summaries()
        now = self._clock_ms()
        
        valid = [s for s in summaries if not self.is_expired(s.last_modified, now)]
        expired = [s for s in summaries if self.is_expired(s.last_modified, now)]
        for summary in expired:
            self.backend.delete(self.storage_key(summary.application_id))
        
        valid.sort(key=lambda s: s.last_modified, reverse=True)
        valid = valid[: self.max_entries]
        if len(valid) != len(summaries):
            self._write_summaries(valid)
        return valid
    
    # =========================================================================
    # Removal
    # =========================================================================
    
    def delete(self, application_id: str) -> None:
        self.backend.delete(self.storage_key(application_id))
        summaries = [s for s in self._read_summaries() if s.application_id != application_id]
        self._write_summaries(summaries)
    
    def clear_all(self) -> None:
        """Remove every draft and the summary list"""
        for key in self.backend.keys():
            if key.startswith(STORAGE_PREFIX):
                self.backend.delete(key)
        self.backend.delete(SUMMARIES_KEY)
    
    def cleanup_expired(self) -> int:
        """Delete every expired draft, listed or not; returns the count"""
        now = self._clock_ms()
        removed = 0
        for key in self.backend.keys():
            if not key.startswith(STORAGE_PREFIX):
                continue
            application_id = key[len(STORAGE_PREFIX):]
            draft = self._read_envelope(application_id)
            if draft is not None and self.is_expired(draft.last_modified, now):
                self.delete(application_id)
                removed += 1
        if removed:
            logger.info(f"Cleaned up {removed} expired drafts")
        return removed
    
    # =========================================================================
    # Diagnostics
    # =========================================================================
    
    def usage(self) -> StorageUsage:
        """Advisory usage figures; never enforced here"""
        used = 0
        for key in self.backend.keys():
            if key.startswith(STORAGE_PREFIX):
                used += len(self.backend.get(key) or "")
        available = max(0, self.capacity_bytes - used)
        percentage = (used / self.capacity_bytes) * 100 if self.capacity_bytes else 0.0
        return StorageUsage(
            used_bytes=used,
            estimated_capacity=self.capacity_bytes,
            available_bytes=available,
            percentage=percentage
        )
    
    def is_available(self) -> bool:
        """Probe the backend with a throwaway write"""
        try:
            self.backend.set(PROBE_KEY, PROBE_KEY)
            self.backend.delete(PROBE_KEY)
        except DraftStorageError as e:
            logger.warning(f"Draft storage unavailable: {e.message}")
            return False
        return True
    
    # =========================================================================
    # Internals
    # =========================================================================
    
    def _read_envelope(self, application_id: str) -> Optional[SavedApplicationDraft]:
        raw = self.backend.get(self.storage_key(application_id))
        if not raw:
            return None
        try:
            data = json.loads(raw)
            return SavedApplicationDraft.model_validate({**data, "applicationId": application_id})
        except (ValueError, PydanticValidationError) as e:
            logger.warning(f"Unreadable draft {application_id}: {e}")
            return None
    
    def _read_summaries(self) -> List[DraftSummary]:
        raw = self.backend.get(SUMMARIES_KEY)
        if not raw:
            return []
        try:
            return [DraftSummary.model_validate(item) for item in json.loads(raw)]
        except (ValueError, TypeError, PydanticValidationError) as e:
            logger.warning(f"Unreadable draft summary list, resetting: {e}")
            return []
    
    def _write_summaries(self, summaries: List[DraftSummary]) -> None:
        if not summaries:
            self.backend.delete(SUMMARIES_KEY)
            return
        self.backend.set(
            SUMMARIES_KEY,
            json.dumps([s.model_dump(by_alias=True) for s in summaries])
        )
    
    def _upsert_summary(self, draft: SavedApplicationDraft, snapshot: Dict[str, Any]) -> None:
        summaries = [s for s in self._read_summaries() if s.application_id != draft.application_id]
        summaries.insert(0, DraftSummary(
            application_id=draft.application_id,
            applicant_name=applicant_name(snapshot),
            email=applicant_email(snapshot),
            current_step=draft.current_step,
            last_modified=draft.last_modified,
            progress=draft.current_step * 100 / self.total_steps
        ))
        summaries.sort(key=lambda s: s.last_modified, reverse=True)
        self._write_summaries(summaries[: self.max_entries])
