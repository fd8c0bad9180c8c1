"""Auto-save Controller - Decides when form state is pushed to the DraftStore

States: CLEAN -> DIRTY on any edit; DIRTY -> SAVING on a trigger; SAVING ->
CLEAN on success or back to DIRTY on failure, so a later trigger retries.

Triggers are the periodic timer, step navigation, the page becoming hidden,
coming back online, and the explicit save button. Nothing is saved or queued
while offline. Persistence failures never touch the in-memory form.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..domain.enums import AutoSaveState, SaveIndicator, SaveOutcome, SaveTrigger
from ..domain.errors import DraftQuotaExceededError, DraftStorageError, DomainError
from ..config.settings import settings
from ..utils.logger import get_logger
from .serialization import files_to_reattach
from .store import DraftStore

logger = get_logger(__name__)

NOTICE_SAVED = "Progress saved"
NOTICE_FAILED = "Failed to save progress. Your answers are still on this page."
NOTICE_OFFLINE = "You're offline. Progress will be saved when you reconnect."
NOTICE_NOTHING = "Nothing to save yet"
NOTICE_QUOTA = "Local storage is full. Clear old applications to keep saving progress."


@dataclass
class ResumeResult:
    """What the form needs to know after restoring a draft"""
    application_id: str
    current_step: int
    form_data: Dict[str, Any]
    files_to_reattach: List[str] = field(default_factory=list)


def _has_value(value: Any) -> bool:
    if value is None or value is False:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, dict, tuple, set)):
        return len(value) > 0
    return True


class AutoSaveController:
    """Single-writer auto-save state machine for one form"""
    
    def __init__(
        self,
        store: DraftStore,
        application_id: Optional[str] = None,
        interval_seconds: Optional[float] = None,
        warning_percent: Optional[float] = None,
        online: bool = True
    ):
        self.store = store
        self.application_id = application_id
        self.interval_seconds = (
            interval_seconds if interval_seconds is not None else settings.autosave_interval_seconds
        )
        self.warning_percent = (
            warning_percent if warning_percent is not None else settings.draft_storage_warning_percent
        )
        
        self.form_data: Dict[str, Any] = {}
        self.current_step = 1
        self.state = AutoSaveState.CLEAN
        self.online = online
        self.visible = True
        self.submitting = False
        
        self.last_saved: Optional[int] = None
        self.last_error: Optional[DomainError] = None
        self.last_trigger: Optional[SaveTrigger] = None
        self.storage_warning: Optional[str] = None
        self.notices: List[str] = []
        
        self._edited_while_saving = False
        self._stop: Optional[asyncio.Event] = None
        self._stop_requested = False
    
    # =========================================================================
    # Form state
    # =========================================================================
    
    def update_field(self, name: str, value: Any) -> None:
        self.form_data[name] = value
        self._mark_dirty()
    
    def update_fields(self, values: Dict[str, Any]) -> None:
        self.form_data.update(values)
        self._mark_dirty()
    
    def _mark_dirty(self) -> None:
        if self.state == AutoSaveState.SAVING:
            self._edited_while_saving = True
        else:
            self.state = AutoSaveState.DIRTY
    
    def has_progress(self) -> bool:
        """True once the user has entered anything or left step 1"""
        return self.current_step > 1 or any(_has_value(v) for v in self.form_data.values())
    
    @property
    def indicator(self) -> SaveIndicator:
        if not self.online:
            return SaveIndicator.OFFLINE
        if self.state == AutoSaveState.SAVING:
            return SaveIndicator.SAVING
        if self.state == AutoSaveState.DIRTY:
            return SaveIndicator.UNSAVED
        if self.last_saved is not None:
            return SaveIndicator.SAVED
        return SaveIndicator.IDLE
    
    @property
    def warn_before_unload(self) -> bool:
        return self.state == AutoSaveState.DIRTY and self.has_progress() and not self.submitting
    
    def drain_notices(self) -> List[str]:
        notices, self.notices = self.notices, []
        return notices
    
    # =========================================================================
    # Saving
    # =========================================================================
    
    def save_now(self, silent: bool = False, trigger: SaveTrigger = SaveTrigger.MANUAL) -> SaveOutcome:
        """Attempt a save immediately"""
        if not self.online:
            if not silent:
                self.notices.append(NOTICE_OFFLINE)
            return SaveOutcome.OFFLINE
        if self.state == AutoSaveState.SAVING:
            return SaveOutcome.SKIPPED_BUSY
        if not self.has_progress():
            if not silent:
                self.notices.append(NOTICE_NOTHING)
            return SaveOutcome.NOTHING_TO_SAVE
        
        if self.application_id is None:
            self.application_id = self.store.generate_application_id()
        
        captured_at = self.store.now()
        self.state = AutoSaveState.SAVING
        self.last_trigger = trigger
        self._edited_while_saving = False
        try:
            draft = self.store.save(self.application_id, self.form_data, self.current_step, captured_at=captured_at)
        except DomainError as e:
            self.state = AutoSaveState.DIRTY
            self.last_error = e
            logger.warning(f"Auto-save ({trigger.value}) failed: {e.message}", extra={"error_code": e.error_code})
            if isinstance(e, DraftQuotaExceededError):
                self.storage_warning = NOTICE_QUOTA
                self.notices.append(NOTICE_QUOTA)
            elif not silent:
                self.notices.append(NOTICE_FAILED)
            return SaveOutcome.FAILED
        
        self.state = AutoSaveState.DIRTY if self._edited_while_saving else AutoSaveState.CLEAN
        self.last_error = None
        if draft is not None:
            self.last_saved = draft.last_modified
        self._check_storage()
        if not silent:
            self.notices.append(NOTICE_SAVED)
        return SaveOutcome.SAVED
    
    def _check_storage(self) -> None:
        usage = self.store.usage()
        if usage.percentage >= self.warning_percent:
            warning = f"Local storage is {usage.percentage:.0f}% full. Consider clearing old applications."
            if warning != self.storage_warning:
                self.notices.append(warning)
            self.storage_warning = warning
        else:
            self.storage_warning = None
    
    # =========================================================================
    # Triggers
    # =========================================================================
    
    def on_timer(self) -> Optional[SaveOutcome]:
        """Periodic tick; only saves pending edits"""
        if self.state != AutoSaveState.DIRTY or not self.online:
            return None
        return self.save_now(silent=True, trigger=SaveTrigger.TIMER)
    
    def go_to_step(self, step: int) -> SaveOutcome:
        """Navigate and save right away, whatever the timer is doing"""
        self.current_step = max(1, min(step, self.store.total_steps))
        # stays pending if this save is suppressed (offline, busy)
        self._mark_dirty()
        return self.save_now(silent=True, trigger=SaveTrigger.STEP_CHANGE)
    
    def next_step(self) -> SaveOutcome:
        return self.go_to_step(self.current_step + 1)
    
    def previous_step(self) -> SaveOutcome:
        return self.go_to_step(self.current_step - 1)
    
    def on_visibility_change(self, hidden: bool) -> Optional[SaveOutcome]:
        self.visible = not hidden
        if hidden and self.state == AutoSaveState.DIRTY:
            return self.save_now(silent=True, trigger=SaveTrigger.VISIBILITY_HIDDEN)
        return None
    
    def set_online(self, online: bool) -> Optional[SaveOutcome]:
        reconnected = online and not self.online
        self.online = online
        if reconnected and self.state == AutoSaveState.DIRTY:
            return self.save_now(silent=True, trigger=SaveTrigger.RECONNECTED)
        return None
    
    # =========================================================================
    # Lifecycle
    # =========================================================================
    
    def resume(self, application_id: Optional[str] = None) -> Optional[ResumeResult]:
        """Restore a named draft, or the most recent one"""
        if application_id is None:
            summaries = self.store.list_summaries()
            if not summaries:
                return None
            application_id = summaries[0].application_id
        
        draft = self.store.load_draft(application_id)
        if draft is None:
            return None
        
        self.application_id = application_id
        self.form_data = dict(draft.form_data)
        self.current_step = draft.current_step
        self.state = AutoSaveState.CLEAN
        self.last_saved = draft.last_modified
        return ResumeResult(
            application_id=application_id,
            current_step=draft.current_step,
            form_data=dict(draft.form_data),
            files_to_reattach=files_to_reattach(draft.form_data)
        )
    
    def _discard_draft(self) -> None:
        if self.application_id is not None:
            try:
                self.store.delete(self.application_id)
            except DraftStorageError as e:
                logger.warning(f"Could not delete draft {self.application_id}: {e.message}")
        self.application_id = None
        self.form_data = {}
        self.current_step = 1
        self.state = AutoSaveState.CLEAN
        self.last_saved = None
        self.submitting = False
    
    def clear(self) -> None:
        """Explicit user clear"""
        self._discard_draft()
    
    def begin_submission(self) -> None:
        self.submitting = True
    
    def submission_succeeded(self) -> None:
        self._discard_draft()
    
    def submission_failed(self) -> None:
        self.submitting = False
        self.state = AutoSaveState.DIRTY
    
    # =========================================================================
    # Timer loop
    # =========================================================================
    
    async def run(self) -> None:
        """Fire on_timer every interval until stop() is called"""
        self._stop = asyncio.Event()
        if self._stop_requested:
            return
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                self.on_timer()
    
    def stop(self) -> None:
        self._stop_requested = True
        if self._stop is not None:
            self._stop.set()
