"""
Pytest Configuration and Fixtures

Every test gets an isolated in-memory MongoDB (mongomock) and a controllable
clock. Log files go to a temporary directory.
"""

import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Must be set before provider_portal.config.settings is imported
os.environ.setdefault("LOGS_PATH", tempfile.mkdtemp(prefix="provider-portal-logs-"))
os.environ.setdefault("ENVIRONMENT", "test")

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

import mongomock  # noqa: E402
import pytest  # noqa: E402

from provider_portal.domain.models import ActorContext, Application  # noqa: E402
from provider_portal.domain.enums import AdminRole, ApplicationStatus  # noqa: E402
from provider_portal.repositories.application_repo import ApplicationRepository  # noqa: E402
from provider_portal.drafts import DraftStore, MemoryKeyValueBackend  # noqa: E402
from provider_portal.utils.idgen import generate_application_id  # noqa: E402


FIXED_NOW = datetime(2026, 3, 2, 9, 30, 0, tzinfo=timezone.utc)
FIXED_NOW_MS = int(FIXED_NOW.timestamp() * 1000)


class FakeClock:
    """Callable clock returning an aware UTC datetime that tests can advance"""
    
    def __init__(self, start: datetime = FIXED_NOW):
        self.now = start
    
    def __call__(self) -> datetime:
        return self.now
    
    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class FakeMsClock:
    """Epoch-millisecond clock for the draft store"""
    
    def __init__(self, start: int = FIXED_NOW_MS):
        self.now = start
    
    def __call__(self) -> int:
        return self.now
    
    def advance(self, **delta) -> int:
        self.now += int(timedelta(**delta).total_seconds() * 1000)
        return self.now


@pytest.fixture
def mongo_db():
    """Provide an isolated in-memory MongoDB database for each test."""
    test_db_name = "test_provider_portal"
    client = mongomock.MongoClient()
    db = client[test_db_name]
    
    yield db
    
    client.drop_database(test_db_name)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ms_clock() -> FakeMsClock:
    return FakeMsClock()


@pytest.fixture
def backend() -> MemoryKeyValueBackend:
    return MemoryKeyValueBackend()


@pytest.fixture
def draft_store(backend, ms_clock) -> DraftStore:
    return DraftStore(backend, clock_ms=ms_clock)


@pytest.fixture
def admin() -> ActorContext:
    return ActorContext(admin_id="ADM-001", username="mreyes", role=AdminRole.ADMIN)


@pytest.fixture
def make_application(mongo_db, clock):
    """Factory inserting an application row directly through the repository"""
    repo = ApplicationRepository(mongo_db)
    
    def _make(status: ApplicationStatus = ApplicationStatus.PENDING, **overrides) -> Application:
        now = clock()
        values = {
            "application_id": generate_application_id(),
            "status": status,
            "full_name": "Jane Doe",
            "email": "jane.doe@rushcare.org",
            "phone": "313-555-0100",
            "address": "12 Elm St, Detroit, MI",
            "specialty": "Family Medicine",
            "license_type": "Nurse Practitioner",
            "license_number": None,
            "created_at": now,
            "updated_at": now,
        }
        values.update(overrides)
        return repo.create(Application(**values))
    
    return _make
