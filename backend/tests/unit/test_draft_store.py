"""Tests for local draft persistence"""
import io
import json

import pytest

from provider_portal.domain.errors import DraftQuotaExceededError, ValidationError
from provider_portal.drafts import DraftStore, FileAttachment, MemoryKeyValueBackend, MongoKeyValueBackend
from provider_portal.drafts.store import STORAGE_PREFIX, SUMMARIES_KEY


WORK_HISTORY = [
    {"employer": "Henry Ford Health", "role": "NP", "years": 4},
    {"employer": "Beaumont", "role": "RN", "years": 6},
]


def test_load_after_save_returns_snapshot_without_file_content(draft_store):
    license_scan = FileAttachment(
        name="license.pdf", content=b"%PDF-1.7 ...", content_type="application/pdf", last_modified=1700000000000
    )
    snapshot = {
        "firstName": "Jane",
        "lastName": "Doe",
        "yearsExperience": 7,
        "acceptsMedicaid": True,
        "workHistory": WORK_HISTORY,
        "address": {"street": "12 Elm St", "city": "Detroit"},
        "licenseImage": license_scan,
        "onChange": lambda value: value,
    }
    
    draft_store.save("app_1", snapshot, 2)
    loaded = draft_store.load("app_1")
    
    assert loaded == {
        "firstName": "Jane",
        "lastName": "Doe",
        "yearsExperience": 7,
        "acceptsMedicaid": True,
        "workHistory": WORK_HISTORY,
        "address": {"street": "12 Elm St", "city": "Detroit"},
        "licenseImage_metadata": {
            "name": "license.pdf",
            "size": len(b"%PDF-1.7 ..."),
            "type": "application/pdf",
            "lastModified": 1700000000000,
        },
    }


def test_file_like_and_bytes_values_become_metadata(draft_store):
    upload = io.BytesIO(b"0123456789")
    upload.name = "/tmp/uploads/tb_test.png"
    
    draft_store.save("app_1", {"tbTest": upload, "raw": b"abc", "firstName": "Jane"}, 1)
    loaded = draft_store.load("app_1")
    
    assert loaded["tbTest_metadata"]["name"] == "tb_test.png"
    assert loaded["tbTest_metadata"]["size"] == 10
    assert loaded["tbTest_metadata"]["type"] == "image/png"
    assert loaded["raw_metadata"]["size"] == 3
    assert "tbTest" not in loaded and "raw" not in loaded


def test_unserializable_field_is_dropped_not_fatal(draft_store):
    draft_store.save("app_1", {"firstName": "Jane", "tags": {"a", "b"}}, 1)
    assert draft_store.load("app_1") == {"firstName": "Jane"}


def test_envelope_layout(draft_store, backend, ms_clock):
    draft_store.save("app_1", {"firstName": "Jane"}, 3)
    
    envelope = json.loads(backend.get(f"{STORAGE_PREFIX}app_1"))
    assert envelope == {
        "formData": {"firstName": "Jane"},
        "currentStep": 3,
        "lastModified": ms_clock.now,
        "version": "1.0",
    }
    summaries = json.loads(backend.get(SUMMARIES_KEY))
    assert summaries[0]["applicationId"] == "app_1"


def test_reopened_store_lists_progress_and_applicant_name(backend, ms_clock):
    DraftStore(backend, clock_ms=ms_clock).save(
        "app_jane", {"firstName": "Jane", "workHistory": WORK_HISTORY}, 3
    )
    
    ms_clock.advance(hours=5)
    reopened = DraftStore(backend, clock_ms=ms_clock)
    summaries = reopened.list_summaries()
    
    assert len(summaries) == 1
    assert summaries[0].progress == 60
    assert summaries[0].applicant_name == "Jane"


@pytest.mark.parametrize("form_data, expected_name, expected_email", [
    ({"firstName": "Jane", "lastName": "Doe"}, "Jane Doe", ""),
    ({"lastName": "Doe", "email": "jd@rushcare.org"}, "Doe", "jd@rushcare.org"),
    ({"username": "jdoe@rushcare.org", "email": "other@rushcare.org", "npi": "1234"}, "Unnamed Application", "jdoe@rushcare.org"),
])
def test_summary_name_and_email(draft_store, form_data, expected_name, expected_email):
    draft_store.save("app_1", form_data, 1)
    summary = draft_store.list_summaries()[0]
    assert summary.applicant_name == expected_name
    assert summary.email == expected_email


def test_summaries_capped_and_newest_first(draft_store, ms_clock):
    for index in range(7):
        draft_store.save(f"app_{index}", {"firstName": f"Applicant {index}"}, 1)
        ms_clock.advance(minutes=1)
    
    summaries = draft_store.list_summaries()
    assert [s.application_id for s in summaries] == ["app_6", "app_5", "app_4", "app_3", "app_2"]


def test_resaving_moves_draft_to_front(draft_store, ms_clock):
    draft_store.save("app_a", {"firstName": "A"}, 1)
    ms_clock.advance(minutes=1)
    draft_store.save("app_b", {"firstName": "B"}, 1)
    ms_clock.advance(minutes=1)
    draft_store.save("app_a", {"firstName": "A"}, 2)
    
    summaries = draft_store.list_summaries()
    assert [s.application_id for s in summaries] == ["app_a", "app_b"]
    assert summaries[0].current_step == 2


def test_expired_draft_is_not_returned_and_is_deleted(draft_store, backend, ms_clock):
    draft_store.save("app_old", {"firstName": "Old"}, 2)
    ms_clock.advance(days=31)
    
    assert draft_store.list_summaries() == []
    assert backend.get(f"{STORAGE_PREFIX}app_old") is None
    assert draft_store.load("app_old") is None


def test_load_deletes_expired_draft(draft_store, backend, ms_clock):
    draft_store.save("app_old", {"firstName": "Old"}, 2)
    ms_clock.advance(days=30, seconds=1)
    
    assert draft_store.load("app_old") is None
    assert backend.get(f"{STORAGE_PREFIX}app_old") is None
    assert backend.get(SUMMARIES_KEY) is None


def test_draft_at_retention_boundary_is_kept(draft_store, ms_clock):
    draft_store.save("app_1", {"firstName": "Jane"}, 2)
    ms_clock.advance(days=30)
    assert draft_store.load("app_1") == {"firstName": "Jane"}


def test_stale_write_is_ignored(draft_store, ms_clock):
    captured_before = ms_clock.now
    ms_clock.advance(seconds=10)
    draft_store.save("app_1", {"firstName": "Newer"}, 3)
    
    ms_clock.advance(seconds=5)
    result = draft_store.save("app_1", {"firstName": "Older"}, 2, captured_at=captured_before)
    
    assert result is None
    draft = draft_store.load_draft("app_1")
    assert draft.form_data == {"firstName": "Newer"}
    assert draft.current_step == 3


def test_last_modified_never_regresses(draft_store, ms_clock):
    first = draft_store.save("app_1", {"firstName": "Jane"}, 1)
    ms_clock.advance(seconds=-30)
    second = draft_store.save("app_1", {"firstName": "Jane"}, 2)
    assert second.last_modified == first.last_modified


def test_step_out_of_range_rejected(draft_store):
    with pytest.raises(ValidationError):
        draft_store.save("app_1", {"firstName": "Jane"}, 6)
    with pytest.raises(ValidationError):
        draft_store.save("app_1", {"firstName": "Jane"}, 0)


def test_quota_exceeded_raises(ms_clock):
    store = DraftStore(MemoryKeyValueBackend(quota_bytes=200), clock_ms=ms_clock)
    with pytest.raises(DraftQuotaExceededError):
        store.save("app_1", {"notes": "x" * 500}, 1)


def _draft_size(ms_clock, application_id, form_data, step):
    sizing = MemoryKeyValueBackend()
    DraftStore(sizing, clock_ms=ms_clock).save(application_id, form_data, step)
    key = STORAGE_PREFIX + application_id
    return len(key) + len(sizing.get(key))


def test_first_save_rolled_back_when_summary_does_not_fit(ms_clock):
    quota = _draft_size(ms_clock, "app_1", {"firstName": "Jane"}, 1) + 10
    backend = MemoryKeyValueBackend(quota_bytes=quota)
    store = DraftStore(backend, clock_ms=ms_clock)

    with pytest.raises(DraftQuotaExceededError):
        store.save("app_1", {"firstName": "Jane"}, 1)

    assert backend.keys() == []
    assert store.load("app_1") is None
    assert store.list_summaries() == []
    assert store.usage().used_bytes == 0


def test_resave_restores_previous_draft_when_summary_does_not_fit(draft_store, backend, ms_clock):
    draft_store.save("app_1", {"firstName": "Jane"}, 1)
    before = backend.get(STORAGE_PREFIX + "app_1")

    def fail_summary(*args, **kwargs):
        raise DraftQuotaExceededError("Local storage is full")

    draft_store._upsert_summary = fail_summary
    ms_clock.advance(seconds=5)
    with pytest.raises(DraftQuotaExceededError):
        draft_store.save("app_1", {"firstName": "Janet"}, 2)

    assert backend.get(STORAGE_PREFIX + "app_1") == before
    assert draft_store.load("app_1") == {"firstName": "Jane"}
    assert draft_store.list_summaries()[0].current_step == 1


def test_delete_removes_draft_and_summary(draft_store):
    draft_store.save("app_1", {"firstName": "A"}, 1)
    draft_store.save("app_2", {"firstName": "B"}, 1)
    
    draft_store.delete("app_1")
    
    assert draft_store.load("app_1") is None
    assert [s.application_id for s in draft_store.list_summaries()] == ["app_2"]


def test_clear_all(draft_store, backend):
    draft_store.save("app_1", {"firstName": "A"}, 1)
    draft_store.save("app_2", {"firstName": "B"}, 1)
    
    draft_store.clear_all()
    
    assert draft_store.list_summaries() == []
    assert backend.keys() == []


def test_cleanup_expired_counts_unlisted_drafts(draft_store, ms_clock):
    for index in range(7):
        draft_store.save(f"app_{index}", {"firstName": "A"}, 1)
    ms_clock.advance(days=31)
    draft_store.save("app_fresh", {"firstName": "Fresh"}, 1)
    
    assert draft_store.cleanup_expired() == 7
    assert [s.application_id for s in draft_store.list_summaries()] == ["app_fresh"]


def test_usage_is_advisory(backend, ms_clock):
    store = DraftStore(backend, clock_ms=ms_clock, capacity_bytes=1000)
    store.save("app_1", {"notes": "x" * 400}, 1)
    
    usage = store.usage()
    assert usage.estimated_capacity == 1000
    assert 400 < usage.used_bytes < 1000
    assert usage.available_bytes == 1000 - usage.used_bytes
    assert usage.percentage == pytest.approx(usage.used_bytes / 10)


def test_is_available(draft_store, backend):
    assert draft_store.is_available() is True
    assert backend.keys() == []


def test_generate_application_id_format(draft_store, ms_clock):
    application_id = draft_store.generate_application_id()
    prefix, timestamp, suffix = application_id.split("_")
    assert prefix == "app"
    assert int(timestamp) == ms_clock.now
    assert len(suffix) == 9


def test_mongo_backend_round_trip(mongo_db, ms_clock):
    store = DraftStore(MongoKeyValueBackend(mongo_db, namespace="browser-1"), clock_ms=ms_clock)
    other = DraftStore(MongoKeyValueBackend(mongo_db, namespace="browser-2"), clock_ms=ms_clock)
    
    store.save("app_1", {"firstName": "Jane", "workHistory": WORK_HISTORY}, 3)
    
    assert store.load("app_1") == {"firstName": "Jane", "workHistory": WORK_HISTORY}
    assert store.list_summaries()[0].progress == 60
    assert other.load("app_1") is None
    assert other.list_summaries() == []
