from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from conftest import SAMPLE_VERSES
from errors import VerseNotFoundError
from models import VerseRecord
from services import firestore_service as fs


def seed(records=SAMPLE_VERSES):
    for record in records:
        fs.add_verse(record)


def test_get_verse_by_reference_is_version_specific(fake_db) -> None:
    seed()
    kjv = fs.get_verse_by_reference("John 3:16", "KJV")
    web = fs.get_verse_by_reference("John 3:16", "WEB")
    assert kjv.version == "KJV" and "begotten" in kjv.text
    assert web.version == "WEB" and "one and only" in web.text
    assert fs.get_verse_by_reference("John 3:16", "ASV") is None
    assert fs.get_verse_by_reference("Jude 1:99", "KJV") is None


def test_add_verse_skips_existing(fake_db) -> None:
    assert fs.add_verse(VerseRecord("Psalm 23:1", "first", "KJV"))
    assert not fs.add_verse(VerseRecord("Psalm 23:1", "second", "KJV"))
    assert fs.get_verse_by_reference("Psalm 23:1", "KJV").text == "first"
    assert fake_db.collection(fs.VERSES).docs.keys() == {"KJV|Psalm 23:1"}


def test_text_search_is_case_insensitive_and_version_scoped(fake_db) -> None:
    seed()
    refs = [r.reference for r in fs.search_verses_by_text("SO LOVED the world", "KJV")]
    assert refs == ["John 3:16"]
    assert [r.version for r in fs.search_verses_by_text("so loved", "WEB")] == ["WEB"]
    assert fs.search_verses_by_text("so loved", "ASV") == []


def test_text_search_respects_limit_and_blank_query(fake_db) -> None:
    seed()
    assert len(fs.search_verses_by_text("world", "KJV")) == 3
    assert len(fs.search_verses_by_text("world", "KJV", limit=2)) == 2
    assert fs.search_verses_by_text("   ", "KJV") == []


def test_store_adapter_delegates(fake_db) -> None:
    seed()
    store = fs.FirestoreVerseStore()
    assert store.get_verse("Romans 5:8", "KJV").reference == "Romans 5:8"
    assert [r.reference for r in store.search_verses("shepherd", "KJV")] == ["Psalm 23:1"]


def test_verse_counts(fake_db) -> None:
    seed()
    assert fs.get_verses_count_by_version() == {"KJV": 5, "WEB": 1}
    assert fs.get_verses_count() == 6


def test_users(fake_db) -> None:
    user_id = fs.create_user("pastor", "hash")
    assert fs.get_user_by_username("pastor")["_id"] == user_id
    assert fs.get_user(user_id)["username"] == "pastor"
    assert fs.get_user_by_username("nobody") is None
    assert fs.get_user("missing") is None


def test_settings_roundtrip(fake_db) -> None:
    assert fs.get_settings("u1") is None
    fs.save_settings("u1", {"bibleVersion": "KJV", "fontSize": 24})
    assert fs.update_settings("u1", {"fontSize": 30}) == {"bibleVersion": "KJV", "fontSize": 30}


def test_history_newest_first_limited_and_per_user(fake_db) -> None:
    history = fake_db.collection(fs.HISTORY)
    start = datetime(2024, 1, 1)
    for i in range(25):
        history.add({"user_id": "u1", "reference": f"Psalm 119:{i}", "timestamp": start + timedelta(minutes=i)})
    history.add({"user_id": "u2", "reference": "John 3:16", "timestamp": start + timedelta(days=1)})

    items = fs.get_detection_history("u1")

    assert len(items) == 20
    assert items[0]["reference"] == "Psalm 119:24"
    assert items[-1]["reference"] == "Psalm 119:5"
    assert items[0]["timestamp"] == (start + timedelta(minutes=24)).isoformat()
    assert all("_id" in item for item in items)


def test_add_history_and_feedback_stamp_user(fake_db) -> None:
    item = fs.add_detection_history("u1", {"reference": "John 3:16", "confidence": 95})
    assert item["user_id"] == "u1"
    assert isinstance(item["timestamp"], str)

    feedback = fs.add_feedback("u1", {"transcription": "for god so loved", "selected_verse": "John 3:16"})
    stored = fake_db.collection(fs.FEEDBACK).docs[feedback["_id"]]
    assert stored["selected_verse"] == "John 3:16"
    assert stored["user_id"] == "u1"


def test_seed_sample_file(fake_db) -> None:
    from manage import seed_verses

    path = Path(__file__).resolve().parent.parent / "backend" / "data" / "sample_verses.json"
    added = seed_verses(path)
    assert added > 0
    assert fs.get_verses_count() == added
    assert seed_verses(path) == 0


def test_require_verse_raises_lookup_error(fake_db) -> None:
    seed()
    assert fs.require_verse("Psalm 23:1", "KJV").reference == "Psalm 23:1"
    with pytest.raises(VerseNotFoundError):
        fs.require_verse("Psalm 23:1", "WEB")
    with pytest.raises(LookupError):
        fs.require_verse("Jude 1:99", "KJV")
