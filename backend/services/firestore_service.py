"""
Firestore helper functions.
We call firestore.client() lazily through get_db() to avoid initialization-order issues.

Collections:
- bible_verses       one document per (version, reference), id "<version>|<reference>"
- users              operator accounts (username + werkzeug password hash)
- settings           one document per user id
- detection_history  verses an operator projected
- feedback           transcript / selected verse pairs for tuning
"""

from datetime import datetime

from firebase_admin import firestore

from config import HISTORY_LIMIT
from errors import VerseNotFoundError
from models import VerseRecord

VERSES = "bible_verses"
USERS = "users"
SETTINGS = "settings"
HISTORY = "detection_history"
FEEDBACK = "feedback"

_db = None


def get_db():
    global _db
    if _db is None:
        _db = firestore.client()
    return _db


def verse_doc_id(reference, version):
    return f"{version}|{reference}"


def _to_record(data):
    return VerseRecord(
        reference=data.get("reference", ""),
        text=data.get("text", ""),
        version=data.get("version", ""),
    )


def _iso_timestamp(item):
    ts = item.get("timestamp")
    if ts:
        try:
            item["timestamp"] = ts.isoformat()
        except AttributeError:
            pass
    return item


# --- verses ---------------------------------------------------------------

def get_verse_by_reference(reference, version):
    doc = get_db().collection(VERSES).document(verse_doc_id(reference, version)).get()
    if not doc.exists:
        return None
    return _to_record(doc.to_dict() or {})


def require_verse(reference, version):
    record = get_verse_by_reference(reference, version)
    if record is None:
        raise VerseNotFoundError(f"{reference} ({version}) not found")
    return record


def search_verses_by_text(text, version, limit=10):
    """
    Case-insensitive substring search over verse text for one version.
    Streams the version and filters in Python; Firestore has no LIKE operator.
    """
    needle = (text or "").strip().lower()
    if not needle:
        return []
    docs = get_db().collection(VERSES).where("version", "==", version).stream()
    results = []
    for d in docs:
        data = d.to_dict() or {}
        if needle in str(data.get("text", "")).lower():
            results.append(_to_record(data))
            if len(results) >= limit:
                break
    return results


def add_verse(record):
    """Insert a verse unless (reference, version) already exists. Returns True if written."""
    ref = get_db().collection(VERSES).document(verse_doc_id(record.reference, record.version))
    if ref.get().exists:
        return False
    ref.set({"reference": record.reference, "text": record.text, "version": record.version})
    return True


def get_verses_count_by_version():
    counts = {}
    for d in get_db().collection(VERSES).stream():
        version = (d.to_dict() or {}).get("version", "unknown")
        counts[version] = counts.get(version, 0) + 1
    return counts


def get_verses_count():
    return sum(get_verses_count_by_version().values())


class FirestoreVerseStore:
    """Read-only verse lookups used by the detection pipeline."""

    def get_verse(self, reference, version):
        return get_verse_by_reference(reference, version)

    def search_verses(self, text, version, limit=10):
        return search_verses_by_text(text, version, limit=limit)


# --- users ----------------------------------------------------------------

def get_user_by_username(username):
    docs = get_db().collection(USERS).where("username", "==", username).limit(1).stream()
    for d in docs:
        user = d.to_dict() or {}
        user["_id"] = d.id
        return user
    return None


def get_user(user_id):
    doc = get_db().collection(USERS).document(user_id).get()
    if not doc.exists:
        return None
    user = doc.to_dict() or {}
    user["_id"] = doc.id
    return user


def create_user(username, password_hash):
    _, ref = get_db().collection(USERS).add({
        "username": username,
        "password": password_hash,
        "created_at": datetime.utcnow(),
    })
    return ref.id


# --- settings -------------------------------------------------------------

def get_settings(user_id):
    doc = get_db().collection(SETTINGS).document(user_id).get()
    if not doc.exists:
        return None
    return doc.to_dict()


def save_settings(user_id, data):
    get_db().collection(SETTINGS).document(user_id).set(data)
    return data


def update_settings(user_id, changes):
    ref = get_db().collection(SETTINGS).document(user_id)
    ref.update(changes)
    return ref.get().to_dict()


# --- history & feedback ---------------------------------------------------

def add_detection_history(user_id, entry):
    data = {**entry, "user_id": user_id, "timestamp": datetime.utcnow()}
    _, ref = get_db().collection(HISTORY).add(data)
    data["_id"] = ref.id
    return _iso_timestamp(data)


def get_detection_history(user_id, limit=HISTORY_LIMIT):
    q = get_db().collection(HISTORY).where("user_id", "==", user_id)
    docs = q.order_by("timestamp", direction=firestore.Query.DESCENDING).limit(limit).stream()
    items = []
    for d in docs:
        item = d.to_dict()
        item["_id"] = d.id
        items.append(_iso_timestamp(item))
    return items


def add_feedback(user_id, entry):
    data = {**entry, "user_id": user_id, "timestamp": datetime.utcnow()}
    _, ref = get_db().collection(FEEDBACK).add(data)
    data["_id"] = ref.id
    return _iso_timestamp(data)
