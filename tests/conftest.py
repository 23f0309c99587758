from __future__ import annotations

import itertools
from typing import Callable

import pytest

from models import VerseRecord


# ---------------------------------------------------------------
# In-memory Firestore
# ---------------------------------------------------------------

class FakeSnapshot:
    def __init__(self, doc_id: str, data: dict | None) -> None:
        self.id = doc_id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> dict | None:
        return dict(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, collection: "FakeCollection", doc_id: str) -> None:
        self._collection = collection
        self.id = doc_id

    def get(self) -> FakeSnapshot:
        return FakeSnapshot(self.id, self._collection.docs.get(self.id))

    def set(self, data: dict) -> None:
        self._collection.docs[self.id] = dict(data)

    def update(self, changes: dict) -> None:
        if self.id not in self._collection.docs:
            raise KeyError(self.id)
        self._collection.docs[self.id].update(changes)


class FakeQuery:
    def __init__(self, collection: "FakeCollection", filters=(), order=None, limit=None) -> None:
        self._collection = collection
        self._filters = list(filters)
        self._order = order
        self._limit = limit

    def where(self, field: str, op: str, value) -> "FakeQuery":
        assert op == "==", "fake only supports equality filters"
        return FakeQuery(self._collection, self._filters + [(field, value)], self._order, self._limit)

    def order_by(self, field: str, direction: str = "ASCENDING") -> "FakeQuery":
        return FakeQuery(self._collection, self._filters, (field, direction), self._limit)

    def limit(self, n: int) -> "FakeQuery":
        return FakeQuery(self._collection, self._filters, self._order, n)

    def stream(self):
        items = [
            (doc_id, data) for doc_id, data in self._collection.docs.items()
            if all(data.get(f) == v for f, v in self._filters)
        ]
        if self._order:
            field, direction = self._order
            items.sort(key=lambda kv: kv[1].get(field), reverse=direction == "DESCENDING")
        if self._limit is not None:
            items = items[: self._limit]
        return iter([FakeSnapshot(doc_id, data) for doc_id, data in items])


class FakeCollection(FakeQuery):
    _ids = itertools.count(1)

    def __init__(self) -> None:
        self.docs: dict[str, dict] = {}
        super().__init__(self)

    def document(self, doc_id: str) -> FakeDocumentRef:
        return FakeDocumentRef(self, doc_id)

    def add(self, data: dict):
        doc_id = f"doc{next(self._ids)}"
        self.docs[doc_id] = dict(data)
        return None, FakeDocumentRef(self, doc_id)


class FakeFirestore:
    def __init__(self) -> None:
        self.collections: dict[str, FakeCollection] = {}

    def collection(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection())


@pytest.fixture
def fake_db(monkeypatch):
    from services import firestore_service

    db = FakeFirestore()
    monkeypatch.setattr(firestore_service, "_db", db)
    return db


# ---------------------------------------------------------------
# Verse store / pipeline fakes
# ---------------------------------------------------------------

SAMPLE_VERSES = [
    VerseRecord("John 3:16", "For God so loved the world, that he gave his only begotten Son, "
                "that whosoever believeth in him should not perish, but have everlasting life.", "KJV"),
    VerseRecord("John 3:17", "For God sent not his Son into the world to condemn the world; "
                "but that the world through him might be saved.", "KJV"),
    VerseRecord("Romans 5:8", "But God commendeth his love toward us, in that, while we were yet "
                "sinners, Christ died for us.", "KJV"),
    VerseRecord("1 John 4:9", "In this was manifested the love of God toward us, because that God "
                "sent his only begotten Son into the world, that we might live through him.", "KJV"),
    VerseRecord("Psalm 23:1", "The LORD is my shepherd; I shall not want.", "KJV"),
    VerseRecord("John 3:16", "For God so loved the world, that he gave his one and only Son, that "
                "whoever believes in him should not perish, but have eternal life.", "WEB"),
]


class FakeVerseStore:
    """Exact lookups plus a scripted (or substring) search result."""

    def __init__(self, verses=SAMPLE_VERSES, search_results: dict | None = None) -> None:
        self.verses = {(v.reference, v.version): v for v in verses}
        self.search_results = search_results
        self.searches: list[tuple[str, str]] = []

    def get_verse(self, reference, version):
        return self.verses.get((reference, version))

    def search_verses(self, text, version, limit=10):
        self.searches.append((text, version))
        if self.search_results is not None:
            return list(self.search_results.get(version, []))[:limit]
        needle = text.lower()
        return [v for v in self.verses.values() if v.version == version and needle in v.text.lower()][:limit]


def make_records(n: int, version: str = "KJV") -> list[VerseRecord]:
    return [VerseRecord(f"Psalm 119:{i + 1}", f"search hit {i + 1}", version) for i in range(n)]


class FakePipeline:
    def __init__(self, handler: Callable | None = None) -> None:
        self.calls: list[tuple[bytes, object]] = []
        self._handler = handler

    def process_audio(self, audio, settings):
        self.calls.append((audio, settings))
        if self._handler is not None:
            return self._handler(audio, settings)
        from models import TranscriptionResult
        return TranscriptionResult(text=audio.decode("utf-8"), matches=[])


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTimer:
    def __init__(self, due: float, callback) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Runs callbacks only when the test advances time."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[FakeTimer] = []

    def call_later(self, delay_s, callback):
        timer = FakeTimer(self.now + delay_s, callback)
        self.timers.append(timer)
        return timer

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self.timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.timers.remove(timer)
            self.now = timer.due
            timer.callback()
        self.now = target

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled]
