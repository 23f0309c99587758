"""
Turns a transcript into ranked verse matches.

Sources, in precedence order (first seen wins on duplicate references):
1. explicit "<Book> <chapter>:<verse>[-<verse>]" citations, confidence 95
2. AI suggestions, with the model's (already clamped) confidence
3. substring search over verse text, only when fewer than
   SEARCH_FALLBACK_MIN_MATCHES were found; scored max(92 - 3*rank, 50)
   and filtered by the caller's confidence threshold

The result is stable-sorted by confidence and cut to MAX_MATCHES.
"""

import logging
import re

from config import (
    EXPLICIT_REFERENCE_CONFIDENCE,
    MAX_MATCHES,
    SEARCH_FALLBACK_MIN_MATCHES,
)
from errors import DetectionError, TranscriptionError
from models import DetectionSettings, TranscriptionResult, VerseMatch

logger = logging.getLogger(__name__)

REFERENCE_PATTERN = re.compile(r"([1-3]?\s?[A-Za-z]+)\s+(\d+):(\d+)(?:-(\d+))?")
EXACT_REFERENCE_PATTERN = re.compile(r"^([1-3]?\s?[A-Za-z]+)\s+(\d+):(\d+)(?:-(\d+))?$")


def normalize_reference(book, chapter, verse, verse_end=None):
    """'1 john', '3', '16' -> '1 John 3:16'"""
    book = " ".join(part.capitalize() for part in book.split())
    reference = f"{book} {int(chapter)}:{int(verse)}"
    if verse_end:
        reference += f"-{int(verse_end)}"
    return reference


def extract_references(text):
    """All explicit citations in the text, normalized, in order of appearance."""
    refs = []
    for m in REFERENCE_PATTERN.finditer(text or ""):
        ref = normalize_reference(*m.groups())
        if ref not in refs:
            refs.append(ref)
    return refs


def is_reference(query):
    return bool(EXACT_REFERENCE_PATTERN.match((query or "").strip()))


def parse_reference(query):
    m = EXACT_REFERENCE_PATTERN.match((query or "").strip())
    if not m:
        return None
    return normalize_reference(*m.groups())


def search_confidence(rank):
    return max(92 - 3 * rank, 50)


def merge_matches(transcript, ai_suggestions, store, settings,
                  fallback_min=SEARCH_FALLBACK_MIN_MATCHES, max_matches=MAX_MATCHES):
    version = settings.bible_version
    matches = []
    seen = set()

    def add(match):
        if match.reference in seen:
            return
        seen.add(match.reference)
        matches.append(match)

    for reference in extract_references(transcript):
        record = store.get_verse(reference, version)
        if record:
            add(VerseMatch.from_record(record, EXPLICIT_REFERENCE_CONFIDENCE))

    for suggestion in ai_suggestions or []:
        record = store.get_verse(suggestion.reference, version)
        if record:
            add(VerseMatch.from_record(record, suggestion.confidence))

    if len(matches) < fallback_min:
        for rank, record in enumerate(store.search_verses(transcript, version)):
            if len(matches) >= max_matches:
                break
            confidence = search_confidence(rank)
            if confidence < settings.confidence_threshold:
                continue
            add(VerseMatch.from_record(record, confidence))

    matches.sort(key=lambda m: m.confidence, reverse=True)
    return matches[:max_matches]


class DetectionPipeline:
    """
    transcribe -> detect -> merge for one audio chunk.

    transcriber(audio_bytes) -> str, raises TranscriptionError
    detector(text) -> list[AISuggestion], raises DetectionError
    store: get_verse(reference, version) / search_verses(text, version)
    """

    def __init__(self, transcriber, detector, store):
        self._transcriber = transcriber
        self._detector = detector
        self._store = store

    def detect(self, text, settings=None):
        settings = settings or DetectionSettings()
        try:
            suggestions = self._detector(text)
        except DetectionError as e:
            logger.warning("AI detection unavailable, falling back to search: %s", e)
            suggestions = []
        matches = merge_matches(text, suggestions, self._store, settings)
        return TranscriptionResult(text=text, matches=matches)

    def process_audio(self, audio_bytes, settings=None):
        text = self._transcriber(audio_bytes)
        if not text or not text.strip():
            raise TranscriptionError("speech recognition returned no text")
        return self.detect(text.strip(), settings)
