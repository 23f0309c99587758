"""
Gemini AI integration for:
- detect_verses(text): returns a list of AISuggestion (reference + confidence)
- transcribe_file(path, mime_type): plain transcript of an uploaded audio file

We use google-generativeai SDK. The model is configured on first use so the
app can start without a key; the first cycle that needs Gemini fails instead.
"""

import json
import logging
import math

import google.generativeai as genai

from config import GEMINI_API_KEY, GEMINI_MODEL
from errors import DetectionError
from models import AISuggestion

logger = logging.getLogger(__name__)

_model = None


def get_model():
    global _model
    if _model is None:
        if not GEMINI_API_KEY:
            raise RuntimeError("GEMINI_API_KEY not set in environment (.env)")
        genai.configure(api_key=GEMINI_API_KEY)
        _model = genai.GenerativeModel(GEMINI_MODEL)
    return _model


DETECTION_PROMPT = """
You are a Bible verse detection system. A preacher said the text below.
Identify Bible verses that are quoted, paraphrased or cited in it.
Return ONLY valid JSON (no markdown) with this structure:
{{
  "verses": [
    {{"reference": "John 3:16", "confidence_score": 0}}
  ]
}}
Use "<Book> <chapter>:<verse>" references (e.g. "1 John 4:9", "Psalm 23:1").
confidence_score is an integer from 0 to 100. Return an empty list when nothing matches.

Text:
{text}
"""

TRANSCRIBE_PROMPT = (
    "Transcribe the speech in this audio recording verbatim. "
    "Return only the transcript text, with no commentary."
)


def _coerce_confidence(value):
    """Clamp a model-supplied score to an int in [0, 100]; None when it is not a number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return int(round(min(max(value, 0), 100)))


def parse_detection_response(raw_text):
    """
    Parse the model's JSON into AISuggestion objects.
    Raises DetectionError if the payload is not JSON at all; individual
    entries with a missing reference or a non-numeric score are dropped.
    """
    try:
        parsed = json.loads(raw_text)
    except (TypeError, ValueError) as e:
        raise DetectionError(f"malformed detection response: {e}") from e

    if isinstance(parsed, dict):
        entries = parsed.get("verses", [])
    else:
        entries = parsed
    if not isinstance(entries, list):
        raise DetectionError("detection response has no verse list")

    suggestions = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        reference = entry.get("reference") or entry.get("verse_reference")
        if not isinstance(reference, str) or not reference.strip():
            continue
        score = entry.get("confidence_score", entry.get("confidence"))
        confidence = _coerce_confidence(score)
        if confidence is None:
            logger.warning("Dropping AI suggestion %r with invalid confidence %r", reference, score)
            continue
        suggestions.append(AISuggestion(reference=reference.strip(), confidence=confidence))
    return suggestions


def detect_verses(text):
    """Ask Gemini which verses the transcript refers to."""
    if not text or not text.strip():
        return []
    try:
        resp = get_model().generate_content(
            DETECTION_PROMPT.format(text=text),
            generation_config={"response_mime_type": "application/json"},
        )
        raw_text = resp.text.strip()
    except Exception as e:
        raise DetectionError(f"verse detection failed: {e}") from e
    return parse_detection_response(raw_text)


def transcribe_file(path, mime_type):
    """Upload an audio file to Gemini and return the transcript text."""
    model = get_model()
    uploaded = genai.upload_file(path=path, mime_type=mime_type)
    try:
        resp = model.generate_content([TRANSCRIBE_PROMPT, uploaded])
        return resp.text.strip()
    finally:
        try:
            genai.delete_file(uploaded.name)
        except Exception as e:
            logger.warning("Failed to delete uploaded audio %s: %s", uploaded.name, e)
