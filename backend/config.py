"""
Central configuration. Loads environment variables from ../.env.
"""
import os
from dotenv import load_dotenv
from pathlib import Path

# Load .env from project root
root = Path(__file__).resolve().parents[1]
load_dotenv(root / ".env")

SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Gemini is used for verse detection and, optionally, transcription.
# A missing key is only noticed when the first audio cycle needs it.
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash-lite")

# "google-speech" (Cloud Speech-to-Text) or "gemini"
TRANSCRIPTION_PROVIDER = os.getenv("TRANSCRIPTION_PROVIDER", "google-speech")
SPEECH_LANGUAGE = os.getenv("SPEECH_LANGUAGE", "en-US")

# Firebase service account used for Firestore
FIREBASE_KEY_PATH = os.getenv("FIREBASE_KEY_PATH", "firebase_admin_key.json")

# Realtime relay
IDLE_TIMEOUT_SECONDS = float(os.getenv("IDLE_TIMEOUT_SECONDS", "30"))
REAPER_INTERVAL_SECONDS = float(os.getenv("REAPER_INTERVAL_SECONDS", "30"))
MAX_PENDING_AUDIO = int(os.getenv("MAX_PENDING_AUDIO", "2"))

# Verse matching
MAX_MATCHES = 10
SEARCH_FALLBACK_MIN_MATCHES = int(os.getenv("SEARCH_FALLBACK_MIN_MATCHES", "5"))
EXPLICIT_REFERENCE_CONFIDENCE = 95
DEFAULT_BIBLE_VERSION = "KJV"
DEFAULT_CONFIDENCE_THRESHOLD = 70

HISTORY_LIMIT = 20

# Projection
FADE_DURATION_SECONDS = 0.2
