"""
Speech-to-text for browser audio chunks.

The audio is written to a temporary file for the duration of the call and
removed afterwards, whether or not the provider succeeds.

Providers:
- google-speech: Cloud Speech-to-Text, WEBM_OPUS (MediaRecorder default)
- gemini:        Gemini audio understanding via file upload
"""

import logging
import os
import tempfile
from contextlib import contextmanager

from google.cloud import speech

from config import SPEECH_LANGUAGE, TRANSCRIPTION_PROVIDER
from errors import TranscriptionError
from services import gemini_service

logger = logging.getLogger(__name__)

AUDIO_SUFFIX = ".webm"
AUDIO_MIME_TYPE = "audio/webm"

_speech_client = None


def get_speech_client():
    global _speech_client
    if _speech_client is None:
        _speech_client = speech.SpeechClient()
    return _speech_client


@contextmanager
def temporary_audio_file(audio_bytes, suffix=AUDIO_SUFFIX):
    fd, path = tempfile.mkstemp(prefix="audio-", suffix=suffix)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(audio_bytes)
        yield path
    finally:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass


def _google_speech_transcribe(path, language=SPEECH_LANGUAGE):
    with open(path, "rb") as audio_file:
        content = audio_file.read()

    config = speech.RecognitionConfig(
        encoding=speech.RecognitionConfig.AudioEncoding.WEBM_OPUS,
        sample_rate_hertz=48000,
        language_code=language,
        enable_automatic_punctuation=True,
    )
    audio = speech.RecognitionAudio(content=content)
    response = get_speech_client().recognize(config=config, audio=audio)

    text = ""
    for result in response.results:
        text += result.alternatives[0].transcript + " "
    return text.strip()


def _gemini_transcribe(path, language=SPEECH_LANGUAGE):
    return gemini_service.transcribe_file(path, AUDIO_MIME_TYPE)


PROVIDERS = {
    "google-speech": _google_speech_transcribe,
    "gemini": _gemini_transcribe,
}


def transcribe(audio_bytes, provider=None):
    """
    Transcribe one audio chunk. Raises TranscriptionError when the provider
    fails or hears nothing.
    """
    if not audio_bytes:
        raise TranscriptionError("empty audio payload")

    provider = provider or TRANSCRIPTION_PROVIDER
    backend = PROVIDERS.get(provider)
    if backend is None:
        raise TranscriptionError(f"unknown transcription provider: {provider}")

    with temporary_audio_file(audio_bytes) as path:
        try:
            text = backend(path)
        except Exception as e:
            raise TranscriptionError(f"speech recognition failed: {e}") from e

    if not text or not text.strip():
        raise TranscriptionError("speech recognition returned no text")
    return text.strip()
