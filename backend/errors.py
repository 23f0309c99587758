"""Exception types shared by the services and the user-facing messages for them."""


class VerseProjectionError(Exception):
    """Base class for pipeline errors."""


class TranscriptionError(VerseProjectionError):
    """Speech API failed or returned no text. Fatal to the current cycle."""


class DetectionError(VerseProjectionError):
    """LLM call failed or its response could not be parsed. Recoverable."""


class VerseNotFoundError(VerseProjectionError, LookupError):
    pass


class TransportError(VerseProjectionError):
    pass


class InvalidMessageError(VerseProjectionError):
    """Inbound socket or projection message is malformed."""


TRANSCRIPTION_FAILED = "TRANSCRIPTION_FAILED"
PROCESSING_FAILED = "PROCESSING_FAILED"
INVALID_MESSAGE = "INVALID_MESSAGE"
SESSION_BUSY = "SESSION_BUSY"

ERROR_MESSAGES = {
    TRANSCRIPTION_FAILED: "Transcription failed, please retry.",
    PROCESSING_FAILED: "Failed to process audio data",
    INVALID_MESSAGE: "Message format is invalid.",
    SESSION_BUSY: "Still processing previous audio, chunk dropped.",
}
