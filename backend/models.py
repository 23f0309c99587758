"""Core data models for verse detection, realtime sessions and projection."""

from __future__ import annotations

import math
import threading
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Optional

from config import DEFAULT_BIBLE_VERSION, DEFAULT_CONFIDENCE_THRESHOLD


@dataclass(frozen=True)
class VerseRecord:
    reference: str
    text: str
    version: str


@dataclass
class VerseMatch:
    reference: str
    text: str
    version: str
    confidence: int

    @classmethod
    def from_record(cls, record: VerseRecord, confidence: int) -> "VerseMatch":
        return cls(
            reference=record.reference,
            text=record.text,
            version=record.version,
            confidence=confidence,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AISuggestion:
    reference: str
    confidence: int


@dataclass
class TranscriptionResult:
    text: str
    matches: list[VerseMatch] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"text": self.text, "matches": [m.to_dict() for m in self.matches]}


@dataclass
class DetectionSettings:
    bible_version: str = DEFAULT_BIBLE_VERSION
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD

    @classmethod
    def from_payload(cls, data: Optional[dict]) -> "DetectionSettings":
        if not isinstance(data, dict):
            data = {}
        version = data.get("bibleVersion") or DEFAULT_BIBLE_VERSION
        threshold = data.get("confidenceThreshold", DEFAULT_CONFIDENCE_THRESHOLD)
        # kept fractional: a threshold of 71.5 rejects a 71
        try:
            threshold = float(threshold) if not isinstance(threshold, bool) else None
        except (TypeError, ValueError):
            threshold = None
        if threshold is None or not math.isfinite(threshold):
            threshold = DEFAULT_CONFIDENCE_THRESHOLD
        return cls(bible_version=str(version), confidence_threshold=threshold)


class SessionState(str, Enum):
    CONNECTED = "CONNECTED"
    PROCESSING = "PROCESSING"
    ERROR = "ERROR"


@dataclass
class ConnectionSession:
    sid: str
    last_activity: float
    state: SessionState = SessionState.CONNECTED
    device_id: str = ""
    pending: int = 0
    # FIFO turnstile: each audio frame takes a ticket and waits for its turn
    next_ticket: int = 0
    serving: int = 0
    turn: threading.Condition = field(default_factory=threading.Condition, repr=False)


class ProjectionTransition(str, Enum):
    FADE_IN = "fade-in"
    FADE_OUT = "fade-out"
    NONE = "none"
