"""
Per-connection realtime relay: audio frames in, transcription frames out.

Transport-independent. The socket layer supplies two callables:
    send(sid, message_dict)   deliver one frame; raises TransportError if it cannot
    close(sid)                drop a connection

Session states: CONNECTED -> PROCESSING -> CONNECTED on success, or
PROCESSING -> ERROR on failure. ERROR is bookkeeping only; the next
audio frame is processed normally.

Audio frames on one connection are processed one at a time, in the order
they arrived. At most MAX_PENDING_AUDIO frames may be queued behind the
one in flight; extra frames are dropped with an error frame.
"""

import base64
import binascii
import json
import logging
import threading
import time

from config import IDLE_TIMEOUT_SECONDS, MAX_PENDING_AUDIO
from errors import (
    ERROR_MESSAGES,
    INVALID_MESSAGE,
    PROCESSING_FAILED,
    SESSION_BUSY,
    TRANSCRIPTION_FAILED,
    InvalidMessageError,
    TransportError,
    TranscriptionError,
)
from models import ConnectionSession, DetectionSettings, SessionState

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Live sessions keyed by connection id. Safe to use from several threads."""

    def __init__(self):
        self._lock = threading.RLock()
        self._sessions = {}

    def add(self, sid, now):
        with self._lock:
            session = self._sessions.get(sid)
            if session is None:
                session = ConnectionSession(sid=sid, last_activity=now)
                self._sessions[sid] = session
            return session

    def get(self, sid):
        with self._lock:
            return self._sessions.get(sid)

    def remove(self, sid):
        with self._lock:
            return self._sessions.pop(sid, None)

    def idle_since(self, cutoff):
        with self._lock:
            return [s for s in self._sessions.values() if s.last_activity < cutoff]

    def __len__(self):
        with self._lock:
            return len(self._sessions)

    def __contains__(self, sid):
        with self._lock:
            return sid in self._sessions


def parse_audio_message(raw):
    """Decode an inbound frame into (audio bytes, device id, DetectionSettings)."""
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise InvalidMessageError(f"frame is not JSON: {e}") from e
    if not isinstance(raw, dict) or raw.get("type") != "audio":
        raise InvalidMessageError("expected an audio frame")

    payload = raw.get("payload")
    if not isinstance(payload, dict):
        raise InvalidMessageError("audio payload must be an object")
    data = payload.get("data")
    if not isinstance(data, str) or not data:
        raise InvalidMessageError("audio frame has no data")
    settings = payload.get("settings")
    if settings is not None and not isinstance(settings, dict):
        raise InvalidMessageError("audio settings must be an object")
    try:
        audio = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidMessageError(f"audio data is not base64: {e}") from e

    return audio, str(payload.get("deviceId") or ""), DetectionSettings.from_payload(settings)


def error_frame(code):
    return {"type": "error", "payload": {"message": ERROR_MESSAGES[code]}}


class RealtimeRelay:
    def __init__(self, pipeline, send, close, registry=None, clock=time.monotonic,
                 idle_timeout_s=IDLE_TIMEOUT_SECONDS, max_pending=MAX_PENDING_AUDIO):
        self._pipeline = pipeline
        self._send = send
        self._close = close
        self.registry = registry if registry is not None else SessionRegistry()
        self._clock = clock
        self._idle_timeout_s = idle_timeout_s
        self._max_pending = max_pending
        self._pending_lock = threading.Lock()

    def connect(self, sid):
        logger.info("Realtime client connected: %s", sid)
        return self.registry.add(sid, self._clock())

    def disconnect(self, sid):
        if self.registry.remove(sid) is not None:
            logger.info("Realtime client disconnected: %s", sid)

    def handle_message(self, sid, raw):
        session = self.registry.get(sid)
        if session is None:
            return
        session.last_activity = self._clock()

        try:
            audio, device_id, settings = parse_audio_message(raw)
        except InvalidMessageError as e:
            logger.warning("Rejected frame from %s: %s", sid, e)
            self._deliver(sid, error_frame(INVALID_MESSAGE))
            return

        with self._pending_lock:
            if session.pending > self._max_pending:
                ticket = None
            else:
                session.pending += 1
                ticket = session.next_ticket
                session.next_ticket += 1
        if ticket is None:
            logger.warning("Dropping audio from %s: %d chunks already queued", sid, session.pending)
            self._deliver(sid, error_frame(SESSION_BUSY))
            return

        with session.turn:
            session.turn.wait_for(lambda: session.serving == ticket)
        try:
            self._process(session, audio, device_id, settings)
        finally:
            with session.turn:
                session.serving += 1
                session.turn.notify_all()
            with self._pending_lock:
                session.pending -= 1

    def _process(self, session, audio, device_id, settings):
        session.state = SessionState.PROCESSING
        if device_id:
            session.device_id = device_id
        try:
            result = self._pipeline.process_audio(audio, settings)
        except TranscriptionError as e:
            logger.warning("Transcription failed for %s: %s", session.sid, e)
            self._fail(session, TRANSCRIPTION_FAILED)
            return
        except Exception:
            logger.exception("Audio processing failed for %s", session.sid)
            self._fail(session, PROCESSING_FAILED)
            return

        if session.sid not in self.registry:
            # reaped or closed while the pipeline was running
            return
        self._deliver(session.sid, {"type": "transcription", "payload": result.to_dict()})
        session.state = SessionState.CONNECTED

    def _deliver(self, sid, message):
        try:
            self._send(sid, message)
        except TransportError as e:
            logger.warning("Dropping session %s, send failed: %s", sid, e)
            self.registry.remove(sid)

    def _fail(self, session, code):
        session.state = SessionState.ERROR
        if session.sid in self.registry:
            self._deliver(session.sid, error_frame(code))

    def reap_idle(self):
        """Close every session with no activity in the last idle_timeout_s seconds."""
        cutoff = self._clock() - self._idle_timeout_s
        reaped = []
        for session in self.registry.idle_since(cutoff):
            logger.info("Closing inactive realtime connection %s", session.sid)
            self.registry.remove(session.sid)
            try:
                self._close(session.sid)
            except Exception as e:
                logger.warning("Closing %s failed: %s", session.sid, e)
            reaped.append(session.sid)
        return reaped

    def run_reaper(self, interval_s, sleep=time.sleep, stop=None):
        """Sweep idle sessions every interval_s seconds until stop is set."""
        while stop is None or not stop.is_set():
            sleep(interval_s)
            self.reap_idle()
