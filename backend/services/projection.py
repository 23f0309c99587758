"""
Projection display state and the channels that carry it to a screen.

A ProjectionDisplay owns what one operator's projection surface shows. It
accepts commands (PROJECT_VERSE, UPDATE_SETTINGS, HIDE, SHOW, CLEAR) and
publishes a full frame on its channel after every change:

    {"type": "projection-frame",
     "payload": {"verse": {...} | None, "visible": bool,
                 "transition": "fade-in" | "fade-out" | "none",
                 "settings": {...}}}

Channels:
- LocalChannel     in-process subscribers (dashboard preview, tests)
- SocketIOChannel  broadcast to a Socket.IO room joined by projection windows

Timers go through an injected scheduler (anything with call_later) so tests
can drive time by hand.
"""

import logging
import threading
from dataclasses import asdict, dataclass, fields

from config import FADE_DURATION_SECONDS
from errors import InvalidMessageError
from models import ProjectionTransition

logger = logging.getLogger(__name__)


@dataclass
class ProjectionSettings:
    fontSize: int = 48
    textColor: str = "#FFFFFF"
    backgroundColor: str = "#000000"
    fontFamily: str = "Inter"
    fontWeight: str = "normal"
    textAlign: str = "center"
    theme: str = "dark"
    backgroundImage: str = None
    textShadow: bool = True
    fadeAnimation: bool = True
    displayDurationSeconds: float = 0

    def to_dict(self):
        return asdict(self)


SETTING_ALIASES = {
    "projectionTheme": "theme",
    "displayDuration": "displayDurationSeconds",
}
THEMES = ("dark", "light", "gradient", "custom")
TEXT_ALIGNMENTS = ("left", "center", "right", "justify")
SETTING_NAMES = {f.name for f in fields(ProjectionSettings)}


def validate_settings(partial):
    """Check a partial settings dict, returning it with aliases resolved."""
    if not isinstance(partial, dict):
        raise InvalidMessageError("settings must be an object")
    clean = {}
    for key, value in partial.items():
        key = SETTING_ALIASES.get(key, key)
        if key not in SETTING_NAMES:
            raise InvalidMessageError(f"unknown projection setting: {key}")
        if key in ("textShadow", "fadeAnimation"):
            if not isinstance(value, bool):
                raise InvalidMessageError(f"{key} must be a boolean")
        elif key in ("fontSize", "displayDurationSeconds"):
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise InvalidMessageError(f"{key} must be a non-negative number")
        elif key == "backgroundImage":
            if value is not None and not isinstance(value, str):
                raise InvalidMessageError("backgroundImage must be a string or null")
        elif not isinstance(value, str):
            raise InvalidMessageError(f"{key} must be a string")
        if key == "theme" and value not in THEMES:
            raise InvalidMessageError(f"unknown theme: {value}")
        if key == "textAlign" and value not in TEXT_ALIGNMENTS:
            raise InvalidMessageError(f"unknown textAlign: {value}")
        clean[key] = value
    return clean


# --- commands ---------------------------------------------------------------

PROJECT_VERSE = "PROJECT_VERSE"
UPDATE_SETTINGS = "UPDATE_SETTINGS"
HIDE = "HIDE"
SHOW = "SHOW"
CLEAR = "CLEAR"

COMMAND_TYPES = {
    "project-verse": PROJECT_VERSE,
    "PROJECT_VERSE": PROJECT_VERSE,
    "update-settings": UPDATE_SETTINGS,
    "UPDATE_SETTINGS": UPDATE_SETTINGS,
    "HIDE_PROJECTION": HIDE,
    "HIDE_VERSE": HIDE,
    "SHOW_PROJECTION": SHOW,
    "CLEAR_PROJECTION": CLEAR,
    "CLEAR_VERSE": CLEAR,
}


def _validate_verse(verse):
    if not isinstance(verse, dict):
        raise InvalidMessageError("verse must be an object")
    for key in ("reference", "text"):
        if not isinstance(verse.get(key), str) or not verse[key]:
            raise InvalidMessageError(f"verse.{key} is required")
    return {
        "reference": verse["reference"],
        "text": verse["text"],
        "version": str(verse.get("version") or ""),
        "confidence": verse.get("confidence"),
    }


def parse_command(message):
    """
    Map a cross-window message to (command, argument). Both the
    {"type": "project-verse", "payload": ...} form and the control form
    {"type": "PROJECT_VERSE", "verse": ...} / {"type": "UPDATE_SETTINGS", "settings": ...}
    are accepted.
    """
    if not isinstance(message, dict):
        raise InvalidMessageError("projection message must be an object")
    command = COMMAND_TYPES.get(message.get("type"))
    if command is None:
        raise InvalidMessageError(f"unknown projection message type: {message.get('type')!r}")

    if command == PROJECT_VERSE:
        return command, _validate_verse(message.get("payload", message.get("verse")))
    if command == UPDATE_SETTINGS:
        return command, validate_settings(message.get("payload", message.get("settings")))
    return command, None


# --- scheduling -------------------------------------------------------------

class ThreadingScheduler:
    """call_later(delay_s, callback) on a daemon timer; returns something with cancel()."""

    def call_later(self, delay_s, callback):
        timer = threading.Timer(delay_s, callback)
        timer.daemon = True
        timer.start()
        return timer


# --- channels ---------------------------------------------------------------

class LocalChannel:
    def __init__(self):
        self._subscribers = []

    def subscribe(self, callback):
        """Register a frame callback; returns a function that unsubscribes it."""
        self._subscribers.append(callback)
        return lambda: self._subscribers.remove(callback)

    def publish(self, message):
        for callback in list(self._subscribers):
            callback(message)


class SocketIOChannel:
    def __init__(self, socketio, room, event="projection-frame"):
        self._socketio = socketio
        self.room = room
        self._event = event

    def publish(self, message):
        self._socketio.emit(self._event, message, to=self.room)


# --- display ----------------------------------------------------------------

class ProjectionDisplay:
    """
    PROJECT_VERSE while a verse is visible and fadeAnimation is on publishes a
    fade-out frame of the old verse, waits fade_duration_s, then publishes the
    new verse with a fade-in. A frame never carries more than one verse.

    With displayDurationSeconds > 0 the verse is cleared after that long;
    each new verse restarts the timer.
    """

    def __init__(self, channel, scheduler=None, settings=None, fade_duration_s=FADE_DURATION_SECONDS):
        self._channel = channel
        self._scheduler = scheduler or ThreadingScheduler()
        self.settings = settings or ProjectionSettings()
        self._fade_duration_s = fade_duration_s

        self._lock = threading.RLock()
        self.verse = None
        self.visible = False
        self._pending_verse = None
        self._swap_timer = None
        self._swap_token = 0
        self._expiry_timer = None
        self._expiry_token = 0

    @property
    def fading(self):
        return self._pending_verse is not None

    def handle(self, message):
        command, argument = parse_command(message)
        logger.debug("Projection command %s", command)
        if command == PROJECT_VERSE:
            self.project(argument)
        elif command == UPDATE_SETTINGS:
            self.update_settings(argument)
        elif command == HIDE:
            self.hide()
        elif command == SHOW:
            self.show()
        elif command == CLEAR:
            self.clear()

    def project(self, verse):
        with self._lock:
            self._cancel_expiry()
            if self._pending_verse is not None:
                # already fading out; the newest selection wins
                self._pending_verse = verse
                return
            if self.verse is not None and self.visible and self.settings.fadeAnimation:
                self._pending_verse = verse
                self._publish(ProjectionTransition.FADE_OUT)
                self._swap_token += 1
                token = self._swap_token
                self._swap_timer = self._scheduler.call_later(
                    self._fade_duration_s, lambda: self._finish_fade(token)
                )
                return
            self._show_verse(verse)

    def _finish_fade(self, token):
        with self._lock:
            if token != self._swap_token or self._pending_verse is None:
                return
            verse, self._pending_verse = self._pending_verse, None
            self._swap_timer = None
            self._show_verse(verse)

    def _show_verse(self, verse):
        self.verse = verse
        self.visible = True
        if self.settings.fadeAnimation:
            self._publish(ProjectionTransition.FADE_IN)
        else:
            self._publish(ProjectionTransition.NONE)
        self._start_expiry()

    def _start_expiry(self):
        duration = self.settings.displayDurationSeconds
        if not duration or duration <= 0:
            return
        self._expiry_token += 1
        token = self._expiry_token
        self._expiry_timer = self._scheduler.call_later(duration, lambda: self._expire(token))

    def _expire(self, token):
        with self._lock:
            if token != self._expiry_token:
                return
            logger.debug("Projection display time elapsed, clearing")
            self._expiry_timer = None
            self._reset()
            self._publish(ProjectionTransition.NONE)

    def update_settings(self, partial):
        partial = validate_settings(partial)
        with self._lock:
            for key, value in partial.items():
                setattr(self.settings, key, value)
            self._publish(ProjectionTransition.NONE)

    def hide(self):
        with self._lock:
            if self._pending_verse is not None:
                # the fade is cut short; the pending verse becomes current, hidden
                self.verse, self._pending_verse = self._pending_verse, None
                self._cancel_swap()
                self._start_expiry()
            self.visible = False
            self._publish(ProjectionTransition.NONE)

    def show(self):
        with self._lock:
            self.visible = self.verse is not None
            self._publish(ProjectionTransition.NONE)

    def clear(self):
        with self._lock:
            self._cancel_expiry()
            self._reset()
            self._publish(ProjectionTransition.NONE)

    def _reset(self):
        self._cancel_swap()
        self._pending_verse = None
        self.verse = None
        self.visible = False

    def _cancel_swap(self):
        self._swap_token += 1
        if self._swap_timer is not None:
            self._swap_timer.cancel()
            self._swap_timer = None

    def _cancel_expiry(self):
        self._expiry_token += 1
        if self._expiry_timer is not None:
            self._expiry_timer.cancel()
            self._expiry_timer = None

    def frame(self, transition=ProjectionTransition.NONE):
        return {
            "type": "projection-frame",
            "payload": {
                "verse": self.verse,
                "visible": self.visible,
                "transition": transition.value,
                "settings": self.settings.to_dict(),
            },
        }

    def _publish(self, transition):
        self._channel.publish(self.frame(transition))


class ProjectionRegistry:
    """One display per operator, created on first use."""

    def __init__(self, channel_factory, scheduler=None):
        self._channel_factory = channel_factory
        self._scheduler = scheduler
        self._lock = threading.Lock()
        self._displays = {}

    def get(self, user_id, settings=None):
        with self._lock:
            display = self._displays.get(user_id)
            if display is None:
                initial = ProjectionSettings()
                for key, value in validate_settings(settings or {}).items():
                    setattr(initial, key, value)
                display = ProjectionDisplay(
                    self._channel_factory(user_id), scheduler=self._scheduler, settings=initial
                )
                self._displays[user_id] = display
            return display

    def find(self, user_id):
        with self._lock:
            return self._displays.get(user_id)


def projection_room(user_id):
    return f"projection:{user_id}"
