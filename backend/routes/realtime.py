"""
Socket handlers for the realtime audio relay (default namespace).

Client -> server:  send('{"type": "audio", "payload": {"data": <base64>, "deviceId": ..., "settings": {...}}}')
Server -> client:  message '{"type": "transcription", "payload": {"text": ..., "matches": [...]}}'
                   message '{"type": "error", "payload": {"message": ...}}'
"""

from flask import request
import logging

from config import REAPER_INTERVAL_SECONDS
from extensions import relay, socketio

logger = logging.getLogger(__name__)

_reaper_started = False


@socketio.on("connect")
def on_connect():
    relay.connect(request.sid)


@socketio.on("disconnect")
def on_disconnect(*args):
    relay.disconnect(request.sid)


@socketio.on("message")
def on_message(data):
    relay.handle_message(request.sid, data)


def start_reaper():
    """Start the idle-session sweep once per process."""
    global _reaper_started
    if _reaper_started:
        return
    _reaper_started = True
    socketio.start_background_task(relay.run_reaper, REAPER_INTERVAL_SECONDS, socketio.sleep)
    logger.info("Idle session reaper running every %ss", REAPER_INTERVAL_SECONDS)
