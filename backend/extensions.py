"""
Process-wide objects shared by the blueprints and socket handlers.
They are wired to Flask in app.create_app().
"""
import json

from flask_socketio import SocketIO

from errors import TransportError
from services.firestore_service import FirestoreVerseStore
from services.gemini_service import detect_verses
from services.projection import ProjectionRegistry, SocketIOChannel, projection_room
from services.realtime_relay import RealtimeRelay
from services.transcription_service import transcribe
from services.verse_matcher import DetectionPipeline

socketio = SocketIO()

pipeline = DetectionPipeline(transcriber=transcribe, detector=detect_verses, store=FirestoreVerseStore())


def _send_frame(sid, message):
    try:
        socketio.send(json.dumps(message), to=sid)
    except (OSError, ValueError) as e:
        raise TransportError(str(e)) from e


def _close_connection(sid):
    socketio.server.disconnect(sid, namespace="/")


relay = RealtimeRelay(pipeline, send=_send_frame, close=_close_connection)

projections = ProjectionRegistry(lambda user_id: SocketIOChannel(socketio, projection_room(user_id)))
