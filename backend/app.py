"""
Main Flask app. Register blueprints, socket handlers and the idle-session reaper.
Run this file from the backend directory:
    cd backend
    python app.py
"""

import logging
import os

from flask import Flask, jsonify, send_from_directory
from flask_cors import CORS
import firebase_admin
from firebase_admin import credentials

from config import FIREBASE_KEY_PATH, GEMINI_API_KEY, LOG_LEVEL, SECRET_KEY, TRANSCRIPTION_PROVIDER
from extensions import socketio

logger = logging.getLogger(__name__)


def init_firebase():
    if firebase_admin._apps:
        return
    if not os.path.exists(FIREBASE_KEY_PATH):
        raise FileNotFoundError(f"Place {FIREBASE_KEY_PATH} in backend/ before running.")
    cred = credentials.Certificate(FIREBASE_KEY_PATH)
    firebase_admin.initialize_app(cred)


def create_app(overrides=None):
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = Flask(__name__, static_folder="../frontend", static_url_path="/static")
    app.config["SECRET_KEY"] = SECRET_KEY
    app.config.update(overrides or {})
    CORS(app)

    if not app.config.get("TESTING"):
        init_firebase()

    # Register modular routes (blueprints); importing them also registers socket handlers
    from routes.auth import auth_bp
    from routes.verses import verses_bp
    from routes.history import history_bp
    from routes.settings import settings_bp
    from routes.projection import projection_bp
    import routes.realtime  # noqa: F401

    for bp in (auth_bp, verses_bp, history_bp, settings_bp, projection_bp):
        app.register_blueprint(bp, url_prefix="/api")

    @app.route("/api/health")
    def health():
        from services.firestore_service import get_verses_count
        transcription_enabled = bool(GEMINI_API_KEY) or TRANSCRIPTION_PROVIDER == "google-speech"
        try:
            total = get_verses_count()
        except Exception as e:
            return jsonify({
                "status": "unhealthy",
                "error": str(e),
                "transcriptionEnabled": transcription_enabled,
            }), 503
        return jsonify({
            "status": "healthy",
            "transcriptionEnabled": transcription_enabled,
            "detectionEnabled": bool(GEMINI_API_KEY),
            "totalVerses": total,
        })

    # Projection window served to the second screen
    @app.route("/projection")
    def projection_page():
        return send_from_directory(app.static_folder, "projection.html")

    socketio.init_app(app, cors_allowed_origins="*", max_http_buffer_size=16000000)
    return app


if __name__ == "__main__":
    from routes.realtime import start_reaper

    app = create_app()
    start_reaper()
    socketio.run(app, debug=True, host="0.0.0.0", port=5000)
