"""
Inkwell - block-based journaling with a study assistant.

Entry point: builds the Flask app and wires the API blueprint.
"""

import os
import atexit
import logging

from flask import Flask, jsonify
from flask_cors import CORS

from config import log_event, gemini_model, GEMINI_MODEL, DATA_DIR
from db import init_db
from errors import InkwellError
from routes import api
from services.autosave import flush_all
from services.journals import purge_expired


def create_app(database_url: str = None) -> Flask:
    app = Flask(__name__)
    CORS(app)

    init_db(database_url)
    purged = purge_expired()
    if purged:
        log_event(logging.INFO, "startup_trash_purge", purged=purged)

    app.register_blueprint(api)

    @app.errorhandler(InkwellError)
    def handle_inkwell_error(e):
        level = logging.ERROR if e.status_code >= 500 else logging.WARNING
        log_event(level, "request_failed", error_type=type(e).__name__, status=e.status_code, error=e.message)
        return jsonify({"error": e.message}), e.status_code

    return app


# Unsaved editor content is written before the process exits
atexit.register(flush_all)


if __name__ == '__main__':
    port = int(os.getenv("PORT", 5050))
    app = create_app()
    log_event(
        logging.INFO,
        "server_startup",
        gemini_ready=bool(gemini_model),
        model=GEMINI_MODEL,
        data_dir=str(DATA_DIR),
        port=port,
    )

    print(f"""
    ╔═══════════════════════════════════════════════════╗
    ║            INKWELL - Journals & Study             ║
    ╠═══════════════════════════════════════════════════╣
    ║   Gemini:     {'Ready' if gemini_model else 'No API Key'}
    ║   Data dir:   {str(DATA_DIR)}
    ╠═══════════════════════════════════════════════════╣
    ║   Server: http://localhost:{port}
    ╚═══════════════════════════════════════════════════╝
    """)
    app.run(debug=True, port=port, threaded=True)
