"""

    Web server for the daily challenge app

    Copyright (C) 2025 Miðeind ehf.

    The Creative Commons Attribution-NonCommercial 4.0
    International Public License (CC-BY-NC 4.0) applies to this software.


    This Python >= 3.11 web server module uses the Flask framework
    to serve daily word and Bible trivia challenges.

    The variant selection is found in resolver.py and the scoring
    rules in scoring.py; logic.py ties them to the database.

    JSON-based client API entrypoints are defined in api.py,
    and the routes of the scheduled jobs in tasks.py.

"""

from __future__ import annotations

from typing import (
    Any,
    Optional,
    Union,
    cast,
)

import os
import logging

from logging.config import dictConfig

from flask import Flask
from flask.wrappers import Response
from flask_cors import CORS

from config import (
    FlaskConfig,
    CORS_ORIGINS,
    FLASK_SECRET_KEY,
    running_local,
    host,
    port,
    PROJECT_ID,
    ResponseType,
)
from basics import NOTIFIER_KEY, SESSION_MANAGER_KEY, get_db, jsonify
from db import SessionManager, db_wsgi_middleware
from firebase import NotifierProtocol, PushNotifier
from api import api_blueprint
from tasks import tasks_blueprint


if running_local:
    # Configure logging
    dictConfig(
        {
            "version": 1,
            "formatters": {
                "default": {
                    "format": "[%(asctime)s] %(levelname)s in %(module)s: %(message)s",
                }
            },
            "handlers": {
                "wsgi": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://flask.logging.wsgi_errors_stream",
                    "formatter": "default",
                }
            },
            "root": {"level": "INFO", "handlers": ["wsgi"]},
        }
    )
    logging.info("Challenge app running with DEBUG set to True")
else:
    # Import the Google Cloud client library
    import google.cloud.logging

    # Instantiate a logging client
    logging_client = google.cloud.logging.Client()
    # Connects the logger to the root logging handler;
    # by default this captures all logs at INFO level and higher
    cast(Any, logging_client).setup_logging()


def create_app(
    session_manager: Optional[SessionManager] = None,
    notifier: Optional[NotifierProtocol] = None,
) -> Flask:
    """Construct the Flask app around a database session manager
    and a push notifier, creating default ones if not given"""
    app = Flask(__name__)
    # The following cast to Any can be removed once Flask typing becomes
    # more robust and/or compatible with Pylance
    cast_app = cast(Any, app)

    manager = session_manager or SessionManager()
    app.extensions[SESSION_MANAGER_KEY] = manager
    app.extensions[NOTIFIER_KEY] = notifier or PushNotifier()

    # Wrap the WSGI app so that each request runs within a database
    # session that is committed when the request completes
    setattr(app, "wsgi_app", db_wsgi_middleware(cast_app.wsgi_app, manager))

    # Initialize Cross-Origin Resource Sharing (CORS) Flask plug-in
    if running_local:
        CORS(app, origins=CORS_ORIGINS)

    flask_config = FlaskConfig(
        DEBUG=running_local,
        SESSION_COOKIE_SECURE=not running_local,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        TESTING=False,
    )
    if FLASK_SECRET_KEY:
        app.secret_key = FLASK_SECRET_KEY
    cast_app.config.update(**flask_config)
    # Keep non-ASCII characters (names, verses) readable in JSON replies
    app.json.ensure_ascii = False  # type: ignore

    # Register the Flask blueprints for the api and task routes
    app.register_blueprint(api_blueprint)
    app.register_blueprint(tasks_blueprint)

    @app.after_request
    def add_headers(response: Response) -> Response:
        """Inject additional headers into responses"""
        if not running_local:
            # Add HSTS to enforce HTTPS
            response.headers[
                "Strict-Transport-Security"
            ] = "max-age=31536000; includeSubDomains"
        return response

    @cast_app.route("/_ah/start")
    def start() -> ResponseType:
        """App Engine is starting a fresh instance"""
        version = os.environ.get("GAE_VERSION", "N/A")
        instance = os.environ.get("GAE_INSTANCE", "N/A")
        logging.info(
            f"Start: project {PROJECT_ID}, version {version}, instance {instance}"
        )
        return "", 200

    @cast_app.route("/_ah/stop")
    def stop() -> ResponseType:
        """App Engine is shutting down an instance"""
        instance = os.environ.get("GAE_INSTANCE", "N/A")
        logging.info(f"Stop: instance {instance}")
        app.extensions[NOTIFIER_KEY].close()
        return "", 200

    @app.errorhandler(500)  # type: ignore
    def server_error(e: Union[int, Exception]) -> ResponseType:
        """Return a custom 500 error"""
        logging.error(f"Server error: {e}")
        get_db().rollback()
        return jsonify(error="Internal server error"), 500

    return app


app = create_app()


# Run a default Flask web server for testing if invoked directly as a main program
if __name__ == "__main__":
    app.run(
        debug=True,
        port=int(port),
        use_debugger=True,
        threaded=False,
        processes=1,
        host=host,  # Set by default to "127.0.0.1" in config.py
    )
