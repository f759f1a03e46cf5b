"""
API gateway: combines the auth, events and users blueprints, installs the
token gate and serves the single-page client.
This is the local entrypoint for development.
"""

import os
import atexit
import logging
from typing import Optional, Tuple

from flask import Flask, Response, jsonify, request, send_from_directory
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from dotenv import load_dotenv

from volunteer_backend.auth_service.routes import auth_bp
from volunteer_backend.auth_service.utils import require_api_token
from volunteer_backend.database.db_connection import close_pool
from volunteer_backend.errors import NotFoundError, ServiceError
from volunteer_backend.events_service.routes import events_bp
from volunteer_backend.services import EXTENSION_KEY, Services, error_body
from volunteer_backend.users_service.routes import users_bp

load_dotenv()

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    # Basic console logging during API requests
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="[%(levelname)s] %(asctime)s - %(message)s",
    )


def create_app(services: Optional[Services] = None) -> Flask:
    """
    Application factory for creating the Flask app.

    Args:
        services (Services, optional): Repositories and coordinators to use.
            Defaults to the PostgreSQL-backed ones.

    Returns:
        Flask: The configured Flask application.
    """
    app = Flask(__name__, static_folder=None)
    app.config["STATIC_DIR"] = os.path.abspath(os.getenv("STATIC_DIR", "public"))
    app.extensions[EXTENSION_KEY] = services or Services()

    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()]
    CORS(app, resources={
        r"/api/*": {
            "origins": origins,
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
        }
    })

    # --- REQUEST LOGGING AND TOKEN GATE ---
    @app.before_request
    def before_request() -> None:
        logger.info(f"[Gateway] Incoming {request.method} {request.path}")
        require_api_token()

    @app.after_request
    def after_request(response: Response) -> Response:
        logger.info(f"[Gateway] Response {response.status} {request.method} {request.path}")
        return response

    # --- REGISTER BLUEPRINTS ---
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(events_bp, url_prefix="/api/events")
    app.register_blueprint(users_bp, url_prefix="/api/user")

    register_error_handlers(app)

    @app.route("/health")
    def health() -> Tuple[Response, int]:
        """
        Health check endpoint.
        """
        return jsonify({"status": "ok"}), 200

    @app.route("/", defaults={"path": ""})
    @app.route("/<path:path>")
    def spa(path: str) -> Response:
        """
        Serve static files, falling back to index.html for client-side routes.
        """
        if path == "api" or path.startswith("api/"):
            raise NotFoundError("Not found")

        static_dir = app.config["STATIC_DIR"]
        if path and os.path.isfile(os.path.join(static_dir, path)):
            return send_from_directory(static_dir, path)
        return send_from_directory(static_dir, "index.html")

    return app


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ServiceError)
    def service_error(error: ServiceError) -> Tuple[Response, int]:
        if error.status_code >= 500:
            logger.error(f"[Gateway] {request.method} {request.path} failed: {error.message}")
        return jsonify(error_body(error.message)), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException) -> Tuple[Response, int]:
        return jsonify(error_body(error.description or error.name)), error.code or 500

    @app.errorhandler(Exception)
    def unexpected_error(error: Exception) -> Tuple[Response, int]:
        # Store details stay in the log
        logger.exception(f"[Gateway] Unhandled error on {request.method} {request.path}")
        return jsonify(error_body("Internal server error")), 500


def main() -> None:
    configure_logging()
    app = create_app()
    atexit.register(close_pool)
    port = int(os.getenv("PORT", 3000))
    logger.info(f"Server running at http://localhost:{port}")
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
