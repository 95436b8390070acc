"""Application factory."""

import os
import uuid

from flask import Flask, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from config import Config, parse_duration, validate_config
from extensions import jwt, limiter, migrate
from logging_config import configure_logging
from middleware.auth import register_jwt_callbacks
from middleware.http import register_request_hooks
from models import db
from routes.auth import auth_bp
from routes.monitoring import monitoring_bp
from routes.users import users_bp
from services.email_service import EmailService
from services.error_monitoring import ErrorMonitor
from services.metrics_service import MetricsService
from services.tokens import TokenSigner
from services.websocket_service import WebSocketService
from utils import api_response
from utils.errors import AppError, ErrorCode, code_for_status


def create_app(config_class: type[Config] = Config) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_class)
    validate_config(app.config)

    app.config["JWT_SECRET_KEY"] = app.config["JWT_SECRET"]
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = parse_duration(app.config["JWT_EXPIRY"])
    if not app.config.get("RATELIMIT_KEY_PREFIX"):
        app.config["RATELIMIT_KEY_PREFIX"] = str(uuid.uuid4())

    configure_logging(app)

    # Core subsystems
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    register_jwt_callbacks(jwt)

    # CORS
    CORS(
        app,
        resources={r"/*": {"origins": app.config["FRONTEND_URL"]}},
        supports_credentials=True,
        expose_headers=["X-Request-ID"],
    )

    # Services live on the app, one set per application instance.
    metrics = MetricsService()
    error_monitor = ErrorMonitor()
    app.extensions["metrics"] = metrics
    app.extensions["error_monitor"] = error_monitor
    app.extensions["email_service"] = EmailService.from_config(app.config)
    app.extensions["token_signer"] = TokenSigner.from_config(app.config)

    with app.app_context():
        metrics.instrument_engine(db.engine)

    WebSocketService(metrics).init_app(
        app,
        cors_allowed_origins=app.config["FRONTEND_URL"],
        async_mode="threading",
    )

    # Request ids are assigned before the rate limiter can reject a request.
    register_request_hooks(app, metrics)

    # Rate limiting
    limiter.init_app(app)

    # Blueprints
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(users_bp, url_prefix="/api/users")
    app.register_blueprint(monitoring_bp, url_prefix="/monitoring")

    @app.route("/", methods=["GET"])
    def index():
        return api_response.success({"message": f"Hello from {app.config['APP_NAME']}!"})

    # Health
    @app.route("/health", methods=["GET"])
    def health_check():
        return api_response.success({"status": "ok"})

    # Errors
    _register_error_handlers(app, error_monitor)

    if app.config.get("ERROR_MONITORING_ENABLED") and not app.config.get("TESTING"):
        error_monitor.install_process_hooks()

    app.logger.info(
        "Application created", extra={"env": app.config["APP_ENV"]}
    )
    return app


def _register_error_handlers(app: Flask, error_monitor: ErrorMonitor) -> None:
    """Register JSON error handlers that emit the API error envelope."""

    @app.errorhandler(AppError)
    def _handle_app_error(error: AppError):
        error_monitor.log_error(error, request)
        if not error.is_operational:
            return api_response.error(
                "Internal server error", 500, ErrorCode.INTERNAL_SERVER_ERROR
            )
        return api_response.error(
            error.message, error.status_code, error.code, details=error.details
        )

    @app.errorhandler(HTTPException)
    def _handle_http_exception(error: HTTPException):
        status = error.code or 500
        if status == 404 and request.url_rule is None:
            message = "Resource not found"
        elif status == 429:
            message = "Too many requests, please try again later"
        else:
            message = error.description or error.name
        response = api_response.error(message, status, code_for_status(status))
        # Keeps Allow on 405s and Retry-After on 429s.
        for header, value in error.get_headers():
            if header.lower() != "content-type":
                response.headers[header] = value
        return response

    @app.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        error_monitor.log_error(error, request)
        return api_response.error(
            "Internal server error",
            500,
            ErrorCode.INTERNAL_SERVER_ERROR,
        )


if __name__ == "__main__":
    application = create_app()
    application.extensions["socketio"].run(
        application,
        host="0.0.0.0",
        port=int(os.environ.get("PORT", application.config["PORT"])),
        allow_unsafe_werkzeug=application.config["APP_ENV"] != "production",
    )
