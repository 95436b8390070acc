"""Flask extension instances shared by the application factory and blueprints."""

from flask import current_app, request
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

migrate = Migrate()
jwt = JWTManager()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[lambda: current_app.config.get("RATE_LIMIT", "50 per 15 minutes")],
)


@limiter.request_filter
def _skip_prometheus_scrapes() -> bool:
    return "Prometheus" in (request.headers.get("User-Agent") or "")
