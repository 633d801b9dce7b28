import os
import logging
from flask import Flask, request
from flask_login import LoginManager
from flask_sqlalchemy import SQLAlchemy
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_limiter.errors import RateLimitExceeded
from flask_caching import Cache

# Global extensions
db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()


def _rate_key():
    path = (getattr(request, "path", "/") or "/")
    return f"{get_remote_address() or 'local'}|{path}"


limiter = Limiter(key_func=_rate_key)
cache = Cache()


def create_app(config_overrides=None):
    app = Flask(__name__)
    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-key")
    app.config["APP_ENV"] = os.environ.get("APP_ENV", "development").strip().lower()

    REDIS_URL = os.environ.get("REDIS_URL")
    if REDIS_URL:
        app.config["CACHE_TYPE"] = "RedisCache"
        app.config["CACHE_REDIS_URL"] = REDIS_URL
        app.config["RATELIMIT_STORAGE_URI"] = REDIS_URL
    else:
        app.config["CACHE_TYPE"] = "SimpleCache"

    # Global upload cap (can be overridden via env); bulk uploads apply their own 10 MB limit
    app.config["MAX_CONTENT_LENGTH"] = int(os.environ.get("MAX_CONTENT_LENGTH", str(16 * 1024 * 1024)))
    app.config["IMPORT_MAX_BYTES"] = int(os.environ.get("IMPORT_MAX_BYTES", str(10 * 1024 * 1024)))
    app.config["IMPORT_CHUNK_SIZE"] = int(os.environ.get("IMPORT_CHUNK_SIZE", "500"))
    # Bearer token lifetime (seconds)
    app.config["TOKEN_MAX_AGE"] = int(os.environ.get("TOKEN_MAX_AGE", str(7 * 24 * 3600)))

    # Database configuration: use DATABASE_URL if provided, else sqlite file
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        db_path = os.path.join(os.path.dirname(__file__), "..", "records.db")
        database_url = f"sqlite:///{os.path.abspath(db_path)}"

    app.config["SQLALCHEMY_DATABASE_URI"] = database_url
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config.setdefault("RATELIMIT_STORAGE_URI", "memory://")

    if config_overrides:
        app.config.update(config_overrides)

    if not app.logger.handlers or app.config["APP_ENV"] == "production":
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cache.init_app(app)
    login_manager.init_app(app)

    # Import models so they are registered with SQLAlchemy
    from . import models  # noqa: F401

    from .auth.services import user_from_token

    @login_manager.user_loader
    def load_user(user_id: str):
        from .models import User
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    @login_manager.request_loader
    def load_user_from_request(req):
        header = (req.headers.get("Authorization") or "").strip()
        if not header.lower().startswith("bearer "):
            return None
        return user_from_token(header[7:].strip())

    @login_manager.unauthorized_handler
    def unauthorized():
        from .api_utils import api_error
        return api_error("unauthorized", "Authentication required", 401)

    # Blueprints
    from .auth import auth_bp
    app.register_blueprint(auth_bp)

    from .students import students_bp
    app.register_blueprint(students_bp, url_prefix="/students")

    from .courses import courses_bp
    app.register_blueprint(courses_bp, url_prefix="/courses")

    from .departments import departments_bp
    app.register_blueprint(departments_bp)

    from .results import results_bp
    app.register_blueprint(results_bp, url_prefix="/results")

    from .imports import imports_bp
    app.register_blueprint(imports_bp)

    from .gpa import gpa_bp
    app.register_blueprint(gpa_bp, url_prefix="/gpa")

    from .reports import reports_bp
    app.register_blueprint(reports_bp, url_prefix="/reports")

    _register_error_handlers(app)

    # Create tables on first run (dev convenience)
    with app.app_context():
        db.create_all()

    return app


def _register_error_handlers(app):
    from .api_utils import api_error
    from .errors import AppError

    @app.errorhandler(AppError)
    def handle_app_error(e):
        if e.status_code >= 500:
            app.logger.error("Application error: %s", e.message)
        return api_error(e.code, e.message, e.status_code, e.details)

    @app.errorhandler(RequestEntityTooLarge)
    def handle_large_upload(e):
        limit_bytes = app.config.get("MAX_CONTENT_LENGTH") or (16 * 1024 * 1024)
        limit_mb = max(1, int(limit_bytes / (1024 * 1024)))
        return api_error("payload_too_large", f"Upload exceeds the size limit (max {limit_mb} MB).", 413)

    @app.errorhandler(RateLimitExceeded)
    def handle_rate_limit(e):
        return api_error("rate_limited", "Too many requests", 429)

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return api_error(str(e.code), e.description or "", e.code)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        db.session.rollback()
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        if app.config.get("APP_ENV") == "production":
            message = "An unexpected error occurred"
        else:
            message = str(e) or e.__class__.__name__
        return api_error("internal_error", message, 500)
