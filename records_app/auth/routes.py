from flask import current_app
from flask_login import login_required, current_user
from sqlalchemy import text

from . import auth_bp
from .services import AuthService
from .. import db, limiter
from ..api_utils import api_success, api_error, json_body


@auth_bp.route("/auth/login", methods=["POST"])
@limiter.limit("10 per minute")
def login():
    data = AuthService(db.session).login(json_body())
    return api_success(data, message="Login successful")


@auth_bp.route("/auth/register", methods=["POST"])
@limiter.limit("5 per minute")
def register():
    user = AuthService(db.session).register(json_body())
    return api_success(user, status=201, message="User registered successfully")


@auth_bp.route("/auth/profile", methods=["GET"])
@login_required
def profile():
    return api_success(AuthService(db.session).get_profile(current_user.user_id))


@auth_bp.route("/auth/change-password", methods=["POST"])
@login_required
def change_password():
    payload = json_body()
    AuthService(db.session).change_password(
        current_user.user_id,
        payload.get("current_password"),
        payload.get("new_password"),
    )
    return api_success(None, message="Password changed successfully")


@auth_bp.route("/health", methods=["GET"])
@limiter.exempt
def health():
    try:
        db.session.execute(text("SELECT 1"))
    except Exception:
        current_app.logger.exception("Health check failed")
        return api_error("unavailable", "Database unavailable", 503)
    return api_success({"status": "ok", "environment": current_app.config.get("APP_ENV")})
