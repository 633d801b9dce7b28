from flask import Blueprint

gpa_bp = Blueprint("gpa", __name__)

from . import routes  # noqa: E402,F401
