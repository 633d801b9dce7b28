import logging
from datetime import datetime, timezone

from flask import current_app
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
from sqlalchemy import select
from werkzeug.security import generate_password_hash, check_password_hash

from .. import db
from ..errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from ..models import User, Department, Faculty
from ..validators import is_valid_email, as_int

logger = logging.getLogger(__name__)

TOKEN_SALT = "auth-token"
ROLES = ("HOD", "DEAN")


def _get_serializer():
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"])


def issue_token(user) -> str:
    return _get_serializer().dumps({"user_id": user.user_id, "role": user.role}, salt=TOKEN_SALT)


def user_from_token(token):
    """Resolve a bearer token to an active user, or None."""
    if not token:
        return None
    s = _get_serializer()
    try:
        data = s.loads(token, salt=TOKEN_SALT, max_age=current_app.config.get("TOKEN_MAX_AGE"))
    except SignatureExpired:
        logger.info("Rejected expired auth token")
        return None
    except BadSignature:
        return None

    user = db.session.get(User, data.get("user_id"))
    if not user or not user.is_active:
        return None
    return user


def _profile(user):
    data = user.to_dict()
    if user.department is not None:
        data["department"] = {
            "department_id": user.department.department_id,
            "name": user.department.name,
            "code": user.department.code,
            "faculty_id": user.department.faculty_id_fk,
        }
    if user.faculty is not None:
        data["faculty"] = {
            "faculty_id": user.faculty.faculty_id,
            "name": user.faculty.name,
            "code": user.faculty.code,
        }
    return data


class AuthService:
    def __init__(self, session):
        self.session = session

    def _find_by_email(self, email):
        return self.session.execute(select(User).filter_by(email=email)).scalars().first()

    def login(self, payload):
        email = (payload.get("email") or "").strip().lower()
        password = payload.get("password") or ""
        if not email or not password:
            raise ValidationError("Email and password are required",
                                  [f"{f}: is required" for f, v in (("email", email), ("password", password)) if not v])

        user = self._find_by_email(email)
        if not user or not user.password_hash or not check_password_hash(user.password_hash, password):
            raise AuthenticationError("Invalid email or password")
        if not user.is_active:
            raise AuthenticationError("Your account has been deactivated")

        user.last_login = datetime.now(timezone.utc)
        self.session.commit()
        logger.info("User %s logged in", user.email)
        return {"user": _profile(user), "token": issue_token(user)}

    def register(self, payload):
        email = (payload.get("email") or "").strip().lower()
        password = payload.get("password") or ""
        first_name = (payload.get("first_name") or "").strip()
        last_name = (payload.get("last_name") or "").strip()
        role = (payload.get("role") or "").strip().upper()

        errors = []
        if not is_valid_email(email):
            errors.append("email: invalid email format")
        if len(password) < 6:
            errors.append("password: must be at least 6 characters")
        if len(first_name) < 2:
            errors.append("first_name: must be at least 2 characters")
        if len(last_name) < 2:
            errors.append("last_name: must be at least 2 characters")
        if role not in ROLES:
            errors.append("role: must be HOD or DEAN")
        if errors:
            raise ValidationError("Validation failed", errors)

        if self._find_by_email(email):
            raise ConflictError("Email already registered")

        department_id = payload.get("department_id")
        faculty_id = payload.get("faculty_id")
        if role == "HOD":
            if not department_id:
                raise ValidationError("Department ID is required for HOD role", ["department_id: is required"])
            department_id = as_int(department_id, "department_id")
            if self.session.get(Department, department_id) is None:
                raise NotFoundError("Department not found")
        if role == "DEAN":
            if not faculty_id:
                raise ValidationError("Faculty ID is required for DEAN role", ["faculty_id: is required"])
            faculty_id = as_int(faculty_id, "faculty_id")
            if self.session.get(Faculty, faculty_id) is None:
                raise NotFoundError("Faculty not found")

        user = User(
            email=email,
            password_hash=generate_password_hash(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
            department_id_fk=department_id if role == "HOD" else None,
            faculty_id_fk=faculty_id if role == "DEAN" else None,
        )
        self.session.add(user)
        self.session.commit()
        logger.info("Registered %s user %s", role, email)
        return _profile(user)

    def get_profile(self, user_id):
        user = self.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        return _profile(user)

    def change_password(self, user_id, current_password, new_password):
        user = self.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        if not current_password or not check_password_hash(user.password_hash or "", current_password):
            raise ValidationError("Current password is incorrect", ["current_password: is incorrect"])
        if not new_password or len(new_password) < 6:
            raise ValidationError("Password must be at least 6 characters",
                                  ["new_password: must be at least 6 characters"])
        user.password_hash = generate_password_hash(new_password)
        self.session.commit()
