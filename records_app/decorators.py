from functools import wraps
from flask import current_app
from flask_login import current_user

from .errors import AuthorizationError


def role_required(*roles):
    """
    Decorator to ensure the current user has one of the allowed roles.
    Must be placed *after* @login_required.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                return current_app.login_manager.unauthorized()

            user_role = (getattr(current_user, "role", "") or "").strip().upper()
            allowed = {r.strip().upper() for r in roles}

            if user_role not in allowed:
                raise AuthorizationError("You do not have permission to access this resource.")

            return func(*args, **kwargs)
        return wrapper
    return decorator


def is_hod(user) -> bool:
    return (getattr(user, "role", "") or "").upper() == "HOD"


def is_dean(user) -> bool:
    return (getattr(user, "role", "") or "").upper() == "DEAN"


def can_access_department(user, department) -> bool:
    if department is None:
        return False
    if is_hod(user):
        return user.department_id_fk is not None and user.department_id_fk == department.department_id
    if is_dean(user):
        return user.faculty_id_fk is not None and user.faculty_id_fk == department.faculty_id_fk
    return False


def ensure_department_access(user, department):
    """HODs reach only their own department, DEANs only departments of their faculty."""
    if not can_access_department(user, department):
        raise AuthorizationError("You do not have access to this department")


def ensure_faculty_access(user, faculty_id):
    if is_dean(user) and user.faculty_id_fk == faculty_id:
        return
    if is_hod(user) and user.department is not None and user.department.faculty_id_fk == faculty_id:
        return
    raise AuthorizationError("You do not have access to this faculty")
