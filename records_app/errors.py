class AppError(Exception):
    """Base error carrying the HTTP status it maps to."""

    status_code = 500
    code = "error"

    def __init__(self, message="", status_code=None, details=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details


class ValidationError(AppError):
    """Malformed input, out-of-range values or unknown tokens.

    ``details`` holds the field-level messages, e.g. ``["score: must be between 0 and 100"]``.
    """

    status_code = 400
    code = "validation_error"

    def __init__(self, message="Validation failed", details=None):
        super().__init__(message, details=list(details or []))


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class AuthenticationError(AppError):
    status_code = 401
    code = "unauthorized"


class AuthorizationError(AppError):
    status_code = 403
    code = "forbidden"


class ConflictError(AppError):
    # Duplicate matric numbers and the like surface as plain bad requests
    status_code = 400
    code = "conflict"
