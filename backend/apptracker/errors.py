"""Domain error taxonomy.

Services raise these instead of `HTTPException`; the FastAPI app maps any
`AppError` to its `status_code` with a ``{"detail": message}`` body.
"""


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str = ''):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class Unauthorized(AppError):
    """No session, or the session token is invalid/expired."""
    status_code = 401


class Forbidden(AppError):
    """Valid session without the required relation to the resource."""
    status_code = 403


class NotFound(AppError):
    status_code = 404


class ValidationError(AppError):
    """Malformed input or a rule violation on write."""
    status_code = 400


class InvalidTransition(ValidationError):
    """Requested status is not reachable from the current one."""

    def __init__(self, current, requested):
        current = getattr(current, 'value', current)
        requested = getattr(requested, 'value', requested)
        super().__init__(f'invalid status transition: {current} -> {requested}')
        self.current = current
        self.requested = requested


class ConflictError(ValidationError):
    status_code = 409


class InternalError(AppError):
    status_code = 500
