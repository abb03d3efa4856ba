"""Error taxonomy shared by the resolvers, the workflow engine and the routes.

Every error maps to an HTTP status and is rendered as ``{"error": message}``
by the handlers registered in ``contentdesk.main``.
"""


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(AppError):
    status_code = 401
    default_message = "Authentication required"


class Forbidden(AppError):
    status_code = 403
    default_message = "You do not have access to this resource"


class NoActiveOrganization(AppError):
    status_code = 403
    default_message = "No active organization found"


class NotFound(AppError):
    """Raised both for missing rows and rows owned by another organization."""
    status_code = 404
    default_message = "Not found"


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class TransitionError(ValidationError):
    def __init__(self, current: str, target: str, message: str | None = None):
        self.current = current
        self.target = target
        super().__init__(message or f"Invalid status transition from {current} to {target}")


class ConflictError(AppError):
    status_code = 409
    default_message = "The resource was modified by another request"


class InternalError(AppError):
    status_code = 500
