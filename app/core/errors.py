"""Domain error taxonomy shared by services and mapped to HTTP status codes in app.main."""


class AppError(Exception):
    """Base class for errors that carry a user-facing message and an HTTP status."""

    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(AppError):
    """Malformed input (unknown enum value, bad TTL, reserved name). User-correctable."""

    status_code = 400


class DeniedError(AppError):
    """Authenticated caller lacks the required permission."""

    status_code = 403

    def __init__(self, message: str, required_permission: str | None = None) -> None:
        self.required_permission = required_permission
        super().__init__(message)


class NotFoundError(AppError):
    """Role, permission, user, record or stored object does not exist."""

    status_code = 404


class ConflictError(AppError):
    """Operation conflicts with existing state (duplicate name, deletion blocked by references)."""

    status_code = 409


class UpstreamError(AppError):
    """Database or object storage unreachable or returned an unexpected failure."""

    status_code = 500
