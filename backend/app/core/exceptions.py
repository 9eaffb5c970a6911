class AppError(Exception):
    """Base class for all application exceptions."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: int = 500, details: dict = None, code: str = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if code is not None:
            self.code = code
        super().__init__(self.message)


class ValidationError(AppError):
    """Raised when input is malformed or references something that does not resolve.

    ``fields`` maps a field name to the list of messages for that field.
    """

    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Validation failed", fields: dict[str, list[str]] | None = None):
        super().__init__(message, status_code=422, details={"fields": fields or {}})
        self.fields = fields or {}


class NotFoundError(AppError):
    """Raised when a requested resource is not found."""

    code = "NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: str | None = None, message: str | None = None):
        if message is None:
            message = f"{resource_type} with id {resource_id} not found"
        super().__init__(message, status_code=404, details={"resource": resource_type})


class ForbiddenError(AppError):
    """Raised when the caller's role does not permit the requested action."""

    code = "FORBIDDEN"

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, status_code=403)


class InvalidStateError(AppError):
    """Raised when an event is not in a status the requested transition accepts."""

    code = "INVALID_STATUS"

    def __init__(self, message: str, current_status: str, code: str | None = None):
        super().__init__(message, status_code=409, details={"current_status": current_status}, code=code)
        self.current_status = current_status


class ConflictError(AppError):
    """Raised on uniqueness violations and on deletes blocked by dependents."""

    code = "CONFLICT"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)


class PersistenceError(AppError):
    """Raised when the underlying store fails; the transaction has been rolled back."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str = "The operation could not be completed"):
        super().__init__(message, status_code=500)


def field_errors(errors: list[dict]) -> dict[str, list[str]]:
    """Group pydantic-style error dicts by the dotted field path they refer to."""
    fields: dict[str, list[str]] = {}
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        key = ".".join(location) or "__root__"
        message = str(error.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        fields.setdefault(key, []).append(message)
    return fields
