"""
Exception types raised by the Inkwell services.

Each error carries the HTTP status the API answers with.
"""


class InkwellError(Exception):
    """Base exception for all Inkwell errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(InkwellError):
    """Raised when a request payload or edit is invalid."""

    status_code = 400


class PermissionDeniedError(InkwellError):
    """Raised when the caller may not access or change a resource."""

    status_code = 403


class NotFoundError(InkwellError):
    """Raised when a journal, folder, block or share doesn't exist."""

    status_code = 404


class TrashedError(InkwellError):
    """Raised when opening a journal that sits in the trash."""

    status_code = 409


class AIServiceError(InkwellError):
    """Raised when the language model is unavailable or fails."""

    status_code = 503


class UnauthorizedError(InkwellError):
    """Raised when a request carries no user identity."""

    status_code = 401
