"""
Application error taxonomy.

Each error carries the HTTP status and the message the client is allowed to
see. Handlers in app.main turn them into {"error": ...} bodies. Messages are
deliberately low-information for auth and server failures.
"""

from typing import Dict, Union


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    message: str = "the server encountered a problem and could not process your request"

    def __init__(self, detail: str | None = None):
        # detail is for logs only; it is never sent to the client
        super().__init__(detail or self.message)

    @property
    def body(self) -> Union[str, Dict[str, str]]:
        return self.message


class ValidationError(AppError):
    """One or more input fields failed validation."""

    status_code = 422

    def __init__(self, errors: Dict[str, str]):
        super().__init__(f"validation failed: {', '.join(sorted(errors))}")
        self.errors = dict(errors)

    @property
    def body(self) -> Dict[str, str]:
        return self.errors


class DuplicateEmailError(ValidationError):
    def __init__(self):
        super().__init__({"email": "a user with this email address already exists"})


class InvalidAuthenticationHeader(AppError):
    # Same response for missing, malformed, unknown and expired tokens
    status_code = 401
    message = "invalid or missing authentication token"


class InvalidCredentials(AppError):
    status_code = 401
    message = "invalid authentication credentials"


class NotFound(AppError):
    # Also used for records owned by someone else
    status_code = 404
    message = "the requested resource could not be found"


class EditConflict(AppError):
    status_code = 409
    message = "unable to update the record due to an edit conflict, please try again"


class BackendError(AppError):
    """Storage failure, including per-call timeouts."""


class IssuanceError(BackendError):
    """A token could not be generated or persisted."""
