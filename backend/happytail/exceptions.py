"""Application exceptions.

Services raise these instead of ``HTTPException`` so the same rules can be
exercised without an HTTP request. ``happytail.main`` renders every
``AppError`` as ``{"code", "message", "errors"}``.
"""

from typing import Any


class AppError(Exception):
    """Base exception carrying an HTTP status and optional field errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        errors: list[dict[str, Any]] | None = None,
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.errors = errors or []
        super().__init__(message)


class NotFoundError(AppError):
    """Referenced entity does not exist."""

    status_code = 404


class ForbiddenError(AppError):
    """Authenticated, but not allowed to touch this entity."""

    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class ConflictError(AppError):
    """Unique field already taken."""

    status_code = 409


class PreconditionError(AppError):
    """Operation attempted from a state that does not allow it."""

    status_code = 409


class TaskNotAvailableError(PreconditionError):
    def __init__(self, message: str = "Operation not allowed: task is not available"):
        super().__init__(message)


class TaskNotAssignedError(PreconditionError):
    def __init__(self, message: str = "Task is not assigned"):
        super().__init__(message)


class InvitationExpiredError(AppError):
    status_code = 400

    def __init__(self) -> None:
        super().__init__("Invitation token has been expired")


class AuthenticationError(AppError):
    status_code = 401


def duplicate_email_error() -> ConflictError:
    """Conflict raised when an email is already registered."""
    return ConflictError(
        "Validation Error",
        errors=[
            {
                "field": "email",
                "location": "body",
                "messages": ['"email" already exists'],
            }
        ],
    )
