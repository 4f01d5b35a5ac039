"""
Domain errors for the ticket desk.

Services and stores raise these; the API layer turns them into responses
with ``status_code`` and a ``{"detail", "code"}`` body (see ``main.py``).
"""

from typing import Optional


class DeskError(Exception):
    """Base class for every error the API knows how to report."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


# Validation

class ValidationError(DeskError):
    status_code = 400
    code = "VALIDATION_ERROR"
    message = "Invalid request data"


class AttachmentRejected(ValidationError):
    code = "ATTACHMENT_REJECTED"
    message = "Attachment rejected"

    def __init__(self, message: Optional[str] = None, too_large: bool = False):
        super().__init__(message)
        if too_large:
            self.status_code = 413


class EmptyComment(ValidationError):
    code = "EMPTY_COMMENT"
    message = "Comment text is required"


class InvalidStatus(ValidationError):
    code = "INVALID_STATUS"
    message = "Invalid status"


# Auth

class DuplicateEmail(DeskError):
    status_code = 400
    code = "DUPLICATE_EMAIL"
    message = "User already exists with this email"


class InvalidCredentials(DeskError):
    status_code = 400
    code = "INVALID_CREDENTIALS"
    message = "Invalid credentials"


class AuthError(DeskError):
    status_code = 401
    code = "NOT_AUTHENTICATED"
    message = "Not authenticated"


class InvalidToken(AuthError):
    code = "INVALID_TOKEN"
    message = "Invalid token"


class ExpiredToken(AuthError):
    code = "TOKEN_EXPIRED"
    message = "Token has expired"


class InvalidOrExpiredToken(DeskError):
    status_code = 400
    code = "INVALID_RESET_TOKEN"
    message = "Password reset token is invalid or has expired"


# Access / lookup

class Forbidden(DeskError):
    status_code = 403
    code = "FORBIDDEN"
    message = "Forbidden"


class NotFound(DeskError):
    status_code = 404
    code = "NOT_FOUND"
    message = "Not found"


# Infrastructure

class StorageUnavailable(DeskError):
    status_code = 500
    code = "STORAGE_UNAVAILABLE"
    message = "Storage unavailable"
