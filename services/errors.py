"""
Error taxonomy for the authentication and account services.

Every error carries the envelope code and HTTP status it is rendered with by
api.errors, so the services never import Flask.
"""
from __future__ import annotations


class AuthError(Exception):
    code = "AUTH_ERROR"
    status = 400
    message = "Authentication error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class InvalidCredentials(AuthError):
    """Unknown email or wrong password; both look the same to the caller."""
    code = "INVALID_CREDENTIALS"
    status = 401
    message = "Invalid credentials"


class AlreadyExists(AuthError):
    code = "CONFLICT"
    status = 409
    message = "User with this email already exists"


class InvalidOrExpiredToken(AuthError):
    """Any refresh failure: expired, malformed, reused or unknown subject."""
    code = "INVALID_TOKEN"
    status = 401
    message = "Invalid or expired refresh token"


class Unauthenticated(AuthError):
    code = "UNAUTHENTICATED"
    status = 401
    message = "Authentication required"


class Forbidden(AuthError):
    code = "FORBIDDEN"
    status = 403
    message = "Insufficient role"


class PersistenceFailure(AuthError):
    code = "PERSISTENCE_FAILURE"
    status = 503
    message = "Credential store unavailable"


class UserNotFound(AuthError):
    code = "NOT_FOUND"
    status = 404
    message = "User not found"


class InvalidVerificationToken(AuthError):
    code = "BAD_REQUEST"
    status = 400
    message = "Invalid or expired verification token"


class EmailAlreadyVerified(AuthError):
    code = "BAD_REQUEST"
    status = 400
    message = "Email is already verified"


class InvalidResetToken(AuthError):
    code = "BAD_REQUEST"
    status = 400
    message = "Invalid or expired token"
