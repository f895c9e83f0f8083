"""
core/exceptions.py -- Error taxonomy shared by auth/, ratings/ and api/.

Every class carries a machine-readable ``code``. api/main.py maps each class
to exactly one HTTP status and the uniform ErrorResponse envelope, so lower
layers raise these and never build HTTP responses themselves.

Token verification failures are deliberately absent: auth.tokens returns
None for a bad or expired token and the request filter degrades the caller
to anonymous instead of raising.

Layer rule: core/ is the kernel. No imports from api/, auth/, catalog/, ratings/.
"""

from __future__ import annotations


class CinebaseError(Exception):
    """Base class for every expected, categorized failure."""

    code: str = "error"
    default_message: str = "Request failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthFailure(CinebaseError):
    """Login rejected. Never says whether the identity or the password was wrong."""

    code = "bad_credentials"
    default_message = "Invalid username or password."


class RegistrationError(CinebaseError):
    """Name or email already taken."""

    code = "conflict"
    default_message = "An account with that name or email already exists."


class NotAuthenticated(CinebaseError):
    code = "not_authenticated"
    default_message = "Authentication required."


class InsufficientRole(CinebaseError):
    code = "insufficient_role"
    default_message = "Your role does not permit this operation."


class ConflictError(CinebaseError):
    """A second rating for the same (author, item) pair."""

    code = "conflict"
    default_message = "You have already rated this movie."


class NotFoundError(CinebaseError):
    code = "not_found"
    default_message = "Resource not found."


class StaleWriteError(CinebaseError):
    """Optimistic version mismatch. The caller must re-fetch and retry."""

    code = "stale_write"
    default_message = "The record was modified by another request. Reload and try again."


class ScoreOutOfRange(CinebaseError):
    code = "validation_error"
    default_message = "Score is outside the allowed range."


class PasswordTooLong(CinebaseError):
    """bcrypt refuses input above 72 UTF-8 bytes; it is never silently truncated."""

    code = "validation_error"
    default_message = "Password must be at most 72 bytes when UTF-8 encoded."
