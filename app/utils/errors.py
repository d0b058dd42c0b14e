"""
Client-side error taxonomy
==========================
Raw transport and HTTP failures are classified into these types at the
client boundary (catalog and account clients). Stores only ever keep
``str(error)`` in their ``error`` field.
"""
from typing import Optional


class CineScopeError(Exception):
    """Base class for classified client errors."""

    default_message = "An unknown error occurred"
    is_retryable = False

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        self.status_code = status_code
        super().__init__(self.message)


# ==================== CATALOG ERRORS ====================

class CatalogError(CineScopeError):
    """Failure talking to the external catalog API."""


class Unauthorized(CatalogError):
    default_message = "Invalid API key or unauthorized request"


class NotFound(CatalogError):
    default_message = "The requested resource was not found"


class RateLimited(CatalogError):
    default_message = "Too many requests. Please try again later"
    is_retryable = True


class UpstreamUnavailable(CatalogError):
    default_message = "Server error. Please try again later"
    is_retryable = True


class NetworkUnreachable(CatalogError):
    default_message = "No response from server. Please check your internet connection"
    is_retryable = True


class UnknownCatalogError(CatalogError):
    pass


# ==================== ACCOUNT ERRORS ====================

class ValidationFailed(CineScopeError):
    """Missing or malformed input, detected before any network call."""
    default_message = "Invalid request"


class Conflict(CineScopeError):
    default_message = "User already exists"


class TokenInvalidOrExpired(CineScopeError):
    default_message = "Invalid or expired token"


class TokenExpired(TokenInvalidOrExpired):
    default_message = "Session expired. Please log in again."


class TokenInvalid(TokenInvalidOrExpired):
    default_message = "Invalid token"


def classify_status(status_code: int, upstream_message: Optional[str] = None) -> CatalogError:
    """Map an HTTP status code to the catalog error taxonomy."""
    if status_code == 401:
        return Unauthorized(status_code=status_code)
    if status_code == 404:
        return NotFound(status_code=status_code)
    if status_code == 429:
        return RateLimited(status_code=status_code)
    if status_code >= 500:
        return UpstreamUnavailable(status_code=status_code)
    return UnknownCatalogError(upstream_message or f"Error: {status_code}", status_code=status_code)
