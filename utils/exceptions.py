"""
Custom Exception Classes for Thread Poster

This module defines the exception hierarchy used across the application.
Every failure the posting core can surface is one of these classes, so
callers can catch a whole category (``AuthError``, ``APIError``...) or a
single condition.
"""

from datetime import datetime
from typing import Optional


class ThreadPosterError(Exception):
    """Base exception for all Thread Poster application errors."""

    default_message = "Thread Poster error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(ThreadPosterError):
    """Raised when configuration validation fails or required settings are missing."""
    default_message = "Invalid configuration"


# =============================================================================
# Authentication Errors
# =============================================================================

class AuthError(ThreadPosterError):
    """Base exception for OAuth authorization and token errors."""
    default_message = "Authentication error"


class InvalidClientError(AuthError):
    """Raised when no client identifier is configured."""
    default_message = "Invalid or missing Client ID"


class AuthorizationFailedError(AuthError):
    """Raised when the authorization step is rejected or cannot be started."""

    def __init__(self, detail: str = "unknown error"):
        self.detail = detail
        super().__init__(f"Authorization failed: {detail}")


class TokenExchangeFailedError(AuthError):
    """Raised when the token endpoint answers with anything but HTTP 200."""

    def __init__(self, detail: str = "unknown error"):
        self.detail = detail
        super().__init__(f"Token exchange failed: {detail}")


class InvalidResponseError(AuthError):
    """Raised when a callback or token response is missing required fields."""
    default_message = "Invalid response from server"


class StateMismatchError(AuthError):
    """Raised when the callback state does not match the one we sent."""
    default_message = "State mismatch - possible CSRF attack"


class NoRefreshTokenError(AuthError):
    """Raised when a refresh is needed but no refresh token is stored."""
    default_message = "No refresh token available"


class UserCancelledError(AuthError):
    """Raised when the user closes the authorization window."""
    default_message = "User cancelled authentication"


# =============================================================================
# API Errors
# =============================================================================

class APIError(ThreadPosterError):
    """Base exception for errors returned by the platform REST API."""
    default_message = "API error"


class UnauthorizedError(APIError):
    """Raised on HTTP 401."""
    default_message = "Not authenticated. Please sign in."


class RateLimitError(APIError):
    """Raised on HTTP 429. ``reset_at`` is when the limit window resets, if known."""

    def __init__(self, reset_at: Optional[datetime] = None):
        self.reset_at = reset_at
        if reset_at is not None:
            message = f"Rate limited. Try again at {reset_at.isoformat()}"
        else:
            message = "Rate limited. Please try again later."
        super().__init__(message)


class InvalidRequestError(APIError):
    """Raised on any other 4xx response; ``detail`` holds the response body."""

    def __init__(self, detail: str = "Client error"):
        self.detail = detail
        super().__init__(f"Invalid request: {detail}")


class ServerError(APIError):
    """Raised on 5xx responses."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"Server error (HTTP {status_code})")


class NetworkError(APIError):
    """Raised when the request never produced an HTTP response."""

    def __init__(self, detail: str = "connection failed"):
        self.detail = detail
        super().__init__(f"Network error: {detail}")


class DecodingError(APIError):
    """Raised when a successful response body cannot be parsed."""

    def __init__(self, detail: str = "unexpected response body"):
        self.detail = detail
        super().__init__(f"Failed to parse response: {detail}")


# =============================================================================
# Media Errors
# =============================================================================

class MediaError(ThreadPosterError):
    """Base exception for media upload errors."""
    default_message = "Media upload error"


class ImageTooLargeError(MediaError):
    """Raised before any network call when a payload exceeds the size limit."""
    default_message = "Image exceeds maximum file size"


class UploadFailedError(MediaError):
    """Raised when INIT, APPEND, FINALIZE or STATUS is rejected."""

    def __init__(self, detail: str = "unknown error"):
        self.detail = detail
        super().__init__(f"Upload failed: {detail}")


class ProcessingFailedError(MediaError):
    """Raised when the server reports the asset failed processing."""

    def __init__(self, detail: str = "Server processing failed"):
        self.detail = detail
        super().__init__(f"Processing failed: {detail}")


class UploadTimeoutError(MediaError):
    """Raised when processing is still pending after the polling cap."""
    default_message = "Upload timed out"


# =============================================================================
# Composer Errors
# =============================================================================

class ComposerError(ThreadPosterError):
    """Base exception for thread composition errors."""
    default_message = "Composer error"


class EmptyContentError(ComposerError):
    """Raised when a thread has no item with text or attachments."""
    default_message = "Cannot post empty content"


class InvalidStateError(ComposerError):
    """Raised when a thread is not in a valid state for the operation."""
    default_message = "Draft is not in a valid state for this operation"


class AttachmentLimitError(ComposerError):
    """Raised when an item already holds the maximum number of attachments."""
    default_message = "Maximum number of images reached for this post"


# =============================================================================
# Storage Errors
# =============================================================================

class StoreError(ThreadPosterError):
    """Base exception for secure-store and object-store errors."""
    default_message = "Storage error"


class NotFoundError(StoreError):
    """Raised when a requested key or object does not exist."""
    default_message = "Item not found in secure store"


class UnexpectedStoreError(StoreError):
    """Raised when the underlying store fails for any other reason."""

    def __init__(self, detail: str = "unexpected failure"):
        self.detail = detail
        super().__init__(f"Secure store error: {detail}")
