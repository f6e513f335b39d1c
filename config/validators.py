"""
Configuration Validation for Thread Poster

This module contains configuration validation logic.
Extracted from settings.py for better separation of concerns.
"""

from cryptography.fernet import Fernet

from utils.exceptions import ConfigurationError


def validate_settings():
    """
    Validate that all required settings are properly configured.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    # Import settings here to avoid circular imports
    from config import settings

    errors = []

    # Required environment variables
    if not settings.X_CLIENT_ID or settings.X_CLIENT_ID == settings.CLIENT_ID_PLACEHOLDER:
        errors.append("Missing required environment variable: X_CLIENT_ID")

    if not settings.X_REDIRECT_URI:
        errors.append("Missing required environment variable: X_REDIRECT_URI")

    if not settings.X_SCOPES:
        errors.append("X_SCOPES must name at least one scope")
    elif "offline.access" not in settings.X_SCOPES:
        # Without it the token endpoint never returns a refresh token
        errors.append("X_SCOPES must include offline.access so tokens can be refreshed")

    if not settings.SECURE_STORE_KEY:
        errors.append("Missing required environment variable: SECURE_STORE_KEY "
                      "(generate one with cryptography.fernet.Fernet.generate_key())")
    else:
        try:
            Fernet(settings.SECURE_STORE_KEY)
        except (ValueError, TypeError):
            errors.append("SECURE_STORE_KEY is not a valid Fernet key")

    if not settings.SECURE_STORE_DIR:
        errors.append("SECURE_STORE_DIR must not be empty")

    # Validate numeric settings are within reasonable bounds
    numeric_validations = [
        ("CHARACTER_LIMIT_STANDARD", settings.CHARACTER_LIMIT_STANDARD, 1, 100000),
        ("CHARACTER_LIMIT_PREMIUM", settings.CHARACTER_LIMIT_PREMIUM, 1, 100000),
        ("URL_CHARACTER_WEIGHT", settings.URL_CHARACTER_WEIGHT, 1, 1000),
        ("MAX_ATTACHMENTS_PER_ITEM", settings.MAX_ATTACHMENTS_PER_ITEM, 1, 4),
        ("MEDIA_POLL_MAX_ATTEMPTS", settings.MEDIA_POLL_MAX_ATTEMPTS, 1, 1000),
        ("TOKEN_EXPIRY_BUFFER_SECONDS", settings.TOKEN_EXPIRY_BUFFER_SECONDS, 0, 3600),
    ]

    for name, value, min_val, max_val in numeric_validations:
        if value < min_val or value > max_val:
            errors.append(f"{name} must be between {min_val} and {max_val}, got {value}")

    # Validate sizes and timeouts are positive
    positive_settings = [
        ("HTTP_TIMEOUT", settings.HTTP_TIMEOUT),
        ("MAX_ATTACHMENT_BYTES", settings.MAX_ATTACHMENT_BYTES),
        ("MEDIA_CHUNK_SIZE", settings.MEDIA_CHUNK_SIZE),
        ("MEDIA_POLL_DEFAULT_WAIT", settings.MEDIA_POLL_DEFAULT_WAIT),
    ]

    for name, value in positive_settings:
        if value <= 0:
            errors.append(f"{name} must be positive, got {value}")

    # Raise all errors at once
    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)

    return True


def get_config_summary() -> dict:
    """
    Returns a summary of current configuration (without sensitive values).
    Useful for logging startup state.
    """
    # Import settings here to avoid circular imports
    from config import settings

    client_id = settings.X_CLIENT_ID or ""

    return {
        "oauth": {
            "client_id": client_id[:6] + "..." if len(client_id) > 6 else client_id,
            "confidential_client": bool(settings.X_CLIENT_SECRET),
            "redirect_uri": settings.X_REDIRECT_URI,
            "scopes": list(settings.X_SCOPES),
        },
        "secure_store": {
            "directory": str(settings.SECURE_STORE_DIR),
            "key_configured": bool(settings.SECURE_STORE_KEY),
        },
        "limits": {
            "character_limit": settings.CHARACTER_LIMIT_STANDARD,
            "max_attachments": settings.MAX_ATTACHMENTS_PER_ITEM,
            "max_attachment_bytes": settings.MAX_ATTACHMENT_BYTES,
            "media_poll_attempts": settings.MEDIA_POLL_MAX_ATTEMPTS,
        },
    }
