"""
Configuration Settings for Thread Poster

This module centralizes all configuration settings for the Thread Poster application,
including environment variables, API endpoints, and application constants.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Determine the application root directory
APP_ROOT = Path(__file__).resolve().parent.parent

# Load environment variables from .env file
load_dotenv(dotenv_path=os.path.join(APP_ROOT, '.env'))

# =============================================================================
# OAuth 2.0 Client Settings
# =============================================================================

X_CLIENT_ID = os.getenv("X_CLIENT_ID", "")
X_CLIENT_SECRET = os.getenv("X_CLIENT_SECRET")      # Only for confidential clients
X_REDIRECT_URI = os.getenv("X_REDIRECT_URI", "http://127.0.0.1:8765/callback")
X_SCOPES = os.getenv("X_SCOPES", "tweet.read tweet.write users.read offline.access").split()

# Placeholder shipped in example .env files; treated as "not configured"
CLIENT_ID_PLACEHOLDER = "YOUR_CLIENT_ID_HERE"

# =============================================================================
# Platform Endpoints
# =============================================================================

X_API_BASE_URL = "https://api.x.com/2"
X_AUTHORIZATION_URL = "https://twitter.com/i/oauth2/authorize"
X_TOKEN_URL = "https://api.x.com/2/oauth2/token"
X_MEDIA_UPLOAD_URL = "https://upload.twitter.com/1.1/media/upload.json"   # v1.1 still required for media
X_MEDIA_METADATA_URL = "https://upload.twitter.com/1.1/media/metadata/create.json"
X_POST_URL_TEMPLATE = "https://x.com/i/status/{post_id}"
X_RATE_LIMIT_RESET_HEADER = "x-rate-limit-reset"

HTTP_TIMEOUT = 30                    # Seconds per HTTP request

# =============================================================================
# Character Counting
# =============================================================================

CHARACTER_LIMIT_STANDARD = 280       # Free accounts
CHARACTER_LIMIT_PREMIUM = 25000      # Premium subscribers
URL_CHARACTER_WEIGHT = 23            # t.co shortened URL length

# =============================================================================
# Attachments and Media Upload
# =============================================================================

MAX_ATTACHMENTS_PER_ITEM = 4
MAX_ATTACHMENT_BYTES = 5 * 1024 * 1024   # 5 MiB
MEDIA_CHUNK_SIZE = 5 * 1024 * 1024       # Payloads up to this size go in one APPEND
MEDIA_TYPE = "image/jpeg"
MEDIA_CATEGORY = "tweet_image"
MEDIA_POLL_MAX_ATTEMPTS = 30
MEDIA_POLL_DEFAULT_WAIT = 1              # Seconds when check_after_secs is absent
THUMBNAIL_SIZE = (100, 100)
MAX_IMAGE_DIMENSION = 4096
JPEG_QUALITY = 85

# =============================================================================
# Token Storage
# =============================================================================

TOKEN_EXPIRY_BUFFER_SECONDS = 300        # Treat tokens as expired 5 minutes early
DEFAULT_TOKEN_LIFETIME_SECONDS = 7200    # Used when expires_in is missing
CREDENTIAL_KEY = "oauth_tokens"
SECURE_STORE_DIR = os.getenv("SECURE_STORE_DIR", os.path.join(APP_ROOT, ".credentials"))
SECURE_STORE_KEY = os.getenv("SECURE_STORE_KEY")   # Fernet key (urlsafe base64, 32 bytes)

# =============================================================================
# Thread Files
# =============================================================================

THREAD_ITEM_SEPARATOR = "---"
