"""
Token Store Module

Persists the single OAuth Credential through a SecureStore under one
logical key, and answers whether a usable access token is on hand.
"""

import json
from datetime import datetime
from typing import Callable, Optional

from config import settings
from data.models import Credential, utcnow
from data.protocols import SecureStore
from utils.exceptions import NotFoundError, UnexpectedStoreError
from utils.logger import get_logger

logger = get_logger(__name__)


class TokenStore:
    """Save/load/delete access to the stored Credential."""

    def __init__(self, secure_store: SecureStore, key: Optional[str] = None,
                 buffer_seconds: Optional[int] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize the token store.

        Args:
            secure_store: Backend holding the serialized credential.
            key: Logical key of the credential. Defaults to settings.CREDENTIAL_KEY.
            buffer_seconds: Seconds before real expiry at which a token counts as expired.
            clock: Returns the current aware datetime. Defaults to UTC now.
        """
        self.secure_store = secure_store
        self.key = key or settings.CREDENTIAL_KEY
        self.buffer_seconds = (settings.TOKEN_EXPIRY_BUFFER_SECONDS
                               if buffer_seconds is None else buffer_seconds)
        self.clock = clock or utcnow

    def save(self, credential: Credential) -> None:
        payload = json.dumps(credential.to_dict()).encode("utf-8")
        self.secure_store.save(self.key, payload)
        logger.debug("Stored OAuth credential")

    def load(self) -> Credential:
        """
        Load the stored credential.

        Returns:
            Credential: The stored token set.

        Raises:
            NotFoundError: If no credential is stored.
            UnexpectedStoreError: If the stored blob is unreadable.
        """
        raw = self.secure_store.load(self.key)
        try:
            return Credential.from_dict(json.loads(raw.decode("utf-8")))
        except (ValueError, KeyError, TypeError) as e:
            raise UnexpectedStoreError(f"stored credential is corrupt ({e})") from e

    def delete(self) -> None:
        self.secure_store.delete(self.key)
        logger.debug("Deleted OAuth credential")

    def exists(self) -> bool:
        return self.secure_store.exists(self.key)

    def is_expired(self, credential: Credential) -> bool:
        return credential.is_expired_at(self.clock(), self.buffer_seconds)

    def valid_access_token(self) -> Optional[str]:
        """
        Return the stored access token if it is present and not expired.

        Returns:
            The token, or None when the caller must refresh or sign in.
        """
        try:
            credential = self.load()
        except NotFoundError:
            return None
        if self.is_expired(credential):
            return None
        return credential.access_token
