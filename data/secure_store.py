"""
Secure Store Module

Implementations of the SecureStore protocol used to keep the OAuth
credential blob:

- MemorySecureStore: process-local dictionary, used by tests and ``--test`` runs
- EncryptedFileSecureStore: one Fernet-encrypted file per key on disk
"""

import hashlib
import os
import tempfile
import threading
from typing import Dict, Union

from cryptography.fernet import Fernet, InvalidToken

from utils.exceptions import NotFoundError, UnexpectedStoreError
from utils.helpers import ensure_dir_exists
from utils.logger import get_logger

logger = get_logger(__name__)


class MemorySecureStore:
    """SecureStore that never leaves the process."""

    def __init__(self):
        self._items: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def save(self, key: str, data: bytes) -> None:
        with self._lock:
            self._items[key] = bytes(data)

    def load(self, key: str) -> bytes:
        with self._lock:
            if key not in self._items:
                raise NotFoundError(f"No secure item stored under '{key}'")
            return self._items[key]

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._items


class EncryptedFileSecureStore:
    """
    SecureStore that writes each value as a Fernet token in its own file.

    File names are the SHA-256 of the logical key, so keys never appear on
    disk. Saves go to a temporary file first and are moved into place with
    ``os.replace``.
    """

    FILE_SUFFIX = ".bin"

    def __init__(self, directory: str, key: Union[str, bytes]):
        """
        Initialize the store.

        Args:
            directory: Directory holding the encrypted files. Created on first save.
            key: Fernet key (urlsafe base64-encoded 32 bytes).

        Raises:
            UnexpectedStoreError: If the key is not a valid Fernet key.
        """
        self.directory = str(directory)
        try:
            self._fernet = Fernet(key)
        except (ValueError, TypeError) as e:
            raise UnexpectedStoreError(f"invalid encryption key ({e})") from e

    def _path_for(self, key: str) -> str:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return os.path.join(self.directory, digest + self.FILE_SUFFIX)

    def save(self, key: str, data: bytes) -> None:
        """
        Encrypt and write ``data`` under ``key``, overwriting any previous value.

        Raises:
            UnexpectedStoreError: If the file cannot be written.
        """
        token = self._fernet.encrypt(data)
        path = self._path_for(key)
        try:
            ensure_dir_exists(self.directory)
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as tmp:
                    tmp.write(token)
                os.chmod(tmp_path, 0o600)
                os.replace(tmp_path, path)
            except OSError:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as e:
            logger.error(f"Failed to write secure item '{key}': {e}")
            raise UnexpectedStoreError(str(e)) from e
        logger.debug(f"Saved secure item '{key}'")

    def load(self, key: str) -> bytes:
        """
        Read and decrypt the value stored under ``key``.

        Raises:
            NotFoundError: If nothing is stored under ``key``.
            UnexpectedStoreError: If the file cannot be read or decrypted.
        """
        path = self._path_for(key)
        try:
            with open(path, "rb") as f:
                token = f.read()
        except FileNotFoundError as e:
            raise NotFoundError(f"No secure item stored under '{key}'") from e
        except OSError as e:
            raise UnexpectedStoreError(str(e)) from e

        try:
            return self._fernet.decrypt(token)
        except InvalidToken as e:
            logger.error(f"Secure item '{key}' could not be decrypted")
            raise UnexpectedStoreError("stored data could not be decrypted (wrong key?)") from e

    def delete(self, key: str) -> None:
        """Delete the value under ``key``. A missing value is not an error."""
        try:
            os.remove(self._path_for(key))
            logger.debug(f"Deleted secure item '{key}'")
        except FileNotFoundError:
            pass
        except OSError as e:
            raise UnexpectedStoreError(str(e)) from e

    def exists(self, key: str) -> bool:
        return os.path.isfile(self._path_for(key))
