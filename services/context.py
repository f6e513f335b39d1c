"""
Application Context Module

The session object built once at startup. It owns the token store, the
OAuth service, the API client, the media uploader, the draft repository
and the composer, and wires each of them to the others explicitly.
"""

from typing import Optional

import requests

from config import settings
from data.drafts import DraftRepository
from data.memory_store import MemoryObjectStore
from data.models import AuthenticatedUser, Credential
from data.protocols import ObjectStore, SecureStore
from data.secure_store import EncryptedFileSecureStore
from services.api_client import APIClient
from services.browser_auth import BrowserAuthorizer
from services.media_uploader import MediaUploader
from services.oauth_service import OAuthService
from services.post_composer import PostComposer
from services.protocols import InteractiveAuthorizer, ProgressCallback
from services.token_store import TokenStore
from utils.exceptions import AuthError, UnauthorizedError, UserCancelledError
from utils.logger import get_logger

logger = get_logger(__name__)


class AppContext:
    """Holds every collaborator of one signed-in (or signed-out) session."""

    def __init__(self, secure_store: SecureStore, authorizer: InteractiveAuthorizer,
                 object_store: Optional[ObjectStore] = None,
                 session: Optional[requests.Session] = None,
                 progress_callback: Optional[ProgressCallback] = None,
                 **oauth_options):
        """
        Build the collaborator graph.

        Args:
            secure_store: Backend for the stored Credential.
            authorizer: Interactive step of the OAuth flow.
            object_store: Draft storage. A MemoryObjectStore is used if omitted.
            session: HTTP session shared by every service.
            progress_callback: Forwarded to the composer.
            **oauth_options: Extra keyword arguments for OAuthService.
        """
        self.session = session or requests.Session()
        self.token_store = TokenStore(secure_store)
        self.oauth = OAuthService(self.token_store, authorizer, session=self.session, **oauth_options)
        self.api_client = APIClient(self.oauth, session=self.session)
        self.media_uploader = MediaUploader(self.oauth, session=self.session)
        self.repository = DraftRepository(object_store or MemoryObjectStore())
        self.composer = PostComposer(self.api_client, self.media_uploader, self.repository,
                                     progress_callback=progress_callback)
        self.current_user: Optional[AuthenticatedUser] = None

    @classmethod
    def create(cls, authorizer: Optional[InteractiveAuthorizer] = None,
               secure_store: Optional[SecureStore] = None, **kwargs) -> "AppContext":
        """
        Build a context from settings.

        Uses the encrypted file store and the browser authorizer unless
        others are passed in.
        """
        if secure_store is None:
            secure_store = EncryptedFileSecureStore(settings.SECURE_STORE_DIR, settings.SECURE_STORE_KEY)
        return cls(secure_store, authorizer or BrowserAuthorizer(), **kwargs)

    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None

    def restore_session(self) -> Optional[AuthenticatedUser]:
        """
        Resume a previous session from the stored Credential.

        Returns:
            The signed-in user, or None when there is no usable credential.
        """
        if not self.token_store.exists():
            logger.debug("No stored credential")
            return None
        try:
            self.current_user = self.api_client.get_current_user()
        except (AuthError, UnauthorizedError) as e:
            logger.info(f"Stored credential is no longer usable: {e}")
            self.current_user = None
        return self.current_user

    def sign_in(self) -> Optional[AuthenticatedUser]:
        """
        Run the authorization flow and load the user's profile.

        Returns:
            The signed-in user, or None if the user cancelled.
        """
        try:
            credential: Credential = self.oauth.start_authorization()
        except UserCancelledError:
            logger.info("Sign-in cancelled")
            return None
        logger.debug(f"Granted scopes: {credential.scope}")
        self.current_user = self.api_client.get_current_user()
        logger.info(f"Signed in as @{self.current_user.username}")
        return self.current_user

    def sign_out(self) -> None:
        self.oauth.sign_out()
        self.current_user = None
