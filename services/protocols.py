"""
Service Protocol Definitions

This module defines typing.Protocol interfaces for the collaborators the
posting services are built from. These protocols enable loose coupling,
dependency injection, and easier testing.

Protocols defined:
- TokenProvider: Anything that can hand out a currently valid access token
- InteractiveAuthorizer: The browser step of the OAuth handshake
- PostingClient: The post-creation half of the API client
- MediaUploadService: Uploads one attachment and returns its media id
- ProgressCallback: Listener for composer progress updates
"""

from typing import Callable, List, Optional, Protocol

from data.models import PostResult

ProgressCallback = Callable[[float, str], None]


class TokenProvider(Protocol):
    """Protocol for objects that supply bearer tokens.

    Implementations return a cached token while it is valid and refresh
    it otherwise.
    """

    def get_valid_access_token(self) -> str:
        """Return an access token usable right now.

        Returns:
            The bearer token string.

        Raises:
            NoRefreshTokenError: If no token is stored and none can be refreshed.
            TokenExchangeFailedError: If the refresh call is rejected.
        """
        ...


class InteractiveAuthorizer(Protocol):
    """Protocol for the interactive authorization step.

    The authorizer shows ``url`` to the user (system browser, webview,
    terminal prompt...) and returns the full callback URL the platform
    redirected to.
    """

    def authorize(self, url: str, callback_scheme: str) -> str:
        """Run the interactive step.

        Args:
            url: Authorization URL to open.
            callback_scheme: Scheme or prefix of the expected redirect URI.

        Returns:
            The callback URL including its query string.

        Raises:
            UserCancelledError: If the user abandons the flow.
            AuthorizationFailedError: If the step cannot be completed.
        """
        ...


class PostingClient(Protocol):
    """Protocol for the post-creation endpoint."""

    def post_item(self, text: str, media_ids: Optional[List[str]] = None,
                  reply_to_id: Optional[str] = None) -> PostResult:
        ...


class MediaUploadService(Protocol):
    """Protocol for the chunked media upload."""

    def upload(self, data: bytes, media_type: str = "image/jpeg",
               media_category: str = "tweet_image") -> str:
        ...

    def set_alt_text(self, media_id: str, alt_text: str) -> bool:
        ...
