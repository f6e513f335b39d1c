"""
OAuth Service Module

This module drives the OAuth 2.0 Authorization Code flow with PKCE against
the platform: it builds the authorization URL, hands it to an interactive
authorizer, validates the callback, exchanges the code for tokens and keeps
the stored Credential fresh.

Refreshes are single-flight: concurrent callers needing a new token wait on
one lock and the ones that arrive late reuse the token the first one stored.
"""

import threading
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import requests

from config import settings
from data.models import Credential
from services import pkce
from services.protocols import InteractiveAuthorizer
from services.token_store import TokenStore
from utils.exceptions import (
    AuthorizationFailedError,
    InvalidClientError,
    InvalidResponseError,
    NetworkError,
    NoRefreshTokenError,
    NotFoundError,
    StateMismatchError,
    ThreadPosterError,
    TokenExchangeFailedError,
)
from utils.helpers import parse_callback_params, truncate_text
from utils.logger import get_logger

logger = get_logger(__name__)


class OAuthService:
    """Service for the PKCE authorization handshake and token refresh."""

    def __init__(self, token_store: TokenStore, authorizer: InteractiveAuthorizer,
                 client_id: Optional[str] = None, client_secret: Optional[str] = None,
                 redirect_uri: Optional[str] = None, scopes: Optional[List[str]] = None,
                 authorization_url: Optional[str] = None, token_url: Optional[str] = None,
                 session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        """
        Initialize the OAuth service.

        Args:
            token_store: Where the resulting Credential is kept.
            authorizer: Interactive step returning the callback URL.
            client_id: OAuth client id. Defaults to settings.X_CLIENT_ID.
            client_secret: Sent as HTTP Basic auth when set (confidential clients).
            redirect_uri: Registered redirect URI.
            scopes: Requested scopes.
            authorization_url: Authorization endpoint.
            token_url: Token endpoint.
            session: HTTP session used for token requests.
            timeout: Per-request timeout in seconds.
        """
        self.token_store = token_store
        self.authorizer = authorizer
        self.client_id = settings.X_CLIENT_ID if client_id is None else client_id
        self.client_secret = settings.X_CLIENT_SECRET if client_secret is None else client_secret
        self.redirect_uri = redirect_uri or settings.X_REDIRECT_URI
        self.scopes = list(scopes) if scopes is not None else list(settings.X_SCOPES)
        self.authorization_url = authorization_url or settings.X_AUTHORIZATION_URL
        self.token_url = token_url or settings.X_TOKEN_URL
        self.session = session or requests.Session()
        self.timeout = timeout or settings.HTTP_TIMEOUT

        self.is_authenticating = False
        self.last_error: Optional[ThreadPosterError] = None

        # Valid only while one authorization attempt is in flight
        self._code_verifier: Optional[str] = None
        self._expected_state: Optional[str] = None

        self._refresh_lock = threading.RLock()

    @property
    def has_client_id(self) -> bool:
        return bool(self.client_id) and self.client_id != settings.CLIENT_ID_PLACEHOLDER

    # -------------------------------------------------------------------------
    # Authorization
    # -------------------------------------------------------------------------

    def build_authorization_url(self, challenge: str, state: str) -> str:
        """
        Build the browser URL that starts the authorization.

        Args:
            challenge: S256 code challenge.
            state: CSRF state value.

        Returns:
            str: The full authorization URL.
        """
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.scopes),
            "state": state,
            "code_challenge": challenge,
            "code_challenge_method": "S256",
        }
        return f"{self.authorization_url}?{urlencode(params)}"

    def start_authorization(self) -> Credential:
        """
        Run the full authorization handshake and store the resulting Credential.

        Returns:
            Credential: The newly issued token set.

        Raises:
            InvalidClientError: If no client id is configured.
            UserCancelledError: If the user abandons the interactive step.
            AuthorizationFailedError: If the platform reports an error.
            StateMismatchError: If the callback state differs from the one sent.
            InvalidResponseError: If the callback carries no code.
            TokenExchangeFailedError: If the token endpoint rejects the code.
        """
        if not self.has_client_id:
            self.last_error = InvalidClientError()
            raise self.last_error

        self.is_authenticating = True
        self.last_error = None
        try:
            self._code_verifier = pkce.code_verifier()
            self._expected_state = pkce.state()
            url = self.build_authorization_url(pkce.code_challenge(self._code_verifier),
                                               self._expected_state)

            logger.info("Starting OAuth authorization")
            callback_url = self.authorizer.authorize(url, self.redirect_uri)

            code = self.handle_callback(callback_url)
            credential = self.exchange_code(code, self._code_verifier)
            self.token_store.save(credential)
            logger.info("OAuth authorization completed")
            return credential

        except ThreadPosterError as e:
            self.last_error = e
            logger.warning(f"OAuth authorization did not complete: {e}")
            raise
        finally:
            self.is_authenticating = False
            self._code_verifier = None
            self._expected_state = None

    def handle_callback(self, callback_url: str) -> str:
        """
        Validate the redirect URL and return the authorization code.

        The state check always runs before the code is looked at.

        Raises:
            AuthorizationFailedError: If the callback carries an ``error``.
            StateMismatchError: If ``state`` does not match the expected value.
            InvalidResponseError: If there is no ``code``.
        """
        params = parse_callback_params(callback_url)

        if "error" in params:
            detail = params.get("error_description") or params["error"]
            raise AuthorizationFailedError(detail)

        if self._expected_state is None or params.get("state") != self._expected_state:
            raise StateMismatchError()

        code = params.get("code")
        if not code:
            raise InvalidResponseError("Authorization callback did not include a code")
        return code

    def exchange_code(self, code: str, verifier: str) -> Credential:
        """Exchange an authorization code for a Credential."""
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "code_verifier": verifier,
        }
        payload = self._request_token(data)
        return self._credential_from(payload)

    # -------------------------------------------------------------------------
    # Refresh
    # -------------------------------------------------------------------------

    def refresh_access_token(self) -> Credential:
        """
        Exchange the stored refresh token for a new Credential.

        Returns:
            Credential: The refreshed token set, already persisted.

        Raises:
            NoRefreshTokenError: If nothing is stored or no refresh token is present.
            TokenExchangeFailedError: On any non-200 token response.
        """
        with self._refresh_lock:
            try:
                current = self.token_store.load()
            except NotFoundError as e:
                self.last_error = NoRefreshTokenError()
                raise self.last_error from e

            if not current.refresh_token:
                self.last_error = NoRefreshTokenError()
                raise self.last_error

            data = {
                "grant_type": "refresh_token",
                "refresh_token": current.refresh_token,
                "client_id": self.client_id,
            }
            try:
                payload = self._request_token(data)
                credential = self._credential_from(payload, fallback_refresh_token=current.refresh_token)
            except ThreadPosterError as e:
                self.last_error = e
                logger.error(f"Token refresh failed: {e}")
                raise

            self.token_store.save(credential)
            logger.info("Access token refreshed")
            return credential

    def get_valid_access_token(self) -> str:
        """
        Return the stored access token, refreshing it first when expired.

        Only one refresh runs at a time; callers that waited on the lock
        pick up the token stored by the refresh that ran before them.
        """
        token = self.token_store.valid_access_token()
        if token:
            return token

        with self._refresh_lock:
            token = self.token_store.valid_access_token()
            if token:
                return token
            return self.refresh_access_token().access_token

    def sign_out(self) -> None:
        """Delete the stored Credential. A missing credential is not an error."""
        try:
            self.token_store.delete()
        except ThreadPosterError as e:
            self.last_error = e
            raise
        logger.info("Signed out")

    # -------------------------------------------------------------------------
    # Token endpoint
    # -------------------------------------------------------------------------

    def _request_token(self, data: Dict[str, str]) -> Dict[str, Any]:
        auth = (self.client_id, self.client_secret) if self.client_secret else None
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        try:
            response = self.session.post(self.token_url, data=data, headers=headers,
                                         auth=auth, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(str(e)) from e

        if response.status_code != 200:
            detail = f"HTTP {response.status_code}: {truncate_text(response.text or '', 200)}"
            raise TokenExchangeFailedError(detail)

        try:
            payload = response.json()
        except ValueError as e:
            raise InvalidResponseError("Token response was not valid JSON") from e
        if not isinstance(payload, dict):
            raise InvalidResponseError("Token response was not a JSON object")
        return payload

    def _credential_from(self, payload: Dict[str, Any],
                         fallback_refresh_token: Optional[str] = None) -> Credential:
        try:
            return Credential.from_token_response(
                payload,
                fallback_refresh_token=fallback_refresh_token,
                default_lifetime=settings.DEFAULT_TOKEN_LIFETIME_SECONDS,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResponseError("Token response is missing access_token") from e
