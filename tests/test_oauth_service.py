"""
Tests for services/oauth_service.py

Tests cover:
- Authorization URL parameters
- The PKCE handshake: callback validation order, code exchange, persistence
- isAuthenticating / in-flight values reset on every exit path
- Token refresh, refresh-token fallback and single-flight behaviour
- Sign-out
"""

import pytest
import threading
from datetime import timedelta
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services import pkce
from services.oauth_service import OAuthService
from utils.exceptions import (
    AuthorizationFailedError,
    InvalidClientError,
    InvalidResponseError,
    NetworkError,
    NoRefreshTokenError,
    StateMismatchError,
    TokenExchangeFailedError,
    UnexpectedStoreError,
    UserCancelledError,
)

REDIRECT_URI = "http://127.0.0.1:8765/callback"
TOKEN_URL = "https://api.example.com/oauth2/token"


def callback_from(url, **overrides):
    """Build the redirect the platform would send for authorization URL ``url``."""
    sent = parse_qs(urlparse(url).query)
    params = {"state": sent["state"][0], "code": "auth-code"}
    params.update(overrides)
    query = "&".join(f"{k}={v}" for k, v in params.items() if v is not None)
    return f"{REDIRECT_URI}?{query}"


@pytest.fixture
def authorizer():
    """An authorizer that approves whatever it is shown."""
    mock = MagicMock()
    mock.authorize.side_effect = lambda url, scheme: callback_from(url)
    return mock


@pytest.fixture
def oauth(token_store, authorizer, mock_session):
    return OAuthService(
        token_store,
        authorizer,
        client_id="client-123",
        client_secret="",
        redirect_uri=REDIRECT_URI,
        scopes=["tweet.read", "tweet.write", "users.read", "offline.access"],
        authorization_url="https://example.com/i/oauth2/authorize",
        token_url=TOKEN_URL,
        session=mock_session,
        timeout=5,
    )


@pytest.fixture
def token_response(mock_http_response):
    def _create(**fields):
        payload = {"access_token": "new-access", "refresh_token": "new-refresh",
                   "expires_in": 7200, "token_type": "bearer", "scope": "tweet.read"}
        payload.update(fields)
        return mock_http_response(status_code=200, json_data={k: v for k, v in payload.items() if v is not None})
    return _create


# =============================================================================
# Test authorization URL
# =============================================================================

class TestBuildAuthorizationUrl:
    """Tests for build_authorization_url."""

    def test_contains_all_parameters(self, oauth):
        """Test every required query parameter is present."""
        url = oauth.build_authorization_url("challenge-abc", "state-xyz")
        parsed = urlparse(url)
        params = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        assert parsed.netloc == "example.com"
        assert params == {
            "response_type": "code",
            "client_id": "client-123",
            "redirect_uri": REDIRECT_URI,
            "scope": "tweet.read tweet.write users.read offline.access",
            "state": "state-xyz",
            "code_challenge": "challenge-abc",
            "code_challenge_method": "S256",
        }


# =============================================================================
# Test start_authorization
# =============================================================================

class TestStartAuthorization:
    """Tests for the full handshake."""

    def test_success_stores_credential(self, oauth, token_store, mock_session, token_response):
        """Test a successful handshake persists the credential."""
        mock_session.post.return_value = token_response()

        credential = oauth.start_authorization()

        assert credential.access_token == "new-access"
        assert token_store.load().access_token == "new-access"
        assert oauth.is_authenticating is False
        assert oauth.last_error is None

    def test_exchange_sends_verifier_matching_challenge(self, oauth, authorizer, mock_session, token_response):
        """Test the code exchange carries the verifier behind the challenge sent."""
        mock_session.post.return_value = token_response()

        oauth.start_authorization()

        sent_url = authorizer.authorize.call_args[0][0]
        challenge = parse_qs(urlparse(sent_url).query)["code_challenge"][0]
        data = mock_session.post.call_args.kwargs["data"]
        assert data["grant_type"] == "authorization_code"
        assert data["code"] == "auth-code"
        assert data["redirect_uri"] == REDIRECT_URI
        assert data["client_id"] == "client-123"
        assert pkce.code_challenge(data["code_verifier"]) == challenge
        assert mock_session.post.call_args.kwargs["auth"] is None

    def test_client_secret_sent_as_basic_auth(self, oauth, mock_session, token_response):
        """Test a confidential client authenticates to the token endpoint."""
        oauth.client_secret = "s3cret"
        mock_session.post.return_value = token_response()
        oauth.start_authorization()
        assert mock_session.post.call_args.kwargs["auth"] == ("client-123", "s3cret")

    def test_missing_client_id(self, oauth, authorizer):
        """Test no client id fails before anything else happens."""
        oauth.client_id = ""
        with pytest.raises(InvalidClientError):
            oauth.start_authorization()
        authorizer.authorize.assert_not_called()
        assert oauth.is_authenticating is False

    def test_placeholder_client_id(self, oauth):
        """Test the sample placeholder counts as no client id."""
        oauth.client_id = "YOUR_CLIENT_ID_HERE"
        with pytest.raises(InvalidClientError):
            oauth.start_authorization()

    def test_state_mismatch_short_circuits(self, oauth, authorizer, mock_session, token_store):
        """Test a wrong state fails before any token request."""
        authorizer.authorize.side_effect = lambda url, scheme: callback_from(url, state="forged")

        with pytest.raises(StateMismatchError):
            oauth.start_authorization()

        mock_session.post.assert_not_called()
        assert token_store.exists() is False
        assert isinstance(oauth.last_error, StateMismatchError)

    def test_missing_state_is_mismatch(self, oauth, authorizer, mock_session):
        """Test a callback without state is rejected."""
        authorizer.authorize.side_effect = lambda url, scheme: f"{REDIRECT_URI}?code=abc"
        with pytest.raises(StateMismatchError):
            oauth.start_authorization()
        mock_session.post.assert_not_called()

    def test_error_parameter(self, oauth, authorizer, mock_session):
        """Test an error in the callback fails the attempt."""
        authorizer.authorize.side_effect = lambda url, scheme: callback_from(url, error="access_denied", code=None)
        with pytest.raises(AuthorizationFailedError) as exc_info:
            oauth.start_authorization()
        assert "access_denied" in str(exc_info.value)
        mock_session.post.assert_not_called()

    def test_missing_code(self, oauth, authorizer, mock_session):
        """Test a callback without code is an invalid response."""
        authorizer.authorize.side_effect = lambda url, scheme: callback_from(url, code=None)
        with pytest.raises(InvalidResponseError):
            oauth.start_authorization()
        mock_session.post.assert_not_called()

    def test_user_cancelled_resets_flag(self, oauth, authorizer):
        """Test cancelling still clears the in-flight state."""
        seen = {}

        def cancel(url, scheme):
            seen["authenticating"] = oauth.is_authenticating
            raise UserCancelledError()

        authorizer.authorize.side_effect = cancel

        with pytest.raises(UserCancelledError):
            oauth.start_authorization()

        assert seen["authenticating"] is True
        assert oauth.is_authenticating is False
        assert oauth._code_verifier is None
        assert oauth._expected_state is None

    def test_token_endpoint_rejects(self, oauth, mock_session, mock_http_response, token_store):
        """Test a non-200 token response raises TokenExchangeFailedError."""
        mock_session.post.return_value = mock_http_response(status_code=400, text='{"error":"invalid_grant"}')
        with pytest.raises(TokenExchangeFailedError):
            oauth.start_authorization()
        assert token_store.exists() is False
        assert oauth.is_authenticating is False

    def test_token_response_without_access_token(self, oauth, mock_session, mock_http_response):
        """Test a 200 without access_token is an invalid response."""
        mock_session.post.return_value = mock_http_response(status_code=200, json_data={"token_type": "bearer"})
        with pytest.raises(InvalidResponseError):
            oauth.start_authorization()

    def test_each_attempt_uses_fresh_values(self, oauth, authorizer, mock_session, token_response):
        """Test two attempts send different state and challenge values."""
        mock_session.post.return_value = token_response()
        oauth.start_authorization()
        oauth.start_authorization()
        first, second = [parse_qs(urlparse(c[0][0]).query) for c in authorizer.authorize.call_args_list]
        assert first["state"] != second["state"]
        assert first["code_challenge"] != second["code_challenge"]


# =============================================================================
# Test refresh
# =============================================================================

class TestRefresh:
    """Tests for refresh_access_token and get_valid_access_token."""

    def test_refresh_posts_refresh_grant(self, oauth, token_store, credential_factory, mock_session, token_response):
        """Test the refresh request body."""
        token_store.save(credential_factory(refresh_token="r-1"))
        mock_session.post.return_value = token_response()

        oauth.refresh_access_token()

        data = mock_session.post.call_args.kwargs["data"]
        assert data == {"grant_type": "refresh_token", "refresh_token": "r-1", "client_id": "client-123"}
        assert mock_session.post.call_args[0][0] == TOKEN_URL

    def test_refresh_keeps_old_refresh_token(self, oauth, token_store, credential_factory,
                                             mock_session, token_response):
        """Test the old refresh token survives a response that omits it."""
        token_store.save(credential_factory(refresh_token="r-1"))
        mock_session.post.return_value = token_response(refresh_token=None)

        credential = oauth.refresh_access_token()

        assert credential.refresh_token == "r-1"
        assert token_store.load().refresh_token == "r-1"
        assert token_store.load().access_token == "new-access"

    def test_refresh_uses_rotated_token(self, oauth, token_store, credential_factory, mock_session, token_response):
        """Test a rotated refresh token replaces the old one."""
        token_store.save(credential_factory(refresh_token="r-1"))
        mock_session.post.return_value = token_response(refresh_token="r-2")
        assert oauth.refresh_access_token().refresh_token == "r-2"

    def test_refresh_without_credential(self, oauth, mock_session):
        """Test refreshing with nothing stored raises NoRefreshTokenError."""
        with pytest.raises(NoRefreshTokenError):
            oauth.refresh_access_token()
        mock_session.post.assert_not_called()

    def test_refresh_without_refresh_token(self, oauth, token_store, credential_factory, mock_session):
        """Test a credential lacking a refresh token cannot be refreshed."""
        token_store.save(credential_factory(refresh_token=None))
        with pytest.raises(NoRefreshTokenError):
            oauth.refresh_access_token()
        mock_session.post.assert_not_called()

    def test_refresh_rejected(self, oauth, token_store, credential_factory, mock_session, mock_http_response):
        """Test a non-200 refresh raises and keeps the stored credential."""
        token_store.save(credential_factory(access_token="old"))
        mock_session.post.return_value = mock_http_response(status_code=401, text="unauthorized")
        with pytest.raises(TokenExchangeFailedError):
            oauth.refresh_access_token()
        assert token_store.load().access_token == "old"
        assert isinstance(oauth.last_error, TokenExchangeFailedError)

    def test_refresh_network_error(self, oauth, token_store, credential_factory, mock_session):
        """Test a transport failure surfaces as NetworkError."""
        import requests
        token_store.save(credential_factory())
        mock_session.post.side_effect = requests.ConnectionError("down")
        with pytest.raises(NetworkError):
            oauth.refresh_access_token()

    def test_valid_token_skips_refresh(self, oauth, token_store, credential_factory, mock_session):
        """Test an unexpired token is returned without a request."""
        token_store.save(credential_factory(access_token="cached"))
        assert oauth.get_valid_access_token() == "cached"
        mock_session.post.assert_not_called()

    def test_expired_token_refreshes(self, oauth, token_store, credential_factory, mock_session,
                                     token_response, clock, fixed_now):
        """Test an expired token triggers one refresh."""
        token_store.save(credential_factory(access_token="old", lifetime_seconds=3600))
        clock.now = fixed_now + timedelta(seconds=3400)
        mock_session.post.return_value = token_response(access_token="refreshed")

        assert oauth.get_valid_access_token() == "refreshed"
        assert mock_session.post.call_count == 1

    def test_concurrent_callers_share_one_refresh(self, oauth, token_store, credential_factory, mock_session,
                                                  token_response, clock, fixed_now):
        """Test simultaneous callers needing a token trigger a single refresh."""
        token_store.save(credential_factory(access_token="old", lifetime_seconds=3600))
        clock.now = fixed_now + timedelta(seconds=3400)

        release = threading.Event()
        entered = threading.Event()

        def slow_post(*args, **kwargs):
            entered.set()
            release.wait(timeout=5)
            return token_response(access_token="refreshed")

        mock_session.post.side_effect = slow_post

        results = []
        workers = [threading.Thread(target=lambda: results.append(oauth.get_valid_access_token()))
                   for _ in range(5)]
        workers[0].start()
        entered.wait(timeout=5)
        for worker in workers[1:]:
            worker.start()
        release.set()
        for worker in workers:
            worker.join(timeout=5)

        assert results == ["refreshed"] * 5
        assert mock_session.post.call_count == 1


# =============================================================================
# Test sign out
# =============================================================================

class TestSignOut:
    """Tests for sign_out."""

    def test_sign_out_deletes_credential(self, oauth, token_store, credential_factory):
        """Test signing out removes the stored credential."""
        token_store.save(credential_factory())
        oauth.sign_out()
        assert token_store.exists() is False

    def test_sign_out_without_credential(self, oauth):
        """Test signing out twice is fine."""
        oauth.sign_out()
        oauth.sign_out()

    def test_sign_out_store_failure(self, oauth, memory_secure_store):
        """Test an unexpected store failure propagates."""
        memory_secure_store.delete = MagicMock(side_effect=UnexpectedStoreError("disk"))
        with pytest.raises(UnexpectedStoreError):
            oauth.sign_out()
