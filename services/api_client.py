"""
API Client Module

Authenticated executor for the platform REST API. Every request carries a
bearer token obtained from a TokenProvider; responses are classified into
the APIError hierarchy before anything is decoded.
"""

import json
from typing import Any, Dict, List, Optional

import requests

from config import settings
from data.models import AuthenticatedUser, PostResult
from services.protocols import TokenProvider
from utils.exceptions import (
    DecodingError,
    InvalidRequestError,
    NetworkError,
    RateLimitError,
    ServerError,
    UnauthorizedError,
)
from utils.helpers import epoch_to_datetime, safe_get, truncate_text
from utils.logger import get_logger

logger = get_logger(__name__)


def raise_for_status(response: requests.Response) -> None:
    """
    Map a non-2xx response onto the APIError hierarchy.

    Raises:
        UnauthorizedError: On 401.
        RateLimitError: On 429, with the reset time when the header is present.
        InvalidRequestError: On any other 4xx, carrying the body text.
        ServerError: On 5xx.
    """
    status = response.status_code
    if 200 <= status < 300:
        return
    if status == 401:
        raise UnauthorizedError()
    if status == 429:
        reset_at = epoch_to_datetime(response.headers.get(settings.X_RATE_LIMIT_RESET_HEADER))
        raise RateLimitError(reset_at)
    if 400 <= status < 500:
        raise InvalidRequestError(response.text or f"HTTP {status}")
    if status >= 500:
        raise ServerError(status)
    raise InvalidRequestError(f"Unexpected HTTP status {status}")


class APIClient:
    """Client for the post-creation and current-user endpoints."""

    def __init__(self, token_provider: TokenProvider, session: Optional[requests.Session] = None,
                 base_url: Optional[str] = None, timeout: Optional[float] = None):
        """
        Initialize the API client.

        Args:
            token_provider: Supplies a valid bearer token for each request.
            session: HTTP session. A new one is created if omitted.
            base_url: API root. Defaults to settings.X_API_BASE_URL.
            timeout: Per-request timeout in seconds.
        """
        self.token_provider = token_provider
        self.session = session or requests.Session()
        self.base_url = (base_url or settings.X_API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT

    def request(self, method: str, endpoint: str, params: Optional[Dict[str, Any]] = None,
                json_body: Optional[Dict[str, Any]] = None) -> bytes:
        """
        Execute an authenticated request.

        Args:
            method: HTTP method.
            endpoint: Path relative to the API root, e.g. "/tweets".
            params: Query parameters.
            json_body: JSON request body.

        Returns:
            bytes: The raw body of a 2xx response.

        Raises:
            APIError: Any subclass matching the response status or transport failure.
            AuthError: If no valid token can be obtained.
        """
        token = self.token_provider.get_valid_access_token()
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        headers = {"Authorization": f"Bearer {token}"}

        try:
            response = self.session.request(method, url, params=params, json=json_body,
                                            headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"{method} {endpoint} failed before a response: {e}")
            raise NetworkError(str(e)) from e

        if not 200 <= response.status_code < 300:
            logger.warning(f"{method} {endpoint} returned HTTP {response.status_code}")
        raise_for_status(response)
        return response.content

    def _request_json(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        body = self.request(method, endpoint, **kwargs)
        try:
            payload = json.loads(body)
        except ValueError as e:
            raise DecodingError(str(e)) from e
        if not isinstance(payload, dict):
            raise DecodingError("expected a JSON object")
        return payload

    def post_item(self, text: str, media_ids: Optional[List[str]] = None,
                  reply_to_id: Optional[str] = None) -> PostResult:
        """
        Publish one post.

        Args:
            text: Post text.
            media_ids: Uploaded media to attach.
            reply_to_id: Post id this one replies to, chaining a thread.

        Returns:
            PostResult: The id and text of the created post.
        """
        body: Dict[str, Any] = {"text": text}
        if media_ids:
            body["media"] = {"media_ids": list(media_ids)}
        if reply_to_id:
            body["reply"] = {"in_reply_to_tweet_id": reply_to_id}

        payload = self._request_json("POST", "/tweets", json_body=body)
        post_id = safe_get(payload, "data", "id")
        if post_id is None:
            raise DecodingError("response has no data.id")

        logger.info(f"Posted {post_id}: {truncate_text(text, 50)}")
        return PostResult(post_id=str(post_id), text=safe_get(payload, "data", "text", default=text))

    def get_current_user(self) -> AuthenticatedUser:
        """Fetch the profile of the signed-in account."""
        payload = self._request_json("GET", "/users/me", params={"user.fields": "profile_image_url"})
        data = payload.get("data")
        if not isinstance(data, dict):
            raise DecodingError("response has no data object")
        try:
            return AuthenticatedUser.from_api(data)
        except KeyError as e:
            raise DecodingError(f"user is missing field {e}") from e
