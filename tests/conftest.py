"""
Shared Test Fixtures for Thread Poster Application

This module provides common fixtures used across all test modules.
Fixtures include mock HTTP responses and sessions, in-memory stores,
a fake token provider, logging capture, and factories for draft threads.
"""

import pytest
from unittest.mock import MagicMock
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


# =============================================================================
# Logging Fixtures
# =============================================================================

@pytest.fixture
def capture_logs():
    """
    Capture log messages for assertion in tests.

    Records from the application logger propagate to the root logger,
    where this handler collects them.

    Returns:
        list: A list that will contain captured log records.
    """
    import logging

    class LogCapture(logging.Handler):
        def __init__(self):
            super().__init__()
            self.records = []

        def emit(self, record):
            self.records.append(record)

    handler = LogCapture()
    handler.setLevel(logging.DEBUG)

    root_logger = logging.getLogger()
    original_level = root_logger.level
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(handler)

    app_logger = logging.getLogger("threadposter")
    original_app_level = app_logger.level
    app_logger.setLevel(logging.DEBUG)

    yield handler.records

    app_logger.setLevel(original_app_level)
    root_logger.removeHandler(handler)
    root_logger.setLevel(original_level)


# =============================================================================
# HTTP Fixtures
# =============================================================================

@pytest.fixture
def mock_http_response():
    """
    Factory fixture for creating mock HTTP responses.

    Usage:
        def test_http_request(mock_http_response):
            response = mock_http_response(
                status_code=200,
                json_data={'data': {'id': '1'}},
                headers={'x-rate-limit-reset': '1700000000'}
            )

    Returns:
        callable: A factory function for creating mock responses.
    """
    def _create_response(
        status_code: int = 200,
        content: bytes = b'',
        text: str = '',
        json_data: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> MagicMock:
        """
        Create a mock HTTP response object.

        Args:
            status_code: HTTP status code (default 200).
            content: Raw bytes content (generated from json_data if empty).
            text: Text content (generated from json_data or content if empty).
            json_data: Object returned from response.json().
            headers: Response headers dictionary.

        Returns:
            MagicMock: A mock response object mimicking requests.Response.
        """
        import json

        mock_response = MagicMock()
        mock_response.status_code = status_code
        mock_response.headers = headers or {}
        mock_response.ok = 200 <= status_code < 300

        if not content and json_data is not None:
            content = json.dumps(json_data).encode('utf-8')
        mock_response.content = content

        if text:
            mock_response.text = text
        else:
            mock_response.text = content.decode('utf-8') if content else ''

        if json_data is not None:
            mock_response.json.return_value = json_data
        else:
            mock_response.json.side_effect = ValueError("No JSON data")

        return mock_response

    return _create_response


@pytest.fixture
def mock_session():
    """
    A MagicMock standing in for requests.Session.

    Tests set ``request.return_value``/``side_effect`` (and ``post`` for the
    token and metadata endpoints) and inspect ``call_args_list`` afterwards.
    """
    session = MagicMock()
    session.request.return_value = None
    session.post.return_value = None
    return session


@pytest.fixture
def fake_token_provider():
    """A TokenProvider that always hands out the same token."""
    provider = MagicMock()
    provider.get_valid_access_token.return_value = "test-access-token"
    return provider


# =============================================================================
# Store Fixtures
# =============================================================================

@pytest.fixture
def fernet_key():
    from cryptography.fernet import Fernet
    return Fernet.generate_key()


@pytest.fixture
def memory_secure_store():
    from data.secure_store import MemorySecureStore
    return MemorySecureStore()


@pytest.fixture
def fixed_now():
    return datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(fixed_now):
    """
    A controllable clock for TokenStore.

    ``clock.now`` can be reassigned in a test to move time forward.
    """
    class Clock:
        def __init__(self, now):
            self.now = now

        def __call__(self):
            return self.now

    return Clock(fixed_now)


@pytest.fixture
def token_store(memory_secure_store, clock):
    from services.token_store import TokenStore
    return TokenStore(memory_secure_store, key="test_tokens", buffer_seconds=300, clock=clock)


@pytest.fixture
def credential_factory(fixed_now):
    """
    Factory fixture for creating Credential test objects.

    Returns:
        callable: A factory function for creating Credential objects.
    """
    from data.models import Credential

    def _create_credential(
        access_token: str = "access-123",
        refresh_token: Optional[str] = "refresh-456",
        lifetime_seconds: int = 7200,
        issued_at: Optional[datetime] = None,
        scope: Optional[str] = "tweet.read tweet.write users.read offline.access",
    ) -> Credential:
        return Credential(
            access_token=access_token,
            refresh_token=refresh_token,
            scope=scope,
            lifetime_seconds=lifetime_seconds,
            issued_at=issued_at or fixed_now,
        )

    return _create_credential


# =============================================================================
# Draft Fixtures
# =============================================================================

@pytest.fixture
def repository():
    from data.drafts import DraftRepository
    from data.memory_store import MemoryObjectStore
    return DraftRepository(MemoryObjectStore())


@pytest.fixture
def thread_factory(repository):
    """
    Factory fixture for creating draft threads in ``repository``.

    Usage:
        def test_thread(thread_factory):
            thread = thread_factory(["first", "second"], attachments=[1, 0])

    Args (of the factory):
        texts: One text per item.
        attachments: Number of attachments per item (defaults to none).
        payload: Bytes used for every attachment.

    Returns:
        callable: A factory function returning the new Thread.
    """
    def _create_thread(
        texts: List[str],
        attachments: Optional[List[int]] = None,
        payload: bytes = b"\xff\xd8jpeg-bytes",
    ):
        thread = repository.create_thread(texts[0])
        for text in texts[1:]:
            repository.add_item(thread, text)

        counts = attachments or [0] * len(texts)
        for item, count in zip(repository.items_for(thread), counts):
            for n in range(count):
                repository.add_attachment(item, payload, b"thumb", alt_text=f"image {n + 1}")
        return thread

    return _create_thread
