"""
Media Uploader Module

Chunked upload of a single image through the v1.1 media endpoint:

    INIT -> APPEND (one or more segments) -> FINALIZE -> STATUS polling

The returned media id can be attached to a post once the server reports
the asset ready (or reports no processing at all).
"""

import time
from typing import Any, Callable, Dict, Optional

import requests

from config import settings
from services.protocols import TokenProvider
from utils.exceptions import (
    ImageTooLargeError,
    NetworkError,
    ProcessingFailedError,
    UploadFailedError,
    UploadTimeoutError,
)
from utils.helpers import safe_get, truncate_text
from utils.logger import get_logger

logger = get_logger(__name__)

PENDING_STATES = ("pending", "in_progress")
ALT_TEXT_MAX_LENGTH = 1000


class MediaUploader:
    """Service that uploads attachments and waits for server-side processing."""

    def __init__(self, token_provider: TokenProvider, session: Optional[requests.Session] = None,
                 upload_url: Optional[str] = None, metadata_url: Optional[str] = None,
                 max_bytes: Optional[int] = None, chunk_size: Optional[int] = None,
                 max_poll_attempts: Optional[int] = None, default_wait: Optional[float] = None,
                 sleep: Callable[[float], None] = time.sleep, timeout: Optional[float] = None):
        """
        Initialize the uploader.

        Args:
            token_provider: Supplies a valid bearer token for each request.
            session: HTTP session. A new one is created if omitted.
            upload_url: Media upload endpoint.
            metadata_url: Media metadata (alt text) endpoint.
            max_bytes: Largest accepted payload.
            chunk_size: Largest APPEND segment.
            max_poll_attempts: STATUS calls allowed before giving up.
            default_wait: Seconds to wait when the server gives no check_after_secs.
            sleep: Called with the wait in seconds between STATUS calls.
            timeout: Per-request timeout in seconds.
        """
        self.token_provider = token_provider
        self.session = session or requests.Session()
        self.upload_url = upload_url or settings.X_MEDIA_UPLOAD_URL
        self.metadata_url = metadata_url or settings.X_MEDIA_METADATA_URL
        self.max_bytes = max_bytes or settings.MAX_ATTACHMENT_BYTES
        self.chunk_size = chunk_size or settings.MEDIA_CHUNK_SIZE
        self.max_poll_attempts = max_poll_attempts or settings.MEDIA_POLL_MAX_ATTEMPTS
        self.default_wait = settings.MEDIA_POLL_DEFAULT_WAIT if default_wait is None else default_wait
        self.sleep = sleep
        self.timeout = timeout or settings.HTTP_TIMEOUT

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token_provider.get_valid_access_token()}"}

    def _send(self, command: str, method: str, expected: tuple, **kwargs) -> requests.Response:
        try:
            response = self.session.request(method, self.upload_url, headers=self._headers(),
                                            timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Media {command} failed before a response: {e}")
            raise NetworkError(str(e)) from e

        if response.status_code not in expected:
            body = truncate_text(response.text or "", 200)
            logger.error(f"Media {command} returned HTTP {response.status_code}")
            raise UploadFailedError(f"{command} returned HTTP {response.status_code}: {body}")
        return response

    @staticmethod
    def _json(response: requests.Response, command: str) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as e:
            raise UploadFailedError(f"{command} response was not valid JSON") from e
        if not isinstance(payload, dict):
            raise UploadFailedError(f"{command} response was not a JSON object")
        return payload

    def upload(self, data: bytes, media_type: Optional[str] = None,
               media_category: Optional[str] = None) -> str:
        """
        Upload one payload and wait until it can be attached.

        Args:
            data: Image bytes.
            media_type: MIME type. Defaults to settings.MEDIA_TYPE.
            media_category: Media category. Defaults to settings.MEDIA_CATEGORY.

        Returns:
            str: The server-assigned media id.

        Raises:
            ImageTooLargeError: If ``data`` exceeds the size limit (no request is made).
            UploadFailedError: If any command is rejected.
            ProcessingFailedError: If the server reports processing failed.
            UploadTimeoutError: If processing is still pending after the polling cap.
            NetworkError: On transport failure.
        """
        if len(data) > self.max_bytes:
            raise ImageTooLargeError(
                f"Image is {len(data)} bytes; the limit is {self.max_bytes} bytes"
            )

        media_type = media_type or settings.MEDIA_TYPE
        media_category = media_category or settings.MEDIA_CATEGORY

        # INIT
        response = self._send("INIT", "POST", (200, 202), data={
            "command": "INIT",
            "total_bytes": str(len(data)),
            "media_type": media_type,
            "media_category": media_category,
        })
        media_id = self._json(response, "INIT").get("media_id_string")
        if not media_id:
            raise UploadFailedError("INIT response has no media_id_string")
        logger.debug(f"Media {media_id}: initialized ({len(data)} bytes)")

        # APPEND
        segments = [data[i:i + self.chunk_size] for i in range(0, len(data), self.chunk_size)] or [b""]
        for index, segment in enumerate(segments):
            self._send("APPEND", "POST", (200, 204),
                       data={"command": "APPEND", "media_id": media_id, "segment_index": str(index)},
                       files={"media": ("media", segment, media_type)})
        logger.debug(f"Media {media_id}: appended {len(segments)} segment(s)")

        # FINALIZE
        response = self._send("FINALIZE", "POST", (200, 201),
                              data={"command": "FINALIZE", "media_id": media_id})
        processing_info = self._json(response, "FINALIZE").get("processing_info")

        self._wait_for_processing(media_id, processing_info)
        logger.info(f"Media {media_id}: ready")
        return media_id

    def _wait_for_processing(self, media_id: str, processing_info: Optional[Dict[str, Any]]) -> None:
        """
        Poll STATUS until the asset leaves the pending states.

        No ``processing_info`` means the asset is usable immediately.
        """
        attempts = 0
        while processing_info and processing_info.get("state") in PENDING_STATES:
            if attempts >= self.max_poll_attempts:
                logger.error(f"Media {media_id}: still processing after {attempts} checks")
                raise UploadTimeoutError()

            wait = processing_info.get("check_after_secs", self.default_wait)
            logger.debug(f"Media {media_id}: {processing_info.get('state')}, checking in {wait}s")
            self.sleep(wait)
            attempts += 1

            response = self._send("STATUS", "GET", (200,),
                                  params={"command": "STATUS", "media_id": media_id})
            processing_info = self._json(response, "STATUS").get("processing_info")

        if processing_info and processing_info.get("state") == "failed":
            detail = safe_get(processing_info, "error", "message", default="Server processing failed")
            logger.error(f"Media {media_id}: processing failed: {detail}")
            raise ProcessingFailedError(detail)

    def set_alt_text(self, media_id: str, alt_text: str) -> bool:
        """
        Attach accessibility text to an uploaded media id.

        Failure here never blocks posting; it is logged and reported as False.

        Returns:
            bool: True if the text was accepted or there was nothing to send.
        """
        alt_text = (alt_text or "").strip()
        if not alt_text:
            return True

        body = {"media_id": media_id, "alt_text": {"text": alt_text[:ALT_TEXT_MAX_LENGTH]}}
        try:
            response = self.session.post(self.metadata_url, json=body, headers=self._headers(),
                                         timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Media {media_id}: failed to set alt text: {e}")
            return False

        if not 200 <= response.status_code < 300:
            logger.warning(f"Media {media_id}: alt text rejected with HTTP {response.status_code}")
            return False
        return True
