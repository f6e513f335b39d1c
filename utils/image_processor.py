"""
Image Processor Module

Pillow-backed ImageProcessor: converts any supported image to an
upload-ready JPEG no larger than the maximum dimension, and makes a small
thumbnail for listings.
"""

import io
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from config import settings
from data.models import ProcessedImage
from utils.exceptions import ImageTooLargeError, MediaError
from utils.logger import get_logger

logger = get_logger(__name__)


class PillowImageProcessor:
    """Resize and re-encode images with Pillow."""

    def __init__(self, max_dimension: Optional[int] = None,
                 thumbnail_size: Optional[Tuple[int, int]] = None,
                 quality: Optional[int] = None, max_bytes: Optional[int] = None):
        self.max_dimension = max_dimension or settings.MAX_IMAGE_DIMENSION
        self.thumbnail_size = thumbnail_size or settings.THUMBNAIL_SIZE
        self.quality = quality or settings.JPEG_QUALITY
        self.max_bytes = max_bytes or settings.MAX_ATTACHMENT_BYTES

    def _encode(self, image: Image.Image) -> bytes:
        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=self.quality, optimize=True)
        return buffer.getvalue()

    def process(self, raw: bytes) -> ProcessedImage:
        """
        Produce the full-size and thumbnail JPEG buffers for ``raw``.

        Args:
            raw: Image bytes in any format Pillow can read.

        Returns:
            ProcessedImage: JPEG payload and thumbnail.

        Raises:
            MediaError: If the bytes are not a readable image.
            ImageTooLargeError: If the re-encoded image still exceeds the size limit.
        """
        try:
            with Image.open(io.BytesIO(raw)) as source:
                image = source.convert("RGB")
        except (UnidentifiedImageError, OSError) as e:
            raise MediaError(f"Unsupported or corrupt image: {e}") from e

        if max(image.size) > self.max_dimension:
            logger.debug(f"Resizing image from {image.size} to fit {self.max_dimension}px")
            image.thumbnail((self.max_dimension, self.max_dimension), Image.LANCZOS)

        data = self._encode(image)
        if len(data) > self.max_bytes:
            raise ImageTooLargeError(
                f"Image is {len(data)} bytes after compression; the limit is {self.max_bytes} bytes"
            )

        thumb = image.copy()
        thumb.thumbnail(self.thumbnail_size, Image.LANCZOS)
        return ProcessedImage(data=data, thumbnail=self._encode(thumb), media_type="image/jpeg")
