"""Image preprocessing utilities.

Preprocessing receipt images before recognition improves OCR quality
and keeps request payloads small. The functions in this module apply
EXIF orientation, convert to grayscale and cap the longest edge.
Pillow is used as the imaging backend. Bytes Pillow cannot decode are
returned unchanged so the recognition service can make its own call.
"""

from __future__ import annotations

import logging
from io import BytesIO

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)


def preprocess_image(image_data: bytes, max_size: int = 2048) -> bytes:
    """Preprocess an image for receipt text recognition.

    :param image_data: Raw image bytes
    :param max_size: Maximum size of the longest edge in pixels
    :returns: Processed image bytes in JPEG format, or the input unchanged
    """
    try:
        with Image.open(BytesIO(image_data)) as img:
            # Apply EXIF orientation (e.g., phone photos taken upright)
            img = ImageOps.exif_transpose(img)
            img = img.convert("L")
            width, height = img.size
            max_dim = max(width, height)
            if max_dim > max_size:
                scale = max_size / float(max_dim)
                img = img.resize((int(width * scale), int(height * scale)))
            buf = BytesIO()
            img.save(buf, format="JPEG")
            return buf.getvalue()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        logger.info("Image preprocessing skipped: %s", exc)
        return image_data
