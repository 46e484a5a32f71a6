"""
Inspect uploaded message images with Pillow.
"""
from io import BytesIO
from typing import Any, Dict

from PIL import Image, UnidentifiedImageError

ALLOWED_IMAGE_FORMATS = {"JPEG", "PNG", "WEBP", "GIF"}
FORMAT_EXTENSIONS = {"JPEG": ".jpg", "PNG": ".png", "WEBP": ".webp", "GIF": ".gif"}
FORMAT_CONTENT_TYPES = {"JPEG": "image/jpeg", "PNG": "image/png", "WEBP": "image/webp", "GIF": "image/gif"}


class InvalidImage(ValueError):
    """Bytes are not a decodable image in an allowed format."""


def extract_image_metadata(content: bytes) -> Dict[str, Any]:
    """
    Return width, height, format and size_kb for image bytes.

    Raises:
        InvalidImage: not an image, or a format we do not accept
    """
    try:
        with Image.open(BytesIO(content)) as img:
            img.verify()
        # verify() leaves the image unusable; reopen for size/format
        with Image.open(BytesIO(content)) as img:
            width, height = img.size
            fmt = (img.format or "").upper()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImage(f"Not a valid image: {e}") from e
    if fmt not in ALLOWED_IMAGE_FORMATS:
        raise InvalidImage(f"Unsupported image format: {fmt or 'unknown'}")
    return {
        "width": width,
        "height": height,
        "format": fmt,
        "extension": FORMAT_EXTENSIONS[fmt],
        "content_type": FORMAT_CONTENT_TYPES[fmt],
        "size_kb": round(len(content) / 1024, 2),
    }
