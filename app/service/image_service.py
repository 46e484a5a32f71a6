"""
Message image storage: S3 when configured, local UPLOAD_DIR otherwise.
"""
import logging
import os
import uuid
from typing import Any, Dict, Tuple

from app.aws.s3 import upload_to_s3
from app.core.config import settings
from app.core.exceptions import ValidationFailed
from app.utils.image_metadata import InvalidImage, extract_image_metadata

logger = logging.getLogger(__name__)

MESSAGE_IMAGE_PREFIX = "message-images"


def store_message_image(user_id: int, content: bytes) -> Tuple[str, Dict[str, Any]]:
    """
    Validate and store an image attached to a message.

    Returns (image_url, metadata). image_url is an S3 URL or a path under
    /uploads served by the app.
    """
    if not content:
        raise ValidationFailed("Uploaded file is empty.", field="file")
    if len(content) > settings.MESSAGE_IMAGE_MAX_BYTES:
        raise ValidationFailed(
            f"Image exceeds {settings.MESSAGE_IMAGE_MAX_BYTES // 1024} KB.", field="file"
        )
    try:
        meta = extract_image_metadata(content)
    except InvalidImage as e:
        raise ValidationFailed(str(e), field="file")

    name = f"{user_id}_{uuid.uuid4().hex}{meta['extension']}"
    if settings.use_s3:
        url = upload_to_s3(
            key=f"{MESSAGE_IMAGE_PREFIX}/{name}",
            body=content,
            content_type=meta["content_type"],
        )
    else:
        base_dir = os.path.join(settings.UPLOAD_DIR, MESSAGE_IMAGE_PREFIX)
        os.makedirs(base_dir, exist_ok=True)
        with open(os.path.join(base_dir, name), "wb") as f:
            f.write(content)
        url = f"/uploads/{MESSAGE_IMAGE_PREFIX}/{name}"
        logger.info("Stored message image locally: %s", url)
    return url, meta
