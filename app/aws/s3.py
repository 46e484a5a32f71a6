"""
S3 upload helpers for message image attachments.
"""
import logging
from typing import Optional

from app.aws.client import get_aws_client
from app.core.config import settings

logger = logging.getLogger(__name__)


def get_s3_client():
    """S3 client for the configured region."""
    return get_aws_client("s3", region_name=settings.s3_region)


def build_public_url(key: str) -> str:
    """Public URL for an object (the bucket policy must allow s3:GetObject)."""
    return f"https://{settings.S3_BUCKET_NAME}.s3.{settings.s3_region}.amazonaws.com/{key}"


def upload_to_s3(
    key: str,
    body: bytes,
    content_type: str,
    bucket: Optional[str] = None,
) -> str:
    """
    Upload bytes and return the object URL. No ACLs are set.

    Args:
        key: object key, e.g. message-images/7_<hex>.jpg
        body: file bytes
        content_type: MIME type
        bucket: override; defaults to settings.S3_BUCKET_NAME
    """
    b = bucket or settings.S3_BUCKET_NAME
    if not b:
        raise ValueError("S3_BUCKET_NAME not configured")

    get_s3_client().put_object(
        Bucket=b,
        Key=key,
        Body=body,
        ContentType=content_type,
    )
    url = build_public_url(key)
    logger.info(f"Uploaded S3 key={key} -> {url}")
    return url
