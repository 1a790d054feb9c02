"""
S3 utility functions for order images.
Uploads originals and generates presigned URLs for private bucket access.
"""
import uuid
from typing import List
import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError
from .config import config
from .logging import logger

UPLOAD_PREFIX = 'uploads/'

# S3 client with custom signature version for presigned URLs
s3_client = boto3.client(
    's3',
    region_name=config.AWS_REGION,
    config=BotoConfig(signature_version='s3v4')
)


def upload_original_image(data: bytes, extension: str, content_type: str, bucket_name: str = None) -> str:
    """
    Store an uploaded original under a fresh random name.

    Args:
        data: Raw file bytes
        extension: Validated extension including the dot (e.g. '.png')
        content_type: Validated MIME type
        bucket_name: Optional bucket name, defaults to config.MEDIA_BUCKET

    Returns:
        The S3 key of the stored object
    """
    bucket = bucket_name or config.MEDIA_BUCKET
    key = f"{UPLOAD_PREFIX}{uuid.uuid4()}{extension}"

    s3_client.put_object(
        Bucket=bucket,
        Key=key,
        Body=data,
        ContentType=content_type
    )
    logger.info(f"Stored upload {key} ({len(data)} bytes)")
    return key


def delete_uploads(keys: List[str], bucket_name: str = None) -> None:
    """Remove stored uploads whose order was never persisted. Failures are only logged."""
    if not keys:
        return

    bucket = bucket_name or config.MEDIA_BUCKET
    try:
        s3_client.delete_objects(
            Bucket=bucket,
            Delete={'Objects': [{'Key': key} for key in keys], 'Quiet': True}
        )
        logger.info(f"Deleted {len(keys)} orphaned uploads")
    except ClientError as e:
        logger.error(f"Error deleting orphaned uploads {keys}: {e}")


def generate_presigned_url(
    s3_key: str,
    expiration: int = 3600,
    bucket_name: str = None
) -> str:
    """
    Generate a presigned URL for S3 object download.

    Args:
        s3_key: The S3 object key (e.g., 'uploads/uuid.jpg')
        expiration: URL expiration time in seconds (default 1 hour)
        bucket_name: Optional bucket name, defaults to config.MEDIA_BUCKET

    Returns:
        Presigned URL string or original key if generation fails
    """
    if not s3_key:
        return s3_key

    bucket = bucket_name or config.MEDIA_BUCKET
    if not bucket:
        logger.warning("No MEDIA_BUCKET configured, returning original key")
        return s3_key

    # External URLs (e.g. scraped product images) are returned as-is
    if s3_key.startswith('http://') or s3_key.startswith('https://'):
        return s3_key

    try:
        return s3_client.generate_presigned_url(
            'get_object',
            Params={
                'Bucket': bucket,
                'Key': s3_key
            },
            ExpiresIn=expiration
        )
    except ClientError as e:
        logger.error(f"Error generating presigned URL for {s3_key}: {e}")
        return s3_key
