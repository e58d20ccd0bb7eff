import logging
from typing import Optional
from uuid import uuid4

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from flock.config_secrets import (
    AWS_ACCESS_KEY_ID,
    AWS_REGION,
    AWS_SECRET_ACCESS_KEY,
    MEDIA_S3_BUCKET,
    MEDIA_S3_PREFIX,
    MEDIA_URL_EXPIRE_SECONDS,
)

logger = logging.getLogger(__name__)

# S3 client, created on first use
s3_client = None


def get_s3_client():
    """Return the shared S3 client, creating it on first use"""
    global s3_client
    if s3_client is None:
        s3_client = boto3.client(
            "s3",
            region_name=AWS_REGION,
            aws_access_key_id=AWS_ACCESS_KEY_ID,
            aws_secret_access_key=AWS_SECRET_ACCESS_KEY,
        )
    return s3_client


def get_media_s3_key(storage_id: str) -> str:
    """
    Generate the S3 key for an uploaded file

    Args:
        storage_id: Opaque id handed out by generate_upload_url

    Returns:
        The S3 key
    """
    return f"{MEDIA_S3_PREFIX}{storage_id}"


def generate_upload_url(content_type: Optional[str] = None) -> dict[str, str]:
    """
    Create a storage id and a presigned URL the client can PUT the file to

    Returns:
        Dict with storage_id and upload_url
    """
    storage_id = uuid4().hex
    params = {"Bucket": MEDIA_S3_BUCKET, "Key": get_media_s3_key(storage_id)}
    if content_type:
        params["ContentType"] = content_type

    upload_url = get_s3_client().generate_presigned_url(
        "put_object",
        Params=params,
        ExpiresIn=MEDIA_URL_EXPIRE_SECONDS,
    )
    return {"storage_id": storage_id, "upload_url": upload_url}


def get_file_url(storage_id: Optional[str]) -> Optional[str]:
    """
    Resolve a storage id to a fetchable URL. Resolved on every read, never cached.

    Args:
        storage_id: Id returned by generate_upload_url

    Returns:
        A presigned GET URL, or None if the id is empty or cannot be signed
    """
    if not storage_id:
        return None
    try:
        return get_s3_client().generate_presigned_url(
            "get_object",
            Params={"Bucket": MEDIA_S3_BUCKET, "Key": get_media_s3_key(storage_id)},
            ExpiresIn=MEDIA_URL_EXPIRE_SECONDS,
        )
    except (BotoCoreError, ClientError):
        logger.exception(f"Error resolving storage id {storage_id}")
        return None
