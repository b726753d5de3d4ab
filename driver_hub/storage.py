"""
S3 uploads for delivery proofs and profile photos. Returns the object key stored on the row.
"""
import asyncio
import logging
import os
import uuid
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from driver_hub.config import settings
from driver_hub.errors import UpstreamFailureError
from driver_hub.metrics import upstream_failures_total

logger = logging.getLogger(__name__)

_s3_client: Any = None


def _get_client():
    global _s3_client
    if _s3_client is None:
        _s3_client = boto3.client(
            "s3",
            region_name=settings.aws_region,
            endpoint_url=settings.s3_endpoint_url,
        )
    return _s3_client


def _extension(filename: str | None) -> str:
    ext = os.path.splitext(filename or "")[1].lstrip(".").lower()
    return ext or "jpg"


def proof_key(order_id: int, filename: str | None) -> str:
    return f"delivery-proofs/{order_id}-{uuid.uuid4().hex}.{_extension(filename)}"


def photo_key(driver_id: int, filename: str | None) -> str:
    return f"drivers/{driver_id}-{uuid.uuid4().hex}.{_extension(filename)}"


async def _put(bucket: str, key: str, content: bytes, content_type: str | None) -> None:
    client = _get_client()
    try:
        await asyncio.to_thread(
            client.put_object,
            Bucket=bucket,
            Key=key,
            Body=content,
            ContentType=content_type or "application/octet-stream",
        )
    except (BotoCoreError, ClientError) as e:
        upstream_failures_total.labels(service="storage").inc()
        logger.error("Upload of %s to bucket %s failed: %s", key, bucket, e)
        raise UpstreamFailureError("storage", str(e)) from e


async def upload_proof(order_id: int, filename: str | None, content: bytes, content_type: str | None = None) -> str:
    key = proof_key(order_id, filename)
    await _put(settings.proof_bucket, key, content, content_type)
    logger.info("Stored delivery proof for order_id=%s at %s", order_id, key)
    return key


async def upload_photo(driver_id: int, filename: str | None, content: bytes, content_type: str | None = None) -> str:
    key = photo_key(driver_id, filename)
    await _put(settings.photo_bucket, key, content, content_type)
    return key
