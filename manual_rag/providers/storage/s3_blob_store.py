"""S3 blob store for mirrored manual PDFs.

Dependencies: boto3
boto3 is synchronous, so calls run in a worker thread.
"""

from __future__ import annotations

import asyncio

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from manual_rag.interfaces.blob_store import IBlobStore
from manual_rag.utils.errors import BlobStoreError

logger = structlog.get_logger(logger_name=__name__)


class S3BlobStore(IBlobStore):
    """Stores blobs in one S3 bucket under an optional key prefix.

    Args:
        bucket: S3 bucket name.
        region: AWS region of the bucket.
        prefix: Key prefix prepended to every path.
        client: Pre-built boto3 S3 client (tests inject a stub).
    """

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        prefix: str = "",
        client=None,
    ) -> None:
        self._bucket = bucket
        self._region = region
        self._prefix = prefix.strip("/")
        self._s3_client = client or boto3.client("s3", region_name=region)

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        key = self._key(path)
        try:
            await asyncio.to_thread(
                self._s3_client.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise BlobStoreError(
                message=f"S3 upload of {key} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("blob_stored", bucket=self._bucket, key=key, bytes=len(data))
        return self.public_url(path)

    def public_url(self, path: str) -> str:
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{self._key(path)}"

    def get_provider_name(self) -> str:
        return "s3"

    def _key(self, path: str) -> str:
        path = path.lstrip("/")
        return f"{self._prefix}/{path}" if self._prefix else path
