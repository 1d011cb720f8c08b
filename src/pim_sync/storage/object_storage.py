"""
S3-compatible object storage used for imported media.

Storj exposes an S3 gateway, so uploads go through a regular boto3 S3
client pointed at the gateway endpoint.
"""

import logging
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError


class ObjectStorageError(Exception):
    """Raised when an object cannot be written or removed."""
    pass


def build_object_key(base_path: str, relative_path: str) -> str:
    """
    Build the deterministic key for an imported file.

    Args:
        base_path: Optional prefix with no surrounding slashes
        relative_path: Path of the file relative to the import root

    Returns:
        Object key such as ``media/SKU-1/front.jpg``
    """
    return "/".join(part for part in (base_path, relative_path) if part)


class ObjectStorage:
    """Put and delete objects in an S3-compatible store."""

    def __init__(self, client: Any, scheme: str = "storj", logger: Optional[logging.Logger] = None):
        """
        Initialize object storage.

        Args:
            client: boto3 S3 client
            scheme: URL scheme used when recording object locations
            logger: Logger instance
        """
        self.client = client
        self.scheme = scheme
        self.logger = logger or logging.getLogger(__name__)

    def put_object(self, bucket: str, key: str, body: bytes, content_type: str) -> str:
        """
        Upload bytes to ``bucket/key``.

        Returns:
            Location URL of the stored object
        """
        try:
            self.client.put_object(
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentType=content_type or "application/octet-stream"
            )
        except (ClientError, BotoCoreError) as e:
            raise ObjectStorageError(f"Upload failed for {bucket}/{key}: {e}") from e

        self.logger.debug(f"Uploaded {len(body)} bytes to {bucket}/{key}")
        return self.object_url(bucket, key)

    def delete_object(self, bucket: str, key: str) -> None:
        try:
            self.client.delete_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise ObjectStorageError(f"Delete failed for {bucket}/{key}: {e}") from e

    def object_url(self, bucket: str, key: str) -> str:
        return f"{self.scheme}://{bucket}/{key}"


def create_object_storage(config, logger: Optional[logging.Logger] = None) -> ObjectStorage:
    """
    Create object storage from a ``MediaImportConfig``.

    Explicit access keys are used when configured; otherwise boto3 falls back
    to its default credential chain.
    """
    client_kwargs = {
        "endpoint_url": config.storage_endpoint,
        "region_name": config.storage_region,
    }

    if config.storage_access_key_id and config.storage_secret_access_key:
        client_kwargs["aws_access_key_id"] = config.storage_access_key_id
        client_kwargs["aws_secret_access_key"] = config.storage_secret_access_key

    return ObjectStorage(boto3.client("s3", **client_kwargs), logger=logger)
