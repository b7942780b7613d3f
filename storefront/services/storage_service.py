"""
==============================================================================
Object Storage Service Module
==============================================================================

S3-compatible object storage for product images (AWS S3 or MinIO).

Public URL Forms:
----------------
    <S3_PUBLIC_URL>/<key>                               CDN / MinIO
    https://<bucket>.s3.<region>.amazonaws.com/<key>    AWS default

==============================================================================
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig

from storefront.config import Settings, get_settings


logger = logging.getLogger(__name__)


class StorageService:
    """
    Thin wrapper over a boto3 S3 client.

    Example:
        >>> storage = StorageService(get_settings())
        >>> url = storage.upload("app/uploads/products/1/thumb.webp", data, "image/webp")
    """

    def __init__(self, settings: Settings, client=None) -> None:
        self._settings = settings
        self._client = client

    def _get_client(self):
        if self._client is None:
            kwargs = {"region_name": self._settings.s3_region}
            if self._settings.s3_endpoint_url:
                kwargs["endpoint_url"] = self._settings.s3_endpoint_url
            if self._settings.s3_access_key_id:
                kwargs["aws_access_key_id"] = self._settings.s3_access_key_id
            if self._settings.s3_secret_access_key:
                kwargs["aws_secret_access_key"] = self._settings.s3_secret_access_key
            if self._settings.s3_force_path_style:
                kwargs["config"] = BotoConfig(s3={"addressing_style": "path"})
            self._client = boto3.client("s3", **kwargs)
        return self._client

    @property
    def bucket(self) -> str:
        return self._settings.s3_bucket

    # =========================================================================
    # OBJECT OPERATIONS
    # =========================================================================

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        """
        Store an object with public-read ACL.

        Returns:
            Public URL of the stored object
        """
        self._get_client().put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
            ACL="public-read",
        )
        logger.debug(f"Stored object s3://{self.bucket}/{key}")
        return self.public_url(key)

    def delete(self, key: str) -> None:
        self._get_client().delete_object(Bucket=self.bucket, Key=key)
        logger.debug(f"Deleted object s3://{self.bucket}/{key}")

    # =========================================================================
    # URL HELPERS
    # =========================================================================

    def public_url(self, key: str) -> str:
        if self._settings.s3_public_url:
            return f"{self._settings.s3_public_url.rstrip('/')}/{key}"
        return f"https://{self.bucket}.s3.{self._settings.s3_region}.amazonaws.com/{key}"

    def key_from_url(self, url: str) -> Optional[str]:
        """Reverse public_url; None if the URL is not one of ours."""
        bases = [f"https://{self.bucket}.s3.{self._settings.s3_region}.amazonaws.com/"]
        if self._settings.s3_public_url:
            bases.insert(0, f"{self._settings.s3_public_url.rstrip('/')}/")

        for base in bases:
            if url.startswith(base):
                return url[len(base):]
        return None


@lru_cache(maxsize=1)
def get_storage_service() -> StorageService:
    """Get the global StorageService."""
    return StorageService(get_settings())
