"""Backend client factory: turns a storage configuration into a bucket-bound boto3 client.

Self-hosted backends get path-style addressing at their explicit endpoint
(plain HTTP when TLS is off); cloud backends get virtual-hosted addressing
resolved from the region alone. No network I/O happens here.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

from s3manager.core.config import Settings
from s3manager.domain.entities.storage_config import StorageConfig
from s3manager.domain.enums import BackendKind
from s3manager.domain.exceptions import ClientCreationFailure
from s3manager.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

_BUCKET_EXISTS_CODES = frozenset({"BucketAlreadyOwnedByYou", "BucketAlreadyExists"})


def normalize_endpoint(endpoint_url: str, use_tls: bool) -> str:
    """Return a base URL with a scheme that honours use_tls.

    A bare host[:port] gets https or http from use_tls; an explicit https
    scheme is downgraded to http when TLS is off.

    Raises:
        ClientCreationFailure: If the result is not a valid http(s) base URL.
    """
    raw = (endpoint_url or "").strip().rstrip("/")
    if not raw:
        raise ClientCreationFailure("endpoint URL is required", field="endpoint_url")
    if "://" not in raw:
        raw = ("https://" if use_tls else "http://") + raw
    parsed = urlparse(raw)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ClientCreationFailure("endpoint URL is not a valid base URL", field="endpoint_url")
    if parsed.query or parsed.fragment:
        raise ClientCreationFailure(
            "endpoint URL must not carry a query or fragment", field="endpoint_url"
        )
    try:
        parsed.port
    except ValueError as e:
        raise ClientCreationFailure("endpoint URL has an invalid port", field="endpoint_url") from e
    if not use_tls and parsed.scheme == "https":
        parsed = parsed._replace(scheme="http")
    return parsed.geturl()


class BucketClient:
    """boto3 S3 client bound to exactly one bucket. Implements IBackendClient.

    All methods block; async callers run them via asyncio.to_thread.
    """

    def __init__(self, client: Any, bucket: str) -> None:
        self._client = client
        self.bucket = bucket

    def put_object(self, key: str, body: bytes, content_type: str | None = None) -> dict[str, Any]:
        extra = {"ContentType": content_type} if content_type else {}
        return self._client.put_object(Bucket=self.bucket, Key=key, Body=body, **extra)

    def get_object(self, key: str) -> dict[str, Any]:
        return self._client.get_object(Bucket=self.bucket, Key=key)

    def list_objects(self, prefix: str) -> list[dict[str, Any]]:
        """Every object under prefix across all ListObjectsV2 pages."""
        paginator = self._client.get_paginator("list_objects_v2")
        objects: list[dict[str, Any]] = []
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            objects.extend(page.get("Contents", []))
        return objects

    def delete_object(self, key: str) -> None:
        self._client.delete_object(Bucket=self.bucket, Key=key)

    def create_multipart_upload(self, key: str, content_type: str | None = None) -> str:
        extra = {"ContentType": content_type} if content_type else {}
        response = self._client.create_multipart_upload(Bucket=self.bucket, Key=key, **extra)
        return response["UploadId"]

    def upload_part(self, key: str, upload_id: str, part_number: int, body: bytes) -> str:
        response = self._client.upload_part(
            Bucket=self.bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=body,
        )
        return response["ETag"]

    def complete_multipart_upload(
        self, key: str, upload_id: str, parts: list[dict[str, Any]]
    ) -> dict[str, Any]:
        return self._client.complete_multipart_upload(
            Bucket=self.bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": parts},
        )

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        self._client.abort_multipart_upload(Bucket=self.bucket, Key=key, UploadId=upload_id)

    def probe(self) -> None:
        """List at most one key; raises on bad credentials or a missing bucket."""
        self._client.list_objects_v2(Bucket=self.bucket, MaxKeys=1)

    def ensure_bucket(self, region: str) -> bool:
        """Create the bound bucket; return False if it already existed."""
        kwargs: dict[str, Any] = {"Bucket": self.bucket}
        if region and region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            self._client.create_bucket(**kwargs)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _BUCKET_EXISTS_CODES:
                return False
            raise
        return True


class BackendClientFactory:
    """Builds BucketClient instances. Implements IBackendClientFactory."""

    def __init__(
        self,
        *,
        connect_timeout: int = 10,
        read_timeout: int = 60,
        max_attempts: int = 3,
    ) -> None:
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.max_attempts = max_attempts

    @classmethod
    def from_settings(cls, settings: Settings) -> BackendClientFactory:
        return cls(
            connect_timeout=settings.backend_connect_timeout,
            read_timeout=settings.backend_read_timeout,
            max_attempts=settings.backend_max_attempts,
        )

    def create(self, config: StorageConfig) -> BucketClient:
        """Client for one stored configuration.

        Raises:
            ClientCreationFailure: If credentials, bucket or endpoint are malformed.
        """
        return self.build(
            backend_kind=config.backend_kind,
            access_key_id=config.access_key_id,
            secret_access_key=config.secret_access_key,
            bucket_name=config.bucket_name,
            region=config.region,
            endpoint_url=config.endpoint_url,
            use_tls=config.use_tls,
        )

    def build(
        self,
        *,
        backend_kind: BackendKind | str,
        access_key_id: str,
        secret_access_key: str,
        bucket_name: str,
        region: str | None = None,
        endpoint_url: str | None = None,
        use_tls: bool = True,
    ) -> BucketClient:
        """Client from explicit parameters (also used with admin credentials).

        Raises:
            ClientCreationFailure: If any input is missing or malformed.
        """
        try:
            kind = BackendKind(backend_kind)
        except ValueError as e:
            raise ClientCreationFailure("unknown backend kind", field="backend_kind") from e
        if not access_key_id:
            raise ClientCreationFailure("access key is required", field="access_key_id")
        if not secret_access_key:
            raise ClientCreationFailure("secret access key is required", field="secret_access_key")
        if not bucket_name:
            raise ClientCreationFailure("bucket name is required", field="bucket_name")

        client_kwargs: dict[str, Any] = {
            "region_name": region or "us-east-1",
            "aws_access_key_id": access_key_id,
            "aws_secret_access_key": secret_access_key,
        }
        if kind.requires_endpoint:
            client_kwargs["endpoint_url"] = normalize_endpoint(endpoint_url or "", use_tls)
            client_kwargs["use_ssl"] = use_tls
        boto_config = BotoConfig(
            signature_version="s3v4",
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
            retries={"max_attempts": self.max_attempts, "mode": "standard"},
            s3={"addressing_style": kind.addressing_style},
        )
        try:
            client = boto3.client("s3", config=boto_config, **client_kwargs)
        except Exception as e:
            logger.warning("boto3 client creation failed for bucket %s: %s", bucket_name, e)
            raise ClientCreationFailure(type(e).__name__) from e
        return BucketClient(client, bucket_name)
