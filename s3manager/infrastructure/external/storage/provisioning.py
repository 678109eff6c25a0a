"""Auto-provisioning of per-owner accounts on a self-hosted (MinIO) backend.

Creates a backend user, a bucket-scoped canned policy and the bucket itself
with admin credentials, and hands back a draft configuration for the
registry to store. Admin credentials arrive as an explicit
AdminBackendConfig value; nothing here reads the environment.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

from minio import MinioAdmin
from minio.credentials import StaticProvider

from s3manager.application.dtos.storage_config import StorageConfigDraft
from s3manager.core.config import Settings
from s3manager.domain.enums import BackendKind
from s3manager.domain.exceptions import ProvisioningError
from s3manager.infrastructure.external.storage.client_factory import BackendClientFactory
from s3manager.shared.telemetry.logging import get_logger
from s3manager.shared.utils.generators import generate_secret

logger = get_logger(__name__)

ACCESS_KEY_PREFIX = "s3mgr_"
POLICY_PREFIX = "s3mgr-policy-"
OWNER_SUFFIX_LENGTH = 8
SECRET_LENGTH = 32


@dataclass(frozen=True)
class AdminBackendConfig:
    """Admin credentials and defaults for provisioning self-hosted accounts."""

    admin_url: str
    admin_access_key: str
    admin_secret_key: str
    endpoint: str
    region: str
    use_tls: bool
    bucket_prefix: str

    @classmethod
    def from_settings(cls, settings: Settings) -> AdminBackendConfig:
        return cls(
            admin_url=settings.backend_admin_url,
            admin_access_key=settings.backend_admin_access_key,
            admin_secret_key=settings.backend_admin_secret_key.get_secret_value(),
            endpoint=settings.provision_endpoint,
            region=settings.provision_region,
            use_tls=settings.provision_use_tls,
            bucket_prefix=settings.provision_bucket_prefix,
        )

    @property
    def admin_host(self) -> str:
        """host[:port] of the admin API (MinioAdmin takes no scheme)."""
        parsed = urlparse(self.admin_url if "://" in self.admin_url else f"//{self.admin_url}")
        return parsed.netloc

    @property
    def admin_secure(self) -> bool:
        return self.admin_url.startswith("https://")


def bucket_policy(bucket: str) -> dict[str, Any]:
    """Canned policy granting object read/write/delete and listing on one bucket."""
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Action": [
                    "s3:GetObject",
                    "s3:PutObject",
                    "s3:DeleteObject",
                    "s3:ListBucket",
                ],
                "Resource": [f"arn:aws:s3:::{bucket}", f"arn:aws:s3:::{bucket}/*"],
            }
        ],
    }


def _owner_suffix(owner_id: str) -> str:
    return owner_id[:OWNER_SUFFIX_LENGTH].lower()


class BackendProvisioner:
    """Provision a backend user + bucket for one owner.

    Blocking (minio admin and boto3 calls); run via asyncio.to_thread.
    """

    def __init__(
        self,
        admin_config: AdminBackendConfig,
        client_factory: BackendClientFactory,
        admin_client: Any | None = None,
    ) -> None:
        self._config = admin_config
        self._factory = client_factory
        self._admin = admin_client

    def _admin_client(self) -> Any:
        if self._admin is None:
            self._admin = MinioAdmin(
                self._config.admin_host,
                credentials=StaticProvider(
                    self._config.admin_access_key, self._config.admin_secret_key
                ),
                secure=self._config.admin_secure,
            )
        return self._admin

    def _add_policy(self, admin: Any, policy_name: str, bucket: str) -> None:
        """Upload the canned policy (minio's admin API reads it from a file)."""
        fd, path = tempfile.mkstemp(suffix=".json")
        try:
            with os.fdopen(fd, "w") as fh:
                json.dump(bucket_policy(bucket), fh)
            admin.policy_add(policy_name, path)
        finally:
            os.unlink(path)

    def provision(self, owner_id: str, username: str) -> StorageConfigDraft:
        """Create (or refresh) the owner's backend account and bucket.

        Re-running for the same owner rotates the user's secret and reuses
        the bucket.

        Raises:
            ProvisioningError: If an admin call or bucket creation fails.
        """
        suffix = _owner_suffix(owner_id)
        access_key = f"{ACCESS_KEY_PREFIX}{suffix}"
        secret_key = generate_secret(SECRET_LENGTH)
        bucket = f"{self._config.bucket_prefix}{suffix}"
        policy_name = f"{POLICY_PREFIX}{suffix}"
        admin = self._admin_client()

        logger.info("Provisioning backend account %s for owner %s", access_key, owner_id)
        try:
            admin.user_add(access_key, secret_key)
        except Exception as e:
            raise ProvisioningError("user_add", str(e)) from e
        try:
            self._add_policy(admin, policy_name, bucket)
            admin.policy_set(policy_name, user=access_key)
        except Exception as e:
            raise ProvisioningError("policy", str(e)) from e

        admin_bucket_client = self._factory.build(
            backend_kind=BackendKind.SELF_HOSTED,
            access_key_id=self._config.admin_access_key,
            secret_access_key=self._config.admin_secret_key,
            bucket_name=bucket,
            region=self._config.region,
            endpoint_url=self._config.endpoint,
            use_tls=self._config.use_tls,
        )
        try:
            created = admin_bucket_client.ensure_bucket(self._config.region)
        except Exception as e:
            raise ProvisioningError("create_bucket", str(e)) from e
        if not created:
            logger.info("Bucket %s already exists; reusing", bucket)

        return StorageConfigDraft(
            name=f"MinIO Default ({username})",
            backend_kind=BackendKind.SELF_HOSTED,
            access_key_id=access_key,
            secret_access_key=secret_key,
            bucket_name=bucket,
            region=self._config.region,
            endpoint_url=self._config.endpoint,
            use_tls=self._config.use_tls,
        )
