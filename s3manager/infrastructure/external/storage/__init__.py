"""Backend client factory and self-hosted provisioning."""

from s3manager.infrastructure.external.storage.client_factory import (
    BackendClientFactory,
    BucketClient,
)

__all__ = ["BackendClientFactory", "BucketClient"]
