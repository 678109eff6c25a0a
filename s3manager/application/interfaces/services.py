"""Service interfaces (ports) for the application layer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from s3manager.application.dtos.audit import AuditEvent
    from s3manager.application.dtos.storage_config import StorageConfigDraft
    from s3manager.domain.entities.storage_config import StorageConfig


class IAuditSink(Protocol):
    """Narrow audit interface. record() must never raise."""

    async def record(self, event: AuditEvent) -> None:
        """Record one audit event; failures are logged and swallowed."""


class IBackendClient(Protocol):
    """Blocking client bound to exactly one bucket/credential pair.

    Methods are synchronous (boto3); async callers run them via
    asyncio.to_thread.
    """

    bucket: str

    def put_object(self, key: str, body: bytes, content_type: str | None = None) -> dict[str, Any]:
        """Upload a whole object in one request."""

    def get_object(self, key: str) -> dict[str, Any]:
        """Return the GetObject response (Body, ContentType, ContentLength)."""

    def list_objects(self, prefix: str) -> list[dict[str, Any]]:
        """Return every object under prefix (all pages)."""

    def delete_object(self, key: str) -> None:
        """Delete one object; missing keys are not an error."""

    def create_multipart_upload(self, key: str, content_type: str | None = None) -> str:
        """Start a multipart upload; return the upload id."""

    def upload_part(self, key: str, upload_id: str, part_number: int, body: bytes) -> str:
        """Upload one part; return its ETag."""

    def complete_multipart_upload(
        self, key: str, upload_id: str, parts: list[dict[str, Any]]
    ) -> dict[str, Any]:
        """Assemble the object from the ordered part list."""

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        """Discard an in-progress multipart upload."""

    def probe(self) -> None:
        """Cheap connectivity check (list at most one key)."""


class IBackendClientFactory(Protocol):
    """Builds a backend client from a configuration."""

    def create(self, config: StorageConfig) -> IBackendClient:
        """Return a client or raise ClientCreationFailure."""


class IBackendProvisioner(Protocol):
    """Creates a backend account and bucket for one owner (blocking)."""

    def provision(self, owner_id: str, username: str) -> StorageConfigDraft:
        """Return a draft configuration for the new account."""
