"""Transfer engine: list, upload, download and delete within an owner's namespace.

Every object key is prefixed with users/{owner_id}/; callers only ever see
and supply owner-relative keys. Uploads at or above the multipart threshold
go through MultipartUploader; smaller ones use a single put. Each outcome
is reported to the audit sink with filename, size and stage.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

from botocore.exceptions import ClientError

from s3manager.application.dtos.audit import AuditEvent
from s3manager.application.dtos.transfer import (
    DownloadResult,
    FileListing,
    ObjectItem,
    UploadResult,
)
from s3manager.application.interfaces.services import (
    IAuditSink,
    IBackendClient,
    IBackendClientFactory,
)
from s3manager.application.services.config_registry import ConfigRegistry
from s3manager.application.services.multipart_upload import (
    AsyncReader,
    MultipartUploader,
    MultipartUploadSession,
    read_chunk,
)
from s3manager.domain.entities.storage_config import StorageConfig
from s3manager.domain.enums import TransferStage
from s3manager.domain.exceptions import (
    BackendOperationFailure,
    ObjectNotFoundError,
    S3ManagerException,
    ValidationException,
)
from s3manager.shared.enums import AuditAction, AuditResource
from s3manager.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

MIB = 1024 * 1024
MULTIPART_THRESHOLD = 5 * MIB
PART_SIZE = 5 * MIB
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
DEFAULT_CONTENT_TYPE = "application/octet-stream"
_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


def owner_prefix(owner_id: str) -> str:
    """Key prefix that namespaces one owner's objects."""
    return f"users/{owner_id}/"


def object_key(owner_id: str, filename: str) -> str:
    """Full backend key for an owner-relative filename.

    Raises:
        ValidationException: If the name is empty or contains '..' segments.
    """
    name = (filename or "").replace("\\", "/").lstrip("/")
    if not name or name.endswith("/"):
        raise ValidationException("File name is required", field="filename")
    if any(segment == ".." for segment in name.split("/")):
        raise ValidationException("File name must not contain '..'", field="filename")
    return owner_prefix(owner_id) + name


def clamp_page(page: int | None, page_size: int | None) -> tuple[int, int]:
    """Normalize pagination: page >= 1; page_size outside 1..100 becomes the default."""
    page = page if page is not None and page >= 1 else 1
    if page_size is None or page_size < 1 or page_size > MAX_PAGE_SIZE:
        page_size = DEFAULT_PAGE_SIZE
    return page, page_size


def _is_not_found(exc: BaseException) -> bool:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES
    return False


class TransferEngine:
    """Executes object operations against the backend of a resolved configuration.

    The registry supplies configuration lookup (explicit id or the owner's
    default); the factory builds a fresh client per operation.
    """

    def __init__(
        self,
        registry: ConfigRegistry,
        client_factory: IBackendClientFactory,
        audit_sink: IAuditSink,
        *,
        multipart_threshold: int = MULTIPART_THRESHOLD,
        part_size: int = PART_SIZE,
        part_concurrency: int = 1,
        download_chunk_size: int = 64 * 1024,
    ) -> None:
        self._registry = registry
        self._factory = client_factory
        self._audit = audit_sink
        self.multipart_threshold = multipart_threshold
        self.part_size = part_size
        self.part_concurrency = part_concurrency
        self.download_chunk_size = download_chunk_size

    async def _record(
        self,
        owner_id: str,
        action: AuditAction,
        key: str | None,
        *,
        error: BaseException | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        message = None
        if error is not None:
            message = getattr(error, "message", None) or str(error) or type(error).__name__
        await self._audit.record(
            AuditEvent(
                action=action.value,
                resource=AuditResource.FILE.value,
                resource_id=key,
                success=error is None,
                user_id=owner_id,
                error=message,
                details=details or {},
            )
        )

    async def _client_for(
        self, owner_id: str, config_id: str | None
    ) -> tuple[StorageConfig, IBackendClient]:
        config = await self._registry.resolve(owner_id, config_id)
        return config, self._factory.create(config)

    async def check_connectivity(self, config: StorageConfig) -> None:
        """Verify credentials and bucket reachability with a one-key listing.

        Raises:
            ClientCreationFailure: If the configuration is malformed.
            BackendOperationFailure: stage 'connect' if the backend rejects it.
        """
        client = self._factory.create(config)
        try:
            await asyncio.to_thread(client.probe)
        except Exception as e:
            logger.warning(
                "Connectivity check failed for bucket %s: %s", config.bucket_name, e
            )
            raise BackendOperationFailure(
                TransferStage.CONNECT, str(e), error_code="CONNECTION_TEST_FAILED"
            ) from e

    async def list_files(
        self,
        owner_id: str,
        config_id: str | None = None,
        page: int | None = 1,
        page_size: int | None = DEFAULT_PAGE_SIZE,
    ) -> FileListing:
        """List one page of the owner's objects with the prefix stripped.

        Pagination happens in memory after listing the full prefix;
        out-of-range pages return an empty slice with the true total.
        """
        page, page_size = clamp_page(page, page_size)
        details: dict[str, Any] = {"page": page, "page_size": page_size}
        try:
            config, client = await self._client_for(owner_id, config_id)
            details["config_id"] = config.id
            prefix = owner_prefix(owner_id)
            try:
                raw = await asyncio.to_thread(client.list_objects, prefix)
            except Exception as e:
                raise BackendOperationFailure(TransferStage.LIST, str(e)) from e
        except S3ManagerException as exc:
            await self._record(owner_id, AuditAction.FILE_LIST, None, error=exc, details=details)
            raise

        items: list[ObjectItem] = []
        for obj in raw:
            key = obj["Key"]
            relative = key[len(prefix):] if key.startswith(prefix) else key
            if not relative:
                continue
            items.append(
                ObjectItem(
                    key=relative,
                    size=int(obj.get("Size", 0)),
                    last_modified=obj.get("LastModified"),
                    etag=obj.get("ETag"),
                )
            )
        total = len(items)
        start = min((page - 1) * page_size, total)
        end = min(start + page_size, total)
        details["total"] = total
        await self._record(owner_id, AuditAction.FILE_LIST, None, details=details)
        return FileListing(
            items=items[start:end],
            total=total,
            page=page,
            page_size=page_size,
            config_id=config.id,
            config_name=config.name,
        )

    async def upload(
        self,
        owner_id: str,
        filename: str,
        stream: AsyncReader,
        total_size: int,
        config_id: str | None = None,
        content_type: str | None = None,
    ) -> UploadResult:
        """Upload stream to users/{owner_id}/{filename}; same name overwrites.

        Below the multipart threshold the whole body goes in one put. At or
        above it a multipart session uploads part_size chunks and is aborted
        on any failure (including caller cancellation) before the error
        propagates.

        Raises:
            BackendOperationFailure: tagged with the failing stage.
        """
        multipart = total_size >= self.multipart_threshold
        details: dict[str, Any] = {
            "filename": filename,
            "size": total_size,
            "multipart": multipart,
        }
        try:
            key = object_key(owner_id, filename)
            config, client = await self._client_for(owner_id, config_id)
            details["config_id"] = config.id
            if multipart:
                size, parts, etag = await self._upload_multipart(
                    client, key, filename, stream, content_type, details
                )
            else:
                size, parts, etag = await self._upload_single(
                    client, key, filename, stream, content_type, details
                )
        except S3ManagerException as exc:
            details.setdefault("stage", getattr(exc, "stage", None))
            if getattr(exc, "part_number", None) is not None:
                details["part_number"] = exc.part_number
            await self._record(owner_id, AuditAction.FILE_UPLOAD, filename, error=exc, details=details)
            logger.warning("Upload of %s for owner %s failed: %s", filename, owner_id, exc.message)
            raise
        except asyncio.CancelledError as exc:
            details["stage"] = TransferStage.READ_PART.value
            await self._record(
                owner_id,
                AuditAction.FILE_UPLOAD,
                filename,
                error=exc,
                details={**details, "cancelled": True},
            )
            raise
        details["size"] = size
        await self._record(owner_id, AuditAction.FILE_UPLOAD, filename, details=details)
        logger.info(
            "Uploaded %s (%d bytes, %d parts) for owner %s",
            filename,
            size,
            parts,
            owner_id,
        )
        return UploadResult(
            key=filename,
            size=size,
            multipart=multipart,
            parts=parts,
            config_id=config.id,
            etag=etag,
        )

    async def _upload_single(
        self,
        client: IBackendClient,
        key: str,
        filename: str,
        stream: AsyncReader,
        content_type: str | None,
        details: dict[str, Any],
    ) -> tuple[int, int, str | None]:
        body = bytearray()
        try:
            while chunk := await read_chunk(stream, self.part_size):
                body.extend(chunk)
        except Exception as e:
            raise BackendOperationFailure(TransferStage.READ_PART, str(e), key=filename) from e
        details["stage"] = TransferStage.PUT.value
        try:
            response = await asyncio.to_thread(
                client.put_object, key, bytes(body), content_type
            )
        except Exception as e:
            raise BackendOperationFailure(TransferStage.PUT, str(e), key=filename) from e
        return len(body), 0, (response or {}).get("ETag")

    async def _upload_multipart(
        self,
        client: IBackendClient,
        key: str,
        filename: str,
        stream: AsyncReader,
        content_type: str | None,
        details: dict[str, Any],
    ) -> tuple[int, int, str | None]:
        session = MultipartUploadSession(
            client, key, content_type=content_type, display_key=filename
        )
        uploader = MultipartUploader(self.part_size, self.part_concurrency)
        try:
            response = await uploader.upload(session, stream)
        finally:
            details["parts"] = len(session.parts)
            details["session_state"] = session.state.value
        details["stage"] = TransferStage.COMPLETE.value
        return session.bytes_uploaded, len(session.parts), (response or {}).get("ETag")

    async def download(
        self, owner_id: str, key: str, config_id: str | None = None
    ) -> DownloadResult:
        """Open the owner's object for streaming.

        Raises:
            ObjectNotFoundError: If the key does not exist.
            BackendOperationFailure: stage 'get' for other backend errors.
        """
        details: dict[str, Any] = {"filename": key}
        try:
            full_key = object_key(owner_id, key)
            config, client = await self._client_for(owner_id, config_id)
            details["config_id"] = config.id
            try:
                response = await asyncio.to_thread(client.get_object, full_key)
            except Exception as e:
                if _is_not_found(e):
                    raise ObjectNotFoundError(key) from e
                raise BackendOperationFailure(TransferStage.GET, str(e), key=key) from e
        except S3ManagerException as exc:
            await self._record(owner_id, AuditAction.FILE_DOWNLOAD, key, error=exc, details=details)
            raise
        length = response.get("ContentLength")
        details["size"] = length
        await self._record(owner_id, AuditAction.FILE_DOWNLOAD, key, details=details)
        return DownloadResult(
            key=key,
            body=self._iter_body(response["Body"]),
            content_type=response.get("ContentType") or DEFAULT_CONTENT_TYPE,
            content_length=length,
            config_id=config.id,
        )

    async def _iter_body(self, body: Any) -> AsyncIterator[bytes]:
        """Yield the streaming body in chunks without blocking the event loop."""
        try:
            while True:
                chunk = await asyncio.to_thread(body.read, self.download_chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            close = getattr(body, "close", None)
            if close is not None:
                close()

    async def delete(self, owner_id: str, key: str, config_id: str | None = None) -> None:
        """Delete the owner's object. A missing key is not an error."""
        details: dict[str, Any] = {"filename": key}
        try:
            full_key = object_key(owner_id, key)
            config, client = await self._client_for(owner_id, config_id)
            details["config_id"] = config.id
            try:
                await asyncio.to_thread(client.delete_object, full_key)
            except Exception as e:
                if not _is_not_found(e):
                    raise BackendOperationFailure(TransferStage.DELETE, str(e), key=key) from e
        except S3ManagerException as exc:
            await self._record(owner_id, AuditAction.FILE_DELETE, key, error=exc, details=details)
            raise
        await self._record(owner_id, AuditAction.FILE_DELETE, key, details=details)
