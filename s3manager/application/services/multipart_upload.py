"""Multipart upload session: explicit state machine plus the part-loop driver.

A session is ephemeral: it lives for one upload call and is discarded
afterwards. Any failure after initiation aborts the backend upload before
the error propagates, so no half-assembled object is ever left visible.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Protocol

from s3manager.application.interfaces.services import IBackendClient
from s3manager.domain.enums import MultipartState, TransferStage
from s3manager.domain.exceptions import BackendOperationFailure
from s3manager.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

_TRANSITIONS: dict[MultipartState, frozenset[MultipartState]] = {
    MultipartState.IDLE: frozenset({MultipartState.INITIATED, MultipartState.ABORTING}),
    MultipartState.INITIATED: frozenset(
        {MultipartState.PART_UPLOADING, MultipartState.ABORTING}
    ),
    MultipartState.PART_UPLOADING: frozenset(
        {
            MultipartState.PART_UPLOADING,
            MultipartState.PART_UPLOADED,
            MultipartState.ABORTING,
        }
    ),
    MultipartState.PART_UPLOADED: frozenset(
        {
            MultipartState.PART_UPLOADING,
            MultipartState.PART_UPLOADED,
            MultipartState.COMPLETING,
            MultipartState.ABORTING,
        }
    ),
    MultipartState.COMPLETING: frozenset(
        {MultipartState.COMPLETED, MultipartState.ABORTING}
    ),
    MultipartState.ABORTING: frozenset({MultipartState.ABORTED}),
    MultipartState.COMPLETED: frozenset(),
    MultipartState.ABORTED: frozenset(),
}


class AsyncReader(Protocol):
    """Async byte source (e.g. starlette UploadFile)."""

    async def read(self, size: int = -1) -> bytes: ...


@dataclass(frozen=True)
class CompletedPart:
    """Backend acknowledgement of one uploaded part."""

    part_number: int
    etag: str

    def to_backend(self) -> dict[str, Any]:
        return {"PartNumber": self.part_number, "ETag": self.etag}


class MultipartUploadSession:
    """One multipart upload against one bucket/key.

    Holds the backend upload id, the acknowledged parts and the current
    state. Backend calls are blocking boto3 calls run in a worker thread.
    """

    def __init__(
        self,
        client: IBackendClient,
        key: str,
        *,
        content_type: str | None = None,
        display_key: str | None = None,
    ) -> None:
        self._client = client
        self.key = key
        self.display_key = display_key or key
        self.content_type = content_type
        self.upload_id: str | None = None
        self.state = MultipartState.IDLE
        self._parts: dict[int, CompletedPart] = {}
        self._in_flight = 0
        self.bytes_uploaded = 0

    @property
    def parts(self) -> list[CompletedPart]:
        """Acknowledged parts ordered by part number."""
        return [self._parts[n] for n in sorted(self._parts)]

    def _transition(self, new_state: MultipartState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise ValueError(
                f"Invalid multipart transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state

    def _failure(
        self, stage: TransferStage, exc: Exception, part_number: int | None = None
    ) -> BackendOperationFailure:
        return BackendOperationFailure(
            stage, str(exc), key=self.display_key, part_number=part_number
        )

    async def initiate(self) -> str:
        """Start the backend upload and remember its id.

        Raises:
            BackendOperationFailure: stage 'initiate'.
        """
        try:
            upload_id = await asyncio.to_thread(
                self._client.create_multipart_upload, self.key, self.content_type
            )
        except Exception as e:
            raise self._failure(TransferStage.INITIATE, e) from e
        self.upload_id = upload_id
        self._transition(MultipartState.INITIATED)
        return upload_id

    async def upload_part(self, part_number: int, data: bytes) -> CompletedPart:
        """Upload one part and record its ETag.

        Raises:
            BackendOperationFailure: stage 'upload-part' with part_number.
        """
        if self.upload_id is None:
            raise ValueError("Multipart session has not been initiated")
        self._transition(MultipartState.PART_UPLOADING)
        self._in_flight += 1
        try:
            etag = await asyncio.to_thread(
                self._client.upload_part, self.key, self.upload_id, part_number, data
            )
        except Exception as e:
            raise self._failure(TransferStage.UPLOAD_PART, e, part_number) from e
        finally:
            self._in_flight -= 1
        part = CompletedPart(part_number=part_number, etag=etag)
        self._parts[part_number] = part
        self.bytes_uploaded += len(data)
        if self.state is MultipartState.PART_UPLOADING:
            self._transition(MultipartState.PART_UPLOADED)
        return part

    async def complete(self) -> dict[str, Any]:
        """Assemble the object from the acknowledged parts in part-number order.

        Raises:
            BackendOperationFailure: stage 'complete'.
        """
        if self._in_flight:
            raise ValueError("Cannot complete while parts are still uploading")
        self._transition(MultipartState.COMPLETING)
        try:
            response = await asyncio.to_thread(
                self._client.complete_multipart_upload,
                self.key,
                self.upload_id,
                [p.to_backend() for p in self.parts],
            )
        except Exception as e:
            raise self._failure(TransferStage.COMPLETE, e) from e
        self._transition(MultipartState.COMPLETED)
        return response

    async def abort(self) -> None:
        """Discard the backend upload. Never raises; abort errors are logged.

        No-op once the session is terminal; without an upload id there is
        nothing to discard on the backend.
        """
        if self.state.is_terminal:
            return
        self._transition(MultipartState.ABORTING)
        if self.upload_id is not None:
            try:
                await asyncio.to_thread(
                    self._client.abort_multipart_upload, self.key, self.upload_id
                )
            except Exception:
                logger.exception(
                    "Abort of multipart upload %s for %s failed; parts may linger",
                    self.upload_id,
                    self.display_key,
                )
        self._transition(MultipartState.ABORTED)


async def read_chunk(stream: AsyncReader, size: int) -> bytes:
    """Read up to size bytes, looping over short reads. b"" means end of stream."""
    buf = bytearray()
    while len(buf) < size:
        data = await stream.read(size - len(buf))
        if not data:
            break
        buf.extend(data)
    return bytes(buf)


def _first_failure(group: BaseExceptionGroup) -> BaseException:
    """Pick the error to surface from a task group: a backend failure first."""
    leaves: list[BaseException] = []
    pending: list[BaseException] = [group]
    while pending:
        exc = pending.pop(0)
        if isinstance(exc, BaseExceptionGroup):
            pending.extend(exc.exceptions)
        else:
            leaves.append(exc)
    for exc in leaves:
        if isinstance(exc, BackendOperationFailure):
            return exc
    return leaves[0]


class MultipartUploader:
    """Drives a MultipartUploadSession from an async byte stream.

    Parts are part_size bytes (the last may be shorter). With concurrency 1
    parts go strictly one at a time through a single buffer; higher values
    bound the number of in-flight part buffers with a semaphore.
    """

    def __init__(self, part_size: int, concurrency: int = 1) -> None:
        self.part_size = part_size
        self.concurrency = max(1, concurrency)

    async def _read_part(
        self, session: MultipartUploadSession, stream: AsyncReader, part_number: int
    ) -> bytes:
        try:
            return await read_chunk(stream, self.part_size)
        except Exception as e:
            raise BackendOperationFailure(
                TransferStage.READ_PART,
                str(e),
                key=session.display_key,
                part_number=part_number,
            ) from e

    async def _upload_sequential(
        self, session: MultipartUploadSession, stream: AsyncReader
    ) -> None:
        part_number = 1
        while True:
            chunk = await self._read_part(session, stream, part_number)
            if not chunk:
                break
            await session.upload_part(part_number, chunk)
            part_number += 1

    async def _upload_concurrent(
        self, session: MultipartUploadSession, stream: AsyncReader
    ) -> None:
        slots = asyncio.Semaphore(self.concurrency)

        async def send(part_number: int, chunk: bytes) -> None:
            try:
                await session.upload_part(part_number, chunk)
            finally:
                slots.release()

        try:
            async with asyncio.TaskGroup() as tg:
                part_number = 1
                while True:
                    await slots.acquire()
                    try:
                        chunk = await self._read_part(session, stream, part_number)
                    except BaseException:
                        slots.release()
                        raise
                    if not chunk:
                        slots.release()
                        break
                    tg.create_task(send(part_number, chunk))
                    part_number += 1
        except BaseExceptionGroup as group:
            raise _first_failure(group) from None

    async def upload(
        self, session: MultipartUploadSession, stream: AsyncReader
    ) -> dict[str, Any]:
        """Initiate, send every part, then complete; abort on any failure.

        Caller cancellation aborts the session and re-raises CancelledError.

        Raises:
            BackendOperationFailure: tagged with the failing stage.
        """
        await session.initiate()
        try:
            if self.concurrency == 1:
                await self._upload_sequential(session, stream)
            else:
                await self._upload_concurrent(session, stream)
            if not session.parts:
                raise BackendOperationFailure(
                    TransferStage.READ_PART,
                    "stream ended before any data was read",
                    key=session.display_key,
                    part_number=1,
                )
            return await session.complete()
        except BaseException:
            await session.abort()
            raise
