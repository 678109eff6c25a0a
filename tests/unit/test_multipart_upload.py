"""MultipartUploadSession state machine and MultipartUploader part loop."""

import asyncio

import pytest

from s3manager.application.services.multipart_upload import (
    MultipartUploader,
    MultipartUploadSession,
    read_chunk,
)
from s3manager.domain.enums import MultipartState
from s3manager.domain.exceptions import BackendOperationFailure
from s3manager.infrastructure.external.storage.client_factory import BucketClient
from tests.fakes import ByteStream, FakeS3Client

MIB = 1024 * 1024
BUCKET = "bucket"
KEY = "users/alice/big.bin"


@pytest.fixture
def bucket_client(s3: FakeS3Client) -> BucketClient:
    return BucketClient(s3, BUCKET)


def _session(bucket_client: BucketClient) -> MultipartUploadSession:
    return MultipartUploadSession(bucket_client, KEY, display_key="big.bin")


class TestReadChunk:
    async def test_fills_across_short_reads(self) -> None:
        stream = ByteStream(b"x" * 100, max_read=7)
        assert await read_chunk(stream, 50) == b"x" * 50
        assert await read_chunk(stream, 80) == b"x" * 50
        assert await read_chunk(stream, 10) == b""


class TestSessionStateMachine:
    async def test_happy_path_transitions(self, bucket_client, s3) -> None:
        session = _session(bucket_client)
        assert session.state is MultipartState.IDLE
        await session.initiate()
        assert session.state is MultipartState.INITIATED
        await session.upload_part(1, b"a" * 10)
        assert session.state is MultipartState.PART_UPLOADED
        await session.complete()
        assert session.state is MultipartState.COMPLETED
        assert s3.objects[(BUCKET, KEY)][0] == b"a" * 10

    async def test_complete_uses_part_number_order(self, bucket_client, s3) -> None:
        session = _session(bucket_client)
        await session.initiate()
        await session.upload_part(2, b"second")
        await session.upload_part(1, b"first-")
        assert [p.part_number for p in session.parts] == [1, 2]
        await session.complete()
        assert s3.objects[(BUCKET, KEY)][0] == b"first-second"

    async def test_cannot_complete_before_any_part(self, bucket_client) -> None:
        session = _session(bucket_client)
        await session.initiate()
        with pytest.raises(ValueError):
            await session.complete()

    async def test_upload_part_requires_initiate(self, bucket_client) -> None:
        with pytest.raises(ValueError):
            await _session(bucket_client).upload_part(1, b"x")

    async def test_abort_is_terminal_and_idempotent(self, bucket_client, s3) -> None:
        session = _session(bucket_client)
        upload_id = await session.initiate()
        await session.abort()
        await session.abort()
        assert session.state is MultipartState.ABORTED
        assert s3.aborted == [upload_id]

    async def test_abort_failure_is_swallowed(self, bucket_client, s3) -> None:
        s3.fail("abort_multipart_upload")
        session = _session(bucket_client)
        await session.initiate()
        await session.abort()
        assert session.state is MultipartState.ABORTED

    async def test_no_abort_after_complete(self, bucket_client, s3) -> None:
        session = _session(bucket_client)
        await session.initiate()
        await session.upload_part(1, b"data")
        await session.complete()
        await session.abort()
        assert session.state is MultipartState.COMPLETED
        assert s3.aborted == []

    async def test_initiate_failure_tagged(self, bucket_client, s3) -> None:
        s3.fail("create_multipart_upload")
        with pytest.raises(BackendOperationFailure) as exc_info:
            await _session(bucket_client).initiate()
        assert exc_info.value.stage == "initiate"


class TestMultipartUploader:
    async def test_uploads_in_five_mib_parts(self, bucket_client, s3) -> None:
        data = bytes(range(256)) * (6 * MIB // 256)
        session = _session(bucket_client)
        await MultipartUploader(5 * MIB).upload(session, ByteStream(data, max_read=MIB))
        assert len(session.parts) == 2
        assert s3.objects[(BUCKET, KEY)][0] == data
        assert session.state is MultipartState.COMPLETED
        assert session.bytes_uploaded == len(data)

    async def test_part_failure_aborts_and_leaves_no_object(self, bucket_client, s3) -> None:
        s3.fail("upload_part", when=lambda kw: kw["PartNumber"] == 2)
        session = _session(bucket_client)
        with pytest.raises(BackendOperationFailure) as exc_info:
            await MultipartUploader(5 * MIB).upload(session, ByteStream(b"z" * (11 * MIB)))
        assert exc_info.value.stage == "upload-part"
        assert exc_info.value.part_number == 2
        assert session.state is MultipartState.ABORTED
        assert s3.aborted == [session.upload_id]
        assert (BUCKET, KEY) not in s3.objects
        assert s3.uploads == {}

    async def test_read_failure_aborts(self, bucket_client, s3) -> None:
        session = _session(bucket_client)
        stream = ByteStream(b"q" * (12 * MIB), fail_after=5 * MIB)
        with pytest.raises(BackendOperationFailure) as exc_info:
            await MultipartUploader(5 * MIB).upload(session, stream)
        assert exc_info.value.stage == "read-part"
        assert exc_info.value.part_number == 2
        assert session.state is MultipartState.ABORTED

    async def test_complete_failure_aborts(self, bucket_client, s3) -> None:
        s3.fail("complete_multipart_upload")
        session = _session(bucket_client)
        with pytest.raises(BackendOperationFailure) as exc_info:
            await MultipartUploader(5 * MIB).upload(session, ByteStream(b"c" * (6 * MIB)))
        assert exc_info.value.stage == "complete"
        assert session.state is MultipartState.ABORTED
        assert (BUCKET, KEY) not in s3.objects

    async def test_empty_stream_aborts(self, bucket_client, s3) -> None:
        session = _session(bucket_client)
        with pytest.raises(BackendOperationFailure) as exc_info:
            await MultipartUploader(5 * MIB).upload(session, ByteStream(b""))
        assert exc_info.value.stage == "read-part"
        assert session.state is MultipartState.ABORTED

    async def test_concurrent_parts_reassemble_in_order(self, bucket_client, s3) -> None:
        data = b"".join(bytes([i]) * (5 * MIB) for i in range(3)) + b"tail"
        session = _session(bucket_client)
        await MultipartUploader(5 * MIB, concurrency=3).upload(session, ByteStream(data))
        assert [p.part_number for p in session.parts] == [1, 2, 3, 4]
        assert s3.objects[(BUCKET, KEY)][0] == data
        assert session.bytes_uploaded == len(data)

    async def test_concurrent_part_failure_aborts(self, bucket_client, s3) -> None:
        s3.fail("upload_part", when=lambda kw: kw["PartNumber"] == 3)
        session = _session(bucket_client)
        with pytest.raises(BackendOperationFailure) as exc_info:
            await MultipartUploader(5 * MIB, concurrency=2).upload(
                session, ByteStream(b"k" * (16 * MIB))
            )
        assert exc_info.value.part_number == 3
        assert session.state is MultipartState.ABORTED
        assert (BUCKET, KEY) not in s3.objects

    async def test_cancellation_aborts(self, bucket_client, s3) -> None:
        started = asyncio.Event()

        class SlowStream:
            def __init__(self) -> None:
                self.calls = 0

            async def read(self, size: int = -1) -> bytes:
                self.calls += 1
                if self.calls > 1:
                    started.set()
                    await asyncio.sleep(10)
                return b"s" * size

        session = _session(bucket_client)
        task = asyncio.create_task(MultipartUploader(5 * MIB).upload(session, SlowStream()))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert session.state is MultipartState.ABORTED
        assert s3.aborted == [session.upload_id]
