"""BackendClientFactory addressing policy and BucketClient helpers."""

import pytest
from botocore.exceptions import ClientError

from s3manager.domain.entities.storage_config import StorageConfig
from s3manager.domain.enums import BackendKind
from s3manager.domain.exceptions import ClientCreationFailure
from s3manager.infrastructure.external.storage.client_factory import (
    BackendClientFactory,
    BucketClient,
    normalize_endpoint,
)
from tests.fakes import FakeS3Client


def _config(**overrides) -> StorageConfig:
    values = dict(
        id="cfg1",
        owner_id="alice",
        name="Primary",
        backend_kind=BackendKind.SELF_HOSTED,
        access_key_id="AKIAEXAMPLE",
        secret_access_key="secret-value",
        bucket_name="bucket-a",
        region="us-east-1",
        endpoint_url="localhost:9000",
        use_tls=False,
    )
    values.update(overrides)
    return StorageConfig(**values)


class TestNormalizeEndpoint:
    @pytest.mark.parametrize(
        ("raw", "use_tls", "expected"),
        [
            ("localhost:9000", False, "http://localhost:9000"),
            ("localhost:9000", True, "https://localhost:9000"),
            ("https://minio.internal:9000/", False, "http://minio.internal:9000"),
            ("http://minio.internal", True, "http://minio.internal"),
            ("  minio.example.com  ", True, "https://minio.example.com"),
        ],
    )
    def test_scheme_follows_tls_flag(self, raw, use_tls, expected) -> None:
        assert normalize_endpoint(raw, use_tls) == expected

    @pytest.mark.parametrize(
        "raw", ["", "   ", "ftp://minio:21", "http://", "http://host:99999", "http://host?x=1"]
    )
    def test_rejects_malformed(self, raw) -> None:
        with pytest.raises(ClientCreationFailure):
            normalize_endpoint(raw, False)


class TestBackendClientFactory:
    def test_self_hosted_is_path_style_at_endpoint(self) -> None:
        client = BackendClientFactory().create(_config())
        assert isinstance(client, BucketClient)
        assert client.bucket == "bucket-a"
        meta = client._client.meta
        assert meta.config.s3["addressing_style"] == "path"
        assert meta.endpoint_url == "http://localhost:9000"

    def test_cloud_is_virtual_hosted_and_ignores_endpoint(self) -> None:
        client = BackendClientFactory().create(
            _config(
                backend_kind=BackendKind.CLOUD,
                region="eu-west-1",
                endpoint_url="http://ignored.example:9000",
                use_tls=True,
            )
        )
        meta = client._client.meta
        assert meta.config.s3["addressing_style"] == "virtual"
        assert meta.region_name == "eu-west-1"
        assert "ignored.example" not in meta.endpoint_url
        assert meta.endpoint_url.startswith("https://")

    def test_timeouts_and_retries_come_from_factory(self) -> None:
        factory = BackendClientFactory(connect_timeout=3, read_timeout=7, max_attempts=2)
        config = factory.create(_config())._client.meta.config
        assert config.connect_timeout == 3
        assert config.read_timeout == 7
        assert config.retries["max_attempts"] == 2

    @pytest.mark.parametrize(
        ("field", "value"),
        [("access_key_id", ""), ("secret_access_key", ""), ("bucket_name", "")],
    )
    def test_missing_inputs(self, field, value) -> None:
        kwargs = dict(
            backend_kind=BackendKind.CLOUD,
            access_key_id="AK",
            secret_access_key="SK",
            bucket_name="bucket",
        )
        kwargs[field] = value
        with pytest.raises(ClientCreationFailure) as exc_info:
            BackendClientFactory().build(**kwargs)
        assert exc_info.value.details["field"] == field

    def test_unknown_backend_kind(self) -> None:
        with pytest.raises(ClientCreationFailure):
            BackendClientFactory().build(
                backend_kind="ceph",
                access_key_id="AK",
                secret_access_key="SK",
                bucket_name="bucket",
            )

    def test_self_hosted_without_endpoint(self) -> None:
        with pytest.raises(ClientCreationFailure):
            BackendClientFactory().build(
                backend_kind="minio",
                access_key_id="AK",
                secret_access_key="SK",
                bucket_name="bucket",
                endpoint_url=None,
            )

    def test_invalid_region_wrapped(self) -> None:
        with pytest.raises(ClientCreationFailure) as exc_info:
            BackendClientFactory().build(
                backend_kind=BackendKind.CLOUD,
                access_key_id="AK",
                secret_access_key="SK",
                bucket_name="bucket",
                region="not a region!",
            )
        assert "SK" not in exc_info.value.message


class TestBucketClient:
    def test_ensure_bucket_creates_once(self) -> None:
        s3 = FakeS3Client()
        client = BucketClient(s3, "fresh")
        assert client.ensure_bucket("us-east-1") is True
        assert client.ensure_bucket("us-east-1") is False
        assert "fresh" in s3.buckets

    def test_ensure_bucket_other_errors_raise(self) -> None:
        s3 = FakeS3Client()
        s3.fail("create_bucket", code="AccessDenied")
        with pytest.raises(ClientError):
            BucketClient(s3, "fresh").ensure_bucket("eu-west-1")

    def test_list_objects_spans_pages(self) -> None:
        s3 = FakeS3Client(page_size=2)
        client = BucketClient(s3, "b")
        for i in range(5):
            client.put_object(f"users/alice/{i}.txt", b"x")
        client.put_object("users/bob/0.txt", b"x")
        keys = [o["Key"] for o in client.list_objects("users/alice/")]
        assert keys == [f"users/alice/{i}.txt" for i in range(5)]
