"""Storage configuration routes end to end (SQLite, S3 fake, recording audit sink)."""

import pytest
from httpx import AsyncClient

from s3manager.api.v1.dependencies import get_provisioner
from s3manager.application.dtos.storage_config import StorageConfigDraft
from s3manager.domain.enums import BackendKind
from s3manager.main import app

BASE = "/api/v1/configs"


def _payload(name: str = "Local MinIO", **overrides) -> dict:
    payload = {
        "name": name,
        "backend_kind": "minio",
        "access_key_id": "minioadmin",
        "secret_access_key": "minio-secret-key",
        "bucket_name": "bucket-a",
        "endpoint_url": "localhost:9000",
        "use_tls": False,
    }
    payload.update(overrides)
    return payload


async def _create(client: AsyncClient, headers: dict, **overrides) -> dict:
    response = await client.post(BASE, json=_payload(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def test_create_returns_full_record_and_first_is_default(client, alice) -> None:
    created = await _create(client, alice)
    assert created["backend_kind"] == "self_hosted"
    assert created["secret_access_key"] == "minio-secret-key"
    assert created["is_default"] is True
    assert created["owner_id"] == "alice"


async def test_list_masks_credentials(client, alice) -> None:
    await _create(client, alice)
    response = await client.get(BASE, headers=alice)
    (item,) = response.json()
    assert item["access_key_id"] == "mini****"
    assert item["secret_access_key"] == "mini****"


async def test_self_hosted_without_endpoint_is_rejected(client, alice) -> None:
    response = await client.post(BASE, json=_payload(endpoint_url=None), headers=alice)
    assert response.status_code == 422


async def test_unknown_backend_kind_is_rejected(client, alice) -> None:
    response = await client.post(BASE, json=_payload(backend_kind="ceph"), headers=alice)
    assert response.status_code == 422


async def test_failed_connectivity_stores_nothing(client, alice, s3, audit_sink) -> None:
    s3.fail("list_objects_v2", code="InvalidAccessKeyId")
    response = await client.post(BASE, json=_payload(), headers=alice)
    assert response.status_code == 400
    assert response.json()["error"] == "CONNECTION_TEST_FAILED"
    assert (await client.get(BASE, headers=alice)).json() == []
    assert not audit_sink.last("config_create").success


async def test_make_default_on_create(client, alice) -> None:
    first = await _create(client, alice)
    second = await _create(client, alice, name="Second", is_default=True)
    listing = {c["id"]: c["is_default"] for c in (await client.get(BASE, headers=alice)).json()}
    assert listing == {first["id"]: False, second["id"]: True}


async def test_get_is_owner_or_admin_only(client, alice, bob, admin) -> None:
    created = await _create(client, alice)
    url = f"{BASE}/{created['id']}"
    assert (await client.get(url, headers=alice)).json()["secret_access_key"] == "minio-secret-key"
    assert (await client.get(url, headers=bob)).status_code == 403
    assert (await client.get(url, headers=admin)).status_code == 200
    missing = await client.get(f"{BASE}/does-not-exist", headers=alice)
    assert missing.status_code == 404
    assert missing.json()["error"] == "CONFIG_NOT_FOUND"


async def test_update_without_secret_keeps_it(client, alice) -> None:
    created = await _create(client, alice)
    response = await client.put(
        f"{BASE}/{created['id']}", json={"name": "Renamed"}, headers=alice
    )
    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Renamed"
    assert body["secret_access_key"] == "minio-secret-key"
    assert body["is_default"] is True


async def test_update_switch_to_cloud_clears_endpoint(client, alice) -> None:
    created = await _create(client, alice)
    url = f"{BASE}/{created['id']}"
    kept = await client.put(url, json={"backend_kind": "aws"}, headers=alice)
    assert kept.status_code == 200
    assert kept.json()["endpoint_url"] == "localhost:9000"

    cleared = await client.put(url, json={"endpoint_url": None}, headers=alice)
    assert cleared.status_code == 200
    assert cleared.json()["backend_kind"] == "cloud"
    assert cleared.json()["endpoint_url"] is None


async def test_update_cannot_clear_self_hosted_endpoint(client, alice) -> None:
    created = await _create(client, alice)
    response = await client.put(
        f"{BASE}/{created['id']}", json={"endpoint_url": None}, headers=alice
    )
    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"


async def test_update_other_owner_forbidden(client, alice, bob) -> None:
    created = await _create(client, alice)
    response = await client.put(f"{BASE}/{created['id']}", json={"name": "x"}, headers=bob)
    assert response.status_code == 403


async def test_set_default_and_delete_promotion(client, alice) -> None:
    first = await _create(client, alice, name="A")
    second = await _create(client, alice, name="B")

    response = await client.post(f"{BASE}/{second['id']}/set-default", headers=alice)
    assert response.status_code == 200
    assert response.json()["is_default"] is True
    assert response.json()["secret_access_key"].endswith("****")

    response = await client.delete(f"{BASE}/{second['id']}", headers=alice)
    assert response.status_code == 200
    assert response.json() == {"deleted_id": second["id"], "promoted_default_id": first["id"]}

    response = await client.delete(f"{BASE}/{first['id']}", headers=alice)
    assert response.status_code == 400
    assert response.json()["error"] == "LAST_CONFIG"


class _StubProvisioner:
    def provision(self, owner_id: str, username: str) -> StorageConfigDraft:
        return StorageConfigDraft(
            name=f"MinIO Default ({username})",
            backend_kind=BackendKind.SELF_HOSTED,
            access_key_id=f"s3mgr_{owner_id}",
            secret_access_key="provisioned-secret",
            bucket_name=f"s3mgr-{owner_id}",
            endpoint_url="minio:9000",
            use_tls=False,
        )


@pytest.fixture
def stub_provisioner(client):
    app.dependency_overrides[get_provisioner] = lambda: _StubProvisioner()
    yield
    app.dependency_overrides.pop(get_provisioner, None)


async def test_auto_provision_becomes_default(client, alice, stub_provisioner) -> None:
    existing = await _create(client, alice)
    response = await client.post(
        f"{BASE}/auto-provision", json={"username": "Alice"}, headers=alice
    )
    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "MinIO Default (Alice)"
    assert body["is_default"] is True
    listing = {c["id"]: c["is_default"] for c in (await client.get(BASE, headers=alice)).json()}
    assert listing == {existing["id"]: False, body["id"]: True}


async def test_auto_provision_without_body(client, bob, stub_provisioner) -> None:
    response = await client.post(f"{BASE}/auto-provision", headers=bob)
    assert response.status_code == 201
    assert response.json()["name"] == "MinIO Default (bob)"
