from __future__ import annotations

from s3explorer.app.services.bundle import ServiceBundle
from s3explorer.infra.storage.client import BackendError


def _payload(name: str = "minio", **overrides) -> dict:
    payload = {
        "name": name,
        "endpoint": "http://localhost:9000",
        "accessKey": "minioadmin",
        "secretKey": "minio-secret",
    }
    payload.update(overrides)
    return payload


def test_create_and_list_connections(client):
    created = client.post("/api/connections", json=_payload())

    assert created.status_code == 200
    assert created.json()["success"] is True

    listed = client.get("/api/connections").json()["connections"]
    assert len(listed) == 1
    connection = listed[0]
    assert connection["name"] == "minio"
    assert connection["isActive"] is False
    assert connection["forcePathStyle"] is True
    assert "accessKey" not in connection
    assert "secretKey" not in connection
    assert "minio-secret" not in created.text + str(listed)


def test_create_connection_requires_fields(client):
    response = client.post("/api/connections", json=_payload(secretKey=""))

    assert response.status_code == 400
    assert response.json()["error"] == "name, endpoint, accessKey, secretKey required"


def test_duplicate_connection_name(client):
    client.post("/api/connections", json=_payload())

    response = client.post("/api/connections", json=_payload())

    assert response.status_code == 400
    assert response.json()["errorCode"] == "connection_conflict"


def test_activate_switches_active_connection(client):
    first = client.post("/api/connections", json=_payload("first")).json()["id"]
    second = client.post("/api/connections", json=_payload("second")).json()["id"]

    client.post(f"/api/connections/{first}/activate")
    client.post(f"/api/connections/{second}/activate")

    active = client.get("/api/connections/active").json()["active"]
    assert active["id"] == second
    flags = {c["id"]: c["isActive"] for c in client.get("/api/connections").json()["connections"]}
    assert flags == {first: False, second: True}


def test_activate_unknown_connection(client):
    response = client.post("/api/connections/4242/activate")

    assert response.status_code == 404
    assert response.json()["errorCode"] == "connection_not_found"


def test_disconnect(client, active_connection):
    assert client.post("/api/connections/disconnect").status_code == 200

    assert client.get("/api/connections/active").json() == {"active": None}
    assert client.get("/api/buckets").status_code == 412


def test_update_connection(client, active_connection):
    response = client.put(
        f"/api/connections/{active_connection}",
        json={"name": "renamed", "region": "eu-central-1"},
    )

    assert response.status_code == 200
    active = client.get("/api/connections/active").json()["active"]
    assert active["name"] == "renamed"
    assert active["region"] == "eu-central-1"


def test_delete_connection(client, active_connection):
    assert client.delete(f"/api/connections/{active_connection}").status_code == 200

    assert client.get("/api/connections").json() == {"connections": []}
    assert client.delete(f"/api/connections/{active_connection}").status_code == 404


def test_test_connection_reports_bucket_count(client):
    response = client.post("/api/connections/test", json=_payload())

    assert response.status_code == 200
    assert response.json() == {"success": True, "bucketCount": 1}
    assert client.get("/api/connections").json() == {"connections": []}


def test_test_connection_failure(client, storage):
    def denied():
        raise BackendError(
            "Failed to list buckets: denied", code="InvalidAccessKeyId", status=403
        )

    storage.list_buckets = denied

    response = client.post("/api/connections/test", json=_payload())

    assert response.status_code == 400
    body = response.json()
    assert body["errorCode"] == "connection_failed"
    assert body["s3Code"] == "InvalidAccessKeyId"
    assert body["error"] == "Connection failed: Failed to list buckets: denied"


def test_test_connection_uses_submitted_settings_over_active(client, active_connection):
    response = client.post(
        "/api/connections/test",
        json=_payload(endpoint="http://other-host:9000", accessKey="OTHER"),
    )

    assert response.status_code == 200
    config = ServiceBundle._build_storage_client.call_args.args[0]
    assert config.endpoint == "http://other-host:9000"
    assert config.access_key == "OTHER"
