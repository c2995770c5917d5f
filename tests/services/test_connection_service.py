from __future__ import annotations

import logging
from dataclasses import replace
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select

from s3explorer.app.services.connection_service import (
    ConnectionConflictError,
    ConnectionCreateData,
    ConnectionLimitError,
    ConnectionNotFoundError,
    ConnectionService,
    ConnectionUpdateData,
)
from s3explorer.common.config import get_settings
from s3explorer.common.validation import InvalidInputError
from s3explorer.infra.db.models import Connection
from s3explorer.infra.storage.client import BackendError, ConnectionConfig
from tests.services.fake_storage import FakeStorageClient


def _data(name: str = "minio", **overrides) -> ConnectionCreateData:
    values = {
        "name": name,
        "endpoint": "http://localhost:9000",
        "access_key": "AKIAEXAMPLE",
        "secret_key": "s3cr3t-value",
    }
    values.update(overrides)
    return ConnectionCreateData(**values)


class _Factory:
    """Client factory that records every configuration it was asked for."""

    def __init__(self, client=None) -> None:
        self.client = client or FakeStorageClient()
        self.configs: list[ConnectionConfig] = []

    def __call__(self, config: ConnectionConfig):
        self.configs.append(config)
        return self.client


@pytest.fixture()
def factory() -> _Factory:
    storage = FakeStorageClient()
    storage.add_bucket("alpha")
    storage.add_bucket("beta")
    return _Factory(storage)


@pytest.fixture()
def service(session, factory) -> ConnectionService:
    return ConnectionService(session, client_factory=factory)


def test_create_connection_encrypts_credentials(service, session, factory):
    connection = service.create_connection(_data())

    assert connection.id is not None
    assert connection.is_active is False
    assert connection.region == "us-east-1"
    assert connection.force_path_style is True
    assert connection.access_key_enc != "AKIAEXAMPLE"
    assert "s3cr3t-value" not in connection.secret_key_enc
    assert factory.configs[0].secret_key == "s3cr3t-value"


def test_create_connection_requires_fields(service):
    with pytest.raises(InvalidInputError, match="required"):
        service.create_connection(_data(endpoint="  "))


def test_create_connection_rejects_duplicate_name(service):
    service.create_connection(_data())

    with pytest.raises(ConnectionConflictError):
        service.create_connection(_data())


def test_create_connection_enforces_limit(session, factory):
    settings = replace(get_settings(), MAX_CONNECTIONS=2)
    service = ConnectionService(session, client_factory=factory, settings=settings)
    service.create_connection(_data("one"))
    service.create_connection(_data("two"))

    with pytest.raises(ConnectionLimitError, match=r"\(2\)"):
        service.create_connection(_data("three"))


def test_connection_saved_even_when_test_fails(session, caplog):
    client = MagicMock()
    client.list_buckets.side_effect = BackendError(
        "Failed to list buckets: InvalidAccessKeyId", code="InvalidAccessKeyId", status=403
    )
    service = ConnectionService(session, client_factory=_Factory(client))

    with caplog.at_level(logging.WARNING):
        connection = service.create_connection(_data())

    assert connection.id is not None
    assert any("connection_test_failed" in r.getMessage() for r in caplog.records)
    assert all("s3cr3t-value" not in r.getMessage() for r in caplog.records)


def test_active_config_round_trips_credentials(service):
    connection = service.create_connection(_data(region="eu-west-1", force_path_style=False))
    service.activate(connection.id)

    config = service.get_active_config()

    assert config == ConnectionConfig(
        endpoint="http://localhost:9000",
        access_key="AKIAEXAMPLE",
        secret_key="s3cr3t-value",
        region="eu-west-1",
        force_path_style=False,
    )


def test_activate_keeps_single_active(service, session):
    first = service.create_connection(_data("first"))
    second = service.create_connection(_data("second"))

    service.activate(first.id)
    service.activate(second.id)
    service.activate(second.id)

    active_count = session.scalar(
        select(func.count()).select_from(Connection).where(Connection.is_active.is_(True))
    )
    assert active_count == 1
    assert service.get_active().id == second.id


def test_activate_unknown_connection(service):
    with pytest.raises(ConnectionNotFoundError):
        service.activate(9999)


def test_disconnect_clears_active(service):
    connection = service.create_connection(_data())
    service.activate(connection.id)

    service.disconnect()

    assert service.get_active() is None
    assert service.get_active_config() is None


def test_update_keeps_unspecified_secrets(service):
    connection = service.create_connection(_data())

    updated = service.update_connection(
        connection.id, ConnectionUpdateData(name="renamed", endpoint="http://minio:9000")
    )
    service.activate(updated.id)
    config = service.get_active_config()

    assert updated.name == "renamed"
    assert config.endpoint == "http://minio:9000"
    assert config.access_key == "AKIAEXAMPLE"
    assert config.secret_key == "s3cr3t-value"


def test_update_rejects_taken_name(service):
    service.create_connection(_data("first"))
    second = service.create_connection(_data("second"))

    with pytest.raises(ConnectionConflictError):
        service.update_connection(second.id, ConnectionUpdateData(name="first"))


def test_delete_connection(service):
    connection = service.create_connection(_data())

    service.delete_connection(connection.id)

    assert service.list_connections() == []
    with pytest.raises(ConnectionNotFoundError):
        service.delete_connection(connection.id)


def test_list_connections_ordered_by_name(service):
    service.create_connection(_data("zeta"))
    service.create_connection(_data("alpha"))

    assert [c.name for c in service.list_connections()] == ["alpha", "zeta"]


def test_test_connection_counts_buckets(service):
    config = ConnectionConfig(
        endpoint="http://localhost:9000", access_key="k", secret_key="s"
    )

    assert service.test_connection(config) == 2


def test_test_connection_requires_credentials(service, factory):
    config = ConnectionConfig(endpoint="http://localhost:9000", access_key="", secret_key="s")

    with pytest.raises(InvalidInputError):
        service.test_connection(config)
    assert factory.configs == []
