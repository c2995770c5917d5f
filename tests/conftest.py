from __future__ import annotations

import os
import shutil
import tempfile
from contextlib import contextmanager
from unittest.mock import patch

import pytest
from sqlalchemy import text

# 测试使用独立的临时 SQLite 数据库与密钥目录，避免污染本地 ./data
_TEST_DATA_DIR = tempfile.mkdtemp(prefix="s3explorer-tests-")
os.environ["DB_URL"] = os.environ.get("TEST_DB_URL") or (
    f"sqlite:///{_TEST_DATA_DIR}/test.db"
)
os.environ["DATA_DIR"] = _TEST_DATA_DIR
os.environ.pop("CREDENTIALS_KEY", None)
os.environ.setdefault("AUTO_APPLY_MIGRATIONS", "true")

from s3explorer.common.config import get_settings  # noqa: E402
from s3explorer.common.crypto import get_cipher  # noqa: E402
from s3explorer.infra.db.alembic_support import (  # noqa: E402
    get_alembic_config,
    upgrade_to_head,
)
from s3explorer.infra.db.session import get_session_factory, reset_engine  # noqa: E402

get_settings.cache_clear()  # type: ignore[attr-defined]
get_cipher.cache_clear()  # type: ignore[attr-defined]
get_alembic_config.cache_clear()  # type: ignore[attr-defined]


@contextmanager
def _session_scope():
    session_factory = get_session_factory()
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@pytest.fixture(scope="session", autouse=True)
def apply_migrations():
    get_settings.cache_clear()  # type: ignore[attr-defined]
    reset_engine()
    upgrade_to_head()
    yield
    reset_engine()
    shutil.rmtree(_TEST_DATA_DIR, ignore_errors=True)


@pytest.fixture(autouse=True)
def cleanup_tables(apply_migrations):
    with _session_scope() as session:
        session.execute(text("DELETE FROM connections"))
    yield
    with _session_scope() as session:
        session.execute(text("DELETE FROM connections"))


@pytest.fixture()
def session():
    session_factory = get_session_factory()
    with session_factory() as session:
        yield session
        session.rollback()


@pytest.fixture()
def storage():
    from tests.services.fake_storage import FakeStorageClient

    fake = FakeStorageClient()
    fake.add_bucket(
        "photos",
        ["docs/", "docs/a.txt", "docs/img/", "docs/img/b.png", "readme.md"],
    )
    return fake


@pytest.fixture()
def client(storage):
    from fastapi.testclient import TestClient

    from s3explorer.app.services.bundle import ServiceBundle
    from s3explorer.main import create_app

    with patch.object(ServiceBundle, "_build_storage_client", return_value=storage):
        yield TestClient(create_app())


@pytest.fixture()
def active_connection(client):
    response = client.post(
        "/api/connections",
        json={
            "name": "local-minio",
            "endpoint": "http://localhost:9000",
            "accessKey": "minioadmin",
            "secretKey": "minio-secret",
        },
    )
    assert response.status_code == 200, response.text
    connection_id = response.json()["id"]
    assert client.post(f"/api/connections/{connection_id}/activate").status_code == 200
    return connection_id
