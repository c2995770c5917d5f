"""测试 /api/ready 端点的各种场景（使用 Mock 避免真实数据库依赖）。"""

from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from s3explorer.api.deps import get_db
from s3explorer.common.config import get_settings


class _FakeScalar:
    """模拟 SQLAlchemy execute 结果。"""

    def __init__(self, value: Any) -> None:
        self._value = value

    def scalar_one_or_none(self) -> Any:
        return self._value


class _FakeInspector:
    """模拟 SQLAlchemy inspector。"""

    def __init__(self, table_names: list[str]) -> None:
        self._table_names = table_names

    def get_table_names(self) -> list[str]:
        return list(self._table_names)


class _FakeSession:
    """模拟 SQLAlchemy Session，支持各种测试场景。"""

    def __init__(
        self,
        *,
        table_names: list[str],
        current_revision: str | None = None,
        raise_on_select1: bool = False,
    ) -> None:
        self._table_names = table_names
        self._current_revision = current_revision
        self._raise_on_select1 = raise_on_select1

    def get_bind(self) -> object:
        return object()

    def execute(self, statement: Any) -> _FakeScalar:
        text_value = getattr(statement, "text", str(statement))

        # SELECT 1 健康检查
        if "SELECT 1" in text_value:
            if self._raise_on_select1:
                raise OperationalError("SELECT 1", {}, Exception("db down"))
            return _FakeScalar(1)

        # alembic 版本查询
        if "FROM alembic_version" in text_value:
            return _FakeScalar(self._current_revision)

        return _FakeScalar(None)


class TestReadyEndpoint:
    """测试 /api/ready 端点。"""

    @pytest.fixture(autouse=True)
    def fresh_settings(self, monkeypatch: pytest.MonkeyPatch):
        """每个测试前清除配置缓存。"""
        monkeypatch.setenv("AUTO_APPLY_MIGRATIONS", "false")
        get_settings.cache_clear()  # type: ignore[attr-defined]
        yield
        get_settings.cache_clear()  # type: ignore[attr-defined]

    def _client(self, monkeypatch: pytest.MonkeyPatch, fake_session: _FakeSession) -> TestClient:
        import s3explorer.main as main_mod

        app = main_mod.create_app()

        def override_get_db():
            yield fake_session

        app.dependency_overrides[get_db] = override_get_db
        monkeypatch.setattr(
            main_mod,
            "inspect",
            lambda bind: _FakeInspector(fake_session._table_names),
        )
        monkeypatch.setattr(main_mod, "get_head_revision", lambda: "rev_head")
        return TestClient(app)

    def test_reports_missing_tables(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """缺少必需表时应该报告 missing_tables。"""
        client = self._client(
            monkeypatch,
            _FakeSession(table_names=["alembic_version"], current_revision="rev_head"),
        )

        r = client.get("/api/ready")

        assert r.status_code == 200
        payload = r.json()
        assert payload["status"] == "not_ready"
        assert payload["detail"]["missing_tables"] == ["connections"]

    def test_reports_migrations_out_of_date(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """迁移版本落后时应该报告 out_of_date。"""
        client = self._client(
            monkeypatch,
            _FakeSession(
                table_names=["connections", "alembic_version"],
                current_revision="rev_old",
            ),
        )

        r = client.get("/api/ready")

        detail = r.json()["detail"]
        assert detail["migrations"] == {
            "status": "out_of_date",
            "current": "rev_old",
            "expected": "rev_head",
        }

    def test_reports_missing_version_table(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """缺少 alembic_version 表时应该报告 version_table_missing。"""
        client = self._client(monkeypatch, _FakeSession(table_names=["connections"]))

        r = client.get("/api/ready")

        assert r.json()["detail"]["migrations"]["status"] == "version_table_missing"

    def test_reports_ready(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """表与迁移版本齐全时应该报告 ready。"""
        client = self._client(
            monkeypatch,
            _FakeSession(
                table_names=["connections", "alembic_version"],
                current_revision="rev_head",
            ),
        )

        r = client.get("/api/ready")

        assert r.status_code == 200
        assert r.json() == {"status": "ready"}

    def test_handles_operational_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """数据库连接失败时应该报告 not_ready。"""
        client = self._client(
            monkeypatch,
            _FakeSession(
                table_names=["connections", "alembic_version"],
                raise_on_select1=True,
            ),
        )

        r = client.get("/api/ready")

        assert r.status_code == 200
        payload = r.json()
        assert payload["status"] == "not_ready"
        assert "db" in payload["detail"]


def test_ready_against_migrated_database():
    import s3explorer.main as main_mod

    client = TestClient(main_mod.create_app())

    r = client.get("/api/ready")

    assert r.json() == {"status": "ready"}
