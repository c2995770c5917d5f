"""Connection profile service.

Profiles are stored with their access and secret keys encrypted. Exactly one
profile may be active at a time; every storage request resolves the active
profile into a `ConnectionConfig` snapshot and builds its own client from it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from s3explorer.app.services.base import BaseService
from s3explorer.common.config import Settings, get_settings
from s3explorer.common.crypto import CredentialCipher, get_cipher
from s3explorer.common.validation import InvalidInputError
from s3explorer.domain.repositories import ConnectionRepository
from s3explorer.infra.db.models import Connection
from s3explorer.infra.storage.client import (
    ConnectionConfig,
    StorageClient,
    StorageError,
)

logger = logging.getLogger(__name__)

ClientFactory = Callable[[ConnectionConfig], StorageClient]


class ConnectionNotFoundError(Exception):
    """Raised when the referenced connection profile does not exist."""


class ConnectionConflictError(Exception):
    """Raised when a profile name is already taken."""


class ConnectionLimitError(Exception):
    """Raised when the number of stored profiles reaches the configured cap."""


def require_client_settings(config: ConnectionConfig) -> ConnectionConfig:
    if not config.endpoint or not config.access_key or not config.secret_key:
        raise InvalidInputError("endpoint, accessKey, secretKey required")
    return config


@dataclass(frozen=True)
class ConnectionCreateData:
    name: str
    endpoint: str
    access_key: str
    secret_key: str
    region: Optional[str] = None
    force_path_style: Optional[bool] = None


@dataclass(frozen=True)
class ConnectionUpdateData:
    """Partial update; ``None`` keeps the stored value."""

    name: Optional[str] = None
    endpoint: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    region: Optional[str] = None
    force_path_style: Optional[bool] = None


class ConnectionService(BaseService):
    """Application service for saved S3 connection profiles."""

    def __init__(
        self,
        session: Session,
        *,
        client_factory: ClientFactory,
        repository: ConnectionRepository | None = None,
        cipher: CredentialCipher | None = None,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(session)
        self._repo = repository or ConnectionRepository(session)
        self._cipher = cipher or get_cipher()
        self._settings = settings or get_settings()
        self._client_factory = client_factory

    def list_connections(self) -> list[Connection]:
        return self._repo.list_all()

    def get_connection(self, connection_id: int) -> Connection:
        connection = self._repo.get(connection_id)
        if connection is None:
            raise ConnectionNotFoundError("Connection not found")
        return connection

    def get_active(self) -> Connection | None:
        return self._repo.get_active()

    def get_active_config(self) -> ConnectionConfig | None:
        """Decrypt the active profile into a client configuration."""
        connection = self._repo.get_active()
        if connection is None:
            return None
        return self._to_config(connection)

    def create_connection(self, data: ConnectionCreateData) -> Connection:
        """Store a new profile.

        The connection is tested first, but a failed test only logs a warning;
        users may fix credentials on the backend side later.

        Raises:
            InvalidInputError: If a required field is blank.
            ConnectionLimitError: If MAX_CONNECTIONS profiles already exist.
            ConnectionConflictError: If the name is taken.
        """
        name = (data.name or "").strip()
        endpoint = (data.endpoint or "").strip()
        if not name or not endpoint or not data.access_key or not data.secret_key:
            raise InvalidInputError("name, endpoint, accessKey, secretKey required")

        limit = int(self._settings.MAX_CONNECTIONS)
        if self._repo.count() >= limit:
            raise ConnectionLimitError(f"Maximum connections limit reached ({limit})")
        if self._repo.get_by_name(name) is not None:
            raise ConnectionConflictError("Connection name already exists")

        config = ConnectionConfig(
            endpoint=endpoint,
            access_key=data.access_key,
            secret_key=data.secret_key,
            region=(data.region or "").strip() or self._settings.S3_DEFAULT_REGION,
            force_path_style=(
                True if data.force_path_style is None else bool(data.force_path_style)
            ),
        )
        self._check_reachable(name, config)

        connection = Connection(
            name=name,
            endpoint=config.endpoint,
            region=config.region,
            access_key_enc=self._cipher.encrypt(config.access_key),
            secret_key_enc=self._cipher.encrypt(config.secret_key),
            force_path_style=config.force_path_style,
            is_active=False,
        )
        try:
            self._repo.add(connection)
            self._commit()
        except IntegrityError as exc:
            raise ConnectionConflictError("Connection name already exists") from exc
        self.session.refresh(connection)
        logger.info(
            "connection_created id=%s name=%s",
            connection.id,
            connection.name,
            extra={
                "extra": {
                    "event": "connection_created",
                    "connection_id": connection.id,
                    "endpoint": connection.endpoint,
                }
            },
        )
        return connection

    def update_connection(
        self, connection_id: int, data: ConnectionUpdateData
    ) -> Connection:
        """Apply a partial update; secrets not supplied are re-encrypted as stored."""
        connection = self.get_connection(connection_id)
        current = self._to_config(connection)

        name = (data.name or "").strip() or connection.name
        if name != connection.name:
            existing = self._repo.get_by_name(name)
            if existing is not None and existing.id != connection.id:
                raise ConnectionConflictError("Connection name already exists")

        config = ConnectionConfig(
            endpoint=(data.endpoint or "").strip() or current.endpoint,
            access_key=data.access_key or current.access_key,
            secret_key=data.secret_key or current.secret_key,
            region=(data.region or "").strip() or current.region,
            force_path_style=(
                current.force_path_style
                if data.force_path_style is None
                else bool(data.force_path_style)
            ),
        )
        self._check_reachable(name, config)

        connection.name = name
        connection.endpoint = config.endpoint
        connection.region = config.region
        connection.access_key_enc = self._cipher.encrypt(config.access_key)
        connection.secret_key_enc = self._cipher.encrypt(config.secret_key)
        connection.force_path_style = config.force_path_style
        try:
            self._commit()
        except IntegrityError as exc:
            raise ConnectionConflictError("Connection name already exists") from exc
        self.session.refresh(connection)
        return connection

    def delete_connection(self, connection_id: int) -> None:
        connection = self.get_connection(connection_id)
        self._repo.delete(connection)
        self._commit()
        logger.info(
            "connection_deleted id=%s",
            connection_id,
            extra={"extra": {"event": "connection_deleted", "connection_id": connection_id}},
        )

    def activate(self, connection_id: int) -> Connection:
        """Make one profile the active one.

        Clearing every flag and setting the new one happen in the same
        transaction, so readers never observe two active profiles.
        """
        connection = self.get_connection(connection_id)
        self._repo.clear_active()
        if self._repo.mark_active(connection.id) != 1:
            self.session.rollback()
            raise ConnectionNotFoundError("Connection not found")
        self._commit()
        self.session.refresh(connection)
        logger.info(
            "connection_activated id=%s",
            connection.id,
            extra={"extra": {"event": "connection_activated", "connection_id": connection.id}},
        )
        return connection

    def disconnect(self) -> None:
        self._repo.clear_active()
        self._commit()

    def test_connection(self, config: ConnectionConfig) -> int:
        """Return the number of buckets visible with the given settings.

        Raises:
            InvalidInputError: If endpoint or credentials are blank.
            BackendError: If the backend rejects the request.
        """
        client = self._client_factory(require_client_settings(config))
        return len(client.list_buckets())

    def _check_reachable(self, name: str, config: ConnectionConfig) -> None:
        try:
            self.test_connection(config)
        except StorageError as exc:
            logger.warning(
                "connection_test_failed name=%s error=%s",
                name,
                exc,
                extra={
                    "extra": {
                        "event": "connection_test_failed",
                        "connection_name": name,
                        "endpoint": config.endpoint,
                        "s3_code": exc.code,
                    }
                },
            )

    def _to_config(self, connection: Connection) -> ConnectionConfig:
        return ConnectionConfig(
            endpoint=connection.endpoint,
            access_key=self._cipher.decrypt(connection.access_key_enc),
            secret_key=self._cipher.decrypt(connection.secret_key_enc),
            region=connection.region or self._settings.S3_DEFAULT_REGION,
            force_path_style=bool(connection.force_path_style),
        )
