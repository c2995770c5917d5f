from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from s3explorer.common.config import Settings, get_settings
from s3explorer.domain.repositories import ConnectionRepository
from s3explorer.infra.storage.client import ConnectionConfig, StorageClient
from s3explorer.infra.storage.s3_client import S3StorageClient

from .base import NoActiveConnectionError
from .connection_service import ConnectionService
from .mutation_service import MutationService
from .storage_gateway import StorageGateway
from .upload_service import UploadService


@dataclass
class ServiceBundle:
    """Lazily constructs the services of one request.

    The storage client is built once, from the connection override when one is
    given, otherwise from a snapshot of the active profile.
    """

    session: Session
    override: ConnectionConfig | None = None
    settings: Settings = field(default_factory=get_settings)
    _connection: ConnectionService | None = field(default=None, init=False, repr=False)
    _storage: StorageClient | None = field(default=None, init=False, repr=False)
    _gateway: StorageGateway | None = field(default=None, init=False, repr=False)
    _upload: UploadService | None = field(default=None, init=False, repr=False)
    _mutation: MutationService | None = field(default=None, init=False, repr=False)

    @staticmethod
    def _build_storage_client(config: ConnectionConfig) -> StorageClient:
        return S3StorageClient(config=config)

    def connection(self) -> ConnectionService:
        if self._connection is None:
            repo = ConnectionRepository(self.session)
            self._connection = ConnectionService(
                self.session,
                repository=repo,
                client_factory=self._build_storage_client,
                settings=self.settings,
            )
        return self._connection

    def with_override(self, config: ConnectionConfig) -> ServiceBundle:
        """Bundle on the same session whose storage client is built from config."""
        return ServiceBundle(session=self.session, override=config, settings=self.settings)

    def storage_client(self) -> StorageClient:
        if self._storage is None:
            config = self.override or self.connection().get_active_config()
            if config is None:
                raise NoActiveConnectionError()
            self._storage = self._build_storage_client(config)
        return self._storage

    def gateway(self) -> StorageGateway:
        if self._gateway is None:
            self._gateway = StorageGateway(self.storage_client(), settings=self.settings)
        return self._gateway

    def upload(self) -> UploadService:
        if self._upload is None:
            self._upload = UploadService(self.storage_client(), settings=self.settings)
        return self._upload

    def mutation(self) -> MutationService:
        if self._mutation is None:
            self._mutation = MutationService(
                self.storage_client(),
                gateway=self.gateway(),
                settings=self.settings,
            )
        return self._mutation


def get_service_bundle(
    session: Session, *, override: ConnectionConfig | None = None
) -> ServiceBundle:
    return ServiceBundle(session=session, override=override)
