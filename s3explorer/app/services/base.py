from __future__ import annotations

from sqlalchemy.orm import Session


class ServiceError(Exception):
    """Base class for application service level exceptions."""


class NoActiveConnectionError(ServiceError):
    """Raised when a storage operation runs without an active connection profile."""

    def __init__(
        self,
        message: str = "No active S3 connection. Please add and activate a connection.",
    ) -> None:
        super().__init__(message)


class BaseService:
    """Provides guard rails and helpers shared by database-backed services."""

    def __init__(self, session: Session):
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    def _commit(self) -> None:
        try:
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
