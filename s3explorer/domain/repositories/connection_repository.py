"""Connection repository for data access operations.

This module provides the data access layer for saved connection profiles.
"""

from __future__ import annotations

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from s3explorer.infra.db.models import Connection


class ConnectionRepository:
    """Repository for Connection entity database operations."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, connection_id: int) -> Connection | None:
        """Get a connection by ID.

        Args:
            connection_id: The connection's primary key.

        Returns:
            The Connection if found, None otherwise.
        """
        return self._session.get(Connection, connection_id)

    def get_by_name(self, name: str) -> Connection | None:
        stmt = select(Connection).where(Connection.name == name)
        return self._session.execute(stmt).scalar_one_or_none()

    def get_active(self) -> Connection | None:
        stmt = select(Connection).where(Connection.is_active.is_(True))
        return self._session.execute(stmt).scalars().first()

    def list_all(self) -> list[Connection]:
        stmt = select(Connection).order_by(Connection.name, Connection.id)
        return list(self._session.execute(stmt).scalars())

    def count(self) -> int:
        stmt = select(func.count()).select_from(Connection)
        return int(self._session.execute(stmt).scalar_one())

    def add(self, connection: Connection) -> Connection:
        self._session.add(connection)
        self._session.flush()
        return connection

    def delete(self, connection: Connection) -> None:
        self._session.delete(connection)
        self._session.flush()

    def clear_active(self) -> None:
        """Reset the active flag on every row."""
        self._session.execute(
            update(Connection)
            .where(Connection.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )

    def mark_active(self, connection_id: int) -> int:
        """Flag one row as active; returns the number of rows updated."""
        result = self._session.execute(
            update(Connection)
            .where(Connection.id == connection_id)
            .values(is_active=True)
            .execution_options(synchronize_session="fetch")
        )
        return int(result.rowcount or 0)
