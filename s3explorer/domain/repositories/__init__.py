from .connection_repository import ConnectionRepository

__all__ = [
    "ConnectionRepository",
]
