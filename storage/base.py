from abc import ABC, abstractmethod
from typing import Any


class StorageError(Exception):
    """A query or command against the storage engine failed."""


class NoRowsError(StorageError):
    """A single-row query returned nothing."""


class StorageBackend(ABC):
    """Abstract storage engine handle used by the monitor."""

    @abstractmethod
    def connect(self) -> None:
        """Open the handle. Does not guarantee the server is reachable."""

    @abstractmethod
    def ping(self) -> None:
        """Raise StorageError unless the server answers queries."""

    @abstractmethod
    def query_row(self, sql: str) -> tuple[Any, ...]:
        """Run a query and return its first row."""

    @abstractmethod
    def execute(self, sql: str) -> dict[str, Any]:
        """Run a command and return whatever summary the engine reports."""

    @abstractmethod
    def close(self) -> None:
        """Close the handle cleanly."""
