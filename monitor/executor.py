# monitor/executor.py
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from storage.base import StorageBackend

from .errors import QueryTimeout
from .retry import poll_immediate

logger = logging.getLogger(__name__)

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def delete_command(table: str, boundary: datetime) -> str:
    return f"ALTER TABLE {table} DELETE WHERE timeInserted < toDateTime('{boundary.strftime(TIME_FORMAT)}')"


@dataclass
class EvictionResult:
    boundary: datetime
    attempted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> list[str]:
        return [t for t in self.attempted if t not in self.failed]


class EvictionExecutor:
    """Deletes rows older than a boundary from each table, in order."""

    def __init__(
        self,
        backend: StorageBackend,
        tables: tuple[str, ...],
        query_timeout: float,
        query_retry_interval: float,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.backend = backend
        self.tables = tables
        self.query_timeout = query_timeout
        self.query_retry_interval = query_retry_interval
        self._sleep = sleep
        self._clock = clock

    def execute(self, boundary: datetime) -> EvictionResult:
        result = EvictionResult(boundary=boundary)
        for table in self.tables:
            command = delete_command(table, boundary)
            result.attempted.append(table)
            try:
                poll_immediate(
                    lambda: self.backend.execute(command),
                    self.query_retry_interval,
                    self.query_timeout,
                    f"delete records from {table}",
                    sleep=self._sleep,
                    clock=self._clock,
                )
            except QueryTimeout as exc:
                # keep going with the remaining tables
                logger.error("Failed to delete records from ClickHouse table=%s: %s", table, exc)
                result.failed.append(table)
                continue
            logger.info("Deleted records table=%s before=%s", table, boundary.strftime(TIME_FORMAT))
        return result
