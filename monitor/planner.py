# monitor/planner.py
import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from dateutil import parser as dtp

from storage.base import StorageBackend, StorageError

from .errors import InvariantViolation
from .retry import poll_immediate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvictionPlan:
    row_count: int
    delete_row_num: int
    boundary: datetime


def _as_boundary(value) -> datetime:
    """timeInserted as a datetime; anything else is a bad response."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        raise StorageError(f"unexpected timeInserted value: {value!r}")
    try:
        return dtp.parse(value)
    except (ValueError, OverflowError) as exc:
        raise StorageError(f"unparseable timeInserted value {value!r}: {exc}") from exc


def compute_delete_row_num(count: int, delete_percentage: float) -> int:
    """Number of oldest rows to drop: floor(count * delete_percentage)."""
    return math.floor(count * delete_percentage)


class EvictionPlanner:
    """
    Picks a timeInserted boundary so that deleting every row older than
    it removes `delete_percentage` of the table.

    The boundary is the timeInserted of row `delete_row_num - 1` in the
    table's natural order, which assumes rows are iterated in insertion
    order.
    """

    def __init__(
        self,
        backend: StorageBackend,
        table_name: str,
        delete_percentage: float,
        query_timeout: float,
        query_retry_interval: float,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.backend = backend
        self.table_name = table_name
        self.delete_percentage = delete_percentage
        self.query_timeout = query_timeout
        self.query_retry_interval = query_retry_interval
        self._sleep = sleep
        self._clock = clock

    def _query(self, sql: str, operation: str):
        return poll_immediate(
            lambda: self.backend.query_row(sql),
            self.query_retry_interval,
            self.query_timeout,
            operation,
            sleep=self._sleep,
            clock=self._clock,
        )

    def get_row_count(self) -> int:
        (count,) = self._query(
            f"SELECT COUNT() FROM {self.table_name}",
            f"get the number of records from {self.table_name}",
        )
        return int(count)

    def get_delete_row_num(self) -> tuple[int, int]:
        """(row count, rows to delete)"""
        count = self.get_row_count()
        return count, compute_delete_row_num(count, self.delete_percentage)

    def get_time_boundary(self, delete_row_num: int) -> datetime:
        if delete_row_num < 1:
            raise InvariantViolation(f"boundary offset must be >= 0, got {delete_row_num - 1}")
        sql = f"SELECT timeInserted FROM {self.table_name} LIMIT 1 OFFSET {delete_row_num - 1}"

        def fetch() -> datetime:
            (value,) = self.backend.query_row(sql)
            return _as_boundary(value)

        return poll_immediate(
            fetch,
            self.query_retry_interval,
            self.query_timeout,
            f"get timeInserted boundary from {self.table_name}",
            sleep=self._sleep,
            clock=self._clock,
        )

    def plan(self) -> Optional[EvictionPlan]:
        """Return the eviction plan, or None when there is nothing to delete."""
        count, delete_row_num = self.get_delete_row_num()
        if delete_row_num == 0:
            logger.info(
                "Nothing to delete table=%s rows=%d deletePercentage=%s",
                self.table_name,
                count,
                self.delete_percentage,
            )
            return None
        boundary = self.get_time_boundary(delete_row_num)
        logger.info(
            "Computed deletion boundary table=%s rows=%d deleteRowNum=%d boundary=%s",
            self.table_name,
            count,
            delete_row_num,
            boundary,
        )
        return EvictionPlan(row_count=count, delete_row_num=delete_row_num, boundary=boundary)
