# monitor/sampler.py
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from storage.base import StorageBackend

from .retry import poll_immediate

logger = logging.getLogger(__name__)

DISK_USAGE_QUERY = "SELECT free_space, total_space FROM system.disks"
ENGINE_USAGE_QUERY = "SELECT SUM(bytes) FROM system.parts"


@dataclass(frozen=True)
class UsageSample:
    free_bytes: int
    used_bytes: int
    disk_total_bytes: int
    capacity_bytes: int

    @property
    def usage_ratio(self) -> Optional[float]:
        """used / capacity, or None when there is no capacity at all."""
        if self.capacity_bytes <= 0:
            return None
        return self.used_bytes / self.capacity_bytes


def effective_capacity(allocated_space: int, free_bytes: int, used_bytes: int) -> int:
    """Never assume more space than the disk actually has."""
    return min(allocated_space, free_bytes + used_bytes)


class UsageSampler:
    def __init__(
        self,
        backend: StorageBackend,
        allocated_space: int,
        query_timeout: float,
        query_retry_interval: float,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.backend = backend
        self.allocated_space = allocated_space
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

    def get_disk_usage(self) -> tuple[int, int]:
        """(free, total) bytes of the disk backing ClickHouse."""
        free, total = self._query(DISK_USAGE_QUERY, "get the disk usage")
        return int(free or 0), int(total or 0)

    def get_engine_usage(self) -> int:
        """Bytes held by ClickHouse data parts."""
        (used,) = self._query(ENGINE_USAGE_QUERY, "get the used space size by ClickHouse")
        # SUM over no parts comes back as 0 or NULL depending on settings
        return int(used or 0)

    def sample(self) -> UsageSample:
        free, disk_total = self.get_disk_usage()
        used = self.get_engine_usage()
        sample = UsageSample(
            free_bytes=free,
            used_bytes=used,
            disk_total_bytes=disk_total,
            capacity_bytes=effective_capacity(self.allocated_space, free, used),
        )
        logger.info(
            "Memory usage total=%d used=%d percentage=%s",
            sample.capacity_bytes,
            sample.used_bytes,
            f"{sample.usage_ratio:.4f}" if sample.usage_ratio is not None else "n/a",
        )
        return sample

    def check_storage_condition(self) -> Optional[float]:
        """
        Log how much of the disk is available to ClickHouse. A low value
        means ClickHouse shares the disk with other software.
        """
        free, disk_total = self.get_disk_usage()
        used = self.get_engine_usage()
        if disk_total <= 0:
            logger.warning("Disk reports no total space; cannot check storage condition")
            return None
        available = (free + used) / disk_total
        logger.info(
            "Low available percentage implies ClickHouse does not save data on a dedicated disk "
            "availablePercentage=%.4f",
            available,
        )
        return available
