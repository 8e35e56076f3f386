# monitor/loop.py
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from storage.base import StorageBackend

from .config import MonitorConfig
from .errors import InvariantViolation, QueryTimeout
from .executor import EvictionExecutor, EvictionResult
from .planner import EvictionPlanner
from .sampler import UsageSample, UsageSampler

logger = logging.getLogger(__name__)


class MonitorState(str, Enum):
    ACTIVE = "active"
    COOLING = "cooling"


@dataclass(frozen=True)
class MonitorStatus:
    """Snapshot published after every round; safe to read from any thread."""

    state: MonitorState
    remaining_rounds: int
    ticks: int
    last_tick_at: Optional[datetime] = None
    last_sample: Optional[UsageSample] = None
    last_eviction: Optional[EvictionResult] = None
    last_error: Optional[str] = None


class Monitor:
    """
    Owns the ClickHouse handle and the cooldown counter.

    Each round samples the disk usage. While cooling down after a
    deletion the round only counts down; otherwise a usage ratio above
    the threshold plans a boundary and deletes older rows from the
    monitored table and every materialized view, then arms the cooldown.
    """

    def __init__(
        self,
        config: MonitorConfig,
        backend: StorageBackend,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.backend = backend
        self.sampler = UsageSampler(
            backend,
            config.allocated_space,
            config.query_timeout,
            config.query_retry_interval,
            sleep=sleep,
            clock=clock,
        )
        self.planner = EvictionPlanner(
            backend,
            config.table_name,
            config.delete_percentage,
            config.query_timeout,
            config.query_retry_interval,
            sleep=sleep,
            clock=clock,
        )
        self.executor = EvictionExecutor(
            backend,
            config.tables,
            config.query_timeout,
            config.query_retry_interval,
            sleep=sleep,
            clock=clock,
        )
        # remaining number of rounds to skip after a deletion
        self.remaining_rounds = 0
        self.ticks = 0
        self.last_tick_at: Optional[datetime] = None
        self.last_sample: Optional[UsageSample] = None
        self.last_eviction: Optional[EvictionResult] = None
        self.last_error: Optional[str] = None
        self._stop_evt = threading.Event()
        self._status = MonitorStatus(state=MonitorState.ACTIVE, remaining_rounds=0, ticks=0)

    # -----------------------
    # State
    # -----------------------
    @property
    def state(self) -> MonitorState:
        return MonitorState.COOLING if self.remaining_rounds > 0 else MonitorState.ACTIVE

    @property
    def status(self) -> MonitorStatus:
        return self._status

    def _publish(self) -> None:
        self._status = MonitorStatus(
            state=self.state,
            remaining_rounds=self.remaining_rounds,
            ticks=self.ticks,
            last_tick_at=self.last_tick_at,
            last_sample=self.last_sample,
            last_eviction=self.last_eviction,
            last_error=self.last_error,
        )

    # -----------------------
    # Rounds
    # -----------------------
    def check_storage_condition(self) -> Optional[float]:
        try:
            return self.sampler.check_storage_condition()
        except QueryTimeout as exc:
            logger.error("Failed to check the storage condition: %s", exc)
            return None

    def _sample(self) -> Optional[UsageSample]:
        try:
            sample = self.sampler.sample()
        except QueryTimeout as exc:
            logger.error("Skipping this round, usage sampling failed: %s", exc)
            self.last_error = str(exc)
            return None
        self.last_sample = sample
        return sample

    def tick(self) -> None:
        """Run one monitoring round."""
        if self.remaining_rounds < 0:
            logger.error(
                "Remaining rounds number to be skipped should be larger than or equal to 0 number=%d",
                self.remaining_rounds,
            )
            raise InvariantViolation(f"remaining rounds is negative: {self.remaining_rounds}")

        self.ticks += 1
        self.last_tick_at = datetime.now(timezone.utc)
        self.last_error = None
        try:
            sample = self._sample()

            # The MergeTree engine needs time to release space after a
            # deletion, so no decision is taken while cooling down.
            if self.remaining_rounds > 0:
                logger.info("Skip rounds after a successful deletion remaining=%d", self.remaining_rounds)
                self.remaining_rounds -= 1
                return

            if sample is None:
                return
            ratio = sample.usage_ratio
            if ratio is None:
                logger.error(
                    "Effective storage capacity is 0 (allocated=%d free=%d used=%d); check STORAGE_SIZE, not deleting",
                    self.config.allocated_space,
                    sample.free_bytes,
                    sample.used_bytes,
                )
                self.last_error = "effective storage capacity is 0"
                return
            if ratio > self.config.threshold:
                self.evict()
        finally:
            self._publish()

    def evict(self) -> Optional[EvictionResult]:
        """Plan and run one deletion sequence, then arm the cooldown."""
        try:
            plan = self.planner.plan()
        except QueryTimeout as exc:
            logger.error("Failed to get timeInserted boundary: %s", exc)
            self.last_error = str(exc)
            return None
        if plan is None:
            return None

        result = self.executor.execute(plan.boundary)
        self.last_eviction = result
        if result.failed:
            logger.warning(
                "Deletion finished with failures failed=%s succeeded=%s",
                ",".join(result.failed),
                ",".join(result.succeeded),
            )
            self.last_error = "failed to delete records from " + ", ".join(result.failed)
        # armed even when some tables failed
        logger.info("Skip rounds after a successful deletion skipRoundsNum=%d", self.config.skip_rounds_num)
        self.remaining_rounds = self.config.skip_rounds_num
        return result

    # -----------------------
    # Loop
    # -----------------------
    def run(self, max_ticks: Optional[int] = None) -> None:
        """
        Run rounds every `monitor_exec_interval` seconds until stop() is
        called or `max_ticks` rounds have run. The interval starts when a
        round finishes; missed rounds are never made up.
        """
        ran = 0
        while not self._stop_evt.is_set():
            self.tick()
            ran += 1
            if max_ticks is not None and ran >= max_ticks:
                break
            self._stop_evt.wait(self.config.monitor_exec_interval)

    def stop(self) -> None:
        self._stop_evt.set()
