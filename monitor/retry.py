# monitor/retry.py
import logging
import time
from typing import Callable, TypeVar

from storage.base import StorageError

from .errors import OperationTimeout, QueryTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


def poll_immediate(
    action: Callable[[], T],
    interval: float,
    timeout: float,
    operation: str,
    *,
    timeout_error: type[OperationTimeout] = QueryTimeout,
    retry_on: tuple[type[BaseException], ...] = (StorageError,),
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """
    Run `action` now and then every `interval` seconds until it returns
    without raising one of `retry_on`, or until `timeout` seconds have
    passed. On timeout raise `timeout_error` naming `operation`, chained
    to the last failure. Anything outside `retry_on` propagates at once.
    """
    deadline = clock() + timeout
    attempt = 0
    while True:
        attempt += 1
        try:
            return action()
        except retry_on as exc:
            last_exc = exc
            logger.error("Failed to %s (attempt %d): %s", operation, attempt, exc)

        if clock() + interval > deadline:
            raise timeout_error(operation, timeout) from last_exc
        sleep(interval)
