# monitor/connection.py
import logging
import time
from typing import Callable, Optional

from storage.base import StorageBackend, StorageError
from storage.factory import get_storage_backend

from .config import ConnectionParams
from .errors import ConnectionTimeout
from .retry import poll_immediate

logger = logging.getLogger(__name__)


def connect(
    params: ConnectionParams,
    total_timeout: float,
    retry_interval: float,
    *,
    request_timeout: Optional[float] = None,
    factory: Callable[..., StorageBackend] = get_storage_backend,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> StorageBackend:
    """
    Open a backend and ping it, retrying every `retry_interval` seconds.
    Raises ConnectionTimeout once `total_timeout` has passed.
    `request_timeout` caps a single request on the returned handle.
    """

    def attempt() -> StorageBackend:
        kwargs = {"url": params.url, "username": params.username, "password": params.password}
        if request_timeout is not None:
            kwargs["timeout"] = request_timeout
        backend = factory("clickhouse", **kwargs)
        try:
            backend.connect()
            backend.ping()
        except StorageError:
            backend.close()
            raise
        return backend

    backend = poll_immediate(
        attempt,
        retry_interval,
        total_timeout,
        "connect to ClickHouse",
        timeout_error=ConnectionTimeout,
        sleep=sleep,
        clock=clock,
    )
    logger.info("Connected to ClickHouse at %s", params.url)
    return backend
